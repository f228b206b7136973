"""Source file discovery."""

from callscope.files.discovery import FileSearchConfig, find_language_files, matches_glob

__all__ = ["FileSearchConfig", "find_language_files", "matches_glob"]
