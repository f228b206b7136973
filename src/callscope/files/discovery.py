"""Deterministic source file discovery for one language.

Directories are walked in sorted order, skip dirs are pruned by name, files
are matched by the pack's file regex on their name, then include/exclude
globs are applied to the root-relative POSIX path.
"""

from __future__ import annotations

import fnmatch
import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from callscope.core.errors import ConfigError
from callscope.core.excludes import DEFAULT_SKIP_DIRS, HARDCODED_DIRS
from callscope.core.logging import get_logger

if TYPE_CHECKING:
    from callscope.config.models import DiscoveryConfig
    from callscope.parsing.packs import LanguagePack

log = get_logger("files.discovery")


def matches_glob(rel_path: str, pattern: str) -> bool:
    """Check if a path matches a glob pattern, with ** support."""
    if fnmatch.fnmatch(rel_path, pattern):
        return True
    # Handle **/pattern for any-depth matching
    if pattern.startswith("**/"):
        return fnmatch.fnmatch(rel_path, pattern[3:])
    return False


def _validate_patterns(kind: str, patterns: Iterable[str]) -> tuple[str, ...]:
    checked = []
    for pattern in patterns:
        if not pattern.strip():
            raise ConfigError.invalid_pattern(kind, pattern, "pattern is empty")
        if "\x00" in pattern:
            raise ConfigError.invalid_pattern(kind, pattern, "pattern contains a NUL byte")
        if pattern.count("[") != pattern.count("]"):
            raise ConfigError.invalid_pattern(kind, pattern, "unbalanced character class")
        checked.append(pattern)
    return tuple(checked)


@dataclass(frozen=True)
class FileSearchConfig:
    """Filters for ``find_language_files``.

    ``max_depth`` counts directory levels: 1 searches the root only, None is
    unlimited. ``max_file_size_mb`` of None disables the size check.
    """

    skip_dirs: frozenset[str] = DEFAULT_SKIP_DIRS
    max_depth: int | None = None
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    max_file_size_mb: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "include", _validate_patterns("include", self.include))
        object.__setattr__(self, "exclude", _validate_patterns("exclude", self.exclude))
        if self.max_depth is not None and self.max_depth < 1:
            raise ConfigError.invalid_value("max_depth", self.max_depth, "must be >= 1 (1 searches the root only)")

    @classmethod
    def from_config(
        cls,
        config: DiscoveryConfig,
        *,
        include: Iterable[str] = (),
        exclude: Iterable[str] = (),
    ) -> FileSearchConfig:
        return cls(
            skip_dirs=DEFAULT_SKIP_DIRS | frozenset(config.skip_dirs_extra),
            max_depth=config.max_depth,
            include=tuple(include),
            exclude=tuple(exclude),
            max_file_size_mb=config.max_file_size_mb,
        )

    def accepts(self, rel_path: str) -> bool:
        if self.include and not any(matches_glob(rel_path, p) for p in self.include):
            return False
        return not any(matches_glob(rel_path, p) for p in self.exclude)


@dataclass
class _Walk:
    root: Path
    pack: LanguagePack
    search: FileSearchConfig
    found: list[Path] = field(default_factory=list)

    def run(self, directory: Path, depth: int) -> None:
        if self.search.max_depth is not None and depth >= self.search.max_depth:
            return
        try:
            entries = sorted(os.scandir(directory), key=lambda e: e.name)
        except OSError as e:
            log.warning("directory_unreadable", path=str(directory), error=str(e))
            return

        for entry in entries:
            if entry.is_dir(follow_symlinks=False):
                if entry.name in HARDCODED_DIRS or entry.name in self.search.skip_dirs:
                    continue
                self.run(Path(entry.path), depth + 1)
            elif entry.is_file() and self.pack.matches_file(entry.name):
                path = Path(entry.path)
                rel = path.relative_to(self.root).as_posix()
                if not self.search.accepts(rel):
                    continue
                if self._too_large(entry):
                    log.info("file_skipped_size", path=rel)
                    continue
                self.found.append(path)

    def _too_large(self, entry: os.DirEntry[str]) -> bool:
        limit = self.search.max_file_size_mb
        if limit is None:
            return False
        try:
            return entry.stat().st_size > limit * 1024 * 1024
        except OSError:
            return False


def find_language_files(
    root: Path,
    pack: LanguagePack,
    search: FileSearchConfig | None = None,
) -> list[Path]:
    """Return the pack's source files under ``root`` in deterministic order.

    Raises:
        ConfigError: If ``root`` is missing or not a directory.
    """
    if not root.exists():
        raise ConfigError.project_not_found(str(root))
    if not root.is_dir():
        raise ConfigError.project_not_found(str(root), "is not a directory")

    walk = _Walk(root=root, pack=pack, search=search or FileSearchConfig())
    walk.run(root, 0)
    log.debug("files_discovered", language=pack.name, root=str(root), count=len(walk.found))
    return walk.found
