"""Config module exports."""

from callscope.config.loader import load_config
from callscope.config.models import (
    CallScopeConfig,
    DiscoveryConfig,
    LoggingConfig,
    LogOutputConfig,
    RetryConfig,
    ServerOverride,
    SessionConfig,
)

__all__ = [
    "load_config",
    "CallScopeConfig",
    "DiscoveryConfig",
    "LoggingConfig",
    "LogOutputConfig",
    "RetryConfig",
    "ServerOverride",
    "SessionConfig",
]
