"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (CALLSCOPE__SECTION__KEY)
3. Repo YAML (<project>/.callscope.yaml)
4. Global YAML (~/.config/callscope/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    CALLSCOPE__<SECTION>__<KEY>=<VALUE>

Examples:
    CALLSCOPE__LOGGING__LEVEL=DEBUG
    CALLSCOPE__SESSION__REQUEST_TIMEOUT_SEC=10
    CALLSCOPE__RETRY__MAX_SESSION_RESTARTS=0
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        CALLSCOPE__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="WARNING",
        description="Root log level. DEBUG includes every wire message and server stderr line.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class SessionConfig(BaseModel):
    """Language server session timeouts.

    Env vars:
        CALLSCOPE__SESSION__REQUEST_TIMEOUT_SEC: Max wait for one query response
        CALLSCOPE__SESSION__INITIALIZE_TIMEOUT_SEC: Max wait for the initialize response
    """

    request_timeout_sec: float = Field(
        default=30.0,
        description="Max wait for a single query response. Expiry is treated as a transport failure.",
    )
    initialize_timeout_sec: float = Field(
        default=60.0,
        description="Max wait for the initialize response. Servers that index on startup need more.",
    )
    shutdown_timeout_sec: float = Field(
        default=5.0,
        description="Max wait for the shutdown response during graceful stop.",
    )
    terminate_timeout_sec: float = Field(
        default=5.0,
        description="Grace period after terminate before the server process is killed.",
    )
    settle_sec: float = Field(
        default=0.0,
        description="Pause after the initialized notification before the first query.",
    )

    @field_validator(
        "request_timeout_sec",
        "initialize_timeout_sec",
        "shutdown_timeout_sec",
        "terminate_timeout_sec",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"Timeout must be positive, got {v}")
        return v

    @field_validator("settle_sec")
    @classmethod
    def validate_settle(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"settle_sec must be >= 0, got {v}")
        return v


class RetryConfig(BaseModel):
    """Query retry and session recovery.

    Env vars:
        CALLSCOPE__RETRY__MAX_SESSION_RESTARTS: Session restarts allowed per run
    """

    backoff_ms: list[int] = Field(
        default_factory=lambda: [50, 250],
        description="Delays between attempts for the first query in a freshly opened file. "
        "Later queries in the same file get a single attempt.",
    )
    max_session_restarts: int = Field(
        default=1,
        description="Times a run may restart its language server after a transport failure.",
    )
    retry_rpc_codes: list[int] = Field(
        default_factory=lambda: [-32801],
        description="JSON-RPC error codes retried with the backoff delays (-32801: content modified).",
    )

    @field_validator("backoff_ms")
    @classmethod
    def validate_backoff(cls, v: list[int]) -> list[int]:
        if any(delay < 0 for delay in v):
            raise ValueError(f"Backoff delays must be >= 0, got {v}")
        return v

    @field_validator("max_session_restarts")
    @classmethod
    def validate_restarts(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"max_session_restarts must be >= 0, got {v}")
        return v


class DiscoveryConfig(BaseModel):
    """File discovery configuration.

    Env vars:
        CALLSCOPE__DISCOVERY__MAX_DEPTH: Directory depth limit (unset = unlimited)
        CALLSCOPE__DISCOVERY__MAX_FILE_SIZE_MB: Skip files larger than this
    """

    skip_dirs_extra: list[str] = Field(
        default_factory=list,
        description="Directory names skipped in addition to the built-in set.",
    )
    max_depth: int | None = Field(
        default=None,
        description="Directory levels searched: 1 is the project root only. None means unlimited.",
    )
    max_file_size_mb: int = Field(
        default=10,
        description="Skip source files larger than this (MB).",
    )

    @field_validator("max_depth")
    @classmethod
    def validate_depth(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError(f"max_depth must be >= 1 (1 searches the root only), got {v}")
        return v

    @field_validator("max_file_size_mb")
    @classmethod
    def validate_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"max_file_size_mb must be positive, got {v}")
        return v


class ServerOverride(BaseModel):
    """Replacement launch command for one language's server."""

    command: str
    args: list[str] = Field(default_factory=list)


class CallScopeConfig(BaseModel):
    """Root configuration for callscope.

    All settings can be configured via:
    1. Environment variables: CALLSCOPE__SECTION__KEY
    2. YAML config files (repo or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    servers: dict[str, ServerOverride] = Field(default_factory=dict)
