"""Result records produced by the resolver batches.

All records are immutable once built and own their data (no tree nodes),
so they outlive the parse and the session that produced them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

from callscope.core.errors import CallScopeError, ErrorCode
from callscope.lsp.types import (
    CallHierarchyIncomingCall,
    CallHierarchyItem,
    CallHierarchyOutgoingCall,
    DocumentSymbol,
    InlayHint,
    Location,
    SymbolInformation,
)
from callscope.parsing.walker import CallSite

# =========================================================================
# Resolution
# =========================================================================


@dataclass(frozen=True, slots=True)
class Unresolved:
    """Well-formed answer with no target, or no answer at all (see failure)."""


@dataclass(frozen=True, slots=True)
class SingleTarget:
    location: Location


@dataclass(frozen=True, slots=True)
class MultipleTargets:
    locations: tuple[Location, ...]


Resolution = Unresolved | SingleTarget | MultipleTargets


def resolution_from(locations: list[Location] | None) -> Resolution:
    if not locations:
        return Unresolved()
    if len(locations) == 1:
        return SingleTarget(locations[0])
    return MultipleTargets(tuple(locations))


def resolution_locations(resolution: Resolution) -> tuple[Location, ...]:
    match resolution:
        case SingleTarget(location=location):
            return (location,)
        case MultipleTargets(locations=locations):
            return locations
        case _:
            return ()


# =========================================================================
# Failures and diagnostics
# =========================================================================


class FailureKind(StrEnum):
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    TIMEOUT = "timeout"


@dataclass(frozen=True, slots=True)
class ResolutionFailure:
    """Why a single query produced no answer."""

    kind: FailureKind
    code: int
    message: str
    rpc_code: int | None = None

    @classmethod
    def from_error(cls, error: CallScopeError) -> ResolutionFailure:
        if error.code == ErrorCode.TRANSPORT_TIMEOUT:
            kind = FailureKind.TIMEOUT
        elif error.code in (ErrorCode.PROTOCOL_ERROR_RESPONSE, ErrorCode.PROTOCOL_INVALID_RESPONSE):
            kind = FailureKind.PROTOCOL
        else:
            kind = FailureKind.TRANSPORT
        rpc_code = error.details.get("rpc_code") if kind is FailureKind.PROTOCOL else None
        return cls(kind=kind, code=error.code.value, message=error.message, rpc_code=rpc_code)


class DiagnosticReason(StrEnum):
    AMBIGUOUS_NAME = "ambiguous_name"
    UNREADABLE = "unreadable"
    PARSE_FAILED = "parse_failed"
    OPEN_FAILED = "open_failed"


@dataclass(frozen=True, slots=True)
class FileDiagnostic:
    """A file skipped by a batch, and why."""

    path: Path
    reason: DiagnosticReason
    message: str


# =========================================================================
# Per-item records
# =========================================================================


class _HasFailure(Protocol):
    @property
    def failure(self) -> ResolutionFailure | None: ...


@dataclass(frozen=True, slots=True)
class CallWithTarget:
    file_path: Path
    call_site: CallSite
    resolution: Resolution
    failure: ResolutionFailure | None = None
    attempts: int = 1

    @property
    def locations(self) -> tuple[Location, ...]:
        return resolution_locations(self.resolution)


@dataclass(frozen=True, slots=True)
class SymbolReferences:
    file_path: Path
    name: str
    kind: int
    line: int
    character: int
    references: tuple[Location, ...] = ()
    failure: ResolutionFailure | None = None


@dataclass(frozen=True, slots=True)
class HierarchyEntry:
    file_path: Path
    name: str
    line: int
    character: int
    items: tuple[CallHierarchyItem, ...] = ()
    incoming: tuple[CallHierarchyIncomingCall, ...] = ()
    outgoing: tuple[CallHierarchyOutgoingCall, ...] = ()
    failure: ResolutionFailure | None = None


@dataclass(frozen=True, slots=True)
class FileSymbols:
    file_path: Path
    symbols: tuple[DocumentSymbol | SymbolInformation, ...] = ()
    failure: ResolutionFailure | None = None


@dataclass(frozen=True, slots=True)
class FileInlayHints:
    file_path: Path
    hints: tuple[InlayHint, ...] = ()
    failure: ResolutionFailure | None = None


# =========================================================================
# Reports
# =========================================================================


@dataclass
class BatchReport[T: _HasFailure]:
    """Items of one batch run plus the files it skipped."""

    items: list[T] = field(default_factory=list)
    diagnostics: list[FileDiagnostic] = field(default_factory=list)
    files_processed: int = 0
    discarded_responses: int = 0
    session_restarts: int = 0
    elapsed_s: float = 0.0

    @property
    def failed(self) -> list[T]:
        return [item for item in self.items if item.failure is not None]

    def summary(self) -> dict[str, Any]:
        return {
            "items": len(self.items),
            "failed": len(self.failed),
            "files_processed": self.files_processed,
            "files_skipped": len(self.diagnostics),
            "discarded_responses": self.discarded_responses,
            "session_restarts": self.session_restarts,
            "elapsed_s": round(self.elapsed_s, 3),
        }


@dataclass
class CallTargetReport(BatchReport[CallWithTarget]):
    """Every call site of a run, paired with its definition(s)."""

    @property
    def calls(self) -> list[CallWithTarget]:
        return self.items

    @property
    def total_calls(self) -> int:
        return len(self.items)

    @property
    def resolved(self) -> list[CallWithTarget]:
        return [c for c in self.items if not isinstance(c.resolution, Unresolved)]

    @property
    def unresolved(self) -> list[CallWithTarget]:
        return [c for c in self.items if isinstance(c.resolution, Unresolved) and c.failure is None]
