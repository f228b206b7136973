"""Tests for resolve/models.py result records."""

from __future__ import annotations

from pathlib import Path

from callscope.core.errors import ProtocolError, TransportError
from callscope.lsp.types import Location, Position, Range
from callscope.parsing.walker import CallSite, SourceRange
from callscope.resolve.models import (
    BatchReport,
    CallTargetReport,
    CallWithTarget,
    DiagnosticReason,
    FailureKind,
    FileDiagnostic,
    FileSymbols,
    MultipleTargets,
    ResolutionFailure,
    SingleTarget,
    Unresolved,
    resolution_from,
    resolution_locations,
)


def loc(line: int) -> Location:
    start = Position(line=line, character=0)
    return Location(uri="file:///a.rs", range=Range(start=start, end=start))


def site() -> CallSite:
    span = SourceRange(0, 5, 0, 0, 0, 5, 0)
    return CallSite(span, span, "call_expression", "call_expression", "foo()")


class TestResolution:
    def test_from_nothing(self) -> None:
        assert resolution_from(None) == Unresolved()
        assert resolution_from([]) == Unresolved()

    def test_single(self) -> None:
        assert resolution_from([loc(1)]) == SingleTarget(loc(1))

    def test_multiple_keeps_server_order(self) -> None:
        resolution = resolution_from([loc(3), loc(1)])
        assert isinstance(resolution, MultipleTargets)
        assert resolution_locations(resolution) == (loc(3), loc(1))

    def test_locations_of_unresolved(self) -> None:
        assert resolution_locations(Unresolved()) == ()


class TestResolutionFailure:
    def test_timeout(self) -> None:
        failure = ResolutionFailure.from_error(TransportError.timeout(2.0, 7))
        assert failure.kind is FailureKind.TIMEOUT
        assert failure.rpc_code is None

    def test_transport(self) -> None:
        failure = ResolutionFailure.from_error(TransportError.closed())
        assert failure.kind is FailureKind.TRANSPORT
        assert failure.code == 8101

    def test_protocol_keeps_rpc_code(self) -> None:
        error = ProtocolError.from_response("textDocument/definition", {"code": -32801, "message": "modified"})
        failure = ResolutionFailure.from_error(error)
        assert failure.kind is FailureKind.PROTOCOL
        assert failure.rpc_code == -32801
        assert "modified" in failure.message


class TestReports:
    def test_call_report_partitions(self) -> None:
        """Resolved, unresolved and failed calls are disjoint views of the items."""
        # Given
        failure = ResolutionFailure.from_error(TransportError.closed())
        report = CallTargetReport(
            items=[
                CallWithTarget(Path("a.rs"), site(), SingleTarget(loc(1))),
                CallWithTarget(Path("a.rs"), site(), Unresolved()),
                CallWithTarget(Path("a.rs"), site(), Unresolved(), failure=failure),
            ]
        )

        # Then
        assert report.total_calls == 3
        assert len(report.resolved) == 1
        assert len(report.unresolved) == 1
        assert len(report.failed) == 1
        assert report.calls[0].locations == (loc(1),)

    def test_summary(self) -> None:
        report: BatchReport[FileSymbols] = BatchReport(
            items=[FileSymbols(Path("a.rs"))],
            diagnostics=[FileDiagnostic(Path("b c.rs"), DiagnosticReason.AMBIGUOUS_NAME, "space")],
            files_processed=1,
            discarded_responses=2,
            session_restarts=1,
            elapsed_s=0.12345,
        )
        assert report.summary() == {
            "items": 1,
            "failed": 0,
            "files_processed": 1,
            "files_skipped": 1,
            "discarded_responses": 2,
            "session_restarts": 1,
            "elapsed_s": 0.123,
        }
