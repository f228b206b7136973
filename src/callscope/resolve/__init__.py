"""Reconciles syntax call sites with language server answers."""

from callscope.resolve.batch import BatchSession, OpenDocument, QueryOutcome, iter_open_documents
from callscope.resolve.calls import CallResolver, find_all_call_targets
from callscope.resolve.documents import collect_document_symbols, collect_inlay_hints
from callscope.resolve.hierarchy import collect_call_hierarchy
from callscope.resolve.models import (
    BatchReport,
    CallTargetReport,
    CallWithTarget,
    DiagnosticReason,
    FailureKind,
    FileDiagnostic,
    FileInlayHints,
    FileSymbols,
    HierarchyEntry,
    MultipleTargets,
    Resolution,
    ResolutionFailure,
    SingleTarget,
    SymbolReferences,
    Unresolved,
)
from callscope.resolve.references import find_all_references
from callscope.resolve.retry import RetryPolicy, query_with_backoff

__all__ = [
    "BatchReport",
    "BatchSession",
    "CallResolver",
    "CallTargetReport",
    "CallWithTarget",
    "DiagnosticReason",
    "FailureKind",
    "FileDiagnostic",
    "FileInlayHints",
    "FileSymbols",
    "HierarchyEntry",
    "MultipleTargets",
    "OpenDocument",
    "QueryOutcome",
    "Resolution",
    "ResolutionFailure",
    "RetryPolicy",
    "SingleTarget",
    "SymbolReferences",
    "Unresolved",
    "collect_call_hierarchy",
    "collect_document_symbols",
    "collect_inlay_hints",
    "find_all_call_targets",
    "find_all_references",
    "iter_open_documents",
    "query_with_backoff",
]
