"""Pydantic models for the LSP payloads callscope reads.

Only the fields callscope consumes are modelled; unknown fields are ignored
so that servers sending extra data still validate.
"""

from __future__ import annotations

from enum import IntEnum
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from callscope.core.errors import ProtocolError


class SymbolKind(IntEnum):
    FILE = 1
    MODULE = 2
    NAMESPACE = 3
    PACKAGE = 4
    CLASS = 5
    METHOD = 6
    PROPERTY = 7
    FIELD = 8
    CONSTRUCTOR = 9
    ENUM = 10
    INTERFACE = 11
    FUNCTION = 12
    VARIABLE = 13
    CONSTANT = 14
    STRING = 15
    NUMBER = 16
    BOOLEAN = 17
    ARRAY = 18
    OBJECT = 19
    KEY = 20
    NULL = 21
    ENUM_MEMBER = 22
    STRUCT = 23
    EVENT = 24
    OPERATOR = 25
    TYPE_PARAMETER = 26

    @classmethod
    def label(cls, value: int) -> str:
        try:
            return cls(value).name.replace("_", " ").title()
        except ValueError:
            return f"Kind({value})"


# Symbols worth querying references for
CALLABLE_KINDS: frozenset[int] = frozenset(
    {SymbolKind.FUNCTION, SymbolKind.METHOD, SymbolKind.CONSTRUCTOR}
)

# Symbols the call hierarchy batch prepares when syntax gives no declarations
HIERARCHY_KINDS: frozenset[int] = frozenset(
    {
        SymbolKind.FUNCTION,
        SymbolKind.METHOD,
        SymbolKind.CONSTRUCTOR,
        SymbolKind.PROPERTY,
        SymbolKind.FIELD,
        SymbolKind.ENUM_MEMBER,
    }
)


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class Position(_WireModel):
    line: int
    character: int


class Range(_WireModel):
    start: Position
    end: Position


class Location(_WireModel):
    uri: str
    range: Range

    @property
    def path(self) -> Path:
        return uri_to_path(self.uri)


class LocationLink(_WireModel):
    origin_selection_range: Range | None = Field(default=None, alias="originSelectionRange")
    target_uri: str = Field(alias="targetUri")
    target_range: Range = Field(alias="targetRange")
    target_selection_range: Range = Field(alias="targetSelectionRange")

    def to_location(self) -> Location:
        return Location(uri=self.target_uri, range=self.target_selection_range)


class DocumentSymbol(_WireModel):
    name: str
    kind: int
    detail: str | None = None
    range: Range
    selection_range: Range = Field(alias="selectionRange")
    children: list[DocumentSymbol] = Field(default_factory=list)


class SymbolInformation(_WireModel):
    name: str
    kind: int
    location: Location
    container_name: str | None = Field(default=None, alias="containerName")


class CallHierarchyItem(_WireModel):
    name: str
    kind: int
    uri: str
    range: Range
    selection_range: Range = Field(alias="selectionRange")
    detail: str | None = None
    data: Any = None

    def to_wire(self) -> dict[str, Any]:
        """Item as sent back in incomingCalls/outgoingCalls params."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CallHierarchyIncomingCall(_WireModel):
    from_: CallHierarchyItem = Field(alias="from")
    from_ranges: list[Range] = Field(default_factory=list, alias="fromRanges")


class CallHierarchyOutgoingCall(_WireModel):
    to: CallHierarchyItem
    from_ranges: list[Range] = Field(default_factory=list, alias="fromRanges")


class InlayHintLabelPart(_WireModel):
    value: str


class InlayHint(_WireModel):
    position: Position
    label: str | list[InlayHintLabelPart]
    kind: int | None = None

    @property
    def text(self) -> str:
        if isinstance(self.label, str):
            return self.label
        return "".join(part.value for part in self.label)


# =========================================================================
# Conversions
# =========================================================================


def path_to_uri(path: Path) -> str:
    return path.resolve().as_uri()


def uri_to_path(uri: str) -> Path:
    if uri.startswith("file://"):
        return Path(unquote(urlparse(uri).path))
    return Path(uri)


def _validate[M: BaseModel](model: type[M], data: Any, method: str) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ProtocolError.invalid_response(method, str(e.errors()[0]["msg"])) from e


def parse_locations(result: Any, method: str = "textDocument/definition") -> list[Location]:
    """Normalize ``null | Location | Location[] | LocationLink[]`` to a list of Location."""
    if result is None:
        return []
    items = result if isinstance(result, list) else [result]
    locations: list[Location] = []
    for item in items:
        if isinstance(item, dict) and "targetUri" in item:
            locations.append(_validate(LocationLink, item, method).to_location())
        else:
            locations.append(_validate(Location, item, method))
    return locations


def parse_document_symbols(result: Any) -> list[DocumentSymbol | SymbolInformation]:
    if not result:
        return []
    method = "textDocument/documentSymbol"
    return [
        _validate(SymbolInformation, item, method)
        if isinstance(item, dict) and "location" in item
        else _validate(DocumentSymbol, item, method)
        for item in result
    ]


def parse_call_hierarchy_items(result: Any) -> list[CallHierarchyItem]:
    method = "textDocument/prepareCallHierarchy"
    return [_validate(CallHierarchyItem, item, method) for item in result or []]


def parse_incoming_calls(result: Any) -> list[CallHierarchyIncomingCall]:
    method = "callHierarchy/incomingCalls"
    return [_validate(CallHierarchyIncomingCall, item, method) for item in result or []]


def parse_outgoing_calls(result: Any) -> list[CallHierarchyOutgoingCall]:
    method = "callHierarchy/outgoingCalls"
    return [_validate(CallHierarchyOutgoingCall, item, method) for item in result or []]


def parse_inlay_hints(result: Any) -> list[InlayHint]:
    method = "textDocument/inlayHint"
    return [_validate(InlayHint, item, method) for item in result or []]
