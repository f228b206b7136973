"""Language server side: framing, JSON-RPC correlation and session lifecycle."""

from callscope.lsp.client import DiscardedResponse, JsonRpcConnection
from callscope.lsp.framing import MessageReader, MessageWriter, PipeSource, StreamSource, encode_message
from callscope.lsp.servers import ServerSpec, is_server_available, resolve_server
from callscope.lsp.session import LspSession, SessionState
from callscope.lsp.types import Location, path_to_uri, uri_to_path

__all__ = [
    "DiscardedResponse",
    "JsonRpcConnection",
    "Location",
    "LspSession",
    "MessageReader",
    "MessageWriter",
    "PipeSource",
    "ServerSpec",
    "SessionState",
    "StreamSource",
    "encode_message",
    "is_server_available",
    "path_to_uri",
    "resolve_server",
    "uri_to_path",
]
