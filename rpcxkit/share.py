"""Names, keys and shared message types used by server and client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Path served by the HTTP gateway.
DEFAULT_RPC_PATH = "/_rpcx_"
# Metadata key holding the authentication token.
AUTH_KEY = "__AUTH"
# Metadata key carrying the server address to the client.
SERVER_ADDRESS = "__ServerAddress"
# Metadata key carrying the timeout the client wants the server to apply.
SERVER_TIMEOUT = "__ServerTimeout"

OPENTRACING_SPAN_SERVER_KEY = "opentracing_span_server_key"
OPENTRACING_SPAN_CLIENT_KEY = "opentracing_span_client_key"
OPENCENSUS_SPAN_SERVER_KEY = "opencensus_span_server_key"
OPENCENSUS_SPAN_CLIENT_KEY = "opencensus_span_client_key"
OPENCENSUS_SPAN_REQUEST_KEY = "opencensus_span_request_key"

SEND_FILE_SERVICE_NAME = "_filetransfer"
STREAM_SERVICE_NAME = "_streamservice"

# Write trace logs at debug level; meant for testing only.
TRACE = False

# Codecs by serialize type. A codec has ``encode(obj) -> bytes`` and
# ``decode(data, obj)``.
CODECS: dict[Any, Any] = {}


def register_codec(serialize_type: Any, codec: Any) -> None:
    """Register ``codec`` for ``serialize_type``, replacing any earlier one."""
    CODECS[serialize_type] = codec


@dataclass(frozen=True)
class ContextKey:
    """A context key that never collides with plain string keys."""

    name: str

    def __str__(self) -> str:
        return self.name


REQ_META_DATA_KEY = ContextKey("__req_metadata")
RES_META_DATA_KEY = ContextKey("__res_metadata")


@dataclass
class FileTransferArgs:
    """Upload request sent by a client."""

    file_name: str = ""
    file_size: int = 0
    meta: dict[str, str] = field(default_factory=dict)


@dataclass
class FileTransferReply:
    """Token and address a client uses to transfer a file."""

    token: bytes = b""
    addr: str = ""


@dataclass
class DownloadFileArgs:
    """Download request sent by a client."""

    file_name: str = ""
    meta: dict[str, str] = field(default_factory=dict)


@dataclass
class StreamServiceArgs:
    """Request for the stream service."""

    meta: dict[str, str] = field(default_factory=dict)


@dataclass
class StreamServiceReply:
    """Token and address a client uses to open a stream."""

    token: bytes = b""
    addr: str = ""