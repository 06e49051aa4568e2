"""Agent Client Protocol server: JSON-RPC 2.0 over newline-delimited stdio."""

from .content import extract_user_text
from .server import ProtocolObserver, ProtocolServer, SessionRegistry, TransportError
from .wire import PROTOCOL_VERSION

__all__ = [
    "ProtocolServer",
    "ProtocolObserver",
    "SessionRegistry",
    "TransportError",
    "extract_user_text",
    "PROTOCOL_VERSION",
]
