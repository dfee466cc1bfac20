"""
Chat wire protocol.

JSON text frames exchanged over the WebSocket. The keep-alive probe and its
acknowledgment are bare ``ping``/``pong`` frames and never reach these helpers.

Client -> Server:
    {"type": "identity", "identity": <str>}
    {"type": "text", "body": <str>}

Server -> Client:
    {"system": true, "message": <str>}
    {"type": "text", "sender": <str>, "body": <str>}
    {"type": "presence", "users": [<str>, ...]}
"""

from __future__ import annotations

import json
from typing import Any, Final

__all__ = [
    "MSG_TYPE_IDENTITY",
    "MSG_TYPE_TEXT",
    "MSG_TYPE_PRESENCE",
    "MSG_PING",
    "MSG_PONG",
    "ProtocolError",
    "decode_message",
    "encode_message",
    "identity_message",
    "text_message",
    "system_notice",
    "text_event",
    "presence_event",
]

MSG_TYPE_IDENTITY: Final[str] = "identity"
MSG_TYPE_TEXT: Final[str] = "text"
MSG_TYPE_PRESENCE: Final[str] = "presence"

# Keep-alive control frames. Bare text, no payload, never routed.
MSG_PING: Final[str] = "ping"
MSG_PONG: Final[str] = "pong"


class ProtocolError(ValueError):
    """Raised when a frame cannot be decoded as a structured message."""


def decode_message(raw: str | bytes) -> dict[str, Any]:
    """
    Decode a raw frame into a message object.

    Args:
        raw: Text (or UTF-8 bytes) received from the peer.

    Returns:
        The decoded JSON object.

    Raises:
        ProtocolError: If the frame is not valid JSON, nests too deeply to
            decode, or is not a JSON object.
    """
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError) as e:
        # ValueError covers JSONDecodeError and UnicodeDecodeError; RecursionError
        # comes from pathologically nested arrays or objects
        raise ProtocolError(str(e) or type(e).__name__) from e
    if not isinstance(data, dict):
        raise ProtocolError(f"expected an object, got {type(data).__name__}")
    return data


def encode_message(message: dict[str, Any]) -> str:
    """Encode a message object as a compact JSON text frame."""
    return json.dumps(message, separators=(",", ":"), ensure_ascii=False)


# =============================================================================
# Client -> Server
# =============================================================================


def identity_message(identity: str) -> dict[str, Any]:
    return {"type": MSG_TYPE_IDENTITY, "identity": identity}


def text_message(body: str) -> dict[str, Any]:
    return {"type": MSG_TYPE_TEXT, "body": body}


# =============================================================================
# Server -> Client
# =============================================================================


def system_notice(message: str) -> dict[str, Any]:
    """Welcome acknowledgments and error notices addressed to one client."""
    return {"system": True, "message": message}


def text_event(sender: str, body: str) -> dict[str, Any]:
    """Chat line fanned out to every open session."""
    return {"type": MSG_TYPE_TEXT, "sender": sender, "body": body}


def presence_event(users: list[str]) -> dict[str, Any]:
    """Full snapshot of registered display names."""
    return {"type": MSG_TYPE_PRESENCE, "users": list(users)}
