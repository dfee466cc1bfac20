"""
Gateway exception types.
"""

from __future__ import annotations


class ChatGatewayError(Exception):
    """Base class for gateway errors."""


class SessionError(ChatGatewayError):
    """Illegal session state transition (e.g. assigning a second identity)."""
