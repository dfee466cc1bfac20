"""
Chat client.

- controller - Reconnection controller owning the single connection slot
- retry      - Reconnect delay policy
- console    - Interactive Rich console
"""

from chat_client.controller import ClientState, ReconnectionController
from chat_client.retry import ReconnectPolicy

__all__ = [
    "ClientState",
    "ReconnectPolicy",
    "ReconnectionController",
]
