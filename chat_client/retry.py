"""
Reconnect delay policy for the chat client.

By default a lost connection is retried after a fixed delay, forever.
Exponential backoff with jitter can be switched on to spread reconnect
attempts when many clients lose the same server at once.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Final, TYPE_CHECKING

if TYPE_CHECKING:
    from chat_shared.config.settings import Settings


# =============================================================================
# Constants
# =============================================================================


DEFAULT_RECONNECT_DELAY: Final[float] = 5.0

# Default jitter range: ±25% of calculated delay
DEFAULT_JITTER_FACTOR: Final[float] = 0.25

DEFAULT_BACKOFF_BASE: Final[float] = 2.0


# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True, slots=True)
class ReconnectPolicy:
    """
    Configuration for reconnect delays.

    Attributes:
        delay: Fixed delay, and the initial delay when backing off (default: 5.0).
        backoff: Grow the delay exponentially per failed attempt (default: False).
        max_delay: Cap for the backed-off delay in seconds (default: 60.0).
        backoff_base: Exponential backoff multiplier (default: 2.0).
        jitter_factor: Random jitter range as fraction (default: 0.25 = ±25%).
    """

    delay: float = DEFAULT_RECONNECT_DELAY
    backoff: bool = False
    max_delay: float = 60.0
    backoff_base: float = DEFAULT_BACKOFF_BASE
    jitter_factor: float = DEFAULT_JITTER_FACTOR

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.delay <= 0:
            raise ValueError("delay must be positive")
        if self.max_delay < self.delay:
            raise ValueError("max_delay must be >= delay")
        if self.backoff_base < 1:
            raise ValueError("backoff_base must be >= 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ReconnectPolicy":
        return cls(
            delay=settings.client_reconnect_delay,
            backoff=settings.client_reconnect_backoff,
            max_delay=settings.client_reconnect_max_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """
        Delay before reconnect attempt ``attempt`` (0-indexed, reset after
        every successful connection).
        """
        if not self.backoff:
            return self.delay
        return calculate_delay_with_jitter(attempt, self)


# =============================================================================
# Delay Functions
# =============================================================================


def calculate_delay_with_jitter(attempt: int, policy: ReconnectPolicy) -> float:
    """
    Backed-off delay for ``attempt``: ``delay * backoff_base ** attempt``,
    capped at ``max_delay``, then moved up or down by at most
    ``jitter_factor`` of itself.

    With delay=1, max_delay=30 attempt 0 waits 0.75 to 1.25 s and attempt
    5 onwards waits 22.5 to 37.5 s.
    """
    target = min(policy.delay * policy.backoff_base ** attempt, policy.max_delay)
    spread = target * policy.jitter_factor
    return max(0.0, target + random.uniform(-spread, spread))
