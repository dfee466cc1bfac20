"""
Making peer-supplied text safe to put in a log record.
"""

from __future__ import annotations

import re

# C0/C1 controls, zero-width and bidi marks, embeddings/overrides, isolates, BOM
_INVISIBLE = re.compile(
    "[\x00-\x1f\x7f-\x9f\u200b-\u200f\u202a-\u202e\u2066-\u2069\ufeff]"
)
_ESCAPES = str.maketrans({"\\": "\\\\", '"': '\\"'})


def sanitize_log_data(data: str, max_length: int = 100) -> str:
    """
    Shorten a display name or chat body for logging.

    Invisible and line-breaking characters are removed so one entry stays on
    one line and cannot spoof another; quotes and backslashes are escaped.
    Text longer than ``max_length`` is cut and marked with ``...``.
    """
    clipped = data[:max_length]
    cleaned = _INVISIBLE.sub("", clipped).translate(_ESCAPES)
    return cleaned + "..." if len(data) > max_length else cleaned
