"""Quarter tokens: computing, parsing and stepping ``YYYY-Qn`` strings.

Every persisted forest is partitioned by one of these tokens, so the
helpers here also derive the local-cache key for a quarter.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional

#: Prefix shared by every quarter-scoped local-cache key.
STORAGE_PREFIX = "research-queue-"

_QUARTER_RE = re.compile(r"^\d{4}-Q[1-4]$")


@dataclass(frozen=True)
class QuarterParts:
    """Result of :func:`parse_quarter`.

    A part that failed to parse is ``None`` rather than raising, so callers
    must check :attr:`is_valid` before doing arithmetic.
    """

    year: Optional[int]
    quarter: Optional[int]

    @property
    def is_valid(self) -> bool:
        return self.year is not None and self.quarter is not None and 1 <= self.quarter <= 4


def _to_int(text: Optional[str]) -> Optional[int]:
    if text is None:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def current_quarter(today: Optional[date] = None) -> str:
    """Return the quarter token containing *today* (defaults to now).

    Examples:
        >>> current_quarter(date(2024, 5, 17))
        '2024-Q2'
    """
    today = today or date.today()
    return f"{today.year}-Q{math.ceil(today.month / 3)}"


def parse_quarter(token: str) -> QuarterParts:
    """Split *token* on ``-Q`` into year and quarter number.

    Examples:
        >>> parse_quarter("2024-Q3")
        QuarterParts(year=2024, quarter=3)
        >>> parse_quarter("garbage").is_valid
        False
    """
    year_part, sep, quarter_part = token.partition("-Q")
    return QuarterParts(
        year=_to_int(year_part),
        quarter=_to_int(quarter_part) if sep else None,
    )


def is_quarter(token: object) -> bool:
    """Return True if *token* has the exact ``YYYY-Qn`` shape."""
    return isinstance(token, str) and bool(_QUARTER_RE.match(token))


def _parts_or_raise(token: str) -> QuarterParts:
    parts = parse_quarter(token)
    if not parts.is_valid:
        raise ValueError(f"Not a quarter token: {token!r}")
    return parts


def previous_quarter(token: str) -> str:
    """Step back one quarter, rolling Q1 over to Q4 of the previous year."""
    parts = _parts_or_raise(token)
    if parts.quarter == 1:
        return f"{parts.year - 1}-Q4"
    return f"{parts.year}-Q{parts.quarter - 1}"


def next_quarter(token: str) -> str:
    """Step forward one quarter, rolling Q4 over to Q1 of the next year."""
    parts = _parts_or_raise(token)
    if parts.quarter == 4:
        return f"{parts.year + 1}-Q1"
    return f"{parts.year}-Q{parts.quarter + 1}"


def storage_key(quarter: str) -> str:
    """Local-cache key holding the forest of *quarter*."""
    return f"{STORAGE_PREFIX}{quarter}"
