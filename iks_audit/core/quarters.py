"""Quarter arithmetic for the quarterly audit cycle.

Quarter keys have the canonical form ``Q<n>-<year>`` (e.g. ``Q2-2025``).
Everything here is pure; only ``current_quarter_key`` reads the clock, and
only when no date is passed in.
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime
from typing import Final, NamedTuple

from iks_audit.core.exceptions import ValidationError

MONTHS_PER_QUARTER: Final[int] = 3
QUARTERS_PER_YEAR: Final[int] = 4

# Accepts "Q1-2023" and "Q1 2023"
_QUARTER_KEY_PATTERN = re.compile(r"^Q([1-4])[\s-](\d{4})$")


class Quarter(NamedTuple):
    """A calendar quarter."""

    quarter: int
    year: int

    @property
    def key(self) -> str:
        return format_quarter_key(self.quarter, self.year)


def quarter_of(value: date | datetime) -> Quarter:
    """Map a calendar date to its quarter."""
    return Quarter((value.month - 1) // MONTHS_PER_QUARTER + 1, value.year)


def previous_quarter(quarter: int, year: int) -> Quarter:
    """Return the quarter immediately before the given one.

    Q1 wraps to Q4 of the previous year.
    """
    if quarter <= 1:
        return Quarter(QUARTERS_PER_YEAR, year - 1)
    return Quarter(quarter - 1, year)


def format_quarter_key(quarter: int, year: int) -> str:
    """Format a quarter/year pair as ``Q<n>-<year>``."""
    return f"Q{quarter}-{year}"


def parse_quarter_key(key: str) -> Quarter:
    """Parse a quarter key.

    Raises:
        ValidationError: If the key is not of the form ``Q<n>-<year>``.
    """
    match = _QUARTER_KEY_PATTERN.match(key.strip()) if key else None
    if match is None:
        raise ValidationError(
            "quarter_key",
            f"Invalid quarter key '{key}', expected format Q<n>-<year>",
        )
    return Quarter(int(match.group(1)), int(match.group(2)))


def current_quarter_key(now: date | datetime | None = None) -> str:
    """Quarter key for ``now`` (defaults to the current UTC date)."""
    return quarter_of(now or datetime.now(UTC)).key


def previous_quarter_key(key: str) -> str:
    """Quarter key immediately preceding ``key``."""
    quarter = parse_quarter_key(key)
    return previous_quarter(quarter.quarter, quarter.year).key


def quarter_options(year: int) -> list[str]:
    """The four quarter keys of a year, in order."""
    return [format_quarter_key(q, year) for q in range(1, QUARTERS_PER_YEAR + 1)]
