"""
Participant records as delivered by the data store.

A Record is one registered participant; a Roster is the ordered snapshot
of all of them fetched for one authorized session. Records are immutable so
a roster can only ever be replaced wholesale.
"""

import logging
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Record:
    email: str
    name: str | None = None
    phone: str | None = None
    lucky_number: int | float | str | None = None

    @classmethod
    def from_row(cls, row: dict) -> "Record":
        """Build a Record from a `users` row. Missing optional keys become None."""
        return cls(
            email=row.get("email") or "",
            name=row.get("name"),
            phone=row.get("phone"),
            lucky_number=row.get("lucky_number"),
        )


Roster = tuple[Record, ...]


def build_roster(rows: list[dict]) -> Roster:
    """
    Turn raw store rows into a Roster, preserving store order.

    Rows without an email are skipped, and for a repeated email only the
    first row is kept, so email stays unique within the snapshot.
    """
    seen: set[str] = set()
    records = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            logger.warning("Skipping roster row %d: not an object", index)
            continue
        record = Record.from_row(row)
        if not record.email:
            logger.warning("Skipping roster row %d: no email", index)
            continue
        if record.email in seen:
            logger.warning("Skipping duplicate roster row for %s", record.email)
            continue
        seen.add(record.email)
        records.append(record)
    return tuple(records)


def field_text(value: Any) -> str | None:
    """
    Text form of a record field, shared by search and display.

    None stays None. Whole-number floats drop the trailing ".0" so a lucky
    number stored as 7.0 reads (and matches) as "7". Booleans read as the
    JSON literals "true" and "false".
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
