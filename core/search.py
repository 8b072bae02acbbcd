"""
Roster search: multi-field, case-insensitive substring filtering.

A record is kept when at least one of its lucky number, name, email or
phone contains the query. Results keep roster order. Absent fields simply
do not match.
"""

from core.records import Record, Roster, field_text

SEARCH_FIELDS = ("lucky_number", "name", "email", "phone")


def normalize_query(query: str | None) -> str:
    """Trim and lower-case a raw search string. None is treated as empty."""
    return query.strip().lower() if query else ""


def record_matches(record: Record, needle: str) -> bool:
    """True if any searchable field contains the (already normalized) needle."""
    for field in SEARCH_FIELDS:
        text = field_text(getattr(record, field, None))
        if text is not None and needle in text.lower():
            return True
    return False


def filter_roster(roster: Roster, query: str | None) -> Roster:
    """
    Filtered view of the roster for a query.

    Pure and stable: an empty or whitespace-only query returns the roster
    itself; otherwise matching records are returned in roster order.
    """
    needle = normalize_query(query)
    if not needle:
        return roster
    return tuple(record for record in roster if record_matches(record, needle))
