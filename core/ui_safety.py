"""
UI Boundary Safety Module.

Turns record fields into strings that are safe to hand to the HTML
renderer. Store rows can carry numbers, None, or text with lone surrogates
(bad upstream encodings); none of these may break a page.

DESIGN PRINCIPLE:
- Apply ONLY at presentation boundaries (grid cards, detail overlay)
- Search and the roster itself work on the raw values
"""

from typing import Any

from core.records import field_text


def ensure_utf8_display(value: Any) -> str:
    """
    Returns a UTF-8 safe string for UI rendering.

    Behavior:
    - None -> empty string
    - numbers -> their display text (7.0 -> "7")
    - Valid UTF-8 -> unchanged
    - Surrogate escapes -> replaced with "?"
    """
    text = field_text(value)
    if text is None:
        return ""

    try:
        text.encode("utf-8")
        return text
    except UnicodeEncodeError:
        return text.encode("utf-8", errors="replace").decode("utf-8")
