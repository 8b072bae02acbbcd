"""
Detail overlay state machine.

States: CLOSED and OPEN(record). Activation opens (or replaces) the shown
record; the close control and the backdrop dismiss it. Clicks inside the
panel never dismiss.
"""

from enum import Enum

from core.records import Record, field_text


class OverlayState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


class PointerOrigin(str, Enum):
    CLOSE_CONTROL = "close"
    BACKDROP = "backdrop"
    PANEL = "panel"


class DetailOverlay:
    def __init__(self):
        self._record: Record | None = None

    @property
    def state(self) -> OverlayState:
        return OverlayState.OPEN if self._record is not None else OverlayState.CLOSED

    @property
    def selection(self) -> Record | None:
        return self._record

    def activate(self, record: Record) -> None:
        self._record = record

    def dismiss(self) -> None:
        self._record = None

    def pointer(self, origin: PointerOrigin | str) -> OverlayState:
        """Route a click on the overlay. Panel clicks stop at the panel."""
        try:
            origin = PointerOrigin(origin)
        except ValueError:
            return self.state
        if origin != PointerOrigin.PANEL:
            self.dismiss()
        return self.state


def detail_fields(record: Record) -> list[tuple[str, str]]:
    """Label/value rows for the overlay; missing values render empty."""
    rows = [
        ("Name", record.name),
        ("Email", record.email),
        ("Phone", record.phone),
        ("Lucky Number", record.lucky_number),
    ]
    return [(label, field_text(value) or "") for label, value in rows]
