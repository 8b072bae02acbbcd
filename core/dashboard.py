"""
Per-viewer dashboard state.

A DashboardView owns the three pieces of mutable state behind /host:
the roster snapshot, the search query and the overlay selection. Everything
the page renders is read from here; everything the page changes goes
through set_query / activate / dismiss / pointer.

Ordering: session resolves -> (if authorized) roster loads -> filter runs
against the loaded roster. Before the load the roster is empty, which is a
valid input to the filter.

Limitation: the overlay keeps the Record captured when it was opened. A
later roster refresh does not re-resolve it against the new snapshot.
"""

import logging
from collections.abc import Callable, Collection

from core.gate import AccessGate, GateState, SessionSnapshot, denial_reason
from core.records import Record, Roster
from core.roster import FetchError, RosterLoader
from core.search import filter_roster
from core.selection import DetailOverlay, OverlayState, PointerOrigin

logger = logging.getLogger(__name__)


class DashboardView:
    def __init__(
        self,
        allow_list: Collection[str],
        store,
        navigate: Callable[[str], None],
        collection: str = "users",
        public_route: str = "/",
    ):
        self.gate = AccessGate(allow_list, navigate, public_route=public_route)
        self.loader = RosterLoader(store, collection)
        self.overlay = DetailOverlay()
        self.gate_state = GateState.PENDING
        self.snapshot: SessionSnapshot | None = None
        self.roster: Roster = ()
        self.query = ""
        self.load_error: FetchError | None = None
        self.mounted = True
        self._roster_version = 0
        self._load_generation = 0
        self._filtered_key: tuple[int, str] | None = None
        self._filtered: Roster = ()

    # -- session -------------------------------------------------------------

    async def refresh_session(self, snapshot: SessionSnapshot) -> GateState:
        """Re-run the gate; load the roster on each transition into AUTHORIZED."""
        previous = self.gate_state
        self.snapshot = snapshot
        self.gate_state = self.gate.evaluate(snapshot)
        if self.gate_state == GateState.AUTHORIZED and previous != GateState.AUTHORIZED:
            await self.load_roster()
        return self.gate_state

    @property
    def denial_reason(self) -> str | None:
        if self.snapshot is None:
            return None
        return denial_reason(self.snapshot, self.gate.allow_list)

    # -- roster --------------------------------------------------------------

    async def load_roster(self) -> bool:
        """
        Fetch the roster once. Returns True if a new roster was applied.

        Results that arrive after teardown(), or after a newer load started,
        are dropped.
        """
        self._load_generation += 1
        generation = self._load_generation

        roster, error = await self.loader.load()

        if not self.mounted or generation != self._load_generation:
            logger.info("Ignoring roster result for a torn-down or superseded view")
            return False
        if error is not None:
            self.load_error = error
            return False

        self.load_error = None
        self.roster = roster
        self._roster_version += 1
        return True

    def teardown(self) -> None:
        self.mounted = False
        self.overlay.dismiss()

    # -- query ---------------------------------------------------------------

    def set_query(self, query: str | None) -> None:
        self.query = query or ""

    @property
    def filtered_view(self) -> Roster:
        """Roster filtered by the current query, recomputed when either changes."""
        key = (self._roster_version, self.query)
        if key != self._filtered_key:
            self._filtered = filter_roster(self.roster, self.query)
            self._filtered_key = key
        return self._filtered

    # -- selection -----------------------------------------------------------

    @property
    def selection(self) -> Record | None:
        return self.overlay.selection

    @property
    def overlay_state(self) -> OverlayState:
        return self.overlay.state

    def find(self, email: str) -> Record | None:
        for record in self.roster:
            if record.email == email:
                return record
        return None

    def activate(self, record: Record) -> None:
        self.overlay.activate(record)

    def activate_email(self, email: str) -> Record | None:
        record = self.find(email)
        if record is not None:
            self.activate(record)
        return record

    def dismiss(self) -> None:
        self.overlay.dismiss()

    def pointer(self, origin: PointerOrigin | str) -> OverlayState:
        return self.overlay.pointer(origin)
