"""
Identity gate for the host dashboard.

Maps the current session to one of three render states:

- PENDING: session still resolving, render nothing
- DENIED: resolved, but no identity or an identity outside the allow-list
- AUTHORIZED: resolved with an allow-listed identity

DENIED has two visible outcomes. An absent identity is redirected to the
public route; a present but unlisted identity sees "Access Denied".
"""

from collections.abc import Callable, Collection
from dataclasses import dataclass
from enum import Enum


class SessionStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class GateState(str, Enum):
    PENDING = "pending"
    DENIED = "denied"
    AUTHORIZED = "authorized"


UNAUTHENTICATED = "unauthenticated"
FORBIDDEN = "forbidden"


@dataclass(frozen=True)
class SessionSnapshot:
    status: SessionStatus
    identity: str | None = None


def _normalize(identity: str | None) -> str:
    return identity.strip().lower() if isinstance(identity, str) else ""


def gate_state(
    status: SessionStatus,
    identity: str | None,
    allow_list: Collection[str],
) -> GateState:
    """Decide the render state. Total: every input maps to exactly one state."""
    if status != SessionStatus.RESOLVED:
        return GateState.PENDING
    normalized = _normalize(identity)
    if not normalized or normalized not in allow_list:
        return GateState.DENIED
    return GateState.AUTHORIZED


def denial_reason(snapshot: SessionSnapshot, allow_list: Collection[str]) -> str | None:
    """Which DENIED outcome applies, or None if the snapshot is not denied."""
    if gate_state(snapshot.status, snapshot.identity, allow_list) != GateState.DENIED:
        return None
    return FORBIDDEN if _normalize(snapshot.identity) else UNAUTHENTICATED


class AccessGate:
    """
    Stateful wrapper around gate_state that owns the redirect side effect.

    The redirect fires at most once per resolution event: evaluating the same
    resolved, identity-less session again does not enqueue another redirect.
    A new event starts when the session drops back to pending or the
    identity changes.
    """

    def __init__(
        self,
        allow_list: Collection[str],
        navigate: Callable[[str], None],
        public_route: str = "/",
    ):
        self.allow_list = allow_list
        self.public_route = public_route
        self._navigate = navigate
        self._event: SessionSnapshot | None = None
        self.redirect_issued = False

    def evaluate(self, snapshot: SessionSnapshot) -> GateState:
        if snapshot != self._event:
            self._event = snapshot
            self.redirect_issued = False

        state = gate_state(snapshot.status, snapshot.identity, self.allow_list)
        if denial_reason(snapshot, self.allow_list) == UNAUTHENTICATED and not self.redirect_issued:
            self.redirect_issued = True
            self._navigate(self.public_route)
        return state
