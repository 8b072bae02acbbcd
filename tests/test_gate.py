"""Tests for the identity gate: state decision, denial outcomes, redirect idempotence."""

import pytest

from core.config import make_allow_list
from core.gate import (
    FORBIDDEN,
    UNAUTHENTICATED,
    AccessGate,
    GateState,
    SessionSnapshot,
    SessionStatus,
    denial_reason,
    gate_state,
)

ALLOWED = make_allow_list(["host@example.com"])


class TestGateState:
    """gate_state is total: every (status, identity) maps to one state."""

    @pytest.mark.parametrize("status", [SessionStatus.PENDING, SessionStatus.RESOLVED, "pending", "resolved", None, "bogus"])
    @pytest.mark.parametrize("identity", [None, "", "   ", "host@example.com", "HOST@example.com ", "other@example.com", 42])
    def test_total(self, status, identity):
        result = gate_state(status, identity, ALLOWED)
        assert result in (GateState.PENDING, GateState.DENIED, GateState.AUTHORIZED)

    def test_pending_while_session_resolves(self):
        assert gate_state(SessionStatus.PENDING, "host@example.com", ALLOWED) == GateState.PENDING
        assert gate_state(SessionStatus.PENDING, None, ALLOWED) == GateState.PENDING

    def test_absent_identity_denied(self):
        assert gate_state(SessionStatus.RESOLVED, None, ALLOWED) == GateState.DENIED

    def test_unlisted_identity_denied(self):
        assert gate_state(SessionStatus.RESOLVED, "other@example.com", ALLOWED) == GateState.DENIED

    def test_listed_identity_authorized(self):
        assert gate_state(SessionStatus.RESOLVED, "host@example.com", ALLOWED) == GateState.AUTHORIZED

    def test_identity_compared_case_insensitively(self):
        assert gate_state(SessionStatus.RESOLVED, " Host@Example.com", ALLOWED) == GateState.AUTHORIZED

    def test_empty_allow_list_denies_everyone(self):
        assert gate_state(SessionStatus.RESOLVED, "host@example.com", frozenset()) == GateState.DENIED

    def test_allow_list_is_injected(self):
        other = make_allow_list(["other@example.com"])
        assert gate_state(SessionStatus.RESOLVED, "other@example.com", other) == GateState.AUTHORIZED
        assert gate_state(SessionStatus.RESOLVED, "host@example.com", other) == GateState.DENIED


class TestMakeAllowList:

    def test_normalizes_and_drops_blanks(self):
        result = make_allow_list([" A@x.com ", "", "  ", "b@x.com"])
        assert result == frozenset({"a@x.com", "b@x.com"})

    def test_is_immutable(self):
        assert isinstance(make_allow_list(["a@x.com"]), frozenset)


class TestDenialReason:
    """The two DENIED outcomes stay distinct."""

    def test_absent_identity_is_unauthenticated(self):
        snapshot = SessionSnapshot(SessionStatus.RESOLVED)
        assert denial_reason(snapshot, ALLOWED) == UNAUTHENTICATED

    def test_unlisted_identity_is_forbidden(self):
        snapshot = SessionSnapshot(SessionStatus.RESOLVED, "other@example.com")
        assert denial_reason(snapshot, ALLOWED) == FORBIDDEN

    def test_authorized_has_no_reason(self):
        snapshot = SessionSnapshot(SessionStatus.RESOLVED, "host@example.com")
        assert denial_reason(snapshot, ALLOWED) is None

    def test_pending_has_no_reason(self):
        assert denial_reason(SessionSnapshot(SessionStatus.PENDING), ALLOWED) is None


class TestAccessGateRedirect:
    """Redirect to the public route fires once per resolution event."""

    def _gate(self):
        redirects = []
        return AccessGate(ALLOWED, redirects.append, public_route="/"), redirects

    def test_unauthenticated_redirects_to_public_route(self):
        gate, redirects = self._gate()
        state = gate.evaluate(SessionSnapshot(SessionStatus.RESOLVED))
        assert state == GateState.DENIED
        assert redirects == ["/"]
        assert gate.redirect_issued

    def test_repeated_evaluation_redirects_once(self):
        gate, redirects = self._gate()
        snapshot = SessionSnapshot(SessionStatus.RESOLVED)
        for _ in range(5):
            assert gate.evaluate(snapshot) == GateState.DENIED
        assert redirects == ["/"]

    def test_forbidden_does_not_redirect(self):
        gate, redirects = self._gate()
        state = gate.evaluate(SessionSnapshot(SessionStatus.RESOLVED, "other@example.com"))
        assert state == GateState.DENIED
        assert redirects == []

    def test_pending_does_not_redirect(self):
        gate, redirects = self._gate()
        assert gate.evaluate(SessionSnapshot(SessionStatus.PENDING)) == GateState.PENDING
        assert redirects == []

    def test_new_resolution_event_may_redirect_again(self):
        gate, redirects = self._gate()
        gate.evaluate(SessionSnapshot(SessionStatus.RESOLVED))
        gate.evaluate(SessionSnapshot(SessionStatus.PENDING))
        gate.evaluate(SessionSnapshot(SessionStatus.RESOLVED))
        assert redirects == ["/", "/"]

    def test_authorized_does_not_redirect(self):
        gate, redirects = self._gate()
        state = gate.evaluate(SessionSnapshot(SessionStatus.RESOLVED, "host@example.com"))
        assert state == GateState.AUTHORIZED
        assert redirects == []
