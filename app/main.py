"""
Host Dashboard.

Gated roster view for event hosts: allow-listed operators sign in, search
the registered participants and open any one of them in a detail overlay.
All dashboard state (roster snapshot, query, selection) lives in a
DashboardView held per browser session; the routes only render it and
forward user input to it.

Response semantics:
- 303 = not signed in, sent to the public entry page
- 401 = dashboard partial requested without a session
- 403 = signed in, but not on the host allow-list
- 404 = selected participant is not in the roster snapshot
"""

import json
import secrets
import sys
from collections import OrderedDict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import quote

from fasthtml.common import *
from starlette.responses import HTMLResponse, JSONResponse

# Add project root to path for imports
project_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(project_root))

from core.config import (
    ALLOWED_EMAILS,
    DEBUG,
    FETCH_TIMEOUT,
    HOST,
    MAX_VIEWS,
    PORT,
    PUBLIC_ROUTE,
    USERS_COLLECTION,
)
from core.dashboard import DashboardView
from core.gate import FORBIDDEN, GateState
from core.roster import SupabaseRosterStore
from core.selection import OverlayState, detail_fields
from core.ui_safety import ensure_utf8_display
from app.auth import (
    SESSION_SECRET, SUPABASE_ANON_KEY, SUPABASE_SERVICE_KEY, SUPABASE_URL,
    end_session, get_current_user, get_oauth_url, get_user_from_token,
    is_auth_enabled, login_with_supabase, session_snapshot,
)

# --- INSTRUMENTATION IMPORT ---
from core.event_recorder import get_event_recorder


@asynccontextmanager
async def lifespan(app):
    """Log the start and end of a server run."""
    get_event_recorder().record("RUN_START", {
        "action": "server_start",
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }, actor="system")
    print(f"[startup] Host allow-list: {len(ALLOWED_EMAILS)} identities")
    yield
    get_event_recorder().record("RUN_END", {
        "action": "server_shutdown",
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
    }, actor="system")


def bad_json(request, exc):
    """Malformed JSON bodies fail while the request is parsed, before any route runs."""
    # Only the OAuth token exchange posts JSON; a broken exchange ends the pending login
    request.session.pop("auth_pending", None)
    return JSONResponse({"error": "Invalid request"}, status_code=400)


app, rt = fast_app(
    pico=False,
    secret_key=SESSION_SECRET,
    lifespan=lifespan,
    exception_handlers={json.JSONDecodeError: bad_json},
    hdrs=(
        Meta(name="viewport", content="width=device-width, initial-scale=1"),
        Script(src="https://cdn.tailwindcss.com"),
        # Hyperscript required for the overlay panel's click containment
        Script(src="https://unpkg.com/hyperscript.org@0.9.12"),
    ),
)

# Roster data store. Prefers the service key so row-level security on the
# users table does not hide rows from hosts.
roster_store = SupabaseRosterStore(
    SUPABASE_URL,
    SUPABASE_SERVICE_KEY or SUPABASE_ANON_KEY,
    timeout=FETCH_TIMEOUT,
)


# =============================================================================
# DASHBOARD VIEW REGISTRY
# =============================================================================

class Navigator:
    """Collects the redirect the gate asks for while handling one request."""

    def __init__(self):
        self.location: str | None = None

    def __call__(self, path: str) -> None:
        self.location = path

    def take(self) -> str | None:
        location, self.location = self.location, None
        return location


# view_id (stored in the session cookie) -> (view, navigator), least recently
# used first
_views: OrderedDict[str, tuple[DashboardView, Navigator]] = OrderedDict()


def _new_view() -> tuple[DashboardView, Navigator]:
    navigator = Navigator()
    view = DashboardView(
        ALLOWED_EMAILS,
        roster_store,
        navigator,
        collection=USERS_COLLECTION,
        public_route=PUBLIC_ROUTE,
    )
    return view, navigator


def _view_for(sess, user) -> tuple[DashboardView, Navigator]:
    """
    The dashboard view for this browser session.

    Signed-in (or signing-in) sessions keep their view between requests.
    Anonymous requests get a throwaway view, so each one is its own
    resolution event. A session that stops being signed in (a failed OAuth
    exchange, an expired login) loses its kept view.
    """
    if user is None and not sess.get("auth_pending"):
        _drop_view(sess)
        return _new_view()

    view_id = sess.get("view_id")
    if view_id and view_id in _views:
        _views.move_to_end(view_id)
        return _views[view_id]

    entry = _new_view()
    view_id = secrets.token_hex(16)
    sess["view_id"] = view_id
    _views[view_id] = entry
    while len(_views) > MAX_VIEWS:
        _, (evicted, _) = _views.popitem(last=False)
        evicted.teardown()
    return entry


def _drop_view(sess) -> None:
    view_id = sess.pop("view_id", None)
    entry = _views.pop(view_id, None) if view_id else None
    if entry:
        entry[0].teardown()


async def _resolve(sess) -> tuple[DashboardView, Navigator, GateState]:
    """Run the gate for this session, loading the roster when newly authorized."""
    user = get_current_user(sess)
    view, navigator = _view_for(sess, user)
    previous = view.gate_state
    state = await view.refresh_session(session_snapshot(sess, user))

    if state == GateState.AUTHORIZED and previous != GateState.AUTHORIZED:
        if view.load_error is not None:
            get_event_recorder().record("ROSTER_LOAD_FAILED", {
                "collection": USERS_COLLECTION,
                "error": str(view.load_error),
            }, actor=user.email)
        else:
            get_event_recorder().record("ROSTER_LOADED", {
                "collection": USERS_COLLECTION,
                "count": len(view.roster),
            }, actor=user.email)
    return view, navigator, state


async def _authorized_view(sess) -> tuple[DashboardView | None, Response | None]:
    """Return the view for a dashboard partial, or a 401/403 Response."""
    view, navigator, state = await _resolve(sess)
    navigator.take()
    if state == GateState.AUTHORIZED:
        return view, None
    if view.denial_reason == FORBIDDEN:
        return None, Response("Forbidden", status_code=403)
    return None, Response("", status_code=401)


def _redirect(request, path: str) -> Response:
    """303 for page loads; HX-Redirect for HTMX requests so the whole page moves."""
    if request.headers.get("HX-Request"):
        return Response("", headers={"HX-Redirect": path})
    return RedirectResponse(path, status_code=303)


# =============================================================================
# COMPONENTS
# =============================================================================

def roster_card(record) -> Div:
    """Clickable grid box showing a participant's lucky number."""
    return Div(
        H1("Lucky Number", cls="text-sm text-center font-bold"),
        H3(ensure_utf8_display(record.lucky_number), cls="text-4xl font-black text-center"),
        cls="bg-[#131824] text-white rounded-lg shadow-lg p-3 cursor-pointer hover:bg-gray-200 hover:text-black transition-all duration-200",
        hx_get=f"/host/select?email={quote(record.email)}",
        hx_target="#detail-overlay",
        hx_swap="outerHTML",
        data_email=record.email,
    )


def roster_grid(view: DashboardView) -> Div:
    """Grid of the filtered roster, or the empty-state message."""
    records = view.filtered_view
    if records:
        content = [roster_card(r) for r in records]
    else:
        content = [Div(
            P("No users found matching your search.", cls="text-gray-400"),
            P("Could not load users.", cls="text-red-400 text-sm mt-2") if view.load_error else None,
            cls="col-span-full text-center py-10",
        )]
    return Div(
        *content,
        id="roster-grid",
        cls="grid grid-cols-1 sm:grid-cols-2 lg:grid-cols-4 gap-6",
    )


def roster_count(view: DashboardView, oob: bool = False) -> P:
    attrs = {"hx_swap_oob": "true"} if oob else {}
    return P(
        f"Showing {len(view.filtered_view)} of {len(view.roster)} users",
        id="roster-count",
        cls="text-sm text-gray-500",
        **attrs,
    )


def search_box(query: str) -> Div:
    return Div(
        Input(
            type="search",
            name="q",
            value=query,
            placeholder="Search...",
            autocomplete="off",
            cls="bg-[#404d68] text-white w-48 px-2 py-1 rounded-lg border-0 focus:outline-none focus:ring-0 text-sm",
            hx_get="/host/results",
            hx_trigger="input changed, search",
            hx_target="#roster-grid",
            hx_swap="outerHTML",
        ),
        cls="absolute top-16 right-6 mt-4",
    )


def detail_overlay(view: DashboardView) -> Div:
    """
    Detail overlay for the selected participant.

    The backdrop (the overlay container itself) posts a backdrop dismiss on
    click. The panel halts click bubbling so clicks inside it never reach
    the backdrop; the close button posts its own dismiss.
    """
    record = view.selection
    if view.overlay_state == OverlayState.CLOSED or record is None:
        return Div(id="detail-overlay")

    rows = [
        P(Strong(f"{label}:"), " ", ensure_utf8_display(value))
        for label, value in detail_fields(record)
    ]
    return Div(
        Div(
            Button(
                NotStr("&times;"),
                cls="absolute top-0.5 right-2 text-black font-normal text-2xl",
                type="button",
                aria_label="Close",
                hx_post="/host/dismiss",
                hx_vals='{"origin": "close"}',
                hx_target="#detail-overlay",
                hx_swap="outerHTML",
            ),
            H2("User Details", cls="text-2xl font-semibold mb-4"),
            *rows,
            cls="bg-white text-black rounded-lg p-6 w-96 max-w-full relative",
            data_testid="detail-panel",
            **{"_": "on click halt the event's bubbling"},
        ),
        id="detail-overlay",
        cls="fixed inset-0 bg-black/80 flex justify-center items-center",
        hx_post="/host/dismiss",
        hx_vals='{"origin": "backdrop"}',
        hx_trigger="click",
        hx_target="#detail-overlay",
        hx_swap="outerHTML",
    )


def host_page(view: DashboardView):
    return (
        Title("Host Dashboard"),
        Div(
            # Header with title and logout
            Div(
                H1("Host Dashboard", cls="text-4xl font-black"),
                A("Logout", href="/logout",
                  cls="text-red-600 font-semibold hover:text-red-500 transition-all duration-200"),
                cls="flex justify-between items-start mb-16",
            ),
            search_box(view.query),
            roster_grid(view),
            Div(roster_count(view), cls="fixed bottom-0 left-0 right-0 py-3 bg-black text-center"),
            detail_overlay(view),
            id="host-root",
            cls="min-h-screen bg-black text-white p-6 relative pb-16",
        ),
    )


def pending_root() -> Div:
    """Nothing to show yet; re-check once the session has resolved."""
    return Div(
        id="host-root",
        hx_get="/host",
        hx_trigger="load delay:1s",
        hx_swap="outerHTML",
    )


def access_denied_page() -> HTMLResponse:
    page = Html(
        Head(
            Meta(name="viewport", content="width=device-width, initial-scale=1"),
            Title("Access Denied - Host Dashboard"),
            Script(src="https://cdn.tailwindcss.com"),
        ),
        Body(
            Div(
                P("Access Denied", cls="animate-pulse"),
                A("Sign out", href="/logout", cls="text-sm text-gray-500 hover:underline mt-4"),
                cls="min-h-screen flex flex-col justify-center items-center bg-black text-white",
            ),
        ),
    )
    return HTMLResponse(to_xml(page), status_code=403)


def login_page(error: str | None = None, email: str = "") -> Html:
    google_url = get_oauth_url("google")
    return Html(
        Head(
            Meta(name="viewport", content="width=device-width, initial-scale=1"),
            Title("Login - Host Dashboard"),
            Script(src="https://cdn.tailwindcss.com"),
        ),
        Body(
            Div(
                H1("Host Dashboard", cls="text-2xl font-bold mb-2"),
                P(error, cls="text-red-400 mb-4 text-sm") if error else P("Hosts only", cls="text-gray-400 mb-8"),
                Form(
                    Div(
                        Label("Email", fr="email", cls="block text-sm mb-1"),
                        Input(type="email", name="email", id="email", value=email, required=True,
                              cls="w-full p-2 rounded bg-gray-700 text-white border border-gray-600"),
                        cls="mb-4"
                    ),
                    Div(
                        Label("Password", fr="password", cls="block text-sm mb-1"),
                        Input(type="password", name="password", id="password", required=True,
                              cls="w-full p-2 rounded bg-gray-700 text-white border border-gray-600"),
                        cls="mb-4"
                    ),
                    Button("Sign In", type="submit",
                           cls="w-full p-2 bg-blue-600 hover:bg-blue-700 rounded text-white font-medium"),
                    method="post", action="/login", cls="space-y-2"
                ),
                Div(
                    Div(cls="flex-grow border-t border-gray-600"),
                    Span("or", cls="px-4 text-gray-500 text-sm"),
                    Div(cls="flex-grow border-t border-gray-600"),
                    cls="flex items-center my-6"
                ) if google_url else None,
                A(
                    Span("Sign in with Google"),
                    href=google_url or "#",
                    cls="flex items-center justify-center w-full h-10 bg-white text-gray-800 rounded font-medium",
                ) if google_url else None,
                cls="max-w-md mx-auto mt-10 sm:mt-20 p-4 sm:p-8 bg-gray-800 rounded-lg"
            ),
            cls="min-h-screen bg-gray-900 text-white"
        ),
    )


# =============================================================================
# ROUTES - PUBLIC
# =============================================================================

@rt("/health")
def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "auth_enabled": is_auth_enabled(),
        "store_configured": roster_store.is_configured(),
    }


@rt("/")
def get(sess):
    """Public entry page."""
    user = get_current_user(sess)
    return (
        Title("Host Dashboard"),
        Div(
            Div(
                H1("Host Dashboard", cls="text-4xl font-black mb-4"),
                P(f"Signed in as {user.email}" if user else "Event hosts sign in to see registrations.",
                  cls="text-gray-400 mb-8"),
                A("Open dashboard", href="/host",
                  cls="px-4 py-2 bg-blue-600 hover:bg-blue-700 rounded text-white font-medium") if user else
                A("Sign In", href="/login",
                  cls="px-4 py-2 bg-blue-600 hover:bg-blue-700 rounded text-white font-medium"),
                cls="text-center",
            ),
            cls="min-h-screen flex justify-center items-center bg-black text-white",
        ),
    )


# =============================================================================
# ROUTES - HOST DASHBOARD
# =============================================================================

@rt("/host")
async def get(request, sess):
    """The gated dashboard page."""
    view, navigator, state = await _resolve(sess)

    location = navigator.take()
    if location:
        return _redirect(request, location)

    if state == GateState.PENDING:
        return pending_root()

    if state == GateState.DENIED:
        if view.denial_reason == FORBIDDEN:
            get_event_recorder().record("ACCESS_DENIED", {
                "path": "/host",
            }, actor=view.snapshot.identity)
            return access_denied_page()
        # Unauthenticated, redirect already issued for this session state
        return Div(id="host-root")

    return host_page(view)


@rt("/host/results")
async def get(q: str = "", sess=None):
    """Re-filter the roster for a new query. Returns the grid plus the count (OOB)."""
    view, block = await _authorized_view(sess)
    if block:
        return block
    view.set_query(q)
    return roster_grid(view), roster_count(view, oob=True)


@rt("/host/select")
async def get(email: str = "", sess=None):
    """Open the detail overlay for one participant."""
    view, block = await _authorized_view(sess)
    if block:
        return block
    if view.activate_email(email) is None:
        return Response("Participant not found", status_code=404)
    return detail_overlay(view)


@rt("/host/dismiss")
async def post(origin: str = "", sess=None):
    """Route a click on the overlay (close button, backdrop or panel)."""
    view, block = await _authorized_view(sess)
    if block:
        return block
    view.pointer(origin)
    return detail_overlay(view)


# =============================================================================
# ROUTES - AUTHENTICATION
# =============================================================================

@rt("/login")
def get(sess):
    """Login page. Redirects when already authenticated or auth disabled."""
    if not is_auth_enabled():
        return RedirectResponse('/', status_code=303)
    if sess.get('auth'):
        return RedirectResponse('/host', status_code=303)
    return login_page()


@rt("/login")
async def post(email: str, password: str, sess):
    """Handle login form submission."""
    user, error = await login_with_supabase(email, password)
    if error:
        return login_page(error=error, email=email)
    sess.pop('auth_pending', None)
    sess['auth'] = user
    return RedirectResponse('/host', status_code=303)


@rt("/auth/callback")
def get(sess):
    """Handle OAuth callback from social providers. Tokens are in URL fragment."""
    sess['auth_pending'] = True
    return Html(
        Head(
            Meta(name="viewport", content="width=device-width, initial-scale=1"),
            Title("Logging in..."),
            Script(src="https://cdn.tailwindcss.com"),
            Script("""
                document.addEventListener('DOMContentLoaded', function() {
                    const hash = window.location.hash.substring(1);
                    const params = new URLSearchParams(hash);
                    const accessToken = params.get('access_token');

                    fetch('/auth/session', {
                        method: 'POST',
                        headers: {'Content-Type': 'application/json'},
                        body: JSON.stringify({access_token: accessToken})
                    }).then(r => r.json()).then(data => {
                        window.location.href = data.success ? '/host' : '/login?error=oauth_failed';
                    }).catch(() => {
                        window.location.href = '/login?error=oauth_failed';
                    });
                });
            """),
        ),
        Body(
            Div(
                P("Completing login...", cls="text-gray-400"),
                cls="flex items-center justify-center min-h-screen bg-gray-900"
            ),
        ),
    )


@rt("/auth/session")
async def post(request, sess):
    """Create session from OAuth access token."""
    sess.pop('auth_pending', None)

    # Malformed JSON is answered by bad_json
    data = await request.json()
    access_token = data.get("access_token") if isinstance(data, dict) else None
    if not access_token:
        return JSONResponse({"error": "No token"}, status_code=400)

    user, error = await get_user_from_token(access_token)
    if user:
        sess['auth'] = user
        return JSONResponse({"success": True})
    else:
        return JSONResponse({"error": error or "Failed to get user"}, status_code=401)


@rt("/logout")
def get(sess):
    """End the session, tear down the dashboard view, go back to the entry page."""
    user = get_current_user(sess)
    _drop_view(sess)
    if user:
        get_event_recorder().record("SIGN_OUT", {"path": "/logout"}, actor=user.email)
    end_session(sess)
    return RedirectResponse('/', status_code=303)


if __name__ == "__main__":
    # Startup diagnostics
    print("=" * 60)
    print("HOST DASHBOARD STARTUP")
    print("=" * 60)
    print(f"[config] Host: {HOST}")
    print(f"[config] Port: {PORT}")
    print(f"[config] Debug: {DEBUG}")
    print(f"[config] Auth enabled: {is_auth_enabled()}")
    print(f"[config] Roster store configured: {roster_store.is_configured()}")
    print(f"[config] Users collection: {USERS_COLLECTION}")
    if not ALLOWED_EMAILS:
        print("[config] WARNING: HOST_EMAILS is empty, nobody can open /host")
    print("=" * 60)
    print(f"Server starting at http://{HOST}:{PORT}")
    print("=" * 60)

    serve(host=HOST, port=PORT, reload=DEBUG)
