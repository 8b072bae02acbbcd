"""
Authentication: the session collaborator for the host dashboard.

The session cookie holds the Supabase user under "auth". While an OAuth
login is being completed in the browser the cookie carries "auth_pending"
instead, and the session counts as still resolving.

Who may see /host is not decided here; see core.gate and HOST_EMAILS.

When SUPABASE_URL is not set, sign-in is disabled and every visitor is
anonymous.
"""

import os
from dataclasses import dataclass

import httpx

from core.gate import SessionSnapshot, SessionStatus

# Auth configuration from environment
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_ANON_KEY = os.getenv("SUPABASE_ANON_KEY", "")
# Optional: service key for reading the users table past row-level security
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY", "")
SESSION_SECRET = os.getenv("SESSION_SECRET", "dev-secret-change-in-production")
SITE_URL = os.getenv("SITE_URL", "http://localhost:5001")

ENABLED_OAUTH_PROVIDERS = {"google"}


def is_auth_enabled() -> bool:
    """Check if authentication is configured."""
    return bool(SUPABASE_URL and SUPABASE_ANON_KEY)


@dataclass
class User:
    id: str
    email: str

    @classmethod
    def from_session(cls, session_data: dict) -> "User | None":
        if not session_data:
            return None
        return cls(
            id=session_data.get("id", ""),
            email=session_data.get("email", ""),
        )


def get_current_user(session: dict) -> User | None:
    """Get the current user from session, or None if not logged in."""
    user_data = session.get("auth")
    return User.from_session(user_data) if user_data else None


def session_snapshot(session: dict, user: User | None) -> SessionSnapshot:
    """Describe the session for the gate: pending, or resolved with/without an email."""
    if session.get("auth_pending") and user is None:
        return SessionSnapshot(SessionStatus.PENDING)
    return SessionSnapshot(SessionStatus.RESOLVED, user.email if user else None)


def end_session(session: dict) -> None:
    """Sign out. The caller navigates away afterwards."""
    session.clear()


def get_oauth_url(provider: str) -> str | None:
    """Get OAuth redirect URL for social login."""
    if provider not in ENABLED_OAUTH_PROVIDERS:
        return None
    if not SUPABASE_URL:
        return None
    return f"{SUPABASE_URL}/auth/v1/authorize?provider={provider}&redirect_to={SITE_URL}/auth/callback"


async def get_user_from_token(access_token: str) -> tuple[dict | None, str | None]:
    """Get user info from Supabase using an access token."""
    if not SUPABASE_URL or not SUPABASE_ANON_KEY:
        return None, "Authentication not configured"

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{SUPABASE_URL}/auth/v1/user",
                headers={
                    "apikey": SUPABASE_ANON_KEY,
                    "Authorization": f"Bearer {access_token}",
                },
            )

            if response.status_code == 200:
                user_data = response.json()
                return {
                    "id": user_data.get("id"),
                    "email": user_data.get("email"),
                }, None
            else:
                error_data = response.json()
                msg = error_data.get("error_description") or "Failed to get user"
                return None, msg
    except (httpx.HTTPError, ValueError) as e:
        return None, f"Connection error: {e}"


async def login_with_supabase(email: str, password: str) -> tuple[dict | None, str | None]:
    """Authenticate user with Supabase via direct HTTP."""
    if not SUPABASE_URL or not SUPABASE_ANON_KEY:
        return None, "Authentication not configured"

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(
                f"{SUPABASE_URL}/auth/v1/token?grant_type=password",
                json={"email": email, "password": password},
                headers={
                    "apikey": SUPABASE_ANON_KEY,
                    "Content-Type": "application/json",
                },
            )

            if response.status_code == 200:
                data = response.json()
                user = data.get("user", {})
                return {
                    "id": user.get("id"),
                    "email": user.get("email"),
                }, None
            else:
                error_data = response.json()
                msg = error_data.get("error_description") or error_data.get("msg") or "Login failed"
                return None, msg
    except (httpx.HTTPError, ValueError) as e:
        return None, f"Connection error: {e}"
