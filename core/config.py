"""
Configuration for the host dashboard.

Contains:
- Server configuration (environment-based)
- Access allow-list (who may open /host)
- Roster data-store settings
- Dashboard view registry size

Everything is read from environment variables with sensible defaults.
The allow-list is built once at import time and never mutated; tests and
deployments swap it by injecting a different set into the gate.
"""

import os
from collections.abc import Iterable

# =============================================================================
# Server Configuration (from environment variables)
# =============================================================================

# Network binding
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "5001"))

# Debug mode (enables hot reload, verbose logging)
DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# Audit trail location (events.jsonl lives here)
EVENT_LOG_DIR = os.getenv("EVENT_LOG_DIR", "logs")


# =============================================================================
# Access Control
# =============================================================================

def make_allow_list(values: Iterable[str]) -> frozenset[str]:
    """Normalize identities into an immutable allow-list.

    Entries are stripped and lower-cased; blanks are dropped.
    """
    return frozenset(v.strip().lower() for v in values if v and v.strip())


# Host emails: comma-separated, e.g. "ops@example.com,lead@example.com".
# Empty means nobody is allowed in.
ALLOWED_EMAILS = make_allow_list(os.getenv("HOST_EMAILS", "").split(","))

# Where unauthenticated visitors are sent
PUBLIC_ROUTE = "/"


# =============================================================================
# Roster Data Store
# =============================================================================

USERS_COLLECTION = os.getenv("USERS_COLLECTION", "users")

# Seconds before a roster fetch is abandoned
FETCH_TIMEOUT = float(os.getenv("FETCH_TIMEOUT", "10.0"))


# =============================================================================
# Dashboard Views
# =============================================================================

# Views kept in memory at once; the least recently used is dropped beyond this
MAX_VIEWS = int(os.getenv("MAX_VIEWS", "500"))
