"""
Roster loading from the Supabase data store.

The store fetches every row of a collection over the PostgREST API. The
loader is the error boundary: a FetchError is logged and reported back as a
value, never raised to the caller.

Environment variables (read by app.auth and passed in):
- SUPABASE_URL: project URL
- SUPABASE_SERVICE_KEY / SUPABASE_ANON_KEY: API key used for the fetch
"""

import logging

import httpx

from core.records import Roster, build_roster

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """The data store was unreachable or answered with an error."""

    def __init__(self, message: str, collection: str = "", status_code: int | None = None):
        super().__init__(message)
        self.collection = collection
        self.status_code = status_code


class SupabaseRosterStore:
    def __init__(self, url: str, api_key: str, timeout: float = 10.0, transport=None):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def is_configured(self) -> bool:
        return bool(self.url and self.api_key)

    async def fetch_all(self, collection: str) -> list[dict]:
        """GET every row of `collection`. Raises FetchError on any failure."""
        if not self.is_configured():
            raise FetchError("Data store not configured", collection)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    f"{self.url}/rest/v1/{collection}",
                    params={"select": "*"},
                    headers={
                        "apikey": self.api_key,
                        "Authorization": f"Bearer {self.api_key}",
                        "Accept": "application/json",
                    },
                )
        except httpx.HTTPError as e:
            raise FetchError(f"Connection error: {e}", collection) from e

        if response.status_code != 200:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            msg = error_data.get("message") if isinstance(error_data, dict) else None
            raise FetchError(
                msg or f"Store returned HTTP {response.status_code}",
                collection,
                status_code=response.status_code,
            )

        try:
            rows = response.json()
        except ValueError as e:
            raise FetchError("Store returned invalid JSON", collection) from e
        if not isinstance(rows, list):
            raise FetchError("Store returned a non-list payload", collection)
        return rows


class RosterLoader:
    """One-shot roster fetch. No retry: one attempt per authorization."""

    def __init__(self, store, collection: str = "users"):
        self.store = store
        self.collection = collection

    async def load(self) -> tuple[Roster | None, FetchError | None]:
        try:
            rows = await self.store.fetch_all(self.collection)
        except FetchError as e:
            logger.error("Error fetching %s: %s", self.collection, e)
            return None, e
        roster = build_roster(rows)
        logger.info("Loaded %d %s", len(roster), self.collection)
        return roster, None
