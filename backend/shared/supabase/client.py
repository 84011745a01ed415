"""HTTP client lifecycle for the hosted session store (Supabase PostgREST)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from shared.supabase.settings import SupabaseSettings

logger = structlog.get_logger()


class SupabaseClient:
    """Owns the single shared ``httpx.AsyncClient`` used for all store calls.

    The client is safe for concurrent requests, so every handler and background
    task shares one instance for the lifetime of the application.
    """

    def __init__(self, settings: SupabaseSettings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    @property
    def table(self) -> str:
        return self._settings.table

    @property
    def http(self) -> httpx.AsyncClient:
        """Return the open HTTP client or raise if disconnected."""
        if self._http is None:
            raise RuntimeError("Supabase client is not connected")
        return self._http

    def connect(self) -> None:
        """Create the HTTP client with auth headers and the configured timeout."""
        if self._http is not None:
            return
        key = self._settings.anon_key
        self._http = httpx.AsyncClient(
            base_url=self._settings.rest_url,
            headers={
                "apikey": key,
                "Authorization": f"Bearer {key}",
                "Accept": "application/json",
            },
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
        )
        logger.info("session store client ready", url=self._settings.url, table=self.table)

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
