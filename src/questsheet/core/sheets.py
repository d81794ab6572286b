"""
QuestSheet Core - Google Sheets Store.

TabularStore backed by the Sheets API v4 values endpoints, called with an
async httpx client. Authentication uses a service account keyfile through
google-auth; token refresh is blocking, so it runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import quote

import httpx
from google.auth import exceptions as google_auth_exceptions
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from questsheet.core.store import StoreError, TabularStore, TransientStoreError

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Statuses worth retrying: rate limit and server-side trouble.
_TRANSIENT_STATUSES = {408, 429, 500, 502, 503, 504}


class ServiceAccountAuth:
    """Lazily loads the keyfile and hands out fresh bearer tokens."""

    def __init__(self, keyfile: str):
        self._keyfile = keyfile
        self._credentials: service_account.Credentials | None = None
        self._lock = asyncio.Lock()

    def _refresh_sync(self) -> str:
        if self._credentials is None:
            self._credentials = service_account.Credentials.from_service_account_file(
                self._keyfile, scopes=SHEETS_SCOPES
            )
        if not self._credentials.valid:
            self._credentials.refresh(GoogleAuthRequest())
        return self._credentials.token

    async def token(self) -> str:
        async with self._lock:
            if self._credentials is not None and self._credentials.valid:
                return self._credentials.token
            return await asyncio.to_thread(self._refresh_sync)


class GoogleSheetsStore(TabularStore):
    """One spreadsheet (workbook) addressed through A1 ranges."""

    def __init__(
        self,
        spreadsheet_id: str,
        auth: ServiceAccountAuth,
        base_url: str = "https://sheets.googleapis.com/v4",
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._spreadsheet_id = spreadsheet_id
        self._auth = auth
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    def _values_url(self, range_: str, suffix: str = "") -> str:
        return (
            f"{self._base_url}/spreadsheets/{self._spreadsheet_id}"
            f"/values/{quote(range_, safe='')}{suffix}"
        )

    async def _request(self, operation: str, range_: str, method: str, url: str, **kwargs) -> dict:
        try:
            token = await self._auth.token()
        except (OSError, ValueError) as exc:
            raise StoreError(operation, range_, f"credentials unavailable: {exc}") from exc
        except google_auth_exceptions.TransportError as exc:
            raise TransientStoreError(operation, range_, f"token refresh failed: {exc}") from exc
        except google_auth_exceptions.RefreshError as exc:
            raise StoreError(operation, range_, f"token refresh rejected: {exc}") from exc

        try:
            response = await self._client.request(
                method, url, headers={"Authorization": f"Bearer {token}"}, **kwargs
            )
        except httpx.TransportError as exc:
            raise TransientStoreError(operation, range_, f"{type(exc).__name__}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise StoreError(operation, range_, f"{type(exc).__name__}: {exc}") from exc

        if response.status_code in _TRANSIENT_STATUSES:
            raise TransientStoreError(operation, range_, f"HTTP {response.status_code}")
        if response.status_code >= 400:
            logger.error(f"Sheets {operation} {range_} -> {response.status_code}: {response.text[:200]}")
            raise StoreError(operation, range_, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError:
            return {}

    async def read_range(self, range_: str) -> list[list[str]]:
        data = await self._request("read_range", range_, "GET", self._values_url(range_))
        return [[str(value) for value in row] for row in data.get("values", [])]

    async def append_rows(self, range_: str, rows: list[list[str]]) -> None:
        await self._request(
            "append_rows",
            range_,
            "POST",
            self._values_url(range_, ":append"),
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"values": rows},
        )

    async def update_range(self, range_: str, values: list[list[str]]) -> None:
        await self._request(
            "update_range",
            range_,
            "PUT",
            self._values_url(range_),
            params={"valueInputOption": "USER_ENTERED"},
            json={"range": range_, "majorDimension": "ROWS", "values": values},
        )

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["GoogleSheetsStore", "ServiceAccountAuth", "SHEETS_SCOPES"]
