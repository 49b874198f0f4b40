"""Supabase (PostgREST) client for the transcription table.

Talks to the PostgREST endpoint directly over httpx using the service
role key. "Not found" on a single-object select is reported by PostgREST
as HTTP 406 with error code PGRST116; every other failure is ambiguous
and raised as PersistenceError.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from call_processor.utils.errors import ConfigurationError, PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "call_records"
NOT_FOUND_CODE = "PGRST116"
SINGLE_OBJECT = "application/vnd.pgrst.object+json"


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _is_not_found(response: httpx.Response) -> bool:
    if response.status_code != 406:
        return False
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("code") == NOT_FOUND_CODE


class SupabaseStore:
    """Row-level operations on the transcription table via PostgREST.

    Reads configuration from environment variables:
        SUPABASE_URL, SUPABASE_SERVICE_ROLE_KEY, SUPABASE_TABLE
    """

    def __init__(
        self,
        url: str | None = None,
        service_key: str | None = None,
        table: str | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.url = (url or os.environ.get("SUPABASE_URL", "")).rstrip("/")
        self.service_key = service_key or os.environ.get(
            "SUPABASE_SERVICE_ROLE_KEY", ""
        )
        self.table = table or os.environ.get("SUPABASE_TABLE", DEFAULT_TABLE)

        if not self.url:
            raise ConfigurationError(
                "SUPABASE_URL is required", setting="SUPABASE_URL"
            )
        if not self.service_key:
            raise ConfigurationError(
                "SUPABASE_SERVICE_ROLE_KEY is required",
                setting="SUPABASE_SERVICE_ROLE_KEY",
            )

        self._client = http_client or httpx.AsyncClient(timeout=30.0)

    @property
    def table_url(self) -> str:
        return f"{self.url}/rest/v1/{self.table}"

    def _headers(self, **extra: str) -> dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            **extra,
        }

    async def close(self) -> None:
        """Close the shared HTTP client and release connection pool."""
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        operation: str,
        contact_id: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            return await self._client.request(method, self.table_url, **kwargs)
        except httpx.RequestError as exc:
            raise PersistenceError(
                f"Supabase {operation} failed: {exc}",
                contact_id=contact_id,
                operation=operation,
            ) from exc

    def _raise_for(
        self, response: httpx.Response, operation: str, contact_id: str | None
    ) -> None:
        raise PersistenceError(
            f"Supabase {operation} failed: HTTP {response.status_code} "
            f"{response.text}",
            contact_id=contact_id,
            operation=operation,
        )

    def _json(
        self, response: httpx.Response, operation: str, contact_id: str | None
    ) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise PersistenceError(
                f"Supabase {operation} returned a non-JSON body: "
                f"{response.text[:200]}",
                contact_id=contact_id,
                operation=operation,
            ) from exc

    async def _select_one(
        self, contact_id: str, columns: str, operation: str
    ) -> dict[str, Any] | None:
        response = await self._request(
            "GET",
            operation,
            contact_id,
            params={"select": columns, "contact_id": f"eq.{contact_id}"},
            headers=self._headers(Accept=SINGLE_OBJECT),
        )
        if response.status_code == 200:
            row = self._json(response, operation, contact_id)
            if not isinstance(row, dict):
                raise PersistenceError(
                    f"Supabase {operation} returned {type(row).__name__}, "
                    "expected an object",
                    contact_id=contact_id,
                    operation=operation,
                )
            return row
        if _is_not_found(response):
            return None
        self._raise_for(response, operation, contact_id)
        return None

    async def exists(self, contact_id: str) -> bool:
        """Return True if a row exists for contact_id.

        Raises:
            PersistenceError: On any response other than a row or the
                backend's explicit "not found".
        """
        return (
            await self._select_one(contact_id, "contact_id", "exists")
        ) is not None

    async def fetch(self, contact_id: str) -> dict[str, Any] | None:
        """Return the full row for contact_id, or None if absent."""
        return await self._select_one(contact_id, "*", "fetch")

    async def insert(self, row: dict[str, Any]) -> None:
        contact_id = row.get("contact_id")
        response = await self._request(
            "POST",
            "insert",
            contact_id,
            json=[row],
            headers=self._headers(Prefer="return=minimal"),
        )
        if not response.is_success:
            self._raise_for(response, "insert", contact_id)

    async def update(self, contact_id: str, row: dict[str, Any]) -> None:
        response = await self._request(
            "PATCH",
            "update",
            contact_id,
            params={"contact_id": f"eq.{contact_id}"},
            json=row,
            headers=self._headers(Prefer="return=minimal"),
        )
        if not response.is_success:
            self._raise_for(response, "update", contact_id)

    async def select_existing(self, contact_ids: list[str]) -> list[str]:
        """Return the subset of contact_ids that have rows, in one query."""
        if not contact_ids:
            return []
        id_list = ",".join(_quote(cid) for cid in contact_ids)
        response = await self._request(
            "GET",
            "select_existing",
            params={"select": "contact_id", "contact_id": f"in.({id_list})"},
            headers=self._headers(),
        )
        if not response.is_success:
            self._raise_for(response, "select_existing", None)
        rows = self._json(response, "select_existing", None)
        try:
            return [row["contact_id"] for row in rows]
        except (KeyError, TypeError) as exc:
            raise PersistenceError(
                f"Supabase select_existing returned malformed rows: {exc!r}",
                operation="select_existing",
            ) from exc
