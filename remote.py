"""
remote.py
HTTP client for the hosted backend's REST interface (PostgREST dialect).
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Mapping, Sequence

import httpx

from db import Embed, TableClient
from errors import DataError, NotFoundError

logger = logging.getLogger(__name__)


def _quote(value: str) -> str:
    """Double-quote a filter value so commas/parentheses survive the or=() syntax."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _escape_like(term: str) -> str:
    """Backslash-escape LIKE wildcards, plus the `*` PostgREST turns into `%`."""
    for ch in ("\\", "%", "_", "*"):
        term = term.replace(ch, f"\\{ch}")
    return term


def _jsonable(values: Mapping[str, Any]) -> dict:
    return {k: (float(v) if isinstance(v, Decimal) else v) for k, v in values.items()}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"Backend returned HTTP {response.status_code}"


def build_select(columns: Sequence[str] | None, embed: Embed | None) -> str:
    parts = [",".join(columns) if columns else "*"]
    for relation, (_fk, rel_cols) in (embed or {}).items():
        parts.append(f"{relation}({','.join(rel_cols)})")
    return ",".join(parts)


class RestTableClient(TableClient):
    """Client for external hosted tables (`<base_url>/rest/v1/<table>`)"""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(
            base_url=f"{self.base_url}/rest/v1",
            timeout=timeout,
            transport=transport,
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            },
        )

    def _request(self, method: str, table: str, **kwargs) -> Any:
        """
        Send one request and decode its JSON body.

        Raises:
            DataError: On transport failure, HTTP error status, or an undecodable body
        """
        try:
            response = self._client.request(method, f"/{table}", **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response)
            logger.warning("%s /%s failed: %s", method, table, message)
            raise DataError(message) from e
        except httpx.HTTPError as e:
            logger.warning("%s /%s failed: %s", method, table, e)
            raise DataError(f"Could not reach the backend: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise DataError(f"Invalid response from backend for {table}") from e

    def select(
        self,
        table: str,
        *,
        columns: Sequence[str] | None = None,
        eq: Mapping[str, Any] | None = None,
        ilike_any: tuple[Sequence[str], str] | None = None,
        order: str | None = None,
        descending: bool = False,
        embed: Embed | None = None,
    ) -> list[dict]:
        params: list[tuple[str, str]] = [("select", build_select(columns, embed))]
        for col, value in (eq or {}).items():
            params.append((col, "is.null" if value is None else f"eq.{value}"))
        if ilike_any:
            search_cols, term = ilike_any
            pattern = _quote(f"*{_escape_like(term)}*")
            params.append(("or", "(" + ",".join(f"{c}.ilike.{pattern}" for c in search_cols) + ")"))
        if order:
            params.append(("order", f"{order}.{'desc' if descending else 'asc'}"))

        data = self._request("GET", table, params=params)
        return list(data or [])

    def insert(self, table: str, values: Mapping[str, Any]) -> dict:
        data = self._request(
            "POST",
            table,
            json=[_jsonable(values)],
            headers={"Prefer": "return=representation"},
        )
        if not data:
            raise DataError(f"Insert into {table} returned no row")
        return data[0]

    def update(self, table: str, row_id: str, values: Mapping[str, Any]) -> dict:
        data = self._request(
            "PATCH",
            table,
            params={"id": f"eq.{row_id}"},
            json=_jsonable(values),
            headers={"Prefer": "return=representation"},
        )
        if not data:
            raise NotFoundError(f"No row in {table} with id {row_id}")
        return data[0]

    def delete(self, table: str, row_id: str) -> None:
        self._request("DELETE", table, params={"id": f"eq.{row_id}"})
