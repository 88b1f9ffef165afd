"""
togu.store.client — Async RemoteStore Client
=============================================

Thin async binding to the record store's REST API::

    GET    {store_url}/{base_id}/{table}?filterByFormula=..&sort[0][field]=..
    GET    {store_url}/{base_id}/{table}/{record_id}
    POST   {store_url}/{base_id}/{table}                {"fields": {...}}
    PATCH  {store_url}/{base_id}/{table}/{record_id}    {"fields": {...}}
    DELETE {store_url}/{base_id}/{table}/{record_id}

No business logic lives here.  Failures are mapped onto
:mod:`togu.errors`:

* transport errors, timeouts, HTTP 429 and 5xx → :class:`TransientNetworkError`
* any other non-2xx → :class:`StoreHTTPError`
* undecodable bodies → :class:`DecodingError`

Connection-level retries are delegated to the httpx transport; the
feed and milestone paths layer their own bounded retries on top
(see :mod:`togu.engine.retry`).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any
from urllib.parse import quote as url_quote

import httpx
from pydantic import ValidationError

from togu.errors import DecodingError, StoreHTTPError, TransientNetworkError
from togu.store.records import StorePage, StoreRecord

logger = logging.getLogger(__name__)

DEFAULT_STORE_URL = "https://api.airtable.com/v0"

# (field, direction) pairs, direction is "asc" or "desc"
Sort = Sequence[tuple[str, str]]


class RemoteStore:
    """Per-table list/get/create/update/delete over one base.

    Parameters
    ----------
    base_id:
        Identifier of the base (the first path segment after the API root).
    api_key:
        Static bearer credential.
    store_url:
        API root, without trailing slash.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional httpx transport (tests pass an ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_id: str,
        api_key: str,
        *,
        store_url: str = DEFAULT_STORE_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_id = base_id
        self._client = httpx.AsyncClient(
            base_url=f"{store_url.rstrip('/')}/{base_id}/",
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport or httpx.AsyncHTTPTransport(retries=1),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RemoteStore:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def list(
        self,
        table: str,
        *,
        formula: str | None = None,
        sort: Sort = (),
        page_size: int | None = None,
        offset: str | None = None,
        max_records: int | None = None,
    ) -> StorePage:
        """Fetch one page of *table*.  ``offset`` is passed back verbatim."""
        params: list[tuple[str, str]] = []
        if formula:
            params.append(("filterByFormula", formula))
        for i, (field_name, direction) in enumerate(sort):
            params.append((f"sort[{i}][field]", field_name))
            params.append((f"sort[{i}][direction]", direction))
        if page_size:
            params.append(("pageSize", str(page_size)))
        if offset:
            params.append(("offset", offset))
        if max_records:
            params.append(("maxRecords", str(max_records)))

        payload = await self._request("GET", _table_path(table), params=params)
        try:
            return StorePage.model_validate(payload)
        except ValidationError as exc:
            raise DecodingError(f"Unexpected list response from {table}") from exc

    async def list_all(
        self,
        table: str,
        *,
        formula: str | None = None,
        sort: Sort = (),
    ) -> list[StoreRecord]:
        """Follow cursors until the listing is exhausted."""
        records: list[StoreRecord] = []
        offset: str | None = None
        while True:
            page = await self.list(table, formula=formula, sort=sort, offset=offset)
            records.extend(page.records)
            if not page.offset:
                return records
            offset = page.offset

    async def get(self, table: str, record_id: str) -> StoreRecord:
        payload = await self._request("GET", _record_path(table, record_id))
        return _record(payload, table)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def create(self, table: str, fields: dict[str, Any]) -> StoreRecord:
        payload = await self._request("POST", _table_path(table), json={"fields": fields})
        return _record(payload, table)

    async def update(
        self, table: str, record_id: str, fields: dict[str, Any]
    ) -> StoreRecord:
        """Partial update (PATCH); fields not named are left untouched."""
        payload = await self._request(
            "PATCH", _record_path(table, record_id), json={"fields": fields}
        )
        return _record(payload, table)

    async def delete(self, table: str, record_id: str) -> None:
        await self._request("DELETE", _record_path(table, record_id))

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------
    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("Store %s %s failed: %s", method, path, exc)
            raise TransientNetworkError(f"{method} {path}: {exc}") from exc

        if resp.status_code == 429 or resp.status_code >= 500:
            raise TransientNetworkError(
                f"{method} {path} returned {resp.status_code}",
                status_code=resp.status_code,
            )
        if not resp.is_success:
            raise StoreHTTPError(resp.status_code, resp.text)

        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as exc:
            raise DecodingError(f"{method} {path}: response is not JSON") from exc


def _table_path(table: str) -> str:
    return url_quote(table, safe="")


def _record_path(table: str, record_id: str) -> str:
    return f"{_table_path(table)}/{url_quote(record_id, safe='')}"


def _record(payload: Any, table: str) -> StoreRecord:
    try:
        return StoreRecord.model_validate(payload)
    except ValidationError as exc:
        raise DecodingError(f"Unexpected record shape from {table}") from exc
