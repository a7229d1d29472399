"""Remote data source contract and an HTTP reference implementation.

A source is any async callable taking a Query and returning a FetchResult
(or a mapping that validates as one). The grid never interprets filter
values; it forwards them and lets the source decide.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol

import httpx

from pydantic import ValidationError

from .exceptions import FetchError
from .log import debug, redact_sensitive_data
from .models import FetchResult, Query


class RecordSource(Protocol):
    """Async callable that serves one page of records for a query."""

    async def __call__(self, query: Query) -> FetchResult | Mapping[str, Any]:
        """Fetch the page described by ``query``."""
        ...


TokenProvider = Callable[[], "str | None | Awaitable[str | None]"]


def coerce_result(result: FetchResult | Mapping[str, Any]) -> FetchResult:
    """Validate a source's return value as a FetchResult.

    Raises
    ------
    FetchError
        If the value is neither a FetchResult nor a valid mapping.
    """
    if isinstance(result, FetchResult):
        return result
    if not isinstance(result, Mapping):
        raise FetchError(
            f"Record source returned {type(result).__name__}, expected a mapping"
        )
    try:
        return FetchResult.model_validate(result)
    except (ValidationError, TypeError) as exc:
        raise FetchError("Record source returned an invalid page") from exc


def query_params(query: Query) -> dict[str, str | int]:
    """Encode a query as the users endpoint expects it.

    ``page`` is 1-based. Sorting and filters are comma-joined
    ``id:direction`` and ``id:value`` pairs; empty slices are omitted.

    Example:
        {"page": 2, "limit": 10, "sort": "name:asc,age:desc", "filter": "role:admin"}
    """
    params: dict[str, str | int] = {
        "page": query.pagination.page_index + 1,
        "limit": query.pagination.page_size,
    }
    if query.sorting:
        params["sort"] = ",".join(
            f"{s.column_id}:{'desc' if s.descending else 'asc'}" for s in query.sorting
        )
    if query.column_filters:
        params["filter"] = ",".join(f"{f.column_id}:{f.value}" for f in query.column_filters)
    if query.global_filter:
        params["globalFilter"] = query.global_filter
    return params


def parse_response(payload: Any) -> FetchResult:
    """Convert a ``{"data": [...], "meta": {"last_page", "total"}}`` body."""
    if not isinstance(payload, Mapping):
        raise FetchError("Response body is not a JSON object")
    meta = payload.get("meta") or {}
    return coerce_result(
        {
            "data": payload.get("data") or [],
            "page_count": meta.get("last_page", 0),
            "total_row_count": meta.get("total", 0),
        }
    )


class HttpRecordSource:
    """Fetch pages from a paginated JSON endpoint with httpx.

    Parameters
    ----------
    url : str
        Endpoint URL.
    token_provider : callable, optional
        Returns the bearer credential (sync or async). No Authorization
        header is sent when it is None or returns None.
    client : httpx.AsyncClient, optional
        Client to use. One is created (and owned) when omitted.
    timeout : float
        Request timeout in seconds for an owned client.

    Examples
    --------
    >>> source = HttpRecordSource("https://api.example.com/users", lambda: token)
    >>> grid = GridController(columns, source, table_id="users")
    """

    def __init__(
        self,
        url: str,
        token_provider: TokenProvider | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.url = url
        self._token_provider = token_provider
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token_provider is None:
            return headers
        token = self._token_provider()
        if isinstance(token, Awaitable):
            token = await token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def __call__(self, query: Query) -> FetchResult:
        params = query_params(query)
        headers = await self._headers()
        debug(f"GET {self.url} params={params} headers={redact_sensitive_data(headers)}")

        try:
            response = await self._client.get(self.url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            raise FetchError(f"Request to {self.url} failed: {exc}") from exc

        if not response.is_success:
            raise FetchError(
                f"Failed to fetch data: {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(
                "Response body is not valid JSON", status_code=response.status_code
            ) from exc
        return parse_response(payload)

    async def aclose(self) -> None:
        """Close the HTTP client if this source created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpRecordSource:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
