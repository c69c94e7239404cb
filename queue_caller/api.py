"""REST client for the ticketing server.

Only the read endpoints the viewers need. Every failure (network error, HTTP
error status, body that is not JSON) is raised as `FetchError`; callers log it
and retry on their next tick.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx

from .channels import counter_path, counters_path, queues_path, stats_path
from .errors import ErrorResponse, FetchError, PayloadError
from .models import CounterInfo

logger = logging.getLogger(__name__)


def _queue_records(body: Any) -> list[dict[str, Any]]:
    # The list endpoint answers either a bare list or {"queues": [...], "total": ...}.
    if isinstance(body, dict):
        body = body.get("queues") or []
    if not isinstance(body, list):
        raise FetchError("queue list response is not a list")
    return [r for r in body if isinstance(r, dict)]


class ServerApi:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @classmethod
    def connect(cls, base_url: str, *, timeout: float = 10.0) -> ServerApi:
        return cls(httpx.AsyncClient(base_url=base_url, timeout=timeout))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            raise FetchError(f"{path}: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 400:
            raise ErrorResponse.from_body(response.status_code, body).to_exception(path=path)
        if body is None:
            raise FetchError(f"{path}: response is not JSON", status_code=response.status_code)
        return body

    async def latest_called(self) -> dict[str, Any] | None:
        """The most recently called ticket record, or None."""
        body = await self._get_json(queues_path(), {"status": "called", "per_page": 1})
        records = _queue_records(body)
        return records[0] if records else None

    async def counter(self, counter_id: int) -> CounterInfo:
        body = await self._get_json(counter_path(counter_id))
        try:
            return CounterInfo.from_record(body)
        except PayloadError as e:
            raise FetchError(f"{counter_path(counter_id)}: {e}") from e

    async def active_counters(self) -> list[CounterInfo]:
        body = await self._get_json(counters_path())
        if not isinstance(body, list):
            raise FetchError("counter list response is not a list")
        counters: list[CounterInfo] = []
        for record in body:
            try:
                info = CounterInfo.from_record(record)
            except PayloadError:
                logger.debug("skipping malformed counter record: %r", record)
                continue
            if info.is_active:
                counters.append(info)
        return counters

    async def called_today(self, today: date) -> list[dict[str, Any]]:
        """Tickets currently in "called" state, created on `today`."""
        body = await self._get_json(
            queues_path(),
            {"status": "called", "date": today.isoformat(), "per_page": 100},
        )
        return _queue_records(body)

    async def waiting_count(self) -> int | None:
        body = await self._get_json(stats_path())
        if isinstance(body, dict) and isinstance(body.get("waiting_queues"), int):
            return body["waiting_queues"]
        return None
