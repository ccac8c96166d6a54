"""Scored, persisted pool of outbound proxies."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from pathlib import Path
from typing import Callable

import httpx
from pydantic import TypeAdapter, ValidationError

from ..models import ProxyRecord

logger = logging.getLogger(__name__)

_records_adapter = TypeAdapter(list[ProxyRecord])


class ProxyPool:
    """
    Round-robin proxy selection over a quality-sorted list.

    The pool is sorted by ascending failure count, then descending success
    count, and a rotating cursor walks it. Failing proxies keep getting
    occasional traffic so they can be re-scored.

    Mutations (selection, outcome reports, refresh) hold ``_lock`` and every
    write of the backing JSON file happens while it is held.
    """

    def __init__(
        self,
        store_path: Path,
        sources: list[str] | None = None,
        update_interval: float = 60 * 60,
        default_protocol: str = "http",
        fetch_timeout: float = 5,
        eviction_threshold: int = 0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store_path = store_path
        self.sources = list(sources or [])
        self.update_interval = update_interval
        self.default_protocol = default_protocol
        self.fetch_timeout = fetch_timeout
        self.eviction_threshold = eviction_threshold
        self._transport = transport
        self._clock = clock
        self._proxies: list[ProxyRecord] = []
        self._cursor = 0
        self._last_refresh = 0.0
        self._lock = threading.Lock()
        self._refresh_lock = asyncio.Lock()
        self._load()

    @classmethod
    def from_config(cls, store_path: Path, config: dict) -> "ProxyPool":
        return cls(
            store_path,
            sources=config["sources"],
            update_interval=config["update_interval_seconds"],
            default_protocol=config["default_protocol"],
            fetch_timeout=config["fetch_timeout_seconds"],
            eviction_threshold=config["eviction_threshold"],
        )

    def _load(self) -> None:
        """Load the persisted pool; an unreadable file leaves it empty."""
        if not self.store_path.exists():
            return
        try:
            self._proxies = _records_adapter.validate_json(self.store_path.read_bytes())
            logger.info(f"Loaded {len(self._proxies)} proxies from {self.store_path}")
        except (OSError, ValidationError) as e:
            logger.error(f"Error loading proxies from {self.store_path}: {e}")
            self._proxies = []

    def _save(self) -> None:
        try:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            data = [record.model_dump(mode="json") for record in self._proxies]
            with open(self.store_path, "w") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.error(f"Error saving proxies to {self.store_path}: {e}")

    def needs_refresh(self) -> bool:
        return not self._proxies or self._clock() - self._last_refresh > self.update_interval

    async def ensure_fresh(self) -> None:
        """Refresh the pool if it is empty or older than the update interval."""
        async with self._refresh_lock:
            # A concurrent caller may have refreshed while this one waited.
            if self.needs_refresh():
                await self._refresh()

    async def refresh(self) -> int:
        """
        Fetch candidate proxies from every source and merge them into the pool.

        A failing source is logged and skipped. Records already in the pool
        keep their scores; new endpoints start at zero.

        Returns:
            Number of records in the pool afterwards
        """
        async with self._refresh_lock:
            return await self._refresh()

    async def _refresh(self) -> int:
        candidates: list[ProxyRecord] = []
        async with httpx.AsyncClient(
            timeout=self.fetch_timeout, transport=self._transport
        ) as client:
            for source in self.sources:
                try:
                    response = await client.get(source)
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    logger.warning(f"Error fetching proxy list from {source}: {e}")
                    continue
                candidates.extend(self._parse_source(response.text))

        with self._lock:
            merged: dict[tuple[str, str], ProxyRecord] = {}
            for record in [*self._proxies, *candidates]:
                merged.setdefault(record.key, record)
            self._proxies = list(merged.values())
            self._cursor = self._cursor % len(self._proxies) if self._proxies else 0
            self._save()
            self._last_refresh = self._clock()
            size = len(self._proxies)

        logger.info(f"Proxy pool refreshed: {len(candidates)} candidates, {size} unique")
        return size

    def _parse_source(self, text: str) -> list[ProxyRecord]:
        records = []
        for line in text.splitlines():
            endpoint = line.strip()
            if not endpoint or endpoint.startswith("#"):
                continue
            records.append(ProxyRecord(endpoint=endpoint, protocol=self.default_protocol))
        return records

    def get_next(self) -> str | None:
        """Select the next proxy URL, or None if the pool is empty."""
        with self._lock:
            if not self._proxies:
                return None
            self._proxies.sort(key=lambda p: (p.failure_count, -p.success_count))
            index = self._cursor % len(self._proxies)
            record = self._proxies[index]
            record.last_used_at = self._clock()
            self._cursor = (index + 1) % len(self._proxies)
            return record.url

    def _find(self, proxy_url: str) -> ProxyRecord | None:
        for record in self._proxies:
            if record.url == proxy_url:
                return record
        return None

    def report_success(self, proxy_url: str) -> None:
        with self._lock:
            record = self._find(proxy_url)
            if record is None:
                return
            record.success_count += 1
            record.consecutive_failures = 0
            self._save()

    def report_failure(self, proxy_url: str) -> None:
        with self._lock:
            record = self._find(proxy_url)
            if record is None:
                return
            record.failure_count += 1
            record.consecutive_failures += 1
            if self.eviction_threshold and record.consecutive_failures >= self.eviction_threshold:
                self._proxies.remove(record)
                self._cursor = self._cursor % len(self._proxies) if self._proxies else 0
                logger.info(
                    f"Evicted proxy {proxy_url} after {record.consecutive_failures} consecutive failures"
                )
            self._save()

    def records(self) -> list[ProxyRecord]:
        """Snapshot of the pool in its current order."""
        with self._lock:
            return [record.model_copy() for record in self._proxies]

    def __len__(self) -> int:
        return len(self._proxies)
