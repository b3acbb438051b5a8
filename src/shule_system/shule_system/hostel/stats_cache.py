"""Per-tenant stale-while-revalidate cache for hostel statistics.

An entry younger than `fresh_seconds` is served as is. Between
`fresh_seconds` and `stale_seconds` the cached value is served and a single
background refresh is started; the entry is flagged while that refresh runs
so concurrent readers do not start another one. Older or missing entries
are loaded synchronously.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..core.constants import HOSTEL_STATS_FRESH_SECONDS, HOSTEL_STATS_STALE_SECONDS
from .model import HostelStats

logger = logging.getLogger(__name__)

Loader = Callable[[], HostelStats]


def _thread_runner(fn: Callable[[], None]) -> None:
    threading.Thread(target=fn, name="hostel-stats-refresh", daemon=True).start()


@dataclass
class _Entry:
    value: HostelStats
    loaded_at: float
    refreshing: bool = False


class HostelStatsCache:
    def __init__(
        self,
        *,
        fresh_seconds: float = HOSTEL_STATS_FRESH_SECONDS,
        stale_seconds: float = HOSTEL_STATS_STALE_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        runner: Callable[[Callable[[], None]], None] = _thread_runner,
    ):
        if stale_seconds < fresh_seconds:
            raise ValueError("stale_seconds must be >= fresh_seconds")
        self._fresh = fresh_seconds
        self._stale = stale_seconds
        self._clock = clock
        self._runner = runner
        self._lock = threading.Lock()
        self._entries: Dict[int, _Entry] = {}

    def get(self, tenant_id: int, loader: Loader) -> HostelStats:
        with self._lock:
            entry = self._entries.get(tenant_id)
            if entry is not None:
                age = self._clock() - entry.loaded_at
                if age < self._fresh:
                    return entry.value
                if age < self._stale:
                    if not entry.refreshing:
                        entry.refreshing = True
                        self._runner(lambda: self._refresh_in_background(tenant_id, loader, entry))
                    return entry.value
        return self._refresh(tenant_id, loader, fallback=entry)

    def invalidate(self, tenant_id: int) -> None:
        with self._lock:
            self._entries.pop(tenant_id, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def peek(self, tenant_id: int) -> Optional[HostelStats]:
        with self._lock:
            entry = self._entries.get(tenant_id)
            return entry.value if entry else None

    def _store(self, tenant_id: int, value: HostelStats) -> None:
        with self._lock:
            self._entries[tenant_id] = _Entry(value=value, loaded_at=self._clock())

    def _refresh(self, tenant_id: int, loader: Loader, *, fallback: Optional[_Entry]) -> HostelStats:
        try:
            value = loader()
        except Exception:
            if fallback is None:
                raise
            logger.warning("Hostel stats refresh failed for tenant %s; serving cached value",
                           tenant_id, exc_info=True)
            return fallback.value
        self._store(tenant_id, value)
        return value

    def _refresh_in_background(self, tenant_id: int, loader: Loader, entry: _Entry) -> None:
        try:
            value = loader()
        except Exception:
            logger.warning("Background hostel stats refresh failed for tenant %s", tenant_id, exc_info=True)
            with self._lock:
                entry.refreshing = False
            return
        with self._lock:
            # only replace the entry this refresh was started for; an invalidation
            # or a newer load since then wins
            if self._entries.get(tenant_id) is not entry:
                return
            self._entries[tenant_id] = _Entry(value=value, loaded_at=self._clock())
