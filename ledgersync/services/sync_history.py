"""
In-memory sync history.

A bounded buffer of run outcomes, newest first. It feeds statistics and
recommendations only and is never treated as business state.
"""

import logging
from collections import deque
from datetime import datetime, timedelta
from typing import Callable, Deque, List, Optional

from ledgersync.schemas.schedule import PerformanceMetrics, SyncHistoryEntry

logger = logging.getLogger(__name__)

SLOW_SYNC_MS = 10_000
LARGE_SYNC_VOLUME = 100


class SyncHistory:

    def __init__(self, limit: int = 200, on_notable: Optional[Callable[[SyncHistoryEntry], None]] = None):
        self.limit = limit
        self._entries: Deque[SyncHistoryEntry] = deque(maxlen=limit)
        self.on_notable = on_notable

    def record(self, entry: SyncHistoryEntry) -> None:
        self._entries.appendleft(entry)
        logger.debug(
            f"History: {entry.provider} success={entry.success} {entry.duration_ms}ms volume={entry.data_volume}"
        )
        if self.on_notable and self.is_notable(entry):
            self.on_notable(entry)

    @staticmethod
    def is_notable(entry: SyncHistoryEntry) -> bool:
        """Failures, slow runs and large runs trigger an immediate re-analysis."""
        return (not entry.success) or entry.duration_ms > SLOW_SYNC_MS or entry.data_volume > LARGE_SYNC_VOLUME

    def entries(self, provider: Optional[str] = None, limit: Optional[int] = None) -> List[SyncHistoryEntry]:
        result = [e for e in self._entries if provider is None or e.provider == provider]
        return result[:limit] if limit is not None else result

    def __len__(self) -> int:
        return len(self._entries)

    def performance_metrics(self, now: datetime) -> PerformanceMetrics:
        entries = list(self._entries)
        if not entries:
            return PerformanceMetrics()

        successes = sum(1 for e in entries if e.success)
        week_ago = now - timedelta(days=7)
        return PerformanceMetrics(
            total_syncs=len(entries),
            success_rate=round(successes / len(entries) * 100, 1),
            avg_duration_ms=round(sum(e.duration_ms for e in entries) / len(entries), 1),
            last_week_syncs=sum(1 for e in entries if e.timestamp >= week_ago),
        )
