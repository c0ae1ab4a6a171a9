"""
Bounded, most-recent-first notification history.

Backed by a capped list in the shared cache store. Appends push at the head
and trim the tail in one transaction, so the stored length never exceeds
capacity and eviction is purely positional. Reads take items and length from
one snapshot so a page is consistent with a concurrent append.
"""

import json
from dataclasses import dataclass
from typing import List

from shared.logging import get_logger
from .models import NotificationRecord

HISTORY_KEY = "notifications:history"
TOTAL_SENT_KEY = "notifications:total_sent"

MAX_PAGE_SIZE = 100


@dataclass
class HistoryPage:
    items: List[NotificationRecord]
    total: int
    has_more: bool
    limit: int
    offset: int


class NotificationHistory:
    """Capacity-bounded notification ring."""

    def __init__(self, store, max_history: int = 100):
        if max_history < 1:
            raise ValueError("max_history must be positive")
        self.store = store
        self.max_history = max_history
        self.logger = get_logger("notifications.history")

    async def append(self, record: NotificationRecord) -> int:
        """Insert at the head, evicting from the tail; returns the stored length.

        The lifetime counter is bumped in the same transaction. Raises
        CacheUnavailable if the store cannot take the write.
        """
        return await self.store.push_bounded(
            HISTORY_KEY, record.model_dump_json(), self.max_history, counter_key=TOTAL_SENT_KEY
        )

    async def page(self, offset: int = 0, limit: int = 20) -> HistoryPage:
        """Return up to ``limit`` records (capped at 100) starting at ``offset``."""
        offset = max(0, offset)
        limit = max(1, min(limit, MAX_PAGE_SIZE))

        raw_items, total = await self.store.range_with_length(HISTORY_KEY, offset, offset + limit - 1)

        items = []
        for raw in raw_items:
            try:
                items.append(NotificationRecord.model_validate(json.loads(raw)))
            except ValueError as e:
                self.logger.warning("Invalid notification JSON in history", error=str(e))

        return HistoryPage(
            items=items,
            total=total,
            has_more=offset + limit < total,
            limit=limit,
            offset=offset
        )

    async def total_sent(self) -> int:
        """Lifetime count of appended notifications, independent of eviction."""
        return int(await self.store.get(TOTAL_SENT_KEY) or 0)
