from __future__ import annotations
"""Bounded in-process cache of hydrated FileRecords, FIFO eviction in batches.

There is no invalidation by key. A record changed in the store after it was
cached keeps being served from here until it ages out, so callers must
treat hits as eventually consistent (deleted flag included).
"""

import asyncio
import logging
from collections import OrderedDict
from typing import List, Optional

from filehost.models.file_record import FileRecord
from filehost.util import plural

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 300
DEFAULT_EVICT_BATCH = 3


class FileCache:
    def __init__(self, max_size: int = DEFAULT_MAX_SIZE, evict_batch: int = DEFAULT_EVICT_BATCH):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        if evict_batch < 1:
            raise ValueError("evict_batch must be >= 1")
        self.max_size = max_size
        self.evict_batch = evict_batch
        self._entries: "OrderedDict[str, FileRecord]" = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, file_id: object) -> bool:
        return file_id in self._entries

    def ids(self) -> List[str]:
        """Cached ids, oldest first."""
        return list(self._entries.keys())

    def get(self, file_id: str) -> Optional[FileRecord]:
        if not file_id:
            return None
        return self._entries.get(file_id)

    async def put(self, record: FileRecord) -> None:
        async with self._lock:
            # re-caching an id makes it the newest entry
            self._entries.pop(record.id, None)
            self._entries[record.id] = record
            count = len(self._entries)
            logger.debug("added file to cache: total of %d cached file%s", count, plural(count))

            if count > self.max_size:
                evicted = []
                for _ in range(min(self.evict_batch, count)):
                    file_id, _record = self._entries.popitem(last=False)
                    evicted.append(file_id)
                logger.debug("evicted %d oldest cached files: %s", len(evicted), ", ".join(evicted))

    async def clear(self) -> None:
        async with self._lock:
            count = len(self._entries)
            logger.debug("clearing %d cached file%s", count, plural(count))
            self._entries.clear()
