import asyncio
from datetime import datetime
from typing import Dict, List, Set, Tuple

import structlog

from ..generation.ports import AggregationOptions, SegmentReader
from ..generation.records import ClientRecord
from .activity import (
    MonthlyCount,
    PrecomputedQuery,
    entity_segment_path,
    fold_month,
    monthly_counts,
    precomputed_query,
)

log = structlog.get_logger()


class InMemoryActivityLog:
    """Activity log kept in process memory. Used by tests and dry runs."""

    def __init__(self) -> None:
        # path -> (start_timestamp, sequence_number, clients)
        self.entity_segments: Dict[str, Tuple[int, int, List[ClientRecord]]] = {}
        self.distinct_clients: Dict[datetime, List[ClientRecord]] = {}
        self.precomputed_queries: Dict[datetime, PrecomputedQuery] = {}
        self.monthly: List[MonthlyCount] = []
        self._tasks: Set[asyncio.Task] = set()

    async def save_entity_segment(
        self, start_timestamp: int, sequence_number: int, clients: List[ClientRecord]
    ) -> str:
        path = entity_segment_path(start_timestamp, sequence_number)
        self.entity_segments[path] = (start_timestamp, sequence_number, list(clients))
        return path

    async def segment_to_precomputed_query(
        self, timestamp: datetime, reader: SegmentReader, opts: AggregationOptions
    ) -> None:
        clients = fold_month(timestamp, reader, opts)
        if opts.write_distinct_clients:
            self.distinct_clients[timestamp] = list(clients.values())
        if opts.write_precomputed_queries:
            self.precomputed_queries[timestamp] = precomputed_query(opts, timestamp)

    async def refresh_from_stored_log(self, now: datetime) -> None:
        task = asyncio.create_task(self._refresh(now))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _refresh(self, now: datetime) -> None:
        self.monthly = monthly_counts(
            (start_ts, clients) for start_ts, _, clients in self.entity_segments.values()
        )
        log.info("activity_refreshed", now=now.isoformat(), months=len(self.monthly))

    async def wait_for_refresh(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def monthly_counts(self) -> List[MonthlyCount]:
        return list(self.monthly)
