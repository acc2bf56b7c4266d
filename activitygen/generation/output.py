from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, List, Optional

import structlog

from ..shared.timeutil import end_of_month, start_of_month
from .assembler import ActivityMonths
from .ports import ActivityLog, AggregationOptions
from .records import ClientRecord, Segment
from .schema import WriteOption

log = structlog.get_logger()


class SliceSegmentReader:
    """
    Forward-only cursor over a fixed list of client batches. Mirrors a
    database cursor: reads return None once exhausted, and the reader cannot
    be rewound.
    """

    def __init__(self, records: List[List[ClientRecord]]) -> None:
        self._records = records
        self._i = 0

    @classmethod
    def from_segments(cls, segments: Dict[int, Segment]) -> "SliceSegmentReader":
        # skipped segments hold no clients and were never written
        return cls([seg.clients for _, seg in sorted(segments.items()) if not seg.is_skipped])

    def read_entity(self) -> Optional[List[ClientRecord]]:
        if self._i == len(self._records):
            return None
        record = self._records[self._i]
        self._i += 1
        return record

    def read_token(self) -> Optional[Dict[str, int]]:
        # generated data never carries token counts
        return None

    def __iter__(self) -> Iterator[List[ClientRecord]]:
        while True:
            batch = self.read_entity()
            if batch is None:
                return
            yield batch


async def write_months(
    generated: ActivityMonths,
    opts: Iterable[WriteOption],
    activity_log: ActivityLog,
    now: Optional[datetime] = None,
) -> List[str]:
    """
    Persist every populated month through ``activity_log`` and return the
    paths of the entity segments written, in write order.
    """
    opts = set(opts)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = start_of_month(now)
    paths: List[str] = []

    write_entities = WriteOption.WRITE_ENTITIES in opts
    write_pq = WriteOption.WRITE_PRECOMPUTED_QUERIES in opts
    write_distinct = WriteOption.WRITE_DISTINCT_CLIENTS in opts

    pq_opts = None
    latest = generated.latest_timestamp(now)
    if (write_pq or write_distinct) and latest is not None:
        pq_opts = AggregationOptions(
            active_period_start=generated.earliest_timestamp(now),
            active_period_end=latest,
            end_time=end_of_month(latest),
            write_precomputed_queries=write_pq,
            write_distinct_clients=write_distinct,
        )

    for i, month in enumerate(generated.months):
        if not month.populated:
            continue
        timestamp = generated.month_timestamp(i, now)
        segments = month.populate_segments()

        if write_entities:
            for segment_index, segment in segments.items():
                if segment.is_skipped:
                    continue
                path = await activity_log.save_entity_segment(
                    int(timestamp.timestamp()), segment_index, segment.clients
                )
                log.info(
                    "segment_written",
                    months_ago=i,
                    segment_index=segment_index,
                    clients=len(segment),
                    path=path,
                )
                paths.append(path)

        if pq_opts is not None:
            reader = SliceSegmentReader.from_segments(segments)
            await activity_log.segment_to_precomputed_query(timestamp, reader, pq_opts)

    await activity_log.refresh_from_stored_log(now)
    log.info("refresh_scheduled", now=now.isoformat(), paths=len(paths))
    return paths
