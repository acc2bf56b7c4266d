"""
Bookkeeping shared by the activity log backends: segment paths, folding
segment readers into per-month client sets, and the counts stored as
precomputed queries and monthly totals.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Tuple

from ..generation.ports import AggregationOptions, SegmentReader
from ..generation.records import ClientRecord

ENTITY_SEGMENT_PREFIX = "sys/counters/activity/log/entity/"


def entity_segment_path(start_timestamp: int, sequence_number: int) -> str:
    return f"{ENTITY_SEGMENT_PREFIX}{start_timestamp}/{sequence_number}"


@dataclass
class ClientCounts:
    entity_clients: int = 0
    non_entity_clients: int = 0

    @property
    def clients(self) -> int:
        return self.entity_clients + self.non_entity_clients

    def add(self, record: ClientRecord) -> None:
        if record.non_entity:
            self.non_entity_clients += 1
        else:
            self.entity_clients += 1

    def as_dict(self) -> dict:
        return {
            "clients": self.clients,
            "entity_clients": self.entity_clients,
            "non_entity_clients": self.non_entity_clients,
        }


@dataclass
class NamespaceCounts:
    namespace_id: str
    counts: ClientCounts = field(default_factory=ClientCounts)
    mounts: Dict[str, ClientCounts] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "namespace_id": self.namespace_id,
            **self.counts.as_dict(),
            "mounts": [
                {"mount_accessor": accessor, **c.as_dict()}
                for accessor, c in sorted(self.mounts.items())
            ],
        }


@dataclass
class PrecomputedQuery:
    start_time: datetime
    end_time: datetime
    counts: ClientCounts
    namespaces: List[NamespaceCounts]

    def as_dict(self) -> dict:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            **self.counts.as_dict(),
            "namespaces": [ns.as_dict() for ns in self.namespaces],
        }


@dataclass
class MonthlyCount:
    month: datetime
    counts: ClientCounts

    def as_dict(self) -> dict:
        return {"month": self.month.date().isoformat(), **self.counts.as_dict()}


def fold_month(timestamp: datetime, reader: SegmentReader, opts: AggregationOptions) -> Dict[str, ClientRecord]:
    """Drain ``reader`` into the distinct clients of the month at ``timestamp``."""
    month = opts.by_month.setdefault(timestamp, {})
    while True:
        batch = reader.read_entity()
        if batch is None:
            break
        for record in batch:
            month.setdefault(record.client_id, record)
    return month


def count_by_namespace(clients: Iterable[ClientRecord]) -> Tuple[ClientCounts, List[NamespaceCounts]]:
    total = ClientCounts()
    by_ns: Dict[str, NamespaceCounts] = {}
    for record in clients:
        total.add(record)
        ns = by_ns.setdefault(record.namespace_id, NamespaceCounts(record.namespace_id))
        ns.counts.add(record)
        ns.mounts.setdefault(record.mount_accessor, ClientCounts()).add(record)
    return total, [by_ns[k] for k in sorted(by_ns)]


def precomputed_query(opts: AggregationOptions, start: datetime) -> PrecomputedQuery:
    """Distinct clients seen from ``start`` through the end of the active period."""
    union: Dict[str, ClientRecord] = {}
    for month_start in sorted(opts.by_month):
        if month_start < start:
            continue
        for client_id, record in opts.by_month[month_start].items():
            union.setdefault(client_id, record)
    total, namespaces = count_by_namespace(union.values())
    return PrecomputedQuery(start_time=start, end_time=opts.end_time, counts=total, namespaces=namespaces)


def monthly_counts(segments: Iterable[Tuple[int, List[ClientRecord]]]) -> List[MonthlyCount]:
    """Distinct clients per month from ``(start_timestamp, clients)`` pairs."""
    months: Dict[int, Dict[str, ClientRecord]] = {}
    for start_timestamp, clients in segments:
        seen = months.setdefault(start_timestamp, {})
        for record in clients:
            seen.setdefault(record.client_id, record)

    result = []
    for start_timestamp in sorted(months):
        counts = ClientCounts()
        for record in months[start_timestamp].values():
            counts.add(record)
        month = datetime.fromtimestamp(start_timestamp, tz=timezone.utc)
        result.append(MonthlyCount(month=month, counts=counts))
    return result
