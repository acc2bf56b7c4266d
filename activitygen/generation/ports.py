"""
Narrow interfaces the generator uses to reach the host telemetry system.
Anything satisfying these protocols can be plugged in; see
``activitygen.infrastructure`` for the in-memory and Postgres versions.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol

from .records import ClientRecord


@dataclass(frozen=True)
class Namespace:
    id: str
    path: str = ""


@dataclass(frozen=True)
class MountEntry:
    namespace_id: str
    accessor: str
    path: str


class NamespaceResolver(Protocol):
    def namespace_by_id(self, namespace_id: str) -> Optional[Namespace]: ...


class MountRegistry(Protocol):
    def list_mounts(self) -> List[MountEntry]: ...

    def matching_mount(self, namespace: Namespace, path: str) -> Optional[MountEntry]: ...


class SegmentReader(Protocol):
    def read_entity(self) -> Optional[List[ClientRecord]]: ...

    def read_token(self) -> Optional[Dict[str, int]]: ...


@dataclass
class AggregationOptions:
    """Shared across every month of one write request."""
    active_period_start: datetime
    active_period_end: datetime
    end_time: datetime
    write_precomputed_queries: bool = False
    write_distinct_clients: bool = False
    # month start -> distinct clients seen that month, keyed by client id
    by_month: Dict[datetime, Dict[str, ClientRecord]] = field(default_factory=dict)


class ActivityLog(Protocol):
    async def save_entity_segment(
        self, start_timestamp: int, sequence_number: int, clients: List[ClientRecord]
    ) -> str: ...

    async def segment_to_precomputed_query(
        self, timestamp: datetime, reader: SegmentReader, opts: AggregationOptions
    ) -> None: ...

    async def refresh_from_stored_log(self, now: datetime) -> None: ...
