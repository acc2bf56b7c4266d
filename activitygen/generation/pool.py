import math
from typing import Dict, List, Optional
from uuid import uuid4

import structlog

from .errors import ClientIDGenerationError, TooFewSegmentsError
from .records import ClientRecord, Segment
from .schema import Client, Clients, MonthData

log = structlog.get_logger()


def generate_client_id() -> str:
    try:
        return str(uuid4())
    except (OSError, NotImplementedError) as e:
        raise ClientIDGenerationError(f"unable to generate client id: {e}") from e


class MonthPool:
    """One month's clients, in the order they were seen."""

    def __init__(self) -> None:
        self.clients: List[ClientRecord] = []
        # segment index -> positions in self.clients
        self.predefined_segments: Dict[int, List[int]] = {}
        # None until a request directive targets this month
        self.generation_parameters: Optional[MonthData] = None

    @property
    def populated(self) -> bool:
        return self.generation_parameters is not None

    def add_entity_record(self, record: ClientRecord, segment_index: Optional[int] = None) -> None:
        self.clients.append(record)
        if segment_index is not None:
            self.predefined_segments.setdefault(segment_index, []).append(len(self.clients) - 1)

    def add_new_clients(
        self,
        c: Client,
        namespace_id: str,
        mount_accessor: str,
        segment_index: Optional[int] = None,
    ) -> List[ClientRecord]:
        """Materialize ``c.count`` fresh clients, all owned by ``mount_accessor``."""
        added = []
        for _ in range(c.effective_count):
            record = ClientRecord(
                client_id=c.id or generate_client_id(),
                namespace_id=namespace_id,
                mount_accessor=mount_accessor,
                non_entity=c.non_entity,
            )
            self.add_entity_record(record, segment_index)
            added.append(record)
        return added

    def populate_segments(self) -> Dict[int, Segment]:
        """
        Split the month into segments, keyed by segment index in ascending
        order. Skipped indexes map to a skipped segment, empty indexes to an
        empty one.

        When any client was added with an explicit segment index, those
        assignments decide everything. Otherwise clients are spread in order
        over the usable indexes, ceil(clients / usable) per segment, and
        indexes left over once the clients run out are not emitted at all.
        """
        params = self.generation_parameters or MonthData(all=Clients())
        skip_indexes = params.skip_segment_indexes
        empty_indexes = params.empty_segment_indexes

        segments: Dict[int, Segment] = {}
        for i in skip_indexes:
            segments[i] = Segment.skipped()
        for i in empty_indexes:
            segments[i] = Segment.empty()
        ignore = set(skip_indexes) | set(empty_indexes)

        if self.predefined_segments:
            for index, positions in self.predefined_segments.items():
                segments[index] = Segment.populated([self.clients[p] for p in positions])
            return dict(sorted(segments.items()))

        total = params.num_segments if params.num_segments > 0 else 1
        non_usable = len(skip_indexes) + len(empty_indexes)
        usable = total - non_usable
        if usable <= 0:
            raise TooFewSegmentsError(total, len(skip_indexes), len(empty_indexes))

        segment_size = math.ceil(len(self.clients) / usable)
        client_index = 0
        for i in range(total):
            if client_index >= len(self.clients):
                break
            if i in ignore:
                continue
            chunk = self.clients[client_index:client_index + segment_size]
            client_index += len(chunk)
            segments[i] = Segment.populated(chunk)

        log.debug(
            "segments_partitioned",
            clients=len(self.clients),
            total_segments=total,
            segment_size=segment_size,
        )
        return dict(sorted(segments.items()))
