from datetime import datetime
from typing import List, Optional

import structlog

from ..shared.settings import settings
from ..shared.timeutil import months_previous_to, start_of_month
from .errors import MissingRepeatedClientsError, ReferenceResolutionError
from .pool import MonthPool
from .ports import MountRegistry, NamespaceResolver
from .records import ClientRecord
from .schema import ActivityLogMockInput, Client, MonthData

log = structlog.get_logger()


def months_needed(input: ActivityLogMockInput) -> int:
    """Number of month pools to allocate, counting repetition sources too."""
    oldest = 0
    for month in input.data:
        oldest = max(oldest, month.months_ago)
        for c in month.iter_clients():
            if c.repeated_from_month > 0:
                oldest = max(oldest, c.repeated_from_month)
            elif c.repeated:
                oldest = max(oldest, month.months_ago + 1)
    return oldest + 1


class ActivityMonths:
    """
    Multiple months of generated clients. ``months[0]`` is the current month,
    ``months[i]`` is ``i`` months ago.
    """

    def __init__(self, number_of_months: int) -> None:
        self.months: List[MonthPool] = [MonthPool() for _ in range(number_of_months)]

    @classmethod
    def from_input(
        cls,
        input: ActivityLogMockInput,
        namespaces: NamespaceResolver,
        mounts: MountRegistry,
    ) -> "ActivityMonths":
        generated = cls(months_needed(input))
        for month in input.data:
            generated.process_month(month, namespaces, mounts)
        return generated

    def process_month(self, month: MonthData, namespaces: NamespaceResolver, mounts: MountRegistry) -> None:
        root_ns = settings.root_namespace_id
        all_mounts = mounts.list_mounts()
        default_root_accessor = ""
        for mount in all_mounts:
            if mount.namespace_id == root_ns:
                default_root_accessor = mount.accessor
                break

        self.months[month.months_ago].generation_parameters = month

        def add(clients: List[Client], segment_index: Optional[int]) -> None:
            for c in clients:
                namespace_id = c.namespace or root_ns
                ns = namespaces.namespace_by_id(namespace_id)
                if ns is None:
                    raise ReferenceResolutionError(f"namespace {namespace_id} not found")

                if c.mount:
                    entry = mounts.matching_mount(ns, c.mount)
                    if entry is None:
                        raise ReferenceResolutionError(
                            f"unable to find matching mount in namespace {namespace_id}"
                        )
                    mount_accessor = entry.accessor
                elif namespace_id == root_ns:
                    mount_accessor = default_root_accessor
                else:
                    # any mount on the client's namespace will do
                    found = next((m for m in all_mounts if m.namespace_id == namespace_id), None)
                    if found is None:
                        raise ReferenceResolutionError(
                            f"unable to find matching mount in namespace {namespace_id}"
                        )
                    mount_accessor = found.accessor

                self.add_client_to_month(month.months_ago, c, namespace_id, mount_accessor, segment_index)

        if month.all is not None:
            add(month.all.clients, None)
        else:
            for i, segment in enumerate(month.segments.segments):
                index = i if segment.segment_index is None else segment.segment_index
                add(segment.clients.clients, index)

        pool = self.months[month.months_ago]
        log.info(
            "month_processed",
            months_ago=month.months_ago,
            clients=len(pool.clients),
            predefined_segments=len(pool.predefined_segments),
        )

    def add_client_to_month(
        self,
        months_ago: int,
        c: Client,
        namespace_id: str,
        mount_accessor: str,
        segment_index: Optional[int] = None,
    ) -> List[ClientRecord]:
        if c.is_repeated:
            return self.add_repeated_clients(months_ago, c, namespace_id, mount_accessor, segment_index)
        return self.months[months_ago].add_new_clients(c, namespace_id, mount_accessor, segment_index)

    def add_repeated_clients(
        self,
        months_ago: int,
        c: Client,
        namespace_id: str,
        mount_accessor: str,
        segment_index: Optional[int] = None,
    ) -> List[ClientRecord]:
        """
        Reuse clients from an older month: the month right before
        ``months_ago``, or ``c.repeated_from_month`` when it is set. The first
        matching clients in that month's order are appended as-is.
        """
        adding_to = self.months[months_ago]
        repeated_from = months_ago + 1
        if c.repeated_from_month > 0:
            repeated_from = c.repeated_from_month
        if repeated_from >= len(self.months):
            raise MissingRepeatedClientsError(c.effective_count)

        wanted = c.effective_count
        picked = []
        for client in self.months[repeated_from].clients:
            if (
                client.non_entity == c.non_entity
                and client.mount_accessor == mount_accessor
                and client.namespace_id == namespace_id
            ):
                adding_to.add_entity_record(client, segment_index)
                picked.append(client)
                if len(picked) == wanted:
                    break

        if len(picked) < wanted:
            raise MissingRepeatedClientsError(wanted - len(picked))
        return picked

    def month_timestamp(self, months_ago: int, now: datetime) -> datetime:
        return start_of_month(months_previous_to(months_ago, now))

    def latest_timestamp(self, now: datetime) -> Optional[datetime]:
        for i, month in enumerate(self.months):
            if month.populated:
                return self.month_timestamp(i, now)
        return None

    def earliest_timestamp(self, now: datetime) -> Optional[datetime]:
        for i in range(len(self.months) - 1, -1, -1):
            if self.months[i].populated:
                return self.month_timestamp(i, now)
        return None
