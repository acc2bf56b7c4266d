from dataclasses import dataclass, field
from enum import Enum
from typing import List


class ClientType(str, Enum):
    ENTITY = "entity"
    NON_ENTITY_TOKEN = "non-entity-token"


@dataclass(frozen=True)
class ClientRecord:
    """
    One synthetic client. Repeated clients are the *same* object appended to
    several months, so records must never be mutated after creation.
    """
    client_id: str
    namespace_id: str
    mount_accessor: str
    non_entity: bool = False

    @property
    def client_type(self) -> ClientType:
        return ClientType.NON_ENTITY_TOKEN if self.non_entity else ClientType.ENTITY

    def as_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "namespace_id": self.namespace_id,
            "mount_accessor": self.mount_accessor,
            "non_entity": self.non_entity,
            "client_type": self.client_type.value,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ClientRecord":
        return cls(
            client_id=d["client_id"],
            namespace_id=d["namespace_id"],
            mount_accessor=d["mount_accessor"],
            non_entity=bool(d.get("non_entity", False)),
        )


class SegmentState(str, Enum):
    SKIPPED = "skipped"
    EMPTY = "empty"
    POPULATED = "populated"


@dataclass(frozen=True)
class Segment:
    """
    A segment index is either skipped (reserved, never written), explicitly
    empty (written with no clients) or populated.
    """
    state: SegmentState
    clients: List[ClientRecord] = field(default_factory=list)

    @classmethod
    def skipped(cls) -> "Segment":
        return cls(SegmentState.SKIPPED)

    @classmethod
    def empty(cls) -> "Segment":
        return cls(SegmentState.EMPTY)

    @classmethod
    def populated(cls, clients: List[ClientRecord]) -> "Segment":
        return cls(SegmentState.POPULATED, list(clients))

    @property
    def is_skipped(self) -> bool:
        return self.state is SegmentState.SKIPPED

    def __len__(self) -> int:
        return len(self.clients)
