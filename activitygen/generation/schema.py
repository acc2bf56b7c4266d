from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from .errors import InvalidInputError


class WriteOption(str, Enum):
    WRITE_PRECOMPUTED_QUERIES = "WRITE_PRECOMPUTED_QUERIES"
    WRITE_DISTINCT_CLIENTS = "WRITE_DISTINCT_CLIENTS"
    WRITE_ENTITIES = "WRITE_ENTITIES"


class _Message(BaseModel):
    # JSON input uses camelCase names ("monthsAgo"), python code uses snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class Client(_Message):
    id: str = ""
    count: int = Field(default=0, ge=0)
    repeated: bool = False
    repeated_from_month: int = Field(default=0, ge=0)
    namespace: str = ""
    mount: str = ""
    non_entity: bool = False

    @property
    def is_repeated(self) -> bool:
        return self.repeated or self.repeated_from_month > 0

    @property
    def effective_count(self) -> int:
        return self.count if self.count > 1 else 1

    @model_validator(mode="after")
    def check_consistency(self) -> "Client":
        if self.id and self.count > 1:
            raise ValueError("cannot set an explicit client id together with count > 1")
        if self.repeated and self.repeated_from_month > 0:
            raise ValueError("cannot set both repeated and repeated_from_month")
        return self


class Clients(_Message):
    clients: List[Client] = Field(default_factory=list)


class Segment(_Message):
    segment_index: Optional[int] = Field(default=None, ge=0)
    clients: Clients = Field(default_factory=Clients)


class Segments(_Message):
    segments: List[Segment] = Field(default_factory=list)


class MonthData(_Message):
    current_month: bool = False
    months_ago: int = Field(default=0, ge=0)
    all: Optional[Clients] = None
    segments: Optional[Segments] = None
    empty_segment_indexes: List[int] = Field(default_factory=list)
    skip_segment_indexes: List[int] = Field(default_factory=list)
    num_segments: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def check_shape(self) -> "MonthData":
        if self.current_month and self.months_ago > 0:
            raise ValueError("cannot set both current_month and months_ago")
        if (self.all is None) == (self.segments is None):
            raise ValueError("exactly one of all or segments must be set")
        if any(i < 0 for i in self.empty_segment_indexes + self.skip_segment_indexes):
            raise ValueError("segment indexes must be non-negative")
        return self

    def iter_clients(self):
        if self.all is not None:
            yield from self.all.clients
            return
        for segment in self.segments.segments:
            yield from segment.clients.clients


class ActivityLogMockInput(_Message):
    write: List[WriteOption] = Field(default_factory=list)
    data: List[MonthData] = Field(default_factory=list)


def parse_input(raw: Union[str, bytes, dict]) -> ActivityLogMockInput:
    try:
        if isinstance(raw, dict):
            return ActivityLogMockInput.model_validate(raw)
        return ActivityLogMockInput.model_validate_json(raw)
    except ValidationError as e:
        raise InvalidInputError(f"Invalid input data: {e}") from e


def verify_input(input: ActivityLogMockInput) -> None:
    """
    Semantic checks that need the whole request, not a single message.
    Raises InvalidInputError on the first problem found.
    """
    if not input.write:
        raise InvalidInputError('Missing required "write" values')
    if not input.data:
        raise InvalidInputError('Missing required "data" values')

    seen_months = set()
    for month in input.data:
        if month.months_ago in seen_months:
            raise InvalidInputError(f"Invalid input data: repeated months are not allowed: {month.months_ago}")
        seen_months.add(month.months_ago)

        for client in month.iter_clients():
            if client.repeated_from_month and client.repeated_from_month <= month.months_ago:
                raise InvalidInputError(
                    f"Invalid input data: month {month.months_ago} cannot repeat clients "
                    f"from month {client.repeated_from_month}"
                )

        if month.segments is None:
            continue
        num_segments = month.num_segments
        segments = month.segments.segments
        if num_segments > 0 and len(segments) > num_segments:
            raise InvalidInputError(
                f"Invalid input data: num_segments {num_segments} is less than the "
                f"number of predefined segments {len(segments)}"
            )
        seen_indexes = set()
        for position, segment in enumerate(segments):
            index = position if segment.segment_index is None else segment.segment_index
            if num_segments > 0 and index >= num_segments:
                raise InvalidInputError(
                    f"Invalid input data: segment index {index} is out of range for {num_segments} segments"
                )
            if index in seen_indexes:
                raise InvalidInputError(f"Invalid input data: repeated segment index {index}")
            seen_indexes.add(index)
