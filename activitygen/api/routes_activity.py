from typing import List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from prometheus_client import Counter, Histogram
import structlog

from ..generation.assembler import ActivityMonths, months_needed
from ..generation.errors import ActivityWriteError, ClientIDGenerationError, InvalidInputError
from ..generation.output import write_months
from ..generation.schema import parse_input, verify_input
from ..infrastructure.registry import InMemoryRegistry
from .deps import get_activity_log, get_registry

router = APIRouter()
log = structlog.get_logger()

# ----- Prometheus metrics -----
WRITE_REQUESTS = Counter(
    "activity_write_requests_total",
    "Mock activity write requests",
    ["result"],  # "ok", "invalid", "rejected", "error"
)
GENERATED_CLIENTS = Counter(
    "activity_generated_clients_total",
    "Client records placed into month pools (repeated clients count once per month)",
    ["client_type"],
)
SEGMENTS_WRITTEN = Counter(
    "activity_entity_segments_written_total",
    "Entity segments persisted by POST /activity/write",
)
WRITE_LATENCY = Histogram(
    "activity_write_seconds",
    "Latency of writing generated months",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)

class ActivityWriteIn(BaseModel):
    input: str = Field(min_length=1, description="JSON encoded ActivityLogMockInput")

class ActivityWriteOut(BaseModel):
    paths: List[str]

@router.post("/activity/write", response_model=ActivityWriteOut, summary="Write mock activity log data")
async def write_activity(
    body: ActivityWriteIn,
    activity_log=Depends(get_activity_log),
    registry: InMemoryRegistry = Depends(get_registry),
):
    try:
        mock_input = parse_input(body.input)
        verify_input(mock_input)
    except InvalidInputError as e:
        WRITE_REQUESTS.labels("invalid").inc()
        raise HTTPException(status_code=400, detail=str(e))
    structlog.contextvars.bind_contextvars(months=[m.months_ago for m in mock_input.data])

    generated = ActivityMonths(months_needed(mock_input))
    for month in mock_input.data:
        try:
            generated.process_month(month, registry, registry)
        except ClientIDGenerationError as e:
            WRITE_REQUESTS.labels("error").inc()
            log.error("client_id_generation_failed", months_ago=month.months_ago, error=str(e))
            raise HTTPException(status_code=500, detail=str(e)) from e
        except ActivityWriteError as e:
            WRITE_REQUESTS.labels("rejected").inc()
            log.warning("month_rejected", months_ago=month.months_ago, error=str(e))
            raise HTTPException(
                status_code=400,
                detail=f"failed to process data for month {month.months_ago}: {e}",
            )

    for pool in generated.months:
        for record in pool.clients:
            GENERATED_CLIENTS.labels(record.client_type.value).inc()

    with WRITE_LATENCY.time():
        try:
            paths = await write_months(generated, mock_input.write, activity_log)
        except ActivityWriteError as e:
            WRITE_REQUESTS.labels("rejected").inc()
            raise HTTPException(status_code=400, detail=f"failed to write data: {e}")
        except Exception as e:
            WRITE_REQUESTS.labels("error").inc()
            log.error("write_failed", error=str(e))
            raise HTTPException(status_code=500, detail="failed to write data") from e

    SEGMENTS_WRITTEN.inc(len(paths))
    WRITE_REQUESTS.labels("ok").inc()
    return ActivityWriteOut(paths=paths)

@router.get("/activity/monthly", summary="Distinct clients per month, as of the last refresh")
async def activity_monthly(activity_log=Depends(get_activity_log)):
    counts = await activity_log.monthly_counts()
    return [c.as_dict() for c in counts]
