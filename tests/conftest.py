import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from activitygen.main import app
from activitygen.api.deps import get_activity_log, get_registry
from activitygen.generation.assembler import ActivityMonths
from activitygen.generation.ports import MountEntry, Namespace
from activitygen.generation.schema import parse_input
from activitygen.infrastructure.memory import InMemoryActivityLog
from activitygen.infrastructure.registry import InMemoryRegistry


@pytest.fixture
def registry():
    """
    root: token auth + kv, ns1: userpass + kv, ns2: no mounts at all.
    """
    return InMemoryRegistry(
        namespaces=[Namespace("root"), Namespace("ns1", "ns1/"), Namespace("ns2", "ns2/")],
        mounts=[
            MountEntry("root", "auth_token_root", "auth/token/"),
            MountEntry("root", "kv_root", "secret/"),
            MountEntry("ns1", "auth_userpass_ns1", "auth/userpass/"),
            MountEntry("ns1", "kv_ns1", "secret/"),
        ],
    )


@pytest.fixture
def activity_log():
    return InMemoryActivityLog()


@pytest.fixture
def generate(registry):
    """Build the month pools for a raw (dict) request."""
    def _generate(payload: dict) -> ActivityMonths:
        payload = {"write": ["WRITE_ENTITIES"], **payload}
        return ActivityMonths.from_input(parse_input(payload), registry, registry)
    return _generate


@pytest_asyncio.fixture
async def client(activity_log, registry):
    """
    HTTP client calling the FastAPI app through ASGITransport, with the
    in-memory activity log and the test registry swapped in.
    """
    app.dependency_overrides[get_activity_log] = lambda: activity_log
    app.dependency_overrides[get_registry] = lambda: registry
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
