import pytest
import structlog
from httpx import AsyncClient, ASGITransport

from activitygen.shared.middleware import RequestIDMiddleware


async def _context_app(scope, receive, send):
    """Respond with the structlog context bound while handling the request."""
    ctx = structlog.contextvars.get_contextvars()
    body = f"{ctx.get('request_id')} {ctx.get('method')} {ctx.get('path')}".encode()
    await send({"type": "http.response.start", "status": 200, "headers": [(b"content-type", b"text/plain")]})
    await send({"type": "http.response.body", "body": body})


@pytest.mark.asyncio
async def test_request_context_is_bound_and_id_echoed():
    transport = ASGITransport(app=RequestIDMiddleware(_context_app))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        r = await ac.post("/activity/write", headers={"X-Request-ID": "req-42"})

    assert r.headers["X-Request-ID"] == "req-42"
    assert r.text == "req-42 POST /activity/write"
    assert structlog.contextvars.get_contextvars() == {}


@pytest.mark.asyncio
async def test_request_id_is_generated_when_missing(client):
    r = await client.get("/healthz")
    first = r.headers["X-Request-ID"]

    r = await client.get("/healthz")

    assert first
    assert r.headers["X-Request-ID"] != first
