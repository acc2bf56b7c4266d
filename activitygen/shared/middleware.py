from uuid import uuid4

from starlette.types import ASGIApp, Receive, Scope, Send
import structlog

log = structlog.get_logger()


class RequestIDMiddleware:
    """
    Echo or assign X-Request-ID and bind it, with the request method and
    path, to the structlog context for the lifetime of the request.
    """

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID") -> None:
        self.app = app
        self.header_name = header_name

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = {k.decode().lower(): v.decode() for k, v in scope.get("headers", [])}
        req_id = headers.get(self.header_name.lower()) or str(uuid4())

        structlog.contextvars.bind_contextvars(
            request_id=req_id,
            method=scope.get("method", ""),
            path=scope.get("path", ""),
        )

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                headers_list = message.setdefault("headers", [])
                headers_list.append((self.header_name.encode(), req_id.encode()))
            return await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            structlog.contextvars.clear_contextvars()
