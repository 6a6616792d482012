"""ASGI middleware: request ids, path base stripping and the API-key gate."""
import logging
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"
HEALTH_PATH = "/healthz"


def _route_path(scope: Scope) -> str:
    root = scope.get("root_path", "")
    path = scope["path"]
    if root and path.startswith(root):
        return path[len(root):] or "/"
    return path


class RequestIdMiddleware:
    """Echo the caller's X-Request-Id, or mint one, on every response."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = Headers(scope=scope).get(REQUEST_ID_HEADER, "").strip() or uuid.uuid4().hex
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        await self.app(scope, receive, send_with_id)


class PathBaseMiddleware:
    """Serve the app under PATH_BASE; anything outside it is a 404.

    The prefix moves into ``root_path`` and ``path`` stays complete, so
    routing and generated URLs see the usual ASGI layout.
    """

    def __init__(self, app: ASGIApp, path_base: str):
        self.app = app
        self.path_base = path_base

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.path_base:
            await self.app(scope, receive, send)
            return

        path = scope["path"]
        base = self.path_base
        if path.lower() == base.lower() or path.lower().startswith(base.lower() + "/"):
            scope = dict(scope)
            scope["root_path"] = scope.get("root_path", "") + path[:len(base)]
            await self.app(scope, receive, send)
            return

        response = JSONResponse(
            {"error": "not_found", "detail": f"Path is outside {base}"}, status_code=404
        )
        await response(scope, receive, send)


class ApiKeyMiddleware:
    """Require one of the configured API keys on every route except the health probe.

    Disabled when no keys are configured.
    """

    def __init__(self, app: ASGIApp, header: str, keys: list[str]):
        self.app = app
        self.header = header
        self.keys = frozenset(keys)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not self.keys or _route_path(scope) == HEALTH_PATH:
            await self.app(scope, receive, send)
            return

        provided = Headers(scope=scope).get(self.header, "").strip()
        if not provided:
            response = JSONResponse(
                {"error": "missing_api_key", "detail": f"{self.header} header is required"},
                status_code=401,
            )
        elif provided not in self.keys:
            logger.warning(f"Rejected request with invalid API key for {scope['path']}")
            response = JSONResponse(
                {"error": "invalid_api_key", "detail": "API key is not valid"}, status_code=403
            )
        else:
            await self.app(scope, receive, send)
            return
        await response(scope, receive, send)
