"""Blog middleware: composable request interceptors around the blog handler.

A middleware is an async function ``(request, ctx) -> Response``. Calling
``await ctx.next()`` runs the rest of the chain; returning without calling
it short-circuits. Middlewares run in declaration order: the first one
listed is the outermost and the blog handler is the innermost link.
"""

import logging
import re
import time
import uuid
from collections.abc import Awaitable, Callable, Sequence
from contextvars import ContextVar
from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response

from mdblog.config import ConfigurationError
from mdblog.models.blog import BlogState, ConnInfo
from mdblog.services.analytics import Reporter, create_reporter

logger = logging.getLogger(__name__)

Handler = Callable[[Request], Awaitable[Response]]
EntryPoint = Callable[[Request, ConnInfo], Awaitable[Response]]

_URL_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")

# Context var accessible from anywhere during a request lifecycle
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


@dataclass(frozen=True)
class BlogContext:
    """What a middleware sees besides the request."""

    state: BlogState
    conn_info: ConnInfo
    next: Callable[[], Awaitable[Response]]


BlogMiddleware = Callable[[Request, BlogContext], Awaitable[Response]]


def error_response(exc: BaseException) -> Response:
    """500 response carrying the error message."""
    message = str(exc) or type(exc).__name__
    return PlainTextResponse(f"Internal Server Error: {message}", status_code=500)


def _wrap(middleware: BlogMiddleware, inner: EntryPoint, state: BlogState) -> EntryPoint:
    async def link(request: Request, conn_info: ConnInfo) -> Response:
        ctx = BlogContext(
            state=state,
            conn_info=conn_info,
            next=lambda: inner(request, conn_info),
        )
        return await middleware(request, ctx)

    return link


def compose_middlewares(
    middlewares: Sequence[BlogMiddleware],
    handler: Handler,
    state: BlogState,
) -> EntryPoint:
    """Build the single per-request entry point.

    The chain is assembled once, innermost first. Any exception escaping it
    is logged and turned into a 500 so one failing request never takes the
    server down.
    """

    async def innermost(request: Request, conn_info: ConnInfo) -> Response:
        return await handler(request)

    chain: EntryPoint = innermost
    for middleware in reversed(middlewares):
        chain = _wrap(middleware, chain, state)

    async def entrypoint(request: Request, conn_info: ConnInfo) -> Response:
        try:
            return await chain(request, conn_info)
        except Exception as e:
            logger.exception(
                "Unhandled error for %s (request %s)",
                request.url.path,
                request_id_var.get(),
            )
            return error_response(e)

    return entrypoint


def resolve_redirect(redirect_map: dict[str, str], pathname: str) -> str | None:
    """Target for *pathname*, trying it with and without the leading slash.

    Relative targets are made root-relative; targets that already start
    with ``/`` or a URL scheme are returned unchanged.
    """
    target = redirect_map.get(pathname) or redirect_map.get(pathname[1:])
    if not target:
        return None
    if target.startswith("/") or _URL_SCHEME_RE.match(target):
        return target
    return "/" + target


def redirects(redirect_map: dict[str, str]) -> BlogMiddleware:
    """Middleware answering mapped paths with a 307 redirect."""
    redirect_map = dict(redirect_map)

    async def redirect_middleware(request: Request, ctx: BlogContext) -> Response:
        target = resolve_redirect(redirect_map, request.scope["path"])
        if target:
            return RedirectResponse(target, status_code=307)
        return await ctx.next()

    return redirect_middleware


def ga(ga_key: str, *, reporter: Reporter | None = None) -> BlogMiddleware:
    """Middleware reporting every request to Google Analytics.

    Failures further down the chain are reported too: the error is recorded
    with a substituted 500 response, and that 500 is what the client gets.

    Raises:
        ConfigurationError: If *ga_key* is empty.
    """
    if not ga_key:
        raise ConfigurationError("GA key cannot be empty.")

    report = reporter or create_reporter(ga_key)

    async def ga_middleware(request: Request, ctx: BlogContext) -> Response:
        error: Exception | None = None
        start = time.perf_counter()
        try:
            response = await ctx.next()
        except Exception as e:
            logger.exception("Unhandled error for %s", request.url.path)
            error = e
            response = error_response(e)
        await report(request, ctx.conn_info, response, start, error)
        return response

    return ga_middleware


# ---------------------------------------------------------------------------
# ASGI middleware installed on the FastAPI app, outside the blog chain
# ---------------------------------------------------------------------------


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach a unique request ID to every request/response cycle.

    Reads ``X-Request-ID`` from the incoming request headers; if absent,
    generates a new UUID4. The ID is stored in a context variable so that
    error logging can include it, and is echoed back as ``X-Request-ID``.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request_id_var.set(rid)

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add standard security headers to every response."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response
