"""Google Analytics reporting over the Measurement Protocol."""

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

import httpx
from starlette.requests import Request
from starlette.responses import Response

from mdblog.models.blog import ConnInfo

logger = logging.getLogger(__name__)

GA_COLLECT_URL = "https://www.google-analytics.com/collect"

# Measurement Protocol truncates exception descriptions past this length
MAX_EXCEPTION_DESCRIPTION = 150

Reporter = Callable[
    [Request, ConnInfo, Response, float, BaseException | None], Awaitable[None]
]

# Module-level shared client (created lazily, lives for the process lifetime)
_client: httpx.AsyncClient | None = None


def get_shared_client() -> httpx.AsyncClient:
    """Return a shared httpx.AsyncClient, creating it on first call."""
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(timeout=10.0)
    return _client


async def close_shared_client() -> None:
    global _client
    if _client is not None and not _client.is_closed:
        await _client.aclose()
    _client = None


def client_id(request: Request, conn_info: ConnInfo) -> str:
    """Stable anonymous visitor ID derived from address and user agent."""
    ip = conn_info.remote_addr[0] if conn_info.remote_addr else ""
    user_agent = request.headers.get("user-agent", "")
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{ip}|{user_agent}"))


def build_hit(
    ga_key: str,
    request: Request,
    conn_info: ConnInfo,
    response: Response,
    start: float,
    error: BaseException | None = None,
) -> dict[str, str]:
    """Measurement Protocol payload for one served request.

    *start* is a ``time.perf_counter()`` reading taken before the request
    was handled.
    """
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    hit = {
        "v": "1",
        "tid": ga_key,
        "cid": client_id(request, conn_info),
        "t": "pageview",
        "dl": str(request.url),
        "dh": request.url.hostname or "",
        "dp": request.url.path,
        "srt": str(elapsed_ms),
        "cd1": str(response.status_code),
    }
    if referrer := request.headers.get("referer"):
        hit["dr"] = referrer
    if user_agent := request.headers.get("user-agent"):
        hit["ua"] = user_agent
    if conn_info.remote_addr:
        hit["uip"] = conn_info.remote_addr[0]
    if error is not None:
        hit["t"] = "exception"
        hit["exd"] = f"{type(error).__name__}: {error}"[:MAX_EXCEPTION_DESCRIPTION]
        hit["exf"] = "1"
    return hit


def create_reporter(ga_key: str) -> Reporter:
    """Return a coroutine function that reports a request to *ga_key*.

    Delivery failures are logged and never propagate to the caller.
    """

    async def report(
        request: Request,
        conn_info: ConnInfo,
        response: Response,
        start: float,
        error: BaseException | None = None,
    ) -> None:
        hit = build_hit(ga_key, request, conn_info, response, start, error)
        try:
            resp = await get_shared_client().post(GA_COLLECT_URL, data=hit)
            if resp.status_code >= 400:
                logger.warning("GA collect returned %d for %s", resp.status_code, hit["dp"])
        except httpx.HTTPError as e:
            logger.warning("Could not report %s to GA: %s", hit["dp"], e)

    return report
