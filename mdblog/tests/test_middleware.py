"""Tests for middleware composition and the bundled middlewares."""

import pytest
from starlette.requests import Request
from starlette.responses import PlainTextResponse

from mdblog.config import ConfigurationError
from mdblog.middleware import compose_middlewares, ga, redirects, resolve_redirect
from mdblog.models.blog import BlogState, ConnInfo

CONN = ConnInfo(remote_addr=("203.0.113.7", 51000), local_addr=("127.0.0.1", 8000))


def make_request(path: str = "/", headers: dict[str, str] | None = None) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "scheme": "https",
        "server": ("blog.example.com", 443),
        "path": path,
        "root_path": "",
        "query_string": b"",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
    }
    return Request(scope)


@pytest.fixture
def state(tmp_path) -> BlogState:
    return BlogState(directory=tmp_path)


async def handler(request: Request) -> PlainTextResponse:
    return PlainTextResponse(f"handled {request.url.path}")


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


async def test_no_middlewares_calls_handler(state):
    entrypoint = compose_middlewares([], handler, state)

    response = await entrypoint(make_request("/x"), CONN)

    assert response.body == b"handled /x"


async def test_first_declared_middleware_is_outermost(state):
    calls: list[str] = []

    def recorder(name):
        async def middleware(request, ctx):
            calls.append(f"{name} in")
            response = await ctx.next()
            calls.append(f"{name} out")
            return response

        return middleware

    entrypoint = compose_middlewares([recorder("a"), recorder("b")], handler, state)
    await entrypoint(make_request(), CONN)

    assert calls == ["a in", "b in", "b out", "a out"]


async def test_middleware_can_short_circuit(state):
    inner_called = False

    async def gate(request, ctx):
        return PlainTextResponse("blocked", status_code=403)

    async def inner(request, ctx):
        nonlocal inner_called
        inner_called = True
        return await ctx.next()

    entrypoint = compose_middlewares([gate, inner], handler, state)
    response = await entrypoint(make_request(), CONN)

    assert response.status_code == 403
    assert inner_called is False


async def test_context_carries_state_and_connection(state):
    seen = {}

    async def inspect(request, ctx):
        seen["state"] = ctx.state
        seen["conn"] = ctx.conn_info
        return await ctx.next()

    entrypoint = compose_middlewares([inspect], handler, state)
    await entrypoint(make_request(), CONN)

    assert seen == {"state": state, "conn": CONN}


async def test_errors_become_500(state):
    async def broken_handler(request):
        raise ValueError("boom")

    entrypoint = compose_middlewares([], broken_handler, state)
    response = await entrypoint(make_request(), CONN)

    assert response.status_code == 500
    assert response.body == b"Internal Server Error: boom"


# ---------------------------------------------------------------------------
# redirects
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "pathname,expected",
    [
        ("/old", "/new"),
        ("/legacy.html", "/new"),
        ("/absolute", "/elsewhere"),
        ("/external", "https://example.org/page"),
        ("/unmapped", None),
    ],
)
def test_resolve_redirect(pathname, expected):
    redirect_map = {
        "/old": "new",
        "legacy.html": "new",
        "/absolute": "/elsewhere",
        "external": "https://example.org/page",
    }

    assert resolve_redirect(redirect_map, pathname) == expected


async def test_redirects_middleware(state):
    entrypoint = compose_middlewares([redirects({"/old": "new"})], handler, state)

    response = await entrypoint(make_request("/old"), CONN)
    assert response.status_code == 307
    assert response.headers["location"] == "/new"

    response = await entrypoint(make_request("/other"), CONN)
    assert response.status_code == 200


# ---------------------------------------------------------------------------
# ga
# ---------------------------------------------------------------------------


def test_ga_requires_a_key():
    with pytest.raises(ConfigurationError, match="GA key cannot be empty."):
        ga("")


async def test_ga_reports_successful_requests(state, mocker):
    reporter = mocker.AsyncMock()
    entrypoint = compose_middlewares([ga("UA-1", reporter=reporter)], handler, state)
    request = make_request("/page")

    response = await entrypoint(request, CONN)

    assert response.status_code == 200
    reporter.assert_awaited_once()
    args = reporter.await_args.args
    assert args[0] is request
    assert args[1] == CONN
    assert args[2] is response
    assert args[4] is None


async def test_ga_reports_downstream_errors(state, mocker):
    reporter = mocker.AsyncMock()

    async def broken_handler(request):
        raise RuntimeError("kaput")

    entrypoint = compose_middlewares([ga("UA-1", reporter=reporter)], broken_handler, state)
    response = await entrypoint(make_request(), CONN)

    assert response.status_code == 500
    assert b"kaput" in response.body
    reported_response, error = reporter.await_args.args[2], reporter.await_args.args[4]
    assert reported_response.status_code == 500
    assert isinstance(error, RuntimeError)
