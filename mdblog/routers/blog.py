"""Blog request handling.

``BlogHandler`` resolves a request against an ordered decision list, first
match wins:

1. trailing slash        -> 307 to the same URL without it
2. configured redirects  -> 307 to the mapped target
3. ``/feed``             -> Atom feed
4. ``/static/highlight.css``
5. dev only: ``/hmr.js`` and ``/hmr`` (WebSocket upgrade)
6. ``/``                 -> index, optionally filtered by ``?tag=``
7. post pathname         -> post page, or raw Markdown for ``Accept: text/plain``
8. static files under ``<root>/posts`` then ``<root>``
"""

import logging
from urllib.parse import quote

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import PlainTextResponse, RedirectResponse, Response
from starlette.staticfiles import StaticFiles

from mdblog.middleware import resolve_redirect
from mdblog.models.blog import BlogState, ConnInfo
from mdblog.services.feed import FEED_CONTENT_TYPE, build_atom_feed
from mdblog.services.livereload import client_script
from mdblog.services.pages import (
    HIGHLIGHT_CSS_PATH,
    HMR_SCRIPT_PATH,
    render_index,
    render_post,
)
from mdblog.services.render import highlight_css
from mdblog.services.store import PostStore, newest_first

logger = logging.getLogger(__name__)

FEED_PATH = "/feed"
HMR_SOCKET_PATH = "/hmr"
INDEX_PATH = "/"


def wants_plain_text(request: Request) -> bool:
    return "text/plain" in request.headers.get("accept", "")


class BlogHandler:
    """Innermost link of the middleware chain."""

    def __init__(self, state: BlogState, store: PostStore, *, dev: bool = False) -> None:
        self.state = state
        self.store = store
        self.dev = dev
        self._post_files = StaticFiles(directory=state.posts_directory, check_dir=False)
        self._root_files = StaticFiles(directory=state.directory, check_dir=False)

    async def __call__(self, request: Request) -> Response:
        # ASGI servers hand over the path already percent-decoded; request.url
        # would re-parse it and cut it at a decoded "?" or "#"
        pathname = request.scope["path"]

        if len(pathname) > 1 and pathname.endswith("/"):
            location = f"{request.url.scheme}://{request.url.netloc}{quote(pathname[:-1])}"
            if query := request.scope.get("query_string", b"").decode("latin-1"):
                location = f"{location}?{query}"
            return RedirectResponse(location, status_code=307)

        target = resolve_redirect(self.state.redirect_map, pathname)
        if target:
            return RedirectResponse(target, status_code=307)

        if pathname == FEED_PATH:
            return self.feed(request)

        if pathname == HIGHLIGHT_CSS_PATH:
            return Response(highlight_css(), media_type="text/css")

        if self.dev:
            if pathname == HMR_SCRIPT_PATH:
                return Response(client_script(), media_type="application/javascript")
            if pathname == HMR_SOCKET_PATH:
                return PlainTextResponse("Upgrade Required", status_code=426)

        if pathname == INDEX_PATH:
            tag = request.query_params.get("tag") or None
            posts = newest_first(self.store.filter_by_tag(tag))
            return render_index(request, self.state, posts, hmr=self.dev, tag=tag)

        post = self.store.lookup(pathname)
        if post is not None:
            if wants_plain_text(request):
                return PlainTextResponse(post.markdown)
            return render_post(request, self.state, post, hmr=self.dev)

        return await self.serve_static(request)

    def feed(self, request: Request) -> Response:
        origin = f"{request.url.scheme}://{request.url.netloc}"
        xml = build_atom_feed(origin, self.state, self.store.all())
        return Response(xml, headers={"content-type": FEED_CONTENT_TYPE})

    async def serve_static(self, request: Request) -> Response:
        """Serve from ``posts/`` first, then the content root."""
        try:
            path = self._post_files.get_path(request.scope)
            return await self._post_files.get_response(path, request.scope)
        except HTTPException as exc:
            if exc.status_code != 404:
                return PlainTextResponse(str(exc.detail), status_code=exc.status_code)

        try:
            path = self._root_files.get_path(request.scope)
            return await self._root_files.get_response(path, request.scope)
        except HTTPException as exc:
            return PlainTextResponse(str(exc.detail), status_code=exc.status_code)


def connection_info(request: Request) -> ConnInfo:
    server = request.scope.get("server")
    return ConnInfo(
        remote_addr=(request.client.host, request.client.port) if request.client else None,
        local_addr=tuple(server) if server else None,
    )


def build_router(dev: bool = False) -> APIRouter:
    """Routes hosting the blog; the blog itself lives on ``app.state.blog``."""
    router = APIRouter()

    if dev:

        @router.websocket(HMR_SOCKET_PATH)
        async def hmr_socket(websocket: WebSocket) -> None:
            """Register the connection as a live-reload listener until it closes."""
            hub = websocket.app.state.blog.hub
            await websocket.accept()
            hub.add(websocket)
            try:
                while True:
                    await websocket.receive_text()
            except WebSocketDisconnect:
                pass
            finally:
                hub.discard(websocket)

    @router.api_route(
        "/{full_path:path}", methods=["GET", "HEAD"], include_in_schema=False
    )
    async def dispatch(request: Request, full_path: str) -> Response:
        """Run every GET through the blog's middleware chain."""
        return await request.app.state.blog.entrypoint(request, connection_info(request))

    return router
