"""
mdblog server

Serves Markdown posts from ``<root>/posts`` as HTML pages, an index and an
Atom feed, falling back to static files under the content root.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import uvicorn
from fastapi import FastAPI

from mdblog.blog import Blog, configure_blog
from mdblog.config import get_settings
from mdblog.middleware import RequestIDMiddleware, SecurityHeadersMiddleware
from mdblog.models.blog import BlogSettings
from mdblog.routers.blog import build_router
from mdblog.services.analytics import close_shared_client

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Load posts on startup; in dev mode keep them in sync with disk."""
    blog: Blog = app.state.blog
    await blog.loader.load_all()

    stop_watching = asyncio.Event()
    watch_task: asyncio.Task[None] | None = None
    if blog.dev:
        watch_task = asyncio.create_task(blog.loader.watch(stop_event=stop_watching))

    yield

    if watch_task is not None:
        stop_watching.set()
        await watch_task
    await close_shared_client()


def create_app(blog: Blog) -> FastAPI:
    """FastAPI application hosting *blog*.

    API docs routes are disabled so that every path belongs to the blog.
    """
    app = FastAPI(
        title=blog.state.title,
        version=VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.blog = blog

    app.add_middleware(SecurityHeadersMiddleware)
    # Request ID (added last, so it runs first as the outermost middleware)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(build_router(dev=blog.dev))
    return app


def serve(
    settings: BlogSettings | Mapping[str, Any] | None = None,
    directory: str | Path | None = None,
    *,
    dev: bool | None = None,
) -> None:
    """Configure a blog and serve it until interrupted."""
    server_settings = get_settings()
    if dev is None:
        dev = server_settings.dev

    state = configure_blog(settings, directory)
    app = create_app(Blog(state, dev=dev))

    host = state.hostname or server_settings.hostname
    port = state.port or server_settings.port
    logger.info("Listening on http://%s:%d%s", host, port, " (dev)" if dev else "")
    uvicorn.run(app, host=host, port=port, log_level=server_settings.log_level.lower())
