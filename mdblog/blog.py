"""Blog assembly: configuration merge and the objects one blog instance owns."""

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from mdblog.config import ConfigurationError, get_settings
from mdblog.middleware import compose_middlewares
from mdblog.models.blog import BlogSettings, BlogState
from mdblog.routers.blog import BlogHandler
from mdblog.services.livereload import LiveReloadHub
from mdblog.services.loader import ContentLoader
from mdblog.services.store import PostStore

logger = logging.getLogger(__name__)


def configure_blog(
    settings: BlogSettings | Mapping[str, Any] | None = None,
    directory: str | Path | None = None,
    **overrides: Any,
) -> BlogState:
    """Merge defaults, *settings* and *overrides* into a BlogState.

    The content root is the first of: *directory*, the ``root_directory``
    option, ``MDBLOG_CONTENT_ROOT``, the current working directory.

    Raises:
        ConfigurationError: If the content root is not an existing directory.
        pydantic.ValidationError: On unknown option keys or bad values.
    """
    if isinstance(settings, BlogSettings):
        merged = settings.model_dump(exclude_unset=True)
    else:
        merged = dict(settings or {})
    merged.update(overrides)
    blog_settings = BlogSettings(**merged)

    root = (
        directory
        or blog_settings.root_directory
        or get_settings().content_root
        or Path.cwd()
    )
    root = Path(root).expanduser().resolve()
    if not root.is_dir():
        raise ConfigurationError(f"Content root {root} is not a directory")

    logger.info("Serving blog %r from %s", blog_settings.title, root)
    return BlogState(**merged, directory=root)


class Blog:
    """Everything one blog instance owns, wired together.

    Usage::

        blog = Blog(configure_blog({"title": "Notes"}), dev=True)
        await blog.loader.load_all()
        response = await blog.entrypoint(request, conn_info)
    """

    def __init__(
        self,
        state: BlogState,
        *,
        dev: bool = False,
        store: PostStore | None = None,
        hub: LiveReloadHub | None = None,
    ) -> None:
        self.state = state
        self.dev = dev
        self.store = store if store is not None else PostStore()
        self.hub = hub if hub is not None else LiveReloadHub()
        self.loader = ContentLoader(state.posts_directory, self.store, hub=self.hub)
        self.handler = BlogHandler(state, self.store, dev=dev)
        self.entrypoint = compose_middlewares(state.middlewares, self.handler, state)
