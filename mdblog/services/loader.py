"""Content loader: reads Markdown posts from disk into the post store.

Performs the initial bulk load and, in development mode, watches the posts
directory so that edited or new files are reloaded and connected browsers
are told to refresh.
"""

import asyncio
import logging
import re
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any

import anyio
import anyio.to_thread
import frontmatter
import yaml
from watchfiles import Change, awatch

from mdblog.config import get_settings
from mdblog.models.post import Post
from mdblog.services.livereload import REFRESH_MESSAGE, LiveReloadHub
from mdblog.services.snippet import estimate_read_time, extract_snippet
from mdblog.services.store import PostStore

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSION = ".md"

# Front-matter keys copied onto the Post unchanged
_PASSTHROUGH_KEYS = (
    "author",
    "cover_html",
    "background",
    "render_math",
    "allow_iframes",
    "disable_html_sanitization",
)

# Opening delimiter on the first line, closing delimiter on its own line.
# Everything after the closing line is the body, byte for byte.
_FRONT_MATTER_RE = re.compile(
    r"\A\ufeff?---[ \t]*\r?\n(.*?)^---[ \t]*(?:\r?\n|\Z)", re.DOTALL | re.MULTILINE
)

_YAML_HANDLER = frontmatter.YAMLHandler()


class FrontMatterLoader(yaml.SafeLoader):
    """SafeLoader that leaves timestamps as strings.

    Dates are parsed by ``parse_publish_date`` so that an impossible date
    falls back instead of failing the whole document.
    """


FrontMatterLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:timestamp"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def parse_publish_date(value: Any) -> datetime | None:
    """Parse a front-matter date; None when absent or malformed.

    Front matter hands dates over as strings; ``date``/``datetime`` objects
    are accepted too.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def parse_tags(value: Any) -> list[str]:
    """Accept tags as a YAML list or a comma-separated string."""
    if not value:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple, set)):
        items = [str(v) for v in value]
    else:
        items = [str(value)]
    return [item.strip() for item in items if item.strip()]


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Split *text* into its front-matter mapping and its body.

    The body is returned exactly as it appears after the closing
    delimiter line. Text without a front-matter block is all body.

    Raises:
        yaml.YAMLError: If the front-matter block is not valid YAML.
    """
    match = _FRONT_MATTER_RE.match(text)
    if match is None:
        return {}, text
    metadata = _YAML_HANDLER.load(match.group(1), Loader=FrontMatterLoader)
    if not isinstance(metadata, dict):
        metadata = {}
    return metadata, text[match.end():]


def pathname_for(posts_directory: Path, path: Path) -> str:
    """URL path for a post file: relative to the posts root, extension stripped."""
    relative = path.relative_to(posts_directory).as_posix()
    return "/" + relative[: -len(MARKDOWN_EXTENSION)]


def build_post(posts_directory: Path, path: Path, text: str, mtime: float) -> Post:
    """Build a Post from the raw contents of *path*.

    A missing or malformed publish date falls back to the file's
    modification time, so reloading an unchanged file yields the same Post.

    Raises:
        yaml.YAMLError: If the front-matter block is not valid YAML.
        ValueError: If *path* is outside *posts_directory* or a field has
            the wrong type.
    """
    metadata, body = split_front_matter(text)

    raw_date = metadata.get("publish_date", metadata.get("date"))
    publish_date = parse_publish_date(raw_date)
    if publish_date is None:
        if raw_date is None:
            logger.warning("No publish_date in %s, using file mtime", path)
        else:
            logger.warning("Invalid publish_date %r in %s, using file mtime", raw_date, path)
        publish_date = datetime.fromtimestamp(mtime, tz=timezone.utc)

    snippet = metadata.get("snippet")
    if not snippet:
        snippet = extract_snippet(body)

    fields: dict[str, Any] = {
        key: metadata[key] for key in _PASSTHROUGH_KEYS if metadata.get(key) is not None
    }
    fields["og_image"] = metadata.get("og:image") or metadata.get("og_image")

    return Post(
        # Front-matter may override the path derived from the file name
        pathname=str(metadata.get("pathname") or pathname_for(posts_directory, path)),
        title=str(metadata.get("title") or "Untitled"),
        publish_date=publish_date,
        snippet=str(snippet),
        markdown=body,
        tags=parse_tags(metadata.get("tags")),
        read_time=metadata.get("read_time") or estimate_read_time(body),
        source=str(path),
        **fields,
    )


def _is_markdown_change(change: Change, path: str) -> bool:
    # Deletions are not handled; removed files stay served until restart
    return change != Change.deleted and path.endswith(MARKDOWN_EXTENSION)


class ContentLoader:
    """Populates a PostStore from ``<root>/posts/**/*.md``."""

    def __init__(
        self,
        posts_directory: Path,
        store: PostStore,
        *,
        hub: LiveReloadHub | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self.posts_directory = Path(posts_directory).resolve()
        self.store = store
        self.hub = hub
        self.max_concurrency = max_concurrency or get_settings().load_concurrency

    def _discover(self) -> list[Path]:
        return sorted(
            p
            for p in self.posts_directory.rglob(f"*{MARKDOWN_EXTENSION}")
            if p.is_file()
        )

    async def load_one(self, path: str | Path) -> Post | None:
        """Load and upsert a single file. Returns None if it was skipped."""
        path = Path(path)
        if not path.is_absolute():
            path = self.posts_directory / path
        try:
            file = anyio.Path(path)
            # Decoded by hand so line endings reach the body untouched
            text = (await file.read_bytes()).decode("utf-8")
            stat = await file.stat()
            post = build_post(self.posts_directory, path, text, stat.st_mtime)
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning("Skipping %s: %s", path, e)
            return None

        self.store.upsert(post)
        logger.info("Loaded %s", post.pathname)
        return post

    async def load_all(self) -> int:
        """Load every Markdown file under the posts directory.

        Files are read concurrently, bounded by ``max_concurrency``.
        Returns the number of posts loaded.
        """
        if not self.posts_directory.is_dir():
            logger.warning("Posts directory %s not found", self.posts_directory)
            return 0

        paths = await anyio.to_thread.run_sync(self._discover)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def _bounded(path: Path) -> Post | None:
            async with semaphore:
                return await self.load_one(path)

        results = await asyncio.gather(*[_bounded(p) for p in paths])
        loaded = sum(1 for r in results if r is not None)
        logger.info(
            "Loaded %d of %d posts from %s", loaded, len(paths), self.posts_directory
        )
        return loaded

    async def watch(self, stop_event: asyncio.Event | None = None) -> None:
        """Reload changed posts until *stop_event* is set.

        Never raises: if the watch fails (e.g. the directory is removed) the
        error is logged and the loop ends, leaving the loaded posts in place.
        """
        logger.info("Watching %s for changes", self.posts_directory)
        try:
            async for changes in awatch(
                self.posts_directory,
                watch_filter=_is_markdown_change,
                stop_event=stop_event,
            ):
                reloaded = 0
                for _change, path in sorted(changes, key=lambda c: c[1]):
                    if await self.load_one(path) is not None:
                        reloaded += 1
                if reloaded and self.hub is not None:
                    await self.hub.broadcast(REFRESH_MESSAGE)
        except Exception:
            logger.exception("Stopped watching %s", self.posts_directory)
