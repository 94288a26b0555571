"""In-memory post store keyed by URL pathname."""

import logging
import threading

from mdblog.models.post import Post

logger = logging.getLogger(__name__)


class PostStore:
    """Mapping from pathname to Post.

    Posts are immutable and replaced wholesale, so readers always see a
    complete Post for any key. Writes take a lock so that a loader running
    in another thread cannot interleave with a snapshot.

    Usage::

        store = PostStore()
        store.upsert(post)
        store.lookup("/hello")  # Post or None
    """

    def __init__(self) -> None:
        self._posts: dict[str, Post] = {}
        self._lock = threading.Lock()

    def upsert(self, post: Post) -> None:
        """Insert *post*, replacing any entry at the same pathname.

        When the existing entry came from a different source file the newer
        one wins and a warning is logged.
        """
        with self._lock:
            existing = self._posts.get(post.pathname)
            self._posts[post.pathname] = post
        if existing is not None and existing.source != post.source:
            logger.warning(
                "Duplicate pathname %s: %s replaces %s",
                post.pathname,
                post.source,
                existing.source,
            )

    def lookup(self, pathname: str) -> Post | None:
        return self._posts.get(pathname)

    def all(self) -> list[Post]:
        """Snapshot of every post, in no particular order."""
        with self._lock:
            return list(self._posts.values())

    def filter_by_tag(self, tag: str | None) -> list[Post]:
        """Posts tagged *tag*; every post when *tag* is empty."""
        posts = self.all()
        if not tag:
            return posts
        return [p for p in posts if tag in p.tags]

    def __len__(self) -> int:
        return len(self._posts)

    def __contains__(self, pathname: object) -> bool:
        return pathname in self._posts


def newest_first(posts: list[Post]) -> list[Post]:
    """Sort posts for display, most recently published first."""
    return sorted(posts, key=lambda p: p.publish_date, reverse=True)
