"""Starter files for a new blog."""

import logging
from datetime import date
from pathlib import Path

logger = logging.getLogger(__name__)

FIRST_POST_TEMPLATE = """\
---
title: Hello world!
publish_date: {today}
tags: [meta]
---

This is my first blog post!
"""

CONFIG_TEMPLATE = """\
title: My Blog
description: This is my new blog.
author: An author
avatar: https://deno-avatar.deno.dev/avatar/blog.svg
avatar_class: rounded-full

# Paste a Google Analytics key here to report page views.
# ga_key: UA-XXXXXXXX-X

# Paths on the left redirect (307) to paths on the right.
# redirects:
#   /hello_world.html: /hello_world
"""


class DirectoryNotEmptyError(FileExistsError):
    """Raised when scaffolding into a non-empty directory without ``force``."""


def init_blog(directory: str | Path, *, force: bool = False) -> list[Path]:
    """Write a starter blog into *directory*, creating it if needed.

    Returns the files written.

    Raises:
        DirectoryNotEmptyError: If *directory* has content and *force* is false.
    """
    directory = Path(directory).expanduser().resolve()
    if directory.is_dir() and any(directory.iterdir()) and not force:
        raise DirectoryNotEmptyError(f"{directory} is not empty")

    logger.info("Initializing blog in %s", directory)
    (directory / "posts").mkdir(parents=True, exist_ok=True)

    files = {
        directory / "posts" / "hello_world.md": FIRST_POST_TEMPLATE.format(
            today=date.today().isoformat()
        ),
        directory / "blog.yaml": CONFIG_TEMPLATE,
    }
    for path, content in files.items():
        path.write_text(content, encoding="utf-8")
    return list(files)
