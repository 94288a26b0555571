"""Atom feed generation for the blog."""

import mimetypes
import xml.etree.ElementTree as ET
from datetime import datetime, timezone

from mdblog.models.blog import BlogState
from mdblog.models.post import Post
from mdblog.services.store import newest_first

ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"
FEED_CONTENT_TYPE = "application/atom+xml; charset=utf-8"
GENERATOR = "mdblog"


def split_authors(author: str | None) -> list[str]:
    """``"Ada, Grace "`` -> ``["Ada", "Grace"]``."""
    if not author:
        return []
    return [name.strip() for name in author.split(",") if name.strip()]


def _add_entry(root: ET.Element, origin: str, post: Post, rights: str) -> None:
    link = f"{origin}{post.pathname}"
    published = post.publish_date.isoformat()

    entry = ET.SubElement(root, "entry")
    ET.SubElement(entry, "id").text = link
    ET.SubElement(entry, "title", type="text").text = post.title
    ET.SubElement(entry, "link", rel="alternate", type="text/html", href=link)
    ET.SubElement(entry, "updated").text = published
    ET.SubElement(entry, "published").text = published
    ET.SubElement(entry, "summary", type="text").text = post.snippet
    for name in split_authors(post.author):
        author = ET.SubElement(entry, "author")
        ET.SubElement(author, "name").text = name
    for tag in post.tags:
        ET.SubElement(entry, "category", term=tag)
    if post.og_image:
        image_type, _ = mimetypes.guess_type(post.og_image)
        ET.SubElement(
            entry,
            "link",
            rel="enclosure",
            type=image_type or "image/*",
            href=post.og_image,
        )
    ET.SubElement(entry, "rights").text = rights


def build_atom_feed(origin: str, state: BlogState, posts: list[Post]) -> str:
    """Serialize *posts* as an Atom 1.0 document.

    Args:
        origin: Scheme and host of the request (``https://example.com``);
            entry links are made absolute against it.
        state: Blog configuration supplying feed title and description.
        posts: Store snapshot, in any order.
    """
    posts = newest_first(posts)
    rights = f"Copyright {datetime.now(timezone.utc).year} {origin}"
    updated = posts[0].publish_date if posts else datetime.now(timezone.utc)

    root = ET.Element("feed", {"xmlns": ATOM_NAMESPACE, "xml:lang": state.lang})
    ET.SubElement(root, "id").text = f"{origin}/"
    ET.SubElement(root, "title").text = state.title
    if state.description:
        ET.SubElement(root, "subtitle").text = state.description
    ET.SubElement(root, "updated").text = updated.isoformat()
    ET.SubElement(root, "generator").text = GENERATOR
    ET.SubElement(root, "link", rel="alternate", type="text/html", href=f"{origin}/")
    ET.SubElement(
        root, "link", rel="self", type="application/atom+xml", href=f"{origin}/feed"
    )
    ET.SubElement(root, "icon").text = f"{origin}/favicon.ico"
    ET.SubElement(root, "rights").text = rights
    for name in split_authors(state.author):
        author = ET.SubElement(root, "author")
        ET.SubElement(author, "name").text = name

    for post in posts:
        _add_entry(root, origin, post, rights)

    return '<?xml version="1.0" encoding="utf-8"?>\n' + ET.tostring(
        root, encoding="unicode"
    )
