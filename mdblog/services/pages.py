"""HTML pages rendered from Jinja2 templates."""

from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

from fastapi.templating import Jinja2Templates
from starlette.requests import Request
from starlette.responses import HTMLResponse

from mdblog.models.blog import BlogState
from mdblog.models.post import Post
from mdblog.services.render import render_markdown

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

HMR_SCRIPT_PATH = "/hmr.js"
HIGHLIGHT_CSS_PATH = "/static/highlight.css"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def format_date(value: datetime, fmt: str = "%Y-%m-%d", tz: str | None = None) -> str:
    if tz:
        value = value.astimezone(ZoneInfo(tz))
    return value.strftime(fmt)


templates.env.filters["datefmt"] = format_date


def _block(text: str | None) -> str | None:
    # Header/section/footer come from the operator, so raw HTML is kept
    if not text:
        return None
    return render_markdown(text, disable_html_sanitization=True)


def _base_context(request: Request, state: BlogState, hmr: bool) -> dict[str, Any]:
    origin = f"{request.url.scheme}://{request.url.netloc}"
    return {
        "state": state,
        "hmr": hmr,
        "hmr_script": HMR_SCRIPT_PATH,
        "highlight_css": HIGHLIGHT_CSS_PATH,
        "site_url": (state.canonical_url or origin).rstrip("/"),
        "header_html": _block(state.header),
        "section_html": _block(state.section),
        "footer_html": _block(state.footer),
    }


def render_index(
    request: Request,
    state: BlogState,
    posts: list[Post],
    *,
    hmr: bool = False,
    tag: str | None = None,
) -> HTMLResponse:
    """Index page listing *posts* in the order given."""
    context = _base_context(request, state, hmr)
    context.update({"posts": posts, "tag": tag})
    return templates.TemplateResponse(request, "index.html", context)


def render_post(
    request: Request,
    state: BlogState,
    post: Post,
    *,
    hmr: bool = False,
) -> HTMLResponse:
    """Full page for one post, with Open Graph and canonical metadata."""
    context = _base_context(request, state, hmr)
    context.update(
        {
            "post": post,
            "content_html": render_markdown(
                post.markdown,
                allow_iframes=post.allow_iframes,
                disable_html_sanitization=post.disable_html_sanitization,
            ),
            "canonical": context["site_url"] + post.pathname,
            "og_image": post.og_image or state.og_image,
        }
    )
    return templates.TemplateResponse(request, "post.html", context)
