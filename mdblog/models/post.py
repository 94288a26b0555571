"""Post data model."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Post(BaseModel):
    """One published article, built wholesale from a Markdown file."""

    model_config = ConfigDict(frozen=True)

    pathname: str
    title: str = "Untitled"
    author: str | None = None
    publish_date: datetime
    snippet: str = ""
    markdown: str = ""
    cover_html: str | None = None
    background: str | None = None
    og_image: str | None = None
    tags: list[str] = Field(default_factory=list)
    render_math: bool = False
    allow_iframes: bool = False
    disable_html_sanitization: bool = False
    read_time: int = 1
    # File the post was loaded from; used to detect pathname collisions
    source: str = ""

    @field_validator("pathname")
    @classmethod
    def ensure_leading_slash(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith("/"):
            v = "/" + v
        return v

    @field_validator("publish_date")
    @classmethod
    def ensure_aware(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so posts always sort together."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v
