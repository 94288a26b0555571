"""Blog configuration models."""

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Link(BaseModel):
    """A social/profile link shown under the blog header."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str
    url: str
    # Raw HTML (usually an inline SVG) rendered before the title
    icon: str | None = None


class Favicon(BaseModel):
    """Separate favicons for light and dark color schemes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    light: str
    dark: str


class BlogSettings(BaseModel):
    """Every option a blog accepts, with its default.

    Unknown keys are rejected so that a typo in a config file fails at
    startup instead of being silently ignored.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str = "My Blog"
    description: str | None = None
    author: str | None = None
    avatar: str | None = None
    avatar_class: str | None = None
    cover: str | None = None
    cover_text_color: str | None = None
    links: list[Link] = Field(default_factory=list)
    # Markdown (or HTML) blocks placed on the index page
    header: str | None = None
    show_header_on_post_page: bool = False
    section: str | None = None
    footer: str | None = None
    style: str | None = None
    background: str | None = None
    og_image: str | None = None
    middlewares: list[Callable[..., Any]] = Field(default_factory=list)
    redirect_map: dict[str, str] = Field(default_factory=dict)
    lang: str = "en"
    timezone: str | None = None
    date_format: str = "%Y-%m-%d"
    canonical_url: str | None = None
    theme: Literal["dark", "light", "auto"] = "auto"
    favicon: str | Favicon | None = None
    port: int | None = None
    hostname: str | None = None
    read_time: bool = False
    root_directory: str | None = None

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, v: str | None) -> str | None:
        if v is not None:
            try:
                ZoneInfo(v)
            except (ZoneInfoNotFoundError, ValueError) as e:
                raise ValueError(f"Unknown timezone: {v!r}") from e
        return v


class BlogState(BlogSettings):
    """Settings plus the resolved content root; read-only after startup."""

    directory: Path

    @property
    def posts_directory(self) -> Path:
        return self.directory / "posts"


@dataclass(frozen=True)
class ConnInfo:
    """Addresses of the connection a request arrived on."""

    remote_addr: tuple[str, int] | None = None
    local_addr: tuple[str, int] | None = None
