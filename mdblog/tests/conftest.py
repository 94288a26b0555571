"""Shared fixtures for mdblog tests."""

from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

TESTDATA_PATH = Path(__file__).resolve().parent / "testdata"
BASE_URL = "https://blog.example.com"


@pytest.fixture(autouse=True)
def _reset_global_state():
    """Reset module-level singletons and caches between tests."""
    yield

    # 1. Settings LRU cache
    from mdblog.config import get_settings

    get_settings.cache_clear()

    # 2. Analytics HTTP client singleton
    import mdblog.services.analytics as analytics_mod

    analytics_mod._client = None


@pytest.fixture
def testdata_path() -> Path:
    return TESTDATA_PATH


@pytest.fixture
def blog_settings() -> dict:
    from mdblog.middleware import redirects

    return {
        "author": "The author",
        "title": "Test blog",
        "description": "This is some description.",
        "middlewares": [
            redirects(
                {
                    "/to_second": "second",
                    "/to_second_with_slash": "/second",
                    "second.html": "second",
                }
            )
        ],
    }


@pytest.fixture
async def make_client(blog_settings):
    """Factory: build a blog over testdata (or *directory*) and an HTTP client for it."""
    from mdblog.blog import Blog, configure_blog
    from mdblog.main import create_app

    clients: list[AsyncClient] = []

    async def _make(directory: Path = TESTDATA_PATH, *, dev: bool = False, **overrides):
        settings = {**blog_settings, **overrides}
        blog = Blog(configure_blog(settings, directory), dev=dev)
        await blog.loader.load_all()
        client = AsyncClient(transport=ASGITransport(app=create_app(blog)), base_url=BASE_URL)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


@pytest.fixture
async def client(make_client) -> AsyncClient:
    return await make_client()


@pytest.fixture
def content_root(tmp_path) -> Path:
    """Empty content root with a posts/ directory."""
    (tmp_path / "posts").mkdir()
    return tmp_path


@pytest.fixture
def write_post(content_root):
    """Write a file under ``content_root/posts``, creating parent folders."""

    def _write(name: str, text: str) -> Path:
        path = content_root / "posts" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write
