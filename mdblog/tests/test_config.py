"""Tests for server settings and blog option merging."""

import pytest
from pydantic import ValidationError

from mdblog.blog import Blog, configure_blog
from mdblog.config import ConfigurationError, Settings, get_settings
from mdblog.models.blog import BlogSettings, Favicon


def test_settings_defaults(monkeypatch):
    for var in ("MDBLOG_DEV", "MDBLOG_PORT", "MDBLOG_CONTENT_ROOT"):
        monkeypatch.delenv(var, raising=False)

    settings = Settings(_env_file=None)

    assert settings.dev is False
    assert settings.port == 8000
    assert settings.load_concurrency == 16


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("MDBLOG_DEV", "true")
    monkeypatch.setenv("MDBLOG_PORT", "9001")

    settings = get_settings()

    assert settings.dev is True
    assert settings.port == 9001


def test_configure_blog_defaults(content_root):
    state = configure_blog(None, content_root)

    assert state.title == "My Blog"
    assert state.lang == "en"
    assert state.theme == "auto"
    assert state.middlewares == []
    assert state.directory == content_root.resolve()
    assert state.posts_directory == content_root.resolve() / "posts"


def test_configure_blog_merges_overrides(content_root):
    state = configure_blog({"title": "Base", "author": "Ada"}, content_root, title="Override")

    assert state.title == "Override"
    assert state.author == "Ada"


def test_configure_blog_accepts_settings_model(content_root):
    settings = BlogSettings(title="Modelled", favicon={"light": "l.ico", "dark": "d.ico"})

    state = configure_blog(settings, content_root)

    assert state.title == "Modelled"
    assert state.favicon == Favicon(light="l.ico", dark="d.ico")


def test_root_directory_option(content_root):
    state = configure_blog({"root_directory": str(content_root)})

    assert state.directory == content_root.resolve()


def test_content_root_from_environment(content_root, monkeypatch):
    monkeypatch.setenv("MDBLOG_CONTENT_ROOT", str(content_root))

    assert configure_blog().directory == content_root.resolve()


def test_unknown_option_is_rejected(content_root):
    with pytest.raises(ValidationError):
        configure_blog({"titel": "Typo"}, content_root)


def test_bad_timezone_is_rejected(content_root):
    with pytest.raises(ValidationError, match="Unknown timezone"):
        configure_blog({"timezone": "Mars/Olympus_Mons"}, content_root)


def test_missing_root_is_a_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError, match="is not a directory"):
        configure_blog({}, tmp_path / "nowhere")


def test_state_is_read_only(content_root):
    state = configure_blog({}, content_root)

    with pytest.raises(ValidationError):
        state.title = "Changed"


def test_blog_wires_components(content_root):
    blog = Blog(configure_blog({}, content_root), dev=True)

    assert blog.dev is True
    assert blog.loader.store is blog.store
    assert blog.loader.hub is blog.hub
    assert blog.loader.posts_directory == content_root.resolve() / "posts"
    assert blog.handler.store is blog.store
