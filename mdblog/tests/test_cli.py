"""Tests for the command-line interface and blog scaffolding."""

import pytest

from mdblog import cli
from mdblog.services.scaffold import DirectoryNotEmptyError, init_blog


def test_init_blog_writes_starter_files(tmp_path):
    target = tmp_path / "new_blog"

    written = init_blog(target)

    post = target / "posts" / "hello_world.md"
    assert sorted(written) == sorted([post, target / "blog.yaml"])
    assert "title: Hello world!" in post.read_text(encoding="utf-8")
    assert "title: My Blog" in (target / "blog.yaml").read_text(encoding="utf-8")


def test_init_blog_refuses_non_empty_directory(tmp_path):
    (tmp_path / "existing.txt").write_text("keep me")

    with pytest.raises(DirectoryNotEmptyError):
        init_blog(tmp_path)

    assert init_blog(tmp_path, force=True)
    assert (tmp_path / "existing.txt").read_text() == "keep me"


async def test_scaffolded_blog_serves_its_first_post(tmp_path, make_client):
    init_blog(tmp_path)
    options = cli.load_config_file(tmp_path / "blog.yaml")

    client = await make_client(tmp_path, **options)
    response = await client.get("/hello_world")

    assert response.status_code == 200
    assert "Hello world!" in response.text


def test_load_config_file_builds_middlewares(tmp_path):
    config = tmp_path / "blog.yaml"
    config.write_text(
        "title: Configured\nga_key: UA-123\nredirects:\n  /old: new\n",
        encoding="utf-8",
    )

    options = cli.load_config_file(config)

    assert options["title"] == "Configured"
    assert "ga_key" not in options
    assert "redirects" not in options
    assert [m.__name__ for m in options["middlewares"]] == [
        "ga_middleware",
        "redirect_middleware",
    ]


def test_load_config_file_missing_or_empty(tmp_path):
    assert cli.load_config_file(tmp_path / "absent.yaml") == {}

    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert cli.load_config_file(empty) == {}


def test_load_config_file_rejects_non_mapping(tmp_path):
    config = tmp_path / "blog.yaml"
    config.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(cli.ConfigurationError):
        cli.load_config_file(config)


def test_main_init(tmp_path, capsys):
    assert cli.main(["init", str(tmp_path / "fresh")]) == 0

    assert "Blog initialized" in capsys.readouterr().out


def test_main_init_non_empty(tmp_path, capsys):
    (tmp_path / "x").write_text("x")

    assert cli.main(["init", str(tmp_path)]) == 1
    assert "--force" in capsys.readouterr().err


def test_main_serve_passes_options(tmp_path, mocker):
    init_blog(tmp_path)
    serve = mocker.patch("mdblog.main.serve")

    assert cli.main(["serve", "--root", str(tmp_path), "--port", "9100", "--dev"]) == 0

    options, root = serve.call_args.args
    assert options["title"] == "My Blog"
    assert options["port"] == 9100
    assert root == tmp_path.resolve()
    assert serve.call_args.kwargs == {"dev": True}


def test_main_serve_reports_bad_config(tmp_path):
    (tmp_path / "blog.yaml").write_text("titel: typo\n", encoding="utf-8")
    (tmp_path / "posts").mkdir()

    assert cli.main(["serve", "--root", str(tmp_path)]) == 2
