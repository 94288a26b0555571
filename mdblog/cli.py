"""Command-line entry point.

Usage:
    mdblog init ./my_blog            # Scaffold a new blog
    mdblog serve --root ./my_blog    # Serve it
    mdblog serve --dev               # Serve with live reload
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from mdblog.config import ConfigurationError, get_settings
from mdblog.middleware import ga, redirects
from mdblog.services.scaffold import DirectoryNotEmptyError, init_blog

DEFAULT_CONFIG_FILE = "blog.yaml"

logger = logging.getLogger(__name__)


def load_config_file(path: Path) -> dict[str, Any]:
    """Read blog options from YAML, turning CLI-only keys into middlewares.

    ``ga_key`` becomes the ``ga`` middleware and ``redirects`` the
    ``redirects`` middleware, in that order.

    Raises:
        ConfigurationError: If the file is not a YAML mapping.
    """
    if not path.exists():
        return {}
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping of blog options")

    middlewares = []
    ga_key = data.pop("ga_key", None)
    if ga_key is not None:
        middlewares.append(ga(str(ga_key)))
    redirect_map = data.pop("redirects", None)
    if redirect_map:
        middlewares.append(redirects({str(k): str(v) for k, v in redirect_map.items()}))
    if middlewares:
        data["middlewares"] = middlewares
    return data


def _serve(args: argparse.Namespace) -> int:
    from mdblog.main import serve

    root = Path(args.root or get_settings().content_root or ".").resolve()
    config_path = Path(args.config) if args.config else root / DEFAULT_CONFIG_FILE
    options = load_config_file(config_path)
    if args.host:
        options["hostname"] = args.host
    if args.port:
        options["port"] = args.port

    serve(options, root, dev=args.dev or get_settings().dev)
    return 0


def _init(args: argparse.Namespace) -> int:
    try:
        written = init_blog(args.directory, force=args.force)
    except DirectoryNotEmptyError as e:
        print(f"{e}; pass --force to write into it anyway.", file=sys.stderr)
        return 1
    for path in written:
        print(f"  Created: {path}")
    print(f"Blog initialized, run `mdblog serve --dev --root {args.directory}` to get started.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mdblog", description="Markdown blog server")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Serve a blog directory")
    serve_parser.add_argument("--root", help="Content root (contains posts/)")
    serve_parser.add_argument(
        "--config", help=f"YAML options file (default: <root>/{DEFAULT_CONFIG_FILE})"
    )
    serve_parser.add_argument(
        "--dev", action="store_true", help="Watch posts and live-reload browsers"
    )
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Bind port")
    serve_parser.set_defaults(func=_serve)

    init_parser = subparsers.add_parser("init", help="Scaffold a new blog")
    init_parser.add_argument("directory", help="Where to create the blog")
    init_parser.add_argument(
        "--force", action="store_true", help="Write into a non-empty directory"
    )
    init_parser.set_defaults(func=_init)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (ConfigurationError, ValidationError) as e:
        logger.error("Configuration error: %s", e)
        return 2


if __name__ == "__main__":
    sys.exit(main())
