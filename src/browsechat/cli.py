from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .config import load_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="browsechat",
        description="Streaming chat endpoint with remote-browser, search and repository tools.",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP chat endpoint")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve_parser.add_argument("--config", type=Path, help="Path to a YAML config file")
    serve_parser.set_defaults(func=serve_command)

    return parser


def serve_command(args: argparse.Namespace) -> int:
    import uvicorn

    from .server import create_app

    config = load_config(getattr(args, "config", None))
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.run(create_app(config), host=args.host, port=args.port, log_level=config.log_level.lower())
    return 0


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    if hasattr(args, "func"):
        sys.exit(args.func(args))
    parser.print_help()
    sys.exit(2)


if __name__ == "__main__":
    main()
