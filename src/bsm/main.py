from __future__ import annotations

import argparse
import json
import logging

from bsm.application.container import build_container
from bsm.config import Settings, get_app_paths
from bsm.logging_config import setup_logging
from bsm.web import create_app


def _parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bsm", description="Bottle shop operations dashboard")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="run the dashboard web server")
    serve.add_argument("--host", default=settings.host)
    serve.add_argument("--port", type=int, default=settings.port)

    sub.add_parser("sweep", help="delete expired delivery records once and print the summary")
    return parser


def main(argv: list[str] | None = None) -> int:
    settings = Settings.from_env()
    args = _parser(settings).parse_args(argv)

    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO, console=args.command == "serve")
    container = build_container(paths.db_path, settings)

    if args.command == "sweep":
        report = container.deliveries.sweep_expired()
        container.auth.purge_expired_sessions()
        print(json.dumps(report.as_dict(), ensure_ascii=False))
        return 0

    app = create_app(container, settings)
    app.run(host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
