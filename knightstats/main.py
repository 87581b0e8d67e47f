#!/usr/bin/env python3
# ==============================================================================
#  KnightStats - main.py
#  Purpose: command line runner
#           init-db | add-user | sync | resync | report | watch
# ==============================================================================

from __future__ import annotations

import argparse
import json
import os
import re
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")

from knightstats.analytics.report import build_report
from knightstats.db.game_store import GameStore, UserStore
from knightstats.db.schema import create_schema
from knightstats.errors import AppError, UserNotFoundError
from knightstats.filtering.game_filter import GameFilter
from knightstats.pipeline.run_sync import build_service, run_sync
from knightstats.utils import metrics
from knightstats.utils.db_utils import build_engine
from knightstats.utils.logging_utils import setup_logger

logger = setup_logger("main")

# ------------------------------------------------------------------------------
# Stage Wrapper
# ------------------------------------------------------------------------------


def _stage(title: str, fn: Callable[[], Any]) -> Any:
    """
    Run a command with start → finish logging and full stacktrace on error.
    """
    logger.info("%s – started", title)
    try:
        result = fn()
        logger.info("%s – finished", title)
        return result
    except Exception:  # pragma: no cover
        logger.exception("%s – failed", title)
        raise


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------


def _init_db(args: argparse.Namespace) -> None:
    create_schema(build_engine(args.database_url))


def _add_user(args: argparse.Namespace) -> None:
    store = UserStore(build_engine(args.database_url), create_tables=True)
    user = store.create(args.chesscom, args.lichess)
    print(json.dumps({"id": user.id, "platforms": user.platform_display_text()}))


def _sync(args: argparse.Namespace, full: bool) -> None:
    service = build_service(args.database_url)
    results = run_sync(args.user, full=full, service=service)
    print(json.dumps([r.to_dict() for r in results], indent=2))


def _end_of_day(value: Optional[str]) -> Optional[str]:
    """A bare ``YYYY-MM-DD`` end bound covers that whole day."""
    if value and re.fullmatch(r"\d{4}-\d{2}-\d{2}", value.strip()):
        return f"{value.strip()}T23:59:59.999999"
    return value


def _filter_params(args: argparse.Namespace) -> Dict[str, Any]:
    params = {
        "startDate": args.start,
        "endDate": _end_of_day(args.end),
        "timeClasses": args.time_classes,
        "colors": args.colors,
        "results": args.results,
        "sources": args.sources,
        "openings": args.openings,
        "opponents": args.opponents,
        "terminations": args.terminations,
        "minRating": args.min_rating,
        "maxRating": args.max_rating,
        "rated": args.rated,
        "maxGames": args.max_games,
    }
    return {key: value for key, value in params.items() if value is not None}


def _report(args: argparse.Namespace) -> None:
    engine = build_engine(args.database_url)
    users = UserStore(engine)
    user = users.find_by_id(args.user) if args.user else users.find_first()
    if user is None:
        raise UserNotFoundError(args.user or 0)

    game_filter = GameFilter.from_params(_filter_params(args))
    games = GameStore(engine).find_all(user.id, game_filter)
    logger.info("Report for user %s over %d games", user.id, len(games))

    payload = json.dumps(build_report(games), indent=2)
    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
    else:
        print(payload)


def _watch(args: argparse.Namespace) -> None:
    """Expose metrics and sync every `--interval` seconds until interrupted."""
    metrics.start_metrics_server(args.port)
    service = build_service(args.database_url)
    while True:
        try:
            run_sync(args.user, service=service)
        except AppError as exc:
            logger.error("Sync round failed – %s", exc)
        time.sleep(args.interval)


# ------------------------------------------------------------------------------
# Argument parsing
# ------------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="knightstats", description="Chess game history sync and analytics"
    )
    parser.add_argument(
        "--database-url", default=None, help="SQLAlchemy URL (default: resolved from env)"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables")

    add_user = sub.add_parser("add-user", help="Register platform usernames")
    add_user.add_argument("--chesscom", default=None)
    add_user.add_argument("--lichess", default=None)

    for name, help_text in (
        ("sync", "Fetch new games for one user (default: all users)"),
        ("resync", "Delete stored games and fetch full history"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--user", type=int, default=None)

    report = sub.add_parser("report", help="Print analytics as JSON")
    report.add_argument("--user", type=int, default=None)
    report.add_argument("--output", default=None, help="Write JSON here instead of stdout")
    report.add_argument("--start", default=None, help="ISO date or datetime, inclusive")
    report.add_argument("--end", default=None, help="ISO date (whole day) or datetime, inclusive")
    report.add_argument("--time-classes", default=None, help="e.g. blitz,rapid")
    report.add_argument("--colors", default=None)
    report.add_argument("--results", default=None)
    report.add_argument("--sources", default=None)
    report.add_argument("--openings", default=None, help="ECO codes, comma separated")
    report.add_argument("--opponents", default=None)
    report.add_argument("--terminations", default=None)
    report.add_argument("--min-rating", default=None)
    report.add_argument("--max-rating", default=None)
    report.add_argument("--rated", default=None, choices=("true", "false"))
    report.add_argument("--max-games", default=None)

    watch = sub.add_parser("watch", help="Sync on an interval and expose Prometheus metrics")
    watch.add_argument("--port", type=int, default=int(os.getenv("METRICS_PORT", 8000)))
    watch.add_argument("--interval", type=int, default=int(os.getenv("SYNC_INTERVAL", 3600)))
    watch.add_argument("--user", type=int, default=None)

    return parser


COMMANDS: Dict[str, Callable[[argparse.Namespace], None]] = {
    "init-db": _init_db,
    "add-user": _add_user,
    "sync": lambda args: _sync(args, full=False),
    "resync": lambda args: _sync(args, full=True),
    "report": _report,
    "watch": _watch,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        _stage(args.command, lambda: COMMANDS[args.command](args))
    except AppError as exc:
        print(json.dumps(exc.to_dict()), file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
