from __future__ import annotations

import argparse
import json
import logging
from typing import Any

from mirsinn.config import load_environment
from mirsinn.domain.dates import parse_date_key
from mirsinn.domain.text import normalize_text
from mirsinn.notifications import feishu
from mirsinn.workers import log_info
from mirsinn.workers.daily_question import run as generate_questions
from mirsinn.workers.notify import run as send_notifications
from mirsinn.workers.refresh_stats import run as refresh_stats


def _date_key(value: str) -> str:
    try:
        parse_date_key(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return value


def _add_generate(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("generate", help="Generate and store the questions of the day")
    parser.add_argument("--date", type=_date_key, default=None, help="Date key (MM-DD-YYYY). Defaults to today in Luxembourg")
    parser.add_argument(
        "--notify-operators",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Send a Feishu summary when Feishu credentials are configured",
    )


def _add_notify(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("notify", help="Push today's question to subscribed devices")
    parser.add_argument("--date", type=_date_key, default=None, help="Date key (MM-DD-YYYY). Defaults to today in Luxembourg")


def _add_refresh_stats(subparsers: argparse._SubParsersAction) -> None:
    parser = subparsers.add_parser("refresh-stats", help="Recount votes and refresh the results analysis")
    parser.add_argument("--date", type=_date_key, default=None, help="Date key (MM-DD-YYYY). Defaults to yesterday")


def _add_init_db(subparsers: argparse._SubParsersAction) -> None:
    subparsers.add_parser("init-db", help="Create the PostgreSQL documents table if missing")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mirsinn", description="Mir Sinn question of the day controller")
    parser.add_argument("--log-level", default="INFO", help="Logging level for adapters")
    subparsers = parser.add_subparsers(dest="command", required=True)
    _add_generate(subparsers)
    _add_notify(subparsers)
    _add_refresh_stats(subparsers)
    _add_init_db(subparsers)
    return parser


def _print_result(result: Any) -> None:
    if hasattr(result, "to_dict"):
        result = result.to_dict()
    print(json.dumps(result, ensure_ascii=False))


def _generate(args: argparse.Namespace) -> None:
    alert = args.notify_operators and feishu.is_configured()
    try:
        result = generate_questions(args.date)
    except Exception as exc:
        if alert:
            feishu.notify_run_summary(date_key=args.date or "today", status="failed", error=str(exc))
        raise
    if alert:
        titles = [normalize_text(entry.document.get("question")) for entry in result.entries]
        feishu.notify_run_summary(
            date_key=result.date_key,
            status=result.status,
            titles=titles,
            degraded=result.degraded,
        )
    _print_result(result)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    load_environment()
    logging.basicConfig(level=str(args.log_level).upper(), format="%(levelname)s %(name)s %(message)s")

    command = args.command
    if command == "generate":
        _generate(args)
    elif command == "notify":
        _print_result(send_notifications(args.date))
    elif command == "refresh-stats":
        _print_result(refresh_stats(args.date))
    elif command == "init-db":
        from mirsinn.adapters.db_postgres import get_adapter as get_postgres_adapter

        get_postgres_adapter()
        log_info("init-db", "documents table ready")
    else:
        parser.error(f"Unknown command: {command}")


__all__ = ["build_parser", "main"]


if __name__ == "__main__":
    main()
