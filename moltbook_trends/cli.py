from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

from dotenv import load_dotenv

from moltbook_trends.logging_conf import setup_logging
from moltbook_trends.settings import Settings
from moltbook_trends.jobs.crawl_report import run_crawl
from moltbook_trends.report.builder import build_mock_report, report_date, report_key
from moltbook_trends.store.kv import HISTORY_KEY, get_kv, prune_oldest_week_if_needed, reset_kv

def _apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    data = settings.__dict__.copy()

    if getattr(args, "base_url", None):
        data["base_url"] = args.base_url.rstrip("/")
    if getattr(args, "redis_url", None) is not None:
        data["redis_url"] = args.redis_url

    if getattr(args, "no_browser", None) is True:
        data["use_browser"] = False
    if getattr(args, "no_submolts", None) is True:
        data["crawl_submolts"] = False

    return Settings(**data)

def _print_json(obj: Any) -> None:
    print(json.dumps(obj, ensure_ascii=False, indent=2))

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="moltbook-trends")
    p.add_argument("--env-file", default=".env", help="Path to .env file (default: .env)")
    p.add_argument("--log-level", default=None, help="Logging level (INFO, DEBUG, ...)")
    p.add_argument("--base-url", default=None, help="Override MOLTBOOK_BASE_URL")
    p.add_argument("--redis-url", default=None, help="Override REDIS_URL (empty string = in-memory)")

    sub = p.add_subparsers(dest="cmd", required=True)

    sub_crawl = sub.add_parser("crawl", help="Crawl Moltbook and store today's report")
    sub_crawl.add_argument("--no-browser", action="store_true", help="Skip the headless browser, HTML tiers only")
    sub_crawl.add_argument("--no-submolts", action="store_true", help="Do not visit the submolt directory")
    sub_crawl.add_argument("--dry-run", action="store_true", help="Print the report without storing it")

    sub_report = sub.add_parser("report", help="Print a stored report")
    sub_report.add_argument("--date", default=None, help="YYYY-MM-DD (default: today, UTC)")

    sub.add_parser("history", help="List dates with a stored report, newest first")
    sub.add_parser("prune", help="Drop the oldest week of reports if the store is over its memory threshold")
    sub.add_parser("mock", help="Print a mock report (no network, no store)")

    return p

async def _dispatch(args: argparse.Namespace, settings: Settings) -> int:
    if args.cmd == "mock":
        _print_json(build_mock_report())
        return 0

    kv = await get_kv(settings)
    try:
        if args.cmd == "crawl":
            out = await run_crawl(settings=settings, kv=kv, dry_run=bool(args.dry_run))
            if args.dry_run:
                _print_json(out["report"])
            else:
                print(f"Stored report for {out['date']} (source={out['report'].get('source')})")
            return 0

        if args.cmd == "report":
            date = args.date or report_date()
            report = await kv.get(report_key(date))
            if not report:
                print(f"No report stored for {date}", file=sys.stderr)
                return 1
            _print_json(report)
            return 0

        if args.cmd == "history":
            for d in await kv.lrange(HISTORY_KEY, 0, -1):
                print(d)
            return 0

        if args.cmd == "prune":
            removed = await prune_oldest_week_if_needed(kv, settings.redis_prune_threshold_bytes)
            print(f"Pruned {removed} day(s)")
            return 0
    finally:
        await reset_kv()

    raise SystemExit(f"Unknown command: {args.cmd}")

def main(argv: list[str] | None = None) -> None:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv(args.env_file)
    setup_logging(args.log_level)

    settings = Settings.from_env()
    settings = _apply_cli_overrides(settings, args)

    code = asyncio.run(_dispatch(args, settings))
    if code:
        raise SystemExit(code)

if __name__ == "__main__":
    main()
