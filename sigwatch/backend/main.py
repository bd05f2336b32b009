from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from datetime import datetime, timezone
from typing import NoReturn

import uvicorn

from .api.main import create_app, set_repository, set_search_client
from .config import settings
from .engine import CompleteRule, RuleExecutor
from .metrics import METRICS
from .search import SearchClient
from .storage import AlertRepository, Database

logger = logging.getLogger("sigwatch.main")


def load_rules(paths: list[str]) -> list[CompleteRule]:
    """Read rule definitions from JSON files (one rule or a list per file)."""
    rules: list[CompleteRule] = []
    for path in paths:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        for item in data if isinstance(data, list) else [data]:
            rules.append(CompleteRule.from_dict(item))
    return rules


def _build_executor(client: SearchClient, repo: AlertRepository) -> RuleExecutor:
    return RuleExecutor(
        search_client=client,
        repository=repo,
        ignore_fields=settings.ALERT_IGNORE_FIELDS,
        merge_strategy=settings.ALERT_MERGE_STRATEGY,
        max_signals=settings.MAX_SIGNALS,
        lookback_seconds=settings.RULE_LOOKBACK_SECONDS,
    )


def _build_search_client() -> SearchClient:
    return SearchClient(
        base_url=settings.SEARCH_URL,
        api_key=settings.SEARCH_API_KEY,
        timeout=settings.SEARCH_TIMEOUT_SECONDS,
    )


# ---------------------------------------------------------------------------
# Rule scheduler: runs every loaded rule once per interval
# ---------------------------------------------------------------------------

async def rule_scheduler(
    executor: RuleExecutor,
    rules: list[CompleteRule],
    space_id: str,
    interval: float,
    shutdown_event: asyncio.Event,
) -> None:
    logger.info("Rule scheduler started: %d rule(s) every %.0fs", len(rules), interval)
    while not shutdown_event.is_set():
        for rule in rules:
            result = await executor.run(rule, space_id=space_id)
            logger.info("%r in %.1fms", result, result.duration_ms)
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            continue
    logger.info("Rule scheduler exiting")


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

async def serve(rules: list[CompleteRule], space_id: str, interval: float) -> None:
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _signal_handler(_signum, _frame) -> None:
        logger.info("Shutdown signal received")
        loop.call_soon_threadsafe(shutdown_event.set)

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    db = Database(settings.DB_PATH)
    db.init_schema()
    repo = AlertRepository(db)
    client = _build_search_client()

    set_repository(repo)
    set_search_client(client)

    app = create_app()
    uv_config = uvicorn.Config(
        app,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level="warning",
        loop="none",
    )
    uv_server = uvicorn.Server(uv_config)

    tasks = [asyncio.create_task(uv_server.serve(), name="api")]
    if rules:
        tasks.append(asyncio.create_task(
            rule_scheduler(_build_executor(client, repo), rules, space_id, interval, shutdown_event),
            name="rules",
        ))

    logger.info(
        "SigWatch — API=http://%s:%d search=%s strategy=%s",
        settings.API_HOST, settings.API_PORT, settings.SEARCH_URL, settings.ALERT_MERGE_STRATEGY,
    )

    await shutdown_event.wait()

    uv_server.should_exit = True
    for t in tasks[1:]:
        t.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
    db.close()
    logger.info("Final counters — %s", METRICS.as_dict())
    logger.info("SigWatch stopped cleanly")


async def run_once(
    rules: list[CompleteRule],
    space_id: str,
    timestamp_override: datetime | None,
) -> bool:
    """Execute each rule a single time; True when every run succeeded."""
    db = Database(settings.DB_PATH)
    db.init_schema()
    try:
        executor = _build_executor(_build_search_client(), AlertRepository(db))
        ok = True
        for rule in rules:
            result = await executor.run(rule, space_id=space_id, alert_timestamp_override=timestamp_override)
            print(result, flush=True)
            ok = ok and result.success
        return ok
    finally:
        db.close()


def parse_timestamp_override(value: str) -> datetime:
    """ISO-8601 time; a value without an offset is taken as UTC."""
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SigWatch detection alerts")
    parser.add_argument(
        "--log-level", default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_serve = sub.add_parser("serve", help="run the API (and optionally schedule rules)")
    p_serve.add_argument("--rule", action="append", default=[], dest="rules", metavar="FILE")
    p_serve.add_argument("--space", default=settings.DEFAULT_SPACE_ID)
    p_serve.add_argument("--interval", type=float, default=300.0, help="seconds between rule runs")

    p_run = sub.add_parser("run-rule", help="execute rule file(s) once and exit")
    p_run.add_argument("rules", nargs="+", metavar="FILE")
    p_run.add_argument("--space", default=settings.DEFAULT_SPACE_ID)
    p_run.add_argument(
        "--timestamp-override", type=parse_timestamp_override, default=None,
        help="ISO-8601 time used for alert @timestamp and the search window end",
    )
    return parser.parse_args()


def main() -> NoReturn:
    args = _parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    try:
        rules = load_rules(args.rules)
    except (OSError, ValueError) as e:
        print(f"ERROR: cannot load rules: {e}", file=sys.stderr)
        sys.exit(1)

    if args.command == "serve":
        asyncio.run(serve(rules, space_id=args.space, interval=args.interval))
        sys.exit(0)

    ok = asyncio.run(run_once(rules, space_id=args.space, timestamp_override=args.timestamp_override))
    sys.exit(0 if ok else 2)


if __name__ == "__main__":
    main()
