"""Command-line entry point — watch the ingestion backend from a terminal.

All logic lives in ``ingest_monitor.sync``; this module only wires the
configuration, the HTTP client and the engine together and prints what
the engine's cache holds.

Commands::

    ingest-monitor health [PROJECT ...] [--watch SECONDS]
    ingest-monitor jobs [--project KEY] [--status-page] [--watch SECONDS]
    ingest-monitor stages JOB_ID
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING

from ingest_monitor.client.base import ApiError
from ingest_monitor.client.http import ApiClient
from ingest_monitor.core.config import ConfigValidationError, MonitorConfig
from ingest_monitor.core.logging import configure_logging
from ingest_monitor.models.status import EntityClass
from ingest_monitor.sync.engine import StatusEngine

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ingest_monitor.client.base import IngestBackend
    from ingest_monitor.sync.poller import Subscription

logger = logging.getLogger("ingest_monitor.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ingest-monitor", description=__doc__.splitlines()[0])
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    health = sub.add_parser("health", help="Check project database connectivity")
    health.add_argument("projects", nargs="*", help="Project keys (default: batch check all)")
    health.add_argument("--watch", type=float, default=0.0, help="Keep polling for N seconds")

    jobs = sub.add_parser("jobs", help="List upload jobs and their states")
    jobs.add_argument("--project", default=None, help="Limit to one project key")
    jobs.add_argument("--status-page", action="store_true", help="Use the status-page cadence")
    jobs.add_argument("--watch", type=float, default=0.0, help="Keep polling for N seconds")

    stages = sub.add_parser("stages", help="Show the stage view of one upload job")
    stages.add_argument("job_id")

    return parser


async def run_command(
    args: argparse.Namespace,
    backend: IngestBackend,
    config: MonitorConfig,
) -> dict[str, object]:
    """Execute one parsed command against *backend* and return its report."""
    engine = StatusEngine(backend, config=config)
    try:
        if args.command == "health":
            if args.projects:
                sub = engine.subscribe_connectivity(args.projects, auto_refresh=args.watch > 0)
                await _settle(sub, args.watch)
            else:
                await engine.refresh_all_health()
            return {
                "summary": engine.connectivity_summary_dict(),
                "projects": [r.to_dict() for r in engine.cache.records(EntityClass.CONNECTIVITY)],
            }

        if args.command == "jobs":
            sub = engine.subscribe_jobs(
                args.project, status_page=args.status_page, auto_refresh=args.watch > 0
            )
            await _settle(sub, args.watch)
            report: dict[str, object] = {
                "summary": engine.job_summary().to_dict(),
                "jobs": [r.to_dict() for r in engine.job_records(args.project)],
            }
            if sub.last_error is not None:
                report["error"] = sub.last_error.to_error_dict()
            return report

        await engine.jobs.fetch()
        record = engine.cache.get(EntityClass.JOB, args.job_id)
        if record is None:
            return {"error": f"job {args.job_id!r} not found"}
        await engine.jobs.fetch_progress(record.project_key)
        view = engine.job_stages(args.job_id)
        return {
            "job": record.to_dict(),
            "current_stage": view.current_stage,
            "stages": [stage.to_dict() for stage in view],
        }
    finally:
        await engine.aclose()


async def _settle(subscription: Subscription, watch_seconds: float) -> None:
    """Wait for the first probe, then optionally keep polling."""
    while subscription.probe_count < 1 and subscription.running:
        await asyncio.sleep(0.05)
    if watch_seconds > 0:
        await asyncio.sleep(watch_seconds)


async def _main_async(args: argparse.Namespace, config: MonitorConfig) -> int:
    async with ApiClient.from_config(config) as api:
        try:
            report = await run_command(args, api, config)
        except ApiError as exc:
            logger.exception("command failed | command=%s", args.command)
            print(json.dumps({"error": exc.to_error_dict()}, indent=2))
            return 1
    print(json.dumps(report, indent=2, default=str))
    return 0 if "error" not in report else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level.upper())
    try:
        config = MonitorConfig.from_env()
    except (ConfigValidationError, ValueError) as exc:
        print(f"configuration error: {exc}", file=sys.stderr)
        return 2
    return asyncio.run(_main_async(args, config))


if __name__ == "__main__":
    raise SystemExit(main())
