"""Command-line entrypoints for mailcrawl."""
from __future__ import annotations

import argparse
import asyncio
import json
import signal
from pathlib import Path
from typing import Dict, List, Optional

import structlog
from dotenv import load_dotenv

try:
    import uvloop
except ImportError:  # pragma: no cover - uvloop is unavailable on Windows
    uvloop = None

from mailcrawl.config import DEFAULT_SETTINGS_PATH, Settings, load_settings
from mailcrawl.errors import JobNotFound, MailcrawlError, ValidationError
from mailcrawl.observability.log import configure_logging
from mailcrawl.observability.metrics import MetricsRegistry
from mailcrawl.orchestrator.crawl_session import crawl_site
from mailcrawl.orchestrator.gateway import JobService, validate_seed_url
from mailcrawl.orchestrator.jobs import JobStatus
from mailcrawl.orchestrator.pool import WorkerPool
from mailcrawl.storage.factory import open_store

LOGGER = structlog.get_logger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="mailcrawl", description="Crawl a site for contact emails")
    parser.add_argument("--settings", default=str(DEFAULT_SETTINGS_PATH), help="Path to settings TOML")
    sub = parser.add_subparsers(dest="command", required=True)

    submit = sub.add_parser("submit", help="Queue a crawl job for a URL")
    submit.add_argument("url")

    status = sub.add_parser("status", help="Show a job's current record")
    status.add_argument("job_id")

    resubmit = sub.add_parser("resubmit", help="Queue a new attempt for a failed job")
    resubmit.add_argument("job_id")

    worker = sub.add_parser("worker", help="Run the worker pool")
    worker.add_argument("--cycles", type=int, help="Number of poll cycles before exiting")
    worker.add_argument("--metrics-out", help="Write counters to this JSON file on exit")

    crawl = sub.add_parser("crawl", help="Crawl a URL immediately without queueing")
    crawl.add_argument("url")
    crawl.add_argument("--max-pages", type=int, help="Override the page budget")

    sub.add_parser(
        "health",
        help="Summarise job counts per status in the store; pool state is logged by the worker",
    )

    return parser


def _emit(payload: Dict[str, object]) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def _submit(settings: Settings, url: str) -> Dict[str, object]:
    service = JobService(open_store(settings.storage))
    job_id = await service.submit(url)
    return {"success": True, "job_id": job_id, "status": JobStatus.QUEUED.value, "url": url}


async def _status(settings: Settings, job_id: str) -> Dict[str, object]:
    service = JobService(open_store(settings.storage))
    job = await service.poll(job_id)
    return {"success": True, "job": job.to_payload()}


async def _resubmit(settings: Settings, job_id: str) -> Dict[str, object]:
    service = JobService(open_store(settings.storage))
    new_id = await service.resubmit(job_id)
    return {"success": True, "job_id": new_id, "previous_job_id": job_id}


async def _health(settings: Settings) -> Dict[str, object]:
    store = open_store(settings.storage)
    counts = {}
    for status in JobStatus:
        jobs = await store.list_by_status(status, limit=1_000_000)
        counts[status.value] = len(jobs)
    return {"status": "OK", "jobs": counts}


async def _crawl(settings: Settings, url: str, max_pages: Optional[int]) -> Dict[str, object]:
    seed = validate_seed_url(url)
    crawl_settings = settings.crawl
    if max_pages is not None:
        crawl_settings = crawl_settings.model_copy(update={"max_pages": max_pages})
    result = await crawl_site(seed, crawl_settings=crawl_settings, fetch_settings=settings.fetch)
    return {"success": True, "url": seed, **result.as_fields()}


async def run_worker(settings: Settings, *, cycles: Optional[int], metrics_out: Optional[str]) -> None:
    """Run the pool until a signal arrives or ``cycles`` complete."""
    metrics = MetricsRegistry()
    store = open_store(settings.storage)
    pool = WorkerPool(
        store,
        pool_settings=settings.pool,
        crawl_settings=settings.crawl,
        fetch_settings=settings.fetch,
        metrics=metrics,
    )
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, lambda: asyncio.ensure_future(pool.stop()))
        except NotImplementedError:  # pragma: no cover - Windows event loops
            pass
    service = JobService(store, pool)
    await pool.run(cycles=cycles)
    LOGGER.info("worker_exit", **service.pool_status().as_dict())
    if metrics_out:
        metrics.export(path=Path(metrics_out))


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    settings = load_settings(Path(args.settings))
    configure_logging(settings.logging.config_path)

    if uvloop is not None:
        uvloop.install()

    if args.command == "worker":
        asyncio.run(run_worker(settings, cycles=args.cycles, metrics_out=args.metrics_out))
        return

    commands = {
        "submit": lambda: _submit(settings, args.url),
        "status": lambda: _status(settings, args.job_id),
        "resubmit": lambda: _resubmit(settings, args.job_id),
        "crawl": lambda: _crawl(settings, args.url, args.max_pages),
        "health": lambda: _health(settings),
    }
    try:
        payload = asyncio.run(commands[args.command]())
    except JobNotFound as exc:
        _emit({"success": False, "error": "job_not_found", "message": str(exc)})
        raise SystemExit(1)
    except ValidationError as exc:
        _emit({"success": False, "error": "validation_error", "message": str(exc)})
        raise SystemExit(1)
    except MailcrawlError as exc:
        _emit({"success": False, "error": type(exc).__name__, "message": str(exc)})
        raise SystemExit(2)
    _emit(payload)


if __name__ == "__main__":
    main()
