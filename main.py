#!/usr/bin/env python3
"""
PR CI Tracker - Main CLI entrypoint

Tracks GitHub pull requests, watches their CI status, reruns failed
workflows and analyzes failed job logs.

Usage:
    python main.py track https://github.com/facebook/react/pull/123
    python main.py track facebook/react#123
    python main.py list
    python main.py refresh
    python main.py rerun facebook/react#123
    python main.py rerun-failed
    python main.py analyze facebook/react#123 "build (ubuntu-latest)"
    python main.py watch
    python main.py serve --port 8000
"""

import argparse
import asyncio
import sys
from typing import Awaitable, Callable, Optional, Union

from models.config_models import Config
from models.data_models import RerunOutcomeKind, TrackedPR
from models.errors import TrackerError
from storage.tracked_list import TrackedListRepository
from tracker.engine import TrackerEngine, build_engine, build_kv_store
from tracker.events import RecordUpdated, RerunFinished, StatusNote, TrackerEvent
from tracker.store import TrackingStore
from utils.config_loader import load_config
from utils.logger import setup_logger

logger = setup_logger(name="pr_ci_tracker")

STATUS_ICONS = {
    "success": "✓",
    "failure": "✗",
    "running": "⟳",
    "pending": "…",
    "skipped": "-",
}


def describe_record(record: TrackedPR) -> str:
    """One-line summary of a tracked PR."""
    icon = STATUS_ICONS.get(record.ci_status, "?")
    line = f"{icon} #{record.number} [{record.state}] {record.title} by {record.author} (CI: {record.ci_status})"
    if record.additions is not None and record.deletions is not None:
        line += f" +{record.additions}/-{record.deletions}"
    if record.last_error:
        line += f"  ⚠ {record.last_error}"
    return line


def log_records(source: Union[TrackerEngine, TrackingStore], show_jobs: bool = False) -> None:
    """Log all tracked PRs grouped by repository."""
    groups = source.grouped_by_repo()
    if not groups:
        logger.info("No PRs tracked yet. Add one with: python main.py track <url>")
        return

    for repo, records in groups.items():
        logger.info(f"{repo} ({len(records)})")
        for record in records:
            logger.info(f"  {describe_record(record)}")
            jobs = record.jobs if show_jobs else record.failed_jobs()
            for job in jobs:
                logger.info(f"      {STATUS_ICONS.get(job.status, '?')} {job.name}")


def log_event(event: TrackerEvent) -> None:
    """Event subscriber used by the long-running watch command."""
    if isinstance(event, StatusNote):
        # Already logged by the event bus
        return
    if isinstance(event, RecordUpdated) and not event.record.is_loading:
        logger.info(f"{event.record.repo} {describe_record(event.record)}")
    elif isinstance(event, RerunFinished):
        logger.info(f"Rerun {event.outcome.kind.value}: {event.outcome.message}")


def list_saved_prs(config: Config, show_jobs: bool = False) -> None:
    """Log the saved tracked list without touching GitHub."""
    store = TrackingStore()
    store.load(TrackedListRepository(build_kv_store(config)).load())
    log_records(store, show_jobs=show_jobs)


def resolve_record(engine: TrackerEngine, ref: str) -> Optional[TrackedPR]:
    """Tracked record for a PR reference, or None (logged) if untracked."""
    record = engine.find_ref(ref)
    if record is None:
        logger.error(f"{ref} is not tracked. Add it first with: python main.py track {ref}")
    return record


async def track_pr(engine: TrackerEngine, ref: str) -> bool:
    record = engine.add_ref(ref)
    if record is None:
        logger.warning(f"{ref} is already tracked")
        return True

    await engine.wait_idle()
    record = engine.get(record.id)
    logger.info(f"Now tracking {record.repo}#{record.number}")
    logger.info(f"  {describe_record(record)}")
    return record.last_error is None


async def untrack_pr(engine: TrackerEngine, ref: str) -> bool:
    record = resolve_record(engine, ref)
    if record is None:
        return False
    engine.remove(record.id)
    logger.info(f"Stopped tracking {record.repo}#{record.number}")
    return True


async def refresh_prs(engine: TrackerEngine) -> bool:
    await engine.refresh_all()
    log_records(engine)
    return not any(r.last_error for r in engine.records())


async def rerun_pr(engine: TrackerEngine, ref: str) -> bool:
    record = resolve_record(engine, ref)
    if record is None:
        return False

    outcome = await engine.rerun(record.id)
    if outcome.triggered:
        logger.info("Waiting for GitHub to pick up the rerun...")
        await engine.wait_idle()
        logger.info(f"  {describe_record(engine.get(record.id))}")

    for error in outcome.errors:
        logger.error(f"  ✗ {error}")
    return outcome.kind != RerunOutcomeKind.FAILURE


async def rerun_failed_prs(engine: TrackerEngine, refresh_first: bool = True) -> bool:
    if refresh_first:
        await engine.refresh_all()

    logger.info("=" * 80)
    logger.info("RERUN ALL FAILED")
    logger.info("=" * 80)

    summary = await engine.rerun_all_failed()
    if summary.nothing_to_rerun:
        return True

    for outcome in summary.outcomes:
        icon = "✓" if outcome.kind == RerunOutcomeKind.SUCCESS else "✗"
        logger.info(f"  {icon} {outcome.repo}: {outcome.message}")

    await engine.wait_idle()
    logger.info("-" * 80)
    logger.info(summary.message)
    return all(o.kind != RerunOutcomeKind.FAILURE for o in summary.outcomes)


async def analyze_job(
    engine: TrackerEngine,
    config: Config,
    ref: str,
    job_name: str,
    launch: Optional[str] = None,
) -> bool:
    """Analyze a failed job's log and optionally hand it to an external CLI."""
    from analyzer.cli_launcher import CommandLauncher
    from analyzer.log_analysis import LogAnalysisSession, build_analyzer

    record = resolve_record(engine, ref)
    if record is None:
        return False

    await engine.refresh(record.id)
    record = engine.get(record.id)
    job = next((j for j in record.jobs if j.name == job_name), None)
    if job is None:
        logger.error(f"No job named '{job_name}' on {record.repo}#{record.number}")
        for j in record.jobs:
            logger.info(f"  {STATUS_ICONS.get(j.status, '?')} {j.name}")
        return False

    session = LogAnalysisSession(engine.client, record.repo, job, analyzer=build_analyzer(config.credentials))
    result = await session.run()

    logger.info("=" * 80)
    logger.info(f"ANALYSIS: {record.repo}#{record.number} / {job.name}")
    logger.info("=" * 80)
    if result.analysis:
        for line in result.analysis.splitlines():
            logger.info(line)
    if result.error:
        logger.warning(result.error)

    if launch and result.cli_context:
        action = config.launcher.actions().get(launch)
        if action is None:
            logger.error(f"No {launch} CLI command configured")
            return False
        label, template = action
        launcher = CommandLauncher(template, label=label)
        launcher.launch(result.cli_context, record.repo, record.number, record.url)

    return result.cli_context is not None


async def run_command(engine: TrackerEngine, command: Callable[[], Awaitable[bool]]) -> bool:
    """Run one CLI command, then wait for its state changes to be saved."""
    try:
        return await command()
    finally:
        await engine.flush()


async def watch(engine: TrackerEngine) -> None:
    """Run the engine in the foreground until interrupted."""
    engine.events.subscribe(log_event)
    engine.start()
    logger.info("=" * 80)
    logger.info(f"Watching {len(engine.records())} PRs (Ctrl+C to stop)")
    logger.info("=" * 80)
    try:
        await asyncio.Event().wait()
    finally:
        await engine.stop()


def main():
    """Main CLI entrypoint."""
    parser = argparse.ArgumentParser(
        description="PR CI Tracker - watch pull request CI and rerun failed workflows",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Track a PR by URL or short reference
  python main.py track https://github.com/facebook/react/pull/123
  python main.py track facebook/react#123

  # Rerun every failed PR
  python main.py rerun-failed

  # Keep statuses fresh in the foreground
  python main.py watch
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    track_parser = subparsers.add_parser("track", help="Start tracking a PR")
    track_parser.add_argument("ref", help="PR URL or 'owner/repo#number'")

    untrack_parser = subparsers.add_parser("untrack", help="Stop tracking a PR")
    untrack_parser.add_argument("ref", help="PR URL or 'owner/repo#number'")

    list_parser = subparsers.add_parser("list", help="List tracked PRs (saved state, no network)")
    list_parser.add_argument("--jobs", action="store_true", help="Show every CI job")

    subparsers.add_parser("refresh", help="Refresh every tracked PR")

    rerun_parser = subparsers.add_parser("rerun", help="Rerun failed workflows of one PR")
    rerun_parser.add_argument("ref", help="PR URL or 'owner/repo#number'")

    rerun_failed_parser = subparsers.add_parser("rerun-failed", help="Rerun failed workflows of every failed PR")
    rerun_failed_parser.add_argument(
        "--no-refresh",
        action="store_true",
        help="Use saved CI statuses instead of refreshing first"
    )

    analyze_parser = subparsers.add_parser("analyze", help="Analyze the log of a failed CI job")
    analyze_parser.add_argument("ref", help="PR URL or 'owner/repo#number'")
    analyze_parser.add_argument("job", help="Job name as shown by 'list --jobs'")
    analyze_parser.add_argument(
        "--launch",
        choices=["primary", "secondary"],
        default=None,
        help="Open the analysis in the configured external CLI"
    )

    subparsers.add_parser("watch", help="Keep tracked PRs refreshed in the foreground")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    serve_parser.add_argument("--host", type=str, default="127.0.0.1", help="Host (default: 127.0.0.1)")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    # Show help if no command provided
    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "serve":
        from backend.server import run_server
        run_server(args.host, args.port, reload=args.reload)
        sys.exit(0)

    config = load_config()
    setup_logger(config.log_level, name="pr_ci_tracker")

    if args.command == "list":
        list_saved_prs(config, show_jobs=args.jobs)
        sys.exit(0)

    try:
        engine = build_engine(config)
    except TrackerError as e:
        logger.error(f"Failed to initialize tracker: {e}")
        sys.exit(1)

    commands = {
        "track": lambda: track_pr(engine, args.ref),
        "untrack": lambda: untrack_pr(engine, args.ref),
        "refresh": lambda: refresh_prs(engine),
        "rerun": lambda: rerun_pr(engine, args.ref),
        "rerun-failed": lambda: rerun_failed_prs(engine, refresh_first=not args.no_refresh),
        "analyze": lambda: analyze_job(engine, config, args.ref, args.job, launch=args.launch),
    }

    try:
        if args.command == "watch":
            asyncio.run(watch(engine))
            sys.exit(0)
        success = asyncio.run(run_command(engine, commands[args.command]))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(0)
    except (TrackerError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
