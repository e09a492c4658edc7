"""Standalone worker process for the build-narration orchestrator.

Runs the manifest polling loop without the HTTP surface, or performs a single
operator-requested action and exits.

Usage:
    python -m proof_of_build.worker                   # poll every POLL_INTERVAL_SECONDS
    python -m proof_of_build.worker --once            # one poll cycle, then exit
    python -m proof_of_build.worker --project-id ID   # re-drive one project, then exit

``--project-id`` bypasses the claim check so an operator can resume a project
stuck at an intermediate stage; ready and error projects are still left alone.

Exit Codes:
    0: Clean shutdown, or the requested action succeeded
    1: A project failed, or a fatal error occurred
"""

import argparse
import asyncio
import signal
import sys
from collections.abc import Sequence

from dotenv import load_dotenv

from proof_of_build.config import clamp_poll_interval, get_poll_interval
from proof_of_build.runtime import Pipeline, build_pipeline
from proof_of_build.utils.logging import configure_logging, get_logger

log = get_logger(__name__)

# Shutdown flag (set by SIGTERM/SIGINT handler)
shutdown_requested = False


def signal_handler(signum: int, frame: object) -> None:
    """Request a graceful shutdown; the current poll cycle is allowed to finish."""
    global shutdown_requested
    log.info(
        "shutdown_signal_received",
        signal=signum,
        signal_name=signal.Signals(signum).name,
    )
    shutdown_requested = True


async def wait_for_next_poll(interval_seconds: int) -> None:
    """Sleep up to ``interval_seconds``, waking early on shutdown."""
    waited = 0
    while waited < interval_seconds and not shutdown_requested:
        await asyncio.sleep(1)
        waited += 1


async def worker_main_loop(pipeline: Pipeline, interval_seconds: int) -> None:
    log.info("worker_started", interval_seconds=interval_seconds)
    while not shutdown_requested:
        try:
            await pipeline.poller.poll_once()
        except Exception as e:
            # Listing failures; per-project failures never reach here
            log.error(
                "worker_poll_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
        await wait_for_next_poll(interval_seconds)
    log.info("worker_shutdown")


async def run_worker(args: argparse.Namespace, pipeline: Pipeline | None = None) -> int:
    """Run the action selected on the command line and return an exit code."""
    pipeline = pipeline or build_pipeline()
    try:
        if args.project_id:
            try:
                state = await pipeline.poller.process_project(args.project_id)
            except Exception as e:
                log.error(
                    "project_resume_failed",
                    project_id=args.project_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                return 1
            log.info("project_resumed", project_id=args.project_id, stage=state.stage.value)
            return 0

        if args.once:
            summary = await pipeline.poller.poll_once()
            return 1 if summary.failed else 0

        interval = clamp_poll_interval(args.interval) if args.interval is not None else get_poll_interval()
        await worker_main_loop(pipeline, interval)
        return 0
    finally:
        await pipeline.close()


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="proof-of-build-worker",
        description="Poll the object store for manifests and run the narration pipeline",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll cycle and exit",
    )
    mode.add_argument(
        "--project-id",
        help="Re-drive one project from its persisted stage and exit",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        help="Polling interval in seconds, clamped to 10-3600 (default: POLL_INTERVAL_SECONDS)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """Worker process entry point."""
    load_dotenv()
    configure_logging()
    args = parse_args(argv)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    try:
        exit_code = asyncio.run(run_worker(args))
    except KeyboardInterrupt:
        log.info("worker_interrupted_by_user")
        exit_code = 0
    except Exception as e:
        log.error("worker_fatal_error", error=str(e), exc_info=True)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
