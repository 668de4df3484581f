"""Command line entry point.

    python -m batch_capture run --batch batch.yml --output ./screenshots
    python -m batch_capture browsers --os Windows
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

from pydantic import ValidationError

from batch_capture.batch_file import load_batch_file
from batch_capture.capture.events import (
    BatchEvent,
    JobCompleted,
    JobFailed,
    JobFailedToStart,
    JobStarted,
    JobStateChanged,
    ScreenshotCompleted,
    ScreenshotFailed,
)
from batch_capture.capture.orchestrator import BatchCaptureOrchestrator
from batch_capture.client.screenshots_api import ScreenshotsApi
from batch_capture.config import CaptureConfig
from batch_capture.errors import ConfigurationError, TransportError
from batch_capture.logging_filters import (
    HTTPX_LOGGER_NAME,
    install_httpx_log_filters,
    install_redaction_filter,
)
from batch_capture.observability.error_log_file import setup_error_log_file

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_CONFIGURATION = 2


def configure_logging(config: CaptureConfig) -> None:
    """Configure root logging for command line runs."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Request lines are only interesting when debugging.
    http_level = logging.INFO if level <= logging.DEBUG else logging.WARNING
    logging.getLogger(HTTPX_LOGGER_NAME).setLevel(http_level)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    install_httpx_log_filters()

    for handler in logging.getLogger().handlers:
        install_redaction_filter(handler)

    setup_error_log_file(config)


def log_event(event: BatchEvent) -> None:
    """Event observer used by the CLI: one log line per lifecycle event."""
    if isinstance(event, JobStarted):
        logger.info("Job %s started (%d screenshots)", event.job.id, len(event.job.screenshots))
    elif isinstance(event, JobStateChanged):
        logger.info("Job %s is now %s", event.job.id, event.state)
    elif isinstance(event, JobCompleted):
        logger.info("Job %s completed as %s", event.job.id, event.job.state)
    elif isinstance(event, JobFailedToStart):
        logger.error(
            "Job for %s in %s failed to start: %s",
            event.url,
            ", ".join(str(b) for b in event.browsers),
            event.error,
        )
    elif isinstance(event, JobFailed):
        logger.error("Job %s for %s failed: %s", event.job_id, event.url, event.error)
    elif isinstance(event, ScreenshotFailed):
        logger.warning(
            "Screenshot %s (%s) of job %s failed: %s",
            event.image_name,
            event.screenshot.browser,
            event.job_id,
            event.error,
        )
    elif isinstance(event, ScreenshotCompleted):
        logger.info(
            "Screenshot %s of job %s handled (%s)",
            event.screenshot.id,
            event.job_id,
            event.image_path or event.screenshot.state,
        )


async def run_command(args: argparse.Namespace, config: CaptureConfig) -> int:
    units = load_batch_file(args.batch)

    async with ScreenshotsApi(config) as api:
        orchestrator = BatchCaptureOrchestrator(api, config)
        orchestrator.events.subscribe(log_event)
        summary = await orchestrator.run_batch(args.output, args.tunnel, units)

    print(json.dumps(asdict(summary), indent=2))
    return EXIT_FAILURES if summary.has_failures else EXIT_OK


async def browsers_command(args: argparse.Namespace, config: CaptureConfig) -> int:
    async with ScreenshotsApi(config) as api:
        try:
            browsers = await api.get_browsers()
        except TransportError as e:
            logger.error("Could not list browsers: %s", e)
            return EXIT_FAILURES

    wanted_os = (args.os or "").lower()
    for browser in browsers:
        if wanted_os and browser.os.lower() != wanted_os:
            continue
        print(str(browser))
    return EXIT_OK


def _one_line(text: str) -> str:
    return "; ".join(part.strip() for part in text.splitlines() if part.strip())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="batch_capture",
        description="Capture screenshots of many URLs in many browsers.",
    )
    parser.add_argument("--config", default="config.json", help="JSON config file")
    parser.add_argument("--secrets", default="secrets.yml", help="YAML secrets file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run a batch file")
    run.add_argument("--batch", required=True, help="Batch file (.yml/.yaml/.json)")
    run.add_argument("--output", required=True, help="Folder to create for the screenshots")
    run.add_argument(
        "--tunnel",
        action="store_true",
        help="Capture through an already running tunnel",
    )
    run.set_defaults(handler=run_command)

    browsers = subparsers.add_parser("browsers", help="List available browsers")
    browsers.add_argument("--os", help="Only list browsers of this operating system")
    browsers.set_defaults(handler=browsers_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = CaptureConfig.from_json_file(args.config, args.secrets)
    except (ValidationError, ConfigurationError) as e:
        print(f"Invalid configuration: {_one_line(str(e))}", file=sys.stderr)
        return EXIT_CONFIGURATION

    configure_logging(config)

    try:
        return asyncio.run(args.handler(args, config))
    except ConfigurationError as e:
        print(f"Error: {_one_line(str(e))}", file=sys.stderr)
        return EXIT_CONFIGURATION
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_FAILURES


if __name__ == "__main__":
    sys.exit(main())
