"""Composition root for the toolsleuth diagnostic tool.

This module is the ONLY location that imports both core domain logic
and concrete adapter implementations. All wiring of dependencies
happens here, creating a clear entry point for the application.

Module Structure:
- Configuration loading via config module
- Adapter instantiation
- Orchestrator initialization
- Command selection (run, check, extract)
"""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence

from toolsleuth.adapters.channel.marker_log import DiagnosisFrameCodec, MarkerLogReader
from toolsleuth.adapters.client.claude_cli import ClaudeCLIClient
from toolsleuth.adapters.notification.json_file import JSONResultFileAdapter
from toolsleuth.adapters.notification.stdout import StdoutReportAdapter
from toolsleuth.adapters.preflight.checks import PreflightChecker
from toolsleuth.adapters.proxy.mitmdump import MitmdumpInterceptor
from toolsleuth.config import Settings, load_settings
from toolsleuth.core.errors import ToolsleuthError
from toolsleuth.core.orchestrator import DiagnosisOrchestrator

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def configure_logging(log_level: str, log_format: str) -> None:
    """Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Log format (json, text).
    """
    level = getattr(logging, log_level, logging.INFO)

    if log_format == "json":
        format_str = '{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}'
    else:
        format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stderr),
        ],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolsleuth",
        description=(
            "Find the tool definition that makes the messages API reject "
            "a request with a schema validation error."
        ),
    )
    parser.add_argument("--env-file", help="Load settings from this .env file")
    subparsers = parser.add_subparsers(dest="command")

    run = subparsers.add_parser("run", help="Run one diagnosis (default)")
    run.add_argument("--timeout", type=float, dest="timeout_seconds",
                     help="Seconds to wait for a diagnosis")
    run.add_argument("--work-dir", dest="work_dir",
                     help="Directory for working files and the result")
    run.add_argument("--result-file", dest="result_file",
                     help="Where to save the diagnosis JSON")
    run.add_argument("--client-command", dest="client_command",
                     help="Path to the claude CLI")
    run.add_argument("--port", type=int, dest="proxy_port",
                     help="Proxy listen port")

    subparsers.add_parser("check", help="Check prerequisites and exit")

    extract = subparsers.add_parser(
        "extract", help="Print the latest diagnosis found in a saved proxy log"
    )
    extract.add_argument("log", help="Path to a proxy log")
    return parser


def build_preflight(settings: Settings) -> PreflightChecker:
    return PreflightChecker(
        programs={
            settings.mitmdump_command: "Please install mitmproxy.",
            settings.client_command: "Please install the claude CLI or set TOOLSLEUTH_CLIENT_COMMAND.",
        },
        ca_cert_path=settings.ca_cert_path,
    )


def build_orchestrator(settings: Settings) -> DiagnosisOrchestrator:
    """Wire adapters into an orchestrator for one run."""
    codec = DiagnosisFrameCodec(settings.start_marker, settings.end_marker)
    interceptor = MitmdumpInterceptor(
        script_path=settings.script_path,
        log_path=settings.proxy_log_path,
        command=settings.mitmdump_command,
        listen_host=settings.proxy_host,
        listen_port=settings.proxy_port,
        target=settings.target_url,
        error_types=settings.error_types,
        start_marker=settings.start_marker,
        end_marker=settings.end_marker,
        startup_grace_seconds=settings.startup_grace_seconds,
    )
    client = ClaudeCLIClient(
        command=settings.client_command,
        prompt=settings.client_prompt,
        show_output=settings.client_show_output,
    )
    result_path = settings.result_path
    return DiagnosisOrchestrator(
        preflight=build_preflight(settings),
        interceptor=interceptor,
        client=client,
        channel=MarkerLogReader(settings.proxy_log_path, codec),
        result_sinks=[
            JSONResultFileAdapter(result_path),
            StdoutReportAdapter(result_path=str(result_path)),
        ],
        proxy_url=settings.proxy_url,
        proxy_var=settings.proxy_env_var,
        ca_bundle_var=settings.ca_bundle_env_var,
        timeout_seconds=settings.timeout_seconds,
        poll_interval_seconds=settings.poll_interval_seconds,
        shutdown_grace_seconds=settings.shutdown_grace_seconds,
    )


async def run_diagnosis(settings: Settings) -> int:
    """Run one diagnosis and map its outcome to an exit code."""
    orchestrator = build_orchestrator(settings)
    logger.info("Starting automated tool schema diagnosis...")
    try:
        await orchestrator.run()
    except ToolsleuthError as e:
        logger.error(f"Error: {e}")
        if e.remediation:
            logger.error(e.remediation)
        return e.exit_code
    logger.info(f"Diagnosis results are in {settings.result_path}")
    return 0


def run_check(settings: Settings) -> int:
    """Report every prerequisite, exiting non-zero if any is missing."""
    results = build_preflight(settings).report()
    for name, passed, detail in results:
        status = "ok" if passed else "MISSING"
        print(f"[{status}] {name}: {detail}")
    return 0 if all(passed for _, passed, _ in results) else 1


def run_extract(settings: Settings, log_path: str) -> int:
    """Re-read a saved proxy log and print its latest diagnosis."""
    codec = DiagnosisFrameCodec(settings.start_marker, settings.end_marker)
    record = MarkerLogReader(log_path, codec).read_latest()
    if record is None:
        logger.error(f"No complete diagnosis found in {log_path}")
        return 1
    print(json.dumps(record.to_dict(), indent=2))
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    """Application entry point.

    Exit codes:
        0: Diagnosis found (or check/extract succeeded)
        1: Unexpected error, failed check, or nothing to extract
        2-6: Prerequisite, certificate, proxy start, timeout, proxy death
        130: Interrupted by user (SIGINT/SIGTERM)
    """
    args = build_parser().parse_args(argv)
    command = args.command or "run"

    overrides: dict[str, object] = {}
    if command == "run":
        overrides = {
            key: getattr(args, key, None)
            for key in (
                "timeout_seconds",
                "work_dir",
                "result_file",
                "client_command",
                "proxy_port",
            )
        }
    settings = load_settings(args.env_file, **overrides)
    configure_logging(settings.log_level, settings.log_format)

    try:
        if command == "check":
            exit_code = run_check(settings)
        elif command == "extract":
            exit_code = run_extract(settings, args.log)
        else:
            exit_code = asyncio.run(run_diagnosis(settings))
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.warning("Interrupted, cleanup done")
        exit_code = EXIT_INTERRUPTED
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
