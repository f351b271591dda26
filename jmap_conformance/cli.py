"""CLI entry point for the JMAP conformance harness."""

import argparse
import asyncio
import json
import logging
import sys
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from jmap_conformance.checks import build_catalog
from jmap_conformance.config import HarnessConfig, load_config
from jmap_conformance.errors import (
    ConfigurationError,
    MethodError,
    PreconditionError,
    TransportError,
)
from jmap_conformance.models.result import TestResult
from jmap_conformance.runner import RunOptions, TestRunner

EXIT_OK = 0
EXIT_REQUIRED_FAILED = 1
EXIT_FATAL = 2


def summarize(results: Sequence[TestResult]) -> dict[str, int]:
    """Count results by status and requiredness."""
    required = [r for r in results if r.required]
    recommended = [r for r in results if not r.required]
    return {
        "total": len(results),
        "passed": sum(1 for r in results if r.status == "passed"),
        "failed": sum(1 for r in results if r.status == "failed"),
        "skipped": sum(1 for r in results if r.status == "skipped"),
        "requiredPassed": sum(1 for r in required if r.status == "passed"),
        "requiredFailed": sum(1 for r in required if r.status == "failed"),
        "recommendedPassed": sum(1 for r in recommended if r.status == "passed"),
        "recommendedFailed": sum(1 for r in recommended if r.status == "failed"),
    }


def format_report(
    server: str, started: datetime, duration_ms: int, results: Sequence[TestResult]
) -> dict[str, Any]:
    """Format results as the JSON report document."""
    return {
        "server": server,
        "timestamp": started.isoformat(timespec="seconds").replace("+00:00", "Z"),
        "durationMs": duration_ms,
        "summary": summarize(results),
        "results": [result.to_dict() for result in results],
    }


def log_results_summary(log: logging.Logger, results: Sequence[TestResult]) -> None:
    """Log the failures and the pass/fail counts."""
    summary = summarize(results)
    log.info("=" * 80)
    log.info("Conformance Summary:")
    log.info("=" * 80)

    for result in results:
        if result.status == "failed":
            log.info(
                "%s %s: %s",
                "FAIL" if result.required else "WARN",
                result.test_id,
                result.error,
            )

    log.info(
        "Required: %d passed, %d failed",
        summary["requiredPassed"],
        summary["requiredFailed"],
    )
    log.info(
        "Recommended: %d passed, %d failed",
        summary["recommendedPassed"],
        summary["recommendedFailed"],
    )
    log.info("Skipped: %d, total: %d", summary["skipped"], summary["total"])


def exit_code(results: Sequence[TestResult]) -> int:
    """Exit status: non-zero when any required check failed."""
    if any(r.required and r.status == "failed" for r in results):
        return EXIT_REQUIRED_FAILED
    return EXIT_OK


async def run(config: HarnessConfig, options: RunOptions, output: Path | None) -> int:
    """Run the catalog and write the report; return the exit code."""
    log = logging.getLogger("jmap_conformance")

    started = datetime.now(timezone.utc)
    start = time.perf_counter()
    runner = TestRunner(config=config, registry=build_catalog())
    results = await runner.run(options)
    duration_ms = round((time.perf_counter() - start) * 1000)

    log_results_summary(log, results)

    report = format_report(config.session_url, started, duration_ms, results)
    text = json.dumps(report, indent=2, ensure_ascii=False)
    if output is None:
        print(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")
        log.info("Report written to %s", output)

    return exit_code(results)


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run JMAP conformance checks against a server"
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        required=True,
        help="Path to the JSON configuration file",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Delete existing data in the test account before running",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Write the JSON report to this file instead of stdout",
    )
    parser.add_argument(
        "--filter",
        default=None,
        help="Comma-separated test id patterns (substring or glob)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log request and response bodies",
    )
    parser.add_argument(
        "--fail-only",
        action="store_true",
        help="Only log progress lines for failed checks",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    log = logging.getLogger("jmap_conformance")

    try:
        config = load_config(args.config)
        if args.verbose or config.verbose:
            log.setLevel(logging.DEBUG)
        exit_status = asyncio.run(
            run(
                config,
                RunOptions(
                    filter=args.filter,
                    force_destroy=args.force,
                    fail_only=args.fail_only,
                ),
                args.output,
            )
        )
    except (
        ConfigurationError,
        PreconditionError,
        TransportError,
        MethodError,
        RuntimeError,
    ) as exc:
        log.error("%s", exc)
        exit_status = EXIT_FATAL
    sys.exit(exit_status)


if __name__ == "__main__":  # pragma: no cover
    main()
