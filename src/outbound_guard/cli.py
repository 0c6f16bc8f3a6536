"""
Command-line entry point.

    python -m outbound_guard check https://hooks.example.com/x --mode moderate --resolve

Exit codes: 0 when the URL is allowed, 1 when it is blocked, 2 on usage
errors (argparse) or an unusable guard configuration.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Sequence

from .config import GuardConfigError, get_guard_config
from .models import SecurityMode, ValidationResult
from .url_security import validate_url_sync, validate_webhook_url

logger = logging.getLogger(__name__)

EXIT_ALLOWED = 0
EXIT_BLOCKED = 1
EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="outbound_guard",
        description="Check outbound URLs against the SSRF guard",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m outbound_guard check http://169.254.169.254/latest/meta-data
    python -m outbound_guard check https://hooks.example.com --resolve --json
    python -m outbound_guard check http://localhost:8080 --mode moderate
        """,
    )
    parser.add_argument(
        "--debug",
        "-d",
        action="store_true",
        default=os.getenv("OUTBOUND_GUARD_DEBUG", "false").lower() == "true",
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Validate a single URL")
    check.add_argument("url", help="URL to validate")
    check.add_argument(
        "--mode",
        "-m",
        choices=[m.value for m in SecurityMode],
        default=None,
        help=(
            "Security mode (default: WEBHOOK_SECURITY_MODE with --resolve, "
            "API_SECURITY_MODE without)"
        ),
    )
    check.add_argument(
        "--resolve",
        "-r",
        action="store_true",
        help="Resolve the hostname and judge the resolved address (request-time check)",
    )
    check.add_argument(
        "--json",
        action="store_true",
        dest="as_json",
        help="Print the verdict as JSON",
    )
    return parser


def run_check(url: str, mode: str | None, resolve: bool) -> ValidationResult:
    """Run the sync or the resolving check for one URL."""
    config = get_guard_config()
    if resolve:
        return asyncio.run(validate_webhook_url(url, mode, config=config))
    return validate_url_sync(url, mode if mode is not None else config.api_mode)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        result = run_check(args.url, args.mode, args.resolve)
    except GuardConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE

    if args.as_json:
        print(json.dumps({"url": args.url, **result.to_dict()}))
    elif result.valid:
        print(f"ALLOWED {args.url}")
    else:
        print(f"BLOCKED {args.url}: {result.reason}")

    return EXIT_ALLOWED if result.valid else EXIT_BLOCKED


__all__ = ["build_parser", "run_check", "main"]
