#!/usr/bin/env python3
"""
CLI entry point for the bitcoin.de API client.

Usage examples
--------------
Account info::

    python cli.py get account

Create an order::

    python cli.py post orders/btceur --param type=buy --param max_amount_currency_to_trade=0.5 --param price=20000

Credentials are read from ``BITCOINDE_API_KEY`` / ``BITCOINDE_API_SECRET``
(environment or ``.env`` next to this script).
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from dataclasses import replace
from typing import List, Optional

# ── Bootstrap ──────────────────────────────────────────────────────────────
# Ensure the package root is on sys.path so ``bitcoinde`` can be imported when
# this script is executed directly (``python cli.py …``).
SCRIPT_DIR = os.path.dirname(os.path.abspath(__file__))
if SCRIPT_DIR not in sys.path:
    sys.path.insert(0, SCRIPT_DIR)

from bitcoinde.client import BitcoindeClient, BitcoindeError
from bitcoinde.config import ClientConfig
from bitcoinde.logging_config import redact, setup_logging
from bitcoinde.validators import parse_param_pairs, validate_action, validate_timeout

# ── Argument parser ────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Send a signed request to the bitcoin.de API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python cli.py get account\n"
            "  python cli.py get orders/btceur --param type=sell\n"
            "  python cli.py delete orders/ABC123/btceur\n"
        ),
    )
    parser.add_argument("method", choices=["get", "post", "delete"], type=str.lower, help="HTTP method")
    parser.add_argument("action", help="API action path (e.g. account, orders/btceur)")
    parser.add_argument(
        "--param", "-p", action="append", default=[], metavar="KEY=VALUE",
        help="Request parameter; repeat for several",
    )
    parser.add_argument("--timeout", default=None, help="Request timeout in seconds")
    parser.add_argument("--env-file", default=os.path.join(SCRIPT_DIR, ".env"), help="Path of the .env file")
    parser.add_argument(
        "--log-level", default="INFO", type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (default INFO)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Shorthand for --log-level DEBUG")
    parser.add_argument("--no-log-file", action="store_true", help="Do not write logs/bitcoinde.log")
    return parser


# ── Main ───────────────────────────────────────────────────────────────────


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logger = setup_logging(
        console_level="DEBUG" if args.verbose else args.log_level,
        to_file=not args.no_log_file,
    )

    # --- Validate inputs ----------------------------------------------------
    try:
        action = validate_action(args.action)
        params = parse_param_pairs(args.param)
        timeout = validate_timeout(args.timeout) if args.timeout is not None else None
    except ValueError as exc:
        logger.error("Validation error: %s", exc)
        return 1

    # --- Read credentials ---------------------------------------------------
    try:
        config = ClientConfig.from_env(args.env_file)
    except BitcoindeError as exc:
        logger.error(
            "%s. Set BITCOINDE_API_KEY and BITCOINDE_API_SECRET in a .env file "
            "or as environment variables.",
            exc,
        )
        return 1

    redact(config.api_secret)

    if timeout is not None:
        config = replace(config, timeout=timeout)

    # --- Send request -------------------------------------------------------
    with BitcoindeClient.from_config(config) as client:
        future = client.request(args.method, action, params or None)
        try:
            payload = future.result()
        except BitcoindeError as exc:
            print(f"\n✗ Request FAILED – {exc}")
            return 1

    print(json.dumps(payload, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
