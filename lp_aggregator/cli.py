"""Command-line interface for the LP position aggregator."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone
from typing import Any

from .config import SUPPORTED_CHAIN_IDS, load_config
from .errors import AggregationError, InvalidRequestError
from .logging_setup import configure_logging
from .report import build_text_report
from .services import PositionAggregator, validate_chain_id, validate_wallet_address

EXIT_INTERNAL_ERROR = 1
EXIT_INVALID_REQUEST = 2


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="lp-aggregator",
        description="Multi-chain Uniswap v4 liquidity position aggregator",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    sub = parser.add_subparsers(dest="command")

    positions_parser = sub.add_parser("positions", help="Aggregate a wallet's LP positions")
    positions_parser.add_argument("wallet", help="Wallet address (0x + 40 hex chars)")
    positions_parser.add_argument(
        "--chain-id",
        default=None,
        help=f"Restrict to one chain ({', '.join(str(c) for c in SUPPORTED_CHAIN_IDS)})",
    )
    positions_parser.add_argument(
        "--format",
        dest="output_format",
        default="json",
        choices=["json", "text"],
        help="Output format (default: json)",
    )

    prices_parser = sub.add_parser("prices", help="Look up USD prices by token address")
    prices_parser.add_argument("addresses", nargs="+", help="Token contract addresses")
    prices_parser.add_argument("--chain-id", type=int, default=1, help="Chain id (default: 1)")

    return parser


def error_envelope(message: str, code: str) -> dict[str, Any]:
    return {"success": False, "message": message, "error": code}


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _positions(args: argparse.Namespace, aggregator: PositionAggregator) -> int:
    try:
        wallet = validate_wallet_address(args.wallet)
        chain_id = validate_chain_id(args.chain_id)
    except InvalidRequestError as e:
        print(json.dumps(error_envelope(str(e), e.code), indent=2))
        return EXIT_INVALID_REQUEST

    try:
        result = await aggregator.get_positions(wallet, chain_id)
    except AggregationError as e:
        print(json.dumps(error_envelope("Failed to fetch positions", e.code), indent=2))
        return EXIT_INTERNAL_ERROR

    if args.output_format == "text":
        print(build_text_report(result, wallet))
    else:
        response = {
            "success": True,
            "data": result.to_response(wallet, _timestamp()),
            "message": f"Found {len(result.positions)} positions",
        }
        print(json.dumps(response, indent=2))
    return 0


async def _prices(args: argparse.Namespace, aggregator: PositionAggregator) -> int:
    prices = await aggregator.oracle.get_token_prices(args.addresses, args.chain_id)
    print(json.dumps({"chainId": args.chain_id, "prices": prices}, indent=2))
    return 0


async def _run(args: argparse.Namespace) -> int:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    aggregator = PositionAggregator.from_config(config)

    if args.command == "positions":
        return await _positions(args, aggregator)
    if args.command == "prices":
        return await _prices(args, aggregator)

    build_parser().print_help()
    return 1


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(_run(args)))
