#!/usr/bin/env python3
"""Oracle Script Engine.

Runs the prepare and execute phases of the price and randomness oracle
scripts against a deployment's static tables. Raw validator reports for the
execute phase are read from a JSON file or URL.

See the epilog of --help for examples.
"""

import argparse
import json
import logging
import os
import sys

from .src.DeploymentConfig import (
    PairDeployment,
    PriceDeployment,
    RandomnessDeployment,
    SingleSourceDeployment,
    available_deployments,
    load_deployment,
)
from .src.errors import OracleScriptError
from .src.PriceOracleScript import PairOracleScript, PriceOracleScript, SingleSourceOracleScript
from .src.RandomnessOracleScript import RandomnessOracleScript
from .src.report_source import DEFAULT_TIMEOUT, load_reports

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def parse_symbols(symbols_str: str | None) -> list[str]:
    """Parse a comma-separated symbol list.

    Symbols are case-sensitive (e.g., "mAAPL" on Terra deployments).

    :param symbols_str: Comma-separated symbols.
    :returns: List of symbols, empty entries removed.
    """
    if not symbols_str:
        return []
    return [s.strip() for s in symbols_str.split(",") if s.strip()]


def parse_hex_bytes(value: str | None) -> bytes:
    """Parse an optional hex string (with or without 0x) into bytes.

    :param value: Hex string.
    :returns: Decoded bytes, empty if value is empty.
    :raises ValueError: If value is not valid hex.
    """
    if not value:
        return b""
    return bytes.fromhex(value.removeprefix("0x"))


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        description="Oracle Script Engine: price aggregation and VRF randomness",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Bundled deployments:
  {', '.join(available_deployments())}

Examples:
  # Plan the exchange requests for BTC and ETH
  python -m oraclescript.main prepare-price --deployment crypto_prices --symbols BTC,ETH

  # Aggregate validator reports into rates
  python -m oraclescript.main execute-price --deployment crypto_prices \\
      --symbols BTC,ETH --multiplier 1000000000 --reports reports.json

  # Three-source pair price (symbols are BASE,QUOTE)
  python -m oraclescript.main prepare-price --deployment pair_prices --symbols BTC,USD --multiplier 100

  # Select a VRF provider and verify its response
  python -m oraclescript.main prepare-random --deployment vrf_legacy --seed mumu --time 1234
  python -m oraclescript.main execute-random --deployment vrf_legacy \\
      --seed mumu --time 1234 --reports https://example.org/reports.json

Environment variables (CLI args take precedence):
  DEPLOYMENT, SYMBOLS, MULTIPLIER, SEED, TIME, WORKER_ADDRESS,
  REPORTS, REPORT_TIMEOUT
""",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("deployments", help="List bundled deployments")

    def add_common(sub: argparse.ArgumentParser, execute: bool) -> None:
        sub.add_argument(
            "--deployment",
            type=str,
            help="Bundled deployment name or path to a deployment JSON file",
            default=os.environ.get("DEPLOYMENT"),
        )
        if execute:
            sub.add_argument(
                "--reports",
                type=str,
                help="JSON file path or http(s) URL with validator reports",
                default=os.environ.get("REPORTS"),
            )
            sub.add_argument(
                "--report-timeout",
                dest="report_timeout",
                type=float,
                help=f"Timeout for fetching reports over HTTP (default: {DEFAULT_TIMEOUT})",
                default=float(os.environ.get("REPORT_TIMEOUT") or DEFAULT_TIMEOUT),
            )

    for name, execute in (("prepare-price", False), ("execute-price", True)):
        sub = subparsers.add_parser(name, help=f"{name.split('-')[0].capitalize()} a price request")
        add_common(sub, execute)
        sub.add_argument(
            "--symbols",
            type=str,
            help="Comma-separated symbols (e.g., BTC,ETH; BASE,QUOTE for pair deployments)",
            default=os.environ.get("SYMBOLS"),
        )
        sub.add_argument(
            "--multiplier",
            type=int,
            help="Rate multiplier (default: 1)",
            default=int(os.environ.get("MULTIPLIER") or "1"),
        )

    for name, execute in (("prepare-random", False), ("execute-random", True)):
        sub = subparsers.add_parser(name, help=f"{name.split('-')[0].capitalize()} a randomness request")
        add_common(sub, execute)
        sub.add_argument(
            "--seed",
            type=str,
            help="Seed (text, or 32-byte hex for hex32 deployments)",
            default=os.environ.get("SEED"),
        )
        sub.add_argument(
            "--time",
            type=int,
            help="Unix timestamp of the request",
            default=int(os.environ.get("TIME") or "0"),
        )
        sub.add_argument(
            "--worker-address",
            dest="worker_address",
            type=str,
            help="Hex worker address used against front-running (optional)",
            default=os.environ.get("WORKER_ADDRESS"),
        )

    return parser


def run_price(args: argparse.Namespace, deployment, parser: argparse.ArgumentParser) -> dict:
    """Run a price subcommand and return its JSON result."""
    if not isinstance(deployment, (PriceDeployment, SingleSourceDeployment, PairDeployment)):
        parser.error(f"Deployment {deployment.name} is not a price deployment")

    symbols = parse_symbols(args.symbols)
    if not symbols:
        parser.error("At least one symbol must be specified")

    if isinstance(deployment, PriceDeployment):
        script = PriceOracleScript(deployment)
    elif isinstance(deployment, PairDeployment):
        script = PairOracleScript(deployment)
    else:
        script = SingleSourceOracleScript(deployment)

    logger.info(f"Symbols:           {', '.join(symbols)}")
    logger.info(f"Multiplier:        {args.multiplier}")

    if args.command == "prepare-price":
        requests = script.prepare(symbols, args.multiplier)
        return {"requests": [r.to_dict() for r in requests]}

    reports = load_reports(args.reports, timeout=args.report_timeout)
    result = script.execute(symbols, args.multiplier, reports)
    return {"symbols": symbols, "rates": result.rates}


def run_random(args: argparse.Namespace, deployment, parser: argparse.ArgumentParser) -> dict:
    """Run a randomness subcommand and return its JSON result."""
    if not isinstance(deployment, RandomnessDeployment):
        parser.error(f"Deployment {deployment.name} is not a randomness deployment")
    if args.seed is None:
        parser.error("--seed is required")

    try:
        worker_address = parse_hex_bytes(args.worker_address)
    except ValueError:
        parser.error("--worker-address must be hex")

    script = RandomnessOracleScript(deployment)
    logger.info(f"Seed:              {args.seed}")
    logger.info(f"Time:              {args.time}")

    if args.command == "prepare-random":
        request = script.prepare(args.seed, args.time, worker_address)
        return {"request": request.to_dict()}

    reports = load_reports(args.reports, timeout=args.report_timeout)
    output = script.execute(args.seed, args.time, reports, worker_address)
    return {"result": output.hex()}


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the oracle script CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging level
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.command == "deployments":
        print(json.dumps(available_deployments()))
        return

    if not args.deployment:
        parser.error("--deployment is required")
    if args.command.startswith("execute") and not args.reports:
        parser.error("--reports is required for execute commands")

    try:
        deployment = load_deployment(args.deployment)

        logger.info("=" * 60)
        logger.info("Oracle Script Engine")
        logger.info("=" * 60)
        logger.info(f"Command:           {args.command}")
        logger.info(f"Deployment:        {deployment.name}")

        if args.command.endswith("price"):
            output = run_price(args, deployment, parser)
        else:
            output = run_random(args, deployment, parser)
        logger.info("=" * 60)
    except OracleScriptError as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)

    print(json.dumps(output))


if __name__ == "__main__":
    main()
