"""
Command-line interface for the token account reaper.

Provides commands for reclaiming rent and for inspecting what would be reclaimed.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import structlog
from pydantic import ValidationError

from reaper import __version__
from reaper.config import SOLSCAN_TX_URL, ReaperConfig, set_config
from reaper.core.errors import PipelineError
from reaper.core.outcome import RunReport
from reaper.core.reaper import Reaper

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stdout,
    )


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Options shared by every command; unset options fall back to the environment."""
    parser.add_argument(
        "--rpc-endpoint",
        help="RPC endpoint URL (env: RPC_ENDPOINT)",
    )
    parser.add_argument(
        "--private-key",
        help="Base58-encoded wallet secret key (env: PRIVATE_KEY)",
    )
    parser.add_argument(
        "--keypair",
        help="Path to a Solana CLI keypair file (env: KEYPAIR_PATH)",
    )
    parser.add_argument(
        "--skip-usdc",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Leave USDC token accounts untouched (default: true)",
    )
    parser.add_argument(
        "--max-instructions",
        type=int,
        help="Maximum instructions per transaction (default: 22)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        default=None,
        help="Output logs in JSON format",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="reaper",
        description="Burn leftover tokens and close SPL token accounts to reclaim rent",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Run command
    run_parser = subparsers.add_parser("run", help="Burn and close all token accounts")
    _add_common_arguments(run_parser)
    run_parser.add_argument(
        "--compute-unit-price",
        type=int,
        help="Compute unit price in micro-lamports (default: 220000)",
    )
    run_parser.add_argument(
        "--compute-unit-limit",
        type=int,
        help="Compute unit limit (default: 350000)",
    )
    run_parser.add_argument(
        "--confirm-timeout",
        type=float,
        help="Seconds to wait for each transaction to confirm (default: 60)",
    )
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Simulate every batch but do not submit",
    )

    # Scan command (no transactions)
    scan_parser = subparsers.add_parser("scan", help="List token accounts and planned batches")
    _add_common_arguments(scan_parser)

    return parser


def build_config(args: argparse.Namespace) -> ReaperConfig:
    """Build configuration from CLI arguments layered over the environment."""
    overrides = {
        "rpc_endpoint": args.rpc_endpoint,
        "private_key": args.private_key,
        "keypair_path": args.keypair,
        "skip_usdc": args.skip_usdc,
        "max_instructions": args.max_instructions,
        "compute_unit_price": getattr(args, "compute_unit_price", None),
        "compute_unit_limit": getattr(args, "compute_unit_limit", None),
        "confirm_timeout_seconds": getattr(args, "confirm_timeout", None),
        "dry_run": getattr(args, "dry_run", None),
        "log_level": args.log_level,
        "log_json": args.log_json,
    }
    return ReaperConfig(**{k: v for k, v in overrides.items() if v is not None})


def print_report(report: Optional[RunReport]) -> None:
    """Print a human-readable summary of a run."""
    if report is None:
        return

    status = "SUCCESS" if report.success else "FAILED"
    mode = " (dry run)" if report.dry_run else ""
    print()
    print(f"=== Token account reclaim{mode}: {status} ===")
    print(f"Wallet: {report.owner}")
    print(f"Accounts found: {report.accounts_found} (skipped {report.accounts_skipped})")
    print(f"Instructions: {report.instruction_count} in {report.batches_planned} batch(es)")

    for outcome in report.outcomes:
        batch = outcome.batch
        line = f"  batch {batch.sequence + 1}: {batch.status.value} ({batch.size} instructions)"
        if outcome.signature:
            line += " " + SOLSCAN_TX_URL.format(signature=outcome.signature)
        if outcome.error:
            line += f" error: {outcome.error}"
        print(line)

    if report.error:
        print(f"Error: {report.error}")


async def run_reaper(config: ReaperConfig) -> int:
    """Run the full reclaim pipeline."""
    reaper = Reaper(config)

    print(f"Starting token account reaper v{__version__}")
    print(f"RPC Endpoint: {config.rpc_endpoint}")
    print()

    try:
        report = await reaper.run()
    except PipelineError:
        print_report(reaper.report)
        return EXIT_FAILURE

    print_report(report)
    return EXIT_OK if report.success else EXIT_FAILURE


async def scan_accounts(config: ReaperConfig) -> int:
    """One-time scan: list accounts and planned batches without submitting."""
    reaper = Reaper(config)

    try:
        records, batches = await reaper.plan()
    except PipelineError as e:
        print(f"Scan failed: {e}", file=sys.stderr)
        return EXIT_FAILURE
    finally:
        await reaper.shutdown()

    stats = reaper.scanner.get_stats()
    print(f"Wallet: {reaper.signer.pubkey}")
    print(f"Token accounts found: {stats['accounts_found']} (skipped {stats['accounts_skipped']})")
    print()

    if not records:
        print("No token accounts to process.")
        return EXIT_OK

    for record in records:
        action = "burn+close" if record.has_balance else "close"
        print(f"  {record.address}  mint={record.mint}  amount={record.amount}  -> {action}")

    print()
    print(f"{sum(b.size for b in batches)} instruction(s) in {len(batches)} batch(es) "
          f"of at most {config.max_instructions}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_CONFIG_ERROR

    try:
        config = build_config(args)
    except ValidationError as e:
        print(f"Invalid configuration:\n{e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    set_config(config)
    setup_logging(config.log_level, config.log_json)

    if not config.rpc_endpoint:
        print("Error: RPC endpoint not set (use --rpc-endpoint or RPC_ENDPOINT)", file=sys.stderr)
        return EXIT_CONFIG_ERROR
    if not (config.private_key_value or config.keypair_path):
        print("Error: no signing key (use --private-key/PRIVATE_KEY or --keypair/KEYPAIR_PATH)",
              file=sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        if args.command == "run":
            return asyncio.run(run_reaper(config))
        return asyncio.run(scan_accounts(config))
    except (ValueError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    sys.exit(main())
