"""
Command line runner for the travel fund scenario.

Usage:
    python -m private_pool
    python -m private_pool --threshold 100 --timeout 30 --verbose

Runs Alice, Bob and Charlie against a local Xian contract sandbox and logs
every progress event. Individual contributions are never printed.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional

from .config import SettlementPolicy, WorkflowParams
from .errors import PoolError
from .events import LoggingReporter
from .workflow import PrivatePoolWorkflow

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="private-pool",
        description="Private contribution pool: hidden amounts, public total",
    )
    parser.add_argument(
        "--threshold",
        type=int,
        default=100,
        help="Minimum contribution per contributor, in minor units (default: 100)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Settlement timeout in seconds (default: POOL_SETTLEMENT_TIMEOUT or 60)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log ledger and settlement details",
    )
    return parser


def build_params(args: argparse.Namespace) -> WorkflowParams:
    policy = SettlementPolicy.from_env()
    if args.timeout is not None:
        policy = SettlementPolicy(
            timeout=args.timeout,
            interval=policy.interval,
            min_interval=policy.min_interval,
            backoff=policy.backoff,
            max_interval=policy.max_interval,
        )
    return WorkflowParams.default(minimum_threshold=args.threshold, settlement=policy)


def main(argv: Optional[list[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stdout,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        params = build_params(args)
    except ValueError as exc:
        parser.error(str(exc))

    # Imported here so --help works without the contracting sandbox
    from .xian_ledger import XianLedgerClient

    workflow = PrivatePoolWorkflow(
        XianLedgerClient(),
        params,
        LoggingReporter(decimals=params.asset.decimals),
    )
    try:
        summary = asyncio.run(workflow.run())
    except PoolError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1

    if not (summary.all_participated and summary.fair_contributions):
        logger.warning("Round finished but did not pass every check")
    return 0
