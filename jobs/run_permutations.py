"""
Exchange Permutation Harness - Run Job

Runs the permutation scenarios against the in-memory reference exchange
and prints a JSON summary of every scenario.

The run:
1. Load configuration from the environment (.env supported)
2. Apply command-line overrides (seed, accounts, verification)
3. Build the harness context from seeded accounts
4. Run each selected scenario in isolation
5. Exit non-zero when any scenario aborted

Reliability Level: Offline Job
Traceability: Seed and correlation_id are logged and included in the summary

Usage:
    python -m jobs.run_permutations --scenario DEPOSIT --seed 42
    HARNESS_SEED=42 python -m jobs.run_permutations --no-verify --verbose
"""

import sys
import json
import uuid
import asyncio
import argparse
import logging
import random
from typing import Any, Dict, List, Optional, Sequence

from dotenv import load_dotenv

from app.exchange.harness_context import HarnessContext, generate_accounts
from app.exchange.session import HarnessConfigurationError
from app.exchange.simulated_exchange import SimulatedExchange
from services.harness_config import HarnessConfig
from services.scenario_suite import (
    SCENARIO_DEFINITIONS,
    ScenarioDefinition,
    ScenarioResult,
    ScenarioSuite,
    get_definition,
)

logger = logging.getLogger(__name__)

# Exit codes
EXIT_OK = 0
EXIT_SCENARIO_FAILED = 1
EXIT_CONFIG_INVALID = 2


async def run_permutations(
    config: HarnessConfig,
    definitions: Optional[Sequence[ScenarioDefinition]] = None,
    correlation_id: Optional[str] = None,
) -> List[ScenarioResult]:
    """
    Run the selected scenarios against a fresh SimulatedExchange.

    Args:
        config: Validated harness configuration
        definitions: Scenarios to run (default: all)
        correlation_id: Audit trail identifier

    Returns:
        One ScenarioResult per scenario
    """
    correlation_id = correlation_id or str(uuid.uuid4())
    rng = random.Random(config.seed)
    accounts = generate_accounts(rng, config.account_count)
    context = HarnessContext.from_accounts(accounts)
    block_sizes = config.block_sizes()

    session = SimulatedExchange(context, block_sizes, correlation_id)
    suite = ScenarioSuite(
        session,
        context,
        seed=config.seed,
        verify=config.verify,
        deposit_pool_size=config.deposit_pool_size,
        block_sizes=block_sizes,
        correlation_id=correlation_id,
    )
    return await suite.run_all(definitions)


def build_summary(
    config: HarnessConfig,
    results: List[ScenarioResult],
    correlation_id: str,
) -> Dict[str, Any]:
    """JSON-serializable run summary."""
    return {
        "seed": config.seed,
        "correlation_id": correlation_id,
        "verify": config.verify,
        "passed": sum(1 for result in results if result.passed),
        "failed": sum(1 for result in results if not result.passed),
        "results": [result.to_dict() for result in results],
    }


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point for the permutation run."""
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Run randomized block-size and mode permutations against the exchange"
    )
    parser.add_argument(
        "--scenario",
        action="append",
        type=str.upper,
        choices=[definition.name for definition in SCENARIO_DEFINITIONS],
        help="Scenario to run (repeatable, default: all)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for every random draw (overrides HARNESS_SEED)"
    )
    parser.add_argument(
        "--accounts",
        type=int,
        default=None,
        help="Number of generated accounts (overrides HARNESS_ACCOUNT_COUNT)"
    )
    parser.add_argument(
        "--no-verify",
        action="store_true",
        help="Skip the verification gate"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    correlation_id = str(uuid.uuid4())

    try:
        config = HarnessConfig.from_environment(validate=False)
        if args.seed is not None:
            config.seed = args.seed
        if args.accounts is not None:
            config.account_count = args.accounts
        if args.no_verify:
            config.verify = False
        config.validate()
    except HarnessConfigurationError as e:
        logger.error(f"[RUN] Configuration rejected | error={e}")
        return EXIT_CONFIG_INVALID

    definitions = None
    if args.scenario:
        definitions = [get_definition(name) for name in args.scenario]

    logger.info(
        f"[RUN] Starting permutation run | seed={config.seed} | "
        f"scenarios={args.scenario or 'ALL'} | correlation_id={correlation_id}"
    )

    run = run_permutations(config, definitions, correlation_id)
    try:
        if config.timeout_seconds > 0:
            results = asyncio.run(asyncio.wait_for(run, config.timeout_seconds))
        else:
            results = asyncio.run(run)
    except asyncio.TimeoutError:
        logger.error(
            f"[RUN] Run exceeded HARNESS_TIMEOUT_SECONDS={config.timeout_seconds} | "
            f"seed={config.seed} | correlation_id={correlation_id}"
        )
        return EXIT_SCENARIO_FAILED

    summary = build_summary(config, results, correlation_id)
    print(json.dumps(summary, indent=2))

    return EXIT_OK if summary["failed"] == 0 else EXIT_SCENARIO_FAILED


if __name__ == "__main__":
    sys.exit(main())
