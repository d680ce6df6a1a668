"""
============================================================================
Exchange Permutation Harness v1.0.0
Scenario Suite - Declarative Permutation Scenarios
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Input Constraints: Live ExchangeSession, read-only HarnessContext
Side Effects: Creates exchanges, submits operations, commits and verifies

PURPOSE
-------
Runs every operation class against every declared block size and every
operating mode, then confirms that each committed block verified.

SCENARIOS SUPPORTED
-------------------
1. RING_SETTLEMENT     - DATA_AVAILABILITY, COMPACT
2. DEPOSIT             - COMPACT
3. ONCHAIN_WITHDRAWAL  - COMPACT, seeded deposit pool
4. OFFCHAIN_WITHDRAWAL - DATA_AVAILABILITY, COMPACT, seeded deposit pool
5. ORDER_CANCELLATION  - DATA_AVAILABILITY, COMPACT, seeded deposit pool

ERROR HANDLING
--------------
The first failure of a scenario halts it and surfaces as a ScenarioAbort
carrying the failed step, mode and seed. Remaining sizes and modes are not
attempted. run_all() moves on to the next scenario.

REPLAY
------
Each scenario draws amounts, owners and key pairs from its own generator
seeded with (seed, scenario name), so a scenario replays identically
whether run alone or in a suite.

============================================================================
"""

import logging
import random
import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from app.exchange.harness_context import HarnessContext
from app.exchange.session import ExchangeSession, HarnessError, HarnessErrorCode
from app.logic.batch_driver import BatchDriver, BlockFill
from app.logic.operation_factory import OperationFactory
from app.logic.verification_gate import VerificationGate, VerificationReport
from app.observability.metrics import record_scenario_result
from app.schemas.operations import (
    BlockSizeConfig,
    DepositRecord,
    OperatingMode,
    OperationClass,
)
from services.harness_config import DEFAULT_DEPOSIT_POOL_SIZE

# Configure module logger
logger = logging.getLogger(__name__)

# Configure dedicated audit logger for scenario results
audit_logger = logging.getLogger(f"{__name__}.audit")


# ============================================================================
# CONSTANTS
# ============================================================================

STATUS_PASSED = "PASSED"
STATUS_ABORTED = "ABORTED"


# ============================================================================
# ENUMS
# ============================================================================

class ScenarioStep(str, Enum):
    """Steps of one mode iteration, in execution order."""
    CREATE_EXCHANGE = "create_exchange"
    SEED_DEPOSITS = "seed_deposits"
    DRIVE = "drive"
    VERIFY = "verify"


# ============================================================================
# DEFINITIONS
# ============================================================================

@dataclass(frozen=True)
class ScenarioDefinition:
    """
    One declarative scenario.

    Attributes:
        name: Scenario name, reported in results and metrics
        operation_class: Class driven through every declared block size
        modes: Operating modes cycled, one fresh exchange each
        seed_deposits: Whether a committed deposit pool is built first
    """
    name: str
    operation_class: OperationClass
    modes: Tuple[OperatingMode, ...]
    seed_deposits: bool = False


BOTH_MODES = (OperatingMode.DATA_AVAILABILITY, OperatingMode.COMPACT)

SCENARIO_DEFINITIONS: Tuple[ScenarioDefinition, ...] = (
    ScenarioDefinition(
        name=OperationClass.RING_SETTLEMENT.value,
        operation_class=OperationClass.RING_SETTLEMENT,
        modes=BOTH_MODES,
    ),
    ScenarioDefinition(
        name=OperationClass.DEPOSIT.value,
        operation_class=OperationClass.DEPOSIT,
        modes=(OperatingMode.COMPACT,),
    ),
    ScenarioDefinition(
        name=OperationClass.ONCHAIN_WITHDRAWAL.value,
        operation_class=OperationClass.ONCHAIN_WITHDRAWAL,
        modes=(OperatingMode.COMPACT,),
        seed_deposits=True,
    ),
    ScenarioDefinition(
        name=OperationClass.OFFCHAIN_WITHDRAWAL.value,
        operation_class=OperationClass.OFFCHAIN_WITHDRAWAL,
        modes=BOTH_MODES,
        seed_deposits=True,
    ),
    ScenarioDefinition(
        name=OperationClass.ORDER_CANCELLATION.value,
        operation_class=OperationClass.ORDER_CANCELLATION,
        modes=BOTH_MODES,
        seed_deposits=True,
    ),
)


def get_definition(name: str) -> ScenarioDefinition:
    """
    Look up a built-in scenario by name (case-insensitive).

    Raises:
        ValueError: If no scenario has that name
    """
    for definition in SCENARIO_DEFINITIONS:
        if definition.name == name.strip().upper():
            return definition
    raise ValueError(
        f"Unknown scenario '{name}', expected one of "
        f"{[d.name for d in SCENARIO_DEFINITIONS]}"
    )


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class ModeRun:
    """Outcome of one mode iteration of a scenario."""
    mode: OperatingMode
    exchange_id: int
    fills: List[BlockFill] = field(default_factory=list)
    verification: List[VerificationReport] = field(default_factory=list)
    deposit_pool: List[DepositRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "exchange_id": self.exchange_id,
            "fills": [fill.to_dict() for fill in self.fills],
            "verification": [report.to_dict() for report in self.verification],
            "deposit_pool_size": len(self.deposit_pool),
        }


@dataclass
class ScenarioAbort(Exception):
    """
    Structured scenario failure.

    Reliability Level: SOVEREIGN TIER

    Raised on the first error of a scenario. Carries everything needed to
    replay it: the seed, the mode and the step that failed.
    """
    failed_step: str
    scenario: str
    mode: Optional[str]
    seed: int
    correlation_id: str
    message: str
    error_code: str = HarnessErrorCode.SCENARIO_ABORT
    cause_code: Optional[str] = None
    timestamp_utc: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    completed_runs: List[Dict[str, Any]] = field(default_factory=list)

    def __str__(self) -> str:
        return (
            f"[{self.error_code}] Scenario '{self.scenario}' aborted at "
            f"'{self.failed_step}' (mode={self.mode}, seed={self.seed}): {self.message}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return asdict(self)


@dataclass
class ScenarioResult:
    """
    Result of one scenario run.

    Reliability Level: SOVEREIGN TIER

    Attributes:
        scenario: Scenario name
        seed: Run seed; replaying with it regenerates the same operations
        correlation_id: Audit trail identifier of the run
        passed: True when every mode committed and verified
        mode_runs: Completed mode iterations, in execution order
        duration_ms: Wall time of the scenario
        abort: The ScenarioAbort when the scenario failed
    """
    scenario: str
    seed: int
    correlation_id: str
    passed: bool
    mode_runs: List[ModeRun] = field(default_factory=list)
    duration_ms: int = 0
    abort: Optional[ScenarioAbort] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario,
            "seed": self.seed,
            "correlation_id": self.correlation_id,
            "passed": self.passed,
            "mode_runs": [run.to_dict() for run in self.mode_runs],
            "duration_ms": self.duration_ms,
            "abort": self.abort.to_dict() if self.abort else None,
        }

    def get_failure_report(self) -> Optional[str]:
        """
        Human-readable failure report, None when the scenario passed.
        """
        if self.passed:
            return None

        if self.abort is not None:
            completed = [run["mode"] for run in self.abort.completed_runs]
        else:
            completed = [run.mode.value for run in self.mode_runs]

        report_lines = [
            f"[{HarnessErrorCode.SCENARIO_ABORT}] Scenario Failed",
            f"  Scenario: {self.scenario}",
            f"  Seed: {self.seed}",
            f"  Correlation ID: {self.correlation_id}",
            f"  Modes Completed: {completed}",
            f"  Duration: {self.duration_ms}ms",
        ]

        if self.abort is not None:
            report_lines.extend([
                f"  Failed Step: {self.abort.failed_step}",
                f"  Mode: {self.abort.mode}",
                f"  Cause: {self.abort.message}",
            ])

        report_lines.append(f"  Replay: HARNESS_SEED={self.seed} --scenario {self.scenario}")
        return "\n".join(report_lines)


# ============================================================================
# SCENARIO SUITE
# ============================================================================

class ScenarioSuite:
    """
    Runs declarative scenarios through one generic driver.

    Reliability Level: SOVEREIGN TIER
    Input Constraints: session and context outlive the suite
    Side Effects: Exchange creation, submissions, commits, verification

    USAGE:
        suite = ScenarioSuite(session, context, seed=42)
        results = await suite.run_all()
    """

    def __init__(
        self,
        session: ExchangeSession,
        context: HarnessContext,
        seed: int,
        verify: bool = True,
        deposit_pool_size: int = DEFAULT_DEPOSIT_POOL_SIZE,
        block_sizes: Optional[BlockSizeConfig] = None,
        correlation_id: Optional[str] = None
    ):
        """
        Initialize the Scenario Suite.

        Args:
            session: Exchange under test
            context: Read-only owner pools and token registry
            seed: Run seed
            verify: Whether the verification gate runs
            deposit_pool_size: Deposits seeded for pool-based scenarios
            block_sizes: Declared sizes (defaults to the session's)
            correlation_id: Audit trail identifier
        """
        self._session = session
        self._context = context
        self._seed = seed
        self._deposit_pool_size = deposit_pool_size
        self._block_sizes = block_sizes or session.block_sizes
        self._correlation_id = correlation_id or str(uuid.uuid4())
        self._driver = BatchDriver(session, self._correlation_id)
        self._gate = VerificationGate(session, verify, self._correlation_id)

        logger.info(
            f"[SUITE] ScenarioSuite initialized | seed={seed} | verify={verify} | "
            f"deposit_pool_size={deposit_pool_size} | "
            f"correlation_id={self._correlation_id}"
        )

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def correlation_id(self) -> str:
        return self._correlation_id

    def rng_for(self, definition: ScenarioDefinition) -> random.Random:
        """Generator of one scenario, seeded with (seed, scenario name)."""
        return random.Random(f"{self._seed}:{definition.name}")

    # ------------------------------------------------------------------------
    # Mode iteration
    # ------------------------------------------------------------------------

    async def _drive(
        self,
        definition: ScenarioDefinition,
        exchange_id: int,
        factory: OperationFactory,
        pool: List[DepositRecord],
    ) -> List[BlockFill]:
        operation_class = definition.operation_class
        sizes = self._block_sizes.for_class(operation_class)

        if operation_class is OperationClass.RING_SETTLEMENT:
            return await self._driver.drive_rings(exchange_id, sizes, factory)

        if operation_class is OperationClass.DEPOSIT:
            async def submit_one() -> Any:
                return await factory.random_deposit(exchange_id)
        elif operation_class is OperationClass.ONCHAIN_WITHDRAWAL:
            async def submit_one() -> Any:
                return await factory.random_onchain_withdrawal(factory.pick_deposit(pool))
        elif operation_class is OperationClass.OFFCHAIN_WITHDRAWAL:
            async def submit_one() -> Any:
                return await factory.random_offchain_withdrawal(factory.pick_deposit(pool))
        else:
            async def submit_one() -> Any:
                return await factory.random_order_cancellation(factory.pick_deposit(pool))

        return await self._driver.drive(exchange_id, operation_class, sizes, submit_one)

    async def _run_mode(
        self,
        definition: ScenarioDefinition,
        mode: OperatingMode,
        factory: OperationFactory,
        completed_runs: Sequence[ModeRun],
    ) -> ModeRun:
        step = ScenarioStep.CREATE_EXCHANGE
        try:
            exchange_id = await self._session.create_exchange(
                self._context.state_owners[0], mode
            )
            run = ModeRun(mode=mode, exchange_id=exchange_id)

            if definition.seed_deposits:
                step = ScenarioStep.SEED_DEPOSITS
                run.deposit_pool = await self._driver.seed_deposit_pool(
                    exchange_id, self._deposit_pool_size, factory
                )

            step = ScenarioStep.DRIVE
            run.fills = await self._drive(definition, exchange_id, factory, run.deposit_pool)

            step = ScenarioStep.VERIFY
            run.verification = await self._gate.confirm([exchange_id], mode)
            return run

        except Exception as e:
            cause_code = e.error_code if isinstance(e, HarnessError) else None
            abort = ScenarioAbort(
                failed_step=step.value,
                scenario=definition.name,
                mode=mode.value,
                seed=self._seed,
                correlation_id=self._correlation_id,
                message=str(e),
                cause_code=cause_code,
                completed_runs=[r.to_dict() for r in completed_runs],
            )
            logger.error(f"{abort} | correlation_id={self._correlation_id}")
            raise abort from e

    # ------------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------------

    async def run_scenario(self, definition: ScenarioDefinition) -> ScenarioResult:
        """
        Run one scenario across all of its modes.

        Each mode gets a fresh exchange, verified right after its commits.

        Raises:
            ScenarioAbort: On the first failure (PERM-ABT-001)
        """
        start_ms = int(time.time() * 1000)
        factory = OperationFactory(
            self._session,
            self._context,
            self.rng_for(definition),
            correlation_id=self._correlation_id,
        )

        logger.info(
            f"[SUITE] Scenario started | scenario={definition.name} | "
            f"modes={[m.value for m in definition.modes]} | seed={self._seed} | "
            f"correlation_id={self._correlation_id}"
        )

        mode_runs: List[ModeRun] = []
        try:
            for mode in definition.modes:
                mode_runs.append(await self._run_mode(definition, mode, factory, mode_runs))
        except ScenarioAbort:
            record_scenario_result(definition.name, STATUS_ABORTED, self._correlation_id)
            raise

        result = ScenarioResult(
            scenario=definition.name,
            seed=self._seed,
            correlation_id=self._correlation_id,
            passed=True,
            mode_runs=mode_runs,
            duration_ms=int(time.time() * 1000) - start_ms,
        )
        record_scenario_result(definition.name, STATUS_PASSED, self._correlation_id)
        audit_logger.info(
            f"[SUITE] Scenario passed | scenario={definition.name} | "
            f"exchanges={[run.exchange_id for run in mode_runs]} | "
            f"duration_ms={result.duration_ms} | correlation_id={self._correlation_id}"
        )
        return result

    async def run_all(
        self,
        definitions: Optional[Iterable[ScenarioDefinition]] = None
    ) -> List[ScenarioResult]:
        """
        Run scenarios in isolation; a failing scenario does not stop the next.

        Returns:
            One ScenarioResult per scenario, in order
        """
        results: List[ScenarioResult] = []
        for definition in definitions or SCENARIO_DEFINITIONS:
            start_ms = int(time.time() * 1000)
            try:
                results.append(await self.run_scenario(definition))
            except ScenarioAbort as abort:
                result = ScenarioResult(
                    scenario=definition.name,
                    seed=self._seed,
                    correlation_id=self._correlation_id,
                    passed=False,
                    duration_ms=int(time.time() * 1000) - start_ms,
                    abort=abort,
                )
                audit_logger.error(result.get_failure_report())
                results.append(result)

        passed = sum(1 for result in results if result.passed)
        logger.info(
            f"[SUITE] Run complete | passed={passed}/{len(results)} | "
            f"seed={self._seed} | correlation_id={self._correlation_id}"
        )
        return results


# ============================================================================
# Sovereign Reliability Audit
# ============================================================================
#
# [Reliability Audit]
# Replayability: [Verified - per-scenario generator seeded from run seed]
# Error Handling: [First failure aborts the scenario, PERM-ABT-001]
# Traceability: [correlation_id and seed on every result and abort]
#
# ============================================================================
