"""
============================================================================
Exchange Permutation Harness v1.0.0
Batch Driver - Size-Bounded Block Fill and Commit
============================================================================

Reliability Level: L6 Critical (Mission-Critical)
Input Constraints: Declared block sizes are positive integers
Side Effects: Submits operations and commits blocks through the session

DRIVE LOOP (per declared size, in declared order)
-------------------------------------------------
1. Submit exactly `size` operations, each awaited before the next
2. Read the session's pending count; it MUST equal `size`
3. Commit the operation class (rings: run before_commit first)

Any exception aborts the drive immediately. A partially filled block is
never retried.

============================================================================
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from app.exchange.session import (
    BlockFillError,
    ExchangeSession,
    HarnessError,
)
from app.logic.operation_factory import OperationFactory
from app.observability.metrics import record_block_fill, record_operation_submitted
from app.schemas.operations import Block, DepositRecord, OperationClass

# Configure module logger
logger = logging.getLogger(__name__)


SubmitOne = Callable[[], Awaitable[Any]]
BeforeCommit = Callable[[], Awaitable[Any]]


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class BlockFill:
    """
    Outcome of one declared block.

    Reliability Level: L6 Critical
    """
    operation_class: OperationClass
    declared_size: int
    submitted: int
    blocks: List[Block] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "operation_class": self.operation_class.value,
            "declared_size": self.declared_size,
            "submitted": self.submitted,
            "blocks": [block.to_dict() for block in self.blocks],
        }


# =============================================================================
# Batch Driver
# =============================================================================

class BatchDriver:
    """
    Fills and commits one block per declared size.

    Reliability Level: L6 Critical
    Input Constraints: A live ExchangeSession
    Side Effects: Submissions, commits, Prometheus metrics

    USAGE:
        driver = BatchDriver(session, correlation_id)
        fills = await driver.drive(
            exchange_id,
            OperationClass.DEPOSIT,
            session.deposit_block_sizes,
            lambda: factory.random_deposit(exchange_id),
        )
    """

    def __init__(self, session: ExchangeSession, correlation_id: Optional[str] = None):
        self._session = session
        self._correlation_id = correlation_id or str(uuid.uuid4())

    @property
    def correlation_id(self) -> str:
        return self._correlation_id

    async def _fill(
        self,
        exchange_id: int,
        operation_class: OperationClass,
        size: int,
        submit_one: SubmitOne,
    ) -> int:
        submitted = 0
        for _ in range(size):
            await submit_one()
            submitted += 1
            record_operation_submitted(operation_class.value, self._correlation_id)
        return submitted

    async def _commit(
        self,
        exchange_id: int,
        operation_class: OperationClass,
        size: int,
        submitted: int,
        before_commit: Optional[BeforeCommit],
    ) -> BlockFill:
        pending = await self._session.pending_operation_count(exchange_id, operation_class)
        if pending != size:
            message = (
                f"Block fill mismatch for {operation_class.value}: declared {size}, "
                f"pending {pending} on exchange {exchange_id}"
            )
            logger.error(
                f"[{BlockFillError.error_code}] {message} | "
                f"correlation_id={self._correlation_id}"
            )
            raise BlockFillError(message)

        if before_commit is not None:
            await before_commit()

        blocks = await self._session.commit(exchange_id, operation_class)

        if blocks:
            record_block_fill(
                operation_class.value, blocks[0].mode.value, size, len(blocks),
                self._correlation_id,
            )
        else:
            logger.warning(
                f"[DRIVER] Commit returned no blocks | exchange_id={exchange_id} | "
                f"operation_class={operation_class.value} | size={size} | "
                f"correlation_id={self._correlation_id}"
            )
        logger.info(
            f"[DRIVER] Block committed | exchange_id={exchange_id} | "
            f"operation_class={operation_class.value} | size={size} | "
            f"blocks={len(blocks)} | correlation_id={self._correlation_id}"
        )
        return BlockFill(
            operation_class=operation_class,
            declared_size=size,
            submitted=submitted,
            blocks=blocks,
        )

    async def drive(
        self,
        exchange_id: int,
        operation_class: OperationClass,
        block_sizes: Sequence[int],
        submit_one: SubmitOne,
        before_commit: Optional[BeforeCommit] = None,
    ) -> List[BlockFill]:
        """
        Fill and commit one block per declared size, in declared order.

        Args:
            exchange_id: Exchange instance to drive
            operation_class: Class whose queue is filled and committed
            block_sizes: Declared sizes, consumed in order
            submit_one: Coroutine factory that submits exactly one operation
            before_commit: Awaited after the fill check, before the commit

        Returns:
            One BlockFill per declared size

        Raises:
            BlockFillError: Pending count differs from the declared size
            HarnessError: Any submission or commit failure, unmodified
        """
        fills: List[BlockFill] = []
        for size in block_sizes:
            logger.debug(
                f"[DRIVER] Filling block | exchange_id={exchange_id} | "
                f"operation_class={operation_class.value} | size={size}"
            )
            submitted = await self._fill(exchange_id, operation_class, size, submit_one)
            fills.append(
                await self._commit(exchange_id, operation_class, size, submitted, before_commit)
            )
        return fills

    async def drive_rings(
        self,
        exchange_id: int,
        block_sizes: Sequence[int],
        factory: OperationFactory,
    ) -> List[BlockFill]:
        """
        Ring settlement fill.

        For each size every ring of the block is generated first, then each
        one is set up and sent in generation order. Funding deposits are
        committed before the rings.
        """
        async def commit_funding() -> None:
            await self._session.commit_deposits(exchange_id)

        fills: List[BlockFill] = []
        for size in block_sizes:
            rings = [factory.random_ring(exchange_id) for _ in range(size)]
            pending = iter(rings)

            async def submit_one() -> None:
                ring = await self._session.setup_ring(next(pending), factory.key_pairs)
                await self._session.send_ring(exchange_id, ring)

            submitted = await self._fill(
                exchange_id, OperationClass.RING_SETTLEMENT, size, submit_one
            )
            fills.append(
                await self._commit(
                    exchange_id,
                    OperationClass.RING_SETTLEMENT,
                    size,
                    submitted,
                    commit_funding,
                )
            )
        return fills

    async def seed_deposit_pool(
        self,
        exchange_id: int,
        count: int,
        factory: OperationFactory,
    ) -> List[DepositRecord]:
        """
        Submit `count` random deposits, commit them, return the pool.

        Raises:
            HarnessError: Any deposit submission or commit failure
        """
        pool: List[DepositRecord] = []
        try:
            for _ in range(count):
                pool.append(await factory.random_deposit(exchange_id))
                record_operation_submitted(
                    OperationClass.DEPOSIT.value, self._correlation_id
                )
            await self._session.commit_deposits(exchange_id)
        except HarnessError as e:
            logger.error(
                f"[DRIVER] Deposit pool seeding failed | exchange_id={exchange_id} | "
                f"seeded={len(pool)}/{count} | error={e} | "
                f"correlation_id={self._correlation_id}"
            )
            raise

        logger.info(
            f"[DRIVER] Deposit pool seeded | exchange_id={exchange_id} | "
            f"size={len(pool)} | correlation_id={self._correlation_id}"
        )
        return pool
