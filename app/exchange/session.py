# ============================================================================
# Exchange Permutation Harness v1.0.0
# Exchange Session - Collaborator Contract
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: The only boundary between the harness and the exchange under test
#
# SOVEREIGN MANDATE:
#   - The harness sees operation COUNTS and success/failure, never encodings
#   - Every commit flushes exactly what accumulated since the last commit
#     of the same operation class
#   - Every error is scenario-fatal; nothing here retries
#
# Error Codes:
#   - PERM-GEN-001: Operation generation failed
#   - PERM-SUB-001: Exchange rejected a submission
#   - PERM-COM-001: Exchange rejected a commit
#   - PERM-COM-002: Block fill does not match the declared size
#   - PERM-VER-001: Committed blocks did not verify
#   - PERM-CFG-001: Harness configuration invalid
#
# ============================================================================

from abc import ABC, abstractmethod
from typing import List, Optional

from app.exchange.harness_context import KeyPair, KeyPairGenerator
from app.schemas.operations import (
    Block,
    BlockSizeConfig,
    DepositRecord,
    OperatingMode,
    OperationClass,
    TradePair,
)


# ============================================================================
# Error Codes
# ============================================================================

class HarnessErrorCode:
    """
    Harness error codes for audit logging.

    ============================================================================
    ERROR CODE REFERENCE:
    ============================================================================
    PERM-GEN-001: Generation error (malformed random parameters)
    PERM-SUB-001: Submission error (invalid state, balance, signature)
    PERM-COM-001: Commit error (block failed to assemble / flush rejected)
    PERM-COM-002: Block fill mismatch (pending count != declared size)
    PERM-VER-001: Verification failure (blocks left unverified)
    PERM-CFG-001: Configuration missing or invalid
    PERM-ABT-001: Scenario aborted
    ============================================================================
    """
    GENERATION = "PERM-GEN-001"
    SUBMISSION = "PERM-SUB-001"
    COMMIT = "PERM-COM-001"
    BLOCK_FILL = "PERM-COM-002"
    VERIFICATION = "PERM-VER-001"
    CONFIG = "PERM-CFG-001"
    SCENARIO_ABORT = "PERM-ABT-001"


# ============================================================================
# Exceptions
# ============================================================================

class HarnessError(Exception):
    """
    Base exception for every harness failure.

    All harness errors are scenario-fatal: there is no fatal/retryable split.
    """

    error_code = HarnessErrorCode.SCENARIO_ABORT

    def __init__(self, message: str, error_code: Optional[str] = None):
        if error_code is not None:
            self.error_code = error_code
        self.message = message
        super().__init__(f"[{self.error_code}] {message}")


class GenerationError(HarnessError):
    """Raised when a random operation cannot be generated (PERM-GEN-001)."""
    error_code = HarnessErrorCode.GENERATION


class SubmissionError(HarnessError):
    """Raised when the exchange rejects an operation (PERM-SUB-001)."""
    error_code = HarnessErrorCode.SUBMISSION


class CommitError(HarnessError):
    """Raised when a block fails to assemble or the flush is rejected (PERM-COM-001)."""
    error_code = HarnessErrorCode.COMMIT


class BlockFillError(CommitError):
    """Raised when the pending count does not equal the declared block size (PERM-COM-002)."""
    error_code = HarnessErrorCode.BLOCK_FILL


class VerificationError(HarnessError):
    """Raised when committed blocks are not confirmed (PERM-VER-001)."""
    error_code = HarnessErrorCode.VERIFICATION


class HarnessConfigurationError(HarnessError):
    """Raised when harness configuration is invalid (PERM-CFG-001)."""
    error_code = HarnessErrorCode.CONFIG


# ============================================================================
# ExchangeSession Contract
# ============================================================================

class ExchangeSession(ABC):
    """
    Contract the harness drives.

    Implementations own all balance bookkeeping, proofs and ledger
    interaction. Every method is a suspension point: the harness awaits
    each call before issuing the next one.
    """

    @property
    @abstractmethod
    def block_sizes(self) -> BlockSizeConfig:
        """Block sizes supported by the exchange, per operation class."""

    @property
    def ring_settlement_block_sizes(self):
        return self.block_sizes.ring_settlement_block_sizes

    @property
    def deposit_block_sizes(self):
        return self.block_sizes.deposit_block_sizes

    @property
    def onchain_withdrawal_block_sizes(self):
        return self.block_sizes.onchain_withdrawal_block_sizes

    @property
    def offchain_withdrawal_block_sizes(self):
        return self.block_sizes.offchain_withdrawal_block_sizes

    @property
    def order_cancellation_block_sizes(self):
        return self.block_sizes.order_cancellation_block_sizes

    # ------------------------------------------------------------------
    # Exchange lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_exchange(self, owner: str, mode: OperatingMode) -> int:
        """Create an exchange instance and return its id."""

    @abstractmethod
    async def fee_collector_account(self, exchange_id: int) -> int:
        """Account id of the wallet that collects operation fees."""

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    @abstractmethod
    async def deposit(
        self,
        exchange_id: int,
        owner: str,
        key_pair: KeyPair,
        token: str,
        amount: int,
    ) -> DepositRecord:
        """Queue a deposit and return the account/owner binding."""

    @abstractmethod
    async def setup_ring(self, ring: TradePair, key_pairs: KeyPairGenerator) -> TradePair:
        """
        Fund both orders of a ring; funding deposits join the pending deposit queue.

        Order accounts are registered with key pairs drawn from `key_pairs`,
        the calling scenario's generator.
        """

    @abstractmethod
    async def send_ring(self, exchange_id: int, ring: TradePair) -> None:
        """Queue a funded ring for settlement."""

    @abstractmethod
    async def request_withdrawal_onchain(
        self,
        exchange_id: int,
        account_id: int,
        token: str,
        amount: int,
        owner: str,
    ) -> None:
        """Queue a withdrawal requested through the primary ledger."""

    @abstractmethod
    async def request_withdrawal_offchain(
        self,
        exchange_id: int,
        account_id: int,
        token: str,
        amount: int,
        fee_token: str,
        fee: int,
        wallet_split_percentage: int,
        wallet_account_id: int,
    ) -> None:
        """Queue a withdrawal authorized off the primary ledger."""

    @abstractmethod
    async def cancel_order(
        self,
        exchange_id: int,
        account_id: int,
        order_token_id: int,
        order_id: int,
        wallet_account_id: int,
        fee_token_id: int,
        fee: int,
        wallet_split_percentage: int,
    ) -> None:
        """Queue an order cancellation."""

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    @abstractmethod
    async def commit_deposits(self, exchange_id: int) -> List[Block]:
        """Flush pending deposits into blocks."""

    @abstractmethod
    async def commit_rings(self, exchange_id: int) -> List[Block]:
        """Flush pending rings into blocks."""

    @abstractmethod
    async def commit_onchain_withdrawals(self, exchange_id: int) -> List[Block]:
        """Flush pending on-chain withdrawal requests into blocks."""

    @abstractmethod
    async def commit_offchain_withdrawals(self, exchange_id: int) -> List[Block]:
        """Flush pending off-chain withdrawal requests into blocks."""

    @abstractmethod
    async def commit_cancels(self, exchange_id: int) -> List[Block]:
        """Flush pending order cancellations into blocks."""

    async def commit(self, exchange_id: int, operation_class: OperationClass) -> List[Block]:
        """Dispatch to the commit primitive of an operation class."""
        commits = {
            OperationClass.RING_SETTLEMENT: self.commit_rings,
            OperationClass.DEPOSIT: self.commit_deposits,
            OperationClass.ONCHAIN_WITHDRAWAL: self.commit_onchain_withdrawals,
            OperationClass.OFFCHAIN_WITHDRAWAL: self.commit_offchain_withdrawals,
            OperationClass.ORDER_CANCELLATION: self.commit_cancels,
        }
        return await commits[operation_class](exchange_id)

    # ------------------------------------------------------------------
    # Verification & queries
    # ------------------------------------------------------------------

    @abstractmethod
    async def verify_pending_blocks(self, exchange_id: int) -> int:
        """Prove and verify every committed block; return how many verified."""

    @abstractmethod
    async def pending_operation_count(
        self, exchange_id: int, operation_class: OperationClass
    ) -> int:
        """Operations of a class accumulated since its last commit."""

    @abstractmethod
    async def pending_block_count(self, exchange_id: int) -> int:
        """Committed blocks still awaiting verification."""
