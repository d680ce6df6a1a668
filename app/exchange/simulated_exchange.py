"""
============================================================================
Exchange Permutation Harness v1.0.0
Simulated Exchange - In-Memory Batch-Settled Exchange
============================================================================

Reliability Level: L6 Critical (Sovereign Tier)
Decimal Integrity: All balances are integer base units, never floats
Traceability: All operations include correlation_id for audit

SIMULATED EXCHANGE:
    Paper implementation of the ExchangeSession contract:
    - Operations queue per exchange and per operation class
    - Commits pack a queue into blocks of the supported sizes
      (padded up to the smallest size that fits)
    - Committed deposits and withdrawals move paper balances
    - verify_pending_blocks confirms committed blocks in order

    It stands in for the real exchange so the harness runs without a
    ledger, a prover or a network. It does not prove settlement.

============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple
import logging
import uuid

from app.exchange.harness_context import HarnessContext, KeyPair, KeyPairGenerator
from app.exchange.session import (
    CommitError,
    ExchangeSession,
    SubmissionError,
)
from app.schemas.operations import (
    Block,
    BlockSizeConfig,
    BlockStatus,
    DepositRecord,
    OperatingMode,
    OperationClass,
    TradePair,
)

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Exchange ids start at 1; 0 is never a valid exchange
FIRST_EXCHANGE_ID = 1

# Order cancellation addressing limits (trading history tree)
MAX_ORDER_TOKEN_ID = 2 ** 8
MAX_ORDER_ID = 2 ** 14

MAX_WALLET_SPLIT_PERCENTAGE = 100


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class SimulatedAccount:
    """Paper account inside one exchange."""
    account_id: int
    owner: str
    public_key_x: int
    public_key_y: int
    balances: Dict[int, int] = field(default_factory=dict)
    cancelled_orders: Set[Tuple[int, int]] = field(default_factory=set)

    def balance(self, token_id: int) -> int:
        return self.balances.get(token_id, 0)

    def credit(self, token_id: int, amount: int) -> None:
        self.balances[token_id] = self.balance(token_id) + amount

    def debit_available(self, token_id: int, amount: int) -> int:
        """Debit up to `amount`; returns what was actually debited."""
        debited = min(self.balance(token_id), amount)
        self.balances[token_id] = self.balance(token_id) - debited
        return debited


@dataclass
class SimulatedExchangeState:
    """State of one exchange instance."""
    exchange_id: int
    owner: str
    mode: OperatingMode
    fee_collector_account_id: int
    accounts: Dict[int, SimulatedAccount] = field(default_factory=dict)
    account_by_owner: Dict[str, int] = field(default_factory=dict)
    pending: Dict[OperationClass, List[Dict[str, Any]]] = field(
        default_factory=lambda: {operation_class: [] for operation_class in OperationClass}
    )
    blocks: List[Block] = field(default_factory=list)
    deposit_count: int = 0


# =============================================================================
# Simulated Exchange Implementation
# =============================================================================

class SimulatedExchange(ExchangeSession):
    """
    In-memory exchange implementing the ExchangeSession contract.

    ============================================================================
    SIMULATED EXCHANGE RESPONSIBILITIES:
    ============================================================================
    1. Validate every submission (exchange, account, owner, token, amount)
    2. Queue operations per exchange and per operation class
    3. Pack queues into blocks of supported sizes on commit
    4. Apply committed operations to paper balances
    5. Confirm committed blocks on verification
    ============================================================================

    Reliability Level: L6 Critical (Sovereign Tier)
    Input Constraints: HarnessContext for owners and tokens
    Side Effects: None outside its own memory; logs all operations
    """

    def __init__(
        self,
        context: HarnessContext,
        block_sizes: Optional[BlockSizeConfig] = None,
        correlation_id: Optional[str] = None
    ):
        """
        Initialize the Simulated Exchange.

        Args:
            context: Read-only harness context
            block_sizes: Supported block sizes (defaults to BlockSizeConfig())
            correlation_id: Audit trail identifier
        """
        self._context = context
        self._block_sizes = block_sizes or BlockSizeConfig()
        self._correlation_id = correlation_id or str(uuid.uuid4())
        self._exchanges: Dict[int, SimulatedExchangeState] = {}
        self._next_exchange_id = FIRST_EXCHANGE_ID

        logger.info(
            f"[SIM] SimulatedExchange initialized | "
            f"block_sizes={self._block_sizes.to_dict()} | "
            f"correlation_id={self._correlation_id}"
        )

    @property
    def block_sizes(self) -> BlockSizeConfig:
        return self._block_sizes

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _reject(self, message: str) -> SubmissionError:
        logger.warning(
            f"[SIM] Submission rejected | {message} | "
            f"correlation_id={self._correlation_id}"
        )
        return SubmissionError(message)

    def _get_exchange(self, exchange_id: int) -> SimulatedExchangeState:
        state = self._exchanges.get(exchange_id)
        if state is None:
            raise self._reject(f"Unknown exchange: {exchange_id}")
        return state

    def _get_account(self, state: SimulatedExchangeState, account_id: int) -> SimulatedAccount:
        account = state.accounts.get(account_id)
        if account is None:
            raise self._reject(
                f"Unknown account {account_id} on exchange {state.exchange_id}"
            )
        return account

    def _token_id(self, token: str) -> int:
        try:
            return self._context.tokens.get_token_id(token)
        except ValueError as e:
            raise self._reject(str(e)) from e

    def _check_amount(self, amount: Any, field_name: str) -> int:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise self._reject(
                f"{field_name} must be non-negative int base units, got {amount!r}"
            )
        return amount

    def _open_account(
        self,
        state: SimulatedExchangeState,
        owner: str,
        key_pair: Optional[KeyPair]
    ) -> SimulatedAccount:
        """Return the owner's account, creating it on first use."""
        account_id = state.account_by_owner.get(owner)
        if account_id is not None:
            account = state.accounts[account_id]
            if key_pair is not None:
                account.public_key_x = key_pair.public_key_x
                account.public_key_y = key_pair.public_key_y
            return account

        account_id = len(state.accounts) + 1
        account = SimulatedAccount(
            account_id=account_id,
            owner=owner,
            public_key_x=key_pair.public_key_x if key_pair else 0,
            public_key_y=key_pair.public_key_y if key_pair else 0,
        )
        state.accounts[account_id] = account
        state.account_by_owner[owner] = account_id
        return account

    def _queue_deposit(
        self,
        state: SimulatedExchangeState,
        account: SimulatedAccount,
        token: str,
        amount: int
    ) -> DepositRecord:
        token_info = self._context.tokens.resolve(token)
        state.deposit_count += 1
        record = DepositRecord(
            exchange_id=state.exchange_id,
            account_id=account.account_id,
            token=token_info.address,
            owner=account.owner,
            amount=amount,
            deposit_idx=state.deposit_count,
        )
        state.pending[OperationClass.DEPOSIT].append({
            "deposit_idx": record.deposit_idx,
            "account_id": account.account_id,
            "token_id": token_info.token_id,
            "amount": amount,
        })
        return record

    # -------------------------------------------------------------------------
    # Exchange lifecycle
    # -------------------------------------------------------------------------

    async def create_exchange(self, owner: str, mode: OperatingMode) -> int:
        if not owner:
            raise self._reject("Exchange owner must be non-empty")

        exchange_id = self._next_exchange_id
        self._next_exchange_id += 1

        state = SimulatedExchangeState(
            exchange_id=exchange_id,
            owner=owner,
            mode=OperatingMode(mode),
            fee_collector_account_id=0,
        )
        wallet = self._open_account(state, self._context.wallet_owners[0], None)
        state.fee_collector_account_id = wallet.account_id
        self._exchanges[exchange_id] = state

        logger.info(
            f"[SIM] Exchange created | exchange_id={exchange_id} | "
            f"mode={state.mode.value} | owner={owner} | "
            f"correlation_id={self._correlation_id}"
        )
        return exchange_id

    async def fee_collector_account(self, exchange_id: int) -> int:
        return self._get_exchange(exchange_id).fee_collector_account_id

    # -------------------------------------------------------------------------
    # Submissions
    # -------------------------------------------------------------------------

    async def deposit(
        self,
        exchange_id: int,
        owner: str,
        key_pair: KeyPair,
        token: str,
        amount: int,
    ) -> DepositRecord:
        state = self._get_exchange(exchange_id)
        if not owner:
            raise self._reject("Deposit owner must be non-empty")
        amount = self._check_amount(amount, "amount")
        self._token_id(token)

        account = self._open_account(state, owner, key_pair)
        record = self._queue_deposit(state, account, token, amount)

        logger.debug(
            f"[SIM] Deposit queued | exchange_id={exchange_id} | "
            f"account_id={record.account_id} | deposit_idx={record.deposit_idx} | "
            f"amount={amount}"
        )
        return record

    async def setup_ring(self, ring: TradePair, key_pairs: KeyPairGenerator) -> TradePair:
        state = self._get_exchange(ring.exchange_id)
        default_owners = self._context.order_owners

        for index, order in enumerate(ring.orders):
            amount = self._check_amount(order.amount_s, "amount_s")
            self._token_id(order.token_s)
            owner = order.owner or default_owners[index % len(default_owners)]
            account = self._open_account(state, owner, key_pairs.generate())
            self._queue_deposit(state, account, order.token_s, amount)
            order.owner = owner
            order.account_id = account.account_id

        return ring

    async def send_ring(self, exchange_id: int, ring: TradePair) -> None:
        state = self._get_exchange(exchange_id)
        if ring.exchange_id != exchange_id:
            raise self._reject(
                f"Ring targets exchange {ring.exchange_id}, sent to {exchange_id}"
            )
        for order in ring.orders:
            if not order.is_funded:
                raise self._reject("Ring sent before setup: order has no funded account")
            self._get_account(state, order.account_id)

        state.pending[OperationClass.RING_SETTLEMENT].append({"ring": ring})

    async def request_withdrawal_onchain(
        self,
        exchange_id: int,
        account_id: int,
        token: str,
        amount: int,
        owner: str,
    ) -> None:
        state = self._get_exchange(exchange_id)
        account = self._get_account(state, account_id)
        if account.owner != owner:
            raise self._reject(
                f"Owner mismatch for account {account_id}: {owner} != {account.owner}"
            )
        state.pending[OperationClass.ONCHAIN_WITHDRAWAL].append({
            "account_id": account_id,
            "token_id": self._token_id(token),
            "amount": self._check_amount(amount, "amount"),
        })

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
        state = self._get_exchange(exchange_id)
        self._get_account(state, account_id)
        self._get_account(state, wallet_account_id)
        if not 0 <= wallet_split_percentage <= MAX_WALLET_SPLIT_PERCENTAGE:
            raise self._reject(
                f"wallet_split_percentage out of range: {wallet_split_percentage}"
            )
        state.pending[OperationClass.OFFCHAIN_WITHDRAWAL].append({
            "account_id": account_id,
            "token_id": self._token_id(token),
            "amount": self._check_amount(amount, "amount"),
            "fee_token_id": self._token_id(fee_token),
            "fee": self._check_amount(fee, "fee"),
            "wallet_account_id": wallet_account_id,
        })

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
        state = self._get_exchange(exchange_id)
        self._get_account(state, account_id)
        self._get_account(state, wallet_account_id)
        if not 0 <= order_token_id < MAX_ORDER_TOKEN_ID:
            raise self._reject(f"order_token_id out of range: {order_token_id}")
        if not 0 <= order_id < MAX_ORDER_ID:
            raise self._reject(f"order_id out of range: {order_id}")
        if not 0 <= fee_token_id < len(self._context.tokens.symbols):
            raise self._reject(f"Unknown fee token id: {fee_token_id}")
        if not 0 <= wallet_split_percentage <= MAX_WALLET_SPLIT_PERCENTAGE:
            raise self._reject(
                f"wallet_split_percentage out of range: {wallet_split_percentage}"
            )
        state.pending[OperationClass.ORDER_CANCELLATION].append({
            "account_id": account_id,
            "order_token_id": order_token_id,
            "order_id": order_id,
            "fee_token_id": fee_token_id,
            "fee": self._check_amount(fee, "fee"),
            "wallet_account_id": wallet_account_id,
        })

    # -------------------------------------------------------------------------
    # Commits
    # -------------------------------------------------------------------------

    def _apply(self, state: SimulatedExchangeState, operation_class: OperationClass,
               operation: Dict[str, Any]) -> None:
        """Apply one committed operation to paper balances."""
        if operation_class is OperationClass.DEPOSIT:
            account = state.accounts[operation["account_id"]]
            account.credit(operation["token_id"], operation["amount"])

        elif operation_class is OperationClass.ONCHAIN_WITHDRAWAL:
            account = state.accounts[operation["account_id"]]
            account.debit_available(operation["token_id"], operation["amount"])

        elif operation_class is OperationClass.OFFCHAIN_WITHDRAWAL:
            account = state.accounts[operation["account_id"]]
            wallet = state.accounts[operation["wallet_account_id"]]
            fee_paid = account.debit_available(operation["fee_token_id"], operation["fee"])
            wallet.credit(operation["fee_token_id"], fee_paid)
            account.debit_available(operation["token_id"], operation["amount"])

        elif operation_class is OperationClass.ORDER_CANCELLATION:
            account = state.accounts[operation["account_id"]]
            wallet = state.accounts[operation["wallet_account_id"]]
            fee_paid = account.debit_available(operation["fee_token_id"], operation["fee"])
            wallet.credit(operation["fee_token_id"], fee_paid)
            account.cancelled_orders.add((operation["order_token_id"], operation["order_id"]))

        elif operation_class is OperationClass.RING_SETTLEMENT:
            ring: TradePair = operation["ring"]
            order_a, order_b = ring.orders
            account_a = state.accounts[order_a.account_id]
            account_b = state.accounts[order_b.account_id]
            token_a = self._context.tokens.get_token_id(order_a.token_s)
            token_b = self._context.tokens.get_token_id(order_b.token_s)
            # Each side fills at most what it sells and what the other side buys
            fill_a = account_a.debit_available(token_a, min(order_a.amount_s, order_b.amount_b))
            fill_b = account_b.debit_available(token_b, min(order_b.amount_s, order_a.amount_b))
            account_b.credit(token_a, fill_a)
            account_a.credit(token_b, fill_b)

    async def _commit(self, exchange_id: int, operation_class: OperationClass) -> List[Block]:
        state = self._get_exchange(exchange_id)
        operations = state.pending[operation_class]
        if not operations:
            logger.debug(
                f"[SIM] Nothing to commit | exchange_id={exchange_id} | "
                f"operation_class={operation_class.value}"
            )
            return []

        if operation_class is OperationClass.RING_SETTLEMENT:
            unfunded = {d["account_id"] for d in state.pending[OperationClass.DEPOSIT]}
            for operation in operations:
                ring_accounts = {order.account_id for order in operation["ring"].orders}
                if ring_accounts & unfunded:
                    message = (
                        f"Rings on exchange {exchange_id} depend on uncommitted deposits "
                        f"for accounts {sorted(ring_accounts & unfunded)}"
                    )
                    logger.error(
                        f"[SIM] Commit rejected | {message} | "
                        f"correlation_id={self._correlation_id}"
                    )
                    raise CommitError(message)

        sizes = sorted(self._block_sizes.for_class(operation_class))
        max_size = sizes[-1]

        blocks: List[Block] = []
        for start in range(0, len(operations), max_size):
            chunk = operations[start:start + max_size]
            padded_size = next(size for size in sizes if size >= len(chunk))
            for operation in chunk:
                self._apply(state, operation_class, operation)
            block = Block(
                exchange_id=exchange_id,
                block_idx=len(state.blocks) + 1,
                operation_class=operation_class,
                operation_count=len(chunk),
                padded_size=padded_size,
                mode=state.mode,
            )
            state.blocks.append(block)
            blocks.append(block)

        state.pending[operation_class] = []

        logger.info(
            f"[SIM] Committed | exchange_id={exchange_id} | "
            f"operation_class={operation_class.value} | "
            f"operations={len(operations)} | "
            f"blocks={[b.block_idx for b in blocks]} | "
            f"correlation_id={self._correlation_id}"
        )
        return blocks

    async def commit_deposits(self, exchange_id: int) -> List[Block]:
        return await self._commit(exchange_id, OperationClass.DEPOSIT)

    async def commit_rings(self, exchange_id: int) -> List[Block]:
        return await self._commit(exchange_id, OperationClass.RING_SETTLEMENT)

    async def commit_onchain_withdrawals(self, exchange_id: int) -> List[Block]:
        return await self._commit(exchange_id, OperationClass.ONCHAIN_WITHDRAWAL)

    async def commit_offchain_withdrawals(self, exchange_id: int) -> List[Block]:
        return await self._commit(exchange_id, OperationClass.OFFCHAIN_WITHDRAWAL)

    async def commit_cancels(self, exchange_id: int) -> List[Block]:
        return await self._commit(exchange_id, OperationClass.ORDER_CANCELLATION)

    # -------------------------------------------------------------------------
    # Verification & queries
    # -------------------------------------------------------------------------

    async def verify_pending_blocks(self, exchange_id: int) -> int:
        state = self._get_exchange(exchange_id)
        verified = 0
        for block in state.blocks:
            if block.status is BlockStatus.COMMITTED:
                block.status = BlockStatus.VERIFIED
                verified += 1

        logger.info(
            f"[SIM] Blocks verified | exchange_id={exchange_id} | "
            f"verified={verified} | correlation_id={self._correlation_id}"
        )
        return verified

    async def pending_operation_count(
        self, exchange_id: int, operation_class: OperationClass
    ) -> int:
        return len(self._get_exchange(exchange_id).pending[operation_class])

    async def pending_block_count(self, exchange_id: int) -> int:
        state = self._get_exchange(exchange_id)
        return sum(1 for block in state.blocks if block.status is BlockStatus.COMMITTED)

    def blocks(self, exchange_id: int) -> List[Block]:
        """All blocks committed on an exchange, oldest first."""
        return list(self._get_exchange(exchange_id).blocks)

    def exchange_mode(self, exchange_id: int) -> OperatingMode:
        return self._get_exchange(exchange_id).mode

    def get_account(self, exchange_id: int, account_id: int) -> SimulatedAccount:
        state = self._get_exchange(exchange_id)
        return self._get_account(state, account_id)

    def balance_of(self, exchange_id: int, account_id: int, token: str) -> int:
        account = self.get_account(exchange_id, account_id)
        return account.balance(self._context.tokens.get_token_id(token))


# =============================================================================
# Sovereign Reliability Audit
# =============================================================================
# Decimal Integrity: [Verified - integer base units only]
# Traceability: [correlation_id on exchange lifecycle, commits and rejections]
# Error Handling: [PERM-SUB-001 / PERM-COM-001 raised, never swallowed]
# =============================================================================
