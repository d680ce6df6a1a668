"""
============================================================================
Exchange Permutation Harness v1.0.0
Operation Factory - Randomized Exchange Operations
============================================================================

Reliability Level: L6 Critical (Mission-Critical)
Input Constraints: Seeded random.Random, live ExchangeSession
Side Effects: Submissions mutate the exchange's pending queues

GENERATORS
----------
1. random_ring               - crossed WETH/GTO pair, pure
2. random_deposit            - LRC deposit for a random order owner
3. random_onchain_withdrawal - ledger-routed withdrawal of a deposit
4. random_offchain_withdrawal- off-ledger withdrawal via the fee collector
5. random_order_cancellation - cancellation of a synthetic order slot

Every draw comes from the injected generator, so a run replays from its
seed. Amounts are drawn as floats and converted to base units exactly once
through the DecimalGateway.

============================================================================
"""

import logging
import random
from typing import Optional, Sequence

from pydantic import ValidationError

from app.exchange.decimal_gateway import DecimalGateway
from app.exchange.harness_context import HarnessContext, KeyPairGenerator
from app.exchange.session import ExchangeSession, GenerationError
from app.schemas.operations import DepositRecord, OrderSpec, TradePair

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

RING_TOKEN_A = "WETH"
RING_TOKEN_B = "GTO"

DEPOSIT_TOKEN = "LRC"
FEE_TOKEN = "LRC"
FEE_TOKEN_ID = 1

# Whole-token bounds of the random draws
MAX_RING_AMOUNT = 100
MAX_DEPOSIT_AMOUNT = 1000

# Withdrawals are drawn directly in base units, far below any deposit
MAX_WITHDRAWAL_BASE_UNITS = 1000

# Cancellation addressing: token slot and order slot of the trading history
ORDER_TOKEN_SLOTS = 2 ** 8
ORDER_ID_SLOTS = 2 ** 14


class OperationFactory:
    """
    Builds and submits randomized operations.

    Reliability Level: L6 Critical
    Input Constraints: session, context and rng are fixed for the factory's life
    Side Effects: random_deposit / withdrawals / cancellations submit to the session

    Example Usage:
        factory = OperationFactory(session, context, random.Random(seed))
        ring = factory.random_ring(exchange_id)
        deposit = await factory.random_deposit(exchange_id)
        await factory.random_onchain_withdrawal(deposit)
    """

    def __init__(
        self,
        session: ExchangeSession,
        context: HarnessContext,
        rng: random.Random,
        correlation_id: Optional[str] = None,
        gateway: Optional[DecimalGateway] = None
    ):
        self._session = session
        self._context = context
        self._rng = rng
        self._key_pairs = KeyPairGenerator(rng)
        self._correlation_id = correlation_id
        self._gateway = gateway or DecimalGateway()

    @property
    def key_pairs(self) -> KeyPairGenerator:
        """Key pairs for accounts this factory opens, drawn from its own generator."""
        return self._key_pairs

    # -------------------------------------------------------------------------
    # Draws
    # -------------------------------------------------------------------------

    def _to_base_units(self, value: float) -> int:
        try:
            return self._gateway.to_base_units(value, self._correlation_id)
        except ValueError as e:
            raise GenerationError(f"Amount draw {value!r} not convertible: {e}") from e

    def _ring_amount(self) -> int:
        # random() < 1, so the modulo leaves the draw unchanged: amounts land
        # in [0, 1) token rather than [0, MAX_RING_AMOUNT). Kept as observed.
        return self._to_base_units(self._rng.random() % MAX_RING_AMOUNT)

    def _random_int(self, upper: int) -> int:
        return self._rng.randrange(upper)

    def pick_deposit(self, pool: Sequence[DepositRecord]) -> DepositRecord:
        """
        Select a deposit uniformly at random, with replacement.

        Raises:
            GenerationError: If the pool is empty (PERM-GEN-001)
        """
        if not pool:
            raise GenerationError("Cannot pick a target from an empty deposit pool")
        return pool[self._random_int(len(pool))]

    # -------------------------------------------------------------------------
    # Generators
    # -------------------------------------------------------------------------

    def random_ring(self, exchange_id: int) -> TradePair:
        """
        Build a crossed pair: A sells WETH for GTO, B sells GTO for WETH.

        Amounts may legitimately be zero.

        Raises:
            GenerationError: If the drawn ring fails schema validation (PERM-GEN-001)
        """
        try:
            return TradePair(
                order_a=OrderSpec(
                    exchange_id=exchange_id,
                    token_s=RING_TOKEN_A,
                    token_b=RING_TOKEN_B,
                    amount_s=self._ring_amount(),
                    amount_b=self._ring_amount(),
                    amount_f=self._ring_amount(),
                ),
                order_b=OrderSpec(
                    exchange_id=exchange_id,
                    token_s=RING_TOKEN_B,
                    token_b=RING_TOKEN_A,
                    amount_s=self._ring_amount(),
                    amount_b=self._ring_amount(),
                    amount_f=self._ring_amount(),
                ),
            )
        except ValidationError as e:
            raise GenerationError(f"Generated ring failed validation: {e}") from e

    async def random_deposit(self, exchange_id: int) -> DepositRecord:
        """
        Deposit a random LRC amount for an owner drawn from the owner pool.

        Returns:
            DepositRecord binding the owner to its account
        """
        owners = self._context.order_owners
        key_pair = self._key_pairs.generate()
        owner = owners[self._random_int(len(owners))]
        amount = self._to_base_units(self._rng.random() * MAX_DEPOSIT_AMOUNT)
        token = self._context.tokens.get_token_address(DEPOSIT_TOKEN)

        record = await self._session.deposit(exchange_id, owner, key_pair, token, amount)

        logger.debug(
            f"[FACTORY] Deposit submitted | exchange_id={exchange_id} | "
            f"account_id={record.account_id} | amount={amount} | "
            f"correlation_id={self._correlation_id}"
        )
        return record

    async def random_onchain_withdrawal(self, deposit: DepositRecord) -> None:
        """
        Request a ledger-routed withdrawal against a deposited account.

        The amount may exceed the balance; the exchange decides what is paid out.
        """
        await self._session.request_withdrawal_onchain(
            deposit.exchange_id,
            deposit.account_id,
            deposit.token,
            int(self._rng.random() * MAX_WITHDRAWAL_BASE_UNITS),
            deposit.owner,
        )

    async def random_offchain_withdrawal(self, deposit: DepositRecord) -> None:
        """Request an off-ledger withdrawal routed through the fee collector, zero fee."""
        amount = int(self._rng.random() * MAX_WITHDRAWAL_BASE_UNITS)
        wallet_account_id = await self._session.fee_collector_account(deposit.exchange_id)
        await self._session.request_withdrawal_offchain(
            deposit.exchange_id,
            deposit.account_id,
            deposit.token,
            amount,
            FEE_TOKEN,
            0,
            0,
            wallet_account_id,
        )

    async def random_order_cancellation(self, deposit: DepositRecord) -> None:
        """Cancel a random (token slot, order slot) through the fee collector, zero fee."""
        order_token_id = self._random_int(ORDER_TOKEN_SLOTS)
        order_id = self._random_int(ORDER_ID_SLOTS)
        wallet_account_id = await self._session.fee_collector_account(deposit.exchange_id)
        await self._session.cancel_order(
            deposit.exchange_id,
            deposit.account_id,
            order_token_id,
            order_id,
            wallet_account_id,
            FEE_TOKEN_ID,
            0,
            0,
        )
