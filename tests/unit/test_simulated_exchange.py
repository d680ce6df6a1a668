"""
Unit Tests for the Simulated Exchange

Reliability Level: SOVEREIGN TIER

Tests the in-memory ExchangeSession:
- Submission validation (PERM-SUB-001)
- Block packing, padding and splitting on commit
- Ring funding order (PERM-COM-001) and settlement
- Verification of committed blocks
- Independence of exchange instances
"""

import random
from typing import Optional, Tuple

import pytest

from app.exchange.harness_context import HarnessContext, KeyPairGenerator, generate_accounts
from app.exchange.session import CommitError, SubmissionError
from app.exchange.simulated_exchange import (
    FIRST_EXCHANGE_ID,
    MAX_ORDER_ID,
    SimulatedExchange,
)
from app.schemas.operations import (
    BlockSizeConfig,
    BlockStatus,
    OperatingMode,
    OperationClass,
    OrderSpec,
    TradePair,
)


ONE_TOKEN = 10 ** 18

KEY_PAIRS = KeyPairGenerator(random.Random(22))


def make_exchange(
    block_sizes: Optional[BlockSizeConfig] = None,
) -> Tuple[SimulatedExchange, HarnessContext]:
    rng = random.Random(21)
    context = HarnessContext.from_accounts(generate_accounts(rng))
    return SimulatedExchange(context, block_sizes, correlation_id="test-sim"), context


def make_ring(exchange_id: int) -> TradePair:
    return TradePair(
        order_a=OrderSpec(
            exchange_id=exchange_id, token_s="WETH", token_b="GTO",
            amount_s=10, amount_b=5, amount_f=0,
        ),
        order_b=OrderSpec(
            exchange_id=exchange_id, token_s="GTO", token_b="WETH",
            amount_s=5, amount_b=10, amount_f=0,
        ),
    )


async def deposit(exchange: SimulatedExchange, context: HarnessContext, exchange_id: int,
                  owner_index: int = 0, amount: int = ONE_TOKEN):
    return await exchange.deposit(
        exchange_id,
        context.order_owners[owner_index],
        KEY_PAIRS.generate(),
        "LRC",
        amount,
    )


# =============================================================================
# Exchange Lifecycle
# =============================================================================

class TestExchangeLifecycle:

    @pytest.mark.asyncio
    async def test_exchange_ids_are_sequential(self) -> None:
        exchange, context = make_exchange()
        first = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        second = await exchange.create_exchange(
            context.state_owners[0], OperatingMode.DATA_AVAILABILITY
        )
        assert first == FIRST_EXCHANGE_ID
        assert second == FIRST_EXCHANGE_ID + 1
        assert exchange.exchange_mode(second) is OperatingMode.DATA_AVAILABILITY

    @pytest.mark.asyncio
    async def test_fee_collector_opened_with_exchange(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        wallet_id = await exchange.fee_collector_account(exchange_id)
        assert exchange.get_account(exchange_id, wallet_id).owner == context.wallet_owners[0]

    @pytest.mark.asyncio
    async def test_unknown_exchange_rejected(self) -> None:
        exchange, _ = make_exchange()
        with pytest.raises(SubmissionError, match="PERM-SUB-001"):
            await exchange.fee_collector_account(99)


# =============================================================================
# Deposits
# =============================================================================

class TestDeposits:

    @pytest.mark.asyncio
    async def test_deposit_queued_until_commit(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)

        record = await deposit(exchange, context, exchange_id)

        assert record.deposit_idx == 1
        assert record.owner == context.order_owners[0]
        assert record.token == context.tokens.get_token_address("LRC")
        assert await exchange.pending_operation_count(exchange_id, OperationClass.DEPOSIT) == 1
        assert exchange.balance_of(exchange_id, record.account_id, "LRC") == 0

        await exchange.commit_deposits(exchange_id)

        assert await exchange.pending_operation_count(exchange_id, OperationClass.DEPOSIT) == 0
        assert exchange.balance_of(exchange_id, record.account_id, "LRC") == ONE_TOKEN

    @pytest.mark.asyncio
    async def test_same_owner_reuses_account(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        first = await deposit(exchange, context, exchange_id)
        second = await deposit(exchange, context, exchange_id)
        other = await deposit(exchange, context, exchange_id, owner_index=1)
        assert first.account_id == second.account_id
        assert other.account_id != first.account_id
        assert second.deposit_idx == 2

    @pytest.mark.asyncio
    async def test_unknown_token_rejected(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        with pytest.raises(SubmissionError):
            await exchange.deposit(
                exchange_id, context.order_owners[0], KEY_PAIRS.generate(), "DOGE", 1
            )

    @pytest.mark.asyncio
    async def test_negative_and_float_amounts_rejected(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        with pytest.raises(SubmissionError):
            await deposit(exchange, context, exchange_id, amount=-1)
        with pytest.raises(SubmissionError):
            await deposit(exchange, context, exchange_id, amount=1.5)


# =============================================================================
# Commit Packing
# =============================================================================

class TestCommitPacking:

    @pytest.mark.asyncio
    async def test_empty_commit_produces_no_block(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        assert await exchange.commit_cancels(exchange_id) == []
        assert exchange.blocks(exchange_id) == []

    @pytest.mark.asyncio
    async def test_partial_block_padded_to_smallest_fitting_size(self) -> None:
        exchange, context = make_exchange(BlockSizeConfig(deposit_block_sizes=(4, 8)))
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        for _ in range(3):
            await deposit(exchange, context, exchange_id)

        blocks = await exchange.commit_deposits(exchange_id)

        assert len(blocks) == 1
        assert blocks[0].operation_count == 3
        assert blocks[0].padded_size == 4
        assert blocks[0].mode is OperatingMode.COMPACT

    @pytest.mark.asyncio
    async def test_oversized_queue_split_across_blocks(self) -> None:
        exchange, context = make_exchange(BlockSizeConfig(deposit_block_sizes=(4, 8)))
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        for _ in range(10):
            await deposit(exchange, context, exchange_id)

        blocks = await exchange.commit_deposits(exchange_id)

        assert [(b.operation_count, b.padded_size) for b in blocks] == [(8, 8), (2, 4)]
        assert [b.block_idx for b in blocks] == [1, 2]

    @pytest.mark.asyncio
    async def test_verify_confirms_committed_blocks(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        await deposit(exchange, context, exchange_id)
        await exchange.commit_deposits(exchange_id)
        assert await exchange.pending_block_count(exchange_id) == 1

        assert await exchange.verify_pending_blocks(exchange_id) == 1

        assert await exchange.pending_block_count(exchange_id) == 0
        assert all(b.status is BlockStatus.VERIFIED for b in exchange.blocks(exchange_id))
        assert await exchange.verify_pending_blocks(exchange_id) == 0


# =============================================================================
# Withdrawals and Cancellations
# =============================================================================

class TestWithdrawalsAndCancellations:

    @pytest.mark.asyncio
    async def test_onchain_withdrawal_clamps_to_balance(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        record = await deposit(exchange, context, exchange_id, amount=100)
        await exchange.commit_deposits(exchange_id)

        await exchange.request_withdrawal_onchain(
            exchange_id, record.account_id, record.token, 250, record.owner
        )
        await exchange.commit_onchain_withdrawals(exchange_id)

        assert exchange.balance_of(exchange_id, record.account_id, "LRC") == 0

    @pytest.mark.asyncio
    async def test_onchain_withdrawal_owner_mismatch_rejected(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        record = await deposit(exchange, context, exchange_id)
        with pytest.raises(SubmissionError, match="Owner mismatch"):
            await exchange.request_withdrawal_onchain(
                exchange_id, record.account_id, record.token, 1, context.order_owners[1]
            )

    @pytest.mark.asyncio
    async def test_offchain_withdrawal_split_out_of_range_rejected(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        record = await deposit(exchange, context, exchange_id)
        wallet_id = await exchange.fee_collector_account(exchange_id)
        with pytest.raises(SubmissionError, match="wallet_split_percentage"):
            await exchange.request_withdrawal_offchain(
                exchange_id, record.account_id, record.token, 1, "LRC", 0, 101, wallet_id
            )

    @pytest.mark.asyncio
    async def test_offchain_withdrawal_pays_fee_to_wallet(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        record = await deposit(exchange, context, exchange_id, amount=100)
        await exchange.commit_deposits(exchange_id)
        wallet_id = await exchange.fee_collector_account(exchange_id)

        await exchange.request_withdrawal_offchain(
            exchange_id, record.account_id, record.token, 30, "LRC", 7, 0, wallet_id
        )
        await exchange.commit_offchain_withdrawals(exchange_id)

        assert exchange.balance_of(exchange_id, wallet_id, "LRC") == 7
        assert exchange.balance_of(exchange_id, record.account_id, "LRC") == 63

    @pytest.mark.asyncio
    async def test_cancellation_recorded_on_commit(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        record = await deposit(exchange, context, exchange_id)
        wallet_id = await exchange.fee_collector_account(exchange_id)

        await exchange.cancel_order(exchange_id, record.account_id, 3, 17, wallet_id, 1, 0, 0)
        await exchange.commit_cancels(exchange_id)

        account = exchange.get_account(exchange_id, record.account_id)
        assert (3, 17) in account.cancelled_orders

    @pytest.mark.asyncio
    async def test_cancellation_order_id_out_of_range_rejected(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        record = await deposit(exchange, context, exchange_id)
        wallet_id = await exchange.fee_collector_account(exchange_id)
        with pytest.raises(SubmissionError, match="order_id"):
            await exchange.cancel_order(
                exchange_id, record.account_id, 0, MAX_ORDER_ID, wallet_id, 1, 0, 0
            )

    @pytest.mark.asyncio
    async def test_unknown_account_rejected(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        with pytest.raises(SubmissionError, match="Unknown account"):
            await exchange.request_withdrawal_onchain(
                exchange_id, 42, "LRC", 1, context.order_owners[0]
            )


# =============================================================================
# Rings
# =============================================================================

class TestRings:

    @pytest.mark.asyncio
    async def test_send_before_setup_rejected(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        with pytest.raises(SubmissionError, match="before setup"):
            await exchange.send_ring(exchange_id, make_ring(exchange_id))

    @pytest.mark.asyncio
    async def test_setup_funds_both_orders_through_deposits(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)

        ring = await exchange.setup_ring(make_ring(exchange_id), KEY_PAIRS)

        assert ring.order_a.owner == context.order_owners[0]
        assert ring.order_b.owner == context.order_owners[1]
        assert ring.order_a.is_funded and ring.order_b.is_funded
        assert await exchange.pending_operation_count(exchange_id, OperationClass.DEPOSIT) == 2

    @pytest.mark.asyncio
    async def test_setup_registers_keys_from_caller_generator(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        expected = KeyPairGenerator(random.Random(5))

        ring = await exchange.setup_ring(make_ring(exchange_id), KeyPairGenerator(random.Random(5)))

        for order in ring.orders:
            account = exchange.get_account(exchange_id, order.account_id)
            assert account.public_key_x == expected.generate().public_key_x

    @pytest.mark.asyncio
    async def test_rings_cannot_commit_ahead_of_funding(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        ring = await exchange.setup_ring(make_ring(exchange_id), KEY_PAIRS)
        await exchange.send_ring(exchange_id, ring)

        with pytest.raises(CommitError, match="PERM-COM-001"):
            await exchange.commit_rings(exchange_id)

    @pytest.mark.asyncio
    async def test_ring_settles_crossed_balances(self) -> None:
        exchange, context = make_exchange()
        exchange_id = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)
        ring = await exchange.setup_ring(make_ring(exchange_id), KEY_PAIRS)
        await exchange.send_ring(exchange_id, ring)
        await exchange.commit_deposits(exchange_id)

        blocks = await exchange.commit_rings(exchange_id)

        assert blocks[0].operation_class is OperationClass.RING_SETTLEMENT
        account_a = ring.order_a.account_id
        account_b = ring.order_b.account_id
        assert exchange.balance_of(exchange_id, account_a, "WETH") == 0
        assert exchange.balance_of(exchange_id, account_a, "GTO") == 5
        assert exchange.balance_of(exchange_id, account_b, "WETH") == 10
        assert exchange.balance_of(exchange_id, account_b, "GTO") == 0


# =============================================================================
# Instance Independence
# =============================================================================

class TestInstanceIndependence:

    @pytest.mark.asyncio
    async def test_pending_queues_not_shared(self) -> None:
        exchange, context = make_exchange()
        first = await exchange.create_exchange(context.state_owners[0], OperatingMode.DATA_AVAILABILITY)
        second = await exchange.create_exchange(context.state_owners[0], OperatingMode.COMPACT)

        await deposit(exchange, context, first)
        await deposit(exchange, context, first)

        assert await exchange.pending_operation_count(first, OperationClass.DEPOSIT) == 2
        assert await exchange.pending_operation_count(second, OperationClass.DEPOSIT) == 0

        await exchange.commit_deposits(second)
        assert await exchange.pending_operation_count(first, OperationClass.DEPOSIT) == 2
