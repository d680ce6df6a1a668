"""
Unit Tests for Operation Schemas

Reliability Level: SOVEREIGN TIER

Tests the schema layer:
- OrderSpec amount validation (Zero-Float Mandate, base units only)
- TradePair crossed-pair invariant
- BlockSizeConfig validation and per-class lookup
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from app.schemas.operations import (
    Block,
    BlockSizeConfig,
    BlockStatus,
    DEFAULT_RING_SETTLEMENT_BLOCK_SIZES,
    DEFAULT_DEPOSIT_BLOCK_SIZES,
    ERROR_BLOCK_SIZES,
    ERROR_SCHEMA_VALIDATION,
    OperatingMode,
    OperationClass,
    OrderSpec,
    TradePair,
    validate_base_units,
)


def make_order(**overrides) -> OrderSpec:
    fields = dict(
        exchange_id=1,
        token_s="WETH",
        token_b="GTO",
        amount_s=10,
        amount_b=5,
        amount_f=0,
    )
    fields.update(overrides)
    return OrderSpec(**fields)


# =============================================================================
# Base Unit Validation
# =============================================================================

class TestValidateBaseUnits:

    def test_accepts_int(self) -> None:
        assert validate_base_units(7, "amount") == 7

    def test_accepts_zero(self) -> None:
        assert validate_base_units(0, "amount") == 0

    def test_accepts_digit_string(self) -> None:
        assert validate_base_units(" 42 ", "amount") == 42

    def test_accepts_integral_decimal(self) -> None:
        assert validate_base_units(Decimal("5"), "amount") == 5

    def test_rejects_fractional_decimal(self) -> None:
        with pytest.raises(ValueError, match=ERROR_SCHEMA_VALIDATION):
            validate_base_units(Decimal("1.5"), "amount")

    def test_rejects_float(self) -> None:
        with pytest.raises(ValueError, match="float"):
            validate_base_units(1.0, "amount")

    def test_rejects_bool(self) -> None:
        with pytest.raises(ValueError, match=ERROR_SCHEMA_VALIDATION):
            validate_base_units(True, "amount")

    def test_rejects_negative(self) -> None:
        with pytest.raises(ValueError, match="non-negative"):
            validate_base_units(-1, "amount")

    def test_rejects_none(self) -> None:
        with pytest.raises(ValueError, match=ERROR_SCHEMA_VALIDATION):
            validate_base_units(None, "amount")


# =============================================================================
# OrderSpec / TradePair
# =============================================================================

class TestOrderSpec:

    def test_symbols_are_upper_cased(self) -> None:
        order = make_order(token_s="weth", token_b=" gto ")
        assert order.token_s == "WETH"
        assert order.token_b == "GTO"

    def test_float_amount_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_order(amount_s=0.5)

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            make_order(price=3)

    def test_not_funded_until_owner_and_account_set(self) -> None:
        order = make_order()
        assert not order.is_funded
        order.owner = "0xowner"
        assert not order.is_funded
        order.account_id = 3
        assert order.is_funded

    def test_assignment_is_validated(self) -> None:
        order = make_order()
        with pytest.raises(ValidationError):
            order.amount_b = -4


class TestTradePair:

    def test_crossed_pair_accepted(self) -> None:
        ring = TradePair(
            order_a=make_order(),
            order_b=make_order(token_s="GTO", token_b="WETH"),
        )
        assert ring.exchange_id == 1
        assert ring.orders == (ring.order_a, ring.order_b)

    def test_zero_amounts_are_valid(self) -> None:
        TradePair(
            order_a=make_order(amount_s=0, amount_b=0),
            order_b=make_order(token_s="GTO", token_b="WETH", amount_s=0, amount_b=0),
        )

    def test_uncrossed_pair_rejected(self) -> None:
        with pytest.raises(ValidationError, match=ERROR_SCHEMA_VALIDATION):
            TradePair(order_a=make_order(), order_b=make_order())

    def test_mismatched_exchanges_rejected(self) -> None:
        with pytest.raises(ValidationError, match="different exchanges"):
            TradePair(
                order_a=make_order(),
                order_b=make_order(exchange_id=2, token_s="GTO", token_b="WETH"),
            )


# =============================================================================
# BlockSizeConfig / Block
# =============================================================================

class TestBlockSizeConfig:

    def test_defaults(self) -> None:
        config = BlockSizeConfig()
        assert config.ring_settlement_block_sizes == DEFAULT_RING_SETTLEMENT_BLOCK_SIZES
        assert config.for_class(OperationClass.DEPOSIT) == DEFAULT_DEPOSIT_BLOCK_SIZES

    def test_lists_are_normalized_to_tuples(self) -> None:
        config = BlockSizeConfig(deposit_block_sizes=[1, 2, 4])
        assert config.deposit_block_sizes == (1, 2, 4)

    def test_declared_order_preserved(self) -> None:
        config = BlockSizeConfig(onchain_withdrawal_block_sizes=(5, 3))
        assert config.for_class(OperationClass.ONCHAIN_WITHDRAWAL) == (5, 3)

    def test_empty_sizes_rejected(self) -> None:
        with pytest.raises(ValueError, match=ERROR_BLOCK_SIZES):
            BlockSizeConfig(deposit_block_sizes=())

    def test_zero_size_rejected(self) -> None:
        with pytest.raises(ValueError, match=ERROR_BLOCK_SIZES):
            BlockSizeConfig(order_cancellation_block_sizes=(0, 2))

    def test_bool_size_rejected(self) -> None:
        with pytest.raises(ValueError, match=ERROR_BLOCK_SIZES):
            BlockSizeConfig(deposit_block_sizes=(True,))

    def test_from_mapping_keeps_other_defaults(self) -> None:
        config = BlockSizeConfig.from_mapping({OperationClass.DEPOSIT: [1, 2, 4]})
        assert config.deposit_block_sizes == (1, 2, 4)
        assert config.ring_settlement_block_sizes == DEFAULT_RING_SETTLEMENT_BLOCK_SIZES

    def test_to_dict_keyed_by_class(self) -> None:
        data = BlockSizeConfig().to_dict()
        assert set(data) == {operation_class.value for operation_class in OperationClass}


class TestBlock:

    def test_to_dict(self) -> None:
        block = Block(
            exchange_id=1,
            block_idx=2,
            operation_class=OperationClass.DEPOSIT,
            operation_count=3,
            padded_size=4,
            mode=OperatingMode.COMPACT,
        )
        assert block.status is BlockStatus.COMMITTED
        assert block.to_dict() == {
            "exchange_id": 1,
            "block_idx": 2,
            "operation_class": "DEPOSIT",
            "operation_count": 3,
            "padded_size": 4,
            "mode": "COMPACT",
            "status": "COMMITTED",
        }

    def test_data_availability_flag(self) -> None:
        assert OperatingMode.DATA_AVAILABILITY.data_availability
        assert not OperatingMode.COMPACT.data_availability
