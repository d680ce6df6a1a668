"""
============================================================================
Exchange Permutation Harness v1.0.0
Operation Schemas - Rings, Deposits, Blocks and Block Sizes
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Input Constraints: Token amounts are non-negative integer base units, zero floats
Side Effects: None (pure validation)

SOVEREIGN MANDATE:
- Token amounts MUST be integers counted in base units
- Float amounts are rejected outright (PERM-SCH-001)
- A ring is two crossed orders: A sells what B buys and vice versa

============================================================================
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# ============================================================================
# CONSTANTS
# ============================================================================

ERROR_SCHEMA_VALIDATION = "PERM-SCH-001"
ERROR_BLOCK_SIZES = "PERM-CFG-001"


# ============================================================================
# ENUMS
# ============================================================================

class OperationClass(str, Enum):
    """
    Operation classes that are batched into their own blocks.

    Reliability Level: SOVEREIGN TIER
    Input Constraints: None
    Side Effects: None
    """
    RING_SETTLEMENT = "RING_SETTLEMENT"
    DEPOSIT = "DEPOSIT"
    ONCHAIN_WITHDRAWAL = "ONCHAIN_WITHDRAWAL"
    OFFCHAIN_WITHDRAWAL = "OFFCHAIN_WITHDRAWAL"
    ORDER_CANCELLATION = "ORDER_CANCELLATION"


class OperatingMode(str, Enum):
    """
    Exchange operating mode.

    DATA_AVAILABILITY publishes the full operation data alongside each
    block's proof; COMPACT publishes the proof only.
    """
    DATA_AVAILABILITY = "DATA_AVAILABILITY"
    COMPACT = "COMPACT"

    @property
    def data_availability(self) -> bool:
        return self is OperatingMode.DATA_AVAILABILITY


class BlockStatus(str, Enum):
    """Lifecycle of a committed block."""
    COMMITTED = "COMMITTED"
    VERIFIED = "VERIFIED"


# ============================================================================
# CUSTOM VALIDATORS
# ============================================================================

def validate_base_units(value: Any, field_name: str) -> int:
    """
    Validate that a value is a non-negative integer amount of base units.

    Reliability Level: SOVEREIGN TIER
    Input Constraints:
        - int, digit string, or integral Decimal
        - Must be >= 0 (zero amounts are valid input)
    Side Effects: None

    Raises:
        ValueError: If value fails validation (PERM-SCH-001)
    """
    if value is None:
        raise ValueError(f"[{ERROR_SCHEMA_VALIDATION}] {field_name} cannot be None")

    # Reject float type explicitly (Zero-Float Mandate)
    if isinstance(value, float):
        raise ValueError(
            f"[{ERROR_SCHEMA_VALIDATION}] {field_name} received float type. "
            f"Amounts must be converted to base units first. Received: {value}"
        )

    if isinstance(value, bool):
        raise ValueError(
            f"[{ERROR_SCHEMA_VALIDATION}] {field_name} must be an integer amount, got bool"
        )

    if isinstance(value, int):
        amount = value
    elif isinstance(value, Decimal):
        if not value.is_finite() or value != value.to_integral_value():
            raise ValueError(
                f"[{ERROR_SCHEMA_VALIDATION}] {field_name} must be an integral amount. "
                f"Received: {value}"
            )
        amount = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        amount = int(value.strip())
    else:
        raise ValueError(
            f"[{ERROR_SCHEMA_VALIDATION}] {field_name} must be int base units. "
            f"Received: {value!r} (type: {type(value).__name__})"
        )

    if amount < 0:
        raise ValueError(
            f"[{ERROR_SCHEMA_VALIDATION}] {field_name} must be non-negative. Received: {amount}"
        )

    return amount


# ============================================================================
# RING SCHEMAS
# ============================================================================

class OrderSpec(BaseModel):
    """
    One side of a ring.

    Reliability Level: SOVEREIGN TIER
    Input Constraints:
        - token_s / token_b: token symbols (sell / buy)
        - amount_s / amount_b / amount_f: base units, >= 0
    Side Effects: None (pure validation)

    `owner` and `account_id` stay empty until the exchange funds the
    order during ring setup.
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
    )

    exchange_id: int = Field(..., ge=0)
    token_s: str = Field(..., min_length=1, max_length=16)
    token_b: str = Field(..., min_length=1, max_length=16)
    amount_s: int = Field(..., description="Amount to sell, base units")
    amount_b: int = Field(..., description="Amount to buy, base units")
    amount_f: int = Field(..., description="Fee amount, base units")
    owner: Optional[str] = None
    account_id: Optional[int] = Field(default=None, ge=0)

    @field_validator("amount_s", "amount_b", "amount_f", mode="before")
    @classmethod
    def validate_amounts(cls, v: Any, info) -> int:
        """Enforce integer base units (Zero-Float Mandate)."""
        return validate_base_units(v, info.field_name)

    @field_validator("token_s", "token_b")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def is_funded(self) -> bool:
        return self.owner is not None and self.account_id is not None


class TradePair(BaseModel):
    """
    Two crossed orders submitted together for matched settlement.

    Invariant: order_a.token_s == order_b.token_b and
    order_a.token_b == order_b.token_s, both on the same exchange.
    """

    model_config = ConfigDict(extra="forbid")

    order_a: OrderSpec
    order_b: OrderSpec

    @model_validator(mode="after")
    def validate_crossed_pair(self) -> "TradePair":
        if self.order_a.token_s != self.order_b.token_b:
            raise ValueError(
                f"[{ERROR_SCHEMA_VALIDATION}] order_a sells {self.order_a.token_s} "
                f"but order_b buys {self.order_b.token_b}"
            )
        if self.order_a.token_b != self.order_b.token_s:
            raise ValueError(
                f"[{ERROR_SCHEMA_VALIDATION}] order_a buys {self.order_a.token_b} "
                f"but order_b sells {self.order_b.token_s}"
            )
        if self.order_a.exchange_id != self.order_b.exchange_id:
            raise ValueError(
                f"[{ERROR_SCHEMA_VALIDATION}] orders belong to different exchanges: "
                f"{self.order_a.exchange_id} != {self.order_b.exchange_id}"
            )
        return self

    @property
    def exchange_id(self) -> int:
        return self.order_a.exchange_id

    @property
    def orders(self) -> Tuple[OrderSpec, OrderSpec]:
        return (self.order_a, self.order_b)


# ============================================================================
# DEPOSIT & BLOCK RECORDS
# ============================================================================

@dataclass(frozen=True)
class DepositRecord:
    """
    Binding between an owner, an account and a token established by a
    successful deposit.

    Reliability Level: SOVEREIGN TIER
    Input Constraints: Produced by the exchange only
    Side Effects: None (read-only after creation)
    """
    exchange_id: int
    account_id: int
    token: str
    owner: str
    amount: int
    deposit_idx: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "exchange_id": self.exchange_id,
            "account_id": self.account_id,
            "token": self.token,
            "owner": self.owner,
            "amount": str(self.amount),
            "deposit_idx": self.deposit_idx,
        }


@dataclass
class Block:
    """
    A size-bounded batch of same-class operations committed together.

    operation_count is what the commit flushed; padded_size is the
    supported block size the operations were packed into.
    """
    exchange_id: int
    block_idx: int
    operation_class: OperationClass
    operation_count: int
    padded_size: int
    mode: OperatingMode
    status: BlockStatus = BlockStatus.COMMITTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exchange_id": self.exchange_id,
            "block_idx": self.block_idx,
            "operation_class": self.operation_class.value,
            "operation_count": self.operation_count,
            "padded_size": self.padded_size,
            "mode": self.mode.value,
            "status": self.status.value,
        }


# ============================================================================
# BLOCK SIZE CONFIGURATION
# ============================================================================

DEFAULT_RING_SETTLEMENT_BLOCK_SIZES: Tuple[int, ...] = (1, 2, 4)
DEFAULT_DEPOSIT_BLOCK_SIZES: Tuple[int, ...] = (4, 8)
DEFAULT_ONCHAIN_WITHDRAWAL_BLOCK_SIZES: Tuple[int, ...] = (4, 8)
DEFAULT_OFFCHAIN_WITHDRAWAL_BLOCK_SIZES: Tuple[int, ...] = (4, 8)
DEFAULT_ORDER_CANCELLATION_BLOCK_SIZES: Tuple[int, ...] = (4, 8)


def normalize_block_sizes(sizes: Iterable[Any], field_name: str) -> Tuple[int, ...]:
    """
    Validate an ordered block-size sequence.

    Raises:
        ValueError: On an empty sequence or a non-positive / non-integer entry
    """
    normalized = []
    for size in sizes:
        if isinstance(size, bool) or not isinstance(size, int) or size <= 0:
            raise ValueError(
                f"[{ERROR_BLOCK_SIZES}] {field_name} entries must be positive integers, "
                f"got {size!r}"
            )
        normalized.append(size)

    if not normalized:
        raise ValueError(f"[{ERROR_BLOCK_SIZES}] {field_name} must not be empty")

    return tuple(normalized)


@dataclass(frozen=True)
class BlockSizeConfig:
    """
    Declared block sizes, one ordered sequence per operation class.

    Order matters: sizes are driven in the order declared here.
    """
    ring_settlement_block_sizes: Tuple[int, ...] = DEFAULT_RING_SETTLEMENT_BLOCK_SIZES
    deposit_block_sizes: Tuple[int, ...] = DEFAULT_DEPOSIT_BLOCK_SIZES
    onchain_withdrawal_block_sizes: Tuple[int, ...] = DEFAULT_ONCHAIN_WITHDRAWAL_BLOCK_SIZES
    offchain_withdrawal_block_sizes: Tuple[int, ...] = DEFAULT_OFFCHAIN_WITHDRAWAL_BLOCK_SIZES
    order_cancellation_block_sizes: Tuple[int, ...] = DEFAULT_ORDER_CANCELLATION_BLOCK_SIZES
    _by_class: Dict[OperationClass, Tuple[int, ...]] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        by_class = {}
        for operation_class, attr in _BLOCK_SIZE_FIELDS.items():
            sizes = normalize_block_sizes(getattr(self, attr), attr)
            object.__setattr__(self, attr, sizes)
            by_class[operation_class] = sizes
        object.__setattr__(self, "_by_class", by_class)

    def for_class(self, operation_class: OperationClass) -> Tuple[int, ...]:
        """Block sizes declared for one operation class."""
        return self._by_class[operation_class]

    @classmethod
    def from_mapping(cls, sizes: Mapping[OperationClass, Iterable[int]]) -> "BlockSizeConfig":
        """Build from {OperationClass: sizes}; missing classes keep their defaults."""
        kwargs = {
            _BLOCK_SIZE_FIELDS[operation_class]: tuple(values)
            for operation_class, values in sizes.items()
        }
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, list]:
        return {
            operation_class.value: list(sizes)
            for operation_class, sizes in self._by_class.items()
        }


_BLOCK_SIZE_FIELDS: Dict[OperationClass, str] = {
    OperationClass.RING_SETTLEMENT: "ring_settlement_block_sizes",
    OperationClass.DEPOSIT: "deposit_block_sizes",
    OperationClass.ONCHAIN_WITHDRAWAL: "onchain_withdrawal_block_sizes",
    OperationClass.OFFCHAIN_WITHDRAWAL: "offchain_withdrawal_block_sizes",
    OperationClass.ORDER_CANCELLATION: "order_cancellation_block_sizes",
}
