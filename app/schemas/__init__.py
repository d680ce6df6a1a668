# ============================================================================
# Exchange Permutation Harness v1.0.0
# Pydantic Schemas - Operation Data Model
# ============================================================================

from app.schemas.operations import (
    Block,
    BlockSizeConfig,
    BlockStatus,
    DepositRecord,
    OperatingMode,
    OperationClass,
    OrderSpec,
    TradePair,
)

__all__ = [
    "Block",
    "BlockSizeConfig",
    "BlockStatus",
    "DepositRecord",
    "OperatingMode",
    "OperationClass",
    "OrderSpec",
    "TradePair",
]
