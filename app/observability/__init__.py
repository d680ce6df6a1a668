"""
============================================================================
Exchange Permutation Harness v1.0.0
Observability Module - Prometheus Metrics
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Input Constraints: None
Side Effects: Exposes Prometheus metrics

============================================================================
"""

from app.observability.metrics import (
    OPERATIONS_SUBMITTED,
    BLOCKS_COMMITTED,
    BLOCK_FILL_HISTOGRAM,
    BLOCKS_VERIFIED,
    SCENARIOS_TOTAL,
    record_operation_submitted,
    record_block_fill,
    record_blocks_verified,
    record_scenario_result,
)

__all__ = [
    "OPERATIONS_SUBMITTED",
    "BLOCKS_COMMITTED",
    "BLOCK_FILL_HISTOGRAM",
    "BLOCKS_VERIFIED",
    "SCENARIOS_TOTAL",
    "record_operation_submitted",
    "record_block_fill",
    "record_blocks_verified",
    "record_scenario_result",
]
