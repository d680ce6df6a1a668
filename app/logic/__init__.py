"""
============================================================================
Exchange Permutation Harness - Logic Layer
============================================================================

Permutation-and-batch-commit engine: randomized operation generation,
size-bounded block fill and commit, and the verification gate.

Reliability Level: L6 Critical
============================================================================
"""

from app.logic.operation_factory import OperationFactory
from app.logic.batch_driver import BatchDriver, BlockFill
from app.logic.verification_gate import VerificationGate, VerificationReport

__all__ = [
    "OperationFactory",
    "BatchDriver",
    "BlockFill",
    "VerificationGate",
    "VerificationReport",
]
