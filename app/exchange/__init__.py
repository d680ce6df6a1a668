# ============================================================================
# Exchange Permutation Harness v1.0.0
# Exchange Module - Session Contract and Reference Exchange
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: Everything the harness knows about the exchange under test
#
# Components:
#   - DecimalGateway: Float draws to integer base units, exactly once
#   - HarnessContext: Owner pools and token registry
#   - ExchangeSession: Async contract the harness drives
#   - SimulatedExchange: In-memory reference implementation
#
# SOVEREIGN MANDATE:
#   - Amounts cross the session boundary as integer base units only
#   - Every session error is scenario-fatal
#
# ============================================================================

from app.exchange.decimal_gateway import DecimalGateway, to_base_units, from_base_units
from app.exchange.harness_context import (
    HarnessContext,
    KeyPair,
    KeyPairGenerator,
    TokenInfo,
    TokenRegistry,
    generate_accounts,
)
from app.exchange.session import (
    ExchangeSession,
    HarnessError,
    HarnessErrorCode,
    GenerationError,
    SubmissionError,
    CommitError,
    BlockFillError,
    VerificationError,
    HarnessConfigurationError,
)
from app.exchange.simulated_exchange import SimulatedExchange

__all__ = [
    # Decimal Gateway
    "DecimalGateway",
    "to_base_units",
    "from_base_units",
    # Harness Context
    "HarnessContext",
    "KeyPair",
    "KeyPairGenerator",
    "TokenInfo",
    "TokenRegistry",
    "generate_accounts",
    # Session Contract
    "ExchangeSession",
    "HarnessError",
    "HarnessErrorCode",
    "GenerationError",
    "SubmissionError",
    "CommitError",
    "BlockFillError",
    "VerificationError",
    "HarnessConfigurationError",
    # Reference Exchange
    "SimulatedExchange",
]
