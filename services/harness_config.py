"""
============================================================================
Exchange Permutation Harness - Configuration
============================================================================

Reliability Level: L6 Critical (Sovereign Tier)
Traceability: The run seed is always logged so a failure can be replayed

This module provides configuration management for the permutation harness:
- Environment variable parsing with type safety
- Default values for optional configuration
- Validation of the loaded configuration (PERM-CFG-001)

ENVIRONMENT VARIABLES:
    - HARNESS_SEED: Integer seed for every random draw (default: drawn fresh)
    - HARNESS_VERIFY: Run the verification gate (default: true)
    - HARNESS_TIMEOUT_SECONDS: Whole-run timeout, 0 = unbounded (default: 0)
    - HARNESS_DEPOSIT_POOL_SIZE: Deposits seeded before withdrawals/cancels (default: 8)
    - HARNESS_ACCOUNT_COUNT: Accounts generated for the context (default: 20)
    - HARNESS_<CLASS>_BLOCK_SIZES: Comma-separated block sizes per operation
      class, e.g. HARNESS_DEPOSIT_BLOCK_SIZES=1,2,4

ERROR CODES:
    - PERM-CFG-001: Harness configuration invalid

============================================================================
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
import logging
import os
import random

from app.exchange.harness_context import MIN_ACCOUNTS
from app.exchange.session import HarnessConfigurationError, HarnessErrorCode
from app.schemas.operations import BlockSizeConfig, OperationClass

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Default Values
# =============================================================================

DEFAULT_VERIFY = True

# 0 disables the whole-run timeout
DEFAULT_TIMEOUT_SECONDS = 0

DEFAULT_DEPOSIT_POOL_SIZE = 8

DEFAULT_ACCOUNT_COUNT = MIN_ACCOUNTS

# Seeds are drawn below this bound when HARNESS_SEED is unset
SEED_BOUND = 2 ** 32

TRUE_VALUES = ("true", "1", "yes", "on")


def block_sizes_env_var(operation_class: OperationClass) -> str:
    """Environment variable carrying the block sizes of one operation class."""
    return f"HARNESS_{operation_class.value}_BLOCK_SIZES"


def _read_int(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning(
            f"[HARNESS-CONFIG] Invalid {name} value: {raw}, using default: {default}"
        )
        return default


def _read_block_sizes(operation_class: OperationClass) -> Optional[List[int]]:
    name = block_sizes_env_var(operation_class)
    raw = os.environ.get(name, "")
    if not raw.strip():
        return None
    try:
        return [int(part.strip()) for part in raw.split(",") if part.strip()]
    except ValueError:
        logger.warning(
            f"[HARNESS-CONFIG] Invalid {name} value: {raw}, using exchange defaults"
        )
        return None


# =============================================================================
# HarnessConfig Class
# =============================================================================

@dataclass
class HarnessConfig:
    """
    Permutation harness configuration.

    ============================================================================
    CONFIGURATION PARAMETERS:
    ============================================================================
    - seed: Seed of the run's random.Random (drawn fresh when None)
    - verify: Whether the verification gate runs (default: True)
    - timeout_seconds: Whole-run timeout, 0 = unbounded (default: 0)
    - deposit_pool_size: Deposits seeded before withdrawals/cancels (default: 8)
    - account_count: Accounts in the harness context (default: 20)
    - block_size_overrides: Declared block sizes per operation class
    ============================================================================

    Reliability Level: L6 Critical (Sovereign Tier)
    Input Constraints: account_count >= 20, deposit_pool_size >= 1
    Side Effects: Logs configuration on load
    """

    seed: Optional[int] = None
    verify: bool = DEFAULT_VERIFY
    timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS
    deposit_pool_size: int = DEFAULT_DEPOSIT_POOL_SIZE
    account_count: int = DEFAULT_ACCOUNT_COUNT
    block_size_overrides: Dict[OperationClass, List[int]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.seed is None:
            self.seed = random.SystemRandom().randrange(SEED_BOUND)
            logger.info(f"[HARNESS-CONFIG] No seed configured, drew seed={self.seed}")

    def block_sizes(self) -> BlockSizeConfig:
        """
        Build the declared block sizes.

        Classes without an override keep the exchange defaults.

        Raises:
            HarnessConfigurationError: If an override is empty or non-positive
        """
        try:
            return BlockSizeConfig.from_mapping(self.block_size_overrides)
        except ValueError as e:
            raise HarnessConfigurationError(str(e)) from e

    def validate(self) -> None:
        """
        Validate configuration completeness.

        Raises:
            HarnessConfigurationError: If any value is out of range (PERM-CFG-001)
        """
        errors: List[str] = []

        if self.timeout_seconds < 0:
            errors.append(
                f"HARNESS_TIMEOUT_SECONDS must be >= 0, got: {self.timeout_seconds}"
            )

        if self.deposit_pool_size < 1:
            errors.append(
                f"HARNESS_DEPOSIT_POOL_SIZE must be positive, got: {self.deposit_pool_size}"
            )

        if self.account_count < MIN_ACCOUNTS:
            errors.append(
                f"HARNESS_ACCOUNT_COUNT must be at least {MIN_ACCOUNTS}, "
                f"got: {self.account_count}"
            )

        try:
            self.block_sizes()
        except HarnessConfigurationError as e:
            errors.append(e.message)

        if errors:
            error_msg = "Harness configuration validation failed: " + "; ".join(errors)
            logger.error(f"[{HarnessErrorCode.CONFIG}] {error_msg}")
            raise HarnessConfigurationError(error_msg)

        logger.info(
            f"[HARNESS-CONFIG] Configuration validated | "
            f"seed={self.seed} | "
            f"verify={self.verify} | "
            f"timeout_seconds={self.timeout_seconds} | "
            f"deposit_pool_size={self.deposit_pool_size} | "
            f"account_count={self.account_count}"
        )

    @classmethod
    def from_environment(cls, validate: bool = True) -> "HarnessConfig":
        """
        Load configuration from environment variables.

        Args:
            validate: Whether to validate configuration after loading (default: True)

        Returns:
            HarnessConfig instance with values from environment

        Raises:
            HarnessConfigurationError: If validation fails (PERM-CFG-001)
        """
        seed: Optional[int] = None
        seed_str = os.environ.get("HARNESS_SEED", "").strip()
        if seed_str:
            try:
                seed = int(seed_str)
            except ValueError:
                logger.warning(
                    f"[HARNESS-CONFIG] Invalid HARNESS_SEED value: {seed_str}, "
                    f"drawing a fresh seed"
                )

        verify_str = os.environ.get("HARNESS_VERIFY", "true").lower().strip()
        verify = verify_str in TRUE_VALUES

        timeout_seconds = _read_int("HARNESS_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
        deposit_pool_size = _read_int("HARNESS_DEPOSIT_POOL_SIZE", DEFAULT_DEPOSIT_POOL_SIZE)
        account_count = _read_int("HARNESS_ACCOUNT_COUNT", DEFAULT_ACCOUNT_COUNT)

        overrides: Dict[OperationClass, List[int]] = {}
        for operation_class in OperationClass:
            sizes = _read_block_sizes(operation_class)
            if sizes is not None:
                overrides[operation_class] = sizes

        config = cls(
            seed=seed,
            verify=verify,
            timeout_seconds=timeout_seconds,
            deposit_pool_size=deposit_pool_size,
            account_count=account_count,
            block_size_overrides=overrides,
        )

        logger.info(
            f"[HARNESS-CONFIG] Loading configuration from environment | "
            f"HARNESS_SEED={config.seed} | "
            f"HARNESS_VERIFY={verify} | "
            f"HARNESS_TIMEOUT_SECONDS={timeout_seconds} | "
            f"HARNESS_DEPOSIT_POOL_SIZE={deposit_pool_size} | "
            f"HARNESS_ACCOUNT_COUNT={account_count} | "
            f"block_size_overrides={sorted(c.value for c in overrides)}"
        )

        if validate:
            config.validate()

        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "verify": self.verify,
            "timeout_seconds": self.timeout_seconds,
            "deposit_pool_size": self.deposit_pool_size,
            "account_count": self.account_count,
            "block_size_overrides": {
                operation_class.value: list(sizes)
                for operation_class, sizes in self.block_size_overrides.items()
            },
        }
