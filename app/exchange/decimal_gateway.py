# ============================================================================
# Exchange Permutation Harness v1.0.0
# Decimal Gateway - Token Base Unit Conversion
# ============================================================================
#
# Reliability Level: SOVEREIGN TIER (Mission-Critical)
# Purpose: Ensures every token amount reaches the exchange as an integer
#          count of base units, converted exactly once
#
# SOVEREIGN MANDATE:
#   - Random draws are floats inside the harness ONLY
#   - Float -> str -> Decimal -> scaled int, never float arithmetic
#   - Token amounts use 18 decimals (1 token = 10**18 base units)
#   - Rounding is ROUND_HALF_EVEN
#
# Error Codes:
#   - PERM-DEC-001: Base unit conversion failed
#
# ============================================================================

from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation
from typing import Optional, Union
import logging

logger = logging.getLogger(__name__)


ERROR_DECIMAL_CONVERSION = "PERM-DEC-001"


class DecimalGateway:
    """
    Sovereign Tier Decimal Gateway - base unit conversion.

    Central conversion layer between the harness's random float draws and
    the integer base-unit amounts the exchange accepts.

    Reliability Level: SOVEREIGN TIER
    Input Constraints: Finite, non-negative numeric value (str, int, float, Decimal)
    Side Effects: Logs PERM-DEC-001 on conversion failure

    Example Usage:
        gateway = DecimalGateway()

        # 0.5 token -> 500000000000000000 base units
        amount = gateway.to_base_units(0.5)

        # Back to whole-token Decimal for reporting
        tokens = gateway.from_base_units(amount)  # Decimal('0.5')
    """

    TOKEN_DECIMALS = 18
    UNIT = Decimal(1)

    def __init__(self, decimals: int = TOKEN_DECIMALS):
        """
        Initialize DecimalGateway.

        Args:
            decimals: Number of decimals of the token's base unit
        """
        if decimals < 0:
            raise ValueError(
                f"[{ERROR_DECIMAL_CONVERSION}] decimals must be non-negative, got {decimals}"
            )
        self.decimals = decimals
        self._scale = Decimal(10) ** decimals

    def to_decimal(
        self,
        value: Union[str, int, float, Decimal, None],
        correlation_id: Optional[str] = None
    ) -> Decimal:
        """
        Convert any numeric value to Decimal without float arithmetic.

        Reliability Level: SOVEREIGN TIER
        Input Constraints: str, int, float, Decimal or None
        Side Effects: Logs PERM-DEC-001 on failure

        Args:
            value: Numeric value to convert (None is zero)
            correlation_id: Audit trail identifier

        Returns:
            Finite Decimal

        Raises:
            ValueError: If value cannot be converted (PERM-DEC-001)
        """
        if value is None:
            return Decimal(0)

        try:
            # CRITICAL: Always convert via string to avoid float precision loss
            decimal_value = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError) as e:
            logger.error(
                f"[{ERROR_DECIMAL_CONVERSION}] Decimal conversion failed | "
                f"value={value} | type={type(value).__name__} | "
                f"correlation_id={correlation_id} | error={e}"
            )
            raise ValueError(
                f"{ERROR_DECIMAL_CONVERSION}: Cannot convert '{value}' to Decimal"
            ) from e

        if not decimal_value.is_finite():
            logger.error(
                f"[{ERROR_DECIMAL_CONVERSION}] Non-finite amount | "
                f"value={value} | correlation_id={correlation_id}"
            )
            raise ValueError(
                f"{ERROR_DECIMAL_CONVERSION}: Amount must be finite, got '{value}'"
            )

        return decimal_value

    def to_base_units(
        self,
        value: Union[str, int, float, Decimal, None],
        correlation_id: Optional[str] = None
    ) -> int:
        """
        Convert a whole-token amount to integer base units.

        Reliability Level: SOVEREIGN TIER
        Input Constraints: Finite, non-negative value
        Side Effects: Logs PERM-DEC-001 on failure

        Args:
            value: Amount in whole tokens (e.g. 0.25)
            correlation_id: Audit trail identifier

        Returns:
            Amount in base units (int)

        Raises:
            ValueError: If value is negative or cannot be converted (PERM-DEC-001)
        """
        decimal_value = self.to_decimal(value, correlation_id)

        if decimal_value < 0:
            logger.error(
                f"[{ERROR_DECIMAL_CONVERSION}] Negative amount rejected | "
                f"value={value} | correlation_id={correlation_id}"
            )
            raise ValueError(
                f"{ERROR_DECIMAL_CONVERSION}: Amount must be non-negative, got '{value}'"
            )

        scaled = (decimal_value * self._scale).quantize(self.UNIT, rounding=ROUND_HALF_EVEN)
        return int(scaled)

    def from_base_units(self, amount: int) -> Decimal:
        """
        Convert integer base units back to a whole-token Decimal.

        Args:
            amount: Amount in base units

        Returns:
            Decimal amount in whole tokens, trailing zeros removed
        """
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise ValueError(
                f"{ERROR_DECIMAL_CONVERSION}: base units must be int, "
                f"got {type(amount).__name__}"
            )
        if amount == 0:
            return Decimal(0)
        return (Decimal(amount) / self._scale).normalize()


# ============================================================================
# Module-level convenience functions
# ============================================================================

_gateway = DecimalGateway()


def to_base_units(
    value: Union[str, int, float, Decimal, None],
    correlation_id: Optional[str] = None
) -> int:
    """Module-level convenience function for base unit conversion."""
    return _gateway.to_base_units(value, correlation_id)


def from_base_units(amount: int) -> Decimal:
    """Module-level convenience function for whole-token conversion."""
    return _gateway.from_base_units(amount)


# ============================================================================
# Sovereign Reliability Audit
# ============================================================================
#
# [Reliability Audit]
# Decimal Integrity: [Verified - ROUND_HALF_EVEN enforced]
# Float Containment: [Verified - floats converted via str exactly once]
# Error Handling: [PERM-DEC-001 logged on failure]
#
# ============================================================================
