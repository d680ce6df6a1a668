"""
============================================================================
Exchange Permutation Harness v1.0.0
Verification Gate - Committed Block Confirmation
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Input Constraints: Exchange ids created by the same session
Side Effects: Triggers proof/verification on the session

A scenario iteration passes only when every block it committed has been
verified. The gate's boolean outcome is trusted as-is.

============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from app.exchange.session import ExchangeSession, VerificationError
from app.observability.metrics import record_blocks_verified
from app.schemas.operations import OperatingMode

# Configure module logger
logger = logging.getLogger(__name__)


@dataclass
class VerificationReport:
    """Verification outcome of one exchange instance."""
    exchange_id: int
    verified_blocks: int
    pending_blocks: int
    skipped: bool = False

    @property
    def confirmed(self) -> bool:
        return self.skipped or self.pending_blocks == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exchange_id": self.exchange_id,
            "verified_blocks": self.verified_blocks,
            "pending_blocks": self.pending_blocks,
            "skipped": self.skipped,
        }


class VerificationGate:
    """
    Confirms that committed blocks verified.

    Reliability Level: SOVEREIGN TIER
    Input Constraints: None
    Side Effects: verify_pending_blocks on every exchange passed in

    When disabled the gate logs and returns skipped reports without
    touching the session.
    """

    def __init__(
        self,
        session: ExchangeSession,
        enabled: bool = True,
        correlation_id: Optional[str] = None
    ):
        self._session = session
        self._enabled = enabled
        self._correlation_id = correlation_id

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def confirm(
        self,
        exchange_ids: Iterable[int],
        mode: Optional[OperatingMode] = None
    ) -> List[VerificationReport]:
        """
        Verify pending blocks once per exchange, then require none left.

        Args:
            exchange_ids: Exchange instances to confirm
            mode: Operating mode of the instances, for metrics labelling

        Returns:
            One VerificationReport per exchange, in input order

        Raises:
            VerificationError: If any exchange still has unverified blocks
        """
        exchange_ids = list(exchange_ids)

        if not self._enabled:
            logger.info(
                f"[VERIFY] Verification disabled, skipping | "
                f"exchange_ids={exchange_ids} | correlation_id={self._correlation_id}"
            )
            return [
                VerificationReport(
                    exchange_id=exchange_id,
                    verified_blocks=0,
                    pending_blocks=0,
                    skipped=True,
                )
                for exchange_id in exchange_ids
            ]

        reports: List[VerificationReport] = []
        for exchange_id in exchange_ids:
            verified = await self._session.verify_pending_blocks(exchange_id)
            pending = await self._session.pending_block_count(exchange_id)
            report = VerificationReport(
                exchange_id=exchange_id,
                verified_blocks=verified,
                pending_blocks=pending,
            )
            reports.append(report)

            if mode is not None:
                record_blocks_verified(mode.value, verified, self._correlation_id)

            if not report.confirmed:
                message = (
                    f"Exchange {exchange_id} left {pending} block(s) unverified "
                    f"after verifying {verified}"
                )
                logger.error(
                    f"[{VerificationError.error_code}] {message} | "
                    f"correlation_id={self._correlation_id}"
                )
                raise VerificationError(message)

            logger.info(
                f"[VERIFY] Exchange confirmed | exchange_id={exchange_id} | "
                f"verified_blocks={verified} | correlation_id={self._correlation_id}"
            )

        return reports
