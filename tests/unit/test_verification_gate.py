"""
Unit Tests for the Verification Gate

Reliability Level: SOVEREIGN TIER

Tests block confirmation:
- verify_pending_blocks called once per exchange instance
- PERM-VER-001 when blocks remain unverified
- Disabled gate skips verification entirely
"""

from unittest.mock import AsyncMock

import pytest
from prometheus_client import REGISTRY

from app.exchange.session import VerificationError
from app.logic.verification_gate import VerificationGate, VerificationReport
from app.schemas.operations import OperatingMode


def make_session(verified: int = 2, pending: int = 0) -> AsyncMock:
    session = AsyncMock()
    session.verify_pending_blocks.return_value = verified
    session.pending_block_count.return_value = pending
    return session


class TestConfirm:

    @pytest.mark.asyncio
    async def test_each_exchange_verified_once(self) -> None:
        session = make_session()
        gate = VerificationGate(session)

        reports = await gate.confirm([1, 2, 3])

        assert [report.exchange_id for report in reports] == [1, 2, 3]
        assert all(report.confirmed for report in reports)
        assert [call.args[0] for call in session.verify_pending_blocks.await_args_list] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_unverified_blocks_raise(self) -> None:
        session = make_session(verified=1, pending=2)
        gate = VerificationGate(session)

        with pytest.raises(VerificationError, match="PERM-VER-001"):
            await gate.confirm([7])

    @pytest.mark.asyncio
    async def test_failure_stops_at_first_unconfirmed_exchange(self) -> None:
        session = make_session(pending=1)
        gate = VerificationGate(session)

        with pytest.raises(VerificationError):
            await gate.confirm([1, 2])

        session.verify_pending_blocks.assert_awaited_once_with(1)

    @pytest.mark.asyncio
    async def test_disabled_gate_skips_session(self) -> None:
        session = make_session()
        gate = VerificationGate(session, enabled=False)

        reports = await gate.confirm([4, 5])

        assert not gate.enabled
        assert all(report.skipped and report.confirmed for report in reports)
        session.verify_pending_blocks.assert_not_awaited()
        session.pending_block_count.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_verified_blocks_counted_per_mode(self) -> None:
        session = make_session(verified=3)
        gate = VerificationGate(session)
        labels = {"mode": "DATA_AVAILABILITY"}
        before = REGISTRY.get_sample_value("harness_blocks_verified_total", labels) or 0

        await gate.confirm([1], OperatingMode.DATA_AVAILABILITY)

        after = REGISTRY.get_sample_value("harness_blocks_verified_total", labels)
        assert after - before == 3


class TestVerificationReport:

    def test_pending_blocks_mean_unconfirmed(self) -> None:
        assert not VerificationReport(exchange_id=1, verified_blocks=0, pending_blocks=1).confirmed

    def test_to_dict(self) -> None:
        report = VerificationReport(exchange_id=1, verified_blocks=2, pending_blocks=0)
        assert report.to_dict() == {
            "exchange_id": 1,
            "verified_blocks": 2,
            "pending_blocks": 0,
            "skipped": False,
        }
