"""
Unit Tests for Harness Prometheus Metrics

Reliability Level: SOVEREIGN TIER

Tests that metric helpers update the registry and that a failing metric
is logged instead of propagating into a scenario.
"""

import logging
from unittest.mock import patch

from prometheus_client import REGISTRY

from app.observability import metrics
from app.observability.metrics import (
    record_block_fill,
    record_operation_submitted,
    record_scenario_result,
)


def sample(name: str, labels: dict) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0


class TestMetricUpdates:

    def test_operation_submitted_increments(self) -> None:
        labels = {"operation_class": "ORDER_CANCELLATION"}
        before = sample("harness_operations_submitted_total", labels)

        record_operation_submitted("ORDER_CANCELLATION", "cid")

        assert sample("harness_operations_submitted_total", labels) == before + 1

    def test_block_fill_counts_blocks_and_observes_size(self) -> None:
        committed = {"operation_class": "ONCHAIN_WITHDRAWAL", "mode": "COMPACT"}
        observed = {"operation_class": "ONCHAIN_WITHDRAWAL"}
        blocks_before = sample("harness_blocks_committed_total", committed)
        count_before = sample("harness_block_fill_operations_count", observed)

        record_block_fill("ONCHAIN_WITHDRAWAL", "COMPACT", 5, 2, "cid")

        assert sample("harness_blocks_committed_total", committed) == blocks_before + 2
        assert sample("harness_block_fill_operations_count", observed) == count_before + 1

    def test_scenario_result_by_status(self) -> None:
        labels = {"scenario": "DEPOSIT", "status": "ABORTED"}
        before = sample("harness_scenarios_total", labels)

        record_scenario_result("DEPOSIT", "ABORTED")

        assert sample("harness_scenarios_total", labels) == before + 1


class TestMetricFailures:

    def test_failure_is_logged_not_raised(self, caplog) -> None:
        with patch.object(metrics.OPERATIONS_SUBMITTED, "labels", side_effect=RuntimeError("registry down")):
            with caplog.at_level(logging.ERROR, logger="app.observability.metrics"):
                record_operation_submitted("DEPOSIT", "cid-7")

        assert "[OBS-001]" in caplog.text
        assert "cid-7" in caplog.text
