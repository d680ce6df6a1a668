"""
============================================================================
Exchange Permutation Harness - Services Layer
============================================================================

Harness configuration and the declarative scenario suite.

Reliability Level: L6 Critical
============================================================================
"""

from services.harness_config import HarnessConfig

from services.scenario_suite import (
    ScenarioSuite,
    ScenarioDefinition,
    ScenarioResult,
    ScenarioAbort,
    ScenarioStep,
    ModeRun,
    SCENARIO_DEFINITIONS,
    get_definition,
)

__all__ = [
    # Configuration
    "HarnessConfig",
    # Scenario Suite
    "ScenarioSuite",
    "ScenarioDefinition",
    "ScenarioResult",
    "ScenarioAbort",
    "ScenarioStep",
    "ModeRun",
    "SCENARIO_DEFINITIONS",
    "get_definition",
]
