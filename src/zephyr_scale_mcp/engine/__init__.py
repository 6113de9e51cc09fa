"""In-memory query and step mutation engine."""

from zephyr_scale_mcp.engine.enrichment import EnrichmentCoordinator, EnrichmentResult
from zephyr_scale_mcp.engine.filter_engine import filter_test_cases
from zephyr_scale_mcp.engine.normalizer import normalize_steps, normalize_test_case
from zephyr_scale_mcp.engine.sort_engine import sort_test_cases
from zephyr_scale_mcp.engine.step_mutation import StepMutationEngine, requires_current_steps

__all__ = [
    "EnrichmentCoordinator",
    "EnrichmentResult",
    "StepMutationEngine",
    "filter_test_cases",
    "normalize_steps",
    "normalize_test_case",
    "requires_current_steps",
    "sort_test_cases",
]
