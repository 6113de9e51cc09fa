"""
Filter Engine - Combines predicate results into an inclusion decision.

Only predicates whose key is present in the filters are evaluated; an
absent key has no opinion. With no evaluated predicates every test case
passes. Output keeps input order.
"""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Union

from zephyr_scale_mcp.domain.entities.query import SearchMode
from zephyr_scale_mcp.domain.entities.test_case import TestCaseDTO
from zephyr_scale_mcp.engine.predicates import PREDICATES

logger = logging.getLogger(__name__)


def active_filters(filters: Mapping[str, Any]) -> Dict[str, Any]:
    """Return the recognized filter keys that carry a value."""
    return {
        key: value for key, value in filters.items() if key in PREDICATES and value is not None
    }


def evaluate(
    test_case: TestCaseDTO,
    filters: Mapping[str, Any],
    case_sensitive: bool = False,
) -> List[bool]:
    """Evaluate every active predicate against one test case."""
    return [
        PREDICATES[key](test_case, value, case_sensitive)
        for key, value in active_filters(filters).items()
    ]


def matches(
    test_case: TestCaseDTO,
    filters: Mapping[str, Any],
    mode: Union[SearchMode, str] = SearchMode.AND,
    case_sensitive: bool = False,
) -> bool:
    """Decide whether one test case is included."""
    results = evaluate(test_case, filters, case_sensitive)
    if not results:
        return True
    if str(getattr(mode, "value", mode)).upper() == SearchMode.OR.value:
        return any(results)
    return all(results)


def filter_test_cases(
    test_cases: Iterable[TestCaseDTO],
    filters: Mapping[str, Any],
    mode: Union[SearchMode, str] = SearchMode.AND,
    case_sensitive: bool = False,
) -> List[TestCaseDTO]:
    """Return the test cases matching ``filters``, in input order."""
    test_cases = list(test_cases)
    ignored = sorted(key for key in filters if key not in PREDICATES)
    if ignored:
        logger.debug("Ignoring unrecognized filter keys: %s", ignored)

    if not active_filters(filters):
        return test_cases

    return [tc for tc in test_cases if matches(tc, filters, mode, case_sensitive)]
