"""
Sort Engine - Stable ordering of filtered test cases.

Each sort key has a fixed coercion so values of mixed upstream shape compare
predictably. ``desc`` negates the three-way comparison; ties keep their
input order in both directions.
"""

import functools
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Union

from zephyr_scale_mcp.domain.entities.query import DEFAULT_SORT_KEY, SortOrder
from zephyr_scale_mcp.domain.entities.test_case import TestCaseDTO
from zephyr_scale_mcp.engine.normalizer import EPOCH

logger = logging.getLogger(__name__)


def _timestamp(value: Any) -> datetime:
    return value if isinstance(value, datetime) else EPOCH


SORT_COERCIONS: Dict[str, Callable[[TestCaseDTO], Any]] = {
    "name": lambda tc: tc.name or "",
    "createdOn": lambda tc: _timestamp(tc.created_on),
    "lastModifiedOn": lambda tc: _timestamp(tc.last_modified_on),
    "priority": lambda tc: tc.priority or "",
    "status": lambda tc: tc.status or "",
    "estimatedTime": lambda tc: tc.estimated_time or 0,
    "folder": lambda tc: tc.folder_path or "",
}


def _compare(left: Any, right: Any) -> int:
    return (left > right) - (left < right)


def sort_test_cases(
    test_cases: Iterable[TestCaseDTO],
    sort_by: str = DEFAULT_SORT_KEY,
    sort_order: Union[SortOrder, str] = SortOrder.ASC,
) -> List[TestCaseDTO]:
    """Return a new, stably ordered list of test cases."""
    if sort_by not in SORT_COERCIONS:
        logger.warning("Unknown sort key %r, falling back to %r", sort_by, DEFAULT_SORT_KEY)
        sort_by = DEFAULT_SORT_KEY

    coerce = SORT_COERCIONS[sort_by]
    descending = str(getattr(sort_order, "value", sort_order)).lower() == SortOrder.DESC.value
    sign = -1 if descending else 1

    keyed = [(coerce(tc), tc) for tc in test_cases]

    def compare(a: Any, b: Any) -> int:
        return sign * _compare(a[0], b[0])

    return [tc for _, tc in sorted(keyed, key=functools.cmp_to_key(compare))]
