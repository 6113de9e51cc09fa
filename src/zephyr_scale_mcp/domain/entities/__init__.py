"""Domain entities."""

from zephyr_scale_mcp.domain.entities.query import (
    QueryOptions,
    SearchMode,
    SortOrder,
    StepFragment,
    StepMode,
    StepOperation,
    TestCaseCreate,
    TestCaseQuery,
    TestCaseUpdate,
    UpdateOptions,
)
from zephyr_scale_mcp.domain.entities.result_types import (
    DomainError,
    DomainErrorType,
    DomainResult,
    DomainSuccess,
)
from zephyr_scale_mcp.domain.entities.test_case import StepDTO, TestCaseDTO

__all__ = [
    "DomainError",
    "DomainErrorType",
    "DomainResult",
    "DomainSuccess",
    "QueryOptions",
    "SearchMode",
    "SortOrder",
    "StepDTO",
    "StepFragment",
    "StepMode",
    "StepOperation",
    "TestCaseCreate",
    "TestCaseDTO",
    "TestCaseQuery",
    "TestCaseUpdate",
    "UpdateOptions",
]
