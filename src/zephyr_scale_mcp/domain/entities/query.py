"""
Query and step-operation value objects.

These are produced by the request parser after validation and consumed by
the engine. Defaults are kept in explicit tables so they read as policy.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SearchMode(str, Enum):
    """How multiple filter results are combined."""

    AND = "AND"
    OR = "OR"


class SortOrder(str, Enum):
    """Sort direction."""

    ASC = "asc"
    DESC = "desc"


class StepMode(str, Enum):
    """Step edit modes."""

    REPLACE = "REPLACE"
    APPEND = "APPEND"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


SORT_KEYS = (
    "name",
    "createdOn",
    "lastModifiedOn",
    "priority",
    "status",
    "estimatedTime",
    "folder",
)

# Applied to any sort key the sort engine does not recognize.
DEFAULT_SORT_KEY = "name"

MAX_QUERY_LIMIT = 500

QUERY_DEFAULTS: Dict[str, Any] = {
    "searchMode": SearchMode.AND.value,
    "caseSensitive": False,
    "limit": 100,
    "offset": 0,
    "sortBy": DEFAULT_SORT_KEY,
    "sortOrder": SortOrder.ASC.value,
    "includeDetails": False,
    "includeSteps": False,
    "includeLinks": False,
}

UPDATE_OPTION_DEFAULTS: Dict[str, bool] = {
    "preserveUnsetFields": True,
    "validateSteps": True,
    "createBackup": False,
    "returnUpdated": True,
}


@dataclass
class QueryOptions:
    """Options controlling filtering, ordering, paging and enrichment."""

    mode: SearchMode = SearchMode.AND
    case_sensitive: bool = False
    sort_by: str = DEFAULT_SORT_KEY
    sort_order: SortOrder = SortOrder.ASC
    offset: int = 0
    limit: int = 100
    include_steps: bool = False
    include_details: bool = False
    include_links: bool = False

    @property
    def wants_enrichment(self) -> bool:
        return self.include_steps or self.include_details or self.include_links


@dataclass
class TestCaseQuery:
    """A validated ``get_test_cases`` request."""

    __test__ = False

    project_key: str
    filters: Dict[str, Any] = field(default_factory=dict)
    options: QueryOptions = field(default_factory=QueryOptions)


@dataclass
class StepFragment:
    """
    Partial step supplied by a caller.

    ``None`` means the field was not provided, which is distinct from an
    empty string.
    """

    index: Optional[int] = None
    description: Optional[str] = None
    test_data: Optional[str] = None
    expected_result: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepFragment":
        """Create a fragment from the camelCase request shape."""
        return cls(
            index=data.get("index"),
            description=data.get("description"),
            test_data=data.get("testData"),
            expected_result=data.get("expectedResult"),
        )


@dataclass
class StepOperation:
    """A declarative edit over a test case's step list."""

    mode: StepMode
    steps: List[StepFragment] = field(default_factory=list)
    delete_indexes: List[int] = field(default_factory=list)


@dataclass
class UpdateOptions:
    """Options for ``update_test_case``."""

    preserve_unset_fields: bool = True
    validate_steps: bool = True
    create_backup: bool = False
    return_updated: bool = True


@dataclass
class TestCaseUpdate:
    """A validated ``update_test_case`` request."""

    __test__ = False

    test_case_key: str
    fields: Dict[str, Any] = field(default_factory=dict)
    step_operation: Optional[StepOperation] = None
    script_text: Optional[str] = None
    script_type: Optional[str] = None
    options: UpdateOptions = field(default_factory=UpdateOptions)


@dataclass
class TestCaseCreate:
    """A validated ``create_test_case`` request.

    ``payload`` holds the upstream create fields; steps and plain-text
    scripts are written separately once the test case exists.
    """

    __test__ = False

    payload: Dict[str, Any]
    steps: List[StepFragment] = field(default_factory=list)
    script_text: Optional[str] = None
