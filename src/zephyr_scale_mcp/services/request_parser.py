"""
Request Parser - Validation and defaulting of tool requests.

Turns raw tool arguments into typed request objects before any engine or
network work happens. Every rejection names the field path and the reason.
Defaults come from the explicit tables in ``domain.entities.query``.
"""

import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from zephyr_scale_mcp.domain.entities.query import (
    MAX_QUERY_LIMIT,
    QUERY_DEFAULTS,
    SORT_KEYS,
    UPDATE_OPTION_DEFAULTS,
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
    DomainResult,
    DomainSuccess,
)
from zephyr_scale_mcp.domain.entities.test_case import (
    SCRIPT_NONE,
    SCRIPT_PLAIN_TEXT,
    SCRIPT_STEP_BY_STEP,
)
from zephyr_scale_mcp.engine.normalizer import parse_timestamp
from zephyr_scale_mcp.exceptions import RequestValidationError

TEST_CASE_KEY_PATTERN = re.compile(r"^[A-Z]+-T[0-9]+$")

TEST_TYPES = ("MANUAL", "AUTOMATED", "BOTH")
SCRIPT_TYPES = (SCRIPT_STEP_BY_STEP, SCRIPT_PLAIN_TEXT)
EXECUTION_STATUSES = ("PASS", "FAIL", "WIP", "BLOCKED")

BASIC_UPDATE_FIELDS = (
    "name",
    "objective",
    "precondition",
    "estimatedTime",
    "priority",
    "status",
    "folderId",
    "labels",
    "componentId",
    "customFields",
    "testType",
    "owner",
)


# --- Primitive checks ---


def require_string(value: Any, field: str, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise RequestValidationError(field, "must be a string")
    if not allow_empty and not value.strip():
        raise RequestValidationError(field, "is required")
    return value


def optional_string(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    return require_string(value, field, allow_empty=True)


def require_bool(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise RequestValidationError(field, "must be a boolean")
    return value


def require_int(
    value: Any, field: str, minimum: Optional[int] = None, maximum: Optional[int] = None
) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise RequestValidationError(field, "must be an integer")
    value = int(value)
    if minimum is not None and value < minimum:
        raise RequestValidationError(field, f"must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise RequestValidationError(field, f"must be <= {maximum}")
    return value


def require_number(value: Any, field: str, minimum: Optional[float] = None) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise RequestValidationError(field, "must be a number")
    if minimum is not None and value < minimum:
        raise RequestValidationError(field, f"must be >= {minimum}")
    return value


def require_choice(value: Any, field: str, choices: tuple, normalize: Callable[[str], str] = str) -> str:
    if not isinstance(value, str) or normalize(value) not in choices:
        raise RequestValidationError(field, f"must be one of {', '.join(choices)}")
    return normalize(value)


def require_string_list(value: Any, field: str) -> List[str]:
    if not isinstance(value, list):
        raise RequestValidationError(field, "must be an array of strings")
    for position, item in enumerate(value):
        require_string(item, f"{field}[{position}]", allow_empty=True)
    return list(value)


def require_mapping(value: Any, field: str) -> Dict[str, Any]:
    if not isinstance(value, Mapping):
        raise RequestValidationError(field, "must be an object")
    return dict(value)


def require_test_case_key(value: Any, field: str = "testCaseId") -> str:
    key = require_string(value, field)
    if not TEST_CASE_KEY_PATTERN.match(key):
        raise RequestValidationError(
            field,
            "must be in format PROJECT-T123 (e.g. CSRP-T123); "
            "to search or list test cases use get_test_cases",
        )
    return key


def _option(args: Mapping[str, Any], name: str, defaults: Mapping[str, Any]) -> Any:
    value = args.get(name)
    return defaults[name] if value is None else value


def validation_failure(error: RequestValidationError) -> DomainResult[Any]:
    """Convert a parser exception into a validation error result."""
    return DomainError.validation_error(error.reason, field=error.field)


# --- Query requests ---


def _single_or_list(value: Any, field: str) -> Any:
    if isinstance(value, str):
        return value
    return require_string_list(value, field)


def _date(value: Any, field: str) -> str:
    text = require_string(value, field)
    if parse_timestamp(text) is None:
        raise RequestValidationError(field, "must be an ISO date (YYYY-MM-DD or YYYY-MM-DDTHH:mm:ss)")
    return text


_TEXT_FILTERS = (
    "title",
    "titleContains",
    "titleStartsWith",
    "titleEndsWith",
    "objectiveContains",
    "preconditionContains",
    "folderId",
    "folderPath",
    "componentId",
    "owner",
    "createdBy",
    "lastModifiedBy",
)

_FILTER_VALIDATORS: Dict[str, Callable[[Any, str], Any]] = {
    **{key: lambda v, f: require_string(v, f, allow_empty=True) for key in _TEXT_FILTERS},
    "status": _single_or_list,
    "priority": _single_or_list,
    "labels": lambda v, f: [v] if isinstance(v, str) else require_string_list(v, f),
    "createdAfter": _date,
    "createdBefore": _date,
    "modifiedAfter": _date,
    "modifiedBefore": _date,
    "hasLinkedIssues": require_bool,
    "hasTestSteps": require_bool,
    "estimatedTimeMin": lambda v, f: require_number(v, f),
    "estimatedTimeMax": lambda v, f: require_number(v, f),
    "customFields": require_mapping,
    "testType": lambda v, f: require_choice(v, f, TEST_TYPES),
    "testScriptType": lambda v, f: require_choice(v, f, SCRIPT_TYPES + (SCRIPT_NONE,)),
}


def parse_filters(raw: Any) -> Dict[str, Any]:
    """Validate known filter keys; unknown keys pass through and are ignored later."""
    if raw is None:
        return {}
    filters = require_mapping(raw, "filters")
    parsed: Dict[str, Any] = {}
    for key, value in filters.items():
        if value is None:
            continue
        validator = _FILTER_VALIDATORS.get(key)
        parsed[key] = validator(value, f"filters.{key}") if validator else value
    return parsed


def parse_query_request(args: Mapping[str, Any]) -> DomainResult[TestCaseQuery]:
    """Validate a ``get_test_cases`` request."""
    try:
        project_key = require_string(args.get("projectKey"), "projectKey")
        filters = parse_filters(args.get("filters"))

        options = QueryOptions(
            mode=SearchMode(
                require_choice(
                    _option(args, "searchMode", QUERY_DEFAULTS), "searchMode",
                    ("AND", "OR"), str.upper,
                )
            ),
            case_sensitive=require_bool(_option(args, "caseSensitive", QUERY_DEFAULTS), "caseSensitive"),
            sort_by=require_choice(_option(args, "sortBy", QUERY_DEFAULTS), "sortBy", SORT_KEYS),
            sort_order=SortOrder(
                require_choice(
                    _option(args, "sortOrder", QUERY_DEFAULTS), "sortOrder",
                    ("asc", "desc"), str.lower,
                )
            ),
            offset=require_int(_option(args, "offset", QUERY_DEFAULTS), "offset", minimum=0),
            limit=require_int(
                _option(args, "limit", QUERY_DEFAULTS), "limit", minimum=1, maximum=MAX_QUERY_LIMIT
            ),
            include_steps=require_bool(_option(args, "includeSteps", QUERY_DEFAULTS), "includeSteps"),
            include_details=require_bool(
                _option(args, "includeDetails", QUERY_DEFAULTS), "includeDetails"
            ),
            include_links=require_bool(_option(args, "includeLinks", QUERY_DEFAULTS), "includeLinks"),
        )
    except RequestValidationError as e:
        return validation_failure(e)

    return DomainSuccess.create(
        data=TestCaseQuery(project_key=project_key, filters=filters, options=options)
    )


# --- Update requests ---


def _parse_fragment(raw: Any, field: str, require_index: bool) -> StepFragment:
    data = require_mapping(raw, field)
    index = data.get("index")
    if index is not None or require_index:
        index = require_int(index, f"{field}.index", minimum=1)
    for name in ("description", "testData", "expectedResult"):
        optional_string(data.get(name), f"{field}.{name}")
    fragment = StepFragment.from_dict(data)
    fragment.index = index
    return fragment


def _parse_script_steps(raw: Any, field: str) -> List[StepFragment]:
    if not isinstance(raw, list):
        raise RequestValidationError(field, "must be an array of steps")
    fragments = []
    for position, item in enumerate(raw):
        step_field = f"{field}[{position}]"
        fragment = _parse_fragment(item, step_field, require_index=False)
        require_string(fragment.description, f"{step_field}.description")
        require_string(fragment.expected_result, f"{step_field}.expectedResult")
        fragments.append(fragment)
    # Full scripts are written in index order when indexes are given.
    return sorted(fragments, key=lambda f: f.index or 0)


def _parse_step_operation(raw: Any, field: str) -> StepOperation:
    data = require_mapping(raw, field)
    mode = StepMode(
        require_choice(data.get("mode"), f"{field}.mode", tuple(m.value for m in StepMode), str.upper)
    )

    raw_steps = data.get("steps")
    steps: List[StepFragment] = []
    if raw_steps is not None:
        if not isinstance(raw_steps, list):
            raise RequestValidationError(f"{field}.steps", "must be an array of steps")
        steps = [
            _parse_fragment(item, f"{field}.steps[{i}]", require_index=mode is StepMode.UPDATE)
            for i, item in enumerate(raw_steps)
        ]

    delete_indexes: List[int] = []
    if data.get("deleteIndexes") is not None:
        raw_indexes = data["deleteIndexes"]
        if not isinstance(raw_indexes, list):
            raise RequestValidationError(f"{field}.deleteIndexes", "must be an array of integers")
        delete_indexes = [
            require_int(v, f"{field}.deleteIndexes[{i}]", minimum=1) for i, v in enumerate(raw_indexes)
        ]

    if mode is StepMode.DELETE:
        if not delete_indexes:
            delete_indexes = [s.index for s in steps if s.index is not None]
        if not delete_indexes:
            raise RequestValidationError(f"{field}.deleteIndexes", "is required for DELETE mode")
        steps = []
    elif not steps:
        raise RequestValidationError(f"{field}.steps", f"is required for {mode.value} mode")

    return StepOperation(mode=mode, steps=steps, delete_indexes=delete_indexes)


_BASIC_FIELD_VALIDATORS: Dict[str, Callable[[Any, str], Any]] = {
    "name": require_string,
    "objective": optional_string,
    "precondition": optional_string,
    "estimatedTime": lambda v, f: require_number(v, f, minimum=0),
    "priority": require_string,
    "status": require_string,
    "folderId": lambda v, f: str(v) if isinstance(v, int) and not isinstance(v, bool) else require_string(v, f),
    "labels": require_string_list,
    "componentId": lambda v, f: str(v) if isinstance(v, int) and not isinstance(v, bool) else require_string(v, f),
    "customFields": require_mapping,
    "testType": lambda v, f: require_choice(v, f, TEST_TYPES),
    "owner": require_string,
}


def parse_update_options(raw: Any) -> UpdateOptions:
    data = require_mapping(raw, "options") if raw is not None else {}
    values = {
        name: require_bool(_option(data, name, UPDATE_OPTION_DEFAULTS), f"options.{name}")
        for name in UPDATE_OPTION_DEFAULTS
    }
    return UpdateOptions(
        preserve_unset_fields=values["preserveUnsetFields"],
        validate_steps=values["validateSteps"],
        create_backup=values["createBackup"],
        return_updated=values["returnUpdated"],
    )


def parse_update_request(args: Mapping[str, Any]) -> DomainResult[TestCaseUpdate]:
    """Validate an ``update_test_case`` request."""
    try:
        key = require_test_case_key(args.get("testCaseId"))
        updates = require_mapping(args.get("updates"), "updates")
        if not any(value is not None for value in updates.values()):
            raise RequestValidationError("updates", "at least one field must be provided for update")

        fields: Dict[str, Any] = {}
        for name in BASIC_UPDATE_FIELDS:
            if updates.get(name) is not None:
                fields[name] = _BASIC_FIELD_VALIDATORS[name](updates[name], f"updates.{name}")

        request = TestCaseUpdate(test_case_key=key, fields=fields)

        script = updates.get("testScript")
        if script is not None:
            script = require_mapping(script, "updates.testScript")
            script_type = require_choice(script.get("type"), "updates.testScript.type", SCRIPT_TYPES)
            request.script_type = script_type
            if script_type == SCRIPT_STEP_BY_STEP and script.get("steps") is not None:
                steps = _parse_script_steps(script["steps"], "updates.testScript.steps")
                request.step_operation = StepOperation(mode=StepMode.REPLACE, steps=steps)
            elif script_type == SCRIPT_PLAIN_TEXT:
                request.script_text = require_string(
                    script.get("text"), "updates.testScript.text", allow_empty=True
                )

        if updates.get("stepOperations") is not None:
            if request.step_operation is not None:
                raise RequestValidationError(
                    "updates.stepOperations", "cannot be combined with testScript steps"
                )
            request.step_operation = _parse_step_operation(
                updates["stepOperations"], "updates.stepOperations"
            )

        request.options = parse_update_options(args.get("options"))
    except RequestValidationError as e:
        return validation_failure(e)

    return DomainSuccess.create(data=request)


# --- Create requests ---



def _parse_create(args: Mapping[str, Any], prefix: str = "") -> TestCaseCreate:
    payload: Dict[str, Any] = {
        "projectKey": require_string(args.get("projectKey"), f"{prefix}projectKey"),
        "name": require_string(args.get("name"), f"{prefix}name"),
    }
    for name in BASIC_UPDATE_FIELDS:
        if name != "name" and args.get(name) is not None:
            payload[name] = _BASIC_FIELD_VALIDATORS[name](args[name], f"{prefix}{name}")

    request = TestCaseCreate(payload=payload)
    script = args.get("testScript")
    if script is not None:
        script = require_mapping(script, f"{prefix}testScript")
        script_type = require_choice(script.get("type"), f"{prefix}testScript.type", SCRIPT_TYPES)
        if script_type == SCRIPT_STEP_BY_STEP and script.get("steps"):
            request.steps = _parse_script_steps(script["steps"], f"{prefix}testScript.steps")
        elif script_type == SCRIPT_PLAIN_TEXT and script.get("text") is not None:
            request.script_text = require_string(
                script["text"], f"{prefix}testScript.text", allow_empty=True
            )
    return request


def parse_create_request(args: Mapping[str, Any]) -> DomainResult[TestCaseCreate]:
    """Validate a ``create_test_case`` request."""
    try:
        return DomainSuccess.create(data=_parse_create(args))
    except RequestValidationError as e:
        return validation_failure(e)


def parse_bulk_create_request(args: Mapping[str, Any]) -> DomainResult[Dict[str, Any]]:
    """Validate a ``create_multiple_test_cases`` request.

    Returns ``{"requests": [...], "continueOnError": bool}``.
    """
    try:
        raw = args.get("testCases")
        if not isinstance(raw, list) or not raw:
            raise RequestValidationError("testCases", "at least one test case is required")
        requests = [
            _parse_create(require_mapping(item, f"testCases[{i}]"), f"testCases[{i}].")
            for i, item in enumerate(raw)
        ]
        continue_on_error = args.get("continueOnError")
        continue_on_error = (
            True if continue_on_error is None else require_bool(continue_on_error, "continueOnError")
        )
    except RequestValidationError as e:
        return validation_failure(e)
    return DomainSuccess.create(data={"requests": requests, "continueOnError": continue_on_error})
