"""
Predicate Library - One evaluator per filter kind.

Every predicate has the signature ``(test_case, value, case_sensitive) ->
bool`` and is total: a missing field or a malformed filter value is a
non-match, never an exception. Predicates only read the test case.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set

from zephyr_scale_mcp.domain.entities.test_case import SCRIPT_NONE, TestCaseDTO
from zephyr_scale_mcp.engine.normalizer import parse_timestamp

Predicate = Callable[[TestCaseDTO, Any, bool], bool]


def fold(value: str, case_sensitive: bool) -> str:
    """Apply the active case rule to one operand."""
    return value if case_sensitive else value.casefold()


def _to_text_set(value: Any, case_sensitive: bool) -> Set[str]:
    if value is None:
        return set()
    if isinstance(value, (list, tuple, set, frozenset)):
        items: Iterable[Any] = value
    else:
        items = [value]
    return {fold(str(item), case_sensitive) for item in items if item is not None}


# --- Text ---


def _text_predicate(attribute: str, compare: Callable[[str, str], bool]) -> Predicate:
    def predicate(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
        source = getattr(test_case, attribute)
        if source is None or value is None:
            return False
        return compare(fold(str(source), case_sensitive), fold(str(value), case_sensitive))

    predicate.__name__ = f"{attribute}_{compare.__name__}"
    return predicate


def _equals(source: str, needle: str) -> bool:
    return source == needle


def _contains(source: str, needle: str) -> bool:
    return needle in source


def _starts_with(source: str, needle: str) -> bool:
    return source.startswith(needle)


def _ends_with(source: str, needle: str) -> bool:
    return source.endswith(needle)


title_equals = _text_predicate("name", _equals)
title_contains = _text_predicate("name", _contains)
title_starts_with = _text_predicate("name", _starts_with)
title_ends_with = _text_predicate("name", _ends_with)
objective_contains = _text_predicate("objective", _contains)
precondition_contains = _text_predicate("precondition", _contains)


# --- Multi-value metadata ---


def _any_of(attribute: str) -> Predicate:
    def predicate(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
        actual = getattr(test_case, attribute)
        if actual is None:
            return False
        return fold(str(actual), case_sensitive) in _to_text_set(value, case_sensitive)

    predicate.__name__ = f"{attribute}_any_of"
    return predicate


status_any_of = _any_of("status")
priority_any_of = _any_of("priority")


# --- Organization ---


def folder_id_equals(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    if test_case.folder_id is None or value is None:
        return False
    return test_case.folder_id == str(value)


def folder_path_matches(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    """Equality or containment, so ``/Regression`` matches ``/Regression/API``."""
    if test_case.folder_path is None or value is None:
        return False
    path = fold(test_case.folder_path, case_sensitive)
    needle = fold(str(value), case_sensitive)
    return path == needle or needle in path


def labels_match(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    wanted = _to_text_set(value, case_sensitive)
    if not wanted or not test_case.labels:
        return False
    actual = [fold(label, case_sensitive) for label in test_case.labels]
    return any(w == label or w in label for w in wanted for label in actual)


def component_equals(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    candidates = [test_case.component]
    component = test_case.raw.get("component")
    if isinstance(component, Mapping):
        candidates.append(component.get("id"))
    return _matches_any(candidates, value, case_sensitive)


# --- People ---


def _matches_any(candidates: List[Any], value: Any, case_sensitive: bool) -> bool:
    if value is None:
        return False
    needle = fold(str(value), case_sensitive)
    return any(
        candidate is not None and fold(str(candidate), case_sensitive) == needle
        for candidate in candidates
    )


def owner_equals(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    return _matches_any(test_case.owner_values(), value, case_sensitive)


def created_by_equals(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    return _matches_any([test_case.created_by], value, case_sensitive)


def last_modified_by_equals(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    return _matches_any([test_case.last_modified_by], value, case_sensitive)


# --- Dates ---


def _date_predicate(attribute: str, after: bool) -> Predicate:
    def predicate(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
        actual: Optional[datetime] = getattr(test_case, attribute)
        bound = parse_timestamp(value)
        if actual is None or bound is None:
            return False
        return actual >= bound if after else actual <= bound

    predicate.__name__ = f"{attribute}_{'after' if after else 'before'}"
    return predicate


created_after = _date_predicate("created_on", after=True)
created_before = _date_predicate("created_on", after=False)
modified_after = _date_predicate("last_modified_on", after=True)
modified_before = _date_predicate("last_modified_on", after=False)


# --- Flags and ranges ---


def _flag(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    return None


def has_linked_issues(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    wanted = _flag(value)
    return wanted is not None and (test_case.linked_issue_count > 0) == wanted


def has_test_steps(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    wanted = _flag(value)
    return wanted is not None and test_case.has_test_steps == wanted


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def estimated_time_min(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    bound = _number(value)
    return bound is not None and (test_case.estimated_time or 0) >= bound


def estimated_time_max(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    bound = _number(value)
    return bound is not None and (test_case.estimated_time or 0) <= bound


# --- Enums ---


def type_equals(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    return test_case.test_type is not None and test_case.test_type == value


def script_type_equals(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    if value == SCRIPT_NONE:
        return not test_case.script_type
    return test_case.script_type is not None and test_case.script_type == value


# --- Custom fields ---


def custom_fields_match(test_case: TestCaseDTO, value: Any, case_sensitive: bool) -> bool:
    """Every requested pair must be present and strictly equal, whatever the search mode."""
    if not isinstance(value, Mapping):
        return False
    fields = test_case.custom_fields
    return all(name in fields and fields[name] == expected for name, expected in value.items())


PREDICATES: Dict[str, Predicate] = {
    "title": title_equals,
    "titleContains": title_contains,
    "titleStartsWith": title_starts_with,
    "titleEndsWith": title_ends_with,
    "objectiveContains": objective_contains,
    "preconditionContains": precondition_contains,
    "status": status_any_of,
    "priority": priority_any_of,
    "folderId": folder_id_equals,
    "folderPath": folder_path_matches,
    "labels": labels_match,
    "componentId": component_equals,
    "owner": owner_equals,
    "createdBy": created_by_equals,
    "lastModifiedBy": last_modified_by_equals,
    "createdAfter": created_after,
    "createdBefore": created_before,
    "modifiedAfter": modified_after,
    "modifiedBefore": modified_before,
    "hasLinkedIssues": has_linked_issues,
    "hasTestSteps": has_test_steps,
    "estimatedTimeMin": estimated_time_min,
    "estimatedTimeMax": estimated_time_max,
    "testType": type_equals,
    "testScriptType": script_type_equals,
    "customFields": custom_fields_match,
}
