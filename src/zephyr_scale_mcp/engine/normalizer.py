"""
Field Normalizer - Canonical views over upstream test case records.

Zephyr Scale returns the same semantic field in different shapes depending
on the endpoint and on whether detail was expanded:

- folder: ``{"id": 7, "name": "API", "path": "/Regression/API"}``, a plain
  string, flat ``folderId`` / ``folderName`` properties, or nothing;
- labels: ``["a", "b"]``, ``[{"name": "a"}]``, ``"a, b"``, a single object;
- priority/status/owner: structured references or plain values.

Everything here is total: malformed input yields ``None`` or an empty list,
never an exception.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from zephyr_scale_mcp.domain.entities.test_case import StepDTO, TestCaseDTO

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO date or date-time into an aware datetime (UTC if naive)."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def resolve_reference(value: Any) -> Optional[str]:
    """Resolve a structured reference to its display name, else the raw value."""
    if isinstance(value, Mapping):
        for key in ("name", "value", "id"):
            text = _as_text(value.get(key))
            if text is not None:
                return text
        return None
    return _as_text(value)


def normalize_folder(record: Mapping[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(folder_id, folder_path)``; each part is independently optional."""
    raw = record.get("folder")

    folder_id: Optional[str] = None
    folder_path: Optional[str] = None

    if isinstance(raw, Mapping):
        folder_id = _as_text(raw.get("id"))
        folder_path = _as_text(raw.get("path")) or _as_text(raw.get("name"))

    if folder_id is None:
        folder_id = _as_text(record.get("folderId"))
    if folder_id is None and isinstance(raw, str):
        folder_id = raw

    if folder_path is None:
        folder_path = _as_text(record.get("folderName"))
    if folder_path is None and isinstance(raw, str):
        folder_path = raw

    return folder_id, folder_path


def _label_text(item: Any) -> Optional[str]:
    if isinstance(item, Mapping):
        for key in ("name", "value"):
            if item.get(key) is not None:
                return str(item[key])
        return None
    if item is None:
        return None
    return str(item)


def normalize_labels(value: Any) -> List[str]:
    """Normalize any upstream label shape to an ordered list of strings."""
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, Mapping):
        text = _label_text(value)
        return [text] if text is not None else []
    if isinstance(value, Sequence):
        labels = []
        for item in value:
            text = _label_text(item)
            if text is not None:
                labels.append(text)
        return labels
    return []


def normalize_owner(value: Any) -> Dict[str, Optional[str]]:
    """Normalize owner to ``{accountId, email, displayName}`` (absent keys dropped)."""
    if isinstance(value, Mapping):
        owner = {
            "accountId": _as_text(value.get("accountId")),
            "email": _as_text(value.get("email") or value.get("emailAddress")),
            "displayName": _as_text(value.get("displayName") or value.get("name")),
        }
        return {k: v for k, v in owner.items() if v}
    text = _as_text(value)
    if not text:
        return {}
    return {"email": text} if "@" in text else {"accountId": text}


def _linked_issue_count(record: Mapping[str, Any]) -> int:
    links = record.get("links")
    if isinstance(links, Mapping) and isinstance(links.get("issues"), list):
        return len(links["issues"])
    for key in ("linkedIssueCount", "linkedIssues"):
        count = record.get(key)
        if isinstance(count, bool):
            continue
        if isinstance(count, (int, float)):
            return int(count)
        if isinstance(count, list):
            return len(count)
    return 0


def _estimated_time(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def normalize_step(raw: Any, position: int) -> StepDTO:
    """
    Normalize one upstream step.

    Accepts the flat ``{description, testData, expectedResult}`` shape and
    the ``teststeps`` endpoint's ``{"inline": {...}}`` shape. The step is
    indexed by its position; upstream indexes are not trusted.
    """
    source: Mapping[str, Any] = {}
    if isinstance(raw, Mapping):
        inline = raw.get("inline")
        source = inline if isinstance(inline, Mapping) else raw

    return StepDTO(
        index=position,
        description=_as_text(source.get("description")) or "",
        test_data=_as_text(source.get("testData")) or "",
        expected_result=_as_text(source.get("expectedResult")) or "",
    )


def normalize_steps(raw_steps: Any) -> List[StepDTO]:
    """Normalize a step list into dense 1-based order."""
    if isinstance(raw_steps, Mapping):
        raw_steps = raw_steps.get("values") or raw_steps.get("items") or []
    if not isinstance(raw_steps, list):
        return []
    return [normalize_step(step, position) for position, step in enumerate(raw_steps, start=1)]


def _script(record: Mapping[str, Any]) -> Tuple[Optional[str], Optional[str], List[StepDTO]]:
    script = record.get("testScript")
    script_type: Optional[str] = None
    text: Optional[str] = None
    raw_steps: Any = record.get("steps")

    if isinstance(script, Mapping):
        kind = script.get("type") or script.get("kind")
        script_type = str(kind).upper() if kind else None
        text = _as_text(script.get("text"))
        if raw_steps is None:
            raw_steps = script.get("steps")

    steps = normalize_steps(raw_steps) if raw_steps is not None else []
    if script_type is None and steps:
        script_type = "STEP_BY_STEP"
    return script_type, text, steps


def _project_key(record: Mapping[str, Any], key: str) -> Optional[str]:
    project = record.get("project")
    if isinstance(project, Mapping) and project.get("key"):
        return str(project["key"])
    if record.get("projectKey"):
        return str(record["projectKey"])
    if "-T" in key:
        return key.rsplit("-T", 1)[0]
    return None


def normalize_test_case(record: Mapping[str, Any]) -> TestCaseDTO:
    """Build the canonical view of an upstream test case record."""
    key = _as_text(record.get("key")) or _as_text(record.get("id")) or ""
    folder_id, folder_path = normalize_folder(record)
    script_type, script_text, steps = _script(record)
    custom_fields = record.get("customFields")

    return TestCaseDTO(
        id=record.get("id"),
        key=key,
        name=_as_text(record.get("name")),
        objective=_as_text(record.get("objective")),
        precondition=_as_text(record.get("precondition")),
        estimated_time=_estimated_time(record.get("estimatedTime")),
        priority=resolve_reference(record.get("priority")),
        status=resolve_reference(record.get("status")),
        folder_id=folder_id,
        folder_path=folder_path,
        labels=normalize_labels(record.get("labels")),
        component=resolve_reference(record.get("component")),
        owner=normalize_owner(record.get("owner")),
        created_by=resolve_reference(record.get("createdBy")),
        last_modified_by=resolve_reference(record.get("lastModifiedBy")),
        created_on=parse_timestamp(record.get("createdOn")),
        last_modified_on=parse_timestamp(record.get("lastModifiedOn") or record.get("updatedOn")),
        custom_fields=dict(custom_fields) if isinstance(custom_fields, Mapping) else {},
        linked_issue_count=_linked_issue_count(record),
        test_type=resolve_reference(record.get("testType")),
        script_type=script_type,
        script_text=script_text,
        steps=steps,
        project_key=_project_key(record, key),
        raw=dict(record),
    )
