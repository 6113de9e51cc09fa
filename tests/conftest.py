"""Pytest configuration and fixtures."""

import copy
from typing import Any, Dict, List, Optional, Tuple

import pytest

from zephyr_scale_mcp.client.zephyr_client import ZephyrClientError
from zephyr_scale_mcp.config import ZephyrSettings
from zephyr_scale_mcp.services.service_factory import ServiceFactory
from zephyr_scale_mcp.services.test_case_service import TestCaseService
from zephyr_scale_mcp.services.test_management_service import TestManagementService


class FakeZephyrClient:
    """In-memory stand-in for ``ZephyrClient``.

    Records every call in ``calls`` and raises the error registered in
    ``failures`` for a method name (optionally only for one key).
    """

    def __init__(self, test_cases: Optional[List[Dict[str, Any]]] = None):
        self.test_cases: Dict[str, Dict[str, Any]] = {}
        self.steps: Dict[str, List[Dict[str, Any]]] = {}
        self.plans: List[Dict[str, Any]] = []
        self.cycles: Dict[str, Dict[str, Any]] = {}
        self.executions: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[Tuple[str, Any]] = []
        self.failures: Dict[str, ZephyrClientError] = {}
        self.failing_keys: Dict[str, set] = {}
        self.closed = False
        for record in test_cases or []:
            self.add_test_case(record)

    def add_test_case(self, record: Dict[str, Any], steps: Optional[List[Dict[str, Any]]] = None):
        self.test_cases[record["key"]] = copy.deepcopy(record)
        if steps is not None:
            self.steps[record["key"]] = [{"inline": dict(s)} for s in steps]

    def fail(self, method: str, status_code: int = 500, key: Optional[str] = None) -> None:
        self.failures[method] = ZephyrClientError(
            f"Zephyr Scale API error ({status_code}): boom", status_code=status_code
        )
        if key is not None:
            self.failing_keys.setdefault(method, set()).add(key)

    def _record(self, method: str, key: Any = None, payload: Any = None) -> None:
        self.calls.append((method, key if payload is None else (key, payload)))
        error = self.failures.get(method)
        if error is None:
            return
        keys = self.failing_keys.get(method)
        if keys is None or key in keys:
            raise error

    def calls_to(self, method: str) -> List[Any]:
        return [args for name, args in self.calls if name == method]

    # --- Test cases ---

    async def fetch_page(self, project_key: str, limit: int, offset: int):
        self._record("fetch_page", project_key, {"limit": limit, "offset": offset})
        records = [
            copy.deepcopy(r)
            for r in self.test_cases.values()
            if r["key"].startswith(f"{project_key}-")
        ]
        return records[offset : offset + limit], len(records)

    async def fetch_detail(self, test_case_key: str) -> Dict[str, Any]:
        self._record("fetch_detail", test_case_key)
        if test_case_key not in self.test_cases:
            raise ZephyrClientError(
                f"Zephyr Scale API error (404): Test case {test_case_key} not found",
                status_code=404,
            )
        return copy.deepcopy(self.test_cases[test_case_key])

    async def fetch_steps(self, test_case_key: str) -> List[Dict[str, Any]]:
        self._record("fetch_steps", test_case_key)
        return copy.deepcopy(self.steps.get(test_case_key, []))

    async def write_steps(self, test_case_key: str, steps: List[Dict[str, Any]]) -> None:
        self._record("write_steps", test_case_key, steps)
        self.steps[test_case_key] = copy.deepcopy(steps)

    async def write_script(self, test_case_key: str, script_type: str, text: str) -> None:
        self._record("write_script", test_case_key, {"type": script_type, "text": text})
        self.test_cases.setdefault(test_case_key, {"key": test_case_key})["testScript"] = {
            "type": script_type,
            "text": text,
        }

    async def update_test_case(self, test_case_key: str, payload: Dict[str, Any]):
        self._record("update_test_case", test_case_key, payload)
        self.test_cases[test_case_key] = {**copy.deepcopy(payload), "key": test_case_key}
        return {}

    async def create_test_case(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._record("create_test_case", None, payload)
        project = payload["projectKey"]
        number = sum(1 for k in self.test_cases if k.startswith(f"{project}-")) + 1
        created = {"id": 1000 + number, "key": f"{project}-T{number}"}
        self.test_cases[created["key"]] = {**copy.deepcopy(payload), **created}
        return created

    async def link_issues(self, test_case_key: str, issue_keys: List[str]) -> None:
        self._record("link_issues", test_case_key, issue_keys)

    # --- Plans, cycles, executions ---

    async def create_test_plan(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._record("create_test_plan", None, payload)
        plan = {"id": len(self.plans) + 1, "key": f"{payload['projectKey']}-P{len(self.plans) + 1}"}
        self.plans.append({**payload, **plan})
        return plan

    async def list_test_plans(self, project_key: str, limit: int, offset: int):
        self._record("list_test_plans", project_key, {"limit": limit, "offset": offset})
        plans = [p for p in self.plans if p["projectKey"] == project_key]
        return plans[offset : offset + limit], len(plans)

    async def create_test_cycle(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._record("create_test_cycle", None, payload)
        key = f"{payload['projectKey']}-R{len(self.cycles) + 1}"
        self.cycles[key] = {**payload, "key": key}
        return {"id": len(self.cycles), "key": key}

    async def list_test_cycles(self, project_key: str, version_id: Optional[str], limit: int):
        self._record("list_test_cycles", project_key, {"versionId": version_id, "limit": limit})
        cycles = [
            c
            for c in self.cycles.values()
            if c["projectKey"] == project_key and (version_id is None or c.get("versionId") == version_id)
        ]
        return cycles[:limit], len(cycles)

    async def fetch_test_cycle(self, cycle_key: str) -> Dict[str, Any]:
        self._record("fetch_test_cycle", cycle_key)
        if cycle_key not in self.cycles:
            raise ZephyrClientError("Zephyr Scale API error (404): not found", status_code=404)
        return copy.deepcopy(self.cycles[cycle_key])

    async def list_cycle_executions(self, cycle_key: str) -> List[Dict[str, Any]]:
        self._record("list_cycle_executions", cycle_key)
        return copy.deepcopy(self.executions.get(cycle_key, []))

    async def update_test_execution(self, execution_id: str, payload: Dict[str, Any]):
        self._record("update_test_execution", execution_id, payload)
        return {"id": execution_id, **payload}

    async def close(self) -> None:
        self.closed = True

    async def __aenter__(self) -> "FakeZephyrClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


def make_record(key: str, name: str, **fields: Any) -> Dict[str, Any]:
    """Build an upstream list record."""
    record = {"id": int(key.rsplit("T", 1)[1]), "key": key, "name": name}
    record.update(fields)
    return record


@pytest.fixture
def sample_records() -> List[Dict[str, Any]]:
    """Upstream records in the shapes the list endpoint returns."""
    return [
        make_record(
            "PROJ-T1",
            "User Login Test",
            status={"name": "Draft"},
            priority={"name": "High"},
            labels=["smoke"],
            folder={"id": 10, "name": "/Regression/API"},
            createdOn="2024-01-10T09:00:00Z",
            estimatedTime=300000,
        ),
        make_record(
            "PROJ-T2",
            "Checkout flow",
            status={"name": "Approved"},
            priority={"name": "Normal"},
            labels="regression, payments",
            folderId="11",
            folderName="/Payments",
            createdOn="2024-02-01T12:00:00Z",
            estimatedTime=60000,
        ),
        make_record(
            "PROJ-T3",
            "Password reset",
            status="Deprecated",
            priority={"name": "Low"},
            labels=[{"name": "smoke"}, {"name": "auth"}],
            folder="/Regression",
            createdOn="2023-12-24T08:30:00Z",
        ),
    ]


@pytest.fixture
def fake_client(sample_records) -> FakeZephyrClient:
    """Fake client preloaded with the sample records."""
    client = FakeZephyrClient(sample_records)
    client.steps["PROJ-T1"] = [
        {"inline": {"description": "A", "testData": "", "expectedResult": "x"}},
        {"inline": {"description": "B", "testData": "", "expectedResult": "y"}},
        {"inline": {"description": "C", "testData": "", "expectedResult": "z"}},
    ]
    return client


@pytest.fixture
def settings() -> ZephyrSettings:
    """Settings with a dummy token."""
    return ZephyrSettings(api_token="test-token", max_scan_records=2000, enrich_concurrency=3)


@pytest.fixture
def test_case_service(fake_client) -> TestCaseService:
    """Test case service over the fake client, with small pages."""
    return TestCaseService(fake_client, page_size=2)


@pytest.fixture
def management_service(fake_client) -> TestManagementService:
    """Test management service over the fake client."""
    return TestManagementService(fake_client)


@pytest.fixture
def service_factory(fake_client, settings) -> ServiceFactory:
    """Service factory with the fake client injected."""
    return ServiceFactory(fake_client, settings)
