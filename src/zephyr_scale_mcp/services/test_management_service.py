"""
Test Management Service - Plans, cycles, executions, issue links and reports.
"""

import logging
from datetime import datetime, timezone
from html import escape
from typing import Any, Dict, List, Optional

from zephyr_scale_mcp.client.zephyr_client import ZephyrClientError
from zephyr_scale_mcp.domain.entities.result_types import DomainResult, DomainSuccess
from zephyr_scale_mcp.domain.interfaces.test_service_client import ITestServiceClient
from zephyr_scale_mcp.engine.normalizer import resolve_reference
from zephyr_scale_mcp.exceptions import RequestValidationError
from zephyr_scale_mcp.services.request_parser import (
    EXECUTION_STATUSES,
    optional_string,
    require_choice,
    require_int,
    require_string,
    require_string_list,
    require_test_case_key,
    validation_failure,
)
from zephyr_scale_mcp.services.test_case_service import remote_failure

logger = logging.getLogger(__name__)

REPORT_FORMATS = ("JSON", "HTML")

# Upstream status names (either the short codes or display names) -> summary bucket.
_STATUS_BUCKETS = {
    "PASS": "passed",
    "PASSED": "passed",
    "FAIL": "failed",
    "FAILED": "failed",
    "BLOCKED": "blocked",
    "WIP": "inProgress",
    "IN_PROGRESS": "inProgress",
}


def _status_name(execution: Dict[str, Any]) -> str:
    raw = execution.get("status")
    if raw is None:
        raw = execution.get("testExecutionStatus")
    name = resolve_reference(raw) or ""
    return name.strip().upper().replace(" ", "_")


def _test_case_label(execution: Dict[str, Any]) -> str:
    test_case = execution.get("testCase")
    if isinstance(test_case, dict) and test_case.get("key"):
        return str(test_case["key"])
    return str(resolve_reference(test_case) or "")


def summarize_executions(executions: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Count executions per status bucket.

    Unknown or missing statuses count as not executed. ``passRate`` is the
    passed percentage, 0 for an empty cycle.
    """
    summary: Dict[str, Any] = {
        "total": 0,
        "passed": 0,
        "failed": 0,
        "blocked": 0,
        "inProgress": 0,
        "notExecuted": 0,
    }
    for execution in executions:
        summary["total"] += 1
        summary[_STATUS_BUCKETS.get(_status_name(execution), "notExecuted")] += 1

    total = summary["total"]
    summary["passRate"] = round(summary["passed"] / total * 100, 2) if total else 0
    return summary


def render_html_report(report: Dict[str, Any]) -> str:
    """Render a cycle report as a small static HTML page."""
    summary = report["summary"]
    summary_rows = "".join(
        f"<tr><th>{escape(label)}</th><td>{summary[key]}</td></tr>"
        for label, key in (
            ("Total", "total"),
            ("Passed", "passed"),
            ("Failed", "failed"),
            ("Blocked", "blocked"),
            ("In progress", "inProgress"),
            ("Not executed", "notExecuted"),
            ("Pass rate (%)", "passRate"),
        )
    )
    execution_rows = "".join(
        "<tr><td>{}</td><td>{}</td><td>{}</td></tr>".format(
            escape(str(execution.get("key") or execution.get("id") or "")),
            escape(_test_case_label(execution)),
            escape(_status_name(execution) or "NOT_EXECUTED"),
        )
        for execution in report["executions"]
    )
    title = escape(f"Test report: {report.get('cycleName') or report['cycleId']}")
    return (
        "<!DOCTYPE html>\n"
        f"<html><head><meta charset=\"utf-8\"><title>{title}</title></head><body>\n"
        f"<h1>{title}</h1>\n"
        f"<p>Project: {escape(str(report.get('projectKey') or ''))}; "
        f"generated {escape(report['generatedOn'])}</p>\n"
        f"<table border=\"1\">{summary_rows}</table>\n"
        "<table border=\"1\"><tr><th>Execution</th><th>Test case</th><th>Status</th></tr>"
        f"{execution_rows}</table>\n"
        "</body></html>\n"
    )


class TestManagementService:
    """
    Service for test plans, cycles and executions.

    Args:
        client: Remote test service collaborator.
    """

    __test__ = False

    def __init__(self, client: ITestServiceClient):
        self.client = client

    # --- Test Plans ---

    async def create_test_plan(
        self,
        project_key: str,
        name: str,
        description: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> DomainResult[Dict[str, Any]]:
        """Create a test plan; ``description`` becomes the plan objective."""
        try:
            payload = {
                "projectKey": require_string(project_key, "projectKey"),
                "name": require_string(name, "name"),
                "objective": optional_string(description, "description"),
                "plannedStartDate": optional_string(start_date, "startDate"),
                "plannedEndDate": optional_string(end_date, "endDate"),
            }
        except RequestValidationError as e:
            return validation_failure(e)

        try:
            plan = await self.client.create_test_plan(
                {k: v for k, v in payload.items() if v is not None}
            )
        except ZephyrClientError as e:
            return remote_failure("create_test_plan", e)
        return DomainSuccess.create(data=plan)

    async def list_test_plans(
        self, project_key: str, limit: int = 50, offset: int = 0
    ) -> DomainResult[Dict[str, Any]]:
        try:
            project_key = require_string(project_key, "projectKey")
            limit = require_int(limit, "limit", minimum=1, maximum=100)
            offset = require_int(offset, "offset", minimum=0)
        except RequestValidationError as e:
            return validation_failure(e)

        try:
            plans, total = await self.client.list_test_plans(project_key, limit, offset)
        except ZephyrClientError as e:
            return remote_failure("list_test_plans", e)
        return DomainSuccess.create(data={"testPlans": plans, "total": total})

    # --- Test Cycles ---

    async def create_test_cycle(
        self,
        project_key: str,
        name: str,
        version_id: str,
        description: Optional[str] = None,
        environment: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> DomainResult[Dict[str, Any]]:
        try:
            payload = {
                "projectKey": require_string(project_key, "projectKey"),
                "name": require_string(name, "name"),
                "versionId": require_string(version_id, "versionId"),
                "description": optional_string(description, "description"),
                "environment": optional_string(environment, "environment"),
                "plannedStartDate": optional_string(start_date, "startDate"),
                "plannedEndDate": optional_string(end_date, "endDate"),
            }
        except RequestValidationError as e:
            return validation_failure(e)

        try:
            cycle = await self.client.create_test_cycle(
                {k: v for k, v in payload.items() if v is not None}
            )
        except ZephyrClientError as e:
            return remote_failure("create_test_cycle", e)
        return DomainSuccess.create(data=cycle)

    async def list_test_cycles(
        self, project_key: str, version_id: Optional[str] = None, limit: int = 50
    ) -> DomainResult[Dict[str, Any]]:
        try:
            project_key = require_string(project_key, "projectKey")
            version_id = optional_string(version_id, "versionId")
            limit = require_int(limit, "limit", minimum=1, maximum=100)
        except RequestValidationError as e:
            return validation_failure(e)

        try:
            cycles, total = await self.client.list_test_cycles(project_key, version_id, limit)
        except ZephyrClientError as e:
            return remote_failure("list_test_cycles", e)
        return DomainSuccess.create(data={"testCycles": cycles, "total": total})

    # --- Executions ---

    async def execute_test(
        self,
        execution_id: str,
        status: str,
        comment: Optional[str] = None,
        defects: Optional[List[str]] = None,
    ) -> DomainResult[Dict[str, Any]]:
        """Record an execution result; ``defects`` are linked issue keys."""
        try:
            execution_id = require_string(execution_id, "executionId")
            payload: Dict[str, Any] = {
                "status": require_choice(status, "status", EXECUTION_STATUSES, str.upper)
            }
            if comment is not None:
                payload["comment"] = optional_string(comment, "comment")
            if defects:
                payload["issues"] = [{"key": key} for key in require_string_list(defects, "defects")]
        except RequestValidationError as e:
            return validation_failure(e)

        try:
            execution = await self.client.update_test_execution(execution_id, payload)
        except ZephyrClientError as e:
            return remote_failure("execute_test", e)

        logger.info("Execution %s set to %s", execution_id, payload["status"])
        return DomainSuccess.create(data=execution or {"id": execution_id, **payload})

    async def get_test_execution_status(self, cycle_id: str) -> DomainResult[Dict[str, Any]]:
        """Summarize the execution statuses of a test cycle."""
        try:
            cycle_id = require_string(cycle_id, "cycleId")
        except RequestValidationError as e:
            return validation_failure(e)

        try:
            executions = await self.client.list_cycle_executions(cycle_id)
        except ZephyrClientError as e:
            return remote_failure("get_test_execution_status", e)
        return DomainSuccess.create(data={"cycleId": cycle_id, **summarize_executions(executions)})

    # --- Links and Reports ---

    async def link_tests_to_issues(
        self, test_case_id: str, issue_keys: List[str]
    ) -> DomainResult[Dict[str, Any]]:
        try:
            key = require_test_case_key(test_case_id)
            issue_keys = require_string_list(issue_keys, "issueKeys")
            if not issue_keys or not all(k.strip() for k in issue_keys):
                raise RequestValidationError("issueKeys", "at least one issue key is required")
        except RequestValidationError as e:
            return validation_failure(e)

        try:
            await self.client.link_issues(key, issue_keys)
        except ZephyrClientError as e:
            return remote_failure("link_tests_to_issues", e)
        return DomainSuccess.create(data={"testCaseId": key, "linkedIssues": issue_keys})

    async def generate_test_report(
        self, cycle_id: str, report_format: str = "JSON"
    ) -> DomainResult[Dict[str, Any]]:
        """
        Build a report for a test cycle.

        Args:
            cycle_id: Test cycle key.
            report_format: ``JSON`` returns the report structure; ``HTML``
                additionally renders it as ``html``.
        """
        try:
            cycle_id = require_string(cycle_id, "cycleId")
            report_format = require_choice(report_format, "format", REPORT_FORMATS, str.upper)
        except RequestValidationError as e:
            return validation_failure(e)

        try:
            cycle = await self.client.fetch_test_cycle(cycle_id)
            executions = await self.client.list_cycle_executions(cycle_id)
        except ZephyrClientError as e:
            return remote_failure("generate_test_report", e)

        project = cycle.get("project")
        report: Dict[str, Any] = {
            "cycleId": cycle_id,
            "cycleName": cycle.get("name"),
            "projectKey": cycle.get("projectKey")
            or (project.get("key") if isinstance(project, dict) else None),
            "summary": summarize_executions(executions),
            "executions": executions,
            "generatedOn": datetime.now(timezone.utc).isoformat(),
        }
        if report_format == "HTML":
            return DomainSuccess.create(
                data={"format": "HTML", "html": render_html_report(report), "summary": report["summary"]}
            )
        return DomainSuccess.create(data={"format": "JSON", "report": report})
