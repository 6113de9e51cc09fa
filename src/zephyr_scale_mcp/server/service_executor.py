"""
Service Executor - Maps MCP tool calls onto the service layer.

Each handler pulls its arguments out of the tool call, calls one service
method and renders the ``DomainResult`` as a YAML envelope.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import yaml

from zephyr_scale_mcp.domain.entities.result_types import DomainResult
from zephyr_scale_mcp.server.error_sanitizer import sanitize_dict, sanitize_exception
from zephyr_scale_mcp.services import ServiceFactory
from zephyr_scale_mcp.services.request_parser import (
    parse_bulk_create_request,
    parse_create_request,
    parse_query_request,
    parse_update_request,
)

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Dict[str, Any]], Awaitable[DomainResult[Any]]]


class ServiceExecutor:
    """
    Executes MCP tool calls via the service layer.

    Args:
        factory: Service factory holding the shared remote client.
    """

    def __init__(self, factory: ServiceFactory):
        self._factory = factory
        self._tool_handlers: Dict[str, ToolHandler] = {}
        self._register_handlers()

    @property
    def tool_names(self):
        return sorted(self._tool_handlers)

    def _register_handlers(self) -> None:
        """Register tool name to handler mappings."""
        # Test case tools
        self._tool_handlers.update(
            {
                "get_test_cases": self._handle_get_test_cases,
                "update_test_case": self._handle_update_test_case,
                "get_test_case": self._handle_get_test_case,
                "get_test_case_steps": self._handle_get_test_case_steps,
                "search_test_cases": self._handle_search_test_cases,
                "create_test_case": self._handle_create_test_case,
                "create_multiple_test_cases": self._handle_create_multiple_test_cases,
            }
        )

        # Test management tools
        self._tool_handlers.update(
            {
                "create_test_plan": self._handle_create_test_plan,
                "list_test_plans": self._handle_list_test_plans,
                "create_test_cycle": self._handle_create_test_cycle,
                "list_test_cycles": self._handle_list_test_cycles,
                "execute_test": self._handle_execute_test,
                "get_test_execution_status": self._handle_execution_status,
                "link_tests_to_issues": self._handle_link_tests_to_issues,
                "generate_test_report": self._handle_generate_test_report,
            }
        )

    async def execute_tool(self, tool_name: str, arguments: Optional[Dict[str, Any]]) -> str:
        """
        Execute a tool and return the YAML-formatted envelope.

        Args:
            tool_name: Name of the tool to execute.
            arguments: Tool arguments dictionary.

        Returns:
            YAML-formatted result string.
        """
        handler = self._tool_handlers.get(tool_name)
        if not handler:
            return self._format_error(
                f"Unknown tool: {tool_name}",
                [f"Available tools: {', '.join(self.tool_names)}"],
            )

        try:
            result = await handler(dict(arguments or {}))
        except Exception as e:
            logger.error("Error executing tool %s: %s", tool_name, e, exc_info=True)
            return self._format_error(sanitize_exception(e))

        if result.is_failure:
            logger.info("Tool %s failed: %s", tool_name, result.error_message)
        return self._format_envelope(result)

    @staticmethod
    def _dump(envelope: Dict[str, Any]) -> str:
        return yaml.dump(envelope, default_flow_style=False, allow_unicode=True, sort_keys=False)

    def _format_envelope(self, result: DomainResult[Any]) -> str:
        """Format a domain result as YAML."""
        envelope = result.to_envelope()
        if result.is_failure:
            envelope = sanitize_dict(envelope)
        return self._dump(envelope)

    def _format_error(self, message: str, suggestions: Optional[list] = None) -> str:
        """Format an error as YAML."""
        return self._dump(
            {"success": False, "error": message, "suggestions": suggestions or []}
        )

    # --- Test Case Handlers ---

    async def _handle_get_test_cases(self, args: Dict[str, Any]) -> DomainResult[Any]:
        """Handle get_test_cases tool."""
        parsed = parse_query_request(args)
        if parsed.is_failure:
            return parsed
        return await self._factory.get_test_case_service().get_test_cases(parsed.data)

    async def _handle_update_test_case(self, args: Dict[str, Any]) -> DomainResult[Any]:
        """Handle update_test_case tool."""
        parsed = parse_update_request(args)
        if parsed.is_failure:
            return parsed
        return await self._factory.get_test_case_service().update_test_case(parsed.data)

    async def _handle_get_test_case(self, args: Dict[str, Any]) -> DomainResult[Any]:
        service = self._factory.get_test_case_service()
        return await service.get_test_case(args.get("testCaseId", ""))

    async def _handle_get_test_case_steps(self, args: Dict[str, Any]) -> DomainResult[Any]:
        service = self._factory.get_test_case_service()
        return await service.get_test_case_steps(args.get("testCaseId", ""))

    async def _handle_search_test_cases(self, args: Dict[str, Any]) -> DomainResult[Any]:
        service = self._factory.get_test_case_service()
        return await service.search_test_cases(
            project_key=args.get("projectKey", ""),
            query=args.get("query"),
            limit=args.get("limit", 50),
        )

    async def _handle_create_test_case(self, args: Dict[str, Any]) -> DomainResult[Any]:
        """Handle create_test_case tool."""
        parsed = parse_create_request(args)
        if parsed.is_failure:
            return parsed
        return await self._factory.get_test_case_service().create_test_case(parsed.data)

    async def _handle_create_multiple_test_cases(
        self, args: Dict[str, Any]
    ) -> DomainResult[Any]:
        """Handle create_multiple_test_cases tool."""
        parsed = parse_bulk_create_request(args)
        if parsed.is_failure:
            return parsed
        return await self._factory.get_test_case_service().create_multiple_test_cases(
            parsed.data["requests"], continue_on_error=parsed.data["continueOnError"]
        )

    # --- Test Management Handlers ---

    async def _handle_create_test_plan(self, args: Dict[str, Any]) -> DomainResult[Any]:
        service = self._factory.get_test_management_service()
        return await service.create_test_plan(
            project_key=args.get("projectKey", ""),
            name=args.get("name", ""),
            description=args.get("description"),
            start_date=args.get("startDate"),
            end_date=args.get("endDate"),
        )

    async def _handle_list_test_plans(self, args: Dict[str, Any]) -> DomainResult[Any]:
        service = self._factory.get_test_management_service()
        return await service.list_test_plans(
            project_key=args.get("projectKey", ""),
            limit=args.get("limit", 50),
            offset=args.get("offset", 0),
        )

    async def _handle_create_test_cycle(self, args: Dict[str, Any]) -> DomainResult[Any]:
        service = self._factory.get_test_management_service()
        return await service.create_test_cycle(
            project_key=args.get("projectKey", ""),
            name=args.get("name", ""),
            version_id=args.get("versionId", ""),
            description=args.get("description"),
            environment=args.get("environment"),
            start_date=args.get("startDate"),
            end_date=args.get("endDate"),
        )

    async def _handle_list_test_cycles(self, args: Dict[str, Any]) -> DomainResult[Any]:
        service = self._factory.get_test_management_service()
        return await service.list_test_cycles(
            project_key=args.get("projectKey", ""),
            version_id=args.get("versionId"),
            limit=args.get("limit", 50),
        )

    async def _handle_execute_test(self, args: Dict[str, Any]) -> DomainResult[Any]:
        service = self._factory.get_test_management_service()
        return await service.execute_test(
            execution_id=args.get("executionId", ""),
            status=args.get("status", ""),
            comment=args.get("comment"),
            defects=args.get("defects"),
        )

    async def _handle_execution_status(self, args: Dict[str, Any]) -> DomainResult[Any]:
        service = self._factory.get_test_management_service()
        return await service.get_test_execution_status(cycle_id=args.get("cycleId", ""))

    async def _handle_link_tests_to_issues(self, args: Dict[str, Any]) -> DomainResult[Any]:
        service = self._factory.get_test_management_service()
        return await service.link_tests_to_issues(
            test_case_id=args.get("testCaseId", ""),
            issue_keys=args.get("issueKeys", []),
        )

    async def _handle_generate_test_report(self, args: Dict[str, Any]) -> DomainResult[Any]:
        service = self._factory.get_test_management_service()
        return await service.generate_test_report(
            cycle_id=args.get("cycleId", ""),
            report_format=args.get("format", "JSON"),
        )

    async def close(self) -> None:
        """Release the remote client's connections."""
        close = getattr(self._factory.client, "close", None)
        if close is not None:
            await close()
