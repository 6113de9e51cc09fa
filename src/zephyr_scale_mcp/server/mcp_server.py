"""
Zephyr Scale MCP Server Implementation.

This module provides the ZephyrMCPServer class that exposes Zephyr Scale test
management over the Model Context Protocol (MCP). Logging goes to stderr;
stdout carries the protocol.
"""

import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, ErrorData, TextContent, Tool

from zephyr_scale_mcp import __version__
from zephyr_scale_mcp.client import ZephyrClient
from zephyr_scale_mcp.config import ZephyrSettings, is_debug_mode, load_settings
from zephyr_scale_mcp.domain.interfaces.test_service_client import ITestServiceClient
from zephyr_scale_mcp.server.error_sanitizer import sanitize_exception
from zephyr_scale_mcp.server.service_executor import ServiceExecutor
from zephyr_scale_mcp.server.tools import get_all_tools
from zephyr_scale_mcp.services import ServiceFactory

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = """Zephyr Scale MCP - Test case management for Zephyr Scale Cloud

FINDING TEST CASES:
- get_test_cases(projectKey, filters, ...) scans the project and filters,
  sorts and pages client-side. Filters combine with searchMode AND or OR.
- search_test_cases(projectKey, query) is a quick title search.
- get_test_case(testCaseId) returns one test case with its steps.

EDITING TEST CASES:
- update_test_case(testCaseId, updates, options) changes fields and steps.
- stepOperations modes: REPLACE, APPEND, UPDATE (partial fields) and DELETE
  (renumbers the remaining steps). Use get_test_case_steps first to see
  the current step indexes.
- create_test_case / create_multiple_test_cases create new ones.

PLANS, CYCLES AND EXECUTIONS:
- create_test_plan, list_test_plans, create_test_cycle, list_test_cycles
- execute_test, get_test_execution_status, generate_test_report
- link_tests_to_issues

Test case keys have the form PROJECT-T123. Every tool answers with a YAML
envelope: success, data or error, details and suggestions.
"""


def configure_logging(debug: bool = False) -> None:
    """Configure root logging on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


class ZephyrMCPServer:
    """
    MCP server implementation for Zephyr Scale.

    Args:
        settings: Resolved settings; loaded from file/environment if omitted.
        client: Remote test service client; built from ``settings`` if omitted.
    """

    def __init__(
        self,
        settings: Optional[ZephyrSettings] = None,
        client: Optional[ITestServiceClient] = None,
    ):
        self._settings = settings or load_settings()
        if client is None:
            client = ZephyrClient.from_settings(self._settings.require_token())

        self._server = Server(
            name="zephyr-scale-mcp",
            version=__version__,
            instructions=SERVER_INSTRUCTIONS,
        )

        self._service_executor = ServiceExecutor(ServiceFactory(client, self._settings))

        # Pre-cache tools
        self._tools = get_all_tools()
        logger.info("Loaded %d tools", len(self._tools))

        self._register_handlers()
        logger.info("ZephyrMCPServer initialized (base URL %s)", self._settings.base_url)

    @property
    def executor(self) -> ServiceExecutor:
        return self._service_executor

    def _debug(self) -> bool:
        return self._settings.debug or is_debug_mode()

    def _register_handlers(self) -> None:
        """Register MCP protocol handlers."""

        @self._server.list_tools()
        async def handle_list_tools() -> List[Tool]:
            """Handle list_tools request."""
            if self._debug():
                logger.debug("Handling list_tools request")
            return self._tools

        @self._server.call_tool()
        async def handle_call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            """Handle call_tool request."""
            if self._debug():
                logger.debug("Handling call_tool: %s", name)

            try:
                result_text = await self._service_executor.execute_tool(name, arguments)

                if self._debug():
                    preview = result_text[:200] + "..." if len(result_text) > 200 else result_text
                    logger.debug("Tool result preview: %s", preview)

                return [TextContent(type="text", text=result_text)]

            except Exception as e:
                logger.error("Error executing tool '%s': %s", name, e, exc_info=True)

                error_data = ErrorData(
                    code=INTERNAL_ERROR,
                    message=sanitize_exception(e),
                    data={"tool_name": name},
                )
                raise McpError(error_data) from e

        logger.debug("MCP protocol handlers registered")

    async def run(self, read_stream: Any, write_stream: Any, initialization_options: Any) -> None:
        """Run the MCP server with the provided streams."""
        logger.info("Starting MCP server main loop")

        try:
            await self._server.run(read_stream, write_stream, initialization_options)
        except Exception as e:
            logger.error("Error in MCP server main loop: %s", e, exc_info=True)
            raise
        finally:
            logger.info("MCP server main loop ended")
            await self.cleanup()

    def create_initialization_options(self) -> Any:
        """Create initialization options for the MCP server."""
        return self._server.create_initialization_options()

    async def cleanup(self) -> None:
        """Close the remote client's connections."""
        try:
            await self._service_executor.close()
            logger.info("Cleanup complete")
        except Exception as e:
            logger.error("Error during cleanup: %s", e, exc_info=True)


async def run_server(settings: Optional[ZephyrSettings] = None) -> None:
    """Run the MCP server with stdio transport."""
    from mcp.server.stdio import stdio_server

    server = ZephyrMCPServer(settings)

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


def main() -> None:
    """Entry point for the MCP server."""
    settings = load_settings()
    configure_logging(settings.debug)
    try:
        asyncio.run(run_server(settings))
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error("Server error: %s", e, exc_info=True)
        raise


if __name__ == "__main__":
    main()
