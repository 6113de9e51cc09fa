"""MCP Tool definitions."""

from typing import List

from mcp.types import Tool

from zephyr_scale_mcp.server.tools.test_case_tools import get_test_case_tools
from zephyr_scale_mcp.server.tools.test_management_tools import get_test_management_tools


def get_all_tools() -> List[Tool]:
    """Get all available MCP tools."""
    tools = []
    tools.extend(get_test_case_tools())
    tools.extend(get_test_management_tools())
    return tools


__all__ = [
    "get_all_tools",
    "get_test_case_tools",
    "get_test_management_tools",
]
