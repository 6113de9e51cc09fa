"""Zephyr Scale MCP - Test case management for AI assistants.

Search, filter and edit Zephyr Scale test cases via the MCP protocol.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
