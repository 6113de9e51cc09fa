"""Collaborator interfaces."""

from zephyr_scale_mcp.domain.interfaces.test_service_client import ITestServiceClient

__all__ = ["ITestServiceClient"]
