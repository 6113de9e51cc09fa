"""Service layer for zephyr-scale-mcp."""

from zephyr_scale_mcp.services.service_factory import ServiceFactory
from zephyr_scale_mcp.services.test_case_service import TestCaseService
from zephyr_scale_mcp.services.test_management_service import TestManagementService

__all__ = ["ServiceFactory", "TestCaseService", "TestManagementService"]
