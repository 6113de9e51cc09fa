"""
Service Factory - Dependency injection for services.

The remote client is always passed in explicitly; the factory never
creates a global connection on its own.

Usage:
    client = ZephyrClient.from_settings(settings)
    factory = ServiceFactory(client, settings)
    result = await factory.get_test_case_service().get_test_case("PROJ-T1")
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Optional

from zephyr_scale_mcp.config import ZephyrSettings
from zephyr_scale_mcp.domain.interfaces.test_service_client import ITestServiceClient

if TYPE_CHECKING:
    from zephyr_scale_mcp.services.test_case_service import TestCaseService
    from zephyr_scale_mcp.services.test_management_service import TestManagementService


class ServiceFactory:
    """
    Factory for creating service instances with dependency injection.

    Creates and caches service instances, ensuring they share the same
    remote client and settings.
    """

    def __init__(self, client: ITestServiceClient, settings: Optional[ZephyrSettings] = None):
        """
        Initialize the service factory.

        Args:
            client: Remote test service collaborator shared by all services.
            settings: Resolved settings. Defaults are used if not provided.
        """
        self._client = client
        self._settings = settings or ZephyrSettings()
        self._lock = threading.RLock()

        self._test_case_service: Optional["TestCaseService"] = None
        self._test_management_service: Optional["TestManagementService"] = None

    @property
    def client(self) -> ITestServiceClient:
        """Get the remote client."""
        return self._client

    @property
    def settings(self) -> ZephyrSettings:
        """Get the resolved settings."""
        return self._settings

    def get_test_case_service(self) -> "TestCaseService":
        """Get or create the test case service."""
        from zephyr_scale_mcp.services.test_case_service import TestCaseService

        with self._lock:
            if self._test_case_service is None:
                self._test_case_service = TestCaseService(
                    client=self._client,
                    max_scan_records=self._settings.max_scan_records,
                    enrich_concurrency=self._settings.enrich_concurrency,
                )
            return self._test_case_service

    def get_test_management_service(self) -> "TestManagementService":
        """Get or create the test management service."""
        from zephyr_scale_mcp.services.test_management_service import TestManagementService

        with self._lock:
            if self._test_management_service is None:
                self._test_management_service = TestManagementService(client=self._client)
            return self._test_management_service
