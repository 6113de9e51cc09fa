"""
Enrichment Coordinator - Optional detail/step fetches after filtering.

Runs one independent fetch per test case with bounded concurrency. A
failure only affects its own item, which is returned un-enriched; the
result list is in the same order as the input.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from zephyr_scale_mcp.domain.entities.test_case import TestCaseDTO
from zephyr_scale_mcp.domain.interfaces.test_service_client import ITestServiceClient
from zephyr_scale_mcp.engine.normalizer import normalize_test_case

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 5


@dataclass
class EnrichmentResult:
    """Per-item outcome: the (possibly enriched) test case and any error."""

    test_case: TestCaseDTO
    ok: bool = True
    error: Optional[str] = None


class EnrichmentCoordinator:
    """
    Fetches full detail and/or steps for a list of test cases.

    Args:
        client: Remote test service collaborator.
        max_concurrency: Upper bound on in-flight fetches.
    """

    def __init__(self, client: ITestServiceClient, max_concurrency: int = DEFAULT_MAX_CONCURRENCY):
        self._client = client
        self._max_concurrency = max(1, max_concurrency)

    async def enrich(
        self,
        test_cases: Sequence[TestCaseDTO],
        include_steps: bool = False,
        include_details: bool = False,
        include_links: bool = False,
    ) -> List[EnrichmentResult]:
        """Enrich every test case; never raises for per-item failures."""
        if not (include_steps or include_details or include_links):
            return [EnrichmentResult(test_case=tc) for tc in test_cases]

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def enrich_one(test_case: TestCaseDTO) -> EnrichmentResult:
            async with semaphore:
                try:
                    enriched = await self._enrich_one(
                        test_case, include_steps, include_details or include_links
                    )
                    return EnrichmentResult(test_case=enriched)
                except Exception as e:
                    logger.warning("Enrichment failed for %s: %s", test_case.key, e)
                    return EnrichmentResult(test_case=test_case, ok=False, error=str(e))

        return list(await asyncio.gather(*(enrich_one(tc) for tc in test_cases)))

    async def _enrich_one(
        self, test_case: TestCaseDTO, include_steps: bool, include_details: bool
    ) -> TestCaseDTO:
        record = dict(test_case.raw)
        if include_details:
            record.update(await self._client.fetch_detail(test_case.key))
        if include_steps:
            record["steps"] = await self._client.fetch_steps(test_case.key)

        return normalize_test_case(record)
