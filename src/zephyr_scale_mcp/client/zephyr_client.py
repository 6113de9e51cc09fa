"""HTTP client for the Zephyr Scale Cloud REST API (v2).

Thin transport adapter implementing ``ITestServiceClient``. It builds
requests, attaches the bearer token and unwraps list responses; it does not
retry. Failures surface as ``ZephyrClientError``.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import httpx

from zephyr_scale_mcp.config import DEFAULT_BASE_URL, ZephyrSettings

logger = logging.getLogger(__name__)


class ZephyrClientError(Exception):
    """Error from the Zephyr Scale API."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def _unwrap_list(data: Any) -> Tuple[List[Dict[str, Any]], Optional[int]]:
    """
    Accept both ``{"values": [...], "total": n}`` and a bare list.

    The total is None when the response does not state one.
    """
    if isinstance(data, list):
        return data, None
    if isinstance(data, dict):
        values = data.get("values")
        if not isinstance(values, list):
            values = []
        total = data.get("total")
        return values, total if isinstance(total, int) else None
    return [], 0


def _counted(data: Any) -> Tuple[List[Dict[str, Any]], int]:
    values, total = _unwrap_list(data)
    return values, len(values) if total is None else total


def _path_key(key: str) -> str:
    return quote(str(key), safe="")


class ZephyrClient:
    """Async HTTP client for Zephyr Scale.

    Usage:
        async with ZephyrClient(api_token="...") as client:
            cases, total = await client.fetch_page("PROJ", limit=100, offset=0)
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            api_token: Zephyr Scale API token, sent as a bearer token.
            base_url: REST v2 base URL.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._api_token = api_token
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: ZephyrSettings) -> "ZephyrClient":
        """Create a client from resolved settings."""
        return cls(
            api_token=settings.api_token,
            base_url=settings.base_url,
            timeout=settings.timeout,
        )

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the underlying async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._default_headers(),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ZephyrClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Make an HTTP request to the API.

        Returns:
            Decoded JSON body, or an empty dict for empty responses.

        Raises:
            ZephyrClientError: On HTTP error status or connection problems.
        """
        client = await self._get_client()
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        try:
            response = await client.request(method=method, url=path, json=json, params=params)
        except httpx.TimeoutException as e:
            raise ZephyrClientError(
                f"Request timed out after {self.timeout}s: {method} {path}", detail=str(e)
            ) from e
        except httpx.RequestError as e:
            raise ZephyrClientError(
                f"Cannot connect to Zephyr Scale at {self.base_url}", detail=str(e)
            ) from e

        if response.status_code >= 400:
            try:
                error_data = response.json()
            except ValueError:
                error_data = response.text
            message = error_data
            if isinstance(error_data, dict):
                message = error_data.get("message") or error_data.get("errorCode") or response.text
            logger.debug("%s %s -> %s: %s", method, path, response.status_code, message)
            raise ZephyrClientError(
                f"Zephyr Scale API error ({response.status_code}): {message}",
                status_code=response.status_code,
                detail=error_data,
            )

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # =========================================================================
    # Test Cases
    # =========================================================================

    async def fetch_page(
        self, project_key: str, limit: int, offset: int
    ) -> Tuple[List[Dict[str, Any]], Optional[int]]:
        """One page of test cases and the upstream total, None if not reported."""
        data = await self._request(
            "GET",
            "/testcases",
            params={"projectKey": project_key, "maxResults": limit, "startAt": offset},
        )
        return _unwrap_list(data)

    async def fetch_detail(self, test_case_key: str) -> Dict[str, Any]:
        return await self._request("GET", f"/testcases/{_path_key(test_case_key)}")

    async def fetch_steps(self, test_case_key: str) -> List[Dict[str, Any]]:
        data = await self._request(
            "GET",
            f"/testcases/{_path_key(test_case_key)}/teststeps",
            params={"maxResults": 100},
        )
        steps, _ = _unwrap_list(data)
        return steps

    async def write_steps(self, test_case_key: str, steps: List[Dict[str, Any]]) -> None:
        """Overwrite all steps. ``steps`` are ``{"inline": {...}}`` items."""
        await self._request(
            "POST",
            f"/testcases/{_path_key(test_case_key)}/teststeps",
            json={"mode": "OVERWRITE", "items": steps},
        )

    async def write_script(self, test_case_key: str, script_type: str, text: str) -> None:
        await self._request(
            "POST",
            f"/testcases/{_path_key(test_case_key)}/testscript",
            json={"type": script_type, "text": text},
        )

    async def update_test_case(self, test_case_key: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("PUT", f"/testcases/{_path_key(test_case_key)}", json=payload)

    async def create_test_case(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/testcases", json=payload)

    async def link_issues(self, test_case_key: str, issue_keys: List[str]) -> None:
        await self._request(
            "POST",
            f"/testcases/{_path_key(test_case_key)}/links",
            json={"issueKeys": issue_keys},
        )

    # =========================================================================
    # Test Plans, Cycles and Executions
    # =========================================================================

    async def create_test_plan(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/testplans", json=payload)

    async def list_test_plans(
        self, project_key: str, limit: int, offset: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        data = await self._request(
            "GET",
            "/testplans",
            params={"projectKey": project_key, "maxResults": limit, "startAt": offset},
        )
        return _counted(data)

    async def create_test_cycle(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/testcycles", json=payload)

    async def list_test_cycles(
        self, project_key: str, version_id: Optional[str], limit: int
    ) -> Tuple[List[Dict[str, Any]], int]:
        data = await self._request(
            "GET",
            "/testcycles",
            params={"projectKey": project_key, "versionId": version_id, "maxResults": limit},
        )
        return _counted(data)

    async def fetch_test_cycle(self, cycle_key: str) -> Dict[str, Any]:
        return await self._request("GET", f"/testcycles/{_path_key(cycle_key)}")

    async def list_cycle_executions(self, cycle_key: str) -> List[Dict[str, Any]]:
        data = await self._request("GET", f"/testcycles/{_path_key(cycle_key)}/testexecutions")
        executions, _ = _unwrap_list(data)
        return executions

    async def update_test_execution(
        self, execution_id: str, payload: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._request(
            "PUT", f"/testexecutions/{_path_key(execution_id)}", json=payload
        )
