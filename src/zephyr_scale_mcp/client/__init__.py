"""Remote test service client."""

from zephyr_scale_mcp.client.zephyr_client import ZephyrClient, ZephyrClientError

__all__ = ["ZephyrClient", "ZephyrClientError"]
