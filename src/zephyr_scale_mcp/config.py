"""
Settings for the Zephyr Scale MCP server.

Values come from an optional YAML file (``~/.zephyr-mcp/config.yaml`` or the
path in ``ZEPHYR_CONFIG_PATH``) and are overridden by environment variables:

    ZEPHYR_API_TOKEN            API token (required)
    ZEPHYR_BASE_URL             REST base URL
    ZEPHYR_TIMEOUT              Request timeout in seconds
    ZEPHYR_MAX_SCAN_RECORDS     Upper bound on records scanned per query
    ZEPHYR_ENRICH_CONCURRENCY   Parallel detail fetches per query
    ZEPHYR_DEBUG                1/true/yes enables tool-call debug logging

Example config.yaml:
    api_token: "..."
    timeout: 60
    max_scan_records: 5000
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

from zephyr_scale_mcp.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.zephyrscale.smartbear.com/v2"
CONFIG_FILENAME = "config.yaml"


def get_config_directory() -> Path:
    """Get the config directory path (~/.zephyr-mcp/)."""
    return Path.home() / ".zephyr-mcp"


def is_debug_mode() -> bool:
    """Check if debug mode is enabled."""
    return os.environ.get("ZEPHYR_DEBUG", "").lower() in ("1", "true", "yes")


@dataclass
class ZephyrSettings:
    """
    Resolved settings.

    Attributes:
        api_token: Bearer token for Zephyr Scale Cloud
        base_url: REST v2 base URL
        timeout: Request timeout in seconds
        max_scan_records: Maximum upstream records scanned by one query
        enrich_concurrency: Maximum parallel enrichment fetches
        debug: Verbose tool-call logging
    """

    api_token: str = ""
    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    max_scan_records: int = 2000
    enrich_concurrency: int = 5
    debug: bool = False

    def require_token(self) -> "ZephyrSettings":
        """Return self, or raise if no API token is configured."""
        if not self.api_token:
            raise ConfigurationError(
                "ZEPHYR_API_TOKEN",
                "not set; export it or add api_token to " + str(get_config_directory() / CONFIG_FILENAME),
            )
        return self


# setting name -> (environment variable, converter)
_ENV_SETTINGS: Dict[str, tuple] = {
    "api_token": ("ZEPHYR_API_TOKEN", str),
    "base_url": ("ZEPHYR_BASE_URL", str),
    "timeout": ("ZEPHYR_TIMEOUT", float),
    "max_scan_records": ("ZEPHYR_MAX_SCAN_RECORDS", int),
    "enrich_concurrency": ("ZEPHYR_ENRICH_CONCURRENCY", int),
}


def _load_file(config_path: Path) -> Dict[str, Any]:
    if not config_path.exists():
        return {}
    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", config_path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: expected a mapping", config_path)
        return {}
    return data


def _convert(name: str, raw: Any, converter: Callable[[Any], Any]) -> Any:
    try:
        return converter(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(name, f"invalid value {raw!r}") from e


def load_settings(config_path: Optional[Path] = None) -> ZephyrSettings:
    """
    Load settings from the config file and environment.

    Args:
        config_path: Explicit YAML file. Defaults to ``ZEPHYR_CONFIG_PATH``
            or ``~/.zephyr-mcp/config.yaml``.

    Returns:
        ZephyrSettings with environment values taking precedence.
    """
    if config_path is None:
        env_path = os.environ.get("ZEPHYR_CONFIG_PATH")
        config_path = Path(env_path) if env_path else get_config_directory() / CONFIG_FILENAME

    values: Dict[str, Any] = {}
    file_values = _load_file(config_path)
    for name, (env_var, converter) in _ENV_SETTINGS.items():
        if file_values.get(name) is not None:
            values[name] = _convert(name, file_values[name], converter)
        env_value = os.environ.get(env_var, "").strip()
        if env_value:
            values[name] = _convert(env_var, env_value, converter)

    settings = ZephyrSettings(**values, debug=is_debug_mode() or bool(file_values.get("debug")))
    settings.base_url = settings.base_url.rstrip("/")
    return settings
