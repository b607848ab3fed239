"""Gateway channel configuration loader.

Reads the layered channel configuration (``config/gateway.yaml`` by default)
into a plain dict. Callers navigate it with :func:`section`, which tolerates
missing or malformed levels.
"""

from pathlib import Path
from typing import Any

import structlog
import yaml

from config.settings import get_settings

logger = structlog.get_logger()

BASE_DIR = Path(__file__).parents[2]


def _resolve_path(path: str | Path | None) -> Path:
    raw = Path(path or get_settings().gateway_config_path).expanduser()
    if raw.is_absolute():
        return raw
    return BASE_DIR / raw


def load_gateway_config(path: str | Path | None = None) -> dict[str, Any]:
    """Load the gateway YAML. A missing or unreadable file yields ``{}``."""
    config_path = _resolve_path(path)
    if not config_path.exists():
        logger.warning("gateway_config.missing", path=str(config_path))
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error("gateway_config.load_failed", path=str(config_path), error=str(e))
        return {}
    if not isinstance(data, dict):
        logger.error("gateway_config.not_a_mapping", path=str(config_path))
        return {}
    logger.info("gateway_config.loaded", path=str(config_path))
    return data


def section(config: dict[str, Any] | None, *keys: str) -> dict[str, Any]:
    """Walk nested mappings, returning ``{}`` as soon as a level is not a dict."""
    node: Any = config or {}
    for key in keys:
        if not isinstance(node, dict):
            return {}
        node = node.get(key)
    return node if isinstance(node, dict) else {}
