"""Per-tool preference store.

Reads and writes per-tool JSON config files in data/config/ (e.g.
"process-manager.json"). Tools load values with fallback to the defaults
registered in TOOL_DEFAULTS, so a missing or corrupt file never breaks a page.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent.parent / "data" / "config"

TOOL_DEFAULTS: dict[str, dict[str, Any]] = {
    "process-manager": {
        "page_size_clients": 5,
        "page_size_processes": 5,
        "page_size_actions": 10,
        "export_date_format": "%d/%m/%Y",
    },
}


def load_config(tool_name: str) -> dict | None:
    """Load a tool's JSON config. Returns None if the file doesn't exist or is unreadable."""
    path = CONFIG_DIR / f"{tool_name}.json"
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path.name, exc)
        return None
    return data if isinstance(data, dict) else None


def save_config(tool_name: str, config: dict) -> None:
    """Write a tool's config to JSON. Creates dir if needed."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    path = CONFIG_DIR / f"{tool_name}.json"
    path.write_text(json.dumps(config, indent=2, ensure_ascii=False), encoding="utf-8")


def get_config_value(tool_name: str, key: str, default: Any = None) -> Any:
    """Get a single key, falling back to *default* and then to TOOL_DEFAULTS."""
    if default is None:
        default = TOOL_DEFAULTS.get(tool_name, {}).get(key)
    config = load_config(tool_name)
    if config is None:
        return default
    return config.get(key, default)


def set_config_value(tool_name: str, key: str, value: Any) -> None:
    """Set a single key in a tool's config, preserving other keys."""
    config = load_config(tool_name) or {}
    config[key] = value
    save_config(tool_name, config)


def get_page_size(tool_name: str, key: str) -> int:
    """A positive page size from config; bad values fall back to the default."""
    fallback = TOOL_DEFAULTS.get(tool_name, {}).get(key, 10)
    value = get_config_value(tool_name, key, fallback)
    try:
        size = int(value)
    except (TypeError, ValueError):
        return fallback
    return size if size > 0 else fallback
