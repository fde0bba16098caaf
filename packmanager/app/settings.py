# packmanager/app/settings.py
from __future__ import annotations
import json5, os
from pydantic import JsonValue
from pathlib import Path
from typing import Any, cast
from functools import lru_cache

from packmanager.core.dictpath import getByPath

import logging
logger = logging.getLogger(__name__)

__all__ = [
    "SETTINGS", "USER_SETTINGS_ENV", "userSettingsPath", "loadUserSettings",
    "loadSettings", "deepMerge", "settings", "settingsBool", "settingsInt",
]


USER_SETTINGS_ENV = "PACKMANAGER_SETTINGS"

SETTINGS: JsonValue = {
    "__source": "PACKMANAGER_DEFAULTS",
    "session": {
        # Owned by the store; the core never checks expiry itself
        "ttlSeconds": 1800,
        "storeDir": "~/.packmanager/sessions",
    },
    "conflicts": {
        "maxTitleLength": 255,
        "forbiddenCharacters": "#<>[]|{}",
    },
    "updates": {
        "blockMajorChanges": True,
    },
    "logging": {
        "file": "packmanager.log",
        "maxBytes": 10 * 1024 * 1024,
        "backupCount": 5,
    },
    "debug": {
        "devModeEnabled": True,
    },
}



def userSettingsPath() -> Path:
    override = os.environ.get(USER_SETTINGS_ENV)
    if override:
        return Path(os.path.expanduser(override))
    return Path(os.path.expanduser("~/.packmanager/packmanager.json5"))



def loadUserSettings() -> JsonValue:
    filePath = userSettingsPath()
    if filePath.exists():
        try:
            return json5.loads(filePath.read_text(encoding="utf-8"))
        except ValueError as err:
            logger.error("Failed to parse '%s': %s", filePath, err)
    return {}



@lru_cache(maxsize=1)
def loadSettings() -> JsonValue:
    return deepMerge(SETTINGS, loadUserSettings())



def deepMerge(first: JsonValue, second: JsonValue) -> JsonValue:
    """
    Returns a new JsonValue where keys from `second` override/extend `first`.
    Only merges recursively when BOTH sides are JSON objects (dicts).
    For all other JSON types (lists, strings, numbers, booleans, null),
    the right-hand value `second` replaces `first`.
    """
    if isinstance(first, dict) and isinstance(second, dict):
        out: dict[str, JsonValue] = {}
        for key, value in first.items():
            out[key] = cast(JsonValue, value)
        for key, value in second.items():
            if key in out:
                out[key] = deepMerge(out[key], cast(JsonValue, value))
            else:
                out[key] = cast(JsonValue, value)
        return cast(JsonValue, out)
    
    return cast(JsonValue, second)

# ---------- Ergonomic accessors over merged settings ----------

def settings(path: str, default: Any = None) -> Any:
    """Returns value at `path` from merged settings, or `default` if missing."""
    val = getByPath(loadSettings(), path)
    return default if val is None else val



def settingsBool(path: str, default: bool = False) -> bool:
    """Returns bool value at `path` or `default` if missing."""
    val = getByPath(loadSettings(), path)
    if isinstance(val, bool):
        return val
    if val is None:
        return default
    return bool(val)



def settingsInt(path: str, default: int = 0) -> int:
    val = getByPath(loadSettings(), path)
    if val is None or isinstance(val, bool):
        return default
    try:
        return int(val)
    except (TypeError, ValueError):
        logger.warning("Setting '%s' is not an integer (%r), using %d", path, val, default)
        return default
