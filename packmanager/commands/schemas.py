# packmanager/commands/schemas.py
from __future__ import annotations
from typing import Any, Callable, cast

import fastjsonschema

from packmanager.core.errors import InvalidInputError

__all__ = [
    "COMMAND_ALIASES",
    "PAYLOAD_SCHEMAS",
    "normalizeCommandName",
    "normalizePayload",
    "validatePayload",
]

# Canonical command names, plus snake_case and legacy spellings
COMMAND_ALIASES: dict[str, str] = {
    "init": "init",
    "select": "select",
    "select_pack": "select",
    "selectPack": "select",
    "deselect": "deselect",
    "deselect_pack": "deselect",
    "deselectPack": "deselect",
    "setPageTitle": "setPageTitle",
    "set_page_title": "setPageTitle",
    "rename_page": "setPageTitle",
    "renamePage": "setPageTitle",
    "setPackPrefix": "setPackPrefix",
    "set_pack_prefix": "setPackPrefix",
    "refresh": "refresh",
    "clear": "clear",
    "apply": "apply",
}

# snake_case payload keys accepted for compatibility
_PAYLOAD_KEY_ALIASES: dict[str, str] = {
    "pack_id": "packId",
    "pack_name": "packId",
    "packName": "packId",
    "page_key": "pageKey",
    "page_name": "pageKey",
    "pageName": "pageKey",
    "new_title": "title",
    "newTitle": "title",
    "final_title": "title",
    "state_hash": "stateHash",
}

_NON_EMPTY_STRING = {"type": "string", "minLength": 1}

_EMPTY_PAYLOAD: dict[str, Any] = {
    "type": "object",
    "properties": {"stateHash": {"type": "string"}},
    "additionalProperties": False,
}

PAYLOAD_SCHEMAS: dict[str, dict[str, Any]] = {
    "init": _EMPTY_PAYLOAD,
    "refresh": _EMPTY_PAYLOAD,
    "clear": _EMPTY_PAYLOAD,
    "apply": _EMPTY_PAYLOAD,
    "select": {
        "type": "object",
        "properties": {"packId": _NON_EMPTY_STRING},
        "required": ["packId"],
        "additionalProperties": False,
    },
    "deselect": {
        "type": "object",
        "properties": {
            "packId": _NON_EMPTY_STRING,
            "cascade": {"type": "boolean", "default": False},
        },
        "required": ["packId"],
        "additionalProperties": False,
    },
    "setPageTitle": {
        "type": "object",
        "properties": {
            "packId": _NON_EMPTY_STRING,
            "pageKey": _NON_EMPTY_STRING,
            "title": {"type": "string"},
        },
        "required": ["packId", "pageKey", "title"],
        "additionalProperties": False,
    },
    "setPackPrefix": {
        "type": "object",
        "properties": {
            "packId": _NON_EMPTY_STRING,
            "prefix": {"type": "string"},
        },
        "required": ["packId", "prefix"],
        "additionalProperties": False,
    },
}

# fastjsonschema.compile returns an untyped callable
_VALIDATORS: dict[str, Callable[[Any], Any]] = {
    name: cast(Callable[[Any], Any], fastjsonschema.compile(schema))
    for name, schema in PAYLOAD_SCHEMAS.items()
}



def normalizeCommandName(command: str) -> str:
    name = COMMAND_ALIASES.get((command or "").strip())
    if name is None:
        raise InvalidInputError(f"Unknown command: {command!r}", code="unknown_command")
    return name



def normalizePayload(payload: dict[str, Any] | None) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key, value in (payload or {}).items():
        out[_PAYLOAD_KEY_ALIASES.get(key, key)] = value
    return out



def validatePayload(command: str, payload: dict[str, Any] | None) -> dict[str, Any]:
    """
    Validates a payload for a canonical command name and returns it with
    aliases resolved and schema defaults filled in.
    """
    validator = _VALIDATORS.get(command)
    if validator is None:
        raise InvalidInputError(f"Unknown command: {command!r}", code="unknown_command")
    normalized = normalizePayload(payload)
    try:
        return validator(normalized)
    except fastjsonschema.JsonSchemaException as err:
        raise InvalidInputError(
            f"Invalid payload for '{command}': {err.message}",
            code="invalid_payload",
            details={"command": command},
        ) from err
