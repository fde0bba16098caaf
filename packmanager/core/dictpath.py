# packmanager/core/dictpath.py
from __future__ import annotations
from typing import Any
from collections.abc import Mapping

__all__ = ["splitPath", "getByPath", "hasPath"]



def splitPath(path: str) -> list[str]:
    """
    Splits a dotted settings path. Backslash escapes the next character,
    so "conflicts.forbidden\\.chars" addresses the key "forbidden.chars".
    
    Raises ValueError on empty paths, empty segments or a dangling escape.
    """
    if not isinstance(path, str) or not path:
        raise ValueError("Path must be a non-empty string")
    
    parts: list[str] = []
    curr: list[str] = []
    esc = False
    for ch in path:
        if esc:
            curr.append(ch)
            esc = False
            continue
        if ch == "\\":
            esc = True
            continue
        if ch == ".":
            parts.append("".join(curr))
            curr = []
            continue
        curr.append(ch)
    if esc:
        raise ValueError("Path ends with a dangling escape (trailing backslash)")
    parts.append("".join(curr))
    
    if any(part == "" for part in parts):
        raise ValueError(f"Path '{path}' contains empty segment(s)")
    return parts



def getByPath(obj: Any, path: str, default: Any | None = None) -> Any:
    """
    Returns the value at `path` inside nested mappings, or `default`
    when any hop is missing. Invalid paths count as missing.
    """
    try:
        parts = splitPath(path)
    except ValueError:
        return default
    
    current: Any = obj
    for part in parts:
        if isinstance(current, Mapping) and part in current:
            current = current[part]
            continue
        return default
    return current



def hasPath(obj: Any, path: str) -> bool:
    marker = object()
    return getByPath(obj, path, marker) is not marker
