# packmanager/core/jsonutils.py
from __future__ import annotations

import base64
import json
from collections.abc import Mapping, Iterable
from dataclasses import is_dataclass, asdict
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel

__all__ = ["safeJsonDumps", "stableJsonDumps", "tryJSONify"]



# ------------------------------------------------
#                JSON serialization
# ------------------------------------------------

def safeJsonDumps(obj: object | BaseModel) -> str:
    """
    Serializes an object or pydantic model to a compact JSON string.
    Uses deterministic separators (",", ":") and disallows NaN/infinity.
    UTF-8 characters are kept as-is.
    If direct JSON encoding fails, falls back to tryJSONify (circular/depth-safe) and retries.
    """
    payload: Any
    if isinstance(obj, BaseModel):
        payload = obj.model_dump(by_alias=True, exclude_none=True)
    else:
        payload = obj
    
    try:
        return json.dumps(payload, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    except (TypeError, ValueError):
        safePayload = tryJSONify(payload, _maxDepth=None)
        return json.dumps(safePayload, ensure_ascii=False, allow_nan=False, separators=(",", ":"))



def stableJsonDumps(obj: Any) -> str:
    """
    Canonical JSON used for content hashing.
    Keys are sorted, separators are compact, and non-JSON types are coerced
    through tryJSONify first so the same logical value always yields the same text.
    """
    return json.dumps(
        tryJSONify(obj, _maxDepth=None),
        ensure_ascii=False,
        allow_nan=False,
        sort_keys=True,
        separators=(",", ":"),
    )



# ------------------------------------------------
#              Generic JSON safety
# ------------------------------------------------

def tryJSONify(obj: Any, *, _seen: set[int] | None = None, _depth: int = 0, _maxDepth: int | None = 10) -> Any:
    """
    Attempts to make any object JSON-serializable.
    
    Rules:
      • Basic scalars (None, bool, int, float, str) are preserved.
      • Exceptions → {"type", "message"}.
      • bytes/bytearray/memoryview → base64 {"__b64__":"..."}.
      • date/datetime → ISO8601 string.
      • Enum → its value.
      • pydantic models → model_dump(by_alias=True).
      • Path → string path.
      • sets/tuples/iterables → list.
      • Mappings → dict with str keys.
      • fallback → repr(obj)
    
    Recursion guards:
      • _seen prevents cycles.
      • _maxDepth stops deep recursion; when explicitly set to None, recursion guard is turned off.
    """
    if _seen is None:
        _seen = set()

    # Primitives
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj

    oid = id(obj)
    if oid in _seen:
        return f"<circular_ref {type(obj).__name__}>"
    if isinstance(_maxDepth, int) and _depth > _maxDepth:
        return f"<max_depth_exceeded {type(obj).__name__}>"
    _seen = _seen | {oid}
    
    def _next(value: Any) -> Any:
        return tryJSONify(value, _seen=_seen, _depth=_depth + 1, _maxDepth=_maxDepth)
    
    if isinstance(obj, BaseException):
        return {"type": obj.__class__.__name__, "message": str(obj)}

    if isinstance(obj, (bytes, bytearray, memoryview)):
        return {"__b64__": base64.b64encode(bytes(obj)).decode("ascii")}
    
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()

    if isinstance(obj, Enum):
        return _next(obj.value)
    
    if isinstance(obj, BaseModel):
        return _next(obj.model_dump(by_alias=True))
    
    # Dataclass instance
    if is_dataclass(obj) and not isinstance(obj, type):
        return _next(asdict(obj))

    if isinstance(obj, Path):
        return str(obj)
    
    if isinstance(obj, (set, frozenset)):
        return [_next(value) for value in sorted(obj, key=repr)]
    
    if isinstance(obj, tuple):
        return [_next(value) for value in obj]
    
    if isinstance(obj, Mapping):
        return {str(key): _next(value) for key, value in obj.items()}

    if isinstance(obj, Iterable):
        return [_next(value) for value in obj]
    
    # Last-ditch representation (avoid raising during logging)
    return repr(obj)
