# packmanager/core/ids.py
from __future__ import annotations

import uuid6

__all__ = ["uuidv7", "operationId"]



def uuidv7(*, prefix: str = "") -> str:
    """Returns a UUIDv7 string (time-ordered), optionally prefixed."""
    return prefix + str(uuid6.uuid7())



def operationId() -> str:
    """Identifier handed to the execution pipeline for one apply batch."""
    return uuidv7(prefix="pack_apply_")
