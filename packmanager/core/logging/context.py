# packmanager/core/logging/context.py
from __future__ import annotations
import contextvars

# All log context lives here. Filled by the CommandProcessor per command.
_logContextVar: contextvars.ContextVar[dict[str, object] | None] = contextvars.ContextVar("packmanager.logctx", default=None)

def setLogContext(**kvs):
    """Set or update per-log context values (userId, refId, command, etc.)."""
    current = dict(_logContextVar.get() or {}) # use copy
    for key, value in kvs.items():
        if value is not None:
            current[key] = value
    _logContextVar.set(current)

def clearLogContext():
    """Clear context after a command is fully handled."""
    _logContextVar.set(None)

def getLogContext():
    """Return current context dict or None."""
    return _logContextVar.get()
