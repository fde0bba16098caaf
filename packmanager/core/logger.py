# packmanager/core/logger.py
from __future__ import annotations
from .logging import (
    configureLogging,
    getLogger,
    setLogContext,
    clearLogContext,
    getLogContext,
)

__all__ = [
    "configureLogging",
    "getLogger",
    "setLogContext",
    "clearLogContext",
    "getLogContext",
]
