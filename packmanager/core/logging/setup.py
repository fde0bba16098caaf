# packmanager/core/logging/setup.py
from __future__ import annotations
import logging
import logging.handlers
from pathlib import Path

from packmanager.app.settings import settings, settingsBool, settingsInt
from .formatters import DevFormatter, JsonFormatter, RedactingFormatter

__all__ = [
    "configureLogging",
    "getLogger",
]



def configureLogging(*, logFile: str | Path | None = None, withFile: bool = True) -> None:
    """
    Initiate the global logging configuration.

    Dev:
      - Console pretty logs (DEBUG)
      - JSON file log (DEBUG)
    
    Prod:
      - Console INFO
      - JSON file logs INFO with rotation
    
    Both outputs go through credential redaction.
    """
    devMode = settingsBool("debug.devModeEnabled", True)
    rootLevel = logging.DEBUG if devMode else logging.INFO

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(rootLevel)

    consoleHandler = logging.StreamHandler()
    consoleHandler.setLevel(rootLevel)
    consoleHandler.setFormatter(RedactingFormatter(DevFormatter()))
    root.addHandler(consoleHandler)

    if withFile:
        fileHandler = logging.handlers.RotatingFileHandler(
            str(logFile or settings("logging.file", "packmanager.log")),
            maxBytes=settingsInt("logging.maxBytes", 10 * 1024 * 1024),
            backupCount=settingsInt("logging.backupCount", 5),
            encoding="utf-8"
        )
        fileHandler.setLevel(rootLevel)
        fileHandler.setFormatter(RedactingFormatter(JsonFormatter()))
        root.addHandler(fileHandler)



def getLogger(name: str, side: str = "") -> logging.Logger:
    side = str(side).strip()
    name = str(name).strip()
    return logging.getLogger(f"{side}.{name}" if side else name)
