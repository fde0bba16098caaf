# packmanager/sessions/store.py
from __future__ import annotations

import logging
import os
import re
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

import json5

from packmanager.app.settings import settings, settingsInt
from packmanager.core.time import nowMs, nowSeconds
from packmanager.sessions.state import SelectionState, SessionKey

logger = logging.getLogger(__name__)

__all__ = ["SessionStore", "InMemorySessionStore", "Json5FileSessionStore", "defaultTtlSeconds"]

_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]")



def defaultTtlSeconds() -> int:
    return settingsInt("session.ttlSeconds", 1800)



@runtime_checkable
class SessionStore(Protocol):
    """Where sessions live between commands. Expiry is the store's business."""
    def get(self, key: SessionKey) -> SelectionState | None: ...
    def save(self, state: SelectionState) -> None: ...
    def clear(self, key: SessionKey) -> None: ...



class InMemorySessionStore:
    """
    Process-local store. The lock protects the dict only; two writers on the
    same key still race and the last save wins. Every save also drops
    sessions that have expired.
    """
    def __init__(self, *, ttlSeconds: int | None = None) -> None:
        self._ttlSeconds = defaultTtlSeconds() if ttlSeconds is None else int(ttlSeconds)
        self._states: dict[SessionKey, tuple[float, SelectionState]] = {}
        self._lock = threading.RLock()
    
    def get(self, key: SessionKey) -> SelectionState | None:
        with self._lock:
            entry = self._states.get(key)
            if entry is None:
                return None
            savedAt, state = entry
            if self._ttlSeconds > 0 and nowSeconds() - savedAt > self._ttlSeconds:
                logger.debug("Session %s expired", key)
                del self._states[key]
                return None
            return state.copy()
    
    def save(self, state: SelectionState) -> None:
        with self._lock:
            self._states[state.key] = (nowSeconds(), state.copy())
            self.purgeExpired()
    
    def clear(self, key: SessionKey) -> None:
        with self._lock:
            self._states.pop(key, None)
    
    def purgeExpired(self) -> int:
        """Drops every expired session. Returns how many were dropped."""
        if self._ttlSeconds <= 0:
            return 0
        now = nowSeconds()
        with self._lock:
            expired = [key for key, (savedAt, _) in self._states.items() if now - savedAt > self._ttlSeconds]
            for key in expired:
                del self._states[key]
        return len(expired)
    
    def __len__(self) -> int:
        with self._lock:
            return len(self._states)



class Json5FileSessionStore:
    """
    One json5 file per session under `rootDir`:
    
    <rootDir>/<userId>/<refId>.json5
    
    Expiry uses the state's own timestamp (wall clock, ms), so sessions
    survive restarts until the TTL runs out.
    """
    def __init__(self, rootDir: Path | str | None = None, *, ttlSeconds: int | None = None) -> None:
        if rootDir is None:
            rootDir = settings("session.storeDir", "~/.packmanager/sessions")
        self.rootDir = Path(os.path.expanduser(str(rootDir)))
        self._ttlSeconds = defaultTtlSeconds() if ttlSeconds is None else int(ttlSeconds)
        self._lock = threading.RLock()
    
    def pathFor(self, key: SessionKey) -> Path:
        userPart = _UNSAFE_NAME_RE.sub("_", key.userId) or "_"
        refPart = _UNSAFE_NAME_RE.sub("_", key.refId) or "_"
        return self.rootDir / userPart / f"{refPart}.json5"
    
    def get(self, key: SessionKey) -> SelectionState | None:
        path = self.pathFor(key)
        with self._lock:
            if not path.exists():
                return None
            try:
                data = json5.loads(path.read_text(encoding="utf-8"))
                state = SelectionState.fromDict(data)
            except (ValueError, KeyError, TypeError) as err:
                logger.warning("Discarding unreadable session file '%s': %s", path, err)
                path.unlink(missing_ok=True)
                return None
            
            if self._ttlSeconds > 0 and nowMs() - state.timestamp > self._ttlSeconds * 1000:
                logger.debug("Session %s expired", key)
                path.unlink(missing_ok=True)
                return None
            return state
    
    def save(self, state: SelectionState) -> None:
        path = self.pathFor(state.key)
        text = json5.dumps(state.toDict(), ensure_ascii=False, indent=2)
        with self._lock:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmpPath = path.with_suffix(".json5.tmp")
            tmpPath.write_text(text, encoding="utf-8")
            os.replace(tmpPath, path)
    
    def clear(self, key: SessionKey) -> None:
        with self._lock:
            self.pathFor(key).unlink(missing_ok=True)
