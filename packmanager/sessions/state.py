# packmanager/sessions/state.py
from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from packmanager.core.hashing import stableHash
from packmanager.core.time import nowMs
from packmanager.semver.semver import compareVersions

__all__ = [
    "SessionKey",
    "PackAction",
    "ConflictType",
    "PageSelection",
    "PackSelection",
    "SelectionState",
    "deriveAction",
    "pageTitle",
    "HASH_LENGTH",
]

# Fixed so the same state hashes the same in every process
HASH_LENGTH = 12



@dataclass(frozen=True, slots=True)
class SessionKey:
    """One session per operator per content ref."""
    userId: str
    refId: str
    
    def __str__(self) -> str:
        return f"{self.userId}@{self.refId}"



class PackAction(StrEnum):
    INSTALL = "install"
    UPDATE = "update"
    REMOVE = "remove"
    UNCHANGED = "unchanged"



class ConflictType(StrEnum):
    TITLE_EXISTS = "title_exists"
    DUPLICATE_TITLE = "duplicate_title"
    TITLE_INVALID = "title_invalid"



def pageTitle(prefix: str | None, key: str) -> str:
    """Default title of a page under a prefix; the bare key when there is no prefix."""
    return f"{prefix}/{key}" if prefix else key



@dataclass(slots=True)
class PageSelection:
    name: str
    defaultTitle: str
    finalTitle: str
    hasConflict: bool = False
    conflictType: ConflictType | None = None
    
    def setConflict(self, conflictType: ConflictType | None) -> None:
        self.conflictType = conflictType
        self.hasConflict = conflictType is not None
    
    def toDict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "defaultTitle": self.defaultTitle,
            "finalTitle": self.finalTitle,
            "hasConflict": self.hasConflict,
            "conflictType": None if self.conflictType is None else str(self.conflictType),
        }
    
    @classmethod
    def fromDict(cls, data: Mapping[str, Any]) -> PageSelection:
        conflictType = data.get("conflictType")
        return cls(
            name=str(data["name"]),
            defaultTitle=str(data.get("defaultTitle", data["name"])),
            finalTitle=str(data.get("finalTitle", data.get("defaultTitle", data["name"]))),
            hasConflict=bool(data.get("hasConflict", False)),
            conflictType=None if conflictType is None else ConflictType(conflictType),
        )



@dataclass(slots=True)
class PackSelection:
    selected: bool = False
    autoSelected: bool = False
    autoSelectedReason: str | None = None
    action: PackAction = PackAction.INSTALL
    currentVersion: str | None = None
    targetVersion: str | None = None
    prefix: str = ""
    pages: dict[str, PageSelection] = field(default_factory=dict)
    
    @property
    def active(self) -> bool:
        return self.selected or self.autoSelected
    
    @property
    def installed(self) -> bool:
        return self.currentVersion is not None
    
    def markSelected(self) -> None:
        self.selected = True
        self.autoSelected = False
        self.autoSelectedReason = None
    
    def markAutoSelected(self, reason: str) -> None:
        self.selected = False
        self.autoSelected = True
        self.autoSelectedReason = reason
    
    def clearSelection(self) -> None:
        self.selected = False
        self.autoSelected = False
        self.autoSelectedReason = None
    
    def toDict(self) -> dict[str, Any]:
        return {
            "selected": self.selected,
            "autoSelected": self.autoSelected,
            "autoSelectedReason": self.autoSelectedReason,
            "action": str(self.action),
            "currentVersion": self.currentVersion,
            "targetVersion": self.targetVersion,
            "prefix": self.prefix,
            "pages": {key: page.toDict() for key, page in self.pages.items()},
        }
    
    @classmethod
    def fromDict(cls, data: Mapping[str, Any]) -> PackSelection:
        rawPages = data.get("pages") or {}
        pages = {}
        for key, page in rawPages.items():
            entry = dict(page)
            entry.setdefault("name", key)
            pages[str(key)] = PageSelection.fromDict(entry)
        return cls(
            selected=bool(data.get("selected", False)),
            autoSelected=bool(data.get("autoSelected", False)),
            autoSelectedReason=data.get("autoSelectedReason"),
            action=PackAction(data.get("action", PackAction.INSTALL)),
            currentVersion=data.get("currentVersion"),
            targetVersion=data.get("targetVersion"),
            prefix=str(data.get("prefix") or ""),
            pages=pages,
        )



@dataclass(slots=True)
class SelectionState:
    """
    The operator's working selection for one (userId, refId).
    
    `packs` keeps manifest order; orphaned installed packs follow the manifest
    packs. `timestamp` is refreshed on every mutation and never hashed.
    """
    refId: str
    userId: str
    packs: dict[str, PackSelection] = field(default_factory=dict)
    timestamp: int = field(default_factory=nowMs)
    
    @property
    def key(self) -> SessionKey:
        return SessionKey(self.userId, self.refId)
    
    @property
    def hash(self) -> str:
        return self.computeHash()
    
    def pack(self, packId: str) -> PackSelection | None:
        return self.packs.get(packId)
    
    def selectedIds(self) -> list[str]:
        return [packId for packId, pack in self.packs.items() if pack.selected]
    
    def autoSelectedIds(self) -> list[str]:
        return [packId for packId, pack in self.packs.items() if pack.autoSelected]
    
    def activeIds(self) -> list[str]:
        return [packId for packId, pack in self.packs.items() if pack.active]
    
    def installedVersions(self) -> dict[str, str | None]:
        return {packId: pack.currentVersion for packId, pack in self.packs.items() if pack.installed}
    
    def touch(self) -> None:
        self.timestamp = nowMs()
    
    def copy(self) -> SelectionState:
        return copy.deepcopy(self)
    
    # ----- Serialization -----
    
    def hashPayload(self) -> dict[str, Any]:
        return {
            "refId": self.refId,
            "userId": self.userId,
            "packs": {packId: pack.toDict() for packId, pack in self.packs.items()},
        }
    
    def computeHash(self, length: int = HASH_LENGTH) -> str:
        """
        Content hash over refId, userId and packs (canonical JSON, SHA-256).
        Two states with the same content hash identically in any process.
        """
        return stableHash(self.hashPayload(), length=length)
    
    def toDict(self) -> dict[str, Any]:
        out = self.hashPayload()
        out["timestamp"] = self.timestamp
        out["hash"] = self.computeHash()
        return out
    
    @classmethod
    def fromDict(cls, data: Mapping[str, Any]) -> SelectionState:
        return cls(
            refId=str(data["refId"]),
            userId=str(data["userId"]),
            packs={str(packId): PackSelection.fromDict(pack) for packId, pack in (data.get("packs") or {}).items()},
            timestamp=int(data.get("timestamp") or nowMs()),
        )



def deriveAction(
    pack: PackSelection,
    *,
    inManifest: bool = True,
) -> PackAction:
    """
    What applying the session would do to this pack:
    
    - never installed -> install
    - installed and active -> update when the versions differ, else unchanged
    - installed and inactive -> remove
    - installed but gone from the manifest -> remove unless explicitly kept
    """
    if not pack.installed:
        return PackAction.INSTALL
    if not inManifest:
        return PackAction.UNCHANGED if pack.selected else PackAction.REMOVE
    if not pack.active:
        return PackAction.REMOVE
    if pack.targetVersion is None or compareVersions(pack.currentVersion, pack.targetVersion) == 0:
        return PackAction.UNCHANGED
    return PackAction.UPDATE
