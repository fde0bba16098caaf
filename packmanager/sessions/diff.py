# packmanager/sessions/diff.py
from __future__ import annotations

from typing import Any

from packmanager.sessions.state import PackSelection, PageSelection, SelectionState

__all__ = ["PACK_FIELDS", "PAGE_FIELDS", "computeDiff", "applyDiff", "isEmptyDiff"]

PACK_FIELDS: tuple[str, ...] = (
    "selected",
    "autoSelected",
    "autoSelectedReason",
    "action",
    "currentVersion",
    "targetVersion",
    "prefix",
)
PAGE_FIELDS: tuple[str, ...] = (
    "name",
    "defaultTitle",
    "finalTitle",
    "hasConflict",
    "conflictType",
)



def _diffPages(oldPages: dict[str, Any], newPages: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    changed: dict[str, Any] = {}
    for key, newPage in newPages.items():
        oldPage = oldPages.get(key)
        if oldPage is None:
            changed[key] = newPage
            continue
        fields = {name: newPage[name] for name in PAGE_FIELDS if oldPage.get(name) != newPage.get(name)}
        if fields:
            changed[key] = fields
    removed = [key for key in oldPages if key not in newPages]
    return changed, removed



def computeDiff(old: SelectionState | None, new: SelectionState) -> dict[str, Any]:
    """
    Minimal changes from `old` to `new`, nested pack -> page.
    
    - packs/pages only in `new` are emitted in full
    - for the rest only fields whose value changed are emitted
    - ids only in `old` are listed under "removed" (packs) or "removedPages"
    
    Result shape: {"packs": {...}, "removed": [...]} with either key omitted
    when empty.
    """
    newPacks = {packId: pack.toDict() for packId, pack in new.packs.items()}
    if old is None:
        return {"packs": newPacks}
    oldPacks = {packId: pack.toDict() for packId, pack in old.packs.items()}
    
    changedPacks: dict[str, Any] = {}
    for packId, newPack in newPacks.items():
        oldPack = oldPacks.get(packId)
        if oldPack is None:
            changedPacks[packId] = newPack
            continue
        
        entry: dict[str, Any] = {name: newPack[name] for name in PACK_FIELDS if oldPack.get(name) != newPack.get(name)}
        pages, removedPages = _diffPages(oldPack["pages"], newPack["pages"])
        if pages:
            entry["pages"] = pages
        if removedPages:
            entry["removedPages"] = removedPages
        if entry:
            changedPacks[packId] = entry
    
    out: dict[str, Any] = {}
    if changedPacks:
        out["packs"] = changedPacks
    removed = [packId for packId in oldPacks if packId not in newPacks]
    if removed:
        out["removed"] = removed
    return out



def isEmptyDiff(diff: dict[str, Any]) -> bool:
    return not diff.get("packs") and not diff.get("removed")



def applyDiff(old: SelectionState, diff: dict[str, Any]) -> SelectionState:
    """Overlays a diff from computeDiff onto a copy of `old`."""
    packs = {packId: pack.toDict() for packId, pack in old.packs.items()}
    
    for packId in diff.get("removed", ()):
        packs.pop(packId, None)
    
    for packId, change in (diff.get("packs") or {}).items():
        current = packs.get(packId)
        if current is None:
            packs[packId] = PackSelection.fromDict(change).toDict()
            continue
        for name in PACK_FIELDS:
            if name in change:
                current[name] = change[name]
        for key in change.get("removedPages", ()):
            current["pages"].pop(key, None)
        for key, pageChange in (change.get("pages") or {}).items():
            page = current["pages"].get(key)
            if page is None:
                entry = dict(pageChange)
                entry.setdefault("name", key)
                current["pages"][key] = PageSelection.fromDict(entry).toDict()
                continue
            for name in PAGE_FIELDS:
                if name in pageChange:
                    page[name] = pageChange[name]
    
    return SelectionState(
        refId=old.refId,
        userId=old.userId,
        packs={packId: PackSelection.fromDict(pack) for packId, pack in packs.items()},
        timestamp=old.timestamp,
    )
