# packmanager/preflight/planner.py
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from packmanager.content.lookup import TargetContentLookup
from packmanager.sessions.state import SelectionState

logger = logging.getLogger(__name__)

__all__ = ["PreflightBucket", "PreflightResult", "PreflightPlanner"]



class PreflightBucket(StrEnum):
    CREATE = "create"
    UPDATE_UNCHANGED = "update_unchanged"
    UPDATE_MODIFIED = "update_modified"
    PACK_PACK_CONFLICT = "pack_pack_conflict"
    EXTERNAL_COLLISION = "external_collision"



@dataclass(slots=True)
class PreflightResult:
    lists: dict[PreflightBucket, list[str]] = field(
        default_factory=lambda: {bucket: [] for bucket in PreflightBucket},
    )
    
    @property
    def counts(self) -> dict[str, int]:
        return {str(bucket): len(titles) for bucket, titles in self.lists.items()}
    
    def bucketOf(self, title: str) -> PreflightBucket | None:
        for bucket, titles in self.lists.items():
            if title in titles:
                return bucket
        return None
    
    def titles(self, bucket: PreflightBucket | str) -> list[str]:
        return list(self.lists[PreflightBucket(bucket)])
    
    @property
    def hasCollisions(self) -> bool:
        return bool(self.lists[PreflightBucket.PACK_PACK_CONFLICT] or self.lists[PreflightBucket.EXTERNAL_COLLISION])
    
    def toDict(self) -> dict[str, Any]:
        return {
            "counts": self.counts,
            "lists": {str(bucket): list(titles) for bucket, titles in self.lists.items()},
        }



class PreflightPlanner:
    """
    Sorts the titles an apply would write into what would happen to each of
    them in the target store:
    
    - absent -> create
    - present, never written by a pack -> external_collision
    - present, written from another source -> pack_pack_conflict
    - present, written from this source -> update_unchanged if the live text
      still hashes to what was written, otherwise update_modified (someone
      edited it by hand and a blind overwrite would lose that)
    """
    def __init__(self, lookup: TargetContentLookup) -> None:
        self.lookup = lookup
    
    def classifyTitle(self, title: str, sourceId: str) -> PreflightBucket:
        if not self.lookup.exists(title):
            return PreflightBucket.CREATE
        provenance = self.lookup.getProvenance(title)
        if provenance is None:
            return PreflightBucket.EXTERNAL_COLLISION
        if provenance.sourceId != sourceId:
            return PreflightBucket.PACK_PACK_CONFLICT
        liveHash = self.lookup.getLiveContentHash(title)
        if liveHash is not None and provenance.contentHash and liveHash != provenance.contentHash:
            return PreflightBucket.UPDATE_MODIFIED
        return PreflightBucket.UPDATE_UNCHANGED
    
    def classify(self, targetTitles: Iterable[str], sourceId: str) -> PreflightResult:
        result = PreflightResult()
        for title in dict.fromkeys(targetTitles):
            result.lists[self.classifyTitle(title, sourceId)].append(title)
        logger.debug("Preflight for %s: %s", sourceId, result.counts)
        return result
    
    def classifyState(self, state: SelectionState, sourceId: str) -> PreflightResult:
        """Preflight over the final titles of every active pack's pages."""
        titles = [
            page.finalTitle
            for pack in state.packs.values() if pack.active
            for page in pack.pages.values()
        ]
        return self.classify(titles, sourceId)
