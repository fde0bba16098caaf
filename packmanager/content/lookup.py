# packmanager/content/lookup.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from packmanager.core.hashing import contentHash

__all__ = ["Provenance", "TargetContentLookup", "InMemoryTargetContent"]



@dataclass(frozen=True, slots=True)
class Provenance:
    """Which pack/source last wrote a page, and the hash of what it wrote."""
    packId: str
    sourceId: str
    contentHash: str



class TargetContentLookup(Protocol):
    def exists(self, title: str) -> bool: ...
    def getProvenance(self, title: str) -> Provenance | None: ...
    def getLiveContentHash(self, title: str) -> str | None: ...



class InMemoryTargetContent:
    """
    Dict-backed target store, mostly for tests and dry runs.
    Live text is kept as-is; hashes are taken over normalized text.
    """
    def __init__(self) -> None:
        self._texts: dict[str, str] = {}
        self._provenance: dict[str, Provenance] = {}
    
    def putPage(
        self,
        title: str,
        text: str,
        *,
        packId: str | None = None,
        sourceId: str | None = None,
        installedText: str | None = None,
    ) -> None:
        """
        Stores a page. With packId/sourceId the page is recorded as written by
        that pack; `installedText` is what the pack wrote (defaults to `text`,
        so pass something else to simulate a local edit).
        """
        self._texts[title] = text
        if packId is not None and sourceId is not None:
            written = text if installedText is None else installedText
            self._provenance[title] = Provenance(packId, sourceId, contentHash(written))
        else:
            self._provenance.pop(title, None)
    
    def removePage(self, title: str) -> None:
        self._texts.pop(title, None)
        self._provenance.pop(title, None)
    
    def exists(self, title: str) -> bool:
        return title in self._texts
    
    def getProvenance(self, title: str) -> Provenance | None:
        return self._provenance.get(title)
    
    def getLiveContentHash(self, title: str) -> str | None:
        text = self._texts.get(title)
        return None if text is None else contentHash(text)
    
    @classmethod
    def fromMapping(cls, pages: Mapping[str, Any]) -> InMemoryTargetContent:
        """
        {title: text} or {title: {"text", "packId", "sourceId", "installedText"}}.
        """
        target = cls()
        for title, entry in pages.items():
            if isinstance(entry, Mapping):
                target.putPage(
                    title,
                    str(entry.get("text", "")),
                    packId=entry.get("packId"),
                    sourceId=entry.get("sourceId"),
                    installedText=entry.get("installedText"),
                )
            else:
                target.putPage(title, str(entry))
        return target
