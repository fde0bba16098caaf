# packmanager/core/hashing.py
from __future__ import annotations

import hashlib
import re
from typing import Any

from packmanager.core.jsonutils import stableJsonDumps

__all__ = ["normalizeContentText", "sha256Text", "contentHash", "stableHash"]

_LINE_BREAKS_RE = re.compile("\r\n?|\u2028|\u2029")
_TRAILING_BLANKS_RE = re.compile(r"[ \t]+\n")



def normalizeContentText(text: str) -> str:
    """
    Normalizes page text before fingerprinting so that cosmetic differences
    (CRLF vs LF, unicode line separators, trailing blanks) do not count as drift.
    """
    normalized = _LINE_BREAKS_RE.sub("\n", text)
    return _TRAILING_BLANKS_RE.sub("\n", normalized)



def sha256Text(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()



def contentHash(text: str | None) -> str:
    """SHA-256 hex digest of normalized page content. None counts as empty text."""
    return sha256Text(normalizeContentText(text or ""))



def stableHash(value: Any, *, length: int | None = None) -> str:
    """
    Deterministic digest of any JSON-like value.
    Same logical value gives the same digest across processes (sorted keys, no salt).
    """
    digest = sha256Text(stableJsonDumps(value))
    if length is not None and length > 0:
        return digest[:length]
    return digest
