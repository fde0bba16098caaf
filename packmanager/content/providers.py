# packmanager/content/providers.py
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

import json5
from pydantic import ValidationError

from packmanager.core.errors import InvalidInputError
from packmanager.packs.types import InstalledPack, Manifest, normalizeManifest

logger = logging.getLogger(__name__)

__all__ = [
    "ManifestProvider",
    "InstalledProvider",
    "StaticManifestProvider",
    "StaticInstalledProvider",
    "loadManifestFile",
    "normalizeInstalled",
]



class ManifestProvider(Protocol):
    """Source of already-validated manifests. Fetching and schema checks happen elsewhere."""
    def listPacks(self, source: str, ref: str) -> Manifest:
        ...



class InstalledProvider(Protocol):
    """What the target store currently has installed for a (source, ref)."""
    def listInstalled(self, source: str, ref: str) -> list[InstalledPack]:
        ...



def _refKey(source: str, ref: str) -> tuple[str, str]:
    return (source or "", ref or "")



class StaticManifestProvider:
    """
    In-process manifests keyed by (source, ref).
    A manifest registered with ref "*" answers for every ref of that source.
    """
    def __init__(self, manifests: Mapping[tuple[str, str], Any] | None = None) -> None:
        self._manifests: dict[tuple[str, str], Manifest] = {}
        for (source, ref), raw in (manifests or {}).items():
            self.put(source, ref, raw)
    
    def put(self, source: str, ref: str, raw: Any) -> Manifest:
        manifest = normalizeManifest(raw)
        self._manifests[_refKey(source, ref)] = manifest
        return manifest
    
    def listPacks(self, source: str, ref: str) -> Manifest:
        manifest = self._manifests.get(_refKey(source, ref)) or self._manifests.get(_refKey(source, "*"))
        if manifest is None:
            logger.debug("No manifest for %s@%s, using an empty one", source, ref)
            return Manifest()
        return manifest



class StaticInstalledProvider:
    def __init__(self, installed: Mapping[tuple[str, str], Iterable[Any]] | None = None) -> None:
        self._installed: dict[tuple[str, str], list[InstalledPack]] = {}
        for (source, ref), packs in (installed or {}).items():
            self.put(source, ref, packs)
    
    def put(self, source: str, ref: str, packs: Iterable[Any]) -> list[InstalledPack]:
        normalized = normalizeInstalled(packs)
        self._installed[_refKey(source, ref)] = normalized
        return normalized
    
    def listInstalled(self, source: str, ref: str) -> list[InstalledPack]:
        return list(self._installed.get(_refKey(source, ref), ()))



def normalizeInstalled(packs: Iterable[Any] | Mapping[str, str | None]) -> list[InstalledPack]:
    """Accepts InstalledPack models, {"name", "version"} dicts or a {name: version} mapping."""
    if isinstance(packs, Mapping):
        return [InstalledPack(name=str(name), version=version) for name, version in packs.items()]
    out: list[InstalledPack] = []
    for pack in packs:
        out.append(pack if isinstance(pack, InstalledPack) else InstalledPack.model_validate(pack))
    return out



def loadManifestFile(path: Path | str) -> Manifest:
    """Reads a json5 (or plain JSON) manifest file from disk."""
    filePath = Path(path)
    try:
        raw = json5.loads(filePath.read_text(encoding="utf-8"))
    except ValueError as err:
        raise InvalidInputError(f"Manifest '{filePath}' is not valid json5: {err}", code="manifest_parse") from err
    try:
        return normalizeManifest(raw)
    except (ValidationError, ValueError) as err:
        raise InvalidInputError(f"Manifest '{filePath}' has an unexpected shape: {err}", code="manifest_shape") from err
