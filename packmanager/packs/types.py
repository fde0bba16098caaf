# packmanager/packs/types.py
from __future__ import annotations
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from packmanager.core.hashing import stableHash

__all__ = ["PageDefinition", "PackDefinition", "Manifest", "InstalledPack", "normalizeManifest"]



class PageDefinition(BaseModel):
    """One page (content unit) as declared by a manifest."""
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    key: str
    file: str | None = None
    defaultPrefix: str | None = Field(
        default=None,
        validation_alias=AliasChoices("defaultPrefix", "default_prefix"),
    )



class PackDefinition(BaseModel):
    """Represents a pack as declared by an already-validated manifest."""
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    id: str
    version: str = "0.0.0"
    description: str | None = None
    pages: tuple[str, ...] = ()
    dependsOn: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("dependsOn", "depends_on"),
    )
    contains: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    prefix: str | None = None

    @property
    def effectivePrefix(self) -> str:
        """Prefix used for default page titles; the pack id unless the manifest sets one."""
        return self.id if self.prefix is None else self.prefix



class InstalledPack(BaseModel):
    """A pack already applied to the target store, as reported by the installed snapshot."""
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str
    version: str | None = None



class Manifest(BaseModel):
    """
    Normalized manifest snapshot for one (source, ref).
    
    Accepts:
      - {"packs": {"A": {...}, "B": {...}}, "pages": {...}}
      - {"packs": [{"id": "A", ...}, ...]}
      - {"manifest": {...}} (one nesting level, as some fetchers wrap it)
      - a bare list of pack definitions
    """
    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    schemaVersion: str | None = Field(
        default=None,
        validation_alias=AliasChoices("schemaVersion", "schema_version"),
    )
    name: str | None = None
    packs: dict[str, PackDefinition] = Field(default_factory=dict)
    pages: dict[str, PageDefinition] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def normalizeShape(cls, data: Any) -> Any:
        if isinstance(data, (list, tuple)):
            data = {"packs": list(data)}
        if not isinstance(data, dict):
            return data
        if "manifest" in data and isinstance(data["manifest"], dict) and "packs" not in data:
            data = data["manifest"]
        
        out = dict(data)
        out["packs"] = _keyedById(data.get("packs"), idField="id")
        out["pages"] = _keyedById(data.get("pages"), idField="key")
        return out

    def pack(self, packId: str) -> PackDefinition | None:
        return self.packs.get(packId)

    def pageDefinition(self, key: str) -> PageDefinition | None:
        return self.pages.get(key)

    def versions(self) -> dict[str, str]:
        return {packId: pack.version for packId, pack in self.packs.items()}

    def digest(self) -> str:
        """Snapshot identity, used to cache graphs built from this manifest."""
        return stableHash(self.model_dump(mode="json"))



def _keyedById(raw: Any, *, idField: str) -> dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        out: dict[str, Any] = {}
        for key, value in raw.items():
            if isinstance(value, dict):
                entry = dict(value)
                entry.setdefault(idField, key)
                out[str(key)] = entry
            else:
                out[str(key)] = value
        return out
    if isinstance(raw, (list, tuple)):
        out = {}
        for entry in raw:
            if isinstance(entry, BaseModel):
                out[str(getattr(entry, idField))] = entry
            elif isinstance(entry, dict) and idField in entry:
                out[str(entry[idField])] = entry
            elif isinstance(entry, str) and idField == "key":
                out[entry] = {"key": entry}
            else:
                raise ValueError(f"Manifest entry without '{idField}': {entry!r}")
        return out
    raise ValueError(f"Expected a mapping or a list, got {type(raw).__name__}")



def normalizeManifest(raw: Any) -> Manifest:
    """Build a Manifest from any accepted shape. Raises pydantic.ValidationError on bad input."""
    if isinstance(raw, Manifest):
        return raw
    return Manifest.model_validate(raw)
