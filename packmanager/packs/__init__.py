# packmanager/packs/__init__.py
from .types import PageDefinition, PackDefinition, Manifest, InstalledPack, normalizeManifest
from .graph import PackGraph, PackGraphCache, buildPackGraph, graphForManifest
from .resolver import (
    ConflictKind,
    DependencyResolver,
    UpdateAction,
    UpdatePath,
    VersionConflict,
)
from .hierarchy import buildHierarchy
from .mermaid import buildMermaid

__all__ = [
    "PageDefinition",
    "PackDefinition",
    "Manifest",
    "InstalledPack",
    "normalizeManifest",
    "PackGraph",
    "PackGraphCache",
    "buildPackGraph",
    "graphForManifest",
    "ConflictKind",
    "DependencyResolver",
    "UpdateAction",
    "UpdatePath",
    "VersionConflict",
    "buildHierarchy",
    "buildMermaid",
]
