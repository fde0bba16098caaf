# packmanager/packs/resolver.py
from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from packmanager.packs.graph import PackGraph
from packmanager.semver.semver import compareVersions, isMajorChange

logger = logging.getLogger(__name__)

__all__ = [
    "ConflictKind",
    "VersionConflict",
    "UpdateAction",
    "UpdatePath",
    "DependencyResolver",
]



class ConflictKind(StrEnum):
    MAJOR_VERSION_CHANGE = "major_version_change"
    DEPENDENT_NOT_UPDATED = "dependent_not_updated"
    DEPENDENCY_UPDATE_REQUIRED = "dependency_update_required"



@dataclass(frozen=True, slots=True)
class VersionConflict:
    """
    One version finding. `blocking` conflicts stop an apply;
    the others are reported as warnings.
    
    `related` holds the dependents (for dependent_not_updated) or the
    requiring pack (for dependency_update_required).
    """
    kind: ConflictKind
    packId: str
    currentVersion: str | None
    targetVersion: str | None
    blocking: bool
    message: str
    related: tuple[str, ...] = ()
    
    def toDict(self) -> dict[str, Any]:
        return {
            "kind": str(self.kind),
            "packId": self.packId,
            "currentVersion": self.currentVersion,
            "targetVersion": self.targetVersion,
            "blocking": self.blocking,
            "related": list(self.related),
            "message": self.message,
        }



class UpdateAction(StrEnum):
    UPDATE = "update"
    CURRENT = "current"
    DOWNGRADE = "downgrade"
    ORPHANED = "orphaned"
    UNKNOWN = "unknown"



@dataclass(frozen=True, slots=True)
class UpdatePath:
    packId: str
    current: str | None
    available: str | None
    action: UpdateAction
    message: str | None = None



@dataclass
class DependencyResolver:
    """
    Closure, removal and version checks over a PackGraph.
    Stateless apart from configuration; every method is pure.
    """
    blockMajorChanges: bool = True
    _reasonTemplate: str = field(default="Required by {packId}", repr=False)
    
    # ----- Selection closure -----
    
    def resolveAutoSelections(
        self,
        selectedIds: Iterable[str],
        graph: PackGraph,
        installedIds: Iterable[str] = (),
    ) -> dict[str, str]:
        """
        Breadth-first walk over dependency edges seeded at the explicit selection.
        
        A dependency is auto-selected only when it is neither explicitly selected
        nor already installed. The walk continues through auto-selected packs so
        transitive requirements are captured. Seeds are visited in sorted order,
        which makes the recorded reason ("Required by <pack>") independent of the
        order in which the operator selected things.
        
        Returns {packId: reason}.
        """
        explicit = set(selectedIds)
        installed = set(installedIds)
        autoSelected: dict[str, str] = {}
        visited: set[str] = set()
        queue = deque(sorted(explicit))
        
        while queue:
            packId = queue.popleft()
            if packId in visited:
                continue
            visited.add(packId)
            
            for dep in graph.dependenciesOf(packId):
                if dep in explicit or dep in installed:
                    continue
                if dep not in autoSelected:
                    autoSelected[dep] = self._reasonTemplate.format(packId=packId)
                    queue.append(dep)
        
        return autoSelected
    
    def closure(self, selectedIds: Iterable[str], graph: PackGraph) -> set[str]:
        """Selection plus every transitive dependency."""
        seeds = set(selectedIds)
        return seeds | set(self.resolveAutoSelections(seeds, graph))
    
    # ----- Removal -----
    
    def validateRemoval(
        self,
        removeIds: Iterable[str],
        remainingSelectedIds: Iterable[str],
        graph: PackGraph,
    ) -> dict[str, list[str]]:
        """
        For each pack proposed for removal, list the remaining selected packs that
        depend on it directly. A non-empty result blocks the removal.
        """
        removing = list(dict.fromkeys(removeIds))
        removingSet = set(removing)
        remaining = [packId for packId in dict.fromkeys(remainingSelectedIds) if packId not in removingSet]
        
        conflicts: dict[str, list[str]] = {}
        for packId in removing:
            dependents = [other for other in remaining if packId in graph.dependenciesOf(other)]
            if dependents:
                conflicts[packId] = dependents
        return conflicts
    
    def collectDependents(
        self,
        packId: str,
        activeIds: Iterable[str],
        graph: PackGraph,
    ) -> list[str]:
        """
        Every active pack that depends on `packId`, directly or transitively,
        in breadth-first discovery order. `packId` itself is never included.
        """
        active = list(dict.fromkeys(activeIds))
        found: list[str] = []
        seen = {packId}
        queue = deque([packId])
        while queue:
            current = queue.popleft()
            for other in active:
                if other in seen:
                    continue
                if current in graph.dependenciesOf(other):
                    seen.add(other)
                    found.append(other)
                    queue.append(other)
        return found
    
    # ----- Versions -----
    
    def checkUpdates(
        self,
        updates: Mapping[str, tuple[str | None, str | None]],
        graph: PackGraph,
        installedVersions: Mapping[str, str | None],
    ) -> list[VersionConflict]:
        """
        Checks a batch of pack updates {packId: (currentVersion, targetVersion)}.
        
        - A major-version change is a `major_version_change` conflict, blocking
          unless the resolver was configured with blockMajorChanges=False.
        - An updated pack that installed packs depend on, where those dependents
          are not part of the same batch, gives a non-blocking
          `dependent_not_updated` warning.
        """
        conflicts: list[VersionConflict] = []
        for packId, (current, target) in updates.items():
            if isMajorChange(current, target):
                conflicts.append(VersionConflict(
                    kind=ConflictKind.MAJOR_VERSION_CHANGE,
                    packId=packId,
                    currentVersion=current,
                    targetVersion=target,
                    blocking=self.blockMajorChanges,
                    message=f"{packId} crosses a major version ({current} -> {target})",
                ))
            
            stale = [
                dependent for dependent in graph.dependentsOf(packId)
                if dependent in installedVersions and dependent not in updates
            ]
            if stale:
                conflicts.append(VersionConflict(
                    kind=ConflictKind.DEPENDENT_NOT_UPDATED,
                    packId=packId,
                    currentVersion=current,
                    targetVersion=target,
                    blocking=False,
                    related=tuple(stale),
                    message=(
                        f"{packId} will be updated from {current} to {target} "
                        f"but installed dependents are not: {', '.join(stale)}"
                    ),
                ))
        return conflicts
    
    def computeUpdatePaths(
        self,
        manifestVersions: Mapping[str, str | None],
        installedVersions: Mapping[str, str | None],
    ) -> dict[str, UpdatePath]:
        """Compares every installed pack with the manifest's version of it."""
        paths: dict[str, UpdatePath] = {}
        for packId, current in installedVersions.items():
            if packId not in manifestVersions:
                paths[packId] = UpdatePath(packId, current, None, UpdateAction.ORPHANED, "Pack no longer exists in manifest")
                continue
            available = manifestVersions[packId]
            if available is None:
                paths[packId] = UpdatePath(packId, current, None, UpdateAction.UNKNOWN, "Manifest version missing")
                continue
            comparison = compareVersions(current, available)
            if comparison < 0:
                paths[packId] = UpdatePath(packId, current, available, UpdateAction.UPDATE)
            elif comparison > 0:
                paths[packId] = UpdatePath(
                    packId, current, available, UpdateAction.DOWNGRADE,
                    "Installed version is newer than manifest",
                )
            else:
                paths[packId] = UpdatePath(packId, current, available, UpdateAction.CURRENT)
        return paths
    
    def detectVersionConflicts(
        self,
        selectedIds: Iterable[str],
        graph: PackGraph,
        manifestVersions: Mapping[str, str | None],
        installedVersions: Mapping[str, str | None],
    ) -> list[VersionConflict]:
        """
        Flags selected packs whose installed dependencies have a newer version in
        the manifest (the dependency will be pulled forward with them).
        """
        conflicts: list[VersionConflict] = []
        for packId in dict.fromkeys(selectedIds):
            for dep in graph.dependenciesOf(packId):
                if dep not in installedVersions:
                    continue
                current = installedVersions[dep]
                required = manifestVersions.get(dep)
                if required is None or compareVersions(current, required) >= 0:
                    continue
                conflicts.append(VersionConflict(
                    kind=ConflictKind.DEPENDENCY_UPDATE_REQUIRED,
                    packId=dep,
                    currentVersion=current,
                    targetVersion=required,
                    blocking=False,
                    related=(packId,),
                    message=f"{dep} will be updated from {current} to {required} (required by {packId})",
                ))
        return conflicts
