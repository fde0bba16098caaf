# packmanager/packs/graph.py
from __future__ import annotations

import heapq
import logging
import threading
from collections import OrderedDict, deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from packmanager.core.errors import DependencyCycleError
from packmanager.packs.types import Manifest, PackDefinition

logger = logging.getLogger(__name__)

__all__ = ["PackGraph", "buildPackGraph", "PackGraphCache", "graphForManifest"]



@dataclass(frozen=True, slots=True)
class PackGraph:
    """
    Containment and dependency adjacency for one manifest snapshot.
    
    - containsEdges: pack -> page keys it owns
    - containsPacks: pack -> sub-packs it contains (hierarchy only, not dependencies)
    - dependsEdges: pack -> packs it depends on (self loops and unknown ids removed)
    - roots: packs without dependencies, sorted
    - selfLoops: packs that listed themselves as a dependency
    - missing: pack -> dependency ids that are not in the manifest
    """
    packIds: tuple[str, ...]
    containsEdges: dict[str, tuple[str, ...]]
    containsPacks: dict[str, tuple[str, ...]]
    dependsEdges: dict[str, tuple[str, ...]]
    roots: tuple[str, ...]
    hasCycle: bool
    selfLoops: tuple[str, ...] = ()
    missing: dict[str, tuple[str, ...]] = field(default_factory=dict)
    cycleMembers: tuple[str, ...] = ()
    
    def hasPack(self, packId: str) -> bool:
        return packId in self.dependsEdges
    
    def dependenciesOf(self, packId: str) -> tuple[str, ...]:
        return self.dependsEdges.get(packId, ())
    
    def dependentsOf(self, packId: str) -> tuple[str, ...]:
        """Packs that list `packId` as a direct dependency, in manifest order."""
        return tuple(other for other in self.packIds if packId in self.dependsEdges.get(other, ()))
    
    def pagesOf(self, packId: str) -> tuple[str, ...]:
        return self.containsEdges.get(packId, ())
    
    def topologicalOrder(self) -> list[str]:
        """
        Dependencies first. Ties are broken by pack id so the order is stable.
        Raises DependencyCycleError when the graph has a cycle.
        """
        remaining = {packId: len(self.dependsEdges.get(packId, ())) for packId in self.packIds}
        dependents: dict[str, list[str]] = {packId: [] for packId in self.packIds}
        for packId in self.packIds:
            for dep in self.dependsEdges.get(packId, ()):
                dependents[dep].append(packId)
        
        heap = [packId for packId, count in remaining.items() if count == 0]
        heapq.heapify(heap)
        order: list[str] = []
        while heap:
            packId = heapq.heappop(heap)
            order.append(packId)
            for dependent in dependents[packId]:
                remaining[dependent] -= 1
                if remaining[dependent] == 0:
                    heapq.heappush(heap, dependent)
        
        if len(order) != len(self.packIds):
            leftover = sorted(packId for packId, count in remaining.items() if count > 0)
            raise DependencyCycleError(
                f"Dependency cycle among packs: {', '.join(leftover)}",
                remaining=leftover,
            )
        return order



def _detectCycle(packIds: tuple[str, ...], dependsEdges: dict[str, tuple[str, ...]]) -> tuple[bool, tuple[str, ...]]:
    """
    Kahn's algorithm over the dependency subgraph.
    Returns (hasCycle, packs that never reached in-degree zero).
    """
    inDegree = {packId: 0 for packId in packIds}
    for packId in packIds:
        for dep in dependsEdges.get(packId, ()):
            inDegree[dep] += 1
    
    queue = deque(packId for packId in packIds if inDegree[packId] == 0)
    visited = 0
    while queue:
        packId = queue.popleft()
        visited += 1
        for dep in dependsEdges.get(packId, ()):
            inDegree[dep] -= 1
            if inDegree[dep] == 0:
                queue.append(dep)
    
    if visited == len(packIds):
        return False, ()
    return True, tuple(sorted(packId for packId, degree in inDegree.items() if degree > 0))



def buildPackGraph(packs: Iterable[PackDefinition] | Manifest) -> PackGraph:
    """
    Builds containment/dependency adjacency from normalized pack definitions.
    Pure, no I/O. Duplicate pack ids keep the last definition.
    """
    if isinstance(packs, Manifest):
        packs = packs.packs.values()
    
    byId: dict[str, PackDefinition] = {}
    for pack in packs:
        byId[pack.id] = pack
    packIds = tuple(byId)
    
    containsEdges: dict[str, tuple[str, ...]] = {}
    containsPacks: dict[str, tuple[str, ...]] = {}
    dependsEdges: dict[str, tuple[str, ...]] = {}
    selfLoops: list[str] = []
    missing: dict[str, tuple[str, ...]] = {}
    
    for packId, pack in byId.items():
        containsEdges[packId] = tuple(dict.fromkeys(pack.pages))
        containsPacks[packId] = tuple(child for child in dict.fromkeys(pack.contains) if child in byId and child != packId)
        
        deps: list[str] = []
        unknown: list[str] = []
        for dep in dict.fromkeys(pack.dependsOn):
            if dep == packId:
                selfLoops.append(packId)
                continue
            if dep not in byId:
                unknown.append(dep)
                continue
            deps.append(dep)
        dependsEdges[packId] = tuple(deps)
        if unknown:
            missing[packId] = tuple(unknown)
    
    if selfLoops:
        logger.warning("Dropped self-dependency edges for packs: %s", ", ".join(selfLoops))
    if missing:
        logger.warning("Packs depend on ids missing from the manifest: %s", missing)
    
    hasCycle, cycleMembers = _detectCycle(packIds, dependsEdges)
    roots = tuple(sorted(packId for packId in packIds if not dependsEdges[packId]))
    
    return PackGraph(
        packIds=packIds,
        containsEdges=containsEdges,
        containsPacks=containsPacks,
        dependsEdges=dependsEdges,
        roots=roots,
        hasCycle=hasCycle,
        selfLoops=tuple(selfLoops),
        missing=missing,
        cycleMembers=cycleMembers,
    )



class PackGraphCache:
    """
    Bounded cache of PackGraphs keyed by manifest digest.
    Graphs are immutable, so sharing them across requests is safe.
    """
    def __init__(self, maxSize: int = 32) -> None:
        self._maxSize = max(1, int(maxSize))
        self._graphs: OrderedDict[str, PackGraph] = OrderedDict()
        self._lock = threading.Lock()
    
    def get(self, manifest: Manifest) -> PackGraph:
        digest = manifest.digest()
        with self._lock:
            graph = self._graphs.get(digest)
            if graph is not None:
                self._graphs.move_to_end(digest)
                return graph
        
        graph = buildPackGraph(manifest)
        with self._lock:
            self._graphs[digest] = graph
            self._graphs.move_to_end(digest)
            while len(self._graphs) > self._maxSize:
                self._graphs.popitem(last=False)
        return graph
    
    def clear(self) -> None:
        with self._lock:
            self._graphs.clear()
    
    def __len__(self) -> int:
        return len(self._graphs)



_DEFAULT_CACHE = PackGraphCache()



def graphForManifest(manifest: Manifest) -> PackGraph:
    return _DEFAULT_CACHE.get(manifest)
