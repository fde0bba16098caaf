# packmanager/packs/hierarchy.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from packmanager.packs.graph import PackGraph, buildPackGraph
from packmanager.packs.types import Manifest

__all__ = ["buildHierarchy"]



@dataclass(slots=True)
class _Frame:
    packId: str
    children: tuple[str, ...]
    index: int = 0
    childNodes: list[dict[str, Any]] = field(default_factory=list)
    packsBeneath: int = 0
    pagesBeneath: int = 0



def _childPacks(graph: PackGraph, packId: str) -> tuple[str, ...]:
    # Explicit containment wins; dependencies are used to nest packs otherwise.
    return graph.containsPacks.get(packId) or graph.dependenciesOf(packId)



def _expand(rootId: str, graph: PackGraph, manifest: Manifest, nodes: dict[str, dict[str, Any]], seenPages: set[str]) -> dict[str, Any]:
    onPath = {rootId}
    stack = [_Frame(rootId, _childPacks(graph, rootId))]
    root: dict[str, Any] = {}
    
    while stack:
        frame = stack[-1]
        if frame.index < len(frame.children):
            childId = frame.children[frame.index]
            frame.index += 1
            if childId in onPath:
                # Cycle back to an ancestor: show it once, do not descend
                frame.childNodes.append({"type": "pack", "id": childId, "packsBeneath": 0, "pagesBeneath": 0, "children": []})
                frame.packsBeneath += 1
                continue
            onPath.add(childId)
            stack.append(_Frame(childId, _childPacks(graph, childId)))
            continue
        
        stack.pop()
        onPath.discard(frame.packId)
        
        pageChildren = [{"type": "page", "id": key} for key in graph.pagesOf(frame.packId)]
        seenPages.update(graph.pagesOf(frame.packId))
        pagesBeneath = frame.pagesBeneath + len(pageChildren)
        node = {
            "type": "pack",
            "id": frame.packId,
            "packsBeneath": frame.packsBeneath,
            "pagesBeneath": pagesBeneath,
            "children": frame.childNodes + pageChildren,
        }
        
        definition = manifest.pack(frame.packId)
        nodes[f"pack:{frame.packId}"] = {
            "type": "pack",
            "id": f"pack:{frame.packId}",
            "packsBeneath": frame.packsBeneath,
            "pagesBeneath": pagesBeneath,
            "description": definition.description if definition else None,
            "version": definition.version if definition else None,
        }
        for page in pageChildren:
            nodes[f"page:{page['id']}"] = {"type": "page", "id": f"page:{page['id']}"}
        
        if stack:
            parent = stack[-1]
            parent.childNodes.append(node)
            parent.packsBeneath += 1 + frame.packsBeneath
            parent.pagesBeneath += pagesBeneath
        else:
            root = node
    
    return root



def buildHierarchy(manifest: Manifest, graph: PackGraph | None = None) -> dict[str, Any]:
    """
    Front-end friendly tree of packs and pages.
    
    Roots are packs no other pack contains. Each pack node lists its sub-packs
    (containment, or dependencies when the pack declares no containment) and
    then its pages. Returns {tree, nodes, roots, packCount, pageCount}.
    """
    graph = graph or buildPackGraph(manifest)
    contained = {child for children in graph.containsPacks.values() for child in children}
    roots = [packId for packId in graph.packIds if packId not in contained]
    
    nodes: dict[str, dict[str, Any]] = {}
    seenPages: set[str] = set()
    tree = [_expand(rootId, graph, manifest, nodes, seenPages) for rootId in roots]
    
    return {
        "tree": tree,
        "nodes": nodes,
        "roots": [f"pack:{rootId}" for rootId in roots],
        "packCount": len(graph.packIds),
        "pageCount": len(seenPages),
    }
