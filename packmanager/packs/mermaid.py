# packmanager/packs/mermaid.py
from __future__ import annotations

import re

from packmanager.packs.graph import PackGraph

__all__ = ["mermaidNodeId", "buildMermaid"]

_UNSAFE_ID_RE = re.compile(r"[^A-Za-z0-9_]")



def mermaidNodeId(packId: str) -> str:
    """Mermaid node ids may not contain spaces or punctuation."""
    return "p_" + _UNSAFE_ID_RE.sub("_", packId)



def buildMermaid(graph: PackGraph, *, direction: str = "LR", highlight: set[str] | None = None) -> str:
    """
    Mermaid flowchart of the dependency graph. An edge points from a
    dependency to the pack that needs it. Packs in `highlight` get the
    "selected" class.
    """
    lines = [f"graph {direction}"]
    for packId in graph.packIds:
        label = packId.replace('"', "'")
        lines.append(f'    {mermaidNodeId(packId)}["{label}"]')
    for packId in graph.packIds:
        for dep in graph.dependenciesOf(packId):
            lines.append(f"    {mermaidNodeId(dep)} --> {mermaidNodeId(packId)}")
    if highlight:
        lines.append("    classDef selected fill:#d4edda,stroke:#28a745")
        for packId in graph.packIds:
            if packId in highlight:
                lines.append(f"    class {mermaidNodeId(packId)} selected")
    return "\n".join(lines)
