from packmanager.packs.graph import buildPackGraph
from packmanager.packs.hierarchy import buildHierarchy
from packmanager.packs.mermaid import buildMermaid, mermaidNodeId
from packmanager.packs.types import normalizeManifest


def _manifest():
    return normalizeManifest({
        "packs": [
            {"id": "suite", "contains": ["core", "extras"], "pages": ["Index"]},
            {"id": "core", "pages": ["Setup", "Usage"]},
            {"id": "extras", "dependsOn": ["core"], "pages": ["Tips"]},
        ],
    })


def test_hierarchy_uses_containment():
    view = buildHierarchy(_manifest())
    assert view["roots"] == ["pack:suite"]
    assert view["packCount"] == 3
    assert view["pageCount"] == 4
    
    suite = view["tree"][0]
    assert suite["id"] == "suite"
    assert [child["id"] for child in suite["children"]] == ["core", "extras", "Index"]
    # core shows up twice: contained by suite and needed by extras
    assert suite["packsBeneath"] == 3
    assert suite["pagesBeneath"] == 6
    assert view["nodes"]["pack:core"]["pagesBeneath"] == 2
    assert view["nodes"]["page:Tips"] == {"type": "page", "id": "page:Tips"}


def test_hierarchy_falls_back_to_dependencies():
    manifest = normalizeManifest({"packs": [{"id": "A", "pages": ["a"]}, {"id": "B", "dependsOn": ["A"], "pages": ["b"]}]})
    view = buildHierarchy(manifest)
    assert view["roots"] == ["pack:A", "pack:B"]
    tree = {node["id"]: node for node in view["tree"]}
    assert [child["id"] for child in tree["B"]["children"]] == ["A", "b"]
    assert tree["B"]["packsBeneath"] == 1
    assert tree["B"]["pagesBeneath"] == 2


def test_hierarchy_survives_cycles():
    manifest = normalizeManifest({"packs": [{"id": "A", "dependsOn": ["B"]}, {"id": "B", "dependsOn": ["A"]}]})
    view = buildHierarchy(manifest)
    tree = {node["id"]: node for node in view["tree"]}
    inner = tree["A"]["children"][0]
    assert inner["id"] == "B"
    assert inner["children"][0] == {"type": "pack", "id": "A", "packsBeneath": 0, "pagesBeneath": 0, "children": []}


def test_mermaid_edges_point_from_dependency():
    graph = buildPackGraph(_manifest())
    text = buildMermaid(graph)
    lines = text.splitlines()
    assert lines[0] == "graph LR"
    assert "    p_core --> p_extras" in lines
    assert '    p_suite["suite"]' in lines


def test_mermaid_highlight_and_ids():
    graph = buildPackGraph(normalizeManifest([{"id": "lab notes"}]))
    text = buildMermaid(graph, highlight={"lab notes"})
    assert mermaidNodeId("lab notes") == "p_lab_notes"
    assert "    class p_lab_notes selected" in text.splitlines()
