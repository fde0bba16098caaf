import pytest

from packmanager.commands.models import CommandRequest
from packmanager.commands.processor import CommandProcessor
from packmanager.content.lookup import InMemoryTargetContent
from packmanager.content.providers import StaticInstalledProvider, StaticManifestProvider
from packmanager.core.errors import ErrorKind
from packmanager.sessions.state import SessionKey

KEY = SessionKey("alice", "repo@main")

MANIFEST = {
    "packs": [
        {"id": "A", "version": "1.0.0", "pages": ["p1", "p2"]},
        {"id": "B", "version": "1.0.0", "dependsOn": ["A"], "pages": ["b1"]},
        {"id": "C", "version": "2.0.0", "dependsOn": ["B"], "pages": ["c1"]},
    ],
}


def _processor(manifest=None, installed=None, target=None):
    manifests = StaticManifestProvider({("repo", "main"): manifest or MANIFEST})
    installedProvider = StaticInstalledProvider({("repo", "main"): installed or {}})
    return CommandProcessor(
        manifests=manifests,
        installed=installedProvider,
        lookup=target if target is not None else InMemoryTargetContent(),
    )


def run(processor, command, **payload):
    return processor.execute(KEY, {"command": command, "source": "repo", "ref": "main", "payload": payload})


@pytest.fixture()
def processor():
    proc = _processor()
    assert run(proc, "init").ok
    return proc


# ----- init -----

def test_init_returns_full_state():
    proc = _processor()
    response = run(proc, "init")
    assert response.ok
    assert response.diff is None
    packs = response.state["packs"]
    assert list(packs) == ["A", "B", "C"]
    assert packs["A"]["pages"]["p1"] == {
        "name": "p1",
        "defaultTitle": "A/p1",
        "finalTitle": "A/p1",
        "hasConflict": False,
        "conflictType": None,
    }
    assert packs["A"]["action"] == "install"
    assert packs["A"]["selected"] is False
    assert response.hash == response.state["hash"] == proc.store.get(KEY).computeHash()


def test_init_preselects_installed_and_seeds_orphans():
    proc = _processor(installed={"A": "1.0.0", "old": "0.5.0"})
    packs = run(proc, "init").state["packs"]
    assert packs["A"]["selected"] is True
    assert packs["A"]["action"] == "unchanged"
    assert packs["A"]["currentVersion"] == "1.0.0"
    assert packs["old"] == {
        "selected": False,
        "autoSelected": False,
        "autoSelectedReason": None,
        "action": "remove",
        "currentVersion": "0.5.0",
        "targetVersion": None,
        "prefix": "",
        "pages": {},
    }


def test_init_uses_page_default_prefix():
    manifest = {"packs": [{"id": "A", "pages": ["p1", "p2"]}], "pages": {"p2": {"default_prefix": "Help"}}}
    packs = run(_processor(manifest=manifest), "init").state["packs"]
    assert packs["A"]["pages"]["p1"]["defaultTitle"] == "A/p1"
    assert packs["A"]["pages"]["p2"]["defaultTitle"] == "Help/p2"


def test_init_warns_about_graph_problems():
    manifest = {"packs": [{"id": "A", "dependsOn": ["A"]}, {"id": "B", "dependsOn": ["ghost"]}]}
    response = run(_processor(manifest=manifest), "init")
    assert response.ok
    assert "Pack 'A' depends on itself; dependency ignored" in response.warnings
    assert "Pack 'B' depends on unknown packs: ghost" in response.warnings


# ----- select / deselect -----

def test_select_auto_selects_dependencies(processor):
    response = run(processor, "select", packId="B")
    assert response.ok
    diff = response.diff["packs"]
    assert diff["B"]["selected"] is True
    assert diff["A"]["autoSelected"] is True
    assert diff["A"]["autoSelectedReason"] == "Required by B"
    assert "C" not in diff


def test_select_twice_is_same_as_once(processor):
    first = run(processor, "select", packId="C")
    second = run(processor, "select", packId="C")
    assert second.ok
    assert second.diff == {}
    assert second.hash == first.hash


def test_select_unknown_pack(processor):
    response = run(processor, "select", packId="nope")
    assert not response.ok
    assert response.error.kind == ErrorKind.NOT_FOUND
    assert response.error.code == "pack_not_found"


def test_deselect_requires_cascade(processor):
    run(processor, "select", packId="B")
    response = run(processor, "deselect", packId="A")
    assert not response.ok
    assert response.error.kind == ErrorKind.CASCADE_REQUIRED
    assert response.error.details == {"packId": "A", "dependents": ["B"]}
    # Nothing changed
    assert processor.store.get(KEY).packs["B"].selected is True


def test_deselect_with_cascade(processor):
    run(processor, "select", packId="C")
    response = run(processor, "deselect", packId="A", cascade=True)
    assert response.ok
    assert response.cascade == ["B", "C"]
    assert "Cascade deselected: B, C" in response.warnings
    state = processor.store.get(KEY)
    assert state.activeIds() == []


def test_deselect_without_dependents(processor):
    run(processor, "select", packId="A")
    response = run(processor, "deselect", packId="A")
    assert response.ok
    assert response.cascade is None
    assert response.diff == {"packs": {"A": {"selected": False}}}


def test_deselecting_explicit_dependent_prunes_auto_selections(processor):
    run(processor, "select", packId="B")
    response = run(processor, "deselect", packId="B")
    assert response.diff["packs"]["A"] == {"autoSelected": False, "autoSelectedReason": None}


# ----- titles and prefixes -----

def test_setPackPrefix_rewrites_titles(processor):
    response = run(processor, "setPackPrefix", packId="A", prefix="Foo")
    assert response.ok
    diff = response.diff["packs"]["A"]
    assert diff["prefix"] == "Foo"
    assert diff["pages"]["p1"] == {"defaultTitle": "Foo/p1", "finalTitle": "Foo/p1"}
    assert diff["pages"]["p2"] == {"defaultTitle": "Foo/p2", "finalTitle": "Foo/p2"}


def test_empty_prefix_gives_bare_keys(processor):
    run(processor, "setPackPrefix", packId="A", prefix="")
    state = processor.store.get(KEY)
    assert [page.finalTitle for page in state.packs["A"].pages.values()] == ["p1", "p2"]


def test_setPageTitle_and_duplicate_detection(processor):
    run(processor, "select", packId="A")
    response = run(processor, "setPageTitle", packId="A", pageKey="p2", title="A/p1")
    assert response.ok
    pages = processor.store.get(KEY).packs["A"].pages
    assert pages["p2"].finalTitle == "A/p1"
    assert pages["p1"].conflictType == pages["p2"].conflictType == "duplicate_title"


def test_invalid_title_is_flagged(processor):
    run(processor, "select", packId="A")
    run(processor, "setPageTitle", packId="A", pageKey="p1", title="Bad|Title")
    page = processor.store.get(KEY).packs["A"].pages["p1"]
    assert page.hasConflict is True
    assert page.conflictType == "title_invalid"


def test_rename_page_alias_with_snake_case_payload(processor):
    response = processor.execute(KEY, CommandRequest(
        command="rename_page",
        source="repo",
        ref="main",
        payload={"pack_name": "A", "page_name": "p1", "new_title": "Guide"},
    ))
    assert response.ok
    assert response.command == "setPageTitle"
    assert processor.store.get(KEY).packs["A"].pages["p1"].finalTitle == "Guide"


def test_unknown_page(processor):
    response = run(processor, "setPageTitle", packId="A", pageKey="zz", title="x")
    assert response.error.kind == ErrorKind.NOT_FOUND
    assert response.error.code == "page_not_found"


def test_existing_title_conflicts_unless_owned_by_pack():
    target = InMemoryTargetContent()
    target.putPage("A/p1", "external text")
    target.putPage("A/p2", "pack text", packId="A", sourceId="repo")
    proc = _processor(target=target)
    run(proc, "init")
    response = run(proc, "select", packId="A")
    assert "Page 'A/p1' already exists (pack: A, page: p1)" in response.warnings
    pages = proc.store.get(KEY).packs["A"].pages
    assert pages["p1"].conflictType == "title_exists"
    assert pages["p2"].hasConflict is False


def test_conflicts_clear_when_pack_is_deselected(processor):
    run(processor, "select", packId="A")
    run(processor, "setPageTitle", packId="A", pageKey="p1", title="")
    response = run(processor, "deselect", packId="A")
    assert response.diff["packs"]["A"]["pages"]["p1"] == {"hasConflict": False, "conflictType": None}


# ----- refresh / clear -----

def test_refresh_keeps_selection_and_titles():
    proc = _processor()
    run(proc, "init")
    run(proc, "select", packId="B")
    run(proc, "setPageTitle", packId="A", pageKey="p1", title="Custom")
    proc.manifests.put("repo", "main", {
        "packs": [
            {"id": "A", "version": "1.1.0", "pages": ["p1", "p3"]},
            {"id": "B", "version": "1.0.0", "dependsOn": ["A"], "pages": ["b1"]},
            {"id": "D", "version": "0.1.0"},
        ],
    })
    response = run(proc, "refresh")
    packs = response.state["packs"]
    assert list(packs) == ["A", "B", "D"]
    assert packs["B"]["selected"] is True
    assert packs["A"]["autoSelected"] is True
    assert packs["A"]["targetVersion"] == "1.1.0"
    assert packs["A"]["pages"]["p1"]["finalTitle"] == "Custom"
    assert packs["A"]["pages"]["p3"]["finalTitle"] == "A/p3"
    assert packs["D"]["selected"] is False


def test_refresh_picks_up_packs_installed_elsewhere():
    proc = _processor()
    run(proc, "init")
    proc.installed.put("repo", "main", {"A": "1.0.0"})
    packs = run(proc, "refresh").state["packs"]
    assert packs["A"]["selected"] is True
    assert packs["A"]["currentVersion"] == "1.0.0"
    assert packs["A"]["action"] == "unchanged"

    response = run(proc, "apply")
    assert not response.ok
    assert response.error.kind == ErrorKind.NO_OPERATIONS


def test_refresh_keeps_explicit_deselect_of_installed_pack():
    proc = _processor(installed={"A": "1.0.0"})
    run(proc, "init")
    run(proc, "deselect", packId="A")
    packs = run(proc, "refresh").state["packs"]
    assert packs["A"]["selected"] is False
    assert packs["A"]["action"] == "remove"


def test_refresh_without_state_behaves_like_init():
    response = run(_processor(), "refresh")
    assert response.ok
    assert list(response.state["packs"]) == ["A", "B", "C"]


def test_clear_removes_session(processor):
    response = run(processor, "clear")
    assert response.ok
    assert response.state is None and response.hash is None
    assert processor.store.get(KEY) is None


# ----- apply -----

def test_apply_orders_dependencies_first_and_clears(processor):
    run(processor, "select", packId="C")
    response = run(processor, "apply")
    assert response.ok
    assert [(op.action, op.packId) for op in response.operations] == [
        ("install", "A"),
        ("install", "B"),
        ("install", "C"),
    ]
    assert response.operations[0].pages[0].finalTitle == "A/p1"
    assert response.summary.installs == 3
    assert response.summary.totalOperations == 3
    assert response.operationId.startswith("pack_apply_")
    assert processor.store.get(KEY) is None
    
    dumped = response.model_dump(by_alias=True)
    assert dumped["operations"][2]["targetVersion"] == "2.0.0"


def test_apply_removals_come_last_dependents_first():
    proc = _processor(installed={"A": "1.0.0", "B": "0.9.0"})
    run(proc, "init")
    run(proc, "deselect", packId="A", cascade=True)
    response = run(proc, "apply")
    assert [(op.action, op.packId) for op in response.operations] == [("remove", "B"), ("remove", "A")]
    assert response.summary.removes == 2


def test_apply_updates_and_orphan_removal():
    manifest = {"packs": [{"id": "A", "version": "1.2.0"}, {"id": "B", "dependsOn": ["A"]}]}
    proc = _processor(manifest=manifest, installed={"A": "1.1.0", "old": "1.0.0"})
    run(proc, "init")
    response = run(proc, "apply")
    assert [(op.action, op.packId) for op in response.operations] == [("update", "A"), ("remove", "old")]
    assert response.summary.updates == 1


def test_apply_with_nothing_to_do(processor):
    response = run(processor, "apply")
    assert not response.ok
    assert response.error.kind == ErrorKind.NO_OPERATIONS
    assert processor.store.get(KEY) is not None


def test_apply_blocks_major_update():
    proc = _processor(installed={"A": "1.0.0", "B": "1.0.0", "C": "1.0.0"})
    run(proc, "init")
    response = run(proc, "apply")
    assert not response.ok
    assert response.error.kind == ErrorKind.DEPENDENCY_CONFLICT
    conflict = response.error.details["conflicts"][0]
    assert (conflict["packId"], conflict["currentVersion"], conflict["targetVersion"]) == ("C", "1.0.0", "2.0.0")
    assert proc.store.get(KEY) is not None


# ----- request handling -----

def test_commands_need_a_session():
    response = run(_processor(), "select", packId="A")
    assert not response.ok
    assert response.error.kind == ErrorKind.NOT_FOUND
    assert response.error.code == "no_state"


@pytest.mark.parametrize(
    "command, payload",
    [
        ("select", {}),
        ("select", {"packId": ""}),
        ("deselect", {"packId": "A", "cascade": "yes"}),
        ("setPackPrefix", {"packId": "A"}),
        ("setPageTitle", {"packId": "A", "pageKey": "p1", "title": 5}),
        ("init", {"unexpected": True}),
    ],
)
def test_invalid_payloads(processor, command, payload):
    response = run(processor, command, **payload)
    assert not response.ok
    assert response.error.kind == ErrorKind.INVALID_INPUT


def test_unknown_command(processor):
    response = run(processor, "explode")
    assert response.error.kind == ErrorKind.INVALID_INPUT
    assert response.error.code == "unknown_command"


def test_malformed_request(processor):
    response = processor.execute(KEY, {"source": "repo"})
    assert not response.ok
    assert response.error.kind == ErrorKind.INVALID_INPUT


def test_unexpected_errors_propagate(processor, monkeypatch):
    def boom(source, ref):
        raise RuntimeError("provider down")
    monkeypatch.setattr(processor.manifests, "listPacks", boom)
    with pytest.raises(RuntimeError):
        run(processor, "refresh")
