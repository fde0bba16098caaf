import pytest
from pydantic import ValidationError

from packmanager.packs.types import Manifest, normalizeManifest


def test_mapping_form_fills_ids():
    manifest = normalizeManifest({
        "schema_version": "1.0",
        "packs": {"A": {"version": "1.2.0", "pages": ["p1"]}},
        "pages": {"p1": {"file": "pages/p1.wiki", "default_prefix": "Docs"}},
    })
    assert manifest.schemaVersion == "1.0"
    assert manifest.pack("A").id == "A"
    assert manifest.pack("A").pages == ("p1",)
    assert manifest.pageDefinition("p1").defaultPrefix == "Docs"
    assert manifest.pageDefinition("p1").file == "pages/p1.wiki"


def test_list_form_and_wrapper():
    bare = normalizeManifest([{"id": "A"}, {"id": "B", "depends_on": ["A"]}])
    wrapped = normalizeManifest({"manifest": {"packs": [{"id": "A"}, {"id": "B", "dependsOn": ["A"]}]}})
    assert list(bare.packs) == ["A", "B"]
    assert bare.pack("B").dependsOn == ("A",)
    assert bare.digest() == wrapped.digest()


def test_defaults_and_effective_prefix():
    manifest = normalizeManifest({"packs": [{"id": "A"}, {"id": "B", "prefix": ""}, {"id": "C", "prefix": "Lab"}]})
    assert manifest.pack("A").version == "0.0.0"
    assert manifest.pack("A").effectivePrefix == "A"
    assert manifest.pack("B").effectivePrefix == ""
    assert manifest.pack("C").effectivePrefix == "Lab"
    assert manifest.versions() == {"A": "0.0.0", "B": "0.0.0", "C": "0.0.0"}


def test_page_list_of_strings():
    manifest = normalizeManifest({"packs": [], "pages": ["Main", "Help"]})
    assert set(manifest.pages) == {"Main", "Help"}


def test_entry_without_id_is_rejected():
    with pytest.raises((ValidationError, ValueError)):
        normalizeManifest({"packs": [{"version": "1.0.0"}]})


def test_normalizeManifest_passes_models_through():
    manifest = Manifest()
    assert normalizeManifest(manifest) is manifest
    assert manifest.packs == {}
