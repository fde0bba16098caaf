import json5

from packmanager.app.settings import (
    USER_SETTINGS_ENV,
    deepMerge,
    loadSettings,
    settings,
    settingsBool,
    settingsInt,
)


def test_defaults():
    assert settingsInt("conflicts.maxTitleLength") == 255
    assert settingsInt("session.ttlSeconds") == 1800
    assert settings("conflicts.forbiddenCharacters") == "#<>[]|{}"
    assert settingsBool("updates.blockMajorChanges") is True
    assert settings("missing.key", "fallback") == "fallback"


def test_user_file_overrides_defaults(monkeypatch, tmp_path):
    path = tmp_path / "packmanager.json5"
    path.write_text(json5.dumps({"conflicts": {"maxTitleLength": 120}, "updates": {"blockMajorChanges": False}}), encoding="utf-8")
    monkeypatch.setenv(USER_SETTINGS_ENV, str(path))
    loadSettings.cache_clear()
    
    assert settingsInt("conflicts.maxTitleLength") == 120
    assert settingsInt("session.ttlSeconds") == 1800
    assert settingsBool("updates.blockMajorChanges", True) is False


def test_broken_user_file_is_ignored(monkeypatch, tmp_path):
    path = tmp_path / "broken.json5"
    path.write_text("{ session: ", encoding="utf-8")
    monkeypatch.setenv(USER_SETTINGS_ENV, str(path))
    loadSettings.cache_clear()
    assert settingsInt("conflicts.maxTitleLength") == 255


def test_non_integer_setting_falls_back(monkeypatch, tmp_path):
    path = tmp_path / "odd.json5"
    path.write_text("{session: {ttlSeconds: 'long'}}", encoding="utf-8")
    monkeypatch.setenv(USER_SETTINGS_ENV, str(path))
    loadSettings.cache_clear()
    assert settingsInt("session.ttlSeconds", 60) == 60


def test_deepMerge_only_merges_objects():
    left = {"a": {"b": 1, "c": [1, 2]}, "d": 1}
    right = {"a": {"c": [3]}, "e": None}
    assert deepMerge(left, right) == {"a": {"b": 1, "c": [3]}, "d": 1, "e": None}
    assert left == {"a": {"b": 1, "c": [1, 2]}, "d": 1}
