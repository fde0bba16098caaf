import sys
import pytest

from packmanager.app.settings import loadSettings, USER_SETTINGS_ENV



def pytest_configure(config: pytest.Config) -> None:
    if sys.flags.optimize:
        raise RuntimeError("Assertions are disabled (optimize > 0)")



@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Every test runs on built-in defaults, never on the developer's settings file."""
    monkeypatch.setenv(USER_SETTINGS_ENV, str(tmp_path / "no-such-settings.json5"))
    loadSettings.cache_clear()
    yield
    loadSettings.cache_clear()
