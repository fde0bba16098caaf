import pytest

from packmanager.commands.schemas import COMMAND_ALIASES, PAYLOAD_SCHEMAS, normalizeCommandName, validatePayload
from packmanager.core.errors import InvalidInputError


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("init", "init"),
        ("select_pack", "select"),
        ("set_page_title", "setPageTitle"),
        ("rename_page", "setPageTitle"),
        ("set_pack_prefix", "setPackPrefix"),
        (" apply ", "apply"),
    ],
)
def test_normalizeCommandName(raw, expected):
    assert normalizeCommandName(raw) == expected


def test_every_alias_has_a_schema():
    assert set(COMMAND_ALIASES.values()) == set(PAYLOAD_SCHEMAS)


def test_unknown_command_name():
    with pytest.raises(InvalidInputError) as excinfo:
        normalizeCommandName("launch")
    assert excinfo.value.code == "unknown_command"


def test_defaults_are_filled():
    assert validatePayload("deselect", {"pack_name": "A"}) == {"packId": "A", "cascade": False}


def test_apply_accepts_state_hash():
    assert validatePayload("apply", {"state_hash": "abc"}) == {"stateHash": "abc"}


def test_error_carries_command():
    with pytest.raises(InvalidInputError) as excinfo:
        validatePayload("setPackPrefix", {"packId": "A", "prefix": None})
    assert excinfo.value.code == "invalid_payload"
    assert excinfo.value.details == {"command": "setPackPrefix"}
