import pytest

from hrassess.core.errors import ValidationError
from hrassess.services.settings_schema import (
    SETTINGS_SCHEMA,
    decode_value,
    default_settings,
    encode_value,
    validate_update,
)


def test_defaults():
    defaults = default_settings()
    assert defaults["minimum_passing_score"] == 70
    assert defaults["hard_mode_threshold"] == 85
    assert defaults["mg3_rounds"] == 5
    assert all(defaults[f"mg{i}_enabled"] is True for i in range(1, 6))
    assert set(defaults) == set(SETTINGS_SCHEMA)


@pytest.mark.parametrize("value,expected", [(85, 85), ("85", 85), (85.0, 85), (" 90 ", 90)])
def test_int_coercion(value, expected):
    assert SETTINGS_SCHEMA["minimum_passing_score"].coerce(value) == expected


@pytest.mark.parametrize("value", [True, "abc", 85.5, [85]])
def test_int_rejects(value):
    with pytest.raises(ValueError):
        SETTINGS_SCHEMA["minimum_passing_score"].coerce(value)


def test_range_is_enforced():
    spec = SETTINGS_SCHEMA["mg3_rounds"]
    with pytest.raises(ValueError, match="at least 1"):
        spec.coerce(0)
    with pytest.raises(ValueError, match="at most 20"):
        spec.coerce(21)


def test_bool_coercion():
    spec = SETTINGS_SCHEMA["mg1_enabled"]
    assert spec.coerce(False) is False
    assert spec.coerce("TRUE") is True
    with pytest.raises(ValueError):
        spec.coerce(1)


def test_encode_decode_text_form():
    assert encode_value(True) == "true"
    assert encode_value(85) == "85"
    assert decode_value("mg1_enabled", "false") is False
    assert decode_value("minimum_passing_score", "85") == 85


def test_invalid_stored_value_falls_back_to_default(caplog):
    assert decode_value("mg3_rounds", "lots") == 5
    assert "invalid" in caplog.text


def test_unknown_stored_key_uses_generic_decoding():
    assert decode_value("legacy_flag", "true") is True
    assert decode_value("legacy_ratio", "0.5") == 0.5
    assert decode_value("legacy_label", "hello") == "hello"


def test_validate_update_drops_aliases_and_none():
    accepted = validate_update({"minigame3_rounds": 7, "mg3_rounds": 7, "hard_mode_threshold": None})
    assert accepted == {"mg3_rounds": 7}


def test_validate_update_reports_every_bad_field():
    with pytest.raises(ValidationError) as exc_info:
        validate_update({"minimum_passing_score": "abc", "no_such_setting": 1, "mg1_enabled": True})

    fields = exc_info.value.details["fields"]
    assert set(fields) == {"minimum_passing_score", "no_such_setting"}
    assert fields["no_such_setting"] == "unknown setting"
    assert exc_info.value.status_code == 400
