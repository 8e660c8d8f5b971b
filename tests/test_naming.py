from hrassess.services.naming import (
    EXTERNAL_TO_INTERNAL,
    INTERNAL_TO_EXTERNAL,
    NamingConvention,
    is_external_alias,
    to_external,
    to_internal,
    translate,
)


def test_tables_are_inverse():
    assert len(EXTERNAL_TO_INTERNAL) == len(INTERNAL_TO_EXTERNAL) == 16
    for external, internal in EXTERNAL_TO_INTERNAL.items():
        assert INTERNAL_TO_EXTERNAL[internal] == external


def test_to_internal_adds_backend_names_and_keeps_originals():
    result = to_internal({"minigame1_enabled": False, "minigame3_rounds": 7, "minimum_passing_score": 80})

    assert result["mg1_enabled"] is False
    assert result["mg3_rounds"] == 7
    assert result["minigame1_enabled"] is False
    assert result["minimum_passing_score"] == 80


def test_to_external_adds_android_names():
    result = to_external({"mg2_speed_hard": 900, "mg5_enabled": True})

    assert result == {
        "mg2_speed_hard": 900,
        "mg5_enabled": True,
        "minigame2_speed_hard": 900,
        "minigame5_enabled": True,
    }


def test_unknown_keys_pass_through_both_ways():
    source = {"something_new": "x", "mg9_enabled": True}
    assert to_internal(source) == source
    assert to_external(source) == source


def test_present_none_values_are_copied():
    assert to_internal({"minigame4_time_hard": None}) == {"minigame4_time_hard": None, "mg4_time_hard": None}


def test_round_trip_is_stable():
    original = {external: index for index, external in enumerate(EXTERNAL_TO_INTERNAL)}
    once = to_internal(original)
    assert to_internal(to_external(once)) == once


def test_input_is_not_mutated():
    source = {"minigame1_enabled": True}
    to_internal(source)
    assert source == {"minigame1_enabled": True}


def test_translate_by_convention():
    internal = {"mg1_enabled": True}
    copy = translate(internal, NamingConvention.INTERNAL)
    assert copy == internal and copy is not internal
    assert translate(internal, NamingConvention.EXTERNAL)["minigame1_enabled"] is True


def test_is_external_alias():
    assert is_external_alias("minigame3_rounds")
    assert not is_external_alias("mg3_rounds")
    assert not is_external_alias("minimum_passing_score")
