"""
Key translation between the Android (external) and backend (internal)
setting names.

The Android app spells minigame settings out (``minigame3_rounds``) while the
backend and web console use the short form (``mg3_rounds``). Translation is a
shallow copy: mapped keys are duplicated under the other spelling and every
other key passes through untouched, so an unknown key survives both ways.
"""
import enum
from typing import Any, Dict, Mapping

MINIGAME_COUNT = 5


class NamingConvention(str, enum.Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


def _build_external_to_internal() -> Dict[str, str]:
    table = {f"minigame{i}_enabled": f"mg{i}_enabled" for i in range(1, MINIGAME_COUNT + 1)}
    table.update({
        "minigame1_speed_normal": "mg1_speed_normal",
        "minigame1_speed_hard": "mg1_speed_hard",
        "minigame2_speed_normal": "mg2_speed_normal",
        "minigame2_speed_hard": "mg2_speed_hard",
        "minigame3_rounds": "mg3_rounds",
        "minigame3_time_normal": "mg3_time_normal",
        "minigame3_time_hard": "mg3_time_hard",
        "minigame4_time_normal": "mg4_time_normal",
        "minigame4_time_hard": "mg4_time_hard",
        "minigame5_time_normal": "mg5_time_normal",
        "minigame5_time_hard": "mg5_time_hard",
    })
    return table


EXTERNAL_TO_INTERNAL: Dict[str, str] = _build_external_to_internal()
INTERNAL_TO_EXTERNAL: Dict[str, str] = {v: k for k, v in EXTERNAL_TO_INTERNAL.items()}


def _copy_mapped(source: Mapping[str, Any], table: Mapping[str, str]) -> Dict[str, Any]:
    result = dict(source)
    for key, value in source.items():
        target = table.get(key)
        if target is not None:
            result[target] = value
    return result


def to_internal(settings: Mapping[str, Any]) -> Dict[str, Any]:
    """Add backend spellings for every Android key present in ``settings``."""
    return _copy_mapped(settings, EXTERNAL_TO_INTERNAL)


def to_external(settings: Mapping[str, Any]) -> Dict[str, Any]:
    """Add Android spellings for every backend key present in ``settings``."""
    return _copy_mapped(settings, INTERNAL_TO_EXTERNAL)


def translate(settings: Mapping[str, Any], convention: NamingConvention) -> Dict[str, Any]:
    if convention == NamingConvention.EXTERNAL:
        return to_external(settings)
    return dict(settings)


def is_external_alias(key: str) -> bool:
    return key in EXTERNAL_TO_INTERNAL
