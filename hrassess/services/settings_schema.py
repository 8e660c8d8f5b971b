"""
Closed schema of the application settings.

Each known setting has one entry with its type, default and valid range. Values
are stored as text in ``app_settings``; ``decode_value``/``encode_value`` are
the only places that convert between the text form and the typed form.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from hrassess.core.errors import ValidationError
from hrassess.services.naming import MINIGAME_COUNT, is_external_alias

logger = logging.getLogger(__name__)

SettingValue = Union[bool, int, float, str]


@dataclass(frozen=True)
class SettingSpec:
    key: str
    kind: type
    default: Union[bool, int]
    minimum: Optional[int] = None
    maximum: Optional[int] = None

    def coerce(self, value: Any) -> Union[bool, int]:
        """Convert an incoming request value, raising ``ValueError`` when it does not fit."""
        if self.kind is bool:
            if isinstance(value, bool):
                return value
            if isinstance(value, str) and value.strip().lower() in ("true", "false"):
                return value.strip().lower() == "true"
            raise ValueError("must be a boolean")

        if isinstance(value, bool):
            raise ValueError("must be an integer")
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        elif isinstance(value, str):
            try:
                value = int(value.strip())
            except ValueError:
                raise ValueError("must be an integer") from None
        if not isinstance(value, int):
            raise ValueError("must be an integer")
        if self.minimum is not None and value < self.minimum:
            raise ValueError(f"must be at least {self.minimum}")
        if self.maximum is not None and value > self.maximum:
            raise ValueError(f"must be at most {self.maximum}")
        return value


def _specs():
    yield SettingSpec("minimum_passing_score", int, 70, 0, 10000)
    yield SettingSpec("hard_mode_threshold", int, 85, 0, 10000)
    yield SettingSpec("minigame_enabled", bool, True)
    for i in range(1, MINIGAME_COUNT + 1):
        yield SettingSpec(f"mg{i}_enabled", bool, True)
    yield SettingSpec("mg1_speed_normal", int, 2500, 100, 5000)
    yield SettingSpec("mg1_speed_hard", int, 1000, 50, 2000)
    yield SettingSpec("mg2_speed_normal", int, 2500, 100, 5000)
    yield SettingSpec("mg2_speed_hard", int, 1500, 50, 2000)
    yield SettingSpec("mg3_rounds", int, 5, 1, 20)
    yield SettingSpec("mg3_time_normal", int, 3000, 250, 10000)
    yield SettingSpec("mg3_time_hard", int, 2000, 250, 5000)
    yield SettingSpec("mg4_time_normal", int, 3000, 250, 10000)
    yield SettingSpec("mg4_time_hard", int, 2000, 250, 5000)
    yield SettingSpec("mg5_time_normal", int, 3000, 250, 10000)
    yield SettingSpec("mg5_time_hard", int, 2000, 250, 5000)


SETTINGS_SCHEMA: Dict[str, SettingSpec] = {spec.key: spec for spec in _specs()}


def default_settings() -> Dict[str, SettingValue]:
    return {key: spec.default for key, spec in SETTINGS_SCHEMA.items()}


def _generic_decode(text: str) -> SettingValue:
    if text == "true":
        return True
    if text == "false":
        return False
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def decode_value(key: str, text: str) -> SettingValue:
    """Decode a stored value; unknown keys get the generic bool/number/string coercion."""
    spec = SETTINGS_SCHEMA.get(key)
    if spec is None:
        return _generic_decode(text)
    try:
        return spec.coerce(_generic_decode(text))
    except ValueError as exc:
        logger.warning("Stored setting %s=%r is invalid (%s), using default", key, text, exc)
        return spec.default


def encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def validate_update(internal: Mapping[str, Any]) -> Dict[str, Union[bool, int]]:
    """Check an update already translated to internal names.

    Known Android aliases are dropped since their value was copied under the
    internal key. Unknown keys and bad values are all reported in one error.
    """
    accepted: Dict[str, Union[bool, int]] = {}
    errors: Dict[str, str] = {}
    for key, value in internal.items():
        if value is None or is_external_alias(key):
            continue
        spec = SETTINGS_SCHEMA.get(key)
        if spec is None:
            errors[key] = "unknown setting"
            continue
        try:
            accepted[key] = spec.coerce(value)
        except ValueError as exc:
            errors[key] = str(exc)
    if errors:
        raise ValidationError("Validation failed", details={"fields": errors})
    return accepted
