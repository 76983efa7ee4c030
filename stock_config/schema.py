"""
Setting definition schema (``stock_config.schema``).

Frozen dataclasses describing the system settings declared in
``settings.yaml``.  Parsing of raw text values lives here so that the YAML
defaults, database rows and environment variables all go through the same
conversion.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

_TRUE_VALUES = frozenset({"true", "1", "yes", "on"})
_FALSE_VALUES = frozenset({"false", "0", "no", "off"})


class SettingType(str, Enum):
    BOOL = "bool"
    INT = "int"
    STRING = "string"


def parse_bool(raw: str | bool) -> bool:
    """
    Parse a boolean setting value.

    Raises:
        ValueError: if the text is not a recognised boolean.
    """
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"Not a boolean setting value: {raw!r}")


def parse_int(raw: str | int) -> int:
    """
    Parse an integer setting value.

    Raises:
        ValueError: if the text is not an integer.
    """
    if isinstance(raw, bool):
        raise ValueError(f"Not an integer setting value: {raw!r}")
    if isinstance(raw, int):
        return raw
    return int(str(raw).strip())


def format_value(value: bool | int | str) -> str:
    """Text form stored in the system_settings table."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class SettingDefinition:
    """One declared system setting."""

    key: str
    type: SettingType
    default: bool | int | str
    description: str = ""

    def parse(self, raw: str | bool | int) -> bool | int | str:
        if self.type is SettingType.BOOL:
            return parse_bool(raw)
        if self.type is SettingType.INT:
            return parse_int(raw)
        return str(raw)

    @property
    def default_text(self) -> str:
        return format_value(self.default)
