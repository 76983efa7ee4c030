"""
Setting definition loader (``stock_config.loader``).

Responsibility
--------------
Loads ``settings.yaml`` and parses it into frozen ``SettingDefinition``
instances.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Unknown type or unparsable default  -> ``ValueError``.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import SettingDefinition, SettingType

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_setting(data: dict[str, Any]) -> SettingDefinition:
    """
    Parse a ``SettingDefinition`` from a dict.

    Raises:
        KeyError: if ``key`` or ``default`` is missing.
        ValueError: if the type is unknown or the default does not parse.
    """
    setting_type = SettingType(data.get("type", SettingType.STRING.value))
    definition = SettingDefinition(
        key=data["key"],
        type=setting_type,
        default=data["default"],
        description=data.get("description", ""),
    )
    # Defaults go through the same parser as stored values
    return replace(definition, default=definition.parse(definition.default))


def load_setting_definitions(
    path: Path | None = None,
) -> dict[str, SettingDefinition]:
    """
    Load all setting definitions, keyed by setting key.

    Raises:
        ValueError: if a key is declared twice.
    """
    data = load_yaml_file(path or DEFAULT_SETTINGS_PATH)
    definitions: dict[str, SettingDefinition] = {}
    for raw in data.get("settings", []):
        definition = parse_setting(raw)
        if definition.key in definitions:
            raise ValueError(f"Duplicate setting key: {definition.key}")
        definitions[definition.key] = definition
    return definitions
