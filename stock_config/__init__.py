"""
stock_config -- declared system settings of the stock ledger.

Setting keys, types and defaults live in ``settings.yaml``.  The runtime
value of a setting is resolved by
``stock_kernel.services.configuration_service.ConfigurationService``;
this package only describes what settings exist.
"""

from stock_config.loader import (
    DEFAULT_SETTINGS_PATH,
    load_setting_definitions,
    load_yaml_file,
    parse_setting,
)
from stock_config.schema import (
    SettingDefinition,
    SettingType,
    format_value,
    parse_bool,
    parse_int,
)

ALLOW_NEGATIVE_STOCK = "ALLOW_NEGATIVE_STOCK"
ALLOW_FORCED_ADJUSTMENTS = "ALLOW_FORCED_ADJUSTMENTS"
MINIMUM_STOCK_THRESHOLD = "MINIMUM_STOCK_THRESHOLD"

__all__ = [
    "ALLOW_NEGATIVE_STOCK",
    "ALLOW_FORCED_ADJUSTMENTS",
    "MINIMUM_STOCK_THRESHOLD",
    "DEFAULT_SETTINGS_PATH",
    "SettingDefinition",
    "SettingType",
    "format_value",
    "load_setting_definitions",
    "load_yaml_file",
    "parse_bool",
    "parse_int",
    "parse_setting",
]
