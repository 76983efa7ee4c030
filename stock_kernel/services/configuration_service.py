"""
ConfigurationService -- runtime values of the system settings.

Responsibility:
    Resolves the settings declared in ``stock_config/settings.yaml``:

        1. ``system_settings`` row with the same key
        2. environment variable with the same name
        3. the declared default

    and writes settings back (``set_setting``, ``initialize_defaults``).

Architecture position:
    Kernel > Services -- flush-only collaborator.  Injected into the ledger,
    adjustment and inventory services; there is no global instance.

Failure modes:
    - Database errors propagate; the service never falls back to the
      environment because the database failed.
    - A stored or environment value that does not parse is skipped with a
      warning and the next source is used.
    - KeyError for a key that is neither declared nor given a default.
"""

import os
from collections.abc import Mapping

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_config import (
    ALLOW_FORCED_ADJUSTMENTS,
    ALLOW_NEGATIVE_STOCK,
    MINIMUM_STOCK_THRESHOLD,
    SettingDefinition,
    SettingType,
    format_value,
    load_setting_definitions,
    parse_bool,
    parse_int,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.system_setting import SystemSetting
from stock_kernel.services.base import BaseService

logger = get_logger("services.configuration")

_MISSING = object()


class ConfigurationService(BaseService):
    """
    Database-backed settings with environment and YAML fallbacks.

    Args:
        session: SQLAlchemy session for database operations.
        environ: Environment mapping (defaults to ``os.environ``).
        definitions: Declared settings (defaults to the packaged YAML).
    """

    def __init__(
        self,
        session: Session,
        environ: Mapping[str, str] | None = None,
        definitions: Mapping[str, SettingDefinition] | None = None,
    ):
        super().__init__(session)
        self._environ = os.environ if environ is None else environ
        self._definitions = (
            dict(definitions) if definitions is not None else load_setting_definitions()
        )

    @property
    def definitions(self) -> dict[str, SettingDefinition]:
        return dict(self._definitions)

    def _stored_value(self, key: str) -> str | None:
        row = self.session.execute(
            select(SystemSetting).where(SystemSetting.key == key)
        ).scalar_one_or_none()
        return row.value if row is not None else None

    def _resolve(self, key: str, parser, default):
        for source, raw in (
            ("database", self._stored_value(key)),
            ("environment", self._environ.get(key)),
        ):
            if raw is None:
                continue
            try:
                return parser(raw)
            except ValueError:
                logger.warning(
                    "setting_value_invalid",
                    extra={"setting_key": key, "source": source, "raw_value": raw},
                )

        if default is not _MISSING:
            return default
        definition = self._definitions.get(key)
        if definition is None:
            raise KeyError(f"Unknown setting: {key}")
        return definition.default

    def get_bool(self, key: str, default: bool | object = _MISSING) -> bool:
        return self._resolve(key, parse_bool, default)

    def get_int(self, key: str, default: int | object = _MISSING) -> int:
        return self._resolve(key, parse_int, default)

    def allow_negative_stock(self) -> bool:
        return self.get_bool(ALLOW_NEGATIVE_STOCK)

    def allow_forced_adjustments(self) -> bool:
        return self.get_bool(ALLOW_FORCED_ADJUSTMENTS)

    def minimum_stock_threshold(self) -> int:
        return self.get_int(MINIMUM_STOCK_THRESHOLD)

    def set_setting(
        self,
        key: str,
        value: bool | int | str,
        description: str | None = None,
    ) -> SystemSetting:
        """
        Create or update a setting row.

        Declared settings are validated against their type before writing.

        Raises:
            ValueError: if the value does not match the declared type.
        """
        definition = self._definitions.get(key)
        if definition is not None and definition.type is not SettingType.STRING:
            value = definition.parse(value)
        text = format_value(value)

        row = self.session.execute(
            select(SystemSetting).where(SystemSetting.key == key)
        ).scalar_one_or_none()

        if row is None:
            if description is None and definition is not None:
                description = definition.description
            row = SystemSetting(key=key, value=text, description=description)
            self.session.add(row)
        else:
            row.value = text
            if description is not None:
                row.description = description

        self.session.flush()
        logger.info("setting_updated", extra={"setting_key": key, "value": text})
        return row

    def initialize_defaults(self) -> list[str]:
        """
        Insert a row for every declared setting that has none.

        Returns:
            Keys of the rows created.
        """
        existing = set(self.session.execute(select(SystemSetting.key)).scalars())
        created: list[str] = []
        for key, definition in self._definitions.items():
            if key in existing:
                continue
            self.session.add(
                SystemSetting(
                    key=key,
                    value=definition.default_text,
                    description=definition.description,
                )
            )
            created.append(key)

        if created:
            self.session.flush()
            logger.info("setting_defaults_initialized", extra={"keys": created})
        return created
