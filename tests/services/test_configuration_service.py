"""
ConfigurationService tests.

Tests cover:
- Lookup order: database row, environment variable, declared default
- Invalid stored values fall through to the next source
- set_setting upsert and type validation
- initialize_defaults
"""

import pytest
from sqlalchemy import select

from stock_config import (
    ALLOW_FORCED_ADJUSTMENTS,
    ALLOW_NEGATIVE_STOCK,
    MINIMUM_STOCK_THRESHOLD,
)
from stock_kernel.models.system_setting import SystemSetting
from stock_kernel.services.configuration_service import ConfigurationService


class TestLookupOrder:

    def test_declared_defaults(self, configuration):
        assert configuration.allow_negative_stock() is False
        assert configuration.allow_forced_adjustments() is False
        assert configuration.minimum_stock_threshold() == 10

    def test_environment_overrides_default(self, configuration, environ):
        environ[MINIMUM_STOCK_THRESHOLD] = "25"
        assert configuration.minimum_stock_threshold() == 25

    def test_database_overrides_environment(self, session, configuration, environ):
        environ[ALLOW_FORCED_ADJUSTMENTS] = "true"
        configuration.set_setting(ALLOW_FORCED_ADJUSTMENTS, False)

        assert configuration.allow_forced_adjustments() is False

    def test_invalid_database_value_falls_through(
        self, session, configuration, environ, captured_logs
    ):
        session.add(SystemSetting(key=MINIMUM_STOCK_THRESHOLD, value="NaN"))
        session.flush()
        environ[MINIMUM_STOCK_THRESHOLD] = "7"

        assert configuration.minimum_stock_threshold() == 7

        warning = next(r for r in captured_logs() if r["message"] == "setting_value_invalid")
        assert warning["source"] == "database"
        assert warning["raw_value"] == "NaN"

    def test_invalid_environment_value_uses_default(self, configuration, environ):
        environ[ALLOW_NEGATIVE_STOCK] = "perhaps"
        assert configuration.allow_negative_stock() is False

    def test_explicit_default_for_undeclared_key(self, configuration):
        assert configuration.get_int("MAX_ITEMS_PER_DELIVERY", 3) == 3

    def test_undeclared_key_without_default(self, configuration):
        with pytest.raises(KeyError):
            configuration.get_bool("UNKNOWN_FLAG")

    def test_os_environ_by_default(self, session, monkeypatch):
        monkeypatch.setenv(MINIMUM_STOCK_THRESHOLD, "4")
        assert ConfigurationService(session).minimum_stock_threshold() == 4


class TestSetSetting:

    def test_insert_then_update(self, session, configuration):
        configuration.set_setting(MINIMUM_STOCK_THRESHOLD, 5)
        configuration.set_setting(MINIMUM_STOCK_THRESHOLD, "8", description="Raised")

        rows = session.execute(
            select(SystemSetting).where(SystemSetting.key == MINIMUM_STOCK_THRESHOLD)
        ).scalars().all()
        assert len(rows) == 1
        assert rows[0].value == "8"
        assert rows[0].description == "Raised"
        assert configuration.minimum_stock_threshold() == 8

    def test_declared_description_used_on_insert(self, session, configuration):
        row = configuration.set_setting(ALLOW_NEGATIVE_STOCK, True)
        assert row.value == "true"
        assert row.description

    def test_type_validated(self, configuration):
        with pytest.raises(ValueError):
            configuration.set_setting(ALLOW_NEGATIVE_STOCK, "sometimes")

    def test_undeclared_key_stored_as_text(self, configuration):
        row = configuration.set_setting("WAREHOUSE_LABEL", "Central")
        assert row.value == "Central"


class TestInitializeDefaults:

    def test_inserts_missing_rows_only(self, session, configuration):
        configuration.set_setting(ALLOW_NEGATIVE_STOCK, True)

        created = configuration.initialize_defaults()

        assert sorted(created) == sorted([ALLOW_FORCED_ADJUSTMENTS, MINIMUM_STOCK_THRESHOLD])
        assert configuration.allow_negative_stock() is True
        assert configuration.initialize_defaults() == []

        stored = dict(session.execute(select(SystemSetting.key, SystemSetting.value)).all())
        assert stored[MINIMUM_STOCK_THRESHOLD] == "10"
        assert stored[ALLOW_FORCED_ADJUSTMENTS] == "false"
