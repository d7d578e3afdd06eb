"""Tests for configuration helpers."""

import logging

from config import Config


def test_connection_params_drop_unset_values(monkeypatch):
    monkeypatch.setattr(Config, "SNOWFLAKE_ACCOUNT", "acme-xy123")
    monkeypatch.setattr(Config, "SNOWFLAKE_USER", "etl")
    monkeypatch.setattr(Config, "SNOWFLAKE_PASSWORD", None)
    monkeypatch.setattr(Config, "SNOWFLAKE_ROLE", None)

    params = Config.get_connection_params(schema="RAW", warehouse="")

    assert params["account"] == "acme-xy123"
    assert params["schema"] == "RAW"
    assert "password" not in params
    assert "role" not in params
    assert "warehouse" not in params


def test_valid_defaults_have_no_issues(monkeypatch):
    monkeypatch.setattr(Config, "SNOWFLAKE_LOGIN_TIMEOUT", 60)
    monkeypatch.setattr(Config, "SEMI_STRUCTURED_TYPES", ("VARIANT",))
    monkeypatch.setattr(Config, "DEFAULT_COLUMN_CASE", "uppercase cols")
    monkeypatch.setattr(Config, "DEFAULT_COLUMN_TYPE", "match datatypes")
    monkeypatch.setattr(Config, "LOG_LEVEL", "INFO")
    assert Config.validate_config() == []


def test_validate_config_reports_issues(monkeypatch):
    monkeypatch.setattr(Config, "SNOWFLAKE_LOGIN_TIMEOUT", 0)
    monkeypatch.setattr(Config, "SEMI_STRUCTURED_TYPES", ())
    monkeypatch.setattr(Config, "DEFAULT_COLUMN_CASE", "lowercase")
    monkeypatch.setattr(Config, "DEFAULT_COLUMN_TYPE", "text")
    monkeypatch.setattr(Config, "LOG_LEVEL", "CHATTY")

    issues = Config.validate_config()

    assert len(issues) == 5
    assert any("SNOWFLAKE_LOGIN_TIMEOUT" in issue for issue in issues)
    assert any("DEFAULT_COLUMN_CASE" in issue for issue in issues)


def test_summary_hides_credentials(monkeypatch):
    monkeypatch.setattr(Config, "SNOWFLAKE_PASSWORD", "hunter2")
    summary = Config.get_config_summary()

    assert "hunter2" not in summary.values()
    assert "password" not in summary
    assert "validation_issues" in summary


def test_log_level_falls_back_to_info(monkeypatch):
    monkeypatch.setattr(Config, "LOG_LEVEL", "DEBUG")
    assert Config.get_log_level() == logging.DEBUG
    monkeypatch.setattr(Config, "LOG_LEVEL", "CHATTY")
    assert Config.get_log_level() == logging.INFO
