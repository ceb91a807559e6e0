import logging
from pathlib import Path
from typing import Any

from acroflow.config import DEFAULT_HOME, HANDLER_NAME, AppConfig, configure_logging, load_config

ENV_NAMES = ("ACROFLOW_HOME", "ACROFLOW_DB", "ACROFLOW_CATALOG", "ACROFLOW_LOG_LEVEL")


def _clear_env(monkeypatch: Any) -> None:
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_environment(monkeypatch: Any) -> None:
    _clear_env(monkeypatch)
    config = load_config()
    assert config.home == Path(DEFAULT_HOME)
    assert config.db_path == Path(DEFAULT_HOME) / "flows.db"
    assert config.catalog_path is None
    assert config.log_level == "WARNING"


def test_environment_overrides(monkeypatch: Any, tmp_path: Path) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("ACROFLOW_HOME", str(tmp_path))
    monkeypatch.setenv("ACROFLOW_CATALOG", str(tmp_path / "poses.json"))
    monkeypatch.setenv("ACROFLOW_LOG_LEVEL", "debug")
    config = load_config()
    assert config.db_path == tmp_path / "flows.db"
    assert config.catalog_path == tmp_path / "poses.json"
    assert config.log_level == "DEBUG"

    monkeypatch.setenv("ACROFLOW_DB", str(tmp_path / "other.db"))
    assert load_config().db_path == tmp_path / "other.db"


def test_blank_variables_use_defaults(monkeypatch: Any) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("ACROFLOW_DB", "")
    monkeypatch.setenv("ACROFLOW_LOG_LEVEL", "")
    config = load_config()
    assert config.db_path == Path(DEFAULT_HOME) / "flows.db"
    assert config.log_level == "WARNING"


def test_unknown_log_level_raises(monkeypatch: Any) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("ACROFLOW_LOG_LEVEL", "chatty")
    try:
        load_config()
        raise AssertionError("Expected ValueError for unknown log level.")
    except ValueError as exc:
        assert "CHATTY" in str(exc)


def test_explicit_values_are_validated() -> None:
    config = AppConfig(home=Path("data"), log_level=" info ")
    assert config.db_path == Path("data") / "flows.db"
    assert config.log_level == "INFO"


def test_configure_logging_adds_handler_once() -> None:
    root = logging.getLogger()
    previous_level = root.level
    try:
        configure_logging("INFO")
        configure_logging("DEBUG")
        named = [handler for handler in root.handlers if handler.get_name() == HANDLER_NAME]
        assert len(named) == 1
        assert root.level == logging.DEBUG
    finally:
        for handler in [handler for handler in root.handlers if handler.get_name() == HANDLER_NAME]:
            root.removeHandler(handler)
        root.setLevel(previous_level)
