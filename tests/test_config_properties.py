"""Property-based tests for configuration models and the YAML loader."""

import os
import tempfile
from pathlib import Path

import pytest
import structlog
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from mtp_catalog.models import AppConfig, DatabaseConfig, SyncConfig
from mtp_catalog.utils.config_loader import ConfigLoader, ConfigurationError

log = structlog.stdlib.get_logger()


@given(st.integers(min_value=0, max_value=10))
def test_max_retries_bounds(max_retries: int):
    """Retry counts between 0 and 10 are accepted."""
    config = SyncConfig(max_retries=max_retries)

    assert 0 <= config.max_retries <= 10


@given(st.integers().filter(lambda x: x < 0 or x > 10))
def test_max_retries_out_of_bounds(max_retries: int):
    """Retry counts outside 0..10 are rejected."""
    log.info("test_max_retries_out_of_bounds", max_retries=max_retries)

    with pytest.raises(ValidationError) as exc_info:
        SyncConfig(max_retries=max_retries)

    assert "max_retries" in str(exc_info.value)


@given(st.floats(max_value=0.0, allow_nan=False))
def test_timeout_must_be_positive(timeout: float):
    with pytest.raises(ValidationError):
        DatabaseConfig(timeout=timeout)


@given(st.text(alphabet=" \t", max_size=5))
def test_blank_database_path_rejected(path: str):
    with pytest.raises(ValidationError) as exc_info:
        DatabaseConfig(path=path)

    assert "database path cannot be empty" in str(exc_info.value)


def test_defaults():
    config = AppConfig()

    assert config.database.path == ":memory:"
    assert config.sync.max_retries == 3
    assert config.logging.json_logs is True


def test_environment_variable_loading():
    """Nested settings are read from MTP_CATALOG_ prefixed variables."""
    log.info("test_environment_variable_loading")

    os.environ["MTP_CATALOG_DATABASE__PATH"] = "/var/lib/mtp/catalog.db"
    os.environ["MTP_CATALOG_SYNC__MAX_RETRIES"] = "5"
    os.environ["MTP_CATALOG_LOGGING__LOG_LEVEL"] = "DEBUG"

    try:
        config = AppConfig()

        assert config.database.path == "/var/lib/mtp/catalog.db"
        assert config.sync.max_retries == 5
        assert config.logging.log_level == "DEBUG"

    finally:
        for key in [
            "MTP_CATALOG_DATABASE__PATH",
            "MTP_CATALOG_SYNC__MAX_RETRIES",
            "MTP_CATALOG_LOGGING__LOG_LEVEL",
        ]:
            os.environ.pop(key, None)


def test_configuration_file_parsing():
    """A YAML file is loaded with ${VAR} substitution."""
    log.info("test_configuration_file_parsing")

    os.environ["CATALOG_DB_DIR"] = "/tmp/mtp"

    try:
        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("""
database:
  path: ${CATALOG_DB_DIR}/catalog.db
  timeout: 30

sync:
  max_retries: 2
  base_delay: 0.1
  max_delay: 1.0

logging:
  log_level: WARNING
  json_logs: false
""")
            temp_config_path = f.name

        config = ConfigLoader().load_config(temp_config_path)

        assert config.database.path == "/tmp/mtp/catalog.db"
        assert config.database.timeout == 30.0
        assert config.sync.max_retries == 2
        assert config.sync.base_delay == 0.1
        assert config.logging.log_level == "WARNING"
        assert config.logging.json_logs is False

    finally:
        Path(temp_config_path).unlink(missing_ok=True)
        os.environ.pop("CATALOG_DB_DIR", None)


def test_missing_environment_variable(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("database:\n  path: ${MTP_CATALOG_TEST_UNSET_VARIABLE}\n")
    os.environ.pop("MTP_CATALOG_TEST_UNSET_VARIABLE", None)

    with pytest.raises(ConfigurationError) as exc_info:
        ConfigLoader().load_config(str(config_file))

    assert "MTP_CATALOG_TEST_UNSET_VARIABLE" in str(exc_info.value)


def test_missing_configuration_file(tmp_path):
    with pytest.raises(ConfigurationError) as exc_info:
        ConfigLoader().load_config(str(tmp_path / "absent.yaml"))

    assert "not found" in str(exc_info.value)


@pytest.mark.parametrize("content", ["", "- just\n- a list\n", "database: [unclosed\n"])
def test_unusable_configuration_file(tmp_path, content: str):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(content)

    with pytest.raises(ConfigurationError):
        ConfigLoader().load_config(str(config_file))


def test_invalid_values_are_reported(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("sync:\n  max_retries: 99\n")

    with pytest.raises(ConfigurationError) as exc_info:
        ConfigLoader().load_config(str(config_file))

    assert "max_retries" in str(exc_info.value)


def test_environment_selects_config_file(tmp_path, monkeypatch):
    (tmp_path / "default.yaml").write_text("database:\n  path: default.db\n")
    (tmp_path / "staging.yaml").write_text("database:\n  path: staging.db\n")
    loader = ConfigLoader(config_dir=tmp_path)

    monkeypatch.setenv("MTP_CATALOG_ENV", "staging")
    assert loader.load_config().database.path == "staging.db"

    monkeypatch.setenv("MTP_CATALOG_ENV", "production")
    assert loader.load_config().database.path == "default.db"


def test_validate_config_warnings():
    loader = ConfigLoader()

    warnings = loader.validate_config(
        AppConfig(sync=SyncConfig(base_delay=5.0, max_delay=1.0))
    )

    assert any(":memory:" in warning for warning in warnings)
    assert any("base_delay" in warning for warning in warnings)

    assert loader.validate_config(AppConfig(database=DatabaseConfig(path="catalog.db"))) == []
