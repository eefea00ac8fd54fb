"""Tests for configuration loading and logging setup."""

import logging
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from care_forms.config import EngineConfig, get_config_home, load_config, write_config
from care_forms.logging_setup import configure_logging


@pytest.fixture
def config_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point CARE_FORMS_HOME at a temporary directory with no overrides."""
    for key in (
        "CARE_FORMS_BASE_URL",
        "CARE_FORMS_BATCH_PATH",
        "CARE_FORMS_TIMEOUT",
        "CARE_FORMS_REGISTRY",
        "CARE_FORMS_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("CARE_FORMS_HOME", str(tmp_path))
    return tmp_path


class TestLoadConfig:
    """Tests for load_config."""

    def test_defaults(self, config_home: Path) -> None:
        """Without a file or environment, defaults apply."""
        config = load_config()

        assert config == EngineConfig()
        assert config.batch_url == "http://localhost:9000/api/v1/batch_requests/"

    def test_config_home(self, config_home: Path) -> None:
        """CARE_FORMS_HOME selects the config directory."""
        assert get_config_home() == config_home

    def test_file_values(self, config_home: Path) -> None:
        """Values in config.yaml are applied."""
        (config_home / "config.yaml").write_text(
            yaml.dump({"base_url": "https://care.example.org", "timeout_seconds": 10})
        )

        config = load_config()

        assert config.base_url == "https://care.example.org"
        assert config.timeout_seconds == 10

    def test_env_overrides_file(self, config_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables take precedence over the file."""
        (config_home / "config.yaml").write_text(yaml.dump({"base_url": "https://file.example.org"}))
        monkeypatch.setenv("CARE_FORMS_BASE_URL", "https://env.example.org")
        monkeypatch.setenv("CARE_FORMS_LOG_LEVEL", "debug")

        config = load_config()

        assert config.base_url == "https://env.example.org"
        assert config.log_level == "DEBUG"

    def test_invalid_timeout(self, config_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Non-positive timeouts are rejected."""
        monkeypatch.setenv("CARE_FORMS_TIMEOUT", "0")

        with pytest.raises(ValidationError):
            load_config()

    def test_invalid_log_level(self) -> None:
        """Unknown log levels are rejected."""
        with pytest.raises(ValidationError):
            EngineConfig(log_level="LOUD")

    def test_non_mapping_file(self, tmp_path: Path) -> None:
        """A config file must hold a mapping."""
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    def test_write_and_reload(self, config_home: Path) -> None:
        """A written config loads back unchanged."""
        config = EngineConfig(base_url="https://care.example.org", registry_path=Path("/srv/registry"))

        path = write_config(config)

        assert path == config_home / "config.yaml"
        assert load_config() == config


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_keeps_existing_handlers(self) -> None:
        """An already configured root logger is left alone."""
        root = logging.getLogger()
        handler = logging.NullHandler()
        root.addHandler(handler)
        try:
            before = list(root.handlers)
            configure_logging("DEBUG")
            assert root.handlers == before
        finally:
            root.removeHandler(handler)
