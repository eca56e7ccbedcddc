"""
Tests for engine configuration loading.
"""

import logging
import os

import pytest

from candlekeep_stats.config import (
    CONFIG_ENV_VAR,
    STRICT_ENV_VAR,
    ConfigError,
    EngineConfig,
    load_config,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.delenv(STRICT_ENV_VAR, raising=False)
    # Keep load_dotenv away from any .env in the working tree
    monkeypatch.chdir(tmp_path)


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()
        assert config.strict is False
        assert config.unknown_benefit_level == logging.WARNING
        assert config.disabled_benefit_types == []

    def test_level_normalized(self):
        assert EngineConfig(log_level_unknown_benefit="debug").unknown_benefit_level == logging.DEBUG

    def test_unknown_level_rejected(self):
        with pytest.raises(ValueError):
            EngineConfig(log_level_unknown_benefit="LOUD")


class TestLoadConfig:

    def test_no_file(self):
        assert load_config() == EngineConfig()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "stats.yaml"
        path.write_text(
            "strict: true\n"
            "log_level_unknown_benefit: error\n"
            "disabled_benefit_types:\n"
            "  - ac_bonus\n"
        )
        config = load_config(path)
        assert config.strict is True
        assert config.unknown_benefit_level == logging.ERROR
        assert config.disabled_benefit_types == ["ac_bonus"]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == EngineConfig()

    def test_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "env.yaml"
        path.write_text("disabled_benefit_types: [skill_modifier_bonus]\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().disabled_benefit_types == ["skill_modifier_bonus"]

    @pytest.mark.parametrize("value,expected", [("1", True), ("TRUE", True), ("yes", True), ("0", False), ("", False)])
    def test_strict_from_environment(self, monkeypatch, value, expected):
        monkeypatch.setenv(STRICT_ENV_VAR, value)
        assert load_config().strict is expected

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text(f"{STRICT_ENV_VAR}=true\n")
        try:
            assert load_config().strict is True
        finally:
            os.environ.pop(STRICT_ENV_VAR, None)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.yaml")

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- strict\n")
        with pytest.raises(ConfigError, match="must contain a mapping"):
            load_config(path)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("strict: [unclosed\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_invalid_values(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("log_level_unknown_benefit: LOUD\n")
        with pytest.raises(ConfigError, match="Invalid engine config"):
            load_config(path)
