"""Tests for the YAML config loader and settings resolution."""

from datetime import timedelta

import pytest

from remindq.config.config_loader import ConfigLoader, get_config_loader, init_config_loader
from remindq.config.settings import Settings, load_settings
from remindq.errors import ConfigError
from remindq.lease.base import LockMode


def _write(path, text):
    path.write_text(text)
    return path


class TestConfigLoader:
    def test_defaults_without_file(self):
        loader = ConfigLoader()
        assert loader.get_store_config()["retry_attempts"] == 3
        assert loader.get_lock_config()["ttl_seconds"] == 600
        assert loader.get_notifications_config() == {}

    def test_finds_config_in_cwd(self, tmp_path):
        _write(tmp_path / "config.yaml", "store:\n  backend: memory\n")
        loader = ConfigLoader()
        assert loader.config_path == tmp_path / "config.yaml"
        assert loader.get_store_config()["backend"] == "memory"
        # defaults are merged underneath
        assert loader.get_store_config()["retry_attempts"] == 3

    def test_env_specific_file_wins(self, tmp_path, monkeypatch):
        _write(tmp_path / "config.yaml", "store:\n  name: prod\n")
        _write(tmp_path / "config.dev.yaml", "store:\n  name: dev\n")
        monkeypatch.setenv("REMINDQ_ENV", "dev")
        assert ConfigLoader().get_store_config()["name"] == "dev"

    def test_env_var_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AGENT_TOKEN", "s3cret")
        _write(
            tmp_path / "config.yaml",
            "agent:\n  token: ${AGENT_TOKEN}\n  api_base: https://$REMINDQ_TEST_UNSET_HOST/v1\n",
        )
        agent = ConfigLoader().get_agent_config()
        assert agent["token"] == "s3cret"
        assert agent["api_base"] == "https:///v1"

    def test_schema_violation(self, tmp_path):
        _write(tmp_path / "config.yaml", "store:\n  backend: s3\n")
        with pytest.raises(ConfigError, match="store -> backend"):
            ConfigLoader()

    def test_invalid_yaml(self, tmp_path):
        _write(tmp_path / "config.yaml", "store: [unclosed\n")
        with pytest.raises(ConfigError, match="Error parsing"):
            ConfigLoader()

    def test_top_level_must_be_mapping(self, tmp_path):
        _write(tmp_path / "config.yaml", "- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            ConfigLoader()

    def test_explicit_missing_path(self, tmp_path):
        with pytest.raises(ConfigError, match="does not exist"):
            ConfigLoader(tmp_path / "nope.yaml")

    def test_env_path(self, tmp_path, monkeypatch):
        config = _write(tmp_path / "custom.yaml", "lock:\n  mode: always\n")
        monkeypatch.setenv("REMINDQ_CONFIG", str(config))
        assert ConfigLoader().get_lock_config()["mode"] == "always"

    def test_singleton_helpers(self, tmp_path):
        config = _write(tmp_path / "other.yaml", "store:\n  name: other\n")
        loader = init_config_loader(config)
        assert get_config_loader() is loader
        assert get_config_loader().get_store_config()["name"] == "other"


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings()
        assert settings == Settings()
        assert settings.lock_name == "reminders.lock"
        assert settings.effective_lock_backend == "file"

    def test_config_values(self, tmp_path):
        _write(
            tmp_path / "config.yaml",
            "store:\n  backend: postgres\n  name: team\n"
            "lock:\n  backend: file\n  timeout_seconds: '5'\n"
            "reminders:\n  max_ahead_hours: 24\n  display_timezone: Europe/Berlin\n"
            "  default_cc: [oncall]\n",
        )
        settings = load_settings(ConfigLoader())
        assert settings.store_backend == "postgres"
        assert settings.effective_lock_backend == "file"
        assert settings.lock_timeout == 5.0
        assert settings.max_ahead == timedelta(hours=24)
        assert settings.display_timezone == "Europe/Berlin"
        assert settings.default_cc == ("oncall",)

    def test_precedence(self, tmp_path, monkeypatch):
        _write(tmp_path / "config.yaml", "store:\n  name: from-config\n  path: /srv/reminders\n")
        monkeypatch.setenv("REMINDQ_STORE_BACKEND", "memory")
        monkeypatch.setenv("REMINDQ_STORE_NAME", "from-env")
        monkeypatch.setenv("REMINDQ_STORE_PATH", "/tmp/from-env")
        loader = ConfigLoader()

        settings = load_settings(loader, store_name="from-flag", lock_mode=None)

        assert settings.store_name == "from-flag"
        assert settings.store_path == "/srv/reminders"
        assert settings.store_backend == "memory"
        assert settings.lock_mode is LockMode.AUTO

    def test_default_cc_from_env(self, monkeypatch):
        monkeypatch.setenv("REMINDQ_DEFAULT_CC", "alice, bob,")
        assert load_settings().default_cc == ("alice", "bob")

    def test_invalid_lock_mode(self):
        with pytest.raises(ConfigError, match="lock mode"):
            load_settings(lock_mode="sometimes")

    def test_invalid_backend(self, monkeypatch):
        monkeypatch.setenv("REMINDQ_STORE_BACKEND", "s3")
        with pytest.raises(ConfigError, match="store.backend"):
            load_settings()

    def test_non_numeric_timeout(self, tmp_path):
        _write(tmp_path / "config.yaml", "lock:\n  timeout_seconds: soon\n")
        with pytest.raises(ConfigError, match="timeout_seconds"):
            load_settings(ConfigLoader())

    def test_horizon_above_three_days_rejected_by_schema(self, tmp_path):
        _write(tmp_path / "config.yaml", "reminders:\n  max_ahead_hours: 200\n")
        with pytest.raises(ConfigError, match="max_ahead_hours"):
            ConfigLoader()

    def test_interpolated_horizon_above_three_days_rejected(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HORIZON", "200")
        _write(tmp_path / "config.yaml", "reminders:\n  max_ahead_hours: ${HORIZON}\n")
        with pytest.raises(ConfigError, match="at most 72, got 200"):
            load_settings(ConfigLoader())

    @pytest.mark.parametrize("horizon", [timedelta(days=4), timedelta(0)])
    def test_horizon_override_out_of_range(self, horizon):
        with pytest.raises(ConfigError, match="max_ahead_hours"):
            load_settings(max_ahead=horizon)

    def test_horizon_of_exactly_three_days_allowed(self, tmp_path):
        _write(tmp_path / "config.yaml", "reminders:\n  max_ahead_hours: 72\n")
        assert load_settings(ConfigLoader()).max_ahead == timedelta(days=3)
