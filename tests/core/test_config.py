"""Tests for settings schema and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from erlc.core.config import DEFAULT_BASE_URL, ErlcSettings, LoggingSettings, load_settings


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "ERLC_BASE_URL",
        "ERLC_TIMEOUT_SECONDS",
        "ERLC_POLL_INTERVAL_MS",
        "ERLC_MAX_WORKERS",
        "ERLC_GLOBAL_KEY",
        "ERLC_SERVER_KEY",
        "ERLC_LOGGING__LEVEL",
        "ERLC_LOGGING__JSON_OUTPUT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestErlcSettings:
    def test_defaults(self) -> None:
        settings = ErlcSettings()

        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.timeout_seconds == 30.0
        assert settings.poll_interval_ms == 25
        assert settings.poll_interval_seconds == pytest.approx(0.025)
        assert settings.max_workers == 4
        assert settings.global_key is None
        assert settings.server_key is None
        assert settings.logging == LoggingSettings()

    def test_frozen(self) -> None:
        settings = ErlcSettings()
        with pytest.raises(ValidationError):
            settings.max_workers = 8  # type: ignore[misc]

    def test_rejects_unknown_fields(self) -> None:
        with pytest.raises(ValidationError):
            ErlcSettings(api_root="https://example.com/")  # type: ignore[call-arg]

    def test_base_url_gains_trailing_slash(self) -> None:
        assert ErlcSettings(base_url="https://example.com/v1").base_url == "https://example.com/v1/"

    def test_base_url_must_be_http(self) -> None:
        with pytest.raises(ValidationError, match="http"):
            ErlcSettings(base_url="ftp://example.com/")

    @pytest.mark.parametrize("field", ["timeout_seconds", "poll_interval_ms"])
    def test_non_positive_timing_rejected(self, field: str) -> None:
        with pytest.raises(ValidationError):
            ErlcSettings(**{field: 0})

    def test_max_workers_at_least_one(self) -> None:
        with pytest.raises(ValidationError):
            ErlcSettings(max_workers=0)

    def test_blank_keys_are_unset(self) -> None:
        settings = ErlcSettings(global_key="", server_key="   ")
        assert settings.global_key is None
        assert settings.server_key is None

    def test_numeric_keys_coerced_to_str(self) -> None:
        assert ErlcSettings(server_key=12345).server_key == "12345"  # type: ignore[arg-type]

    def test_keys_hidden_from_repr(self) -> None:
        settings = ErlcSettings(global_key="global-secret", server_key="server-secret")
        text = repr(settings)
        assert "global-secret" not in text
        assert "server-secret" not in text

    def test_logging_level_case_insensitive(self) -> None:
        assert LoggingSettings(level="debug").level == "DEBUG"  # type: ignore[arg-type]

    def test_logging_level_rejects_unknown(self) -> None:
        with pytest.raises(ValidationError):
            LoggingSettings(level="TRACE")  # type: ignore[arg-type]


class TestLoadSettings:
    def test_no_file_no_env_gives_defaults(self) -> None:
        assert load_settings() == ErlcSettings()

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "erlc.yaml"
        config_file.write_text("""
base_url: "https://staging.example.com/v1"
timeout_seconds: 10
max_workers: 2
logging:
  level: debug
  json_output: true
""")

        settings = load_settings(config_file)

        assert settings.base_url == "https://staging.example.com/v1/"
        assert settings.timeout_seconds == 10
        assert settings.max_workers == 2
        assert settings.logging.level == "DEBUG"
        assert settings.logging.json_output is True

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        config_file = tmp_path / "erlc.yaml"
        config_file.write_text("max_workers: 2\n")
        monkeypatch.setenv("ERLC_MAX_WORKERS", "6")

        assert load_settings(config_file).max_workers == 6

    def test_keys_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ERLC_SERVER_KEY", "abc-server")
        monkeypatch.setenv("ERLC_GLOBAL_KEY", "987654")

        settings = load_settings()

        assert settings.server_key == "abc-server"
        # All-digit values arrive from Dynaconf as int
        assert settings.global_key == "987654"

    def test_nested_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ERLC_LOGGING__LEVEL", "WARNING")

        assert load_settings().logging.level == "WARNING"

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            load_settings(tmp_path / "missing.yaml")

    def test_invalid_values_raise(self, tmp_path: Path) -> None:
        config_file = tmp_path / "erlc.yaml"
        config_file.write_text("max_workers: 0\n")

        with pytest.raises(ValidationError):
            load_settings(config_file)
