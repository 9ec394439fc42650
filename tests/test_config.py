"""
Configuration Tests
===================

YAML loading, environment overrides and derived objects.
"""

import pytest
from pydantic import ValidationError

from answerstream.config import Settings, get_settings, load_config
from answerstream.models.request import Conciseness
from answerstream.pacing import FixedDelay, HumanTypingDelay


ENV_VARS = [
    "ANSWERSTREAM_API_URL",
    "ANSWERSTREAM_CONCISENESS",
    "ANSWERSTREAM_TIMEOUT",
    "ANSWERSTREAM_CHUNK_TIMEOUT",
    "ANSWERSTREAM_MAX_ATTEMPTS",
    "ANSWERSTREAM_RETRY_DELAY",
    "ANSWERSTREAM_RESYNC_THRESHOLD",
    "ANSWERSTREAM_TYPING",
    "ANSWERSTREAM_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "endpoint:\n"
        "  base_url: http://answers.internal:9000/\n"
        "  conciseness: medium\n"
        "transport:\n"
        "  max_attempts: 5\n"
        "  chunk_timeout_seconds: 4\n"
        "pacing:\n"
        "  enabled: false\n"
    )
    return path


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self, tmp_path):
        settings = load_config(str(tmp_path / "missing.yaml"))
        assert settings.endpoint.url == "http://localhost:8000/api/openai"
        assert settings.endpoint.shuffle_url == "http://localhost:8000/api/shuffle-questions"
        assert settings.endpoint.conciseness == Conciseness.SHORT
        assert settings.transport.overall_timeout_seconds == 30.0
        assert settings.transport.chunk_timeout_seconds == 10.0
        assert settings.transport.max_attempts == 3
        assert settings.interpreter.resync_threshold == 10
        assert settings.logging.level == "INFO"

    def test_retry_policy(self):
        policy = Settings().transport.retry_policy()
        assert (policy.max_attempts, policy.base_delay) == (3, 1.0)
        assert (policy.overall_timeout, policy.chunk_timeout) == (30.0, 10.0)

    def test_typing_delay_by_default(self):
        assert isinstance(Settings().pacing.delay_strategy(), HumanTypingDelay)

    def test_invalid_attempts_rejected(self):
        with pytest.raises(ValidationError):
            Settings.model_validate({"transport": {"max_attempts": 0}})


class TestYamlFile:
    """Tests for file loading."""

    def test_file_values(self, config_file):
        settings = load_config(str(config_file))
        assert settings.endpoint.url == "http://answers.internal:9000/api/openai"
        assert settings.endpoint.shuffle_url == "http://answers.internal:9000/api/shuffle-questions"
        assert settings.endpoint.conciseness == Conciseness.MEDIUM
        assert settings.transport.max_attempts == 5
        assert settings.transport.chunk_timeout_seconds == 4.0

    def test_disabled_pacing_uses_zero_delay(self, config_file):
        strategy = load_config(str(config_file)).pacing.delay_strategy()
        assert strategy == FixedDelay(0.0)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(str(path)) == Settings()

    def test_get_settings_loads_once(self, config_file, monkeypatch):
        """get_settings finds config.yaml in the working directory and caches it."""
        monkeypatch.chdir(config_file.parent)
        get_settings.cache_clear()
        try:
            settings = get_settings()
            assert settings is get_settings()
            assert settings.transport.max_attempts == 5
        finally:
            get_settings.cache_clear()


class TestEnvironmentOverrides:
    """Environment variables take precedence over the file."""

    def test_env_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("ANSWERSTREAM_API_URL", "https://answers.example.com")
        monkeypatch.setenv("ANSWERSTREAM_MAX_ATTEMPTS", "2")
        monkeypatch.setenv("ANSWERSTREAM_TYPING", "on")
        monkeypatch.setenv("ANSWERSTREAM_CONCISENESS", "long")

        settings = load_config(str(config_file))

        assert settings.endpoint.base_url == "https://answers.example.com"
        assert settings.endpoint.conciseness == Conciseness.LONG
        assert settings.transport.max_attempts == 2
        assert settings.transport.chunk_timeout_seconds == 4.0
        assert settings.pacing.enabled

    def test_numeric_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ANSWERSTREAM_TIMEOUT", "12.5")
        monkeypatch.setenv("ANSWERSTREAM_CHUNK_TIMEOUT", "3")
        monkeypatch.setenv("ANSWERSTREAM_RETRY_DELAY", "0.5")
        monkeypatch.setenv("ANSWERSTREAM_RESYNC_THRESHOLD", "25")
        monkeypatch.setenv("ANSWERSTREAM_LOG_LEVEL", "DEBUG")

        settings = load_config(str(tmp_path / "missing.yaml"))

        policy = settings.transport.retry_policy()
        assert policy.overall_timeout == 12.5
        assert policy.chunk_timeout == 3.0
        assert policy.base_delay == 0.5
        assert settings.interpreter.resync_threshold == 25
        assert settings.logging.level == "DEBUG"

    @pytest.mark.parametrize("value", ["0", "false", "No", "OFF"])
    def test_typing_disabled_values(self, tmp_path, monkeypatch, value):
        monkeypatch.setenv("ANSWERSTREAM_TYPING", value)
        assert not load_config(str(tmp_path / "missing.yaml")).pacing.enabled
