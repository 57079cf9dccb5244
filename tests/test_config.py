"""Tests for chatcore.config."""

from __future__ import annotations

import pytest
import yaml

from chatcore.config import ChatcoreConfig, ServiceConfig, load_config

CONFIG = {
    "service": {"base_url": "http://file:9000", "headers": {"X-Client": "cfg"}},
    "api": {
        "provider": "claude",
        "samplers": {"temperature": 0.5, "max_tokens": 300},
        "selected_provider_models": {"claude": "claude-3-5-sonnet"},
        "not_a_field": 1,
    },
    "library": {"presets_dir": "/tmp/presets"},
    "profiles": {
        "local": {"provider": "ollama", "model": "llama3", "formatter": "text", "extra": "x"},
        "cloud": {"provider": "openrouter"},
    },
    "active_profile": "cloud",
}


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "chatcore.yaml"
    path.write_text(yaml.safe_dump(CONFIG))
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "CHATCORE_BASE_URL",
        "CHATCORE_PROVIDER",
        "CHATCORE_TEMPERATURE",
        "CHATCORE_STREAM",
        "CHATCORE_TIMEOUT",
        "CHATCORE_PROFILE",
        "CHATCORE_CSRF_TOKEN",
    ):
        monkeypatch.delenv(var, raising=False)


class TestDefaults:
    def test_no_file(self):
        cfg = load_config()
        assert cfg.service.base_url == "http://localhost:8000"
        assert cfg.api.provider == "openai"
        assert cfg.api.formatter == "chat"
        assert cfg.profiles == {}
        assert cfg.connection_profiles() == []

    def test_missing_file_is_ignored(self, tmp_path):
        cfg = load_config(tmp_path / "absent.yaml")
        assert cfg.api.provider == "openai"


class TestFileLayer:
    def test_sections(self, config_file):
        cfg = load_config(config_file)
        assert cfg.service.base_url == "http://file:9000"
        assert cfg.service.timeout_seconds == 120
        assert cfg.api.provider == "claude"
        assert cfg.api.samplers == {"temperature": 0.5, "max_tokens": 300}
        assert cfg.library.presets_dir == "/tmp/presets"
        assert cfg.library.instruct_dir == "~/.chatcore/instruct"
        assert cfg.active_profile == "cloud"

    def test_connection_profiles(self, config_file):
        profiles = {p.name: p for p in load_config(config_file).connection_profiles()}
        assert set(profiles) == {"local", "cloud"}
        assert profiles["local"].provider == "ollama"
        assert profiles["local"].formatter == "text"
        assert profiles["cloud"].model is None


class TestPrecedence:
    def test_env_over_file(self, config_file, monkeypatch):
        monkeypatch.setenv("CHATCORE_PROVIDER", "openai")
        monkeypatch.setenv("CHATCORE_TEMPERATURE", "1.1")
        monkeypatch.setenv("CHATCORE_STREAM", "yes")
        monkeypatch.setenv("CHATCORE_TIMEOUT", "30")
        cfg = load_config(config_file)
        assert cfg.api.provider == "openai"
        assert cfg.api.samplers["temperature"] == 1.1
        assert cfg.api.samplers["max_tokens"] == 300
        assert cfg.api.samplers["stream"] is True
        assert cfg.service.timeout_seconds == 30

    def test_cli_over_env(self, config_file, monkeypatch):
        monkeypatch.setenv("CHATCORE_PROVIDER", "openai")
        cfg = load_config(config_file, cli_overrides={"api.provider": "groq", "api.samplers.seed": 3})
        assert cfg.api.provider == "groq"
        assert cfg.api.samplers["seed"] == 3

    def test_profile_argument_wins(self, config_file, monkeypatch):
        monkeypatch.setenv("CHATCORE_PROFILE", "cloud")
        assert load_config(config_file).active_profile == "cloud"
        assert load_config(config_file, profile="local").active_profile == "local"

    def test_session_override(self):
        cfg = ChatcoreConfig()
        cfg.set_override("api.samplers.top_p", 0.9)
        cfg.set_override("service.base_url", "http://override")
        assert cfg.api.samplers["top_p"] == 0.9
        assert cfg.service.base_url == "http://override"
        assert cfg.get_override("api.samplers.top_p") == 0.9
        assert cfg.get_override("api.provider") is None

    def test_to_dict_hides_overrides(self):
        cfg = ChatcoreConfig()
        cfg.set_override("api.provider", "claude")
        data = cfg.to_dict()
        assert "_overrides" not in data
        assert data["api"]["provider"] == "claude"


class TestServiceHeaders:
    def test_csrf_token_from_env(self, monkeypatch):
        monkeypatch.setenv("CHATCORE_CSRF_TOKEN", "secret")
        headers = ServiceConfig(headers={"X-Client": "a"}).request_headers()
        assert headers == {"X-Client": "a", "X-CSRF-Token": "secret"}

    def test_without_token(self):
        assert ServiceConfig().request_headers() == {}
