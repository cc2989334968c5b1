#!/usr/bin/env python3
"""
Tests for explicit configuration validation.
"""

import pytest
import yaml

from facilitator.config import Configuration

VALID = {
    "api": {"base_url": "http://localhost:3001/"},
    "http_client": {
        "max_connections": 10,
        "max_keepalive": 5,
        "connect_timeout": 10.0,
        "read_timeout": None,
        "write_timeout": 10.0,
        "pool_timeout": 10.0,
    },
    "streaming": {"stream_timeout": 300.0, "require_event_stream": True},
    "workshop": {
        "history_limit": 50,
        "blind_spot_threshold": 2,
        "participant_name": "我",
    },
    "repository": {"backend": "http", "path": "workshops.db"},
    "logging": {"level": "DEBUG"},
}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("FACILITATOR_API_URL", raising=False)
    monkeypatch.delenv("FACILITATOR_API_TOKEN", raising=False)
    monkeypatch.setattr(Configuration, "load_env", staticmethod(lambda: None))


def write_config(tmp_path, data) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")
    return str(path)


def with_section(section: str, **changes) -> dict:
    data = {k: dict(v) for k, v in VALID.items()}
    data[section].update(changes)
    return data


def without_key(section: str, key: str) -> dict:
    data = {k: dict(v) for k, v in VALID.items()}
    del data[section][key]
    return data


class TestConfiguration:
    """Test configuration getters."""

    def test_bundled_config_is_valid(self):
        config = Configuration()
        assert config.get_api_config()["base_url"].startswith("http")
        config.get_http_client_config()
        config.get_streaming_config()
        assert config.get_workshop_config()["history_limit"] <= 50
        assert config.get_repository_config()["backend"] in ("http", "sqlite")

    def test_valid_config(self, tmp_path):
        config = Configuration(write_config(tmp_path, VALID))
        assert config.get_api_config()["base_url"] == "http://localhost:3001"
        assert config.get_http_client_config()["read_timeout"] is None
        assert config.get_streaming_config()["require_event_stream"] is True
        assert config.get_workshop_config()["participant_name"] == "我"
        assert config.get_logging_config() == {"level": "DEBUG"}
        assert config.api_token is None

    def test_environment_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("FACILITATOR_API_URL", "https://workshop.example.com")
        monkeypatch.setenv("FACILITATOR_API_TOKEN", "tok")
        config = Configuration(write_config(tmp_path, VALID))
        assert config.get_api_config()["base_url"] == "https://workshop.example.com"
        assert config.api_token == "tok"

    def test_getters_do_not_mutate_loaded_config(self, tmp_path):
        config = Configuration(write_config(tmp_path, VALID))
        config.get_api_config()
        assert config.get_config_dict()["api"]["base_url"] == "http://localhost:3001/"

    @pytest.mark.parametrize(("section", "key", "getter"), [
        ("api", "base_url", "get_api_config"),
        ("http_client", "read_timeout", "get_http_client_config"),
        ("streaming", "stream_timeout", "get_streaming_config"),
        ("workshop", "history_limit", "get_workshop_config"),
        ("repository", "backend", "get_repository_config"),
    ])
    def test_missing_key(self, tmp_path, section, key, getter):
        config = Configuration(write_config(tmp_path, without_key(section, key)))
        with pytest.raises(ValueError, match=key):
            getattr(config, getter)()

    @pytest.mark.parametrize(("section", "changes", "getter"), [
        ("api", {"base_url": "localhost:3001"}, "get_api_config"),
        ("http_client", {"max_keepalive": 20}, "get_http_client_config"),
        ("http_client", {"connect_timeout": 0}, "get_http_client_config"),
        ("streaming", {"stream_timeout": -1}, "get_streaming_config"),
        ("streaming", {"require_event_stream": "yes"}, "get_streaming_config"),
        ("workshop", {"history_limit": 51}, "get_workshop_config"),
        ("workshop", {"blind_spot_threshold": 0}, "get_workshop_config"),
        ("workshop", {"participant_name": "  "}, "get_workshop_config"),
        ("repository", {"backend": "redis"}, "get_repository_config"),
        ("repository", {"backend": "sqlite", "path": ""}, "get_repository_config"),
    ])
    def test_invalid_values(self, tmp_path, section, changes, getter):
        config = Configuration(write_config(tmp_path, with_section(section, **changes)))
        with pytest.raises(ValueError):
            getattr(config, getter)()

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="YAML dict"):
            Configuration(str(path))
