"""Configuration management for the workshop facilitation client."""

from __future__ import annotations

import os
from typing import Any

import yaml
from dotenv import load_dotenv

from facilitator.history.repositories.base import MAX_HISTORY_ROWS

REPOSITORY_BACKENDS = ("http", "sqlite")


class Configuration:
    """Manages configuration and environment variables for the client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for the API token and URL override
        self.config_path = config_path or os.path.join(
            os.path.dirname(__file__), "config.yaml"
        )
        self._config = self._load_yaml_config()

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self.config_path, encoding="utf-8") as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def api_token(self) -> str | None:
        """Bearer token for the backend, if one is set in the environment."""
        return os.getenv("FACILITATOR_API_TOKEN") or None

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._config

    def get_api_config(self) -> dict[str, Any]:
        """Get backend API configuration.

        ``FACILITATOR_API_URL`` overrides ``api.base_url`` when set.

        Raises:
            ValueError: If base_url is missing or not an http(s) URL.
        """
        api_config = {**self._config.get("api", {})}

        env_url = os.getenv("FACILITATOR_API_URL")
        if env_url:
            api_config["base_url"] = env_url

        if "base_url" not in api_config:
            raise ValueError(
                "api.base_url must be explicitly configured in config.yaml "
                "or via FACILITATOR_API_URL"
            )

        base_url = api_config["base_url"]
        if not isinstance(base_url, str) or not base_url.startswith(
            ("http://", "https://")
        ):
            raise ValueError("api.base_url must be an http:// or https:// URL")

        api_config["base_url"] = base_url.rstrip("/")
        return api_config

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client configuration.

        Raises:
            ValueError: If required HTTP client parameters are missing or invalid.
        """
        http_config = self._config.get("http_client", {})

        required_keys = [
            "max_connections", "max_keepalive", "connect_timeout",
            "read_timeout", "write_timeout", "pool_timeout",
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured "
                    "in config.yaml"
                )

        max_conn = http_config["max_connections"]
        max_keepalive = http_config["max_keepalive"]

        if max_conn < 1:
            raise ValueError("http_client.max_connections must be at least 1")
        if max_keepalive > max_conn:
            raise ValueError("http_client.max_keepalive must be <= max_connections")

        for key in ("connect_timeout", "write_timeout", "pool_timeout"):
            if http_config[key] <= 0:
                raise ValueError(f"http_client.{key} must be positive")

        # A null read timeout lets long generations stream without a gap limit
        read_timeout = http_config["read_timeout"]
        if read_timeout is not None and read_timeout <= 0:
            raise ValueError("http_client.read_timeout must be positive or null")

        return {**http_config}

    def get_streaming_config(self) -> dict[str, Any]:
        """Get streaming configuration.

        Raises:
            ValueError: If required streaming parameters are missing or invalid.
        """
        streaming_config = self._config.get("streaming", {})

        required_keys = ["stream_timeout", "require_event_stream"]
        for key in required_keys:
            if key not in streaming_config:
                raise ValueError(
                    f"streaming.{key} must be explicitly configured "
                    "in config.yaml"
                )

        stream_timeout = streaming_config["stream_timeout"]
        if stream_timeout is not None and stream_timeout <= 0:
            raise ValueError("streaming.stream_timeout must be positive or null")
        if not isinstance(streaming_config["require_event_stream"], bool):
            raise ValueError("streaming.require_event_stream must be a boolean")

        return {**streaming_config}

    def get_workshop_config(self) -> dict[str, Any]:
        """Get workshop behaviour configuration.

        Raises:
            ValueError: If required workshop parameters are missing or invalid.
        """
        workshop_config = self._config.get("workshop", {})

        required_keys = ["history_limit", "blind_spot_threshold", "participant_name"]
        for key in required_keys:
            if key not in workshop_config:
                raise ValueError(
                    f"workshop.{key} must be explicitly configured "
                    "in config.yaml"
                )

        history_limit = workshop_config["history_limit"]
        if not isinstance(history_limit, int) or history_limit < 1:
            raise ValueError("workshop.history_limit must be a positive integer")
        if history_limit > MAX_HISTORY_ROWS:
            raise ValueError(
                f"workshop.history_limit cannot exceed {MAX_HISTORY_ROWS}"
            )

        threshold = workshop_config["blind_spot_threshold"]
        if not isinstance(threshold, int) or threshold < 1:
            raise ValueError(
                "workshop.blind_spot_threshold must be a positive integer"
            )

        if not str(workshop_config["participant_name"]).strip():
            raise ValueError("workshop.participant_name must not be empty")

        return {**workshop_config}

    def get_repository_config(self) -> dict[str, Any]:
        """Get workshop repository configuration.

        Raises:
            ValueError: If the backend is unknown or the SQLite path is missing.
        """
        repo_config = {**self._config.get("repository", {})}

        if "backend" not in repo_config:
            raise ValueError(
                "repository.backend must be explicitly configured in config.yaml"
            )
        if repo_config["backend"] not in REPOSITORY_BACKENDS:
            raise ValueError(
                f"repository.backend must be one of: {list(REPOSITORY_BACKENDS)}"
            )
        if repo_config["backend"] == "sqlite" and not repo_config.get("path"):
            raise ValueError(
                "repository.path must be configured when backend is sqlite"
            )

        return repo_config

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._config.get("logging", {})
