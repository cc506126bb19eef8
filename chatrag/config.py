"""Configuration management for the ChatRAG proxy and client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

import yaml
from dotenv import load_dotenv

from chatrag.exceptions import ConfigurationError

# Environment variables holding the upstream access values
UPSTREAM_ENV_KEYS = {
    "api_token": "CLOUDFLARE_API_TOKEN",
    "account_id": "CLOUDFLARE_ACCOUNT_ID",
    "rag_name": "AUTORAG_NAME",
    "base_url": "CLOUDFLARE_API_BASE_URL",
}


@dataclass(frozen=True)
class UpstreamSettings:
    """Resolved values needed to reach the hosted RAG service."""
    api_token: str
    account_id: str
    rag_name: str
    base_url: str
    service: str = "autorag"

    @property
    def search_url(self) -> str:
        """Full URL of the streaming ai-search endpoint."""
        base = self.base_url.rstrip("/")
        return (
            f"{base}/accounts/{self.account_id}/{self.service}"
            f"/rags/{self.rag_name}/ai-search"
        )


class Configuration:
    """Manages configuration and environment variables for ChatRAG."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API credentials
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
        with open(self.config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    def get_upstream_settings(self) -> UpstreamSettings:
        """Resolve upstream access values from the environment.

        Values are read on every call so a running proxy picks up changes.

        Returns:
            UpstreamSettings with every required value present.

        Raises:
            ConfigurationError: If any required value is missing or empty.
        """
        values = {
            field_name: os.getenv(env_key, "")
            for field_name, env_key in UPSTREAM_ENV_KEYS.items()
        }
        missing = [
            UPSTREAM_ENV_KEYS[field_name]
            for field_name, value in values.items()
            if not value
        ]
        if missing:
            raise ConfigurationError("Missing API configuration", missing=missing)

        service = self._config.get("upstream", {}).get("service", "autorag")
        return UpstreamSettings(service=service, **values)

    def get_server_config(self) -> dict[str, Any]:
        """Get proxy server configuration from YAML.

        Returns:
            Server configuration dictionary with validated values.

        Raises:
            ValueError: If required server parameters are missing or invalid.
        """
        server_config = self._config.get("server", {})

        required_keys = ["host", "port", "proxy_path"]
        for key in required_keys:
            if key not in server_config:
                raise ValueError(
                    f"server.{key} must be explicitly configured in config.yaml"
                )

        port = server_config["port"]
        if not isinstance(port, int) or not 0 < port < 65536:
            raise ValueError("server.port must be an integer between 1 and 65535")
        if not str(server_config["proxy_path"]).startswith("/"):
            raise ValueError("server.proxy_path must start with '/'")

        return server_config

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client timeouts for the upstream call.

        Returns:
            HTTP client configuration dictionary with validated values.

        Raises:
            ValueError: If required HTTP client parameters are missing or invalid.
        """
        http_config = self._config.get("upstream", {}).get("http_client", {})

        required_keys = [
            "connect_timeout", "read_timeout", "write_timeout", "pool_timeout"
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"upstream.http_client.{key} must be explicitly configured "
                    "in config.yaml"
                )
            if http_config[key] is not None and http_config[key] <= 0:
                raise ValueError(f"upstream.http_client.{key} must be positive")

        return http_config

    def get_client_config(self) -> dict[str, Any]:
        """Get stream consumer configuration from YAML.

        Returns:
            Client configuration dictionary with validated values.

        Raises:
            ValueError: If required client parameters are missing or invalid.
        """
        client_config = self._config.get("client", {})

        required_keys = ["proxy_url", "max_history_messages"]
        for key in required_keys:
            if key not in client_config:
                raise ValueError(
                    f"client.{key} must be explicitly configured in config.yaml"
                )

        max_history = client_config["max_history_messages"]
        if not isinstance(max_history, int) or max_history < 0:
            raise ValueError("client.max_history_messages must be a non-negative integer")

        return client_config

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        return self._config.get("logging", {})
