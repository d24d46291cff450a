"""Configuration management for the scanhelper client."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

from scanhelper.llm.models import ProviderConfig, ProviderType

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")


class Configuration:
    """Manages configuration and environment variables for the client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self._config = self._load_yaml_config(config_path or DEFAULT_CONFIG_PATH)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def active_provider(self) -> str:
        return self._config.get("llm", {}).get("active", "openai")

    @property
    def llm_api_key(self) -> str:
        """Get the API key for the active LLM provider.

        Returns:
            The API key as a string.

        Raises:
            ValueError: If the API key is not found in environment variables.
        """
        active_provider = self.active_provider

        # Map provider names to environment variable names
        provider_key_map = {
            "openai": "OPENAI_API_KEY",
            "groq": "GROQ_API_KEY",
            "openrouter": "OPENROUTER_API_KEY",
        }

        env_key = self.get_llm_config().get("api_key_env") or provider_key_map.get(
            active_provider
        )
        if not env_key:
            raise ValueError(
                f"Unknown provider '{active_provider}' - no API key mapping found"
            )

        api_key = os.getenv(env_key)
        if not api_key:
            raise ValueError(
                f"API key '{env_key}' not found in environment variables "
                f"for provider '{active_provider}'"
            )

        return api_key

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary."""
        return self._config

    def get_llm_config(self) -> dict[str, Any]:
        """Get active LLM provider configuration from YAML.

        Returns:
            Active LLM provider configuration dictionary.

        Raises:
            ValueError: If the active provider or one of its required keys is
                missing.
        """
        providers = self._config.get("llm", {}).get("providers", {})
        active_provider = self.active_provider

        if active_provider not in providers:
            raise ValueError(
                f"Active provider '{active_provider}' not found in providers config"
            )

        provider_config = providers[active_provider]
        for key in ["base_url", "model", "temperature"]:
            if key not in provider_config:
                raise ValueError(
                    f"Required LLM configuration parameter '{key}' not found "
                    f"for provider '{active_provider}' in config.yaml"
                )

        return provider_config

    def get_http_client_config(self) -> dict[str, float]:
        """Get HTTP client timeouts for the active LLM provider.

        Returns:
            Timeout configuration dictionary with validated values.

        Raises:
            ValueError: If a timeout is missing or not positive.
        """
        http_config = self.get_llm_config().get("http_client", {})

        required_keys = [
            "connect_timeout", "read_timeout", "write_timeout", "pool_timeout"
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured "
                    f"for provider '{self.active_provider}' in config.yaml"
                )
            if http_config[key] <= 0:
                raise ValueError(f"http_client.{key} must be positive")

        return {key: float(http_config[key]) for key in required_keys}

    def get_profile(self, name: str) -> dict[str, Any]:
        """Get a chat profile with model and temperature defaults applied.

        Args:
            name: Profile name under chat.profiles (e.g. "tutor", "image").

        Returns:
            Dictionary with system_prompt, model and temperature.

        Raises:
            ValueError: If the profile or its system prompt is not configured.
        """
        profiles = self._config.get("chat", {}).get("profiles", {})
        if name not in profiles:
            raise ValueError(
                f"Chat profile '{name}' must be configured under chat.profiles"
            )

        profile = profiles[name]
        if not profile.get("system_prompt"):
            raise ValueError(
                f"chat.profiles.{name}.system_prompt must be explicitly configured"
            )

        llm_config = self.get_llm_config()
        return {
            "system_prompt": profile["system_prompt"],
            "model": profile.get("model", llm_config["model"]),
            "temperature": float(
                profile.get("temperature", llm_config["temperature"])
            ),
        }

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        return self._config.get("logging", {})

    def to_provider_config(self) -> ProviderConfig:
        """Build the explicit provider configuration for the client."""
        llm_config = self.get_llm_config()
        http_config = self.get_http_client_config()
        return ProviderConfig(
            provider=ProviderType.detect(llm_config["base_url"]),
            base_url=llm_config["base_url"],
            model=llm_config["model"],
            api_key=self.llm_api_key,
            temperature=float(llm_config["temperature"]),
            **http_config,
        )
