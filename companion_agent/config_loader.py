"""
Configuration Loader

Loads companion configuration from YAML file with environment variable substitution.
"""

import os
import re
from typing import Any, Optional
from pathlib import Path

import yaml
import structlog
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings

logger = structlog.get_logger(__name__)

DEFAULT_TRANSCRIPTION_MODEL_ID = "hf.co/ggml-org/ultravox-v0_5-llama-3_1-8b-gguf"
DEFAULT_BACKGROUND_PROMPT_MODEL_ID = "hf.co/unsloth/gemma-3n-e2b-it-gguf:q8_k_xl"
TRYCLOUDFLARE_URL_PATTERN = r"(https://[a-zA-Z0-9-]+\.trycloudflare\.com)"


def _substitute_env_vars(value: Any) -> Any:
    """
    Recursively substitute environment variables in configuration.

    Supports format: ${VAR_NAME:-default_value}
    """
    if isinstance(value, str):
        # Pattern: ${VAR:-default} or ${VAR}
        pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

        def replace(match):
            var_name = match.group(1)
            default = match.group(2) if match.group(2) is not None else ""
            return os.getenv(var_name, default)

        return re.sub(pattern, replace, value)

    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]

    return value


class AgentConfig(BaseModel):
    """Agent identification and hub registration"""
    name: str = "companion_agent"
    version: str = "1.0.0"
    description: str = "Local companion agent publishing generated backgrounds"
    hub_url: str = "https://slowlyunhinged-hub-54127830651.us-central1.run.app"
    requires_key: bool = True
    timeout_seconds: float = 30.0


class ServerConfig(BaseModel):
    """Companion HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 41786
    long_poll_timeout_seconds: float = 25.0


class ModelRunnerConfig(BaseModel):
    """Local model runner and the models the agent needs"""
    base_url: str = "http://localhost:12434"
    required_models: list[str] = Field(
        default_factory=lambda: [
            DEFAULT_TRANSCRIPTION_MODEL_ID,
            DEFAULT_BACKGROUND_PROMPT_MODEL_ID,
        ]
    )
    warmup_attempts: int = 10
    warmup_delay_seconds: float = 1.0
    poll_attempts: int = 60
    poll_delay_seconds: float = 5.0
    timeout_seconds: float = 30.0

    def required_model_set(self) -> list[str]:
        """Trimmed, non-empty, de-duplicated required models in config order."""
        seen: list[str] = []
        for model in self.required_models:
            model = model.strip()
            if model and model not in seen:
                seen.append(model)
        return seen


class TunnelConfig(BaseModel):
    """Tunnel container configuration"""
    image: str = "cloudflare/cloudflared:latest"
    target_host: str = "host.docker.internal"
    url_pattern: str = TRYCLOUDFLARE_URL_PATTERN
    log_poll_attempts: int = 60
    log_poll_interval_seconds: float = 0.5
    docker_timeout_seconds: float = 10.0


class ImageConfig(BaseModel):
    """Remote image generation configuration"""
    endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models"
    model: str = "gemini-2.5-flash-image"
    fallback_mime: str = "image/png"
    aspect_ratio: str = "16:9"
    api_key: Optional[str] = None
    api_key_file: Optional[str] = None
    timeout_seconds: float = 120.0


class ObservabilityConfig(BaseModel):
    """Observability configuration"""
    log_level: str = "INFO"
    log_format: str = "json"


class Config(BaseModel):
    """Complete companion configuration"""
    agent: AgentConfig = Field(default_factory=lambda: AgentConfig())
    server: ServerConfig = Field(default_factory=lambda: ServerConfig())
    model_runner: ModelRunnerConfig = Field(default_factory=lambda: ModelRunnerConfig())
    tunnel: TunnelConfig = Field(default_factory=lambda: TunnelConfig())
    image: ImageConfig = Field(default_factory=lambda: ImageConfig())
    observability: ObservabilityConfig = Field(default_factory=lambda: ObservabilityConfig())


class SecretSettings(BaseSettings):
    """Secrets read from the environment (or a .env file)"""
    nanobanana_api_key: Optional[str] = None


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses CONFIG_PATH or config.yaml.

    Returns:
        Parsed Config object
    """
    if config_path is None:
        config_path = os.getenv("CONFIG_PATH", "config.yaml")

    path = Path(config_path)
    if not path.exists():
        logger.warning(
            "Config file not found, using defaults",
            path=str(path),
        )
        return Config()

    logger.info("Loading configuration", path=str(path))

    with open(path, "r") as f:
        raw_config = yaml.safe_load(f) or {}

    # Substitute environment variables
    config_data = _substitute_env_vars(raw_config)

    config = Config(**config_data)

    logger.info(
        "Configuration loaded",
        agent_name=config.agent.name,
        agent_version=config.agent.version,
    )

    return config

