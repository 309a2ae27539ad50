"""
Settings management for Talk With Doc.

Values are resolved from, in order of precedence: constructor arguments,
``TWD_*`` environment variables, a ``.env`` file and finally a YAML file
pointed to by ``TWD_CONFIG`` (``configs/base.yaml`` by default).
"""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices
from pydantic import BaseModel
from pydantic import Field
from pydantic_settings import BaseSettings
from pydantic_settings import PydanticBaseSettingsSource
from pydantic_settings import SettingsConfigDict
from pydantic_settings import YamlConfigSettingsSource

from talk_with_doc.services.constants import DEFAULTS

logger = logging.getLogger(__name__)

CONFIG_ENV_KEY = "TWD_CONFIG"
DEFAULT_CONFIG_PATH = "configs/base.yaml"


class VADConfig(BaseModel):
    """Voice activity detection tuning for the client monitor."""

    speech_threshold: float = Field(default=0.12, description="RMS level that starts speech")
    barge_in_threshold: float = Field(
        default=0.2, description="RMS level that interrupts agent playback"
    )
    silence_duration_ms: int = Field(default=800, description="Silence that ends an utterance")
    min_speech_duration_ms: int = Field(
        default=300, description="Utterances shorter than this are dropped as noise"
    )
    tick_interval_s: float = Field(default=1 / 60, description="Monitor evaluation interval")
    chunk_size: int = Field(default=4096, description="Samples per transmitted audio chunk")
    analysis_window: int = Field(default=512, description="Samples per RMS window")


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="TWD_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Server settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=3000, description="Server port")
    ws_url: str = Field(default="ws://localhost:3000/ws/voice", description="Client WS endpoint")

    # Provider settings
    api_base_url: str = Field(default="https://api.openai.com/v1", description="Provider URL")
    openai_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("openai_api_key", "TWD_OPENAI_API_KEY", "OPENAI_API_KEY"),
        description="Provider API key",
    )
    router_model: str = Field(default="gpt-4o-mini", description="Model judging dialogue completion")
    persona_model: str = Field(
        default="gpt-4o-audio-preview", description="Model producing persona text and audio"
    )
    text_fallback_model: str = Field(
        default="gpt-4o-mini", description="Model used when audio generation fails"
    )
    transcription_model: str = Field(default="whisper-1", description="Speech-to-text model")
    transcription_language: str = Field(default="en", description="Speech-to-text language")
    request_timeout: float = Field(
        default=DEFAULTS["provider_read_timeout"], description="Provider read timeout"
    )

    # Persona settings
    critic_voice: str = Field(default="onyx", description="Voice of the critic persona")
    creative_voice: str = Field(default="nova", description="Voice of the creative persona")
    persona_audio_format: str = Field(default="mp3", description="Persona audio format")

    # Dialogue settings
    max_persona_turns: int = Field(
        default=DEFAULTS["max_persona_turns"], description="Persona turns per topic"
    )
    resume_user_window: int = Field(
        default=DEFAULTS["resume_user_window"], description="User messages kept on resume"
    )
    max_history_messages: int = Field(
        default=DEFAULTS["max_history_messages"], description="History carried between turns"
    )
    document_context_chars: int = Field(
        default=DEFAULTS["document_context_chars"], description="Document characters given to personas"
    )

    # Audio settings
    sample_rate: int = Field(default=16000, description="Default PCM sample rate")
    vad: VADConfig = Field(default_factory=VADConfig)

    # Logging settings
    log_dir: Path = Field(default=Path("logs"), description="Log directory")
    log_level: str = Field(default="INFO", description="Root log level")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        config_path = Path(os.getenv(CONFIG_ENV_KEY, DEFAULT_CONFIG_PATH))
        if config_path.exists():
            logger.info(f"Loading config from {config_path}")
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=config_path),
            file_secret_settings,
        )


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment and config."""
    global _settings
    _settings = Settings()
    return _settings
