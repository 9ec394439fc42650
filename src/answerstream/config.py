"""
answerstream Configuration
==========================

This module handles configuration loading for the streaming answer client.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    ANSWERSTREAM_API_URL           -> endpoint.base_url
    ANSWERSTREAM_CONCISENESS       -> endpoint.conciseness
    ANSWERSTREAM_TIMEOUT           -> transport.overall_timeout_seconds
    ANSWERSTREAM_CHUNK_TIMEOUT     -> transport.chunk_timeout_seconds
    ANSWERSTREAM_MAX_ATTEMPTS      -> transport.max_attempts
    ANSWERSTREAM_RETRY_DELAY       -> transport.retry_base_delay_seconds
    ANSWERSTREAM_RESYNC_THRESHOLD  -> interpreter.resync_threshold
    ANSWERSTREAM_TYPING            -> pacing.enabled
    ANSWERSTREAM_LOG_LEVEL         -> logging.level

Example:
    from answerstream.config import get_settings

    settings = get_settings()
    print(settings.endpoint.url)
    print(settings.transport.max_attempts)
"""

import os
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from answerstream.models.request import Conciseness
from answerstream.pacing.delays import DelayStrategy, FixedDelay, HumanTypingDelay, TypingProfile
from answerstream.stream.retrier import RetryPolicy


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ClientConfig(BaseModel):
    """Client identification configuration."""

    name: str = Field(default="answerstream", description="Client name")
    version: str = Field(default="v0.1.0", description="Client version")


class EndpointConfig(BaseModel):
    """Answer endpoint configuration."""

    base_url: str = Field(
        default="http://localhost:8000",
        description="Base URL of the answer service",
    )
    path: str = Field(
        default="/api/openai",
        description="Path of the streaming answer endpoint",
    )
    shuffle_path: str = Field(
        default="/api/shuffle-questions",
        description="Path of the follow-up shuffle endpoint",
    )
    conciseness: Conciseness = Field(
        default=Conciseness.SHORT,
        description="Requested answer length: short, medium or long",
    )

    @property
    def url(self) -> str:
        """Full endpoint URL."""
        return self.base_url.rstrip("/") + "/" + self.path.lstrip("/")

    @property
    def shuffle_url(self) -> str:
        """Full shuffle endpoint URL."""
        return self.base_url.rstrip("/") + "/" + self.shuffle_path.lstrip("/")


class TransportConfig(BaseModel):
    """Timeouts and retries for the streaming request."""

    overall_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Maximum duration of one attempt",
    )
    chunk_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Maximum silence between chunks",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per query, including the first",
    )
    retry_base_delay_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Backoff before attempt k is k times this value",
    )
    connect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Maximum time to establish a connection",
    )

    def retry_policy(self) -> RetryPolicy:
        """Build the retrier's policy."""
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.retry_base_delay_seconds,
            overall_timeout=self.overall_timeout_seconds,
            chunk_timeout=self.chunk_timeout_seconds,
        )


class InterpreterConfig(BaseModel):
    """Event interpretation configuration."""

    resync_threshold: int = Field(
        default=10,
        ge=0,
        description="Characters the complete answer may run ahead before resync",
    )


class PacingConfig(BaseModel):
    """Typewriter pacing configuration (milliseconds)."""

    enabled: bool = Field(default=True, description="Reveal text at a typing pace")
    base_delay_ms: float = Field(default=3.0, ge=0, description="Minimum per-char delay")
    sentence_pause_ms: float = Field(default=12.0, ge=0, description="Extra pause after . ! ?")
    sentence_jitter_ms: float = Field(default=8.0, ge=0, description="Random spread after . ! ?")
    clause_pause_ms: float = Field(default=6.0, ge=0, description="Extra pause after , ; :")
    clause_jitter_ms: float = Field(default=4.0, ge=0, description="Random spread after , ; :")
    word_pause_ms: float = Field(default=2.0, ge=0, description="Extra pause after a space")
    word_jitter_ms: float = Field(default=3.0, ge=0, description="Random spread after a space")
    hesitation_probability: float = Field(
        default=0.05,
        ge=0,
        le=1.0,
        description="Chance of a short hesitation on any other character",
    )
    hesitation_pause_ms: float = Field(default=3.0, ge=0, description="Extra hesitation pause")
    hesitation_jitter_ms: float = Field(default=4.0, ge=0, description="Random hesitation spread")
    char_jitter_ms: float = Field(default=2.0, ge=0, description="Random spread per character")

    def profile(self) -> TypingProfile:
        """Build the typing profile."""
        return TypingProfile(
            base_ms=self.base_delay_ms,
            sentence_offset_ms=self.sentence_pause_ms,
            sentence_jitter_ms=self.sentence_jitter_ms,
            clause_offset_ms=self.clause_pause_ms,
            clause_jitter_ms=self.clause_jitter_ms,
            word_offset_ms=self.word_pause_ms,
            word_jitter_ms=self.word_jitter_ms,
            hesitation_probability=self.hesitation_probability,
            hesitation_offset_ms=self.hesitation_pause_ms,
            hesitation_jitter_ms=self.hesitation_jitter_ms,
            char_jitter_ms=self.char_jitter_ms,
        )

    def delay_strategy(self) -> DelayStrategy:
        """Build a delay strategy; zero delay when pacing is disabled."""
        if not self.enabled:
            return FixedDelay(0.0)
        return HumanTypingDelay(self.profile())


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for answerstream.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    client: ClientConfig = Field(default_factory=ClientConfig)
    endpoint: EndpointConfig = Field(default_factory=EndpointConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    interpreter: InterpreterConfig = Field(default_factory=InterpreterConfig)
    pacing: PacingConfig = Field(default_factory=PacingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    # Build settings object
    settings = Settings.model_validate(config_data)

    return settings


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Endpoint settings
    if env_url := os.environ.get("ANSWERSTREAM_API_URL"):
        config_data.setdefault("endpoint", {})["base_url"] = env_url
    if env_conciseness := os.environ.get("ANSWERSTREAM_CONCISENESS"):
        config_data.setdefault("endpoint", {})["conciseness"] = env_conciseness

    # Transport settings
    if env_timeout := os.environ.get("ANSWERSTREAM_TIMEOUT"):
        config_data.setdefault("transport", {})["overall_timeout_seconds"] = float(env_timeout)
    if env_chunk := os.environ.get("ANSWERSTREAM_CHUNK_TIMEOUT"):
        config_data.setdefault("transport", {})["chunk_timeout_seconds"] = float(env_chunk)
    if env_attempts := os.environ.get("ANSWERSTREAM_MAX_ATTEMPTS"):
        config_data.setdefault("transport", {})["max_attempts"] = int(env_attempts)
    if env_delay := os.environ.get("ANSWERSTREAM_RETRY_DELAY"):
        config_data.setdefault("transport", {})["retry_base_delay_seconds"] = float(env_delay)

    # Interpreter settings
    if env_resync := os.environ.get("ANSWERSTREAM_RESYNC_THRESHOLD"):
        config_data.setdefault("interpreter", {})["resync_threshold"] = int(env_resync)

    # Pacing settings
    if env_typing := os.environ.get("ANSWERSTREAM_TYPING"):
        config_data.setdefault("pacing", {})["enabled"] = env_typing.lower() not in ("0", "false", "no", "off")

    # Logging settings
    if env_log := os.environ.get("ANSWERSTREAM_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load settings once, on first use."""
    return load_config()
