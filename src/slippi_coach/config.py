"""
Configuration for the Slippi commentary core.

Tunables live in frozen dataclasses with usable defaults, so a bare
``CoachConfig()`` is always valid and runs template-only narration.
``CoachConfig.from_env()`` layers environment variables (and a ``.env``
file, via python-dotenv) on top of those defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from dotenv import load_dotenv

from slippi_coach.exceptions import ConfigurationError

# Default text model per provider. Overridable per provider via env vars.
DEFAULT_MODEL_NAMES: Dict[str, str] = {
    "gemini": os.getenv("GEMINI_MODEL_NAME", "gemini-2.0-flash"),
    "openai": os.getenv("OPENAI_MODEL_NAME", "gpt-4o-mini"),
    "anthropic": os.getenv("ANTHROPIC_MODEL_NAME", "claude-3-5-haiku-latest"),
    "lmstudio": os.getenv("LM_STUDIO_MODEL_NAME", "local-model"),
}

DEFAULT_LM_STUDIO_ENDPOINT = "http://localhost:1234/v1"

PROVIDER_ALIASES: Dict[str, str] = {
    "template": "template",
    "none": "template",
    "gemini": "gemini",
    "google": "gemini",
    "openai": "openai",
    "anthropic": "anthropic",
    "claude": "anthropic",
    "lmstudio": "lmstudio",
    "local": "lmstudio",
}

NARRATION_STYLES = ("technical", "hype", "educational", "analytical")

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class ThrottleConfig:
    """
    Minimum re-fire interval per event class, in milliseconds.

    ``per_player_stock_throttle`` keys the stock-loss bucket by player as
    well as by match, so one player's stock loss cannot suppress another's.
    """

    stock_loss_ms: float = 1000.0
    significant_combo_ms: float = 1500.0
    minor_combo_ms: float = 2500.0
    neutral_exchange_ms: float = 5000.0
    frame_update_ms: float = 10000.0
    per_player_stock_throttle: bool = False


@dataclass(frozen=True)
class BatchConfig:
    batch_size: int = 3
    interval_ms: float = 1500.0


@dataclass(frozen=True)
class CacheConfig:
    ttl_s: float = 30.0
    max_entries: int = 100


@dataclass(frozen=True)
class ProviderConfig:
    """
    Which text-generation backend to use.

    ``provider="template"`` disables LLM calls entirely.
    """

    provider: str = "template"
    model: Optional[str] = None
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    timeout_s: float = 15.0

    @property
    def name(self) -> str:
        return PROVIDER_ALIASES.get(self.provider.strip().lower(), self.provider)

    @property
    def model_name(self) -> str:
        return self.model or DEFAULT_MODEL_NAMES.get(self.name, "")


@dataclass(frozen=True)
class CoachConfig:
    """
    Top-level configuration for a coaching session.

    Raises
    ------
    ConfigurationError
        If any value is out of range or names an unknown style/provider.
    """

    throttle: ThrottleConfig = field(default_factory=ThrottleConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    style: str = "hype"
    log_level: str = "INFO"
    log_format: str = DEFAULT_LOG_FORMAT

    def __post_init__(self) -> None:
        if self.batch.batch_size < 1:
            raise ConfigurationError(
                f"batch_size must be at least 1, got {self.batch.batch_size}"
            )
        if self.batch.interval_ms <= 0:
            raise ConfigurationError(
                f"interval_ms must be positive, got {self.batch.interval_ms}"
            )
        if self.cache.max_entries < 1:
            raise ConfigurationError(
                f"cache max_entries must be at least 1, got {self.cache.max_entries}"
            )
        if self.cache.ttl_s <= 0:
            raise ConfigurationError(f"cache ttl_s must be positive, got {self.cache.ttl_s}")

        thresholds = (
            self.throttle.stock_loss_ms,
            self.throttle.significant_combo_ms,
            self.throttle.minor_combo_ms,
            self.throttle.neutral_exchange_ms,
            self.throttle.frame_update_ms,
        )
        if any(t < 0 for t in thresholds):
            raise ConfigurationError("throttle thresholds must be non-negative")

        if self.style not in NARRATION_STYLES:
            raise ConfigurationError(
                f"style must be one of {NARRATION_STYLES}, got {self.style!r}"
            )
        if self.provider.name not in DEFAULT_MODEL_NAMES and self.provider.name != "template":
            raise ConfigurationError(f"Unknown provider type: {self.provider.provider!r}")

    @classmethod
    def from_env(cls, dotenv_path: Optional[str] = None) -> "CoachConfig":
        """
        Build a config from ``SLIPPI_COACH_*`` environment variables.

        A ``.env`` file is loaded first (without overriding variables that
        are already set). Vendor API keys are read from their usual names:
        GEMINI_API_KEY, OPENAI_API_KEY, ANTHROPIC_API_KEY; the local
        endpoint from LM_STUDIO_ENDPOINT.
        """
        load_dotenv(dotenv_path)

        provider_name = os.getenv("SLIPPI_COACH_PROVIDER", "template")
        canonical = PROVIDER_ALIASES.get(provider_name.strip().lower(), provider_name)
        api_key = os.getenv("SLIPPI_COACH_API_KEY") or _vendor_api_key(canonical)
        endpoint = os.getenv("SLIPPI_COACH_ENDPOINT")
        if endpoint is None and canonical == "lmstudio":
            endpoint = os.getenv("LM_STUDIO_ENDPOINT", DEFAULT_LM_STUDIO_ENDPOINT)

        return cls(
            throttle=ThrottleConfig(
                stock_loss_ms=float(os.getenv("SLIPPI_COACH_STOCK_LOSS_MS", "1000")),
                significant_combo_ms=float(os.getenv("SLIPPI_COACH_SIGNIFICANT_COMBO_MS", "1500")),
                minor_combo_ms=float(os.getenv("SLIPPI_COACH_MINOR_COMBO_MS", "2500")),
                neutral_exchange_ms=float(os.getenv("SLIPPI_COACH_NEUTRAL_EXCHANGE_MS", "5000")),
                frame_update_ms=float(os.getenv("SLIPPI_COACH_FRAME_UPDATE_MS", "10000")),
                per_player_stock_throttle=os.getenv(
                    "SLIPPI_COACH_PER_PLAYER_STOCK_THROTTLE", "false"
                ).lower() == "true",
            ),
            batch=BatchConfig(
                batch_size=int(os.getenv("SLIPPI_COACH_BATCH_SIZE", "3")),
                interval_ms=float(os.getenv("SLIPPI_COACH_BATCH_INTERVAL_MS", "1500")),
            ),
            cache=CacheConfig(
                ttl_s=float(os.getenv("SLIPPI_COACH_CACHE_TTL_S", "30")),
                max_entries=int(os.getenv("SLIPPI_COACH_CACHE_MAX_ENTRIES", "100")),
            ),
            provider=ProviderConfig(
                provider=provider_name,
                model=os.getenv("SLIPPI_COACH_MODEL"),
                api_key=api_key,
                endpoint=endpoint,
                timeout_s=float(os.getenv("SLIPPI_COACH_PROVIDER_TIMEOUT_S", "15")),
            ),
            style=os.getenv("SLIPPI_COACH_STYLE", "hype"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", DEFAULT_LOG_FORMAT),
        )


def _vendor_api_key(provider: str) -> Optional[str]:
    env_name = {
        "gemini": "GEMINI_API_KEY",
        "openai": "OPENAI_API_KEY",
        "anthropic": "ANTHROPIC_API_KEY",
    }.get(provider)
    return os.getenv(env_name) if env_name else None


def configure_logging(level: str = "INFO", fmt: str = DEFAULT_LOG_FORMAT) -> None:
    """Configure root logging for command-line entry points."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=fmt,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
