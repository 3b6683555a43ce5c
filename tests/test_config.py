"""Tests for slippi_coach.config."""

from __future__ import annotations

import dataclasses

import pytest

from slippi_coach.config import (
    BatchConfig,
    CacheConfig,
    CoachConfig,
    ProviderConfig,
    ThrottleConfig,
)
from slippi_coach.exceptions import ConfigurationError

ENV_VARS = [
    "SLIPPI_COACH_PROVIDER",
    "SLIPPI_COACH_API_KEY",
    "SLIPPI_COACH_MODEL",
    "SLIPPI_COACH_ENDPOINT",
    "SLIPPI_COACH_STYLE",
    "SLIPPI_COACH_BATCH_SIZE",
    "SLIPPI_COACH_BATCH_INTERVAL_MS",
    "SLIPPI_COACH_STOCK_LOSS_MS",
    "SLIPPI_COACH_SIGNIFICANT_COMBO_MS",
    "SLIPPI_COACH_MINOR_COMBO_MS",
    "SLIPPI_COACH_NEUTRAL_EXCHANGE_MS",
    "SLIPPI_COACH_FRAME_UPDATE_MS",
    "SLIPPI_COACH_PROVIDER_TIMEOUT_S",
    "SLIPPI_COACH_PER_PLAYER_STOCK_THROTTLE",
    "SLIPPI_COACH_CACHE_TTL_S",
    "SLIPPI_COACH_CACHE_MAX_ENTRIES",
    "OPENAI_API_KEY",
    "GEMINI_API_KEY",
    "ANTHROPIC_API_KEY",
    "LM_STUDIO_ENDPOINT",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in ENV_VARS:
        # setenv first so teardown also removes anything load_dotenv writes
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestDefaults:
    def test_defaults(self) -> None:
        config = CoachConfig()
        assert config.throttle == ThrottleConfig(
            stock_loss_ms=1000,
            significant_combo_ms=1500,
            minor_combo_ms=2500,
            neutral_exchange_ms=5000,
            frame_update_ms=10000,
            per_player_stock_throttle=False,
        )
        assert config.batch == BatchConfig(batch_size=3, interval_ms=1500)
        assert config.cache == CacheConfig(ttl_s=30, max_entries=100)
        assert config.provider.name == "template"
        assert config.style == "hype"

    @pytest.mark.parametrize("cls", [ThrottleConfig, BatchConfig, CacheConfig, ProviderConfig, CoachConfig])
    def test_frozen(self, cls: type) -> None:
        instance = cls()
        first_field = dataclasses.fields(instance)[0].name
        with pytest.raises(dataclasses.FrozenInstanceError):
            setattr(instance, first_field, None)


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"batch": BatchConfig(batch_size=0)},
            {"batch": BatchConfig(interval_ms=0)},
            {"cache": CacheConfig(max_entries=0)},
            {"cache": CacheConfig(ttl_s=0)},
            {"throttle": ThrottleConfig(stock_loss_ms=-1)},
            {"style": "whisper"},
            {"provider": ProviderConfig(provider="carrier-pigeon")},
        ],
    )
    def test_invalid_values_rejected(self, kwargs) -> None:
        with pytest.raises(ConfigurationError):
            CoachConfig(**kwargs)

    @pytest.mark.parametrize(
        "alias, canonical",
        [("claude", "anthropic"), ("google", "gemini"), ("local", "lmstudio"), ("none", "template"), ("OpenAI", "openai")],
    )
    def test_provider_aliases(self, alias: str, canonical: str) -> None:
        assert ProviderConfig(provider=alias).name == canonical

    def test_model_name_default_per_provider(self) -> None:
        assert ProviderConfig(provider="openai").model_name
        assert ProviderConfig(provider="openai", model="gpt-x").model_name == "gpt-x"


class TestFromEnv:
    def test_empty_env_gives_defaults(self, clean_env: pytest.MonkeyPatch) -> None:
        assert CoachConfig.from_env() == CoachConfig()

    def test_reads_overrides(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("SLIPPI_COACH_STYLE", "technical")
        clean_env.setenv("SLIPPI_COACH_BATCH_SIZE", "5")
        clean_env.setenv("SLIPPI_COACH_STOCK_LOSS_MS", "750")
        clean_env.setenv("SLIPPI_COACH_PER_PLAYER_STOCK_THROTTLE", "true")
        clean_env.setenv("SLIPPI_COACH_CACHE_MAX_ENTRIES", "10")
        config = CoachConfig.from_env()
        assert config.style == "technical"
        assert config.batch.batch_size == 5
        assert config.throttle.stock_loss_ms == 750
        assert config.throttle.per_player_stock_throttle is True
        assert config.cache.max_entries == 10

    def test_vendor_key_picked_up(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("SLIPPI_COACH_PROVIDER", "openai")
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        config = CoachConfig.from_env()
        assert config.provider.name == "openai"
        assert config.provider.api_key == "sk-test"

    def test_lmstudio_endpoint(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("SLIPPI_COACH_PROVIDER", "lmstudio")
        clean_env.setenv("LM_STUDIO_ENDPOINT", "http://127.0.0.1:9999/v1")
        assert CoachConfig.from_env().provider.endpoint == "http://127.0.0.1:9999/v1"

    def test_dotenv_file_loaded(self, clean_env: pytest.MonkeyPatch, tmp_path) -> None:
        env_file = tmp_path / "coach.env"
        env_file.write_text("SLIPPI_COACH_STYLE=analytical\n")
        assert CoachConfig.from_env(str(env_file)).style == "analytical"

    def test_invalid_env_rejected(self, clean_env: pytest.MonkeyPatch) -> None:
        clean_env.setenv("SLIPPI_COACH_BATCH_SIZE", "0")
        with pytest.raises(ConfigurationError):
            CoachConfig.from_env()
