from __future__ import annotations

import logging
from typing import Optional

from slippi_coach.commentary.http_clients import AnthropicClient, LMStudioClient, OpenAIClient
from slippi_coach.commentary.llm_client import GeminiClient, LLMClient
from slippi_coach.config import ProviderConfig
from slippi_coach.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def create_llm_client(config: ProviderConfig) -> Optional[LLMClient]:
    """
    Instantiate the text-generation client named by ``config.provider``.

    Returns None for the template provider (no LLM at all).

    Raises
    ------
    ConfigurationError
        For an unknown provider, or a hosted provider without an API key.
    """
    name = config.name
    if name == "template":
        return None

    if name == "lmstudio":
        client: LLMClient = LMStudioClient(
            endpoint=config.endpoint, model_name=config.model, timeout_s=config.timeout_s
        )
    elif name == "openai":
        client = OpenAIClient(
            api_key=_require_key(config), model_name=config.model, timeout_s=config.timeout_s
        )
    elif name == "anthropic":
        client = AnthropicClient(
            api_key=_require_key(config), model_name=config.model, timeout_s=config.timeout_s
        )
    elif name == "gemini":
        try:
            client = GeminiClient(model_name=config.model, api_key=config.api_key)
        except ValueError as exc:
            # the SDK refuses to build a client without any key
            raise ConfigurationError(f"Gemini client could not be created: {exc}") from exc
    else:
        raise ConfigurationError(f"Unknown provider type: {config.provider!r}")

    logger.info("using %s provider (model %s)", client.name, config.model_name)
    return client


def _require_key(config: ProviderConfig) -> str:
    if not config.api_key:
        raise ConfigurationError(f"{config.name} provider requires an API key")
    return config.api_key
