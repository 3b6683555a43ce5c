"""
Plain-HTTP text-generation clients (requests).

OpenAI and any OpenAI-compatible local server (LM Studio) share the chat
completions request; Anthropic uses the messages API. Every failure mode
(connection, non-2xx, unexpected JSON, empty text) surfaces as
ProviderError.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from slippi_coach.commentary.llm_client import DEFAULT_SYSTEM_PROMPT, LLMClient
from slippi_coach.config import DEFAULT_LM_STUDIO_ENDPOINT, DEFAULT_MODEL_NAMES
from slippi_coach.exceptions import ProviderError

logger = logging.getLogger(__name__)

# (connect, read) seconds; read is overridden by the client's timeout.
CONNECT_TIMEOUT_S = 3.0


class _HTTPClient(LLMClient):
    def __init__(self, timeout_s: float = 15.0) -> None:
        self.timeout_s = timeout_s
        self.session = requests.Session()

    def _post(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
        try:
            r = self.session.post(
                url,
                json=payload,
                headers=headers,
                timeout=(CONNECT_TIMEOUT_S, max(CONNECT_TIMEOUT_S, self.timeout_s)),
            )
        except requests.RequestException as exc:
            raise ProviderError(f"{self.name} request failed: {exc}", provider=self.name) from exc

        if r.status_code != 200:
            body = r.text[:500]
            logger.warning("[%s] status=%s body=%s", self.name, r.status_code, body)
            raise ProviderError(f"{self.name} returned HTTP {r.status_code}", provider=self.name)

        try:
            data = r.json()
        except ValueError as exc:
            raise ProviderError(f"{self.name} returned invalid JSON", provider=self.name) from exc
        if not isinstance(data, dict):
            raise ProviderError(
                f"{self.name} returned an unexpected response structure", provider=self.name
            )
        return data


class OpenAIClient(_HTTPClient):
    """OpenAI chat completions API."""

    name = "openai"
    base_url = "https://api.openai.com/v1"

    def __init__(
        self,
        api_key: str,
        model_name: Optional[str] = None,
        timeout_s: float = 15.0,
    ) -> None:
        super().__init__(timeout_s)
        self.api_key = api_key
        self.model_name = model_name or DEFAULT_MODEL_NAMES["openai"]

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def generate_completion(
        self,
        prompt: str,
        max_tokens: int = 100,
        temperature: float = 0.7,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> str:
        payload = {
            "model": self.model_name,
            "max_tokens": int(max_tokens),
            "temperature": float(temperature),
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
        }
        logger.debug("[%s] generating with %s", self.name, self.model_name)
        data = self._post(f"{self.base_url}/chat/completions", payload, self._headers())

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError(
                f"{self.name} returned an unexpected response structure", provider=self.name
            ) from exc
        if content is not None and not isinstance(content, str):
            raise ProviderError(
                f"{self.name} returned non-text message content", provider=self.name
            )
        out = (content or "").strip()
        if not out:
            raise ProviderError(f"{self.name} returned no text content", provider=self.name)
        return out


class LMStudioClient(OpenAIClient):
    """Local OpenAI-compatible endpoint (LM Studio, llama.cpp server, ...)."""

    name = "lmstudio"

    def __init__(
        self,
        endpoint: Optional[str] = None,
        model_name: Optional[str] = None,
        timeout_s: float = 15.0,
    ) -> None:
        super().__init__(
            api_key="",
            model_name=model_name or DEFAULT_MODEL_NAMES["lmstudio"],
            timeout_s=timeout_s,
        )
        self.base_url = (endpoint or DEFAULT_LM_STUDIO_ENDPOINT).rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}


class AnthropicClient(_HTTPClient):
    """Anthropic messages API."""

    name = "anthropic"
    base_url = "https://api.anthropic.com/v1"

    def __init__(
        self,
        api_key: str,
        model_name: Optional[str] = None,
        timeout_s: float = 15.0,
    ) -> None:
        super().__init__(timeout_s)
        self.api_key = api_key
        self.model_name = model_name or DEFAULT_MODEL_NAMES["anthropic"]

    def generate_completion(
        self,
        prompt: str,
        max_tokens: int = 100,
        temperature: float = 0.7,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> str:
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
            "content-type": "application/json",
        }
        payload = {
            "model": self.model_name,
            "max_tokens": int(max_tokens),
            "temperature": float(temperature),
            "system": system_prompt,
            "messages": [{"role": "user", "content": prompt}],
        }
        logger.debug("[%s] generating with %s", self.name, self.model_name)
        data = self._post(f"{self.base_url}/messages", payload, headers)

        blocks = data.get("content")
        if not isinstance(blocks, list):
            raise ProviderError(
                f"{self.name} returned an unexpected response structure", provider=self.name
            )
        out = "".join(
            block["text"]
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        ).strip()
        if not out:
            raise ProviderError(f"{self.name} returned no text content", provider=self.name)
        return out
