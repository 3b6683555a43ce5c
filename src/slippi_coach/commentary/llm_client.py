from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types

from slippi_coach.config import DEFAULT_MODEL_NAMES
from slippi_coach.exceptions import ProviderError

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."


class LLMClient(ABC):
    """
    The one capability the commentary core needs from a text model.

    Implementations must raise ProviderError for any transport, auth or
    response-format failure, including an empty completion.
    """

    name: str = "base"

    @abstractmethod
    def generate_completion(
        self,
        prompt: str,
        max_tokens: int = 100,
        temperature: float = 0.7,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> str:
        """Return the completion text for ``prompt``."""

    def test_connection(self) -> Dict[str, Any]:
        """
        Send a tiny prompt and report whether the backend answered.

        Never raises; failures are reported in the returned dict.
        """
        try:
            response = self.generate_completion(
                "Test connection",
                max_tokens=10,
                temperature=0.1,
                system_prompt='Respond with "Connected" if you can read this.',
            )
        except ProviderError as exc:
            return {"success": False, "error": str(exc), "provider": self.name}
        return {"success": True, "response": response, "provider": self.name}


class GeminiClient(LLMClient):
    """
    Thin wrapper around the Gemini client.

    Usage:
        llm = GeminiClient(api_key="...")
        text = llm.generate_completion("Say hello", max_tokens=20)
    """

    name = "gemini"

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
    ) -> None:
        self.model_name = model_name or DEFAULT_MODEL_NAMES["gemini"]

        # Prefer explicit key; otherwise let the SDK read GEMINI_API_KEY/GOOGLE_API_KEY.
        if api_key is not None:
            self.client = genai.Client(api_key=api_key)
        else:
            self.client = genai.Client()

    def generate_completion(
        self,
        prompt: str,
        max_tokens: int = 100,
        temperature: float = 0.7,
        system_prompt: str = DEFAULT_SYSTEM_PROMPT,
    ) -> str:
        logger.debug("[%s] prompt sent to %s:\n%s", self.name, self.model_name, prompt)

        config = types.GenerateContentConfig(
            system_instruction=system_prompt.strip(),
            max_output_tokens=max_tokens,
            temperature=temperature,
        )

        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=config,
            )
        except Exception as exc:
            raise ProviderError(f"Gemini request failed: {exc}", provider=self.name) from exc

        text = _extract_text(response)
        logger.debug("[%s] extracted text: %r", self.name, text)
        if not text:
            raise ProviderError("Gemini returned no text content", provider=self.name)
        return text


def _extract_text(response: Any) -> str:
    # Primary path: use the convenience .text property.
    try:
        text = (getattr(response, "text", None) or "").strip()
    except ValueError:
        # .text raises when the only candidate was blocked
        text = ""
    if text:
        return text

    # Fallback: manually reconstruct from candidates if .text is empty.
    text_parts: List[str] = []
    candidates = getattr(response, "candidates", None) or []
    for cand in candidates:
        content = getattr(cand, "content", None)
        if not content:
            continue
        parts = getattr(content, "parts", None) or []
        for part in parts:
            part_text = getattr(part, "text", None)
            if part_text:
                text_parts.append(part_text)
    return " ".join(text_parts).strip()
