from __future__ import annotations

import asyncio
import logging
import random
from typing import Dict, List, Optional, Sequence

from slippi_coach.commentary.cache import NarrationCache, make_key
from slippi_coach.commentary.llm_client import LLMClient
from slippi_coach.commentary.prompting import (
    NARRATION_MAX_TOKENS,
    MatchContext,
    build_narration_prompt,
    get_style,
)
from slippi_coach.commentary.templates import render_batch
from slippi_coach.events.schema import CandidateEvent
from slippi_coach.exceptions import ProviderError

logger = logging.getLogger(__name__)


class NarrationDispatcher:
    """
    Turn a batch of admitted events into one line of commentary.

    Lookup order is cache, then the text provider, then templates. The
    provider is a blocking client, so calls run in a worker thread.
    Concurrent requests for the same cache key share one generation, and
    a generation outlives a cancelled caller so its result still lands in
    the cache.

    Parameters
    ----------
    llm_client : LLMClient, optional
        None means template-only narration.
    cache : NarrationCache, optional
        Shared across matches; a fresh default cache if omitted.
    style : str
        Default narration style when ``narrate`` is not given one.
    rng : random.Random, optional
        Source of template choices (seed it for reproducible output).
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        cache: Optional[NarrationCache] = None,
        style: str = "hype",
        rng: Optional[random.Random] = None,
    ) -> None:
        self.llm_client = llm_client
        self.cache = cache if cache is not None else NarrationCache()
        self.style = style
        self._rng = rng or random.Random()
        self._inflight: Dict[str, asyncio.Task] = {}

        self.provider_calls = 0
        self.provider_failures = 0
        self.template_renders = 0

    async def narrate(
        self,
        handle: str,
        batch: Sequence[CandidateEvent],
        context: Optional[MatchContext] = None,
        style: Optional[str] = None,
    ) -> str:
        """
        Produce narration for ``batch``.

        Never raises for provider trouble: a ProviderError falls back to
        templates, and templates always produce text.
        """
        style = style or self.style
        key = make_key(batch, style)

        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("%s: narration cache hit", handle)
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.get_running_loop().create_task(
                self._generate(handle, key, list(batch), context, style)
            )
            self._inflight[key] = task
        else:
            logger.debug("%s: joining in-flight narration", handle)
        return await asyncio.shield(task)

    async def _generate(
        self,
        handle: str,
        key: str,
        batch: List[CandidateEvent],
        context: Optional[MatchContext],
        style: str,
    ) -> str:
        try:
            text: Optional[str] = None
            if self.llm_client is not None:
                text = await self._from_provider(handle, batch, context, style)
            if text is None:
                roster = context.roster if context is not None else None
                text = render_batch(batch, roster, self._rng)
                self.template_renders += 1
            self.cache.put(key, text)
            return text
        finally:
            self._inflight.pop(key, None)

    async def _from_provider(
        self,
        handle: str,
        batch: List[CandidateEvent],
        context: Optional[MatchContext],
        style: str,
    ) -> Optional[str]:
        prompt = build_narration_prompt(batch, context, style)
        settings = get_style(style)
        self.provider_calls += 1
        try:
            return await asyncio.to_thread(
                self.llm_client.generate_completion,
                prompt,
                NARRATION_MAX_TOKENS,
                settings.temperature,
                settings.system_prompt,
            )
        except ProviderError as exc:
            self.provider_failures += 1
            logger.warning("%s: %s narration failed, using templates: %s", handle, self.llm_client.name, exc)
            return None

    async def close(self) -> None:
        """Cancel generations still in flight."""
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()
