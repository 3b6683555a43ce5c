"""
Commentary generation components.

- llm_client: text-provider abstraction and the Gemini client.
- http_clients: OpenAI, Anthropic and LM Studio clients over HTTP.
- providers: pick a client from configuration.
- prompting: narration and coaching prompt construction.
- templates: deterministic fallback phrasings.
- cache: NarrationCache shared across matches.
- engine: NarrationDispatcher (cache -> provider -> templates).
- coaching: MatchSummaryBuilder for end-of-match feedback.
"""

from .cache import NarrationCache  # noqa: F401
from .coaching import MatchSummaryBuilder  # noqa: F401
from .engine import NarrationDispatcher  # noqa: F401
from .llm_client import LLMClient  # noqa: F401
from .prompting import MatchContext  # noqa: F401
from .providers import create_llm_client  # noqa: F401
