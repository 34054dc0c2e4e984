"""
Analysis Augmentation Client

Asks a chat-completion backend for recommendations, an insight and a
forecast about a data payload, and always comes back with an
AnalysisResult: either the validated model output or the canned analysis
registered for the requested kind.

Flow:
1. Resolve the analysis kind (traffic, resource, environment, population)
2. One POST to the backend, bounded by a hard timeout
3. Extract JSON from the reply (fenced block first, else the whole body)
4. Validate; anything unusable selects the canned fallback

Usage:
    client = build_analysis_client(session=session)
    result = await client.analyze({"results": metrics}, "traffic")
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, NamedTuple, Optional

import aiohttp
from pydantic import BaseModel, Field, ValidationError

from llm.prompts import DEFAULT_KIND, build_prompt, fallback_fields, resolve_kind
from utils.config_loader import get_secret, get_section
from utils.json_parser import extract_json_from_response

logger = logging.getLogger(__name__)

DEFAULT_URL = "https://api.deepseek.com/v1/chat/completions"
DEFAULT_MODEL = "deepseek-chat"
DEFAULT_TIMEOUT_S = 8.0


class AnalysisResult(BaseModel):
    recommendations: List[str] = Field(min_length=1)
    insights: str
    forecast: str
    metrics: Optional[Dict[str, float]] = None


class AnalysisOutcome(NamedTuple):
    result: AnalysisResult
    kind: str
    used_fallback: bool


def fallback_analysis(kind: Optional[str]) -> AnalysisResult:
    """Canned analysis for a kind; unknown kinds get the traffic one."""
    return AnalysisResult(**fallback_fields(resolve_kind(kind)))


def parse_analysis(text: Optional[str]) -> Optional[AnalysisResult]:
    """
    Turn model output into an AnalysisResult.

    Returns:
        The validated result, or None if the text holds no usable analysis
    """
    data = extract_json_from_response(text)
    if data is None:
        return None

    try:
        return AnalysisResult.model_validate(data)
    except ValidationError as e:
        logger.error(f"Analysis output failed validation ({e.error_count()} errors)")
        return None


class AnalysisClient:
    """
    Chat-completion client that never raises.

    Args:
        api_key: Bearer credential; without one every call returns the fallback
        url: Chat-completion endpoint
        model: Model name sent with each request
        temperature: Sampling temperature
        max_tokens: Completion length cap
        timeout_s: Hard limit on the whole request/response exchange
        session: Optional shared aiohttp session
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        url: str = DEFAULT_URL,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 800,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        session: Optional[aiohttp.ClientSession] = None,
        default_kind: str = DEFAULT_KIND,
    ):
        self.api_key = api_key.strip() if api_key and api_key.strip() else None
        self.url = url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s
        self.session = session
        self.default_kind = resolve_kind(default_kind)

    @property
    def configured(self) -> bool:
        return self.api_key is not None

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    async def analyze(self, payload: Any, kind: Optional[str] = None) -> AnalysisResult:
        """
        Analyze a payload.

        Args:
            payload: JSON-serializable data to analyze
            kind: Analysis kind or scenario name; unknown kinds use the default

        Returns:
            AnalysisResult (model output or canned fallback)
        """
        outcome = await self.analyze_with_outcome(payload, kind)
        return outcome.result

    async def analyze_with_outcome(self, payload: Any, kind: Optional[str] = None) -> AnalysisOutcome:
        """Like analyze(), but also reports whether the fallback was used."""
        resolved = resolve_kind(kind, self.default_kind)

        if not self.configured:
            logger.warning("Analysis API key not set; using canned analysis")
            return AnalysisOutcome(fallback_analysis(resolved), resolved, True)

        text = await self._complete(build_prompt(resolved, payload))
        result = parse_analysis(text) if text is not None else None

        if result is None:
            logger.warning(f"Falling back to canned {resolved} analysis")
            return AnalysisOutcome(fallback_analysis(resolved), resolved, True)

        logger.info(f"Received {resolved} analysis with {len(result.recommendations)} recommendations")
        return AnalysisOutcome(result, resolved, False)

    # =========================================================================
    # TRANSPORT
    # =========================================================================

    def request_body(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    @asynccontextmanager
    async def _session_scope(self):
        if self.session is not None:
            yield self.session
        else:
            async with aiohttp.ClientSession() as session:
                yield session

    async def _complete(self, prompt: str) -> Optional[str]:
        """
        Send one completion request.

        The timeout covers connecting, waiting and reading the body;
        expiry cancels the request.

        Returns:
            The reply text, or None on timeout, transport failure, non-2xx
            status or a reply without content
        """
        try:
            return await asyncio.wait_for(self._post(prompt), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            logger.warning(f"Analysis request timed out after {self.timeout_s}s")
            return None
        except aiohttp.ClientError as e:
            logger.error(f"Network error calling analysis backend: {e}")
            return None
        except ValueError as e:
            logger.error(f"Malformed analysis backend response: {e}")
            return None

    async def _post(self, prompt: str) -> Optional[str]:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        async with self._session_scope() as session:
            async with session.post(self.url, json=self.request_body(prompt), headers=headers) as response:
                if not 200 <= response.status < 300:
                    error_text = await response.text()
                    logger.error(f"Analysis backend error {response.status}: {error_text[:200]}")
                    return None
                data = await response.json(content_type=None)

        return self.message_content(data)

    @staticmethod
    def message_content(data: Any) -> Optional[str]:
        """Pull choices[0].message.content out of a completion response."""
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            logger.error("Analysis response has no choices[0].message.content")
            return None

        if not isinstance(content, str) or not content.strip():
            logger.error("Analysis response content is empty")
            return None
        return content


def build_analysis_client(
    session: Optional[aiohttp.ClientSession] = None,
    config: Optional[Dict[str, Any]] = None,
) -> AnalysisClient:
    """
    Create the client from the 'analysis' settings section.

    ANALYSIS_API_URL and ANALYSIS_MODEL override the configured endpoint
    and model; the key comes from the configured environment variable.
    """
    analysis_config = get_section("analysis", config)
    api_key = get_secret(analysis_config.get("api_key_env", "DEEPSEEK_API_KEY"))

    if api_key is None:
        logger.warning("No analysis API key configured; analysis will use canned results")

    return AnalysisClient(
        api_key=api_key,
        url=get_secret("ANALYSIS_API_URL") or analysis_config.get("url", DEFAULT_URL),
        model=get_secret("ANALYSIS_MODEL") or analysis_config.get("model", DEFAULT_MODEL),
        temperature=float(analysis_config.get("temperature", 0.7)),
        max_tokens=int(analysis_config.get("max_tokens", 800)),
        timeout_s=float(analysis_config.get("timeout_s", DEFAULT_TIMEOUT_S)),
        session=session,
        default_kind=analysis_config.get("default_kind", DEFAULT_KIND),
    )
