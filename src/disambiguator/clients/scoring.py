"""Async client for the external reasoning service that scores node pairs.

The client is a pure boundary call: one request per score() invocation, no
caching and no retries. Callers decide whether and when to score, which is
what keeps scoring at most once per Comparison.
"""

from __future__ import annotations

import json
import logging
import math
import re
import time
from collections.abc import Mapping
from typing import Any, Protocol

from openai import APIError, AsyncOpenAI
from pydantic import BaseModel, Field

from disambiguator.config import Settings, settings
from disambiguator.errors import ScoringError
from disambiguator.models.enums import Confidence

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 0.5
DEFAULT_CONFIDENCE = Confidence.MEDIUM
DEFAULT_REASONING = "No reasoning provided"

# First {...} block, possibly wrapped in prose or a markdown fence
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


SCORING_PROMPT = """\
You are an entity disambiguation assistant. Your task is to determine whether two \
nodes in a network represent the same real-world person or entity.

Node 1 Information:
{info_a}

Node 2 Information:
{info_b}

Analyze the information provided and determine:
1. Whether these two nodes likely represent the same person/entity
2. Your confidence level (high, medium, or low)
3. Your reasoning for the decision

Consider factors such as:
- Name similarity (including variations, nicknames, abbreviations)
- Location/affiliation overlap
- Professional information (companies, positions, education)
- Any other identifying information

Return ONLY a JSON object with the following structure:
{{
  "similarityScore": <number between 0.0 and 1.0, where 1.0 means definitely the same>,
  "confidence": <"high" | "medium" | "low">,
  "reasoning": <string explaining your analysis>
}}

Example response:
{{
  "similarityScore": 0.85,
  "confidence": "high",
  "reasoning": "Both nodes share the same full name (John Smith), work at the same \
company (Acme Corp), and are located in the same city (Boston)."
}}"""


class ScoreResult(BaseModel):
    """Normalized output of the scorer."""

    similarity_score: float = Field(ge=0.0, le=1.0)
    confidence: Confidence
    reasoning: str


class Scorer(Protocol):
    """Anything that can score a pair of attribute snapshots."""

    async def score(
        self,
        node_a_info: Mapping[str, Any],
        node_b_info: Mapping[str, Any],
    ) -> ScoreResult: ...


def build_prompt(node_a_info: Mapping[str, Any] | None, node_b_info: Mapping[str, Any] | None) -> str:
    """Render both snapshots into the disambiguation prompt."""
    info_a = (
        json.dumps(dict(node_a_info), indent=2, default=str)
        if node_a_info
        else "No information provided for node 1"
    )
    info_b = (
        json.dumps(dict(node_b_info), indent=2, default=str)
        if node_b_info
        else "No information provided for node 2"
    )
    return SCORING_PROMPT.format(info_a=info_a, info_b=info_b)


def _coerce_score(value: Any) -> float:
    # bool is an int subclass; "true" is not a score
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_SCORE
    if not math.isfinite(value):
        return DEFAULT_SCORE
    return max(0.0, min(1.0, float(value)))


def _coerce_confidence(value: Any) -> Confidence:
    try:
        return Confidence(value)
    except ValueError:
        return DEFAULT_CONFIDENCE


def parse_score_response(text: str) -> ScoreResult:
    """Parse and normalize the scorer's reply.

    Tolerates prose or markdown around the JSON object. Missing or invalid
    fields fall back to defaults instead of failing; only a reply with no
    parseable object at all raises.

    Raises:
        ScoringError: If no JSON object can be extracted.
    """
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        raise ScoringError("Could not parse LLM response as JSON")

    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ScoringError(f"Could not parse LLM response as JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ScoringError("Could not parse LLM response as JSON")

    reasoning = payload.get("reasoning")
    return ScoreResult(
        similarity_score=_coerce_score(payload.get("similarityScore")),
        confidence=_coerce_confidence(payload.get("confidence")),
        reasoning=reasoning if isinstance(reasoning, str) else DEFAULT_REASONING,
    )


class ScoringClient:
    """Scores node pairs through an OpenAI-compatible chat completion endpoint.

    Credentials are injected at construction; nothing is read from the
    environment on the call path.

    Usage:
        client = ScoringClient.from_settings()
        result = await client.score(node_a_info, node_b_info)
    """

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | None,
        model: str,
        timeout: float,
        log_api_calls: bool = False,
    ) -> None:
        self._model = model
        self._timeout = timeout
        self._log_api_calls = log_api_calls
        self._client: AsyncOpenAI | None = None
        if api_key:
            self._client = AsyncOpenAI(
                base_url=base_url,
                api_key=api_key,
                timeout=timeout,
                max_retries=0,
            )

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> ScoringClient:
        config = config or settings
        return cls(
            base_url=config.scoring_base_url,
            api_key=config.scoring_api_key,
            model=config.model_scoring,
            timeout=config.scoring_timeout_seconds,
            log_api_calls=config.log_api_calls,
        )

    async def score(
        self,
        node_a_info: Mapping[str, Any],
        node_b_info: Mapping[str, Any],
    ) -> ScoreResult:
        """Ask the reasoning service whether two snapshots are the same entity.

        Raises:
            ScoringError: Missing credentials, transport failure (including
                timeout), empty reply, or unparseable reply.
        """
        if self._client is None:
            raise ScoringError("Scoring API key is not configured (set SCORING_API_KEY)")

        prompt = build_prompt(node_a_info, node_b_info)
        start_time = time.time()

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIError as e:
            raise ScoringError(f"LLM API error: {e}") from e

        if self._log_api_calls:
            elapsed = (time.time() - start_time) * 1000  # ms
            logger.info("[SCORE] %s (%.0fms)", self._model, elapsed)

        text = response.choices[0].message.content if response.choices else None
        if not text:
            raise ScoringError("No response from LLM")

        return parse_score_response(text)
