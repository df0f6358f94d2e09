"""Tips generator — short improvement advice from Claude, with a static fallback.

Wraps the Anthropic AsyncAnthropic client with:
  - tenacity retries for rate limits and connection errors,
  - an overall ``asyncio.wait_for`` timeout so a slow provider never holds up
    a benchmark request,
  - a fixed fallback string returned on any failure.

:meth:`TipsGenerator.generate_tips` never raises.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from anthropic import AsyncAnthropic, APIConnectionError, RateLimitError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from argus.config import settings

logger = logging.getLogger("argus.benchmarking.tips")

FALLBACK_TIPS = "Keep tracking your portfolio and follow the recommendations."

_RETRY_EXCEPTIONS = (RateLimitError, APIConnectionError)

_retry_policy = dict(
    retry=retry_if_exception_type(_RETRY_EXCEPTIONS),
    stop=stop_after_attempt(2),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)

_SYSTEM_PROMPT = (
    "You are an expert personal-finance and insurance advisor. "
    "Give short, direct tips."
)

_TIPS_PROMPT = """\
A client has an insurance portfolio performance score of {user_score} against \
an age cohort whose average is {average:.1f}. They are at the {percentile}th \
percentile.

Give 3-4 concrete, practical tips to improve their standing (no more than 150 \
words). Focus on specific actions, not buzzwords.
"""


def build_tips_prompt(user_score: int, average: Optional[float], percentile: int) -> str:
    return _TIPS_PROMPT.format(
        user_score=user_score,
        average=average if average is not None else float(user_score),
        percentile=percentile,
    )


class TipsGenerator:
    """Generates benchmark tips via Claude; falls back to a static string."""

    def __init__(
        self,
        client: Optional[AsyncAnthropic] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        if client is None and settings.anthropic_api_key:
            client = AsyncAnthropic(api_key=settings.anthropic_api_key)
        self._client = client
        self._timeout = (
            timeout_seconds if timeout_seconds is not None else settings.tips_timeout_seconds
        )

    async def generate_tips(
        self, user_score: int, average: Optional[float], percentile: int
    ) -> str:
        if self._client is None:
            return FALLBACK_TIPS

        prompt = build_tips_prompt(user_score, average, percentile)
        try:
            text = await asyncio.wait_for(self._complete(prompt), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Tips generation timed out after %.1fs", self._timeout)
            return FALLBACK_TIPS
        except Exception as exc:
            logger.warning("Tips generation failed: %s", exc)
            return FALLBACK_TIPS

        return text.strip() or FALLBACK_TIPS

    @retry(**_retry_policy)
    async def _complete(self, prompt: str) -> str:
        response = await self._client.messages.create(
            model=settings.tips_model,
            max_tokens=settings.tips_max_tokens,
            system=_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
        )
        parts = [
            block.text for block in response.content if getattr(block, "type", "") == "text"
        ]
        return "".join(parts)

    async def close(self) -> None:
        """Release the underlying HTTP client, if one was created."""
        if self._client is not None:
            await self._client.close()
