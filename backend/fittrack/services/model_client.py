"""Bounded-time calls to the generative text backend.

One request per call, no retries: the OpenAI client's own retry loop is
disabled and the call races a hard wall-clock timeout. Backend failures are
classified so the caller can tell a rate limit (retry later) from a timeout
or an unknown error.
"""

import asyncio
import logging
import re
import time
from typing import Any

import openai
from openai import AsyncOpenAI

from fittrack.config import settings
from fittrack.services.errors import (
    ModelTimeoutError,
    RateLimitedError,
    ServiceUnavailableError,
    UnknownModelError,
)

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.4
DEFAULT_MAX_OUTPUT_TOKENS = 4096

# Error text that indicates throttling when no 429 status is available
_RATE_LIMIT_PATTERN = re.compile(
    r"rate[ _-]?limit|too many requests|quota|resource[ _]exhausted|\b429\b",
    re.IGNORECASE,
)

_SYSTEM_MESSAGE = "You are a backend service that only ever answers with one JSON object."


def _retry_after_hint(error: Exception, default: int) -> int:
    """Read a Retry-After header from the backend error, if it sent one."""
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if headers is not None:
        value = headers.get("retry-after")
        if value:
            try:
                return max(1, int(float(value)))
            except ValueError:
                pass
    return default


def is_rate_limit_error(error: Exception) -> bool:
    """Return True if ``error`` signals backend throttling."""
    if isinstance(error, openai.RateLimitError):
        return True
    if getattr(error, "status_code", None) == 429:
        return True
    code = getattr(error, "code", None)
    if isinstance(code, str) and _RATE_LIMIT_PATTERN.search(code):
        return True
    return bool(_RATE_LIMIT_PATTERN.search(str(error)))


class ModelInvoker:
    """Issue one bounded request to an OpenAI-compatible chat backend.

    Example:
        invoker = ModelInvoker()
        if invoker.configured:
            raw = await invoker.generate(prompt, temperature=0.3, max_output_tokens=2048)
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
        retry_after_seconds: int | None = None,
    ):
        """Initialize ModelInvoker.

        Args:
            client: Optional pre-configured AsyncOpenAI client (for testing).
                If not provided, one is created from settings when an API key
                is configured; otherwise the invoker reports unconfigured.
            model: Model name. Defaults to ``settings.ai_model``.
            timeout_seconds: Hard wall-clock limit per call.
            retry_after_seconds: Retry hint used when the backend rate-limits
                without sending its own.
        """
        self._timeout = settings.ai_timeout_seconds if timeout_seconds is None else timeout_seconds
        self._retry_after = (
            settings.ai_retry_after_seconds if retry_after_seconds is None else retry_after_seconds
        )
        self._model = model or settings.ai_model

        if client is not None:
            self._client: AsyncOpenAI | None = client
        elif settings.openai_api_key:
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=self._timeout,
                max_retries=0,
            )
        else:
            self._client = None

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def close(self) -> None:
        """Close the OpenAI client connection."""
        if self._client is not None:
            await self._client.close()

    async def generate(
        self,
        prompt: str,
        temperature: float = DEFAULT_TEMPERATURE,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> str:
        """Send ``prompt`` and return the raw response text.

        Raises:
            ServiceUnavailableError: No model credential is configured.
            ModelTimeoutError: The backend did not answer in time.
            RateLimitedError: The backend throttled the request.
            UnknownModelError: Any other backend failure or an empty answer.
        """
        if self._client is None:
            raise ServiceUnavailableError()

        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": _SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_output_tokens,
        }

        logger.info(
            "generate: model=%s, prompt_chars=%d (~%d tokens), timeout=%.0fs",
            self._model, len(prompt), len(prompt) // 4, self._timeout,
        )
        t0 = time.perf_counter()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(**kwargs),
                timeout=self._timeout,
            )
        except (asyncio.TimeoutError, openai.APITimeoutError) as e:
            logger.warning("Model call timed out after %.1fs", time.perf_counter() - t0)
            raise ModelTimeoutError() from e
        except Exception as e:
            if is_rate_limit_error(e):
                retry_after = _retry_after_hint(e, self._retry_after)
                logger.warning("Model backend rate-limited the request (retry after %ds)", retry_after)
                raise RateLimitedError(retry_after=retry_after) from e
            logger.warning("Model call failed: %s: %s", type(e).__name__, e)
            raise UnknownModelError() from e

        choices = getattr(response, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content or not content.strip():
            logger.warning("Model returned an empty response")
            raise UnknownModelError("AI returned an empty response. Please try again.")

        logger.info(
            "generate complete: %.1fs, response_chars=%d",
            time.perf_counter() - t0, len(content),
        )
        return content
