"""Gemini API client with classified retry and backoff.

This module is the SOLE INTERFACE to the Gemini REST endpoint. All remote
calls made by the diary engine flow through ``GeminiApiClient``, which sits on
top of ``ResilientTransport``.

The transport provides:
- Status classification: 429 and 5xx are retried, everything else is returned
- Transport failures (connect, reset, read errors, timeouts) are retried
- Exactly ``max_retries + 1`` attempts before ``NetworkError`` is raised
- An overall per-request timeout
- An injectable sleep so the policy can be tested without real delays

Example:
    >>> from smart_diary.ai.client import GeminiApiClient
    >>>
    >>> async with GeminiApiClient() as client:
    ...     outcome = await client.send_text_request("Say hello")
    ...     if outcome.is_success:
    ...         print(client.extract_text_from_response(outcome.value))

Security Rules:
- NEVER log API keys (ever, in any form)
- NEVER log full prompts or image data (they contain personal moments)
"""

from __future__ import annotations

import asyncio
import base64
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

import httpx
from pydantic import SecretStr

from smart_diary.config import AIConfig, APIKeyManager, get_config
from smart_diary.core.errors import (
    GenerationParseError,
    MissingApiKeyError,
    NetworkError,
    Result,
    UnexpectedError,
)
from smart_diary.core.models import RetryAttempt
from smart_diary.utils.logging import RedactingFilter, log_failure

logger = logging.getLogger(__name__)
logger.addFilter(RedactingFilter())

SleepFunc = Callable[[float], Awaitable[Any]]

# Fallback constants; AIConfig overrides these
MAX_RETRIES = 3
BASE_RETRY_DELAY = 1.0
REQUEST_TIMEOUT = 60.0
IMAGE_MIME_TYPE = "image/jpeg"


# =============================================================================
# Retry Policy
# =============================================================================


class RetryState(str, Enum):
    """States of a single request's retry loop.

    ``attempting`` → ``succeeded`` on a 2xx or non-retryable status,
    ``attempting`` → ``waiting`` → ``attempting`` while retries remain,
    ``attempting`` → ``exhausted`` once the last attempt fails.
    """

    ATTEMPTING = "attempting"
    WAITING = "waiting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


def is_retryable_status(status_code: int) -> bool:
    """429 and the whole 5xx range are transient; nothing else is."""
    return status_code == 429 or 500 <= status_code <= 599


def is_retryable_error(error: BaseException) -> bool:
    """Connection, I/O and timeout failures are transient."""
    return isinstance(error, (httpx.TransportError, asyncio.TimeoutError, OSError))


def should_retry(
    status_or_error: int | BaseException,
    attempt: int,
    max_retries: int = MAX_RETRIES,
) -> bool:
    """Decide whether another attempt follows.

    Args:
        status_or_error: HTTP status of the attempt, or the exception it raised.
        attempt: 1-based number of the attempt that just finished.
        max_retries: Retries allowed after the first attempt.

    Returns:
        True if the outcome is transient and attempts remain.
    """
    if attempt > max_retries:
        return False
    if isinstance(status_or_error, BaseException):
        return is_retryable_error(status_or_error)
    return is_retryable_status(status_or_error)


def backoff_delay(attempt: int, base_delay: float = BASE_RETRY_DELAY) -> float:
    """Delay before the attempt after ``attempt``: 1s, 2s, 4s for base 1.0."""
    return base_delay * (2 ** (attempt - 1))


class RetryLoop:
    """Bookkeeping for one request's retry state machine.

    Created per request, so concurrent requests never share state.
    """

    def __init__(self, max_retries: int, base_delay: float) -> None:
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.state = RetryState.ATTEMPTING
        self.attempts: list[RetryAttempt] = [RetryAttempt(attempt_number=1)]

    @property
    def current_attempt(self) -> int:
        return self.attempts[-1].attempt_number

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1

    def record(self, status_or_error: int | BaseException) -> RetryState:
        """Move out of ``attempting`` based on the attempt's outcome."""
        if isinstance(status_or_error, int) and not is_retryable_status(status_or_error):
            self.state = RetryState.SUCCEEDED
        elif should_retry(status_or_error, self.current_attempt, self.max_retries):
            self.state = RetryState.WAITING
        else:
            self.state = RetryState.EXHAUSTED
        return self.state

    def next_attempt(self) -> RetryAttempt:
        """Leave ``waiting``; returns the attempt about to run with its delay."""
        delay = backoff_delay(self.current_attempt, self.base_delay)
        attempt = RetryAttempt(attempt_number=self.current_attempt + 1, delay_before_attempt=delay)
        self.attempts.append(attempt)
        self.state = RetryState.ATTEMPTING
        return attempt


# =============================================================================
# Resilient Transport
# =============================================================================


class ResilientTransport:
    """POST JSON with classified retry over a shared ``httpx.AsyncClient``.

    The underlying client's connection pool is safe for concurrent use by
    independent generation requests. Retry bookkeeping lives in a per-call
    ``RetryLoop``.

    Attributes:
        max_retries: Retries after the first attempt.
        base_delay: Backoff base in seconds.
        timeout: Overall bound for each attempt in seconds.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_RETRY_DELAY,
        timeout: float = REQUEST_TIMEOUT,
        sleep: SleepFunc = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.timeout = timeout
        self._sleep = sleep
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def send(
        self,
        url: str,
        headers: dict[str, str],
        body: dict[str, Any],
        request_context: str = "ResilientTransport.send",
    ) -> httpx.Response:
        """Send a POST, retrying transient failures.

        Returns:
            The response for any 2xx or non-retryable status. Callers decide
            how to treat non-2xx.

        Raises:
            NetworkError: After ``max_retries + 1`` failed attempts, carrying
                the last status or underlying exception.
        """
        loop = RetryLoop(self.max_retries, self.base_delay)
        last_status: int | None = None
        last_error: BaseException | None = None

        while True:
            try:
                response = await asyncio.wait_for(
                    self.http_client.post(url, headers=headers, json=body),
                    timeout=self.timeout,
                )
            except Exception as e:
                if not is_retryable_error(e):
                    raise
                last_error, last_status = e, None
                outcome: int | BaseException = e
            else:
                if loop.record(response.status_code) is RetryState.SUCCEEDED:
                    return response
                last_error, last_status = None, response.status_code
                outcome = response.status_code
                await response.aclose()

            if loop.state is RetryState.ATTEMPTING:
                loop.record(outcome)

            cause = f"HTTP {last_status}" if last_status is not None else type(last_error).__name__
            if loop.state is RetryState.EXHAUSTED:
                error = NetworkError(
                    f"Request failed after {loop.current_attempt} attempts ({cause})",
                    status_code=last_status,
                    attempts=loop.current_attempt,
                    original_error=last_error,
                )
                log_failure(self._logger, error.message, request_context, last_error)
                raise error from last_error

            attempt = loop.next_attempt()
            self._logger.warning(
                f"{request_context}: retry {attempt.attempt_number - 1}/{self.max_retries} "
                f"after {attempt.delay_before_attempt:.1f}s ({cause})"
            )
            await self._sleep(attempt.delay_before_attempt)


# =============================================================================
# Response Text Extraction
# =============================================================================


def _text_from_parts(candidate: dict[str, Any]) -> str | None:
    content = candidate.get("content")
    if not isinstance(content, dict):
        return None
    parts = content.get("parts")
    if not isinstance(parts, list):
        return None
    for part in parts:
        if isinstance(part, dict) and isinstance(part.get("text"), str) and part["text"].strip():
            return part["text"]
    return None


def _text_from_content(candidate: dict[str, Any]) -> str | None:
    content = candidate.get("content")
    if isinstance(content, dict) and isinstance(content.get("text"), str):
        return content["text"]
    return None


def _text_from_candidate(candidate: dict[str, Any]) -> str | None:
    text = candidate.get("text")
    return text if isinstance(text, str) else None


# Tried in order; the first non-empty result wins
TEXT_EXTRACTORS: tuple[Callable[[dict[str, Any]], str | None], ...] = (
    _text_from_parts,
    _text_from_content,
    _text_from_candidate,
)


def extract_text_from_response(response: dict[str, Any] | None) -> str | None:
    """Pull the generated text out of a ``generateContent`` payload.

    Candidates are examined in order; within each, the extractors in
    ``TEXT_EXTRACTORS`` are tried in sequence.

    Returns:
        Trimmed text, or None if no shape yields non-empty text.
    """
    if not isinstance(response, dict):
        return None
    candidates = response.get("candidates")
    if not isinstance(candidates, list):
        return None
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        for extractor in TEXT_EXTRACTORS:
            text = extractor(candidate)
            if text and text.strip():
                return text.strip()
    return None


# =============================================================================
# Gemini Client
# =============================================================================


class GeminiApiClient:
    """Text and vision requests against Gemini ``generateContent``.

    Every request method returns a ``Result``; nothing raises past this
    boundary. Failures are logged once, where they are detected.

    Attributes:
        config: Model and retry settings.

    Example:
        >>> client = GeminiApiClient(api_key="AIza...")
        >>> outcome = await client.send_vision_request("Describe this", image_bytes)
    """

    def __init__(
        self,
        config: AIConfig | None = None,
        *,
        api_key: str | SecretStr | None = None,
        transport: ResilientTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
        key_manager: APIKeyManager | None = None,
        sleep: SleepFunc = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or get_config().ai
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        if isinstance(api_key, str):
            api_key = SecretStr(api_key)
        self._api_key = api_key
        self._key_manager = key_manager or APIKeyManager()
        self._transport = transport or ResilientTransport(
            http_client,
            max_retries=self.config.max_retries,
            base_delay=self.config.retry_base_delay,
            timeout=self.config.timeout_seconds,
            sleep=sleep,
            logger=self._logger,
        )

    async def __aenter__(self) -> "GeminiApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._transport.aclose()

    @property
    def transport(self) -> ResilientTransport:
        return self._transport

    def has_api_key(self) -> bool:
        return self._resolve_api_key() is not None

    def _resolve_api_key(self) -> SecretStr | None:
        if self._api_key is None:
            self._api_key = self._key_manager.get_key()
        return self._api_key

    def build_request_body(
        self,
        prompt: str,
        image_bytes: bytes | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
    ) -> dict[str, Any]:
        parts: list[dict[str, Any]] = [{"text": prompt}]
        if image_bytes is not None:
            parts.append(
                {
                    "inlineData": {
                        "mimeType": IMAGE_MIME_TYPE,
                        "data": base64.b64encode(image_bytes).decode("ascii"),
                    }
                }
            )
        return {
            "contents": [{"parts": parts, "role": "user"}],
            "generationConfig": {
                "temperature": self.config.temperature if temperature is None else temperature,
                "maxOutputTokens": max_output_tokens or self.config.max_output_tokens,
                "topP": self.config.top_p,
                "topK": self.config.top_k,
                "thinkingConfig": {"thinkingBudget": 0},
            },
        }

    async def send_text_request(
        self,
        prompt: str,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        request_context: str = "GeminiApiClient.send_text_request",
    ) -> Result[dict[str, Any]]:
        body = self.build_request_body(prompt, None, temperature, max_output_tokens)
        return await self._post(body, request_context)

    async def send_vision_request(
        self,
        prompt: str,
        image_bytes: bytes,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        request_context: str = "GeminiApiClient.send_vision_request",
    ) -> Result[dict[str, Any]]:
        body = self.build_request_body(prompt, image_bytes, temperature, max_output_tokens)
        return await self._post(body, request_context)

    async def test_api_key(self) -> bool:
        """Send a tiny request to check that the key is accepted."""
        outcome = await self.send_text_request(
            "Hello", max_output_tokens=10, request_context="GeminiApiClient.test_api_key"
        )
        return outcome.is_success

    extract_text_from_response = staticmethod(extract_text_from_response)

    async def _post(self, body: dict[str, Any], request_context: str) -> Result[dict[str, Any]]:
        api_key = self._resolve_api_key()
        if api_key is None:
            error = MissingApiKeyError()
            log_failure(self._logger, error.message, request_context)
            return Result.fail(error)

        headers = {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key.get_secret_value(),
        }
        try:
            response = await self._transport.send(
                self.config.endpoint_url, headers, body, request_context
            )
        except NetworkError as e:
            # Already logged by the transport
            return Result.fail(e)
        except Exception as e:
            error = UnexpectedError(
                f"Unexpected error during request: {type(e).__name__}", original_error=e
            )
            log_failure(self._logger, error.message, request_context, e)
            return Result.fail(error)

        if not response.is_success:
            error = NetworkError(
                f"Gemini API returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
            log_failure(self._logger, error.message, request_context)
            return Result.fail(error)

        try:
            payload = response.json()
        except ValueError as e:
            error = GenerationParseError("Gemini API returned a non-JSON body", original_error=e)
            log_failure(self._logger, error.message, request_context, e)
            return Result.fail(error)

        self._logger.debug(f"{request_context}: HTTP {response.status_code}")
        return Result.ok(payload)
