"""Anthropic LLM Client: wraps AsyncAnthropic and maps SDK errors to domain failures.

Invariants:
    - Missing credential raises MissingCredentialError before any network call
    - No retries here: SDK retries disabled, RetryExecutor owns retry policy
    - Timeouts -> TransportFailure(TIMED_OUT); connection errors -> TransportFailure(HOST_UNREACHABLE)
    - HTTP status errors -> UpstreamStatusError(status_code)
    - Returned text is the concatenated text blocks, trimmed; it is NOT validated here
    - asyncio.CancelledError (BaseException) passes through uncaught

Design Decisions:
    - Wrapper over raw client: isolates SDK types from services/ and core/
    - SDK client created lazily per API key, so a key added at runtime is picked up;
      the client for the replaced key is closed
"""

import base64
import logging
from typing import Any

import anthropic
from anthropic import APIConnectionError, APIError, APIStatusError, APITimeoutError

from macrolens.config import Settings
from macrolens.core.domain_types import TransportKind
from macrolens.core.errors import (
    MissingCredentialError,
    TransportFailure,
    UpstreamStatusError,
)
from macrolens.infrastructure.credentials import CredentialStore

logger = logging.getLogger(__name__)


class AnthropicLLMClient:
    """Sends one prompt (optionally with a JPEG photo) and returns the raw reply text."""

    def __init__(
        self,
        credentials: CredentialStore,
        *,
        model: str,
        max_tokens: int = 500,
        temperature: float = 0.3,
        timeout_seconds: int = 60,
        client: Any | None = None,
    ):
        self.credentials = credentials
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._client_key: str | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, credentials: CredentialStore,
    ) -> "AnthropicLLMClient":
        return cls(
            credentials,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            timeout_seconds=settings.llm_timeout_seconds,
        )

    async def complete(self, prompt: str, image_jpeg: bytes | None = None) -> str:
        api_key = self.credentials.get_api_key()
        if api_key is None:
            raise MissingCredentialError("anthropic")

        client = await self._get_client(api_key)
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[
                    {"role": "user", "content": _content_blocks(prompt, image_jpeg)},
                ],
            )
        except APITimeoutError as e:
            raise TransportFailure(TransportKind.TIMED_OUT, str(e)) from e
        except APIConnectionError as e:
            raise TransportFailure(TransportKind.HOST_UNREACHABLE, str(e)) from e
        except APIStatusError as e:
            raise UpstreamStatusError(e.status_code, str(e)) from e
        except APIError as e:
            logger.error(f"Unexpected Anthropic error: {e}", exc_info=True)
            raise TransportFailure(TransportKind.OTHER, str(e)) from e

        self._log_success(response)
        return _extract_text(response)

    async def aclose(self) -> None:
        """Close the SDK client this wrapper created. Injected clients are left open."""
        if self._client is not None and self._client_key is not None:
            await self._client.close()
            self._client = None
            self._client_key = None

    async def _get_client(self, api_key: str):
        """Injected client wins; otherwise one AsyncAnthropic per API key.

        A client created for a previous key is closed when the key changes.
        """
        if self._client is not None and self._client_key in (None, api_key):
            return self._client
        previous = self._client
        self._client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=self.timeout_seconds,
            max_retries=0,
        )
        self._client_key = api_key
        if previous is not None:
            await previous.close()
        return self._client

    def _log_success(self, response) -> None:
        usage = getattr(response, "usage", None)
        logger.info(
            "Anthropic API success",
            extra={
                "input_tokens": getattr(usage, "input_tokens", None),
                "output_tokens": getattr(usage, "output_tokens", None),
            },
        )


def _content_blocks(prompt: str, image_jpeg: bytes | None) -> list[dict]:
    blocks: list[dict] = []
    if image_jpeg:
        blocks.append({
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": "image/jpeg",
                "data": base64.b64encode(image_jpeg).decode("ascii"),
            },
        })
    blocks.append({"type": "text", "text": prompt})
    return blocks


def _extract_text(response) -> str:
    parts = [
        block.text
        for block in getattr(response, "content", None) or []
        if getattr(block, "type", None) == "text"
    ]
    return "".join(parts).strip()
