"""Chat-completion backends.

A provider opens one streamed completion and hands back the raw response
body as an async iterator of byte chunks; decoding is left to
:mod:`toolstream.sse`.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import httpx
from openai import APIError, AsyncOpenAI

from toolstream.errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_OPEN_WEBUI_URL = "http://localhost:3000"


class ModelProvider(ABC):
    """Opens streamed chat completions.

    ``stream_completion`` is an async context manager; entering it sends the
    request and yields the body's byte chunks.  Failures to connect, non-2xx
    replies and broken reads all raise :class:`TransportError`.
    """

    @abstractmethod
    def stream_completion(
            self,
            model: str,
            messages: list[dict],
            tools: list[dict] | None = None,
    ) -> AbstractAsyncContextManager[AsyncIterator[bytes]]:
        ...


async def _read_body(chunks: AsyncIterator[bytes]) -> AsyncIterator[bytes]:
    try:
        async for chunk in chunks:
            yield chunk
    except (httpx.HTTPError, APIError) as e:
        raise TransportError(f"Response stream failed: {e}") from e


class OpenAICompatibleProvider(ModelProvider):
    """Any backend speaking the OpenAI chat-completions wire format.

    Args:
        base_url: URL that ``/chat/completions`` is appended to.
        api_key: Bearer token sent with every request.
        timeout: Per-request timeout in seconds.
        max_retries: Retries performed by the underlying client.
        http_client: Optional preconfigured ``httpx.AsyncClient``.
    """

    def __init__(
            self,
            base_url: str,
            api_key: str,
            timeout: float = 600.0,
            max_retries: int = 0,
            http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = AsyncOpenAI(
            base_url=self.base_url,
            api_key=api_key,
            max_retries=max_retries,
            timeout=timeout,
            http_client=http_client,
        )

    @asynccontextmanager
    async def stream_completion(
            self,
            model: str,
            messages: list[dict],
            tools: list[dict] | None = None,
    ):
        kwargs = {"model": model, "messages": messages, "stream": True}
        if tools:
            kwargs["tools"] = tools
        logger.debug(f"Requesting completion from {self.base_url} with {len(messages)} messages")
        try:
            async with self.client.chat.completions.with_streaming_response.create(
                **kwargs
            ) as response:
                yield _read_body(response.iter_bytes())
        except (httpx.HTTPError, APIError) as e:
            raise TransportError(f"Completion request failed: {e}") from e


class OpenWebUIProvider(OpenAICompatibleProvider):
    """Open WebUI, which serves completions under ``/api/chat/completions``."""

    def __init__(
            self,
            base_url: str | None = None,
            api_key: str | None = None,
            timeout: float = 600.0,
            http_client: httpx.AsyncClient | None = None,
    ):
        if not base_url:
            base_url = os.getenv("OPEN_WEBUI_BASE_URL", DEFAULT_OPEN_WEBUI_URL)
        if not api_key:
            api_key = os.getenv("OPEN_WEBUI_API_KEY")
        super().__init__(
            base_url=f"{base_url.rstrip('/')}/api",
            api_key=api_key,
            timeout=timeout,
            http_client=http_client,
        )


class OpenAIProvider(OpenAICompatibleProvider):

    def __init__(self, api_key: str | None = None, timeout: float = 600.0):
        if not api_key:
            api_key = os.getenv("OPENAI_API_KEY")
        super().__init__(
            base_url="https://api.openai.com/v1",
            api_key=api_key,
            timeout=timeout,
        )
