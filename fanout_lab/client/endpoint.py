"""
HTTP client for OpenAI-compatible chat-completion endpoints.

Speaks the ``POST {base_url}/chat/completions`` API with bearer-token auth,
either as a single JSON response or as an SSE stream consumed through
`CompletionStream`. The per-request timeout is enforced here through
aiohttp's ``ClientTimeout``; there are no automatic retries.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Mapping, Optional, Sequence

import aiohttp

from .. import __version__
from ..config import EndpointConfig
from ..errors import EndpointHTTPError, NetworkError, ProtocolError, RequestTimeoutError
from ..streaming.stream import CompletionStream

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": f"llm-fanout-lab/{__version__}",
    "X-Title": "llm-fanout-lab",
}

Message = Mapping[str, str]


class EndpointClient:
    """Async client for one endpoint configuration.

    Usage:
        client = EndpointClient(EndpointConfig(api_key="..."))
        response = await client.complete("openai/gpt-4.1", [{"role": "user", "content": "Hi"}])
        print(response["choices"][0]["message"]["content"])

        async for update in client.stream_chat("openai/gpt-4.1", messages):
            print(update.content, end="")

        await client.aclose()
    """

    def __init__(self, config: EndpointConfig, extra_headers: Optional[Mapping[str, str]] = None):
        self.config = config
        self.extra_headers = dict(extra_headers or {})
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/chat/completions"

    @property
    def closed(self) -> bool:
        return self._session is None or self._session.closed

    def _headers(self) -> dict:
        headers = {**DEFAULT_HEADERS, **self.extra_headers}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=self.config.timeout_seconds),
            )
        return self._session

    def _payload(self, model: str, messages: Sequence[Message], stream: bool, params: dict) -> dict:
        payload = {
            "model": model,
            "messages": [dict(message) for message in messages],
            "temperature": self.config.temperature,
            "stream": stream,
        }
        payload.update({key: value for key, value in params.items() if value is not None})
        return payload

    async def complete(self, model: str, messages: Sequence[Message], **params: Any) -> dict:
        """Send a non-streaming chat completion and return the decoded body."""
        session = self._get_session()
        payload = self._payload(model, messages, False, params)
        try:
            async with session.post(self.url, json=payload) as resp:
                if resp.status >= 400:
                    raise EndpointHTTPError(resp.status, await resp.text())
                try:
                    return await resp.json(content_type=None)
                except ValueError as e:
                    raise ProtocolError(f"invalid JSON response from {model}: {e}") from e
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(self.config.timeout_seconds) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"{type(e).__name__}: {e}") from e

    def stream_chat(self, model: str, messages: Sequence[Message], **params: Any) -> CompletionStream:
        """Start a streaming chat completion.

        The request is sent when iteration begins, so the stream's duration
        includes the wait for response headers.
        """
        body = self._stream_body(model, messages, params)
        return CompletionStream(body, name=f"stream:{model}")

    async def _stream_body(self, model: str, messages: Sequence[Message], params: dict) -> AsyncIterator[bytes]:
        session = self._get_session()
        payload = self._payload(model, messages, True, params)
        try:
            async with session.post(
                self.url,
                json=payload,
                headers={"Accept": "text/event-stream"},
            ) as resp:
                if resp.status >= 400:
                    raise EndpointHTTPError(resp.status, await resp.text())
                async for chunk in resp.content.iter_any():
                    yield chunk
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(self.config.timeout_seconds) from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"{type(e).__name__}: {e}") from e

    async def aclose(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


def create_client(config: EndpointConfig, extra_headers: Optional[Mapping[str, str]] = None) -> EndpointClient:
    """Client factory used by the connection pool."""
    return EndpointClient(config, extra_headers)
