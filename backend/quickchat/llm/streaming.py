"""
Streaming query orchestration.

WHAT: Drive one vendor query from request to ordered text deltas
WHY: Vendors differ in framing and shape; callers only want text, in order
HOW: httpx streamed POST -> FrameDecoder -> response parser, with a single
     non-streaming fallback when the stream yields no text
"""

import asyncio
from typing import AsyncIterator, Awaitable, Callable, Sequence, TypeVar

import httpx

from .cancellation import CancellationToken
from .classifier import classify, excerpt
from .frame_decoder import DONE_SENTINEL, FrameDecoder
from .messages import normalize
from .request_builder import build_request
from .response_parser import extract_error_message, parse_delta, parse_frame, parse_full_text
from .types import (
    ChatMessage,
    NormalizedConversation,
    ProviderDescriptor,
    ProviderHTTPError,
    ProviderParseError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderTransportError,
    ProviderUnavailableError,
    VendorRequest,
)
from ..core.config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


def create_http_client() -> httpx.AsyncClient:
    """Create the pooled async client used for vendor calls."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.LLM_CONNECT_TIMEOUT, read=settings.LLM_STREAM_TIMEOUT),
        limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
        follow_redirects=True,
        http2=False,
    )


async def _anext_or_none(chunks: AsyncIterator[bytes]) -> bytes | None:
    try:
        return await chunks.__anext__()
    except StopAsyncIteration:
        return None


class StreamingOrchestrator:
    """
    Runs streaming and non-streaming queries against one provider at a time.

    Holds no per-stream state: every call owns its decoder and response, so
    one orchestrator can serve concurrent streams.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        stream_timeout: float | None = None,
        fallback_timeout: float | None = None,
        excerpt_chars: int | None = None,
    ):
        self._client = client
        self._owns_client = client is None
        self.stream_timeout = stream_timeout or settings.LLM_STREAM_TIMEOUT
        self.fallback_timeout = fallback_timeout or settings.LLM_FALLBACK_TIMEOUT
        self.excerpt_chars = excerpt_chars or settings.LLM_ERROR_EXCERPT_CHARS

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = create_http_client()
        return self._client

    async def close(self):
        """Close the HTTP client if this orchestrator created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    def _timeout(self, budget: float) -> httpx.Timeout:
        return httpx.Timeout(budget, connect=min(settings.LLM_CONNECT_TIMEOUT, budget))

    async def stream(
        self,
        descriptor: ProviderDescriptor,
        api_key: str,
        history: Sequence[ChatMessage] | None,
        prompt: str,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream the provider's answer as ordered text deltas.

        Args:
            descriptor: Provider to query
            api_key: Provider secret
            history: Optional prior conversation
            prompt: New user prompt (ignored when history holds a user turn)
            cancel_token: Optional cooperative cancellation token

        Yields:
            Non-empty text deltas in frame order; a fallback answer arrives as one delta

        Raises:
            ProviderValidationError: Invalid prompt or provider config (no request sent)
            ProviderHTTPError: Non-2xx from the vendor
            ProviderTransportError: Network failure or deadline expiry
            ProviderParseError: Stream and fallback both produced no text
            ProviderResponseError: Vendor error envelope inside a 2xx body
            QueryCancelledError: cancel_token was tripped
        """
        conversation = normalize(history, prompt)
        request = build_request(descriptor, api_key, conversation, stream=True)
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        decoder = FrameDecoder()
        emitted_chars = 0
        fallback_reason = "stream produced no text"

        logger.info(
            f"Streaming query to {descriptor.name} "
            f"(type: {descriptor.provider_type.value}, model: {descriptor.model}, "
            f"url: {request.redacted_url()}, messages: {len(conversation)})"
        )

        try:
            async for delta in self._stream_attempt(descriptor, request, decoder, cancel_token):
                emitted_chars += len(delta)
                yield delta
        except ProviderTransportError as e:
            if emitted_chars:
                raise
            logger.warning(f"Streaming attempt to {descriptor.name} failed before any text: {e}")
            fallback_reason = f"stream failed ({e})"
        else:
            if emitted_chars:
                logger.info(f"{descriptor.name} stream completed ({emitted_chars} chars)")
                return

            whole = decoder.parse_whole_body()
            if whole is not None:
                self._raise_for_error_envelope(descriptor, whole)
                text = parse_full_text(descriptor.provider_type, whole)
                if text is not None:
                    logger.info(f"{descriptor.name} sent a single JSON body to a stream request ({len(text)} chars)")
                    yield text
                    return

        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        logger.warning(f"Falling back to non-streaming call for {descriptor.name}: {fallback_reason}")
        text = await self._complete(descriptor, api_key, conversation)
        logger.info(f"{descriptor.name} fallback completed ({len(text)} chars)")
        yield text

    async def complete(
        self,
        descriptor: ProviderDescriptor,
        api_key: str,
        history: Sequence[ChatMessage] | None,
        prompt: str,
    ) -> str:
        """
        Query the provider once without streaming and return the full answer.

        Raises:
            Same taxonomy as stream(), minus cancellation
        """
        conversation = normalize(history, prompt)
        logger.info(f"Non-streaming query to {descriptor.name} (model: {descriptor.model})")
        return await self._complete(descriptor, api_key, conversation)

    async def _complete(
        self,
        descriptor: ProviderDescriptor,
        api_key: str,
        conversation: NormalizedConversation,
    ) -> str:
        request = build_request(descriptor, api_key, conversation, stream=False)
        try:
            body, raw = await asyncio.wait_for(
                self._send_json(descriptor, request, self.fallback_timeout),
                timeout=self.fallback_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderTimeoutError(
                f"{descriptor.name} request timed out after {self.fallback_timeout:g}s"
            ) from e

        if body is not None:
            self._raise_for_error_envelope(descriptor, body)
            text = parse_full_text(descriptor.provider_type, body)
            if text is not None:
                return text

        snippet = excerpt(raw, self.excerpt_chars)
        logger.error(f"No text in response from {descriptor.name}: {snippet[:100]}")
        raise ProviderParseError(f"No text in response from {descriptor.name} (model: {descriptor.model})", snippet)

    async def _send_json(
        self,
        descriptor: ProviderDescriptor,
        request: VendorRequest,
        budget: float,
    ) -> tuple[object | None, str]:
        """Send a non-streaming request; return (parsed JSON or None, raw text)."""
        try:
            response = await self.client.request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params or None,
                json=request.json,
                timeout=self._timeout(budget),
            )
        except httpx.TimeoutException as e:
            logger.error(f"{descriptor.name} request timeout")
            raise ProviderTimeoutError(f"{descriptor.name} request timed out after {budget:g}s") from e
        except httpx.TransportError as e:
            logger.error(f"{descriptor.name} not reachable: {e}")
            raise ProviderUnavailableError(f"{descriptor.name} is not reachable: {e}") from e

        if not response.is_success:
            detail = excerpt(response.text, self.excerpt_chars)
            logger.error(f"{descriptor.name} HTTP error: {response.status_code}")
            raise ProviderHTTPError(response.status_code, classify(response.status_code, descriptor.model, detail))

        raw = response.text
        try:
            return response.json(), raw
        except ValueError:
            return None, raw

    async def _stream_attempt(
        self,
        descriptor: ProviderDescriptor,
        request: VendorRequest,
        decoder: FrameDecoder,
        cancel_token: CancellationToken | None,
    ) -> AsyncIterator[str]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.stream_timeout
        frames_seen = 0

        try:
            http_request = self.client.build_request(
                request.method,
                request.url,
                headers=request.headers,
                params=request.params or None,
                json=request.json,
                timeout=self._timeout(self.stream_timeout),
            )
            # Time to first byte is raced against the token like every body read
            response = await self._race(
                lambda: self.client.send(http_request, stream=True), deadline, cancel_token
            )
            try:
                if not response.is_success:
                    detail = await self._read_excerpt(response)
                    logger.error(f"{descriptor.name} streaming HTTP error: {response.status_code}")
                    raise ProviderHTTPError(
                        response.status_code,
                        classify(response.status_code, descriptor.model, detail),
                    )

                chunks = response.aiter_bytes()
                while True:
                    chunk = await self._race(lambda: _anext_or_none(chunks), deadline, cancel_token)
                    frames = decoder.flush() if chunk is None else decoder.feed(chunk)

                    for frame in frames:
                        frames_seen += 1
                        if frame == DONE_SENTINEL:
                            logger.debug(f"{descriptor.name} sent [DONE] after {frames_seen} frames")
                            return
                        delta = self._delta_from_frame(descriptor, frame)
                        if delta is not None:
                            yield delta

                    if chunk is None:
                        logger.debug(
                            f"{descriptor.name} body exhausted "
                            f"({frames_seen} frames, sse={decoder.is_sse})"
                        )
                        return
            finally:
                await response.aclose()

        except asyncio.TimeoutError as e:
            logger.error(f"{descriptor.name} streaming deadline exceeded")
            raise ProviderTimeoutError(
                f"{descriptor.name} stream timed out after {self.stream_timeout:g}s"
            ) from e
        except httpx.TimeoutException as e:
            logger.error(f"{descriptor.name} streaming timeout")
            raise ProviderTimeoutError(f"{descriptor.name} streaming request timed out") from e
        except httpx.TransportError as e:
            logger.error(f"{descriptor.name} connection failed during streaming: {e}")
            raise ProviderUnavailableError(f"{descriptor.name} is not reachable: {e}") from e

    async def _race(
        self,
        start: Callable[[], Awaitable[T]],
        deadline: float,
        cancel_token: CancellationToken | None,
    ) -> T:
        """
        Await `start()` bounded by the deadline and the token.

        The awaited work runs in its own task when a token is given. That task
        is cancelled and awaited before returning, whichever side wins and
        also when the caller itself is cancelled, so nothing is left pending.

        Raises:
            QueryCancelledError: The token fired first
            asyncio.TimeoutError: The deadline passed first
        """
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise asyncio.TimeoutError()

        if cancel_token is None:
            return await asyncio.wait_for(start(), timeout=remaining)

        cancel_token.raise_if_cancelled()
        work = asyncio.ensure_future(start())
        cancelled = asyncio.ensure_future(cancel_token.wait())
        try:
            done, _ = await asyncio.wait(
                {work, cancelled},
                timeout=remaining,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancelled.cancel()
            if not work.done():
                work.cancel()
                try:
                    await work
                except asyncio.CancelledError:
                    pass

        if work in done:
            return work.result()

        cancel_token.raise_if_cancelled()
        raise asyncio.TimeoutError()

    def _delta_from_frame(self, descriptor: ProviderDescriptor, frame: str) -> str | None:
        data = parse_frame(frame)
        if data is None:
            return None
        self._raise_for_error_envelope(descriptor, data)
        return parse_delta(descriptor.provider_type, data)

    def _raise_for_error_envelope(self, descriptor: ProviderDescriptor, data: object) -> None:
        error = extract_error_message(data)
        if error is not None:
            logger.error(f"{descriptor.name} returned an error payload: {error}")
            raise ProviderResponseError(f"{descriptor.name} returned an error: {error}")

    async def _read_excerpt(self, response: httpx.Response) -> str:
        """Read at most a few KiB of an error body."""
        limit = self.excerpt_chars * 4
        collected = bytearray()
        try:
            async for chunk in response.aiter_bytes():
                collected.extend(chunk)
                if len(collected) >= limit:
                    break
        except httpx.HTTPError as e:
            logger.debug(f"Could not read error body: {e}")
        return excerpt(collected[:limit].decode("utf-8", errors="replace"), self.excerpt_chars)
