"""
Query entry points exposed to the desktop shell.

WHAT: Query the active provider (streaming), one provider once, or one provider
      streaming on its own namespaced event channel
WHY: Several chat columns stream concurrently and must not cross-talk
HOW: Resolve descriptor + key through the injected ProviderStore, run the
     StreamingOrchestrator, forward deltas to an EventChannel
"""

from typing import Sequence

import httpx

from ..core.provider_store import ProviderStore
from ..llm.cancellation import CancellationToken
from ..llm.probe import probe_connection
from ..llm.streaming import StreamingOrchestrator, create_http_client
from ..llm.types import ChatMessage, ConnectionTestResult, ProviderDescriptor
from ..utils.exceptions import NoActiveProviderError, ProviderNotFoundError
from .event_channel import EventChannel
from ..utils.logger import get_logger

logger = get_logger(__name__)

ACTIVE_STREAM_EVENT = "query:chunk"
ACTIVE_STREAM_KEY = "active"


def stream_event_name(stream_key: str) -> str:
    """Event name for a per-provider stream."""
    return f"{ACTIVE_STREAM_EVENT}:{stream_key}"


class QueryService:
    """Runs queries for the API layer; owns the shared HTTP client."""

    def __init__(
        self,
        store: ProviderStore,
        *,
        client: httpx.AsyncClient | None = None,
        orchestrator: StreamingOrchestrator | None = None,
    ):
        self.store = store
        self._client = client or create_http_client()
        self._owns_client = client is None
        self.orchestrator = orchestrator or StreamingOrchestrator(self._client)
        self._tokens: dict[str, CancellationToken] = {}

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    def _resolve(self, provider_id: str) -> tuple[ProviderDescriptor, str]:
        descriptor = self.store.get_provider(provider_id)
        if descriptor is None:
            raise ProviderNotFoundError(provider_id)
        return descriptor, self.store.get_api_key(provider_id)

    async def query_active_stream(
        self,
        prompt: str,
        history: Sequence[ChatMessage] | None,
        channel: EventChannel,
    ) -> str:
        """
        Stream the active provider's answer as `query:chunk` events.

        Returns:
            The full text that was emitted

        Raises:
            NoActiveProviderError: No enabled provider has an API key
            ProviderError: Any query failure (see StreamingOrchestrator.stream)
        """
        active = self.store.get_active_with_key()
        if active is None:
            raise NoActiveProviderError()
        descriptor, api_key = active
        return await self._pump(descriptor, api_key, prompt, history, channel, ACTIVE_STREAM_EVENT, ACTIVE_STREAM_KEY)

    async def query_provider_once(
        self,
        provider_id: str,
        prompt: str,
        history: Sequence[ChatMessage] | None = None,
    ) -> str:
        """Query one provider without streaming and return the full answer."""
        descriptor, api_key = self._resolve(provider_id)
        return await self.orchestrator.complete(descriptor, api_key, history, prompt)

    async def query_provider_stream(
        self,
        provider_id: str,
        prompt: str,
        history: Sequence[ChatMessage] | None,
        channel: EventChannel,
        stream_key: str | None = None,
    ) -> str:
        """
        Stream one provider's answer as `query:chunk:{stream_key}` events.

        Args:
            provider_id: Provider to query
            prompt: User prompt
            history: Optional prior conversation
            channel: Destination channel
            stream_key: Channel namespace (defaults to provider_id), also the cancel key

        Returns:
            The full text that was emitted
        """
        descriptor, api_key = self._resolve(provider_id)
        key = (stream_key or "").strip() or provider_id
        return await self._pump(descriptor, api_key, prompt, history, channel, stream_event_name(key), key)

    async def test_connection(self, provider_id: str) -> ConnectionTestResult:
        descriptor, api_key = self._resolve(provider_id)
        return await probe_connection(descriptor, api_key, client=self._client)

    def cancel(self, stream_key: str) -> bool:
        """Cancel the in-flight stream registered under stream_key."""
        token = self._tokens.get(stream_key)
        if token is None:
            return False
        token.cancel(f"Stream {stream_key} cancelled")
        logger.info(f"Cancellation requested for stream {stream_key}")
        return True

    def active_streams(self) -> list[str]:
        return sorted(self._tokens)

    async def _pump(
        self,
        descriptor: ProviderDescriptor,
        api_key: str,
        prompt: str,
        history: Sequence[ChatMessage] | None,
        channel: EventChannel,
        event_name: str,
        stream_key: str,
    ) -> str:
        token = CancellationToken()
        previous = self._tokens.get(stream_key)
        if previous is not None:
            # a new query on the same column supersedes the old one
            previous.cancel(f"Superseded by a new query on {stream_key}")
        self._tokens[stream_key] = token

        parts: list[str] = []
        try:
            async for delta in self.orchestrator.stream(descriptor, api_key, history, prompt, cancel_token=token):
                parts.append(delta)
                await channel.send(event_name, delta)
        finally:
            if self._tokens.get(stream_key) is token:
                del self._tokens[stream_key]

        return "".join(parts)
