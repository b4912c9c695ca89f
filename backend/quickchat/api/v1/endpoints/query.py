"""
Query endpoints.

WHAT: Stream the active provider, query one provider once, stream one provider
      on its own event namespace, cancel an in-flight stream
WHY: The desktop shell drives every chat column through these routes
HOW: QueryService writes deltas to an EventChannel; EventSourceResponse relays
     the channel as SSE and finishes with a `done` or `error` event
"""

import asyncio
import json
from datetime import datetime
from typing import AsyncIterator, Awaitable, Callable

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from ..dependencies import get_provider_store, get_query_service
from ....core.provider_store import SqlProviderStore
from ....llm.messages import history_from_payload
from ....middleware.error_handler import describe_error, error_message
from ....models.api_schemas import (
    QueryRequest,
    ProviderStreamRequest,
    QueryResponse,
    CancelResponse,
)
from ....services.event_channel import EventChannel
from ....services.query_service import QueryService, ACTIVE_STREAM_KEY
from ....utils.exceptions import ProviderNotFoundError
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def error_event(exc: Exception) -> dict:
    """
    SSE error event for a failed query.

    `placeholder` is the text the shell renders in place of an answer.
    """
    status_code, code, detail = describe_error(exc)
    message = error_message(exc)
    return {
        "event": "error",
        "data": json.dumps({
            "type": "error",
            "error": code,
            "status_code": status_code,
            "message": message,
            "detail": detail,
            "placeholder": f"Error: {message}",
            "timestamp": datetime.now().isoformat()
        })
    }


async def relay_events(
    start: Callable[[EventChannel], Awaitable[str]],
    stream_key: str,
) -> AsyncIterator[dict]:
    """
    Run one query and relay its channel as SSE events.

    WHAT: Forward deltas as they arrive, then `done` or `error`
    WHY: A query that fails mid-stream still has to tell the shell
    HOW: Producer task closes the channel (with its error, if any); this
         generator drains it. A disconnected client cancels the producer task,
         which closes the vendor response.

    Args:
        start: Coroutine factory running the query against a channel
        stream_key: Stream name for logs

    Yields:
        SSE event dicts
    """
    channel = EventChannel()

    async def produce():
        try:
            await start(channel)
        except Exception as e:
            await channel.close(e)
        else:
            await channel.close()

    logger.info(f"Starting SSE stream {stream_key}")
    task = asyncio.create_task(produce())
    chunks = 0
    try:
        async for event in channel:
            chunks += 1
            yield {"event": event.name, "data": event.payload}
        yield {
            "event": "done",
            "data": json.dumps({
                "type": "done",
                "stream_key": stream_key,
                "chunks": chunks,
                "timestamp": datetime.now().isoformat()
            })
        }
    except Exception as e:
        logger.error(f"SSE stream {stream_key} failed after {chunks} chunks: {error_message(e)}")
        yield error_event(e)
    finally:
        if not task.done():
            task.cancel()
        logger.info(f"SSE stream {stream_key} ended ({chunks} chunks)")


@router.post("/query/stream")
async def stream_active_query(
    request: QueryRequest,
    service: QueryService = Depends(get_query_service),
):
    """
    Stream the active provider's answer.

    Events: `query:chunk` (raw text delta), then `done` or `error`.
    """
    history = history_from_payload(request.history)

    async def start(channel: EventChannel) -> str:
        return await service.query_active_stream(request.prompt, history, channel)

    return EventSourceResponse(
        relay_events(start, ACTIVE_STREAM_KEY)
    )


@router.post("/providers/{provider_id}/query", response_model=QueryResponse)
async def query_provider(
    provider_id: str,
    request: QueryRequest,
    service: QueryService = Depends(get_query_service),
):
    """Query one provider without streaming."""
    text = await service.query_provider_once(
        provider_id, request.prompt, history_from_payload(request.history)
    )
    return QueryResponse(text=text)


@router.post("/providers/{provider_id}/stream")
async def stream_provider_query(
    provider_id: str,
    request: ProviderStreamRequest,
    service: QueryService = Depends(get_query_service),
    store: SqlProviderStore = Depends(get_provider_store),
):
    """
    Stream one provider's answer on its own namespace.

    Events: `query:chunk:{stream_key}`, then `done` or `error`. The stream key
    defaults to the provider id and is also the cancel key.
    """
    if store.get_provider(provider_id) is None:
        raise ProviderNotFoundError(provider_id)

    stream_key = (request.stream_key or "").strip() or provider_id
    history = history_from_payload(request.history)

    async def start(channel: EventChannel) -> str:
        return await service.query_provider_stream(
            provider_id, request.prompt, history, channel, stream_key=stream_key
        )

    return EventSourceResponse(
        relay_events(start, stream_key)
    )


@router.post("/streams/{stream_key}/cancel", response_model=CancelResponse)
async def cancel_stream(
    stream_key: str,
    service: QueryService = Depends(get_query_service),
):
    """Cancel an in-flight stream; `cancelled` is false when none is running."""
    return CancelResponse(stream_key=stream_key, cancelled=service.cancel(stream_key))
