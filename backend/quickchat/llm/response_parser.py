"""
Vendor response parsing.

WHAT: Extract text deltas and full answers from vendor JSON shapes
WHY: Each vendor family nests its text differently, in streams and whole bodies
HOW: Tolerant lookups that return None for any shape they do not recognize
"""

import json
from typing import Any

from .types import ProviderType, VendorFamily
from ..utils.logger import get_logger

logger = get_logger(__name__)

RESPONSES_TEXT_DELTA = "response.output_text.delta"


def _first(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _get(value: Any, key: str) -> Any:
    if isinstance(value, dict):
        return value.get(key)
    return None


def _content_text(content: Any) -> str | None:
    """Content as a plain string, or a list of parts each carrying `text`."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [part["text"] for part in content if isinstance(part, dict) and isinstance(part.get("text"), str)]
        if parts:
            return "".join(parts)
    return None


def _as_delta(value: Any) -> str | None:
    """Deltas are never trimmed: a lone " " is the space between two words."""
    if isinstance(value, str) and value:
        return value
    return None


def _as_text(value: Any) -> str | None:
    if isinstance(value, str):
        text = value.strip()
        if text:
            return text
    return None


def parse_frame(raw: str) -> Any | None:
    """Decode one frame payload; invalid JSON yields None."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.debug(f"Skipping non-JSON frame: {raw[:100]}")
        return None


def _chat_delta(frame: Any) -> str | None:
    delta = _get(_first(_get(frame, "choices")), "delta")
    return _as_delta(_content_text(_get(delta, "content")))


def parse_delta(provider_type: ProviderType, frame: Any) -> str | None:
    """
    Extract the incremental text fragment from one streamed frame.

    Non-empty fragments are returned verbatim: leading and trailing
    whitespace is part of the token stream.
    """
    family = provider_type.family

    if family == VendorFamily.CHAT_COMPLETIONS:
        return _chat_delta(frame)

    if family == VendorFamily.RESPONSES:
        delta = _get(frame, "delta")
        if _get(frame, "type") == RESPONSES_TEXT_DELTA and isinstance(delta, str):
            return _as_delta(delta)
        nested = _as_delta(_get(delta, "text"))
        if nested is not None:
            return nested
        chat = _chat_delta(frame)
        if chat is not None:
            return chat
        return _as_delta(delta)

    if family == VendorFamily.ANTHROPIC:
        return _as_delta(_get(_get(frame, "delta"), "text"))

    # Google streams whole candidate objects rather than a delta envelope
    candidate = _first(_get(frame, "candidates"))
    return _as_delta(_get(_first(_get(_get(candidate, "content"), "parts")), "text"))


def _responses_output_text(body: Any) -> str | None:
    for item in _get(body, "output") or []:
        for part in _get(item, "content") or []:
            text = _as_text(_get(part, "text"))
            if text is not None:
                return text
    return None


def parse_full_text(provider_type: ProviderType, body: Any) -> str | None:
    """
    Extract the complete answer from a non-streaming response body.

    A JSON array body (a non-SSE Google stream delivered whole) is treated
    as a sequence of responses whose texts are concatenated.
    """
    if isinstance(body, list):
        pieces = [parse_delta(provider_type, item) or "" for item in body]
        return _as_text("".join(pieces))

    family = provider_type.family

    if family == VendorFamily.CHAT_COMPLETIONS:
        message = _get(_first(_get(body, "choices")), "message")
        return _as_text(_content_text(_get(message, "content")))

    if family == VendorFamily.RESPONSES:
        text = _as_text(_get(body, "output_text"))
        if text is not None:
            return text
        return _responses_output_text(body)

    if family == VendorFamily.ANTHROPIC:
        return _as_text(_get(_first(_get(body, "content")), "text"))

    candidate = _first(_get(body, "candidates"))
    return _as_text(_get(_first(_get(_get(candidate, "content"), "parts")), "text"))


def extract_error_message(body: Any) -> str | None:
    """Vendor error envelope (`{"error": {...}}` or `{"type": "error"}`) message, if present."""
    error = _get(body, "error")
    if isinstance(error, dict):
        return _as_text(error.get("message")) or _as_text(error.get("type")) or "unknown error"
    if isinstance(error, str):
        return _as_text(error)
    if _get(body, "type") == "error":
        return _as_text(_get(body, "message")) or "unknown error"
    return None
