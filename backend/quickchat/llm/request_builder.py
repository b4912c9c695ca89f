"""
Vendor request construction.

WHAT: Build endpoint URL, headers and JSON body for each vendor family
WHY: One place knows every wire shape; the orchestrator stays vendor-agnostic
HOW: Validate locally, then dispatch once on the provider's VendorFamily
"""

from .types import (
    NormalizedConversation,
    ProviderDescriptor,
    ProviderValidationError,
    VendorFamily,
    VendorRequest,
)
from ..core.config import settings

PROBE_PROMPT = "ping"


def _validate(
    descriptor: ProviderDescriptor,
    api_key: str,
    conversation: NormalizedConversation | None = None,
) -> tuple[str, str]:
    """Return (base_url, key) or raise before any network I/O."""
    key = (api_key or "").strip()
    if not key:
        raise ProviderValidationError("EMPTY_API_KEY", f"API key is empty for provider '{descriptor.name}'")

    base_url = descriptor.resolved_base_url()
    if not base_url:
        raise ProviderValidationError("EMPTY_BASE_URL", f"Base URL is empty for provider '{descriptor.name}'")

    if conversation is not None and not conversation.messages:
        raise ProviderValidationError("EMPTY_MESSAGES", "Conversation has no messages")

    if not descriptor.model.strip():
        raise ProviderValidationError("EMPTY_MODEL", f"Model is empty for provider '{descriptor.name}'")

    return base_url, key


def _bearer_headers(key: str, stream: bool) -> dict[str, str]:
    headers = {
        "Authorization": f"Bearer {key}",
        "Content-Type": "application/json",
    }
    if stream:
        headers["Accept"] = "text/event-stream"
    return headers


def _split_system(conversation: NormalizedConversation) -> tuple[str, list[dict]]:
    """Separate system turns (joined) from the dialogue turns."""
    system_parts = [m.content for m in conversation.messages if m.role == "system"]
    dialogue = [m.to_dict() for m in conversation.messages if m.role != "system"]
    return "\n".join(system_parts), dialogue


def _google_contents(dialogue: list[dict]) -> list[dict]:
    return [
        {
            "role": "model" if m["role"] == "assistant" else m["role"],
            "parts": [{"text": m["content"]}],
        }
        for m in dialogue
    ]


def build_request(
    descriptor: ProviderDescriptor,
    api_key: str,
    conversation: NormalizedConversation,
    *,
    stream: bool,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> VendorRequest:
    """
    Build the HTTP request for one chat call.

    Args:
        descriptor: Provider to call
        api_key: Provider secret
        conversation: Normalized conversation (transmission order)
        stream: Request a streamed answer where the vendor supports it
        temperature: Sampling temperature (defaults from settings)
        max_tokens: Token cap for vendors that require one (defaults from settings)

    Raises:
        ProviderValidationError: EMPTY_API_KEY, EMPTY_BASE_URL, EMPTY_MESSAGES or EMPTY_MODEL
    """
    base_url, key = _validate(descriptor, api_key, conversation)

    temperature = settings.LLM_DEFAULT_TEMPERATURE if temperature is None else temperature
    max_tokens = settings.LLM_DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens
    model = descriptor.model.strip()
    family = descriptor.provider_type.family

    if family == VendorFamily.CHAT_COMPLETIONS:
        return VendorRequest(
            method="POST",
            url=f"{base_url}/chat/completions",
            headers=_bearer_headers(key, stream),
            json={
                "model": model,
                "messages": conversation.as_payload(),
                "temperature": temperature,
                "stream": stream,
            },
        )

    if family == VendorFamily.RESPONSES:
        return VendorRequest(
            method="POST",
            url=f"{base_url}/responses",
            headers=_bearer_headers(key, stream),
            json={
                "model": model,
                "input": conversation.as_payload(),
                "stream": stream,
            },
        )

    if family == VendorFamily.ANTHROPIC:
        system, dialogue = _split_system(conversation)
        body = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": dialogue,
            "stream": stream,
        }
        if system:
            body["system"] = system
        headers = {
            "x-api-key": key,
            "anthropic-version": settings.ANTHROPIC_API_VERSION,
            "Content-Type": "application/json",
        }
        if stream:
            headers["Accept"] = "text/event-stream"
        return VendorRequest(method="POST", url=f"{base_url}/messages", headers=headers, json=body)

    # VendorFamily.GOOGLE
    system, dialogue = _split_system(conversation)
    body = {
        "contents": _google_contents(dialogue),
        "generationConfig": {"temperature": temperature, "maxOutputTokens": max_tokens},
    }
    if system:
        body["systemInstruction"] = {"parts": [{"text": system}]}
    action = "streamGenerateContent" if stream else "generateContent"
    params = {"key": key}
    if stream:
        params["alt"] = "sse"
    return VendorRequest(
        method="POST",
        url=f"{base_url}/models/{model}:{action}",
        headers={"Content-Type": "application/json"},
        json=body,
        params=params,
    )


def build_probe_request(descriptor: ProviderDescriptor, api_key: str) -> VendorRequest:
    """
    Build the cheapest request that proves credentials, base URL and model work.

    Chat-completions providers get a models listing; the others a
    completion capped at a handful of tokens.
    """
    base_url, key = _validate(descriptor, api_key)
    model = descriptor.model.strip()
    family = descriptor.provider_type.family

    if family == VendorFamily.CHAT_COMPLETIONS:
        return VendorRequest(
            method="GET",
            url=f"{base_url}/models",
            headers={"Authorization": f"Bearer {key}"},
        )

    if family == VendorFamily.RESPONSES:
        return VendorRequest(
            method="POST",
            url=f"{base_url}/responses",
            headers=_bearer_headers(key, stream=False),
            json={"model": model, "input": PROBE_PROMPT, "max_output_tokens": 8},
        )

    if family == VendorFamily.ANTHROPIC:
        return VendorRequest(
            method="POST",
            url=f"{base_url}/messages",
            headers={
                "x-api-key": key,
                "anthropic-version": settings.ANTHROPIC_API_VERSION,
                "Content-Type": "application/json",
            },
            json={
                "model": model,
                "max_tokens": 1,
                "messages": [{"role": "user", "content": PROBE_PROMPT}],
            },
        )

    return VendorRequest(
        method="POST",
        url=f"{base_url}/models/{model}:generateContent",
        headers={"Content-Type": "application/json"},
        json={
            "contents": [{"role": "user", "parts": [{"text": PROBE_PROMPT}]}],
            "generationConfig": {"maxOutputTokens": 8},
        },
        params={"key": key},
    )
