"""
Conversation normalization.

WHAT: Turn optional history plus a raw prompt into a validated message sequence
WHY: Every vendor request starts from the same canonical conversation
HOW: Filter invalid turns, append the prompt only when no user turn exists
"""

from typing import Any, Iterable, Sequence

from .types import ChatMessage, NormalizedConversation, ProviderValidationError, VALID_ROLES


def normalize(history: Sequence[ChatMessage] | None, prompt: str) -> NormalizedConversation:
    """
    Build the canonical conversation for a query.

    Messages with an unknown role or blank content are dropped. When the
    remaining history already holds a user turn, the prompt is ignored
    (callers include it in history themselves); otherwise the trimmed
    prompt is appended as the user turn.

    Raises:
        ProviderValidationError: EMPTY_PROMPT when no user turn can be formed
    """
    messages = [
        ChatMessage(role=m.role, content=m.content.strip())
        for m in (history or ())
        if m.role in VALID_ROLES and m.content and m.content.strip()
    ]

    if not any(m.role == "user" for m in messages):
        text = (prompt or "").strip()
        if not text:
            raise ProviderValidationError("EMPTY_PROMPT", "Prompt is empty")
        messages.append(ChatMessage(role="user", content=text))

    return NormalizedConversation(messages=tuple(messages))


def history_from_payload(items: Iterable[Any] | None) -> list[ChatMessage]:
    """Convert loosely-typed JSON history ([{role, content}, ...]) into messages."""
    history = []
    for item in items or ():
        if not isinstance(item, dict):
            continue
        role = item.get("role")
        content = item.get("content")
        if isinstance(role, str) and isinstance(content, str):
            history.append(ChatMessage(role=role.strip().lower(), content=content))
    return history
