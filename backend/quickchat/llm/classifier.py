"""
Failure classification for vendor HTTP errors.

WHAT: Map status codes to stable, human-readable failure messages
WHY: The UI shows these directly; users need to know what to fix
HOW: Fixed prefix table keyed by status, model name and body excerpt appended
"""

AUTH_FAILED = "Authentication failed"
NOT_FOUND = "Model or endpoint not found"
RATE_LIMITED = "Rate limited"
SERVER_ERROR = "Provider server error"
GENERIC_FAILURE = "Connection test failed"


def category_prefix(status: int) -> str:
    if status in (401, 403):
        return AUTH_FAILED
    if status == 404:
        return NOT_FOUND
    if status == 429:
        return RATE_LIMITED
    if 500 <= status <= 599:
        return SERVER_ERROR
    return GENERIC_FAILURE


def classify(status: int, model: str, detail_excerpt: str | None = None) -> str:
    """Build the message for a non-2xx vendor response."""
    message = f"{category_prefix(status)} (HTTP {status}) for model '{model}'"
    detail = (detail_excerpt or "").strip()
    if detail:
        message = f"{message}: {detail}"
    return message


def excerpt(text: str | None, limit: int) -> str:
    """Whitespace-collapsed prefix of a response body for diagnostics."""
    flat = " ".join((text or "").split())
    if len(flat) <= limit:
        return flat
    return flat[:limit].rstrip() + "..."
