"""
LLM provider types, dataclasses, and exceptions.

WHAT: Standard type definitions for the multi-vendor query engine
WHY: Ensure consistent contracts across request building, decoding and parsing
HOW: Enums for the closed vendor set, frozen dataclasses for values, exception taxonomy
"""

import enum
from dataclasses import dataclass, field
from typing import Any


VALID_ROLES = frozenset({"system", "user", "assistant"})


class VendorFamily(str, enum.Enum):
    """Wire-protocol shapes a provider can speak."""
    CHAT_COMPLETIONS = "chat_completions"
    RESPONSES = "responses"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class ProviderType(str, enum.Enum):
    """Supported provider types."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    VOLCENGINE = "volcengine"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: "str | ProviderType | None") -> "ProviderType":
        """Parse a stored or user-supplied type name; unknown names become CUSTOM."""
        if isinstance(value, ProviderType):
            return value
        name = (value or "").strip().lower()
        if name == "gemini":
            return cls.GOOGLE
        try:
            return cls(name)
        except ValueError:
            return cls.CUSTOM

    @property
    def family(self) -> VendorFamily:
        return _FAMILIES[self]

    @property
    def default_base_url(self) -> str | None:
        return _DEFAULT_BASE_URLS[self]

    @property
    def default_model(self) -> str:
        return _DEFAULT_MODELS[self]


_FAMILIES = {
    ProviderType.OPENAI: VendorFamily.CHAT_COMPLETIONS,
    ProviderType.CUSTOM: VendorFamily.CHAT_COMPLETIONS,
    ProviderType.VOLCENGINE: VendorFamily.RESPONSES,
    ProviderType.ANTHROPIC: VendorFamily.ANTHROPIC,
    ProviderType.GOOGLE: VendorFamily.GOOGLE,
}

_DEFAULT_BASE_URLS = {
    ProviderType.OPENAI: "https://api.openai.com/v1",
    ProviderType.ANTHROPIC: "https://api.anthropic.com/v1",
    ProviderType.GOOGLE: "https://generativelanguage.googleapis.com/v1beta",
    ProviderType.VOLCENGINE: "https://ark.cn-beijing.volces.com/api/v3",
    ProviderType.CUSTOM: None,
}

_DEFAULT_MODELS = {
    ProviderType.OPENAI: "gpt-4o-mini",
    ProviderType.ANTHROPIC: "claude-3-5-sonnet-latest",
    ProviderType.GOOGLE: "gemini-1.5-pro",
    ProviderType.VOLCENGINE: "deepseek-v3-2-251201",
    ProviderType.CUSTOM: "",
}


@dataclass(frozen=True)
class ProviderDescriptor:
    """Identity and endpoint of one configured provider (no secret)."""
    id: str
    name: str
    provider_type: ProviderType
    model: str
    base_url: str | None = None

    def resolved_base_url(self) -> str:
        """Configured base URL, else the per-type default; '' when neither exists."""
        url = (self.base_url or "").strip() or (self.provider_type.default_base_url or "")
        return url.rstrip("/")


@dataclass(frozen=True)
class ChatMessage:
    """One conversation turn."""
    role: str
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class NormalizedConversation:
    """Validated message sequence in transmission order (at least one user turn)."""
    messages: tuple[ChatMessage, ...]

    def as_payload(self) -> list[dict]:
        return [m.to_dict() for m in self.messages]

    def __len__(self) -> int:
        return len(self.messages)


@dataclass(frozen=True)
class VendorRequest:
    """Fully-formed HTTP request for one vendor call."""
    method: str
    url: str
    headers: dict[str, str]
    json: dict[str, Any] | None = None
    params: dict[str, str] = field(default_factory=dict)

    def redacted_url(self) -> str:
        """URL without query parameters (Google carries the key there)."""
        return self.url


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of a connection probe."""
    success: bool
    message: str
    status_code: int | None
    latency_ms: int

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "message": self.message,
            "status_code": self.status_code,
            "latency_ms": self.latency_ms,
        }


# Provider exceptions
class ProviderError(Exception):
    """Base class for query engine failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ProviderValidationError(ProviderError):
    """Local validation failed; no request was sent."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code


class ProviderTransportError(ProviderError):
    """DNS/TCP/TLS failure, broken stream, or deadline expiry."""
    pass


class ProviderTimeoutError(ProviderTransportError):
    """Request to provider timed out."""
    pass


class ProviderUnavailableError(ProviderTransportError):
    """Provider is not reachable or the connection dropped."""
    pass


class ProviderHTTPError(ProviderError):
    """Provider answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class ProviderParseError(ProviderError):
    """2xx body held no recognizable text in any known vendor shape."""

    def __init__(self, message: str, excerpt: str = ""):
        super().__init__(message)
        self.excerpt = excerpt


class ProviderResponseError(ProviderError):
    """Provider reported an error inside a successful response body."""
    pass


class QueryCancelledError(ProviderError):
    """Query was cancelled by its caller."""
    pass
