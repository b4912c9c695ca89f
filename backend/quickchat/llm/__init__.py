"""Multi-vendor LLM query engine."""

from .types import (
    ChatMessage,
    ConnectionTestResult,
    NormalizedConversation,
    ProviderDescriptor,
    ProviderType,
    VendorFamily,
    VendorRequest,
    ProviderError,
    ProviderValidationError,
    ProviderTransportError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ProviderHTTPError,
    ProviderParseError,
    ProviderResponseError,
    QueryCancelledError,
)
from .cancellation import CancellationToken
from .classifier import classify
from .frame_decoder import FrameDecoder
from .messages import normalize
from .probe import probe_connection
from .request_builder import build_request, build_probe_request
from .response_parser import parse_delta, parse_full_text
from .streaming import StreamingOrchestrator, create_http_client

__all__ = [
    "ChatMessage",
    "ConnectionTestResult",
    "NormalizedConversation",
    "ProviderDescriptor",
    "ProviderType",
    "VendorFamily",
    "VendorRequest",
    "ProviderError",
    "ProviderValidationError",
    "ProviderTransportError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "ProviderHTTPError",
    "ProviderParseError",
    "ProviderResponseError",
    "QueryCancelledError",
    "CancellationToken",
    "classify",
    "FrameDecoder",
    "normalize",
    "probe_connection",
    "build_request",
    "build_probe_request",
    "parse_delta",
    "parse_full_text",
    "StreamingOrchestrator",
    "create_http_client",
]
