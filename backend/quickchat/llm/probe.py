"""
Provider connection probe.

WHAT: Validate a provider's key, base URL and model with one cheap request
WHY: Settings UI needs a yes/no with a reason and a latency figure
HOW: Minimal per-family request with a short deadline; every failure becomes a result
"""

import time

import httpx

from .classifier import classify, excerpt
from .request_builder import build_probe_request
from .types import ConnectionTestResult, ProviderDescriptor, ProviderValidationError
from ..core.config import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


async def probe_connection(
    descriptor: ProviderDescriptor,
    api_key: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float | None = None,
) -> ConnectionTestResult:
    """
    Probe a provider. Never raises.

    Args:
        descriptor: Provider to test
        api_key: Provider secret
        client: Shared async client (a short-lived one is created when omitted)
        timeout: Deadline in seconds (defaults to LLM_PROBE_TIMEOUT)

    Returns:
        ConnectionTestResult with success flag, message, status code and latency
    """
    started = time.perf_counter()
    timeout = timeout or settings.LLM_PROBE_TIMEOUT

    try:
        request = build_probe_request(descriptor, api_key)
    except ProviderValidationError as e:
        logger.info(f"Probe of {descriptor.name} skipped: {e.message}")
        message = "API key is empty" if e.code == "EMPTY_API_KEY" else e.message
        return ConnectionTestResult(success=False, message=message, status_code=None, latency_ms=_elapsed_ms(started))

    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient()

    try:
        response = await client.request(
            request.method,
            request.url,
            headers=request.headers,
            params=request.params or None,
            json=request.json,
            timeout=httpx.Timeout(timeout, connect=min(settings.LLM_CONNECT_TIMEOUT, timeout)),
        )
        latency_ms = _elapsed_ms(started)
    except httpx.TimeoutException:
        logger.warning(f"Probe of {descriptor.name} timed out")
        return ConnectionTestResult(
            success=False,
            message=f"Request timed out after {timeout:g}s",
            status_code=None,
            latency_ms=_elapsed_ms(started),
        )
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.warning(f"Probe of {descriptor.name} failed: {e}")
        return ConnectionTestResult(
            success=False,
            message=f"Network error: {e}",
            status_code=None,
            latency_ms=_elapsed_ms(started),
        )
    except Exception as e:
        logger.error(f"Probe of {descriptor.name} failed unexpectedly: {e}")
        return ConnectionTestResult(
            success=False,
            message=str(e),
            status_code=None,
            latency_ms=_elapsed_ms(started),
        )
    finally:
        if owns_client:
            await client.aclose()

    if not response.is_success:
        detail = excerpt(response.text, settings.LLM_ERROR_EXCERPT_CHARS)
        logger.warning(f"Probe of {descriptor.name} returned HTTP {response.status_code}")
        return ConnectionTestResult(
            success=False,
            message=classify(response.status_code, descriptor.model, detail),
            status_code=response.status_code,
            latency_ms=latency_ms,
        )

    logger.info(f"Probe of {descriptor.name} succeeded in {latency_ms} ms")
    return ConnectionTestResult(
        success=True,
        message=f"Connection successful ({descriptor.model}, {latency_ms} ms)",
        status_code=response.status_code,
        latency_ms=latency_ms,
    )
