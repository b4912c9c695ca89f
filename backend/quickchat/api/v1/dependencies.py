"""
Request-scoped dependencies.

WHAT: Hand endpoints the ProviderStore and QueryService built at startup
WHY: Endpoints never construct services; tests override these getters
HOW: Read from app.state (populated in main.lifespan)
"""

from fastapi import Request

from ...core.provider_store import SqlProviderStore
from ...services.query_service import QueryService


def get_provider_store(request: Request) -> SqlProviderStore:
    return request.app.state.provider_store


def get_query_service(request: Request) -> QueryService:
    return request.app.state.query_service
