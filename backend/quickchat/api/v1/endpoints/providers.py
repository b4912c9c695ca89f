"""
Provider administration endpoints.

WHAT: CRUD, enable/disable, API key management and connection test for providers
WHY: The settings screen manages providers; the query engine only reads them
HOW: Thin FastAPI routes over SqlProviderStore and QueryService.test_connection
"""

from typing import List

from fastapi import APIRouter, Depends, status

from ..dependencies import get_provider_store, get_query_service
from ....core.provider_store import SqlProviderStore
from ....models.api_schemas import (
    CreateProviderRequest,
    UpdateProviderRequest,
    SetActiveRequest,
    SetApiKeyRequest,
    ProviderView,
    ApiKeyResponse,
    ConnectionTestResponse,
)
from ....services.query_service import QueryService
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/providers", response_model=List[ProviderView])
async def list_providers(store: SqlProviderStore = Depends(get_provider_store)):
    """List providers in display order."""
    return [record.to_dict() for record in store.list_providers()]


@router.post("/providers", response_model=ProviderView, status_code=status.HTTP_201_CREATED)
async def create_provider(
    request: CreateProviderRequest,
    store: SqlProviderStore = Depends(get_provider_store),
):
    """
    Create a provider.

    Base URL and model default from the provider type when omitted.
    """
    record = store.create(
        request.name,
        request.provider_type,
        base_url=request.base_url,
        model=request.model,
        api_key=request.api_key,
    )
    return record.to_dict()


@router.get("/providers/{provider_id}", response_model=ProviderView)
async def get_provider(provider_id: str, store: SqlProviderStore = Depends(get_provider_store)):
    return store.get(provider_id).to_dict()


@router.patch("/providers/{provider_id}", response_model=ProviderView)
async def update_provider(
    provider_id: str,
    request: UpdateProviderRequest,
    store: SqlProviderStore = Depends(get_provider_store),
):
    record = store.update(
        provider_id,
        name=request.name,
        base_url=request.base_url,
        model=request.model,
    )
    logger.info(f"Updated provider {provider_id}")
    return record.to_dict()


@router.delete("/providers/{provider_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_provider(provider_id: str, store: SqlProviderStore = Depends(get_provider_store)):
    """Delete a provider (no-op when the id is unknown)."""
    store.delete(provider_id)
    logger.info(f"Deleted provider {provider_id}")


@router.put("/providers/{provider_id}/active", response_model=ProviderView)
async def set_provider_active(
    provider_id: str,
    request: SetActiveRequest,
    store: SqlProviderStore = Depends(get_provider_store),
):
    store.set_active(provider_id, request.is_active)
    return store.get(provider_id).to_dict()


@router.put("/providers/{provider_id}/api-key", response_model=ProviderView)
async def set_provider_api_key(
    provider_id: str,
    request: SetApiKeyRequest,
    store: SqlProviderStore = Depends(get_provider_store),
):
    """Store an API key; an empty key clears it."""
    store.set_api_key(provider_id, request.api_key)
    return store.get(provider_id).to_dict()


@router.get("/providers/{provider_id}/api-key", response_model=ApiKeyResponse)
async def get_provider_api_key(provider_id: str, store: SqlProviderStore = Depends(get_provider_store)):
    return ApiKeyResponse(provider_id=provider_id, api_key=store.get_api_key(provider_id))


@router.post("/providers/{provider_id}/test", response_model=ConnectionTestResponse)
async def test_provider_connection(
    provider_id: str,
    service: QueryService = Depends(get_query_service),
):
    """
    Probe a provider with one cheap request.

    Always answers 200; `success` and `message` describe the outcome.
    """
    result = await service.test_connection(provider_id)
    logger.info(f"Connection test for {provider_id}: success={result.success} ({result.latency_ms} ms)")
    return result.to_dict()
