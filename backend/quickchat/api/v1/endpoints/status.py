"""
Status and health check endpoints.

WHAT: Health monitoring for the database, providers and in-flight streams
WHY: Quick diagnostics for the desktop shell
HOW: FastAPI endpoint calling database ping and the provider store
"""

from fastapi import APIRouter, Depends

from ..dependencies import get_provider_store, get_query_service
from ....core.config import settings
from ....core.database import ping_database
from ....core.provider_store import SqlProviderStore
from ....services.query_service import QueryService
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health(
    store: SqlProviderStore = Depends(get_provider_store),
    service: QueryService = Depends(get_query_service),
):
    """
    Report backend health.

    WHAT: Database status, active provider and running streams
    WHY: Shell can tell "no provider configured" apart from "backend down"
    HOW: ping_database() plus a store lookup (the API key is never returned)

    Returns:
        JSON with app, database and provider status
    """
    db_status = ping_database()

    try:
        active = store.get_active_with_key()
        provider = {
            "configured": active is not None,
            "id": active[0].id if active else None,
            "name": active[0].name if active else None,
            "model": active[0].model if active else None,
            "error": None,
        }
    except Exception as e:
        logger.error(f"Failed to read active provider: {e}")
        provider = {"configured": False, "id": None, "name": None, "model": None, "error": str(e)}

    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "database": db_status,
        "provider": provider,
        "active_streams": service.active_streams(),
    }
