"""
Provider persistence service.

WHAT: Read accessors the query engine consumes, plus the admin write path
WHY: The engine never touches global state; it is handed a ProviderStore
HOW: Protocol for the read side, SQLAlchemy implementation for both sides
"""

from dataclasses import dataclass, asdict
from typing import Protocol

from sqlalchemy import func, select

from .database import SessionLocal, get_db
from .models import Provider, now_unix_ms
from ..llm.types import ProviderDescriptor, ProviderType
from ..utils.exceptions import ProviderNotFoundError
from ..utils.logger import get_logger, mask_secret

logger = get_logger(__name__)


class ProviderStore(Protocol):
    """Read accessors required by the query service."""

    def get_provider(self, provider_id: str) -> ProviderDescriptor | None:
        """Look up a provider descriptor by id."""
        ...

    def get_active_with_key(self) -> tuple[ProviderDescriptor, str] | None:
        """First active provider (display order) with a non-blank key."""
        ...

    def get_api_key(self, provider_id: str) -> str:
        """Stored API key ('' when unset)."""
        ...


@dataclass(frozen=True)
class ProviderRecord:
    """Provider as shown to the settings UI (secret replaced by has_api_key)."""
    id: str
    name: str
    provider_type: str
    base_url: str | None
    model: str
    is_active: bool
    display_order: int
    has_api_key: bool
    created_at: int
    updated_at: int

    def to_dict(self) -> dict:
        return asdict(self)


def _clean_key(api_key: str | None) -> str | None:
    value = (api_key or "").strip()
    return value or None


def _descriptor(row: Provider) -> ProviderDescriptor:
    return ProviderDescriptor(
        id=row.id,
        name=row.name,
        provider_type=ProviderType.parse(row.provider_type),
        model=row.model or "",
        base_url=row.base_url,
    )


def _record(row: Provider) -> ProviderRecord:
    return ProviderRecord(
        id=row.id,
        name=row.name,
        provider_type=ProviderType.parse(row.provider_type).value,
        base_url=row.base_url,
        model=row.model or "",
        is_active=bool(row.is_active),
        display_order=row.display_order,
        has_api_key=bool((row.api_key or "").strip()),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlProviderStore:
    """SQLAlchemy-backed ProviderStore with provider administration."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or SessionLocal

    def _session(self):
        return get_db(self._session_factory)

    # ----- read accessors (query path) -----

    def get_provider(self, provider_id: str) -> ProviderDescriptor | None:
        with self._session() as db:
            row = db.get(Provider, provider_id)
            return _descriptor(row) if row else None

    def get_active_with_key(self) -> tuple[ProviderDescriptor, str] | None:
        with self._session() as db:
            row = db.execute(
                select(Provider)
                .where(Provider.is_active.is_(True))
                .order_by(Provider.display_order.asc())
                .limit(1)
            ).scalar_one_or_none()
            if row is None:
                return None
            api_key = (row.api_key or "").strip()
            if not api_key:
                return None
            return _descriptor(row), api_key

    def get_api_key(self, provider_id: str) -> str:
        with self._session() as db:
            row = db.get(Provider, provider_id)
            if row is None:
                raise ProviderNotFoundError(provider_id)
            return row.api_key or ""

    # ----- administration -----

    def create(
        self,
        name: str,
        provider_type: ProviderType | str,
        *,
        base_url: str | None = None,
        model: str | None = None,
        api_key: str | None = None,
    ) -> ProviderRecord:
        """
        Create a provider.

        Base URL and model default from the provider type; the first
        provider created becomes active.
        """
        ptype = ProviderType.parse(provider_type)
        with self._session() as db:
            max_order = db.execute(select(func.max(Provider.display_order))).scalar()
            row = Provider(
                name=name.strip(),
                provider_type=ptype.value,
                base_url=(base_url or "").strip() or ptype.default_base_url,
                model=(model or "").strip() or ptype.default_model,
                api_key=_clean_key(api_key),
                is_active=max_order is None,
                display_order=0 if max_order is None else max_order + 1,
            )
            db.add(row)
            db.flush()
            logger.info(f"Created provider {row.name} ({ptype.value}, id={row.id})")
            return _record(row)

    def list_providers(self) -> list[ProviderRecord]:
        with self._session() as db:
            rows = db.execute(select(Provider).order_by(Provider.display_order.asc())).scalars().all()
            return [_record(row) for row in rows]

    def get(self, provider_id: str) -> ProviderRecord:
        with self._session() as db:
            row = db.get(Provider, provider_id)
            if row is None:
                raise ProviderNotFoundError(provider_id)
            return _record(row)

    def update(
        self,
        provider_id: str,
        *,
        name: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
    ) -> ProviderRecord:
        with self._session() as db:
            row = db.get(Provider, provider_id)
            if row is None:
                raise ProviderNotFoundError(provider_id)
            changed = False
            if name is not None:
                row.name = name.strip()
                changed = True
            if base_url is not None:
                row.base_url = base_url.strip() or None
                changed = True
            if model is not None:
                row.model = model.strip()
                changed = True
            if changed:
                row.updated_at = now_unix_ms()
            return _record(row)

    def delete(self, provider_id: str) -> None:
        """Delete a provider; if it was active, the first remaining one takes over."""
        with self._session() as db:
            row = db.get(Provider, provider_id)
            if row is None:
                return
            was_active = bool(row.is_active)
            db.delete(row)
            db.flush()
            if was_active:
                successor = db.execute(
                    select(Provider).order_by(Provider.display_order.asc()).limit(1)
                ).scalar_one_or_none()
                if successor is not None:
                    successor.is_active = True
                    logger.info(f"Provider {successor.name} activated after deleting {provider_id}")

    def set_active(self, provider_id: str, is_active: bool) -> None:
        """Enable or disable a provider (several may be enabled)."""
        with self._session() as db:
            row = db.get(Provider, provider_id)
            if row is None:
                raise ProviderNotFoundError(provider_id)
            row.is_active = is_active
            row.updated_at = now_unix_ms()

    def set_api_key(self, provider_id: str, api_key: str) -> None:
        """Store a trimmed key; a blank key clears it."""
        with self._session() as db:
            row = db.get(Provider, provider_id)
            if row is None:
                raise ProviderNotFoundError(provider_id)
            row.api_key = _clean_key(api_key)
            row.updated_at = now_unix_ms()
            logger.info(f"API key for provider {row.name} set to {mask_secret(row.api_key)}")
