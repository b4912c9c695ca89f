"""
Pydantic API schemas.

WHAT: Request and response models for FastAPI
WHY: Type-safe validation and serialization matching the desktop shell's interfaces
HOW: Pydantic v2 models with validators and constraints
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator

from ..llm.types import ProviderType


# ========== Queries ==========

class QueryRequest(BaseModel):
    """Prompt plus optional conversation history."""
    prompt: str = Field(default="", description="User prompt (ignored when history holds a user turn)")
    history: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        description="Prior turns as [{role, content}]; invalid entries are dropped"
    )


class ProviderStreamRequest(QueryRequest):
    """Per-provider streaming query."""
    stream_key: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Event namespace and cancel key (defaults to the provider id)"
    )


class QueryResponse(BaseModel):
    text: str


class CancelResponse(BaseModel):
    stream_key: str
    cancelled: bool


# ========== Providers ==========

class CreateProviderRequest(BaseModel):
    """New provider; base_url and model default from the provider type."""
    name: str = Field(..., min_length=1, max_length=100)
    provider_type: str = Field(..., description="openai | anthropic | google | volcengine | custom")
    base_url: Optional[str] = None
    model: Optional[str] = Field(default=None, max_length=200)
    api_key: Optional[str] = None

    @field_validator("provider_type")
    @classmethod
    def normalize_provider_type(cls, v: str) -> str:
        """Unknown types are stored as custom."""
        return ProviderType.parse(v).value


class UpdateProviderRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    base_url: Optional[str] = None
    model: Optional[str] = Field(default=None, max_length=200)


class SetActiveRequest(BaseModel):
    is_active: bool


class SetApiKeyRequest(BaseModel):
    api_key: str = ""


class ProviderView(BaseModel):
    """Provider as displayed in settings (never includes the key)."""
    id: str
    name: str
    provider_type: str
    base_url: Optional[str]
    model: str
    is_active: bool
    display_order: int
    has_api_key: bool
    created_at: int
    updated_at: int


class ApiKeyResponse(BaseModel):
    provider_id: str
    api_key: str


class ConnectionTestResponse(BaseModel):
    success: bool
    message: str
    status_code: Optional[int]
    latency_ms: int
