import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# Domain records


class CacheEntry(BaseModel):
    """Stored answer for a normalized query."""

    key: str
    original_query: str
    normalized_query: str
    response: str
    created_at: float
    hit_count: int = Field(default=1, ge=1)


class GlobalUsageRecord(BaseModel):
    date: datetime.date
    total_cost: Decimal = Decimal("0")
    question_count: int = 0


class IdentityUsageRecord(BaseModel):
    identity_key: str
    date: datetime.date
    question_count: int = 0
    total_cost: Decimal = Decimal("0")


class ModelTokenCounts(BaseModel):
    requests: int = 0
    input_tokens: int = 0
    output_tokens: int = 0


class UsageCounters(BaseModel):
    """Token and request counters for one calendar day or month."""

    model_config = ConfigDict(protected_namespaces=())

    period_key: str
    total_requests: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    model_requests: int = 0
    models: dict[str, ModelTokenCounts] = Field(default_factory=dict)


class Conversation(BaseModel):
    """One question/answer exchange, stored with the browser's camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    timestamp: str
    date: str
    user_message: Optional[str] = Field(default=None, alias="userMessage")
    ai_response: Optional[str] = Field(default=None, alias="aiResponse")
    fingerprint_id: str = Field(alias="fingerprintId")


class ModelReply(BaseModel):
    """Text produced by a provider call."""

    provider_used: str
    model: str
    content: str
    latency_ms: int
    input_tokens: int
    output_tokens: int


# API request models


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    user_id: Optional[str] = None


class CacheRequest(BaseModel):
    action: Literal["get", "set", "increment"]
    query: str
    response: Optional[str] = None


class KeywordRequest(BaseModel):
    query: str = Field(min_length=1)


class UsageCheckRequest(BaseModel):
    ip_address: Optional[str] = None
    user_id: Optional[str] = None
    cost_estimate: Optional[float] = Field(default=None, gt=0)


class ConversationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    fingerprint_id: Optional[str] = Field(default=None, alias="fingerprintId")
    user_message: Optional[str] = Field(default=None, alias="userMessage")
    ai_response: Optional[str] = Field(default=None, alias="aiResponse")
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")


# API response models


class ChatResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    response: str
    cost_saved: bool
    cached: Optional[bool] = None
    keyword_match: Optional[bool] = None
    type: Optional[str] = None
    model: Optional[str] = None
    model_tier: Optional[Literal["cheap", "premium"]] = None
    quality: Optional[str] = None


class CacheLookupResponse(BaseModel):
    hit: bool
    cached: bool
    response: Optional[str] = None
    similarity: Optional[float] = None
    age_ms: Optional[int] = None


class KeywordResponse(BaseModel):
    use_ai: bool = Field(serialization_alias="useAI")
    response: Optional[str] = None
    type: Optional[str] = None
    reason: Optional[str] = None
    confidence: Optional[float] = None


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: Literal["healthy", "degraded"]
    storage_backend: str
    storage_ok: bool
    cheap_provider: str
    premium_provider: Optional[str]
    version: str


class RootResponse(BaseModel):
    """Response model for the root endpoint."""

    message: str
    version: str
    docs: dict[str, str]
