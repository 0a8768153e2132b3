"""
Pydantic models for database entities.
Store credentials are kept as an opaque JSON object owned by the platform client.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
import uuid


class Platform(str, Enum):
    """Supported sales channels."""
    WOOCOMMERCE = "woocommerce"
    SHOPIFY = "shopify"


class ProductSyncStatus(str, Enum):
    """Outcome recorded for a single priceable unit."""
    REPRICED = "repriced"
    PENDING = "pending"
    UNLISTED = "unlisted"


class SyncOutcome(str, Enum):
    """Overall outcome of one store sync cycle."""
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class TriggerType(str, Enum):
    """What triggered the sync."""
    SCHEDULER = "scheduler"
    MANUAL = "manual"


class AuditAction(str, Enum):
    """Actions written to the audit log."""
    PRICE_UPDATE_ATTEMPTED = "PRICE_UPDATE_ATTEMPTED"
    PRICE_UPDATED = "PRICE_UPDATED"
    PRICE_UPDATE_FAILED = "PRICE_UPDATE_FAILED"
    SYNC_COMPLETED = "SYNC_COMPLETED"
    SYNC_FAILED = "SYNC_FAILED"


# platform_product_id used for source products missing from the channel
UNLISTED_PRODUCT_ID = ""


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class Store(BaseModel):
    """A connected sales channel store."""
    id: str = Field(default_factory=generate_uuid)
    name: str
    platform: Platform
    sync_interval: int = Field(default=3600, gt=0)  # seconds
    enabled: bool = True
    credentials: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class StoreCreate(BaseModel):
    """Input for creating a new store."""
    name: str = Field(min_length=1)
    platform: Platform
    credentials: Dict[str, Any]
    sync_interval: Optional[int] = Field(default=None, gt=0)
    enabled: bool = True


class StoreUpdate(BaseModel):
    """Input for updating a store."""
    name: Optional[str] = None
    sync_interval: Optional[int] = Field(default=None, gt=0)
    enabled: Optional[bool] = None
    credentials: Optional[Dict[str, Any]] = None


class StoreView(BaseModel):
    """Store as exposed by the API (credentials stripped)."""
    id: str
    name: str
    platform: Platform
    sync_interval: int
    enabled: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_store(cls, store: Store) -> "StoreView":
        return cls(**store.model_dump(exclude={"credentials"}))


class ProductStatus(BaseModel):
    """Last known sync state of one (store, platform unit, source product) key."""
    store_id: str
    platform_product_id: str
    source_product_id: str
    sku: str
    status: ProductSyncStatus
    current_price: Optional[Decimal] = None
    target_price: Decimal
    last_attempt_at: datetime
    last_success_at: Optional[datetime] = None
    error_message: Optional[str] = None


class SyncResult(BaseModel):
    """Aggregate result of a single store sync cycle."""
    id: str = Field(default_factory=generate_uuid)
    store_id: str
    store_name: str = ""
    status: SyncOutcome = SyncOutcome.SUCCESS
    triggered_by: TriggerType = TriggerType.SCHEDULER
    started_at: datetime = Field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    # Statistics
    matched_count: int = 0
    repriced_count: int = 0
    pending_count: int = 0
    unlisted_count: int = 0
    unchanged_count: int = 0

    # Error information
    error_message: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status != SyncOutcome.FAILED


class AuditEntry(BaseModel):
    """Immutable audit log entry."""
    id: Optional[int] = None
    store_id: str
    action: AuditAction
    timestamp: datetime = Field(default_factory=utcnow)
    product_id: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    detail: str = ""
