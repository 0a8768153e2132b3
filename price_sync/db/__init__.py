"""
Database package - SQLite only.
"""

from .models import (
    Platform, ProductSyncStatus, SyncOutcome, TriggerType, AuditAction,
    Store, StoreCreate, StoreUpdate, StoreView, ProductStatus, SyncResult,
    AuditEntry, UNLISTED_PRODUCT_ID, generate_uuid, utcnow
)
from .crypto import CredentialCipher, generate_encryption_key
from .sqlite import SQLiteDatabase
from .status import StatusRepository
from .audit import AuditRepository

__all__ = [
    "CredentialCipher",
    "generate_encryption_key",
    "SQLiteDatabase",
    "StatusRepository",
    "AuditRepository",
    "Platform",
    "ProductSyncStatus",
    "SyncOutcome",
    "TriggerType",
    "AuditAction",
    "Store",
    "StoreCreate",
    "StoreUpdate",
    "StoreView",
    "ProductStatus",
    "SyncResult",
    "AuditEntry",
    "UNLISTED_PRODUCT_ID",
    "generate_uuid",
    "utcnow",
]
