"""
FastAPI dependency injection.
Builds the sync stack once at startup and hands it out to routes.
"""

from typing import Optional
from fastapi import Request, HTTPException

from .config import settings
from .db import CredentialCipher, SQLiteDatabase, StatusRepository, AuditRepository
from .auth import SessionManager
from .clients import PlatformClientRegistry, StreetPricerClient, default_registry
from .processor import SyncScheduler, SyncService


# Global instances (initialized on startup)
_db: Optional[SQLiteDatabase] = None
_status_repository: Optional[StatusRepository] = None
_audit_repository: Optional[AuditRepository] = None
_source_client: Optional[StreetPricerClient] = None
_platform_clients: Optional[PlatformClientRegistry] = None
_sync_service: Optional[SyncService] = None
_scheduler: Optional[SyncScheduler] = None
_session_manager: Optional[SessionManager] = None


def create_source_client() -> StreetPricerClient:
    """StreetPricer client configured from settings."""
    return StreetPricerClient(
        api_url=settings.streetpricer_api_url,
        username=settings.streetpricer_username,
        password=settings.streetpricer_password,
        stores_endpoint=settings.streetpricer_stores_endpoint,
        products_endpoint=settings.streetpricer_products_endpoint,
        timeout=settings.http_timeout,
        max_attempts=settings.streetpricer_max_attempts,
    )


def create_sync_service(
    db: SQLiteDatabase,
    source_client: Optional[StreetPricerClient] = None,
    platform_clients: Optional[PlatformClientRegistry] = None,
) -> SyncService:
    """Wire a SyncService onto an initialized database."""
    return SyncService(
        source_client=source_client or create_source_client(),
        platform_clients=platform_clients or default_registry(timeout=settings.http_timeout),
        status_repository=StatusRepository(db),
        audit_repository=AuditRepository(db),
    )


async def init_dependencies():
    """Initialize global dependencies. Called on app startup."""
    global _db, _status_repository, _audit_repository, _source_client
    global _platform_clients, _sync_service, _scheduler, _session_manager

    _db = SQLiteDatabase(settings.database_path, CredentialCipher(settings.encryption_key))
    await _db.initialize()

    _source_client = create_source_client()
    _platform_clients = default_registry(timeout=settings.http_timeout)
    _sync_service = create_sync_service(_db, _source_client, _platform_clients)
    _status_repository = _sync_service.status_repository
    _audit_repository = _sync_service.audit_repository

    _scheduler = SyncScheduler(
        store_source=_db,
        sync_service=_sync_service,
        reconcile_interval=settings.reconcile_interval,
        max_concurrent=settings.max_concurrent_syncs,
    )

    _session_manager = SessionManager(
        settings.session_secret,
        secure_cookies=settings.session_secure_cookies,
    )


async def close_dependencies():
    """Close global dependencies. Called on app shutdown."""
    global _scheduler, _source_client, _db

    if _scheduler:
        await _scheduler.stop()
    if _source_client:
        await _source_client.close()
    if _db:
        await _db.close()


def get_db() -> SQLiteDatabase:
    """Get the database instance."""
    if _db is None:
        raise RuntimeError("Database not initialized")
    return _db


def get_status_repository() -> StatusRepository:
    if _status_repository is None:
        raise RuntimeError("Status repository not initialized")
    return _status_repository


def get_audit_repository() -> AuditRepository:
    if _audit_repository is None:
        raise RuntimeError("Audit repository not initialized")
    return _audit_repository


def get_platform_clients() -> PlatformClientRegistry:
    if _platform_clients is None:
        raise RuntimeError("Platform clients not initialized")
    return _platform_clients


def get_scheduler() -> SyncScheduler:
    """Get the sync scheduler instance."""
    if _scheduler is None:
        raise RuntimeError("Scheduler not initialized")
    return _scheduler


def get_session_manager() -> SessionManager:
    """Get the session manager instance."""
    if _session_manager is None:
        raise RuntimeError("Session manager not initialized")
    return _session_manager


async def require_auth(request: Request):
    """Dependency that requires an operator session."""
    session_manager = get_session_manager()

    if not session_manager.is_authenticated(request):
        raise HTTPException(status_code=401, detail="Not authenticated")
