from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.core.security import WebhookSignatureVerifier
from catalog_sync.database import async_session
from catalog_sync.integrations.base import ExternalCatalogClient
from catalog_sync.repositories.product import ProductRepository
from catalog_sync.repositories.sync_conflict import SyncConflictRepository
from catalog_sync.services.catalog_reconciler import CatalogReconciler
from catalog_sync.services.conflict_detector import ConflictDetector
from catalog_sync.services.conflict_resolver import ConflictResolver
from catalog_sync.services.inventory_reconciler import InventoryReconciler
from catalog_sync.services.webhook_processor import WebhookProcessor


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


# Built once in the app lifespan and shared by every request

def get_external_client(request: Request) -> ExternalCatalogClient:
    return request.app.state.square_client


def get_signature_verifier(request: Request) -> WebhookSignatureVerifier:
    return request.app.state.signature_verifier


# Per-request stores and services

def get_product_store(db: AsyncSession = Depends(get_db)) -> ProductRepository:
    return ProductRepository(db)


def get_conflict_store(db: AsyncSession = Depends(get_db)) -> SyncConflictRepository:
    return SyncConflictRepository(db)


def get_catalog_reconciler(
    products: ProductRepository = Depends(get_product_store),
    client: ExternalCatalogClient = Depends(get_external_client),
) -> CatalogReconciler:
    return CatalogReconciler(products, client)


def get_webhook_processor(
    catalog: CatalogReconciler = Depends(get_catalog_reconciler),
    products: ProductRepository = Depends(get_product_store),
) -> WebhookProcessor:
    return WebhookProcessor(catalog, InventoryReconciler(products))


def get_conflict_detector(
    products: ProductRepository = Depends(get_product_store),
    conflicts: SyncConflictRepository = Depends(get_conflict_store),
    client: ExternalCatalogClient = Depends(get_external_client),
) -> ConflictDetector:
    return ConflictDetector(products, conflicts, client)


def get_conflict_resolver(
    products: ProductRepository = Depends(get_product_store),
    conflicts: SyncConflictRepository = Depends(get_conflict_store),
    client: ExternalCatalogClient = Depends(get_external_client),
) -> ConflictResolver:
    return ConflictResolver(products, conflicts, client)
