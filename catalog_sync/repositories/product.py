"""
Postgres-backed ProductStore.

Sync writes only ever touch the cache columns plus ``external_catalog_version``
and ``synced_at``; ownership and status are left to the product CRUD layer.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync.core.exceptions import ProductNotFoundError
from catalog_sync.core.utils import model_to_schema, models_to_schemas, utc_now
from catalog_sync.models.product import Product
from catalog_sync.repositories.base import ProductStore
from catalog_sync.schemas.product import CacheUpdate, ExternalLink, ProductDraft, ProductRead

logger = logging.getLogger(__name__)


class ProductRepository(ProductStore):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_all(self, product_ids: Optional[Iterable[int]] = None) -> List[ProductRead]:
        query = select(Product).order_by(Product.id)
        if product_ids is not None:
            query = query.where(Product.id.in_(list(product_ids)))
        result = await self.db.execute(query)
        return models_to_schemas(result.scalars().all(), ProductRead)

    async def find_by_id(self, product_id: int) -> Optional[ProductRead]:
        product = await self.db.get(Product, product_id)
        return model_to_schema(product, ProductRead) if product else None

    async def _find_one(self, column, value) -> Optional[ProductRead]:
        result = await self.db.execute(select(Product).where(column == value).limit(1))
        product = result.scalar_one_or_none()
        return model_to_schema(product, ProductRead) if product else None

    async def find_by_external_item_id(self, item_id: str) -> Optional[ProductRead]:
        return await self._find_one(Product.external_item_id, item_id)

    async def find_by_external_variation_id(self, variation_id: str) -> Optional[ProductRead]:
        return await self._find_one(Product.external_variation_id, variation_id)

    async def create(self, draft: ProductDraft, link: ExternalLink) -> ProductRead:
        product = Product(
            **draft.model_dump(),
            external_item_id=link.item_id,
            external_variation_id=link.variation_id,
            external_catalog_version=link.catalog_version,
            external_location_id=link.location_id,
            synced_at=utc_now(),
        )
        self.db.add(product)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(product)
        logger.info(f"Created product {product.id} linked to external item {link.item_id}")
        return model_to_schema(product, ProductRead)

    async def _update(self, product_id: int, values: dict) -> ProductRead:
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(**values)
            .returning(Product)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        product = result.scalar_one_or_none()
        if product is None:
            await self.db.rollback()
            raise ProductNotFoundError(product_id)
        await self.db.commit()
        return model_to_schema(product, ProductRead)

    async def update_cache(
        self,
        product_id: int,
        cache: CacheUpdate,
        new_version: Optional[int] = None,
    ) -> ProductRead:
        values = cache.changes()
        if new_version is not None:
            values["external_catalog_version"] = new_version
        values["synced_at"] = utc_now()
        return await self._update(product_id, values)

    async def update_quantity(self, product_id: int, quantity: int) -> ProductRead:
        return await self._update(product_id, {"quantity": quantity, "synced_at": utc_now()})
