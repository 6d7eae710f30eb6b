"""
Local catalog record.

A product owns its identity, owner and status locally. The ``external_*``
columns link it to a Square item/variation and the remaining columns are a
cache of the catalog fields that Square can change underneath us.
"""

from sqlalchemy import BigInteger, Column, Integer, String, Text, TIMESTAMP, CheckConstraint, text
from sqlalchemy.dialects.postgresql import ENUM

from catalog_sync.database import Base
from catalog_sync.core.enums import ProductStatus

UTC_NOW = text("timezone('utc', now())")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint(
            "(external_item_id IS NULL) = (external_variation_id IS NULL)",
            name="ck_products_external_link_pair",
        ),
    )

    id = Column(Integer, primary_key=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=UTC_NOW, nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=UTC_NOW, onupdate=UTC_NOW, nullable=False)

    # Ownership - never written by the sync path
    artist_id = Column(String, nullable=True, index=True)
    status = Column(
        ENUM(ProductStatus, name='productstatus', values_callable=lambda e: [m.value for m in e], create_type=True),
        nullable=False,
        default=ProductStatus.DRAFT,
    )

    # External link
    external_item_id = Column(String, nullable=True, unique=True, index=True)
    external_variation_id = Column(String, nullable=True, unique=True, index=True)
    external_catalog_version = Column(BigInteger, nullable=True)
    external_location_id = Column(String, nullable=True)

    # Catalog cache
    name = Column(String, nullable=False, default="")
    description = Column(Text, nullable=True)
    price_cents = Column(Integer, nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=0)
    sku = Column(String, nullable=True)
    image_url = Column(String, nullable=True)
    synced_at = Column(TIMESTAMP(timezone=True), nullable=True)

    @property
    def is_linked(self) -> bool:
        return self.external_item_id is not None and self.external_variation_id is not None

    def __repr__(self):
        return (f"<Product(id={self.id}, name='{self.name}', status='{self.status}', "
                f"external_item_id={self.external_item_id})>")
