"""Catalog mirror: the product fields checkout needs from the catalog service."""

import uuid
from datetime import datetime

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    Uuid,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column


class Product(Base):
    """Sellable product. Inventory is decremented only by conditional updates."""

    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    price_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="KES", server_default="KES")
    inventory: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    weight_grams: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("inventory >= 0", name="product_inventory_non_negative"),
        CheckConstraint("price_cents >= 0", name="product_price_non_negative"),
    )

    def __repr__(self):
        return f"<Product {self.name} inventory={self.inventory}>"
