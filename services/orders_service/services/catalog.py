"""Product catalog access used by checkout and order status changes."""

import uuid
from typing import Iterable, Protocol

from services.orders_service.models import Product
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession


class ProductCatalog(Protocol):
    async def get_products(
        self, db: AsyncSession, product_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, Product]: ...

    async def reserve(
        self, db: AsyncSession, product_id: uuid.UUID, quantity: int
    ) -> bool: ...

    async def restock(
        self, db: AsyncSession, product_id: uuid.UUID, quantity: int
    ) -> None: ...


class SqlProductCatalog:
    """Catalog mirror stored in the orders database."""

    async def get_products(
        self, db: AsyncSession, product_ids: Iterable[uuid.UUID]
    ) -> dict[uuid.UUID, Product]:
        ids = list(product_ids)
        if not ids:
            return {}
        result = await db.execute(select(Product).where(Product.id.in_(ids)))
        return {p.id: p for p in result.scalars().all()}

    async def reserve(
        self, db: AsyncSession, product_id: uuid.UUID, quantity: int
    ) -> bool:
        """Decrement inventory only if enough is left. False when it is not."""
        result = await db.execute(
            update(Product)
            .where(
                Product.id == product_id,
                Product.inventory >= quantity,
                Product.is_active.is_(True),
            )
            .values(inventory=Product.inventory - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def restock(
        self, db: AsyncSession, product_id: uuid.UUID, quantity: int
    ) -> None:
        await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(inventory=Product.inventory + quantity)
            .execution_options(synchronize_session=False)
        )
