"""Typed order list filter."""

from dataclasses import dataclass
from typing import Literal, Optional

from fastapi import Query
from services.orders_service.models import Order, OrderItem, OrderStatus
from sqlalchemy import Select, select


@dataclass
class OrderFilter:
    role: Literal["buyer", "seller"] = "buyer"
    status: Optional[OrderStatus] = None
    page: int = 1
    page_size: int = 20

    @classmethod
    def from_query(
        cls,
        role: Literal["buyer", "seller"] = Query("buyer"),
        status: Optional[OrderStatus] = Query(None),
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    ) -> "OrderFilter":
        return cls(role=role, status=status, page=page, page_size=page_size)

    def apply(self, user_id: str) -> Select:
        """Orders visible to ``user_id`` in this role, newest first, unpaginated."""
        if self.role == "seller":
            query = select(Order).where(
                Order.id.in_(
                    select(OrderItem.order_id).where(OrderItem.seller_id == user_id)
                )
            )
        else:
            query = select(Order).where(Order.buyer_id == user_id)

        if self.status:
            query = query.where(Order.status == self.status)
        return query.order_by(Order.created_at.desc())

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size
