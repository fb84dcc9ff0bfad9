"""Typed escrow list filter."""

from dataclasses import dataclass
from typing import Literal, Optional

from fastapi import Query
from services.orders_service.models import OrderItem
from services.payments_service.models import EscrowPayment, EscrowStatus
from sqlalchemy import Select, select


@dataclass
class EscrowFilter:
    role: Literal["buyer", "seller"] = "buyer"
    status: Optional[EscrowStatus] = None
    page: int = 1
    page_size: int = 20

    @classmethod
    def from_query(
        cls,
        role: Literal["buyer", "seller"] = Query("buyer"),
        status: Optional[EscrowStatus] = Query(None),
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    ) -> "EscrowFilter":
        return cls(role=role, status=status, page=page, page_size=page_size)

    def apply(self, user_id: str) -> Select:
        if self.role == "seller":
            query = select(EscrowPayment).where(
                EscrowPayment.order_id.in_(
                    select(OrderItem.order_id).where(OrderItem.seller_id == user_id)
                )
            )
        else:
            query = select(EscrowPayment).where(EscrowPayment.buyer_id == user_id)

        if self.status:
            query = query.where(EscrowPayment.status == self.status)
        return query.order_by(EscrowPayment.held_at.desc())

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size
