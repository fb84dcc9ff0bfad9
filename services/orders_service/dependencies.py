"""FastAPI dependencies wiring order services to their collaborators."""

from fastapi import Depends
from services.orders_service.services.catalog import ProductCatalog, SqlProductCatalog
from services.orders_service.services.order_intake import OrderIntake
from services.orders_service.services.order_status import OrderStatusService
from services.payments_service.gateway_client import (
    PaymentGateway,
    get_payment_gateway,
)
from services.shipping_service.resolver import (
    ShippingRateResolver,
    get_shipping_resolver,
)


def get_product_catalog() -> ProductCatalog:
    return SqlProductCatalog()


def get_order_intake(
    catalog: ProductCatalog = Depends(get_product_catalog),
    resolver: ShippingRateResolver = Depends(get_shipping_resolver),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> OrderIntake:
    return OrderIntake(catalog=catalog, resolver=resolver, gateway=gateway)


def get_order_status_service(
    catalog: ProductCatalog = Depends(get_product_catalog),
    resolver: ShippingRateResolver = Depends(get_shipping_resolver),
) -> OrderStatusService:
    return OrderStatusService(catalog=catalog, resolver=resolver)
