"""Shipping calculator: full quotes for checkout and cached quick rates."""

from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Response
from libs.common.config import get_settings
from libs.common.currency import apply_rate, kg_to_grams
from services.shipping_service.resolver import (
    Destination,
    QuoteItem,
    ShippingOption,
    ShippingRateResolver,
    cached_rates,
    get_shipping_resolver,
)
from services.shipping_service.schemas import (
    QuickRatesResponse,
    RateBreakdownResponse,
    RateSummaryResponse,
    ShippingCalculateRequest,
    ShippingCalculateResponse,
    ShippingOptionResponse,
    ShippingSection,
    TotalsResponse,
    ZoneResponse,
)

router = APIRouter(prefix="/shipping", tags=["shipping"])
settings = get_settings()


def _option_response(option: ShippingOption) -> ShippingOptionResponse:
    return ShippingOptionResponse(
        id=option.id,
        provider_id=option.provider.id,
        provider_name=option.provider.name,
        service_name=option.service.name,
        service_code=option.service.service_code,
        price_cents=option.price_cents,
        cod_supported=option.cod_supported,
        breakdown=RateBreakdownResponse.model_validate(option.breakdown),
        estimated_min=option.estimated_min,
        estimated_max=option.estimated_max,
        formatted_delivery=option.formatted_delivery,
    )


@router.post("/calculate", response_model=ShippingCalculateResponse)
async def calculate_shipping(
    payload: ShippingCalculateRequest,
    resolver: ShippingRateResolver = Depends(get_shipping_resolver),
):
    """Quote every option for a basket, with totals based on the recommended one."""
    dest = payload.destination
    quote = resolver.quote(
        [
            QuoteItem(
                weight_grams=i.weight_grams,
                price_cents=i.price_cents,
                quantity=i.quantity,
            )
            for i in payload.items
        ],
        Destination(
            country=dest.country,
            city=dest.city,
            state=dest.state,
            postal_code=dest.postal_code,
            is_rural=dest.is_rural,
        ),
        cod=payload.cod,
        insured=payload.insured,
    )

    subtotal = quote.order_value_cents
    recommended = quote.recommended
    shipping_cents = recommended.price_cents if recommended else 0
    tax = apply_rate(subtotal, settings.TAX_RATE)

    return ShippingCalculateResponse(
        zone=ZoneResponse.model_validate(quote.zone),
        totals=TotalsResponse(
            subtotal_cents=subtotal,
            shipping_cents=shipping_cents,
            tax_cents=tax,
            total_cents=subtotal + shipping_cents + tax,
            total_weight_grams=quote.total_weight_grams,
            currency=settings.CURRENCY,
        ),
        shipping=ShippingSection(
            options=[_option_response(o) for o in quote.options],
            recommended_id=quote.recommended_id,
            cod_available=resolver.is_cod_available(subtotal, quote.zone),
            free_shipping_available=resolver.is_free_shipping_available(
                subtotal, quote.total_weight_grams, quote.zone
            ),
        ),
    )


@router.get("/calculate", response_model=QuickRatesResponse)
async def quick_rates(
    response: Response,
    country: str = Query(..., min_length=1),
    city: str = Query(""),
    weight: Decimal = Query(Decimal("1"), ge=0, description="Parcel weight in kg"),
    value: int = Query(0, ge=0, description="Order value in cents"),
    resolver: ShippingRateResolver = Depends(get_shipping_resolver),
):
    """Lightweight priced options for product pages; safe to cache."""
    zone = resolver.resolve_zone(country, city)
    rates = cached_rates(zone.id, kg_to_grams(weight), value)

    response.headers["Cache-Control"] = (
        f"public, max-age={settings.SHIPPING_QUOTE_CACHE_SECONDS}"
    )
    return QuickRatesResponse(
        zone_id=zone.id,
        options=[RateSummaryResponse.model_validate(r) for r in rates],
    )
