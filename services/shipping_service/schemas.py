"""Pydantic schemas for the shipping calculator."""

from datetime import datetime
from typing import Optional

from libs.common.schemas import CamelModel
from pydantic import Field

# ============================================================================
# REQUEST SCHEMAS
# ============================================================================


class ShippingItemIn(CamelModel):
    product_id: Optional[str] = None
    weight_grams: int = Field(..., ge=0)
    price_cents: int = Field(..., ge=0)
    quantity: int = Field(1, ge=1)


class DestinationIn(CamelModel):
    country: str = Field(..., min_length=1, max_length=100)
    city: str = Field("", max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    is_rural: bool = False


class ShippingCalculateRequest(CamelModel):
    items: list[ShippingItemIn] = Field(..., min_length=1)
    destination: DestinationIn
    cod: bool = False
    insured: bool = False


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================


class ZoneResponse(CamelModel):
    id: str
    display_name: str
    region: str
    cod_supported: bool
    cod_max_value_cents: int
    free_shipping_threshold_cents: Optional[int] = None
    max_free_weight_grams: int


class RateBreakdownResponse(CamelModel):
    base_cents: int
    weight_charge_cents: int
    insurance_cents: int
    cod_fee_cents: int
    free_shipping: bool


class ShippingOptionResponse(CamelModel):
    id: str
    provider_id: str
    provider_name: str
    service_name: str
    service_code: str
    price_cents: int
    cod_supported: bool
    breakdown: RateBreakdownResponse
    estimated_min: datetime
    estimated_max: datetime
    formatted_delivery: str


class ShippingSection(CamelModel):
    options: list[ShippingOptionResponse]
    recommended_id: Optional[str] = None
    cod_available: bool
    free_shipping_available: bool


class TotalsResponse(CamelModel):
    subtotal_cents: int
    shipping_cents: int
    tax_cents: int
    total_cents: int
    total_weight_grams: int
    currency: str


class ShippingCalculateResponse(CamelModel):
    zone: ZoneResponse
    totals: TotalsResponse
    shipping: ShippingSection


class RateSummaryResponse(CamelModel):
    id: str
    provider_name: str
    service_name: str
    price_cents: int
    formatted_delivery: str
    cod_supported: bool


class QuickRatesResponse(CamelModel):
    zone_id: str
    options: list[RateSummaryResponse]
