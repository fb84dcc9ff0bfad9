"""Shipping rate resolution: zone lookup, priced options, COD and free-shipping rules.

Zone resolution is a pure function of the destination so that order totals
are reproducible; unknown destinations fall back to the worldwide zone
instead of failing checkout.
"""

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from typing import Iterable, Optional, Sequence

from libs.common.currency import apply_rate, grams_to_kg, round_half_up
from libs.common.datetime_utils import delivery_window, utc_now
from libs.common.logging import get_logger
from services.shipping_service.zones import (
    COD_DEFAULT_FEE_CENTS,
    COD_FEE_TIERS,
    FALLBACK_ZONE,
    INSURANCE_MIN_PREMIUM_CENTS,
    INSURANCE_RATE,
    KENYA_RURAL,
    KENYA_URBAN,
    SHIPPING_PROVIDERS,
    SHIPPING_SERVICES,
    SHIPPING_ZONES,
    WEIGHT_DISCOUNTS,
    CodFeeTier,
    ShippingProvider,
    ShippingService,
    ShippingZone,
    TransitDays,
    WeightDiscount,
)

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuoteItem:
    weight_grams: int
    price_cents: int
    quantity: int = 1


@dataclass(frozen=True)
class Destination:
    country: str
    city: str = ""
    state: Optional[str] = None
    postal_code: Optional[str] = None
    is_rural: bool = False


@dataclass(frozen=True)
class RateBreakdown:
    base_cents: int
    weight_charge_cents: int
    insurance_cents: int
    cod_fee_cents: int
    free_shipping: bool


@dataclass(frozen=True)
class ShippingOption:
    id: str
    provider: ShippingProvider
    service: ShippingService
    price_cents: int
    breakdown: RateBreakdown
    estimated_min: datetime
    estimated_max: datetime
    formatted_delivery: str

    @property
    def cod_supported(self) -> bool:
        return self.service.cod_supported


@dataclass(frozen=True)
class ShippingQuote:
    zone: ShippingZone
    total_weight_grams: int
    order_value_cents: int
    options: list[ShippingOption] = field(default_factory=list)
    recommended_id: Optional[str] = None

    @property
    def recommended(self) -> Optional[ShippingOption]:
        return self.option(self.recommended_id)

    def option(self, option_id: Optional[str]) -> Optional[ShippingOption]:
        return next((o for o in self.options if o.id == option_id), None)


def _normalize(value: Optional[str]) -> str:
    return " ".join((value or "").split()).lower()


def format_transit_days(transit: TransitDays) -> str:
    if transit.min == 0 and transit.max == 1:
        return "Same day"
    if transit.min == transit.max:
        suffix = "s" if transit.min > 1 else ""
        return f"{transit.min} business day{suffix}"
    return f"{transit.min}-{transit.max} business days"


class ShippingRateResolver:
    """Maps destinations to zones and prices every service available there."""

    def __init__(
        self,
        zones: Optional[dict[str, ShippingZone]] = None,
        services: Sequence[ShippingService] = SHIPPING_SERVICES,
        providers: Optional[dict[str, ShippingProvider]] = None,
        weight_discounts: Sequence[WeightDiscount] = WEIGHT_DISCOUNTS,
        cod_fee_tiers: Sequence[CodFeeTier] = COD_FEE_TIERS,
        fallback_zone: ShippingZone = FALLBACK_ZONE,
    ):
        self.zones = zones or SHIPPING_ZONES
        self.services = tuple(services)
        self.providers = providers or SHIPPING_PROVIDERS
        self.weight_discounts = tuple(weight_discounts)
        self.cod_fee_tiers = tuple(cod_fee_tiers)
        self.fallback_zone = fallback_zone

    # ------------------------------------------------------------------
    # Zones
    # ------------------------------------------------------------------

    def resolve_zone(
        self, country: str, city: str = "", *, is_rural: bool = False
    ) -> ShippingZone:
        """Resolve a destination to a zone.

        City-level zones are checked first, within their own countries.
        Then the country default applies (Kenya splits into urban/rural).
        Anything unmatched ships as worldwide.
        """
        country_key = _normalize(country)
        city_key = _normalize(city)

        if city_key:
            for zone in self.zones.values():
                if not zone.cities or country_key not in zone.countries:
                    continue
                if any(name in city_key for name in zone.cities):
                    return zone

        if country_key in KENYA_URBAN.countries:
            return self.zones.get(
                KENYA_RURAL.id if is_rural else KENYA_URBAN.id, self.fallback_zone
            )

        for zone in self.zones.values():
            if zone.cities or zone.id in (KENYA_URBAN.id, KENYA_RURAL.id):
                continue
            if country_key and country_key in zone.countries:
                return zone

        return self.fallback_zone

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    @staticmethod
    def is_cod_available(order_value_cents: int, zone: ShippingZone) -> bool:
        return zone.cod_supported and order_value_cents <= zone.cod_max_value_cents

    @staticmethod
    def is_free_shipping_available(
        order_value_cents: int, weight_grams: int, zone: ShippingZone
    ) -> bool:
        if zone.free_shipping_threshold_cents is None:
            return False
        return (
            order_value_cents >= zone.free_shipping_threshold_cents
            and weight_grams <= zone.max_free_weight_grams
        )

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def weight_discount(self, weight_grams: int) -> Decimal:
        for tier in self.weight_discounts:
            upper_ok = tier.max_weight_grams is None or weight_grams < tier.max_weight_grams
            if weight_grams >= tier.min_weight_grams and upper_ok:
                return tier.discount
        return Decimal("0")

    def cod_fee(self, order_value_cents: int) -> int:
        for tier in self.cod_fee_tiers:
            if order_value_cents <= tier.max_order_value_cents:
                return tier.fee_cents
        return COD_DEFAULT_FEE_CENTS

    def rate_for(
        self,
        service: ShippingService,
        zone: ShippingZone,
        weight_grams: int,
        order_value_cents: int = 0,
        *,
        cod: bool = False,
        insured: bool = False,
    ) -> RateBreakdown:
        weight_charge = (
            grams_to_kg(weight_grams)
            * service.price_per_kg_cents
            * (1 - self.weight_discount(weight_grams))
        )
        free = self.is_free_shipping_available(order_value_cents, weight_grams, zone)

        insurance = 0
        if insured and order_value_cents > 0:
            insurance = max(
                apply_rate(order_value_cents, INSURANCE_RATE),
                INSURANCE_MIN_PREMIUM_CENTS,
            )

        cod_fee = self.cod_fee(order_value_cents) if cod and service.cod_supported else 0

        return RateBreakdown(
            base_cents=0 if free else service.base_price_cents,
            weight_charge_cents=0 if free else round_half_up(weight_charge),
            insurance_cents=insurance,
            cod_fee_cents=cod_fee,
            free_shipping=free,
        )

    def options_for(
        self,
        zone: ShippingZone,
        weight_grams: int,
        order_value_cents: int = 0,
        *,
        cod: bool = False,
        insured: bool = False,
        as_of: Optional[datetime] = None,
    ) -> list[ShippingOption]:
        """Every service of ``zone`` whose weight band admits ``weight_grams``, cheapest first."""
        as_of = as_of or utc_now()
        options = []
        for service in self.services:
            if zone.id not in service.zone_ids:
                continue
            if not service.min_weight_grams <= weight_grams <= service.max_weight_grams:
                continue

            breakdown = self.rate_for(
                service, zone, weight_grams, order_value_cents, cod=cod, insured=insured
            )
            price = (
                breakdown.base_cents
                + breakdown.weight_charge_cents
                + breakdown.insurance_cents
                + breakdown.cod_fee_cents
            )

            earliest, latest = delivery_window(
                as_of, service.transit_days.min, service.transit_days.max
            )

            options.append(
                ShippingOption(
                    id=service.id,
                    provider=self.providers[service.provider_id],
                    service=service,
                    price_cents=price,
                    breakdown=breakdown,
                    estimated_min=earliest,
                    estimated_max=latest,
                    formatted_delivery=format_transit_days(service.transit_days),
                )
            )

        options.sort(key=lambda o: (o.price_cents, o.id))
        return options

    def quote(
        self,
        items: Iterable[QuoteItem],
        destination: Destination,
        cod: bool = False,
        *,
        insured: bool = False,
        as_of: Optional[datetime] = None,
    ) -> ShippingQuote:
        """Price every option for ``items`` shipped to ``destination``.

        The recommendation is the cheapest option, restricted to options that
        take cash on delivery when ``cod`` is requested.
        """
        items = list(items)
        total_weight = sum(i.weight_grams * i.quantity for i in items)
        order_value = sum(i.price_cents * i.quantity for i in items)

        zone = self.resolve_zone(
            destination.country, destination.city, is_rural=destination.is_rural
        )
        options = self.options_for(
            zone, total_weight, order_value, cod=cod, insured=insured, as_of=as_of
        )

        eligible = [o for o in options if o.cod_supported] if cod else options
        recommended_id = eligible[0].id if eligible else None

        if not options:
            logger.warning(
                "No shipping service for zone=%s weight=%dg", zone.id, total_weight
            )

        return ShippingQuote(
            zone=zone,
            total_weight_grams=total_weight,
            order_value_cents=order_value,
            options=options,
            recommended_id=recommended_id,
        )

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def provider_for_service(self, service_id: Optional[str]) -> Optional[ShippingProvider]:
        service = next((s for s in self.services if s.id == service_id), None)
        return self.providers.get(service.provider_id) if service else None

    @staticmethod
    def generate_tracking_number(provider_id: str) -> str:
        """Tracking number like ``G4SK3J9Q2LM8``: provider prefix + random + time."""
        prefix = provider_id.upper()[:3]
        alphabet = string.ascii_uppercase + string.digits
        random_part = "".join(random.choices(alphabet, k=6))
        stamp = format(int(time.time()), "X")[-3:]
        return f"{prefix}{random_part}{stamp}"[:12]

    def tracking_url(self, provider_id: str, tracking_number: str) -> str:
        provider = self.providers.get(provider_id)
        if not provider:
            return ""
        return f"{provider.tracking_url}{tracking_number}"


# ============================================================================
# SHARED INSTANCE + CACHED LOOKUPS
# ============================================================================


@dataclass(frozen=True)
class RateSummary:
    """Time-independent view of an option, safe to memoise."""

    id: str
    provider_name: str
    service_name: str
    price_cents: int
    formatted_delivery: str
    cod_supported: bool


@lru_cache
def get_shipping_resolver() -> ShippingRateResolver:
    """Resolver over the built-in rate cards (FastAPI dependency)."""
    return ShippingRateResolver()


@lru_cache(maxsize=1024)
def cached_rates(
    zone_id: str, weight_grams: int, order_value_cents: int = 0
) -> tuple[RateSummary, ...]:
    resolver = get_shipping_resolver()
    zone = resolver.zones.get(zone_id, resolver.fallback_zone)
    return tuple(
        RateSummary(
            id=o.id,
            provider_name=o.provider.name,
            service_name=o.service.name,
            price_cents=o.price_cents,
            formatted_delivery=o.formatted_delivery,
            cod_supported=o.cod_supported,
        )
        for o in resolver.options_for(zone, weight_grams, order_value_cents)
    )
