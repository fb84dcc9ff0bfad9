"""Shipping configuration: zones, providers, services and fee tables.

Prices are KES cents, weights are grams. Based on Kenyan and East African
courier rate cards.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

# ============================================================================
# TYPES
# ============================================================================


@dataclass(frozen=True)
class ShippingZone:
    id: str
    display_name: str
    region: str  # nairobi | kenya | east-africa | international
    countries: tuple[str, ...] = ()
    cities: tuple[str, ...] = ()
    cod_supported: bool = False
    cod_max_value_cents: int = 0
    free_shipping_threshold_cents: Optional[int] = None
    max_free_weight_grams: int = 0


@dataclass(frozen=True)
class ShippingProvider:
    id: str
    name: str
    description: str
    tracking_url: str
    contact_phone: str


@dataclass(frozen=True)
class TransitDays:
    min: int
    max: int


@dataclass(frozen=True)
class ShippingService:
    id: str
    provider_id: str
    name: str
    description: str
    service_code: str  # STANDARD | EXPRESS | SAME_DAY | ECONOMY | FREIGHT
    transit_days: TransitDays
    base_price_cents: int
    price_per_kg_cents: int
    cod_supported: bool
    min_weight_grams: int
    max_weight_grams: int
    zone_ids: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class WeightDiscount:
    min_weight_grams: int
    max_weight_grams: Optional[int]  # None = no upper bound
    discount: Decimal


@dataclass(frozen=True)
class CodFeeTier:
    max_order_value_cents: int
    fee_cents: int


# ============================================================================
# ZONES
# ============================================================================

KENYA = ("kenya", "ke")
EAST_AFRICA = (
    "uganda", "ug",
    "tanzania", "tz",
    "rwanda", "rw",
    "burundi", "bi",
    "south sudan", "ss",
    "ethiopia", "et",
    "somalia", "so",
    "drc", "democratic republic of the congo", "cd",
    "eritrea", "er",
    "djibouti", "dj",
)

NAIROBI = ShippingZone(
    id="nairobi",
    display_name="Nairobi Metropolitan",
    region="nairobi",
    countries=KENYA,
    cities=(
        "nairobi", "mombasa", "kisumu", "nakuru", "eldoret", "thika",
        "ruiru", "kiambu", "ruaka", "kikuyu", "kilimani", "westlands",
        "karen", "langata", "embakasi", "kasarani", "dagoretti",
        "nairobi county", "greater nairobi",
    ),
    cod_supported=True,
    cod_max_value_cents=5_000_000,
    free_shipping_threshold_cents=1_000_000,
    max_free_weight_grams=10_000,
)

KENYA_URBAN = ShippingZone(
    id="kenya-urban",
    display_name="Kenya - Other Cities",
    region="kenya",
    countries=KENYA,
    cod_supported=True,
    cod_max_value_cents=5_000_000,
    free_shipping_threshold_cents=1_500_000,
    max_free_weight_grams=10_000,
)

KENYA_RURAL = ShippingZone(
    id="kenya-rural",
    display_name="Kenya - Rural Areas",
    region="kenya",
    countries=KENYA,
    cod_supported=True,
    cod_max_value_cents=5_000_000,
    free_shipping_threshold_cents=2_000_000,
    max_free_weight_grams=5_000,
)

EAST_AFRICA_ZONE = ShippingZone(
    id="east-africa",
    display_name="East Africa",
    region="east-africa",
    countries=EAST_AFRICA,
    free_shipping_threshold_cents=10_000_000,
    max_free_weight_grams=20_000,
)

INTERNATIONAL = ShippingZone(
    id="international",
    display_name="Worldwide",
    region="international",
    free_shipping_threshold_cents=50_000_000,
    max_free_weight_grams=10_000,
)

SHIPPING_ZONES: dict[str, ShippingZone] = {
    zone.id: zone
    for zone in (NAIROBI, KENYA_URBAN, KENYA_RURAL, EAST_AFRICA_ZONE, INTERNATIONAL)
}

FALLBACK_ZONE = INTERNATIONAL

# ============================================================================
# PROVIDERS
# ============================================================================

SHIPPING_PROVIDERS: dict[str, ShippingProvider] = {
    p.id: p
    for p in (
        ShippingProvider(
            id="g4s",
            name="G4S Kenya",
            description="Leading security and logistics company in Kenya",
            tracking_url="https://track.g4s.co.ke/track/",
            contact_phone="+254 733 600 600",
        ),
        ShippingProvider(
            id="dhl",
            name="DHL Express",
            description="Global express shipping leader",
            tracking_url="https://www.dhl.com/track/",
            contact_phone="+254 733 100 100",
        ),
        ShippingProvider(
            id="posta",
            name="Posta Kenya",
            description="Kenya Postal Corporation - widest rural coverage",
            tracking_url="https://www.posta.co.ke/track/",
            contact_phone="+254 20 324 4000",
        ),
        ShippingProvider(
            id="sendy",
            name="Sendy",
            description="East African logistics platform",
            tracking_url="https://www.sendy.co.ke/track/",
            contact_phone="+254 700 739 000",
        ),
        ShippingProvider(
            id="fedex",
            name="FedEx",
            description="International express delivery",
            tracking_url="https://www.fedex.com/tracking/",
            contact_phone="+254 20 375 0000",
        ),
    )
}

# ============================================================================
# SERVICES
# ============================================================================

SHIPPING_SERVICES: tuple[ShippingService, ...] = (
    # Nairobi
    ShippingService(
        id="nairobi-standard",
        provider_id="g4s",
        name="Standard Delivery",
        description="Reliable delivery within 5-7 business days",
        service_code="STANDARD",
        transit_days=TransitDays(5, 7),
        base_price_cents=25_000,
        price_per_kg_cents=5_000,
        cod_supported=True,
        min_weight_grams=0,
        max_weight_grams=50_000,
        zone_ids=("nairobi",),
    ),
    ShippingService(
        id="nairobi-express",
        provider_id="g4s",
        name="Express Delivery",
        description="Fast delivery within 2-3 business days",
        service_code="EXPRESS",
        transit_days=TransitDays(2, 3),
        base_price_cents=45_000,
        price_per_kg_cents=8_000,
        cod_supported=True,
        min_weight_grams=0,
        max_weight_grams=50_000,
        zone_ids=("nairobi",),
    ),
    ShippingService(
        id="nairobi-same-day",
        provider_id="sendy",
        name="Same-Day Delivery",
        description="Delivery within Nairobi today",
        service_code="SAME_DAY",
        transit_days=TransitDays(0, 1),
        base_price_cents=60_000,
        price_per_kg_cents=10_000,
        cod_supported=True,
        min_weight_grams=0,
        max_weight_grams=25_000,
        zone_ids=("nairobi",),
    ),
    ShippingService(
        id="nairobi-economy",
        provider_id="posta",
        name="Economy",
        description="Budget-friendly delivery",
        service_code="ECONOMY",
        transit_days=TransitDays(7, 14),
        base_price_cents=15_000,
        price_per_kg_cents=3_000,
        cod_supported=False,
        min_weight_grams=0,
        max_weight_grams=20_000,
        zone_ids=("nairobi", "kenya-urban", "kenya-rural"),
    ),
    # Kenya, other cities
    ShippingService(
        id="kenya-standard",
        provider_id="g4s",
        name="Standard Delivery",
        description="Reliable delivery within 5-7 business days",
        service_code="STANDARD",
        transit_days=TransitDays(5, 7),
        base_price_cents=40_000,
        price_per_kg_cents=6_000,
        cod_supported=True,
        min_weight_grams=0,
        max_weight_grams=50_000,
        zone_ids=("kenya-urban",),
    ),
    ShippingService(
        id="kenya-express",
        provider_id="g4s",
        name="Express Delivery",
        description="Fast delivery within 2-3 business days",
        service_code="EXPRESS",
        transit_days=TransitDays(2, 3),
        base_price_cents=70_000,
        price_per_kg_cents=10_000,
        cod_supported=True,
        min_weight_grams=0,
        max_weight_grams=50_000,
        zone_ids=("kenya-urban",),
    ),
    # Kenya, rural
    ShippingService(
        id="kenya-rural-standard",
        provider_id="posta",
        name="Standard Delivery",
        description="Delivery to rural areas within 7-14 business days",
        service_code="STANDARD",
        transit_days=TransitDays(7, 14),
        base_price_cents=50_000,
        price_per_kg_cents=8_000,
        cod_supported=False,
        min_weight_grams=0,
        max_weight_grams=20_000,
        zone_ids=("kenya-rural",),
    ),
    # East Africa
    ShippingService(
        id="east-africa-economy",
        provider_id="dhl",
        name="Economy",
        description="Cost-effective regional shipping",
        service_code="ECONOMY",
        transit_days=TransitDays(7, 14),
        base_price_cents=150_000,
        price_per_kg_cents=30_000,
        cod_supported=False,
        min_weight_grams=0,
        max_weight_grams=100_000,
        zone_ids=("east-africa",),
    ),
    ShippingService(
        id="east-africa-express",
        provider_id="dhl",
        name="Express",
        description="Fast regional delivery",
        service_code="EXPRESS",
        transit_days=TransitDays(3, 5),
        base_price_cents=250_000,
        price_per_kg_cents=50_000,
        cod_supported=False,
        min_weight_grams=0,
        max_weight_grams=100_000,
        zone_ids=("east-africa",),
    ),
    ShippingService(
        id="east-africa-freight",
        provider_id="g4s",
        name="Freight",
        description="For large shipments",
        service_code="FREIGHT",
        transit_days=TransitDays(10, 21),
        base_price_cents=500_000,
        price_per_kg_cents=20_000,
        cod_supported=False,
        min_weight_grams=50_000,
        max_weight_grams=500_000,
        zone_ids=("east-africa",),
    ),
    # International
    ShippingService(
        id="intl-economy",
        provider_id="dhl",
        name="Economy",
        description="Affordable international shipping",
        service_code="ECONOMY",
        transit_days=TransitDays(10, 21),
        base_price_cents=500_000,
        price_per_kg_cents=150_000,
        cod_supported=False,
        min_weight_grams=0,
        max_weight_grams=100_000,
        zone_ids=("international",),
    ),
    ShippingService(
        id="intl-express",
        provider_id="dhl",
        name="Express Worldwide",
        description="Fast international delivery",
        service_code="EXPRESS",
        transit_days=TransitDays(2, 4),
        base_price_cents=800_000,
        price_per_kg_cents=250_000,
        cod_supported=False,
        min_weight_grams=0,
        max_weight_grams=100_000,
        zone_ids=("international",),
    ),
    ShippingService(
        id="intl-priority",
        provider_id="fedex",
        name="Priority Overnight",
        description="Next business day delivery",
        service_code="EXPRESS",
        transit_days=TransitDays(1, 2),
        base_price_cents=1_200_000,
        price_per_kg_cents=350_000,
        cod_supported=False,
        min_weight_grams=0,
        max_weight_grams=50_000,
        zone_ids=("international",),
    ),
)

# ============================================================================
# FEES AND DISCOUNTS
# ============================================================================

WEIGHT_DISCOUNTS: tuple[WeightDiscount, ...] = (
    WeightDiscount(0, 5_000, Decimal("0")),
    WeightDiscount(5_000, 10_000, Decimal("0.05")),
    WeightDiscount(10_000, 20_000, Decimal("0.10")),
    WeightDiscount(20_000, 50_000, Decimal("0.15")),
    WeightDiscount(50_000, None, Decimal("0.20")),
)

COD_FEE_TIERS: tuple[CodFeeTier, ...] = (
    CodFeeTier(500_000, 10_000),
    CodFeeTier(1_000_000, 15_000),
    CodFeeTier(2_500_000, 25_000),
    CodFeeTier(5_000_000, 35_000),
)
COD_DEFAULT_FEE_CENTS = 10_000

INSURANCE_RATE = Decimal("0.02")
INSURANCE_MIN_PREMIUM_CENTS = 5_000
