"""Direct-sale commission (CVD) tiers and the monthly calculator.

Each installed product is worth a fixed number of points. A seller's points
accumulate over the month and the running total selects one of four bands;
every sale is paid the flat amount its band grants for that product.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

UNBOUNDED = -1


class ProductType(str, Enum):
    FREEBOX_POP = "freebox_pop"
    FREEBOX_ESSENTIEL = "freebox_essentiel"
    FREEBOX_ULTRA = "freebox_ultra"
    FORFAIT_5G = "forfait_5g"


PRODUCT_POINTS: Mapping[ProductType, int] = MappingProxyType(
    {
        ProductType.FREEBOX_POP: 4,
        ProductType.FREEBOX_ESSENTIEL: 5,
        ProductType.FREEBOX_ULTRA: 6,
        ProductType.FORFAIT_5G: 1,
    }
)

# Monthly subscription price used as the sale amount for MLM propagation.
SALE_AMOUNTS: Mapping[ProductType, Decimal] = MappingProxyType(
    {
        ProductType.FREEBOX_ULTRA: Decimal("49.99"),
        ProductType.FREEBOX_POP: Decimal("39.99"),
        ProductType.FREEBOX_ESSENTIEL: Decimal("29.99"),
        ProductType.FORFAIT_5G: Decimal("19.99"),
    }
)


@dataclass(frozen=True)
class CommissionTier:
    """A point band ``[min_points, max_points]`` with a flat amount per product."""

    min_points: int
    max_points: int
    amounts: Mapping[ProductType, Decimal]

    def contains(self, points: int) -> bool:
        return points >= self.min_points and (
            self.max_points == UNBOUNDED or points <= self.max_points
        )

    @property
    def label(self) -> str:
        if self.max_points == UNBOUNDED:
            return f"{self.min_points}+"
        return f"{self.min_points}-{self.max_points}"


def _tier(min_points: int, max_points: int, pop: str, essentiel: str, ultra: str, five_g: str) -> CommissionTier:
    return CommissionTier(
        min_points=min_points,
        max_points=max_points,
        amounts=MappingProxyType(
            {
                ProductType.FREEBOX_POP: Decimal(pop),
                ProductType.FREEBOX_ESSENTIEL: Decimal(essentiel),
                ProductType.FREEBOX_ULTRA: Decimal(ultra),
                ProductType.FORFAIT_5G: Decimal(five_g),
            }
        ),
    )


COMMISSION_TIERS: Sequence[CommissionTier] = (
    _tier(0, 25, "50", "50", "50", "10"),
    _tier(26, 50, "60", "70", "80", "10"),
    _tier(51, 100, "70", "90", "100", "10"),
    _tier(101, UNBOUNDED, "90", "100", "120", "10"),
)

# Width of each band, used by the prorated calculation.
_BAND_WIDTHS = (25, 25, 50, None)


@dataclass
class DetailedSale:
    """One line of the monthly breakdown."""

    product_type: str
    points: int
    commission: Decimal
    cumulative_points: int
    tier: int


@dataclass
class MonthlyCommissionResult:
    total_commission: Decimal = Decimal("0")
    detailed_sales: List[DetailedSale] = field(default_factory=list)
    zero_point_sales: int = 0

    @property
    def total_points(self) -> int:
        if not self.detailed_sales:
            return 0
        return self.detailed_sales[-1].cumulative_points


def product_type_from(value) -> Optional[ProductType]:
    """Return the catalog entry for ``value`` or None when it is not sold.

    Identifiers are matched exactly; a differently cased or padded name is
    an unknown product.
    """

    if isinstance(value, ProductType):
        return value
    if not isinstance(value, str):
        return None
    try:
        return ProductType(value)
    except ValueError:
        return None


def points_for(product_type) -> int:
    """Return the points a product is worth; unknown products are worth 0."""

    product = product_type_from(product_type)
    if product is None:
        return 0
    return PRODUCT_POINTS[product]


def tier_for(points: int) -> CommissionTier:
    """Return the band containing ``points``."""

    for tier in COMMISSION_TIERS:
        if tier.contains(points):
            return tier
    return COMMISSION_TIERS[-1]


def tier_index(tier: CommissionTier) -> int:
    """Return the 1-based position of ``tier`` in the table."""

    return COMMISSION_TIERS.index(tier) + 1


def commission_for_sale(product_type, tier: CommissionTier) -> Decimal:
    product = product_type_from(product_type)
    if product is None or product not in tier.amounts:
        return Decimal("0")
    return tier.amounts[product]


def _product_of(sale) -> str:
    if isinstance(sale, Mapping):
        value = sale.get("product_type")
    else:
        value = getattr(sale, "product_type", sale)
    if isinstance(value, ProductType):
        return value.value
    return "" if value is None else str(value)


def calculate_month(sales: Iterable) -> MonthlyCommissionResult:
    """Compute the commissions for a month of sales given in chronological order.

    The band for a sale is chosen from the cumulative total *after* adding the
    sale's points, so the sale that crosses a boundary is paid entirely at the
    new band. Sales may be plain product identifiers, mappings or objects with
    a ``product_type`` key/attribute.
    """

    result = MonthlyCommissionResult()
    cumulative_points = 0

    for sale in sales:
        product = _product_of(sale)
        points = points_for(product)
        if points == 0:
            result.zero_point_sales += 1
        cumulative_points += points

        tier = tier_for(cumulative_points)
        commission = commission_for_sale(product, tier)
        result.total_commission += commission
        result.detailed_sales.append(
            DetailedSale(
                product_type=product,
                points=points,
                commission=commission,
                cumulative_points=cumulative_points,
                tier=tier_index(tier),
            )
        )

    if result.zero_point_sales:
        logger.warning(
            "%s of %s sales have an unrecognised product type and earned nothing",
            result.zero_point_sales,
            len(result.detailed_sales),
        )
    return result


def points_per_band(total_points: int) -> List[int]:
    """Split a point total across the bands (25 / 25 / 50 / remainder)."""

    remaining = max(total_points, 0)
    split: List[int] = []
    for width in _BAND_WIDTHS:
        share = remaining if width is None else min(remaining, width)
        split.append(share)
        remaining -= share
    return split


def calculate_prorated(total_points: int, sales: Iterable) -> Decimal:
    """Blend every band's rates in proportion to the points that fall in it.

    This is the comparison figure shown next to the per-sale breakdown; it is
    order-insensitive and rounded to the nearest unit.
    """

    counts: dict[str, int] = {}
    for sale in sales:
        product = _product_of(sale)
        counts[product] = counts.get(product, 0) + 1

    if total_points <= 0:
        return Decimal("0")

    band_points = points_per_band(total_points)
    total = Decimal("0")
    for product, count in counts.items():
        product_points = points_for(product)
        if product_points == 0:
            continue
        proportion = Decimal(product_points * count) / Decimal(total_points)
        for tier, in_band in zip(COMMISSION_TIERS, band_points):
            if in_band <= 0:
                continue
            sales_in_band = proportion * in_band / product_points
            total += sales_in_band * commission_for_sale(product, tier)

    return total.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


__all__ = [
    "COMMISSION_TIERS",
    "CommissionTier",
    "DetailedSale",
    "MonthlyCommissionResult",
    "PRODUCT_POINTS",
    "ProductType",
    "SALE_AMOUNTS",
    "calculate_month",
    "calculate_prorated",
    "commission_for_sale",
    "points_for",
    "points_per_band",
    "product_type_from",
    "tier_for",
    "tier_index",
]
