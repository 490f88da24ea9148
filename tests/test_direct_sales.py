from decimal import Decimal
from types import SimpleNamespace

import pytest

from salesdesk.core.direct_sales import (
    COMMISSION_TIERS,
    UNBOUNDED,
    ProductType,
    calculate_month,
    calculate_prorated,
    commission_for_sale,
    points_for,
    points_per_band,
    tier_for,
    tier_index,
)


def test_points_for_catalog_and_unknown_products():
    assert points_for("freebox_pop") == 4
    assert points_for("freebox_essentiel") == 5
    assert points_for("freebox_ultra") == 6
    assert points_for(" Freebox_Ultra ") == 0
    assert points_for("FREEBOX_POP") == 0
    assert points_for(ProductType.FORFAIT_5G) == 1
    assert points_for("freebox_delta") == 0
    assert points_for(None) == 0


def test_every_point_total_matches_exactly_one_tier():
    for points in list(range(0, 2001)) + [200000]:
        matching = [tier for tier in COMMISSION_TIERS if tier.contains(points)]
        assert len(matching) == 1
        assert tier_for(points) is matching[0]


def test_tier_boundaries():
    assert tier_index(tier_for(25)) == 1
    assert tier_index(tier_for(26)) == 2
    assert tier_index(tier_for(50)) == 2
    assert tier_index(tier_for(51)) == 3
    assert tier_index(tier_for(100)) == 3
    assert tier_index(tier_for(101)) == 4
    assert COMMISSION_TIERS[-1].max_points == UNBOUNDED
    assert COMMISSION_TIERS[-1].label == "101+"


def test_amounts_never_decrease_with_tier():
    for product in ProductType:
        amounts = [tier.amounts[product] for tier in COMMISSION_TIERS]
        assert amounts == sorted(amounts)


def test_tier_table_is_read_only():
    with pytest.raises(TypeError):
        COMMISSION_TIERS[0].amounts[ProductType.FREEBOX_POP] = Decimal("1")


def test_commission_for_unknown_product_is_zero():
    assert commission_for_sale("freebox_delta", COMMISSION_TIERS[0]) == Decimal("0")


def test_empty_month():
    result = calculate_month([])
    assert result.total_commission == Decimal("0")
    assert result.detailed_sales == []
    assert result.total_points == 0


def test_twenty_six_pop_sales_cross_every_boundary():
    result = calculate_month(["freebox_pop"] * 26)

    assert result.total_commission == Decimal("1660")
    assert result.total_points == 104
    tiers = [sale.tier for sale in result.detailed_sales]
    assert tiers == [1] * 6 + [2] * 6 + [3] * 13 + [4]
    # The sale reaching 28 points is paid entirely at tier 2.
    assert result.detailed_sales[6].cumulative_points == 28
    assert result.detailed_sales[6].commission == Decimal("60")


def test_sale_order_changes_the_total():
    prefix = ["freebox_pop"] * 5 + ["forfait_5g"]

    pop_first = calculate_month(prefix + ["freebox_pop", "forfait_5g"])
    five_g_first = calculate_month(prefix + ["forfait_5g", "freebox_pop"])

    assert pop_first.total_commission == Decimal("320")
    assert five_g_first.total_commission == Decimal("330")
    assert pop_first.total_points == five_g_first.total_points == 26


def test_cumulative_points_never_decrease():
    sales = ["freebox_ultra", "unknown", "forfait_5g", "freebox_essentiel"] * 10
    result = calculate_month(sales)
    cumulative = [sale.cumulative_points for sale in result.detailed_sales]
    assert cumulative == sorted(cumulative)


def test_unknown_products_earn_nothing_and_are_counted(caplog):
    result = calculate_month(["freebox_pop", "mystery_box"])

    assert result.total_commission == Decimal("50")
    assert result.zero_point_sales == 1
    unknown = result.detailed_sales[1]
    assert unknown.points == 0
    assert unknown.commission == Decimal("0")
    assert unknown.cumulative_points == 4
    assert "unrecognised product type" in caplog.text


def test_sales_may_be_mappings_or_objects():
    result = calculate_month([{"product_type": "freebox_ultra"}, SimpleNamespace(product_type="freebox_pop")])
    assert [sale.product_type for sale in result.detailed_sales] == ["freebox_ultra", "freebox_pop"]
    assert result.total_commission == Decimal("100")


def test_points_per_band():
    assert points_per_band(0) == [0, 0, 0, 0]
    assert points_per_band(40) == [25, 15, 0, 0]
    assert points_per_band(130) == [25, 25, 50, 30]


def test_prorated_blends_band_rates():
    sales = ["freebox_pop"] * 10
    # 25 points at tier 1 (6.25 sales x 50) and 15 at tier 2 (3.75 sales x 60)
    assert calculate_prorated(40, sales) == Decimal("538")
    assert calculate_prorated(0, sales) == Decimal("0")
