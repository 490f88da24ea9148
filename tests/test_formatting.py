from datetime import date, datetime
from decimal import Decimal

import pytest

from salesdesk.core.formatting import is_month_key, month_bounds, month_key, previous_month_key, to_money


def test_month_key_from_dates_and_strings():
    assert month_key(date(2025, 3, 14)) == "2025-03"
    assert month_key(datetime(2024, 12, 31, 23, 59)) == "2024-12"
    assert month_key("2025-07-01") == "2025-07"
    assert month_key() == date.today().strftime("%Y-%m")


def test_month_key_rejects_garbage():
    with pytest.raises(ValueError):
        month_key("not a date")


@pytest.mark.parametrize(
    "value, expected",
    [("2025-03", True), ("2025-12", True), ("2025-13", False), ("2025-3", False), ("2025/03", False), ("2025-03\n", False), ("٢٠٢٥-٠٣", False), ("", False), (None, False)],
)
def test_is_month_key(value, expected):
    assert is_month_key(value) is expected


def test_month_bounds_and_previous_month():
    assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
    assert previous_month_key("2025-01") == "2024-12"


def test_to_money_rounds_half_up():
    assert to_money("1.005") == Decimal("1.01")
    assert to_money(None) == Decimal("0.00")
    with pytest.raises(ValueError):
        to_money("abc")
