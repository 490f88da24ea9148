from datetime import date
from decimal import Decimal

import pytest

from salesdesk import crud
from salesdesk.commission import propagate
from salesdesk.exceptions import ValidationError
from salesdesk.models import STATUS_CALCULATED, STATUS_PAID, STATUS_VALIDATED
from salesdesk.schemas import ClientCreate


def _seed(session):
    seller = crud.register_distributor(session, user_id=10, referral_code="SELL")
    other = crud.register_distributor(session, user_id=11, referral_code="OTHER")
    crud.upsert_commission_rule(session, 1, "freebox_pop", Decimal("10"))
    crud.upsert_commission_rule(session, 1, "freebox_ultra", Decimal("10"))

    def sale(seller_code, product, on):
        client = crud.create_client(
            session,
            ClientCreate(first_name="Lou", last_name="Bernard", seller_code=seller_code, product_type=product),
        )
        propagate(session, client.id, product, Decimal("40.00"), on=on)

    sale("SELL", "freebox_pop", date(2025, 3, 2))
    sale("SELL", "freebox_ultra", date(2025, 3, 20))
    sale("SELL", "freebox_pop", date(2025, 4, 1))
    sale("OTHER", "freebox_pop", date(2025, 3, 5))
    return seller, other


def _statuses(session, distributor_id):
    return sorted((t.month, t.status) for t in crud.transactions_for(session, distributor_id))


def test_validate_moves_only_the_month_in_scope(test_db):
    seller, other = _seed(test_db)

    assert crud.validate_monthly_commissions(test_db, seller.id, "2025-03") == 2

    assert _statuses(test_db, seller.id) == [
        ("2025-03", STATUS_VALIDATED),
        ("2025-03", STATUS_VALIDATED),
        ("2025-04", STATUS_CALCULATED),
    ]
    assert _statuses(test_db, other.id) == [("2025-03", STATUS_CALCULATED)]
    assert all(t.validated_at is not None for t in crud.transactions_for_month(test_db, seller.id, "2025-03"))


def test_transitions_are_idempotent(test_db):
    seller, _ = _seed(test_db)

    assert crud.validate_monthly_commissions(test_db, seller.id, "2025-03") == 2
    assert crud.validate_monthly_commissions(test_db, seller.id, "2025-03") == 0
    assert crud.pay_commissions(test_db, seller.id, "2025-03", "virement") == 2
    assert crud.pay_commissions(test_db, seller.id, "2025-03", "virement") == 0


def test_pay_requires_validation_first(test_db):
    seller, _ = _seed(test_db)

    assert crud.pay_commissions(test_db, seller.id, "2025-04", "virement") == 0
    crud.validate_monthly_commissions(test_db, seller.id, "2025-04")
    assert crud.pay_commissions(test_db, seller.id, "2025-04", "cheque") == 1

    paid = crud.transactions_for_month(test_db, seller.id, "2025-04")[0]
    assert paid.status == STATUS_PAID
    assert paid.payment_method == "cheque"
    assert paid.paid_at is not None


@pytest.mark.parametrize("month", ["2025-3", "2025/03", "march", "2025-13", "2025-03\n", " 2025-03"])
def test_malformed_month_is_rejected(test_db, month):
    seller, _ = _seed(test_db)

    with pytest.raises(ValidationError):
        crud.validate_monthly_commissions(test_db, seller.id, month)
    with pytest.raises(ValidationError):
        crud.pay_commissions(test_db, seller.id, month, "virement")
