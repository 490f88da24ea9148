"""Routes for direct-sale commissions and MLM commission rules."""
from __future__ import annotations

from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from salesdesk import crud
from salesdesk.commission import propagate
from salesdesk.core.direct_sales import COMMISSION_TIERS, calculate_month, calculate_prorated, tier_index
from salesdesk.core.formatting import month_key
from salesdesk.core.payment_schedule import (
    KIND_CCA,
    KIND_CVD,
    STATUS_OVERDUE,
    days_until_payment,
    mark_overdue,
    upcoming_payments,
)
from salesdesk.database import get_session
from salesdesk.schemas import (
    CommissionRuleRead,
    CommissionRuleWrite,
    CommissionTransactionRead,
    DetailedSaleRead,
    MonthlyCommissionRead,
    MonthlyCommissionRequest,
    MonthlyPaymentReportRead,
    PaymentScheduleRead,
    SalePropagation,
    ScheduledPaymentRead,
    TierRead,
    UpcomingPaymentsRead,
)
from salesdesk.services import SalesService

router = APIRouter(prefix="/commissions", tags=["Commissions"])


@router.get("/tiers", response_model=List[TierRead])
def tiers() -> List[TierRead]:
    return [
        TierRead(
            tier=tier_index(tier),
            min_points=tier.min_points,
            max_points=tier.max_points,
            label=tier.label,
            amounts={product.value: amount for product, amount in tier.amounts.items()},
        )
        for tier in COMMISSION_TIERS
    ]


@router.post("/cvd/calculate", response_model=MonthlyCommissionRead)
def calculate(payload: MonthlyCommissionRequest) -> MonthlyCommissionRead:
    """Run the monthly calculator on an ad-hoc list of sales, oldest first."""

    sales = [sale.product_type for sale in payload.sales]
    result = calculate_month(sales)
    return MonthlyCommissionRead(
        total_commission=result.total_commission,
        total_points=result.total_points,
        zero_point_sales=result.zero_point_sales,
        prorated_commission=calculate_prorated(result.total_points, sales),
        detailed_sales=[DetailedSaleRead.model_validate(sale) for sale in result.detailed_sales],
    )


@router.get("/cvd/{seller_code}", response_model=MonthlyCommissionRead)
def seller_month(
    seller_code: str,
    month: str | None = None,
    db: Session = Depends(get_session),
) -> MonthlyCommissionRead:
    result, clients, prorated = SalesService(db).direct_sales_commissions(seller_code, month)
    detailed = []
    for sale, client in zip(result.detailed_sales, clients):
        row = DetailedSaleRead.model_validate(sale)
        row.client_id = client.id
        row.client_name = client.full_name
        row.installed_on = client.installed_on
        detailed.append(row)
    return MonthlyCommissionRead(
        total_commission=result.total_commission,
        total_points=result.total_points,
        zero_point_sales=result.zero_point_sales,
        prorated_commission=prorated,
        detailed_sales=detailed,
    )


@router.get("/schedule/{seller_code}", response_model=PaymentScheduleRead)
def payment_schedule(
    seller_code: str,
    month: str | None = None,
    db: Session = Depends(get_session),
) -> PaymentScheduleRead:
    """Pay dates for what the seller earned in ``month`` (current month by default)."""

    month = month or month_key()
    schedule = mark_overdue(SalesService(db).payment_schedule(seller_code, month))
    payments = []
    for payment in schedule:
        row = ScheduledPaymentRead.model_validate(payment)
        row.days_until_payment = days_until_payment(payment.pay_date)
        payments.append(row)
    return PaymentScheduleRead(
        seller_code=seller_code,
        month=month,
        total_cvd=sum((payment.amount for payment in schedule if payment.kind == KIND_CVD), Decimal("0")),
        total_cca=sum((payment.amount for payment in schedule if payment.kind == KIND_CCA), Decimal("0")),
        overdue_count=sum(1 for payment in schedule if payment.status == STATUS_OVERDUE),
        payments=payments,
    )


@router.get("/schedule/{seller_code}/upcoming", response_model=UpcomingPaymentsRead)
def upcoming(seller_code: str, month: str | None = None, db: Session = Depends(get_session)) -> UpcomingPaymentsRead:
    schedule = SalesService(db).payment_schedule(seller_code, month)
    return UpcomingPaymentsRead.model_validate(upcoming_payments(seller_code, schedule))


@router.get("/schedule/{seller_code}/report/{pay_month}", response_model=MonthlyPaymentReportRead)
def payment_report(seller_code: str, pay_month: str, db: Session = Depends(get_session)) -> MonthlyPaymentReportRead:
    return MonthlyPaymentReportRead.model_validate(SalesService(db).payment_report(seller_code, pay_month))


@router.get("/rules", response_model=List[CommissionRuleRead])
def list_rules(db: Session = Depends(get_session)):
    return crud.list_commission_rules(db)


@router.put("/rules", response_model=CommissionRuleRead)
def save_rule(payload: CommissionRuleWrite, db: Session = Depends(get_session)):
    return crud.upsert_commission_rule(db, payload.level, payload.product_type, payload.rate, payload.active)


@router.post("/propagate", response_model=List[CommissionTransactionRead], status_code=status.HTTP_201_CREATED)
def propagate_sale(payload: SalePropagation, db: Session = Depends(get_session)):
    return propagate(db, payload.client_id, payload.product_type, payload.sale_amount)
