"""Payment calendar for earned commissions.

Direct-sale commissions (CVD) for a sale installed in a month are paid on the
15th of the following month. Network commissions (CCA) are paid on the 22nd
of the month after the one they were earned in.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from decimal import Decimal
from typing import Iterable, List, Optional

import pandas as pd
from dateutil.relativedelta import relativedelta

from salesdesk.core.formatting import month_bounds, to_money

logger = logging.getLogger(__name__)

CVD_PAYMENT_DAY = 15
CCA_PAYMENT_DAY = 22

KIND_CVD = "cvd"
KIND_CCA = "cca"

STATUS_PENDING = "pending"
STATUS_PAID = "paid"
STATUS_OVERDUE = "overdue"

SCHEDULE_COLUMNS = [
    "pay_date",
    "kind",
    "seller_code",
    "client_id",
    "product_type",
    "earned_on",
    "amount",
    "status",
]


def cvd_payment_date(installed_on: date) -> date:
    return installed_on + relativedelta(months=1, day=CVD_PAYMENT_DAY)


def cca_payment_date(acquired_on: date) -> date:
    return acquired_on + relativedelta(months=1, day=CCA_PAYMENT_DAY)


@dataclass(frozen=True)
class ScheduledPayment:
    kind: str
    seller_code: str
    client_id: Optional[int]
    product_type: Optional[str]
    earned_on: date
    pay_date: date
    amount: Decimal
    status: str = STATUS_PENDING


@dataclass
class UpcomingPayments:
    seller_code: str
    cvd: List[ScheduledPayment] = field(default_factory=list)
    cca: List[ScheduledPayment] = field(default_factory=list)

    @property
    def total_cvd(self) -> Decimal:
        return to_money(sum((payment.amount for payment in self.cvd), Decimal("0")))

    @property
    def total_cca(self) -> Decimal:
        return to_money(sum((payment.amount for payment in self.cca), Decimal("0")))

    @property
    def total(self) -> Decimal:
        return self.total_cvd + self.total_cca


@dataclass
class MonthlyPaymentReport:
    month: str
    cvd_date: date
    cca_date: date
    cvd: List[ScheduledPayment] = field(default_factory=list)
    cca: List[ScheduledPayment] = field(default_factory=list)

    @property
    def total_cvd(self) -> Decimal:
        return to_money(sum((payment.amount for payment in self.cvd), Decimal("0")))

    @property
    def total_cca(self) -> Decimal:
        return to_money(sum((payment.amount for payment in self.cca), Decimal("0")))

    @property
    def total(self) -> Decimal:
        return self.total_cvd + self.total_cca


def cvd_payment(
    seller_code: str,
    client_id: Optional[int],
    product_type: Optional[str],
    installed_on: date,
    amount,
) -> Optional[ScheduledPayment]:
    amount = to_money(amount)
    if amount <= 0:
        return None
    return ScheduledPayment(
        kind=KIND_CVD,
        seller_code=seller_code,
        client_id=client_id,
        product_type=product_type,
        earned_on=installed_on,
        pay_date=cvd_payment_date(installed_on),
        amount=amount,
    )


def cca_payment(
    seller_code: str,
    client_id: Optional[int],
    product_type: Optional[str],
    acquired_on: date,
    amount,
    status: str = STATUS_PENDING,
) -> Optional[ScheduledPayment]:
    amount = to_money(amount)
    if amount <= 0:
        return None
    return ScheduledPayment(
        kind=KIND_CCA,
        seller_code=seller_code,
        client_id=client_id,
        product_type=product_type,
        earned_on=acquired_on,
        pay_date=cca_payment_date(acquired_on),
        amount=amount,
        status=status,
    )


def schedule_sale(
    seller_code: str,
    client_id: Optional[int],
    product_type: Optional[str],
    installed_on: date,
    cvd_amount,
    cca_amount=None,
    acquired_on: Optional[date] = None,
) -> List[ScheduledPayment]:
    """Return the pending payments owed for one sale.

    Only strictly positive amounts are scheduled. The CCA is dated from
    ``acquired_on`` and falls back to the installation date.
    """

    payments = [
        cvd_payment(seller_code, client_id, product_type, installed_on, cvd_amount),
        cca_payment(seller_code, client_id, product_type, acquired_on or installed_on, cca_amount),
    ]
    return [payment for payment in payments if payment is not None]


def _sorted(payments: Iterable[ScheduledPayment]) -> List[ScheduledPayment]:
    return sorted(payments, key=lambda payment: (payment.pay_date, payment.kind))


def upcoming_payments(
    seller_code: str,
    schedule: Iterable[ScheduledPayment],
    today: Optional[date] = None,
) -> UpcomingPayments:
    """Pending payments of ``seller_code`` due today or later, soonest first."""

    today = today or date.today()
    due = _sorted(
        payment
        for payment in schedule
        if payment.seller_code == seller_code and payment.status == STATUS_PENDING and payment.pay_date >= today
    )
    return UpcomingPayments(
        seller_code=seller_code,
        cvd=[payment for payment in due if payment.kind == KIND_CVD],
        cca=[payment for payment in due if payment.kind == KIND_CCA],
    )


def mark_overdue(schedule: Iterable[ScheduledPayment], today: Optional[date] = None) -> List[ScheduledPayment]:
    """Return the schedule with pending payments past their date flagged overdue."""

    today = today or date.today()
    marked: List[ScheduledPayment] = []
    overdue = 0
    for payment in schedule:
        if payment.status == STATUS_PENDING and payment.pay_date < today:
            payment = replace(payment, status=STATUS_OVERDUE)
            overdue += 1
        marked.append(payment)
    if overdue:
        logger.warning("%s commission payment(s) overdue as of %s", overdue, today)
    return marked


def monthly_payment_report(month: str, schedule: Iterable[ScheduledPayment]) -> MonthlyPaymentReport:
    """Pending payments falling due in ``month`` along with that month's pay dates."""

    start, end = month_bounds(month)
    report = MonthlyPaymentReport(
        month=month,
        cvd_date=start.replace(day=CVD_PAYMENT_DAY),
        cca_date=start.replace(day=CCA_PAYMENT_DAY),
    )
    for payment in _sorted(schedule):
        if payment.status != STATUS_PENDING or not start <= payment.pay_date <= end:
            continue
        if payment.kind == KIND_CVD:
            report.cvd.append(payment)
        elif payment.kind == KIND_CCA:
            report.cca.append(payment)
    return report


def days_until_payment(pay_date: date, now: Optional[datetime] = None) -> int:
    """Whole days left before ``pay_date``, rounded up; negative once it has passed."""

    now = now or datetime.now()
    remaining = datetime.combine(pay_date, time.min) - now
    return math.ceil(remaining.total_seconds() / 86400)


def build_schedule_frame(schedule: Iterable[ScheduledPayment]) -> pd.DataFrame:
    """Flatten a schedule into a DataFrame ordered by pay date; amounts stay ``Decimal``."""

    rows = [{column: getattr(payment, column) for column in SCHEDULE_COLUMNS} for payment in schedule]
    frame = pd.DataFrame(rows, columns=SCHEDULE_COLUMNS)
    if not frame.empty:
        frame = frame.sort_values(["pay_date", "kind", "client_id"], na_position="last").reset_index(drop=True)
    return frame


__all__ = [
    "CCA_PAYMENT_DAY",
    "CVD_PAYMENT_DAY",
    "MonthlyPaymentReport",
    "ScheduledPayment",
    "UpcomingPayments",
    "build_schedule_frame",
    "cca_payment",
    "cca_payment_date",
    "cvd_payment",
    "cvd_payment_date",
    "days_until_payment",
    "mark_overdue",
    "monthly_payment_report",
    "schedule_sale",
    "upcoming_payments",
]
