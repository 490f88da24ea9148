"""Application service layer."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import List

from sqlalchemy.orm import Session

from salesdesk import crud
from salesdesk.commission import propagate
from salesdesk.core.direct_sales import (
    SALE_AMOUNTS,
    MonthlyCommissionResult,
    calculate_month,
    calculate_prorated,
    points_for,
    product_type_from,
)
from salesdesk.core.formatting import is_month_key, month_bounds, month_key, previous_month_key
from salesdesk.core.payment_schedule import STATUS_PAID as PAYMENT_PAID
from salesdesk.core.payment_schedule import (
    STATUS_PENDING,
    MonthlyPaymentReport,
    ScheduledPayment,
    cca_payment,
    cvd_payment,
    monthly_payment_report,
)
from salesdesk.exceptions import NotFoundError, ValidationError
from salesdesk.models import STATUS_PAID, Client, CommissionTransaction

logger = logging.getLogger(__name__)


class SalesService:
    """Coordinates commission flows that start from CRM client records."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def direct_sales_commissions(
        self,
        seller_code: str,
        month: str | None = None,
    ) -> tuple[MonthlyCommissionResult, List[Client], Decimal]:
        """Compute a seller's CVD for the month from their installed clients.

        Returns the per-sale result, the clients matching each detailed sale
        (same order) and the prorated comparison figure.
        """

        month = month or month_key()
        if not is_month_key(month):
            raise ValidationError(f"Invalid month '{month}'; expected YYYY-MM.")

        clients = [
            client
            for client in crud.installed_clients_for_seller(self.db, seller_code, month)
            if points_for(client.product_type) > 0
        ]
        result = calculate_month(clients)
        prorated = calculate_prorated(result.total_points, clients)
        logger.info(
            "CVD for %s in %s: %s sale(s), %s points, %s",
            seller_code,
            month,
            len(clients),
            result.total_points,
            result.total_commission,
        )
        return result, clients, prorated

    def start_client_commissions(self, client_id: int) -> List[CommissionTransaction]:
        """Propagate MLM commissions once a client's installation is confirmed."""

        client = crud.get_client(self.db, client_id)
        if client is None:
            raise NotFoundError("Client not found.")
        if not client.product_type:
            return []
        product = product_type_from(client.product_type)
        if product is None:
            logger.warning("Client %s has unknown product %r; no commissions", client_id, client.product_type)
            return []
        if client.status != "installation":
            return []
        if crud.transactions_for_client(self.db, client.id):
            logger.info("Client %s already has commission transactions; skipping propagation", client_id)
            return []
        return propagate(self.db, client.id, product.value, SALE_AMOUNTS[product], on=client.installed_on)

    def payment_schedule(self, seller_code: str, month: str | None = None) -> List[ScheduledPayment]:
        """Payments owed to ``seller_code`` for what they earned in ``month``.

        CVD entries come from the month's installed sales; CCA entries from
        the network commissions recorded for the seller's distributor account.
        Network commissions already paid out are listed as paid.
        """

        month = month or month_key()
        result, clients, _ = self.direct_sales_commissions(seller_code, month)

        schedule: List[ScheduledPayment] = []
        for sale, client in zip(result.detailed_sales, clients):
            payment = cvd_payment(seller_code, client.id, client.product_type, client.installed_on, sale.commission)
            if payment is not None:
                schedule.append(payment)

        distributor = crud.get_distributor_by_code(self.db, seller_code)
        if distributor is not None:
            acquired_on, _ = month_bounds(month)
            for transaction in crud.transactions_for_month(self.db, distributor.id, month):
                status = PAYMENT_PAID if transaction.status == STATUS_PAID else STATUS_PENDING
                payment = cca_payment(
                    seller_code,
                    transaction.client_id,
                    transaction.product_type,
                    acquired_on,
                    transaction.amount,
                    status=status,
                )
                if payment is not None:
                    schedule.append(payment)

        schedule.sort(key=lambda payment: (payment.pay_date, payment.kind))
        logger.info("Payment schedule for %s in %s: %s payment(s)", seller_code, month, len(schedule))
        return schedule

    def payment_report(self, seller_code: str, pay_month: str) -> MonthlyPaymentReport:
        """Summarise what ``seller_code`` is paid in ``pay_month``.

        Payments falling due in a month were earned the month before.
        """

        if not is_month_key(pay_month):
            raise ValidationError(f"Invalid month '{pay_month}'; expected YYYY-MM.")
        schedule = self.payment_schedule(seller_code, previous_month_key(pay_month))
        return monthly_payment_report(pay_month, schedule)
