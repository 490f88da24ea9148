"""MLM commission propagation and network summaries."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from salesdesk import crud
from salesdesk.core.direct_sales import product_type_from
from salesdesk.core.formatting import MONEY_QUANT, month_bounds, month_key, previous_month_key
from salesdesk.exceptions import NotFoundError
from salesdesk.models import Client, CommissionTransaction, Distributor

logger = logging.getLogger(__name__)


@dataclass
class CommissionSummary:
    distributor_id: int
    referral_code: str
    level: int
    direct_children: int
    network_size: int
    current_month_commissions: Decimal
    total_commissions: Decimal


@dataclass
class NetworkSummary:
    total_distributors: int
    network_clients: int
    current_month_commissions: Decimal
    total_commissions: Decimal
    client_growth_pct: Decimal


def propagate(
    db: Session,
    client_id: int,
    product_type: str,
    sale_amount: Decimal,
    on: date | None = None,
) -> List[CommissionTransaction]:
    """Record one commission per ascendant of the client's seller.

    The seller is level 1 of the chain. Each ascendant is paid at the active
    rule for its own stored level and the product; ascendants without a rule,
    or whose amount rounds to nothing, are skipped. Sales outside the program
    (unknown client, no seller, seller not a distributor) produce nothing.
    """

    client = crud.get_client(db, client_id)
    if client is None:
        logger.warning("Propagation skipped: client %s not found", client_id)
        return []
    if not client.seller_code:
        logger.info("Propagation skipped: client %s has no seller", client_id)
        return []
    seller = crud.get_distributor_by_code(db, client.seller_code)
    if seller is None:
        logger.info("Seller %s is not an MLM distributor; no commissions", client.seller_code)
        return []

    product = product_type_from(product_type)
    product_key = product.value if product else str(product_type)
    sale_amount = Decimal(str(sale_amount))
    month = month_key(on)

    created: List[CommissionTransaction] = []
    for ascendant, _depth in crud.ascendant_chain(db, seller.id):
        rule = crud.get_active_rule(db, ascendant.level, product_key)
        if rule is None:
            continue
        amount = (sale_amount * Decimal(rule.rate) / Decimal("100")).quantize(
            MONEY_QUANT, rounding=ROUND_HALF_UP
        )
        if amount <= 0:
            continue
        created.append(
            crud.add_commission_transaction(
                db,
                ascendant,
                client_id=client.id,
                product_type=product_key,
                level=ascendant.level,
                rate=Decimal(rule.rate),
                amount=amount,
                month=month,
            )
        )

    db.commit()
    for transaction in created:
        db.refresh(transaction)
    logger.info(
        "Propagated %s sale for client %s: %s commission(s) in %s",
        product_key,
        client_id,
        len(created),
        month,
    )
    return created


def distributor_summary(db: Session, distributor_id: int, today: date | None = None) -> CommissionSummary:
    distributor = crud.get_distributor(db, distributor_id)
    if distributor is None:
        raise NotFoundError("Distributor not found.")

    return CommissionSummary(
        distributor_id=distributor.id,
        referral_code=distributor.referral_code,
        level=distributor.level,
        direct_children=len(crud.direct_children(db, distributor.id)),
        network_size=len(crud.full_subtree(db, distributor.id)) - 1,
        current_month_commissions=crud.commission_total(db, distributor.id, month_key(today)),
        total_commissions=crud.commission_total(db, distributor.id),
    )


def _network_clients_in(db: Session, start: date, end: date) -> int:
    stmt = (
        select(func.count(Client.id))
        .join(Distributor, Distributor.referral_code == Client.seller_code)
        .where(
            Client.created_at >= datetime.combine(start, time.min),
            Client.created_at <= datetime.combine(end, time.max),
        )
    )
    return int(db.execute(stmt).scalar_one())


def network_summary(db: Session, today: date | None = None) -> NetworkSummary:
    """Program-wide figures for the back-office dashboard."""

    current = month_key(today)
    current_start, current_end = month_bounds(current)
    previous_start, previous_end = month_bounds(previous_month_key(current))

    total_distributors = int(db.execute(select(func.count(Distributor.id))).scalar_one())
    network_clients = int(
        db.execute(
            select(func.count(Client.id)).join(Distributor, Distributor.referral_code == Client.seller_code)
        ).scalar_one()
    )

    this_month = _network_clients_in(db, current_start, current_end)
    last_month = _network_clients_in(db, previous_start, previous_end)
    if last_month:
        growth = Decimal(this_month - last_month) * 100 / Decimal(last_month)
    else:
        growth = Decimal("100") if this_month else Decimal("0")

    return NetworkSummary(
        total_distributors=total_distributors,
        network_clients=network_clients,
        current_month_commissions=crud.commission_total(db, month=current),
        total_commissions=crud.commission_total(db),
        client_growth_pct=growth.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP),
    )
