"""Database access helpers."""
from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from salesdesk.core.direct_sales import product_type_from
from salesdesk.core.formatting import is_month_key, month_bounds, to_money
from salesdesk.core.hierarchy import walk_ascendants, walk_descendants, would_create_cycle
from salesdesk.core.reporting import MonthlyReport, build_monthly_report
from salesdesk.exceptions import ConflictError, NotFoundError, ValidationError
from salesdesk.models import (
    STATUS_CALCULATED,
    STATUS_PAID,
    STATUS_VALIDATED,
    Client,
    CommissionRule,
    CommissionTransaction,
    Distributor,
)
from salesdesk.schemas import ClientCreate

logger = logging.getLogger(__name__)


# --- Distributors ------------------------------------------------------------

def get_distributor(db: Session, distributor_id: int) -> Distributor | None:
    return db.get(Distributor, distributor_id)


def get_distributor_by_user(db: Session, user_id: int) -> Distributor | None:
    stmt = select(Distributor).where(Distributor.user_id == user_id)
    return db.execute(stmt).scalars().first()


def get_distributor_by_code(db: Session, referral_code: str) -> Distributor | None:
    stmt = select(Distributor).where(Distributor.referral_code == referral_code)
    return db.execute(stmt).scalars().first()


def list_distributors(db: Session) -> Sequence[Distributor]:
    stmt = select(Distributor).order_by(Distributor.level.asc(), Distributor.referral_code.asc())
    return db.execute(stmt).scalars().all()


def register_distributor(
    db: Session,
    user_id: int,
    referral_code: str,
    parent_referral_code: str | None = None,
) -> Distributor:
    """Enrol a user in the MLM program under an optional sponsor.

    The level is taken from the sponsor at registration time and is not
    recomputed if the sponsor later moves.
    """

    if get_distributor_by_user(db, user_id) is not None:
        raise ConflictError("User is already registered as a distributor.")
    if get_distributor_by_code(db, referral_code) is not None:
        raise ConflictError(f"Referral code '{referral_code}' is already in use.")

    parent = None
    if parent_referral_code:
        parent = get_distributor_by_code(db, parent_referral_code)
        if parent is None:
            raise ValidationError(f"Invalid parent code '{parent_referral_code}'.")

    distributor = Distributor(
        user_id=user_id,
        referral_code=referral_code,
        parent_id=parent.id if parent else None,
        level=parent.level + 1 if parent else 1,
        recruited_at=datetime.now(),
        active=True,
    )
    db.add(distributor)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent registration took the user or the code first.
        db.rollback()
        raise ConflictError("User or referral code is already registered.") from None
    db.refresh(distributor)
    logger.info(
        "Registered distributor %s (user %s) at level %s under %s",
        distributor.referral_code,
        user_id,
        distributor.level,
        parent_referral_code or "-",
    )
    return distributor


def direct_children(db: Session, distributor_id: int) -> Sequence[Distributor]:
    stmt = (
        select(Distributor)
        .where(Distributor.parent_id == distributor_id)
        .order_by(Distributor.referral_code.asc())
    )
    return db.execute(stmt).scalars().all()


def full_subtree(db: Session, distributor_id: int) -> list[tuple[Distributor, int]]:
    """Return the distributor and every descendant as ``(node, depth)``.

    The node itself is at depth 1. Rows are ordered by depth then referral code.
    """

    def children_of(batch: list[Distributor]) -> Sequence[Distributor]:
        stmt = select(Distributor).where(Distributor.parent_id.in_([node.id for node in batch]))
        return db.execute(stmt).scalars().all()

    start = get_distributor(db, distributor_id)
    nodes = walk_descendants(start, children_of, key=lambda node: node.id)
    return sorted(nodes, key=lambda item: (item[1], item[0].referral_code))


def ascendant_chain(db: Session, distributor_id: int) -> list[tuple[Distributor, int]]:
    """Return the distributor and its sponsors as ``(node, depth)``, root last."""

    def parent_of(node: Distributor) -> Distributor | None:
        if node.parent_id is None:
            return None
        return db.get(Distributor, node.parent_id)

    start = get_distributor(db, distributor_id)
    return walk_ascendants(start, parent_of, key=lambda node: node.id)


def reassign_parent(db: Session, distributor_id: int, parent_referral_code: str | None) -> Distributor:
    """Move a distributor under another sponsor (or to the root).

    Rejects moves that would put the distributor inside its own subtree.
    Stored levels are left untouched.
    """

    distributor = get_distributor(db, distributor_id)
    if distributor is None:
        raise NotFoundError("Distributor not found.")

    new_parent = None
    if parent_referral_code:
        new_parent = get_distributor_by_code(db, parent_referral_code)
        if new_parent is None:
            raise ValidationError(f"Invalid parent code '{parent_referral_code}'.")

    parent_map = dict(db.execute(select(Distributor.id, Distributor.parent_id)).all())
    if would_create_cycle(distributor.id, new_parent.id if new_parent else None, parent_map):
        raise ValidationError("A distributor cannot be placed under its own downline.")

    distributor.parent_id = new_parent.id if new_parent else None
    db.add(distributor)
    db.commit()
    db.refresh(distributor)
    logger.info("Moved distributor %s under %s", distributor.referral_code, parent_referral_code or "-")
    return distributor


# --- Clients -----------------------------------------------------------------

def create_client(db: Session, payload: ClientCreate) -> Client:
    client = Client(**payload.model_dump())
    if client.status == "installation" and client.installed_on is None:
        client.installed_on = date.today()
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def get_client(db: Session, client_id: int) -> Client | None:
    return db.get(Client, client_id)


def update_client_status(db: Session, client: Client, status: str, installed_on: date | None = None) -> Client:
    """Move ``client`` to ``status``.

    An installation always carries a date: when none is given or stored the
    client is installed today.
    """

    client.status = status
    if installed_on is not None:
        client.installed_on = installed_on
    elif status == "installation" and client.installed_on is None:
        client.installed_on = date.today()
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def installed_clients_for_seller(db: Session, seller_code: str, month: str) -> Sequence[Client]:
    """Clients installed by ``seller_code`` during ``month``, in installation order."""

    start, end = month_bounds(month)
    stmt = (
        select(Client)
        .where(
            Client.seller_code == seller_code,
            Client.status == "installation",
            Client.installed_on >= start,
            Client.installed_on <= end,
        )
        .order_by(Client.installed_on.asc(), Client.id.asc())
    )
    return db.execute(stmt).scalars().all()


# --- Commission rules --------------------------------------------------------

def list_commission_rules(db: Session) -> Sequence[CommissionRule]:
    stmt = select(CommissionRule).order_by(CommissionRule.level.asc(), CommissionRule.product_type.asc())
    return db.execute(stmt).scalars().all()


def get_active_rule(db: Session, level: int, product_type: str) -> CommissionRule | None:
    stmt = select(CommissionRule).where(
        CommissionRule.level == level,
        CommissionRule.product_type == product_type,
        CommissionRule.active.is_(True),
    )
    return db.execute(stmt).scalars().first()


def upsert_commission_rule(
    db: Session,
    level: int,
    product_type: str,
    rate: Decimal,
    active: bool = True,
) -> CommissionRule:
    product = product_type_from(product_type)
    if product is None:
        raise ValidationError(f"Unknown product type '{product_type}'.")
    if level < 1:
        raise ValidationError("Rule level must be at least 1.")
    if rate < 0 or rate > 100:
        raise ValidationError("Rule rate must be between 0 and 100.")

    stmt = select(CommissionRule).where(
        CommissionRule.level == level,
        CommissionRule.product_type == product.value,
    )
    rule = db.execute(stmt).scalars().first()
    if rule is None:
        rule = CommissionRule(level=level, product_type=product.value)
    rule.rate = Decimal(str(rate))
    rule.active = active
    db.add(rule)
    db.commit()
    db.refresh(rule)
    return rule


# --- Commission transactions -------------------------------------------------

def add_commission_transaction(
    db: Session,
    distributor: Distributor,
    client_id: int | None,
    product_type: str,
    level: int,
    rate: Decimal,
    amount: Decimal,
    month: str,
) -> CommissionTransaction:
    """Stage a ``calculee`` transaction; the caller commits."""

    transaction = CommissionTransaction(
        distributor_id=distributor.id,
        client_id=client_id,
        product_type=product_type,
        level=level,
        rate=rate,
        amount=amount,
        month=month,
        status=STATUS_CALCULATED,
        created_at=datetime.now(),
    )
    db.add(transaction)
    return transaction


def transactions_for(db: Session, distributor_id: int) -> Sequence[CommissionTransaction]:
    stmt = (
        select(CommissionTransaction)
        .where(CommissionTransaction.distributor_id == distributor_id)
        .order_by(CommissionTransaction.created_at.desc(), CommissionTransaction.id.desc())
    )
    return db.execute(stmt).scalars().all()


def transactions_for_client(db: Session, client_id: int) -> Sequence[CommissionTransaction]:
    stmt = (
        select(CommissionTransaction)
        .where(CommissionTransaction.client_id == client_id)
        .order_by(CommissionTransaction.level, CommissionTransaction.id)
    )
    return db.execute(stmt).scalars().all()


def transactions_for_month(db: Session, distributor_id: int, month: str) -> Sequence[CommissionTransaction]:
    stmt = (
        select(CommissionTransaction)
        .where(
            CommissionTransaction.distributor_id == distributor_id,
            CommissionTransaction.month == month,
        )
        .order_by(CommissionTransaction.created_at.asc(), CommissionTransaction.id.asc())
    )
    return db.execute(stmt).scalars().all()


def commission_total(db: Session, distributor_id: int | None = None, month: str | None = None) -> Decimal:
    stmt = select(func.coalesce(func.sum(CommissionTransaction.amount), 0))
    if distributor_id is not None:
        stmt = stmt.where(CommissionTransaction.distributor_id == distributor_id)
    if month is not None:
        stmt = stmt.where(CommissionTransaction.month == month)
    return to_money(db.execute(stmt).scalar_one())


def _require_month(month: str) -> None:
    if not is_month_key(month):
        raise ValidationError(f"Invalid month '{month}'; expected YYYY-MM.")


def _transition(
    db: Session,
    distributor_id: int,
    month: str,
    from_status: str,
    values: dict,
) -> int:
    stmt = (
        update(CommissionTransaction)
        .where(
            CommissionTransaction.distributor_id == distributor_id,
            CommissionTransaction.month == month,
            CommissionTransaction.status == from_status,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    return int(result.rowcount or 0)


def validate_monthly_commissions(db: Session, distributor_id: int, month: str) -> int:
    """Move the month's computed commissions to ``validee``; returns rows moved."""

    _require_month(month)
    moved = _transition(
        db,
        distributor_id,
        month,
        STATUS_CALCULATED,
        {"status": STATUS_VALIDATED, "validated_at": datetime.now()},
    )
    logger.info("Validated %s commission(s) for distributor %s in %s", moved, distributor_id, month)
    return moved


def pay_commissions(db: Session, distributor_id: int, month: str, payment_method: str) -> int:
    """Mark the month's validated commissions as paid; returns rows moved."""

    _require_month(month)
    moved = _transition(
        db,
        distributor_id,
        month,
        STATUS_VALIDATED,
        {"status": STATUS_PAID, "paid_at": datetime.now(), "payment_method": payment_method},
    )
    logger.info(
        "Paid %s commission(s) for distributor %s in %s via %s",
        moved,
        distributor_id,
        month,
        payment_method,
    )
    return moved


def monthly_report(db: Session, distributor_id: int, month: str) -> MonthlyReport:
    _require_month(month)
    if get_distributor(db, distributor_id) is None:
        raise NotFoundError("Distributor not found.")
    return build_monthly_report(distributor_id, month, transactions_for_month(db, distributor_id, month))


# --- Maintenance -------------------------------------------------------------

def reset_application_data(db: Session) -> dict[str, int]:
    """Delete every domain row; used by maintenance and the test suite."""

    counts: dict[str, int] = {}
    for label, model in (
        ("transactions", CommissionTransaction),
        ("rules", CommissionRule),
        ("clients", Client),
        ("distributors", Distributor),
    ):
        if model is Distributor:
            # Detach sponsors first so self-references never block the delete.
            db.execute(update(Distributor).values(parent_id=None))
        result = db.execute(delete(model))
        counts[label] = int(result.rowcount or 0)
    db.commit()
    return counts
