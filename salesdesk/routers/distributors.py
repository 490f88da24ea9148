"""Routes for the MLM distributor network."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from salesdesk import crud
from salesdesk.commission import distributor_summary, network_summary
from salesdesk.database import get_session
from salesdesk.models import Distributor, STATUS_PAID, STATUS_VALIDATED
from salesdesk.schemas import (
    CommissionTransactionRead,
    DistributorCreate,
    DistributorNode,
    DistributorRead,
    DistributorSummaryRead,
    MonthlyReportRead,
    NetworkSummaryRead,
    ParentUpdate,
    PaymentRequest,
    StatusTransitionRead,
)

router = APIRouter(prefix="/distributors", tags=["Distributors"])


def _get_or_404(db: Session, distributor_id: int) -> Distributor:
    distributor = crud.get_distributor(db, distributor_id)
    if distributor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Distributor not found")
    return distributor


def _nodes(rows: list[tuple[Distributor, int]]) -> List[DistributorNode]:
    return [
        DistributorNode(**DistributorRead.model_validate(node).model_dump(), depth=depth)
        for node, depth in rows
    ]


@router.post("", response_model=DistributorRead, status_code=status.HTTP_201_CREATED)
def register(payload: DistributorCreate, db: Session = Depends(get_session)) -> Distributor:
    return crud.register_distributor(
        db,
        user_id=payload.user_id,
        referral_code=payload.referral_code,
        parent_referral_code=payload.parent_referral_code,
    )


@router.get("", response_model=List[DistributorRead])
def list_all(db: Session = Depends(get_session)):
    return crud.list_distributors(db)


@router.get("/network/summary", response_model=NetworkSummaryRead)
def network(db: Session = Depends(get_session)):
    return network_summary(db)


@router.get("/by-code/{referral_code}", response_model=DistributorRead)
def by_code(referral_code: str, db: Session = Depends(get_session)) -> Distributor:
    distributor = crud.get_distributor_by_code(db, referral_code)
    if distributor is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Distributor not found")
    return distributor


@router.get("/{distributor_id}", response_model=DistributorRead)
def detail(distributor_id: int, db: Session = Depends(get_session)) -> Distributor:
    return _get_or_404(db, distributor_id)


@router.put("/{distributor_id}/parent", response_model=DistributorRead)
def move(distributor_id: int, payload: ParentUpdate, db: Session = Depends(get_session)) -> Distributor:
    return crud.reassign_parent(db, distributor_id, payload.parent_referral_code)


@router.get("/{distributor_id}/children", response_model=List[DistributorRead])
def children(distributor_id: int, db: Session = Depends(get_session)):
    _get_or_404(db, distributor_id)
    return crud.direct_children(db, distributor_id)


@router.get("/{distributor_id}/subtree", response_model=List[DistributorNode])
def subtree(distributor_id: int, db: Session = Depends(get_session)):
    _get_or_404(db, distributor_id)
    return _nodes(crud.full_subtree(db, distributor_id))


@router.get("/{distributor_id}/ascendants", response_model=List[DistributorNode])
def ascendants(distributor_id: int, db: Session = Depends(get_session)):
    _get_or_404(db, distributor_id)
    return _nodes(crud.ascendant_chain(db, distributor_id))


@router.get("/{distributor_id}/summary", response_model=DistributorSummaryRead)
def summary(distributor_id: int, db: Session = Depends(get_session)):
    return distributor_summary(db, distributor_id)


@router.get("/{distributor_id}/transactions", response_model=List[CommissionTransactionRead])
def transactions(distributor_id: int, db: Session = Depends(get_session)):
    _get_or_404(db, distributor_id)
    return crud.transactions_for(db, distributor_id)


@router.get("/{distributor_id}/commissions/{month}", response_model=MonthlyReportRead)
def monthly(distributor_id: int, month: str, db: Session = Depends(get_session)) -> MonthlyReportRead:
    report = crud.monthly_report(db, distributor_id, month)
    rows = crud.transactions_for_month(db, distributor_id, month)
    return MonthlyReportRead(
        distributor_id=report.distributor_id,
        month=report.month,
        transaction_count=report.transaction_count,
        total=report.total,
        by_product=report.by_product,
        by_status=report.by_status,
        transactions=[CommissionTransactionRead.model_validate(row) for row in rows],
    )


@router.post("/{distributor_id}/commissions/{month}/validate", response_model=StatusTransitionRead)
def validate_month(distributor_id: int, month: str, db: Session = Depends(get_session)) -> StatusTransitionRead:
    _get_or_404(db, distributor_id)
    updated = crud.validate_monthly_commissions(db, distributor_id, month)
    return StatusTransitionRead(
        distributor_id=distributor_id, month=month, status=STATUS_VALIDATED, updated=updated
    )


@router.post("/{distributor_id}/commissions/{month}/pay", response_model=StatusTransitionRead)
def pay_month(
    distributor_id: int,
    month: str,
    payload: PaymentRequest,
    db: Session = Depends(get_session),
) -> StatusTransitionRead:
    _get_or_404(db, distributor_id)
    updated = crud.pay_commissions(db, distributor_id, month, payload.payment_method)
    return StatusTransitionRead(distributor_id=distributor_id, month=month, status=STATUS_PAID, updated=updated)
