"""Routes for CRM client records that feed the commission engine."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from salesdesk import crud
from salesdesk.database import get_session
from salesdesk.models import Client
from salesdesk.schemas import ClientCreate, ClientRead, ClientStatusUpdate, CommissionTransactionRead
from salesdesk.services import SalesService

router = APIRouter(prefix="/clients", tags=["Clients"])


def _get_or_404(db: Session, client_id: int) -> Client:
    client = crud.get_client(db, client_id)
    if client is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return client


@router.post("", response_model=ClientRead, status_code=status.HTTP_201_CREATED)
def create(payload: ClientCreate, db: Session = Depends(get_session)) -> Client:
    return crud.create_client(db, payload)


@router.get("/{client_id}", response_model=ClientRead)
def detail(client_id: int, db: Session = Depends(get_session)) -> Client:
    return _get_or_404(db, client_id)


@router.put("/{client_id}/status", response_model=List[CommissionTransactionRead])
def change_status(client_id: int, payload: ClientStatusUpdate, db: Session = Depends(get_session)):
    """Update the client's status; reaching ``installation`` starts the MLM commissions."""

    client = _get_or_404(db, client_id)
    was_installed = client.status == "installation"
    crud.update_client_status(db, client, payload.status, payload.installed_on)
    if was_installed or payload.status != "installation":
        return []
    return SalesService(db).start_client_commissions(client_id)


@router.post("/{client_id}/commissions", response_model=List[CommissionTransactionRead])
def start_commissions(client_id: int, db: Session = Depends(get_session)):
    return SalesService(db).start_client_commissions(client_id)
