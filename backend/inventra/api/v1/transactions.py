"""
Transaction API Routes - Sales
"""
from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime

from inventra.core.database import get_db
from inventra.core.security import get_current_user
from inventra.schemas import (
    TransactionCreate, TransactionUpdate, TransactionResponse, TransactionList, MessageResponse
)
from inventra.services.transaction_service import TransactionService

router = APIRouter(prefix="/transactions", tags=["Transactions"])


@router.get("", response_model=TransactionList)
async def list_transactions(
    customer_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Sales, newest first"""
    transactions, total = TransactionService(db).get_list(
        current_user.id, customer_id, start_date, end_date, skip, limit
    )
    return {
        "transactions": transactions,
        "pagination": {
            "total": total,
            "limit": limit,
            "skip": skip,
            "has_more": skip + len(transactions) < total,
        },
    }


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction(
    transaction_data: TransactionCreate,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    transaction = TransactionService(db).create(transaction_data, current_user.id, idempotency_key)
    db.commit()
    db.refresh(transaction)
    return transaction


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return TransactionService(db).get_or_raise(transaction_id, current_user.id)


@router.put("/{transaction_id}", response_model=TransactionResponse)
async def update_transaction(
    transaction_id: int,
    transaction_data: TransactionUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Edit a sale: its old effect is reverted before the new one is applied"""
    transaction = TransactionService(db).update(transaction_id, current_user.id, transaction_data)
    db.commit()
    db.refresh(transaction)
    return transaction


@router.delete("/{transaction_id}", response_model=MessageResponse)
async def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    TransactionService(db).delete(transaction_id, current_user.id)
    db.commit()
    return {"message": "Transaction deleted successfully"}
