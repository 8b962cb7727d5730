"""
Stock Transaction API Routes
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from inventra.core.database import get_db
from inventra.core.security import get_current_user
from inventra.schemas import StockTransactionCreate, StockTransactionResponse, StockTransactionList
from inventra.services.stock_service import StockLedgerService

router = APIRouter(prefix="/stock-transactions", tags=["Stock"])


@router.get("", response_model=StockTransactionList)
async def list_stock_transactions(
    item_id: Optional[int] = None,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Stock journal, newest first"""
    entries, total = StockLedgerService(db).get_history(current_user.id, item_id, skip, limit)
    return {
        "stock_transactions": entries,
        "pagination": {
            "total": total,
            "limit": limit,
            "skip": skip,
            "has_more": skip + len(entries) < total,
        },
    }


@router.post("", response_model=StockTransactionResponse, status_code=status.HTTP_201_CREATED)
async def add_stock_transaction(
    stock_data: StockTransactionCreate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Manual stock addition or adjustment"""
    entry = StockLedgerService(db).add_stock(stock_data, current_user.id)
    db.commit()
    db.refresh(entry)
    return entry
