"""
Return API Routes
"""
from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session
from typing import List, Optional

from inventra.core.database import get_db
from inventra.core.security import get_current_user
from inventra.schemas import ReturnCreate, ReturnResponse
from inventra.services.return_service import ReturnService

router = APIRouter(prefix="/returns", tags=["Returns"])


@router.get("", response_model=List[ReturnResponse])
async def list_returns(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return ReturnService(db).get_by_user(current_user.id)


@router.post("", response_model=ReturnResponse, status_code=status.HTTP_201_CREATED)
async def create_return(
    return_data: ReturnCreate,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Take goods back into stock and credit the refund to the customer"""
    return_transaction = ReturnService(db).create(return_data, current_user.id, idempotency_key)
    db.commit()
    db.refresh(return_transaction)
    return return_transaction
