"""
Customer API Routes - Customers, bulk payments and balance repair
"""
from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session
from typing import List, Optional

from inventra.core.database import get_db
from inventra.core.security import get_current_user
from inventra.schemas import (
    CustomerCreate, CustomerUpdate, CustomerResponse, MessageResponse,
    BulkPaymentRequest, BulkPaymentResponse, PaymentResponse,
    FixBalancesRequest, FixBalancesResponse, FixAllBalancesResponse
)
from inventra.services.crm_service import CustomerService
from inventra.services.payment_service import PaymentService
from inventra.services.reconciliation_service import ReconciliationService

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.get("", response_model=List[CustomerResponse])
async def list_customers(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return CustomerService(db).get_by_user(current_user.id)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
async def create_customer(
    customer_data: CustomerCreate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    customer = CustomerService(db).create(customer_data, current_user.id)
    db.commit()
    return customer


# ==================== PAYMENTS & RECONCILIATION ====================

@router.post("/bulk-payment", response_model=BulkPaymentResponse)
async def bulk_payment(
    payment_data: BulkPaymentRequest,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Apply one payment across the customer's open sales (fifo or manual)"""
    result = PaymentService(db).bulk_payment(payment_data, current_user.id, idempotency_key)
    db.commit()
    return result


@router.post("/fix-balances", response_model=FixBalancesResponse)
async def fix_balances(
    request_data: FixBalancesRequest,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Recompute one customer's transaction balances and outstanding"""
    result = ReconciliationService(db).fix_balances(request_data.customer_id, current_user.id)
    db.commit()
    return result


@router.post("/fix-all-balances", response_model=FixAllBalancesResponse)
async def fix_all_balances(
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    result = ReconciliationService(db).fix_all_balances(current_user.id)
    db.commit()
    return result


# ==================== SINGLE CUSTOMER ====================

@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return CustomerService(db).get_or_raise(customer_id, current_user.id)


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    customer_data: CustomerUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    customer = CustomerService(db).update(customer_id, current_user.id, customer_data)
    db.commit()
    return customer


@router.delete("/{customer_id}", response_model=MessageResponse)
async def delete_customer(
    customer_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    CustomerService(db).delete(customer_id, current_user.id)
    db.commit()
    return {"message": "Customer deleted successfully"}


@router.get("/{customer_id}/payments", response_model=List[PaymentResponse])
async def list_customer_payments(
    customer_id: int,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user)
):
    return CustomerService(db).get_payments(customer_id, current_user.id)
