"""
CRM Service - Customers and their payment history
"""
from typing import Optional, List
from sqlalchemy.orm import Session, selectinload

from inventra.core.exceptions import CustomerNotFoundError
from inventra.core.money import quantize
from inventra.models import Customer, Payment
from inventra.schemas import CustomerCreate, CustomerUpdate


class CustomerService:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, customer_id: int, user_id: int, include_deleted: bool = False) -> Optional[Customer]:
        query = self.db.query(Customer).filter(
            Customer.id == customer_id,
            Customer.user_id == user_id
        )
        if not include_deleted:
            query = query.filter(Customer.is_deleted == False)
        return query.first()

    def get_or_raise(self, customer_id: int, user_id: int) -> Customer:
        customer = self.get_by_id(customer_id, user_id)
        if not customer:
            raise CustomerNotFoundError(customer_id)
        return customer

    def get_by_user(self, user_id: int, include_deleted: bool = False) -> List[Customer]:
        query = self.db.query(Customer).filter(Customer.user_id == user_id)
        if not include_deleted:
            query = query.filter(Customer.is_deleted == False)
        return query.order_by(Customer.name).all()

    def create(self, customer_data: CustomerCreate, user_id: int) -> Customer:
        customer = Customer(
            name=customer_data.name,
            phone_number=customer_data.phone_number,
            outstanding_balance=quantize(customer_data.outstanding_balance),
            user_id=user_id
        )
        self.db.add(customer)
        self.db.flush()
        return customer

    def update(self, customer_id: int, user_id: int, customer_data: CustomerUpdate) -> Customer:
        customer = self.get_or_raise(customer_id, user_id)

        # The balance is owned by the ledger, never edited directly
        update_data = customer_data.model_dump(exclude_unset=True, exclude_none=True)
        for key, value in update_data.items():
            setattr(customer, key, value)

        self.db.flush()
        return customer

    def delete(self, customer_id: int, user_id: int) -> Customer:
        customer = self.get_or_raise(customer_id, user_id)
        customer.is_deleted = True
        self.db.flush()
        return customer

    def get_payments(self, customer_id: int, user_id: int) -> List[Payment]:
        """Payment history, newest first"""
        customer = self.get_by_id(customer_id, user_id, include_deleted=True)
        if not customer:
            raise CustomerNotFoundError(customer_id)
        return self.db.query(Payment).options(
            selectinload(Payment.allocations)
        ).filter(
            Payment.customer_id == customer_id,
            Payment.user_id == user_id
        ).order_by(Payment.payment_date.desc(), Payment.id.desc()).all()
