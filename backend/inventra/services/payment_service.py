"""
Payment Service - Bulk customer payments allocated across open sales
"""
import logging
from decimal import Decimal
from typing import List, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session

from inventra.core.exceptions import (
    CustomerNotFoundError, InvalidAmountError, InvalidModeError, MissingTransactionIdsError
)
from inventra.core.money import ZERO, to_decimal, quantize
from inventra.models import Customer, Payment, PaymentAllocation, PaymentMode, Transaction
from inventra.schemas import BulkPaymentRequest

logger = logging.getLogger(__name__)


def allocate_payment(balances: List[Tuple[int, Decimal]], amount: Decimal) -> Tuple[List[dict], Decimal]:
    """Spread `amount` over (transaction_id, balance) pairs in the given order.

    Returns the allocations made and whatever is left over.
    """
    remaining = to_decimal(amount)
    allocations = []
    for transaction_id, balance in balances:
        if remaining <= 0:
            break
        balance = to_decimal(balance)
        applied = min(remaining, balance)
        allocations.append({
            "transaction_id": transaction_id,
            "previous_balance": balance,
            "payment_applied": applied,
            "new_balance": max(ZERO, balance - applied),
        })
        remaining -= applied
    return allocations, remaining


class PaymentService:
    def __init__(self, db: Session):
        self.db = db

    def _open_transactions(self, customer_id: int, user_id: int, transaction_ids: List[int] = None) -> List[Transaction]:
        query = self.db.query(Transaction).filter(
            Transaction.customer_id == customer_id,
            Transaction.user_id == user_id,
            Transaction.is_deleted == False,
            Transaction.balance_amount > 0
        )
        if transaction_ids is not None:
            query = query.filter(Transaction.id.in_(transaction_ids))
        return query.order_by(Transaction.transaction_date, Transaction.id).all()

    def outstanding_total(self, customer_id: int, user_id: int) -> Decimal:
        total = self.db.query(func.sum(Transaction.balance_amount)).filter(
            Transaction.customer_id == customer_id,
            Transaction.user_id == user_id,
            Transaction.is_deleted == False
        ).scalar()
        return to_decimal(total)

    def bulk_payment(self, payment_data: BulkPaymentRequest, user_id: int, idempotency_key: str = None) -> dict:
        if idempotency_key:
            existing = self.db.query(Payment).filter(
                Payment.idempotency_key == idempotency_key,
                Payment.user_id == user_id
            ).first()
            if existing:
                logger.info("Idempotent replay of payment %s", existing.id)
                return self._build_result(existing)

        amount = payment_data.payment_amount
        if amount is None or amount <= 0:
            raise InvalidAmountError("Payment amount must be greater than zero")

        try:
            mode = PaymentMode((payment_data.mode or "").lower())
        except ValueError:
            raise InvalidModeError(payment_data.mode)

        if mode == PaymentMode.MANUAL and not payment_data.transaction_ids:
            raise MissingTransactionIdsError()

        customer = self.db.query(Customer).filter(
            Customer.id == payment_data.customer_id,
            Customer.user_id == user_id,
            Customer.is_deleted == False
        ).first()
        if not customer:
            raise CustomerNotFoundError(payment_data.customer_id)

        amount = quantize(amount)
        transaction_ids = payment_data.transaction_ids if mode == PaymentMode.MANUAL else None
        transactions = self._open_transactions(customer.id, user_id, transaction_ids)
        by_id = {t.id: t for t in transactions}

        allocations, remaining = allocate_payment(
            [(t.id, t.balance_amount) for t in transactions], amount
        )

        payment = Payment(
            customer_id=customer.id,
            user_id=user_id,
            payment_amount=amount,
            amount_applied=amount - remaining,
            remaining_amount=remaining,
            mode=mode.value,
            idempotency_key=idempotency_key
        )
        for allocation in allocations:
            transaction = by_id[allocation["transaction_id"]]
            transaction.payment_received = to_decimal(transaction.payment_received) + allocation["payment_applied"]
            transaction.balance_amount = allocation["new_balance"]
            payment.allocations.append(PaymentAllocation(
                transaction_id=transaction.id,
                previous_balance=allocation["previous_balance"],
                amount_applied=allocation["payment_applied"],
                new_balance=allocation["new_balance"]
            ))
        self.db.flush()

        # Whatever could not be applied is held as advance credit
        customer.outstanding_balance = self.outstanding_total(customer.id, user_id) - remaining
        payment.outstanding_after = customer.outstanding_balance
        self.db.add(payment)
        self.db.flush()

        logger.info(
            "Payment %s from customer %s: %s applied to %s transactions, %s remaining",
            payment.id, customer.id, payment.amount_applied, len(allocations), remaining
        )
        return self._build_result(payment)

    def _build_result(self, payment: Payment) -> dict:
        outstanding = to_decimal(payment.outstanding_after)
        remaining = to_decimal(payment.remaining_amount)
        credit = -outstanding if outstanding < 0 else ZERO

        if not payment.allocations:
            message = "Advance payment accepted successfully"
        else:
            message = "Bulk payment applied successfully"

        if credit > 0:
            note = f"Customer has {credit} advance credit"
        elif remaining > 0:
            note = f"{remaining} excess payment stored as advance"
        elif outstanding == 0:
            note = "All outstanding cleared"
        else:
            note = f"{outstanding} still outstanding"

        return {
            "message": message,
            "payment_id": payment.id,
            "payment_amount": payment.payment_amount,
            "amount_applied": payment.amount_applied,
            "remaining_amount": remaining,
            "transactions_updated": len(payment.allocations),
            "updated_transactions": [
                {
                    "transaction_id": a.transaction_id,
                    "previous_balance": a.previous_balance,
                    "payment_applied": a.amount_applied,
                    "new_balance": a.new_balance,
                }
                for a in payment.allocations
            ],
            "new_customer_outstanding": outstanding,
            "customer_credit": credit,
            "has_advance_credit": credit > 0,
            "note": note,
        }
