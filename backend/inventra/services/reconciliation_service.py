"""
Reconciliation Service - Recompute derived balances from the sales themselves
"""
import logging
from decimal import Decimal
from typing import Optional
from sqlalchemy.orm import Session

from inventra.core.config import settings
from inventra.core.exceptions import CustomerNotFoundError
from inventra.core.money import ZERO, to_decimal
from inventra.models import Customer, Transaction

logger = logging.getLogger(__name__)


def correct_balance(transaction: Transaction) -> Decimal:
    total = transaction.grand_total or transaction.total_amount or ZERO
    return to_decimal(total) - to_decimal(transaction.payment_received)


class ReconciliationService:
    def __init__(self, db: Session):
        self.db = db

    def _transactions(self, customer_id: int, user_id: int):
        return self.db.query(Transaction).filter(
            Transaction.customer_id == customer_id,
            Transaction.user_id == user_id,
            Transaction.is_deleted == False
        ).order_by(Transaction.transaction_date, Transaction.id).all()

    def _fix_customer(self, customer: Customer, user_id: int, tolerance: Optional[Decimal]) -> dict:
        """Rewrite drifted transaction balances and reset the customer's outstanding.

        With `tolerance=None` any difference at all counts as drift.
        """
        transactions = self._transactions(customer.id, user_id)
        old_outstanding = to_decimal(customer.outstanding_balance)
        new_outstanding = ZERO
        fixed = 0
        details = []

        for transaction in transactions:
            correct = correct_balance(transaction)
            current = transaction.balance_amount
            if current is None:
                drifted = True
            else:
                difference = abs(to_decimal(current) - correct)
                drifted = difference > tolerance if tolerance is not None else difference != 0

            if drifted:
                transaction.balance_amount = correct
                fixed += 1
            new_outstanding += correct

            details.append({
                "id": transaction.id,
                "date": transaction.transaction_date,
                "grand_total": to_decimal(transaction.grand_total),
                "total_amount": to_decimal(transaction.total_amount),
                "payment_received": to_decimal(transaction.payment_received),
                "calculated_balance": correct,
                "old_balance": to_decimal(current) if current is not None else None,
            })

        customer.outstanding_balance = new_outstanding
        self.db.flush()
        return {
            "transactions_fixed": fixed,
            "total_transactions": len(transactions),
            "old_outstanding_balance": old_outstanding,
            "new_outstanding_balance": new_outstanding,
            "transaction_details": details,
        }

    def fix_balances(self, customer_id: int, user_id: int) -> dict:
        customer = self.db.query(Customer).filter(
            Customer.id == customer_id,
            Customer.user_id == user_id
        ).first()
        if not customer:
            raise CustomerNotFoundError(customer_id)

        result = self._fix_customer(customer, user_id, settings.BALANCE_TOLERANCE)
        logger.info(
            "Reconciled customer %s: %s of %s transactions fixed, outstanding %s -> %s",
            customer_id, result["transactions_fixed"], result["total_transactions"],
            result["old_outstanding_balance"], result["new_outstanding_balance"]
        )
        result["message"] = f"Fixed {result['transactions_fixed']} transactions"
        return result

    def fix_all_balances(self, user_id: int) -> dict:
        customers = self.db.query(Customer).filter(
            Customer.user_id == user_id,
            Customer.is_deleted == False
        ).order_by(Customer.id).all()

        summary = []
        transactions_fixed = 0
        for customer in customers:
            result = self._fix_customer(customer, user_id, None)
            transactions_fixed += result["transactions_fixed"]
            if result["transactions_fixed"] or result["old_outstanding_balance"] != result["new_outstanding_balance"]:
                summary.append({
                    "customer_id": customer.id,
                    "name": customer.name,
                    "transactions_fixed": result["transactions_fixed"],
                    "old_balance": result["old_outstanding_balance"],
                    "new_balance": result["new_outstanding_balance"],
                })

        logger.info(
            "Reconciled %s customers for user %s: %s customers and %s transactions fixed",
            len(customers), user_id, len(summary), transactions_fixed
        )
        return {
            "success": True,
            "total_customers": len(customers),
            "customers_fixed": len(summary),
            "transactions_fixed": transactions_fixed,
            "summary": summary,
        }
