from decimal import Decimal

import pytest

from inventra.core.exceptions import CustomerNotFoundError
from inventra.models import Transaction
from inventra.schemas import BulkPaymentRequest
from inventra.services.payment_service import PaymentService
from inventra.services.reconciliation_service import ReconciliationService, correct_balance
from inventra.services.transaction_service import TransactionService


def test_correct_balance_falls_back_to_total_amount():
    transaction = Transaction(grand_total=None, total_amount=Decimal("80"), payment_received=Decimal("30"))
    assert correct_balance(transaction) == Decimal("50")


class TestFixBalances:
    def test_rewrites_drifted_balances(self, db, user, make_item, make_customer, make_sale):
        item = make_item(quantity="50")
        customer = make_customer()
        first = make_sale([(item, 1, 100)], payment="40", customer=customer)
        second = make_sale([(item, 1, 70)], payment="0", customer=customer)
        first.balance_amount = Decimal("5")
        customer.outstanding_balance = Decimal("999")
        db.commit()

        result = ReconciliationService(db).fix_balances(customer.id, user.id)
        db.commit()

        assert result["transactions_fixed"] == 1
        assert result["total_transactions"] == 2
        assert result["old_outstanding_balance"] == Decimal("999")
        assert result["new_outstanding_balance"] == Decimal("130")
        assert first.balance_amount == Decimal("60")
        assert second.balance_amount == Decimal("70")
        assert customer.outstanding_balance == Decimal("130")
        details = {d["id"]: d for d in result["transaction_details"]}
        assert details[first.id]["old_balance"] == Decimal("5")
        assert details[first.id]["calculated_balance"] == Decimal("60")

    def test_second_run_fixes_nothing(self, db, user, make_item, make_customer, make_sale):
        item = make_item()
        customer = make_customer()
        sale = make_sale([(item, 1, 100)], payment="0", customer=customer)
        sale.balance_amount = Decimal("1")
        db.commit()
        service = ReconciliationService(db)

        service.fix_balances(customer.id, user.id)
        db.commit()
        result = service.fix_balances(customer.id, user.id)

        assert result["transactions_fixed"] == 0
        assert result["new_outstanding_balance"] == result["old_outstanding_balance"] == Decimal("100")

    def test_drift_within_tolerance_is_kept(self, db, user, make_item, make_customer, make_sale):
        item = make_item()
        customer = make_customer()
        sale = make_sale([(item, 1, 100)], payment="0", customer=customer)
        sale.balance_amount = Decimal("100.01")
        db.commit()

        result = ReconciliationService(db).fix_balances(customer.id, user.id)
        db.commit()

        assert result["transactions_fixed"] == 0
        assert sale.balance_amount == Decimal("100.01")
        assert customer.outstanding_balance == Decimal("100")

    def test_deleted_sales_do_not_count(self, db, user, make_item, make_customer, make_sale):
        item = make_item()
        customer = make_customer()
        kept = make_sale([(item, 1, 100)], payment="0", customer=customer)
        dropped = make_sale([(item, 1, 40)], payment="0", customer=customer)
        TransactionService(db).delete(dropped.id, user.id)
        db.commit()

        result = ReconciliationService(db).fix_balances(customer.id, user.id)

        assert result["total_transactions"] == 1
        assert result["new_outstanding_balance"] == Decimal("100")

    def test_unknown_customer(self, db, user):
        with pytest.raises(CustomerNotFoundError):
            ReconciliationService(db).fix_balances(999, user.id)

    def test_balance_identity_after_mixed_activity(self, db, user, make_item, make_customer, make_sale):
        item = make_item(quantity="100")
        customer = make_customer()
        make_sale([(item, 2, 100)], payment="50", customer=customer)
        make_sale([(item, 1, 80)], payment="100", customer=customer)
        PaymentService(db).bulk_payment(
            BulkPaymentRequest(customer_id=customer.id, payment_amount=Decimal("60"), mode="fifo"), user.id
        )
        db.commit()

        ReconciliationService(db).fix_balances(customer.id, user.id)
        db.commit()

        balances = [
            t.balance_amount for t in db.query(Transaction).filter(
                Transaction.customer_id == customer.id, Transaction.is_deleted == False
            )
        ]
        assert customer.outstanding_balance == sum(balances, Decimal("0"))


class TestFixAllBalances:
    def test_reports_only_customers_that_changed(self, db, user, make_item, make_customer, make_sale):
        item = make_item(quantity="50")
        alice = make_customer("Alice")
        bob = make_customer("Bob")
        make_customer("Carol")
        sale = make_sale([(item, 1, 100)], payment="0", customer=alice)
        make_sale([(item, 1, 30)], payment="0", customer=bob)
        sale.balance_amount = Decimal("100.01")
        db.commit()

        result = ReconciliationService(db).fix_all_balances(user.id)
        db.commit()

        assert result["total_customers"] == 3
        assert result["customers_fixed"] == 1
        assert result["transactions_fixed"] == 1
        assert result["summary"][0]["customer_id"] == alice.id
        assert sale.balance_amount == Decimal("100")

    def test_is_idempotent(self, db, user, make_item, make_customer, make_sale):
        item = make_item()
        customer = make_customer()
        make_sale([(item, 1, 100)], payment="0", customer=customer)
        customer.outstanding_balance = Decimal("12")
        db.commit()
        service = ReconciliationService(db)

        first = service.fix_all_balances(user.id)
        db.commit()
        second = service.fix_all_balances(user.id)

        assert first["customers_fixed"] == 1
        assert first["transactions_fixed"] == 0
        assert second["customers_fixed"] == 0
        assert second["transactions_fixed"] == 0
        assert second["summary"] == []
