from datetime import datetime
from decimal import Decimal

import pytest

from inventra.core.exceptions import (
    CustomerNotFoundError, InvalidAmountError, InvalidModeError, MissingTransactionIdsError
)
from inventra.models import Payment
from inventra.schemas import BulkPaymentRequest
from inventra.services.crm_service import CustomerService
from inventra.services.payment_service import PaymentService, allocate_payment
from inventra.services.transaction_service import TransactionService


def pay(db, user, customer, amount, mode="fifo", transaction_ids=None, key=None):
    result = PaymentService(db).bulk_payment(
        BulkPaymentRequest(
            customer_id=customer.id,
            payment_amount=None if amount is None else Decimal(amount),
            mode=mode,
            transaction_ids=transaction_ids,
        ),
        user.id,
        idempotency_key=key,
    )
    db.commit()
    return result


@pytest.fixture
def two_open_sales(make_item, make_customer, make_sale):
    """Alice owes 100 from day 1 and 50 from day 2"""
    item = make_item(quantity="100")
    customer = make_customer()
    older = make_sale([(item, 1, 100)], customer=customer, date=datetime(2024, 1, 1))
    newer = make_sale([(item, 1, 50)], customer=customer, date=datetime(2024, 1, 2))
    return customer, older, newer


class TestAllocatePayment:
    def test_allocates_in_order_until_exhausted(self):
        allocations, remaining = allocate_payment(
            [(1, Decimal("100")), (2, Decimal("50")), (3, Decimal("10"))], Decimal("120")
        )
        assert [(a["transaction_id"], a["payment_applied"], a["new_balance"]) for a in allocations] == [
            (1, Decimal("100"), Decimal("0")),
            (2, Decimal("20"), Decimal("30")),
        ]
        assert remaining == Decimal("0")

    def test_leftover_is_returned(self):
        allocations, remaining = allocate_payment([(1, Decimal("40"))], Decimal("100"))
        assert allocations[0]["payment_applied"] == Decimal("40")
        assert remaining == Decimal("60")

    def test_nothing_to_allocate(self):
        allocations, remaining = allocate_payment([], Decimal("25"))
        assert allocations == []
        assert remaining == Decimal("25")


class TestBulkPayment:
    def test_fifo_pays_oldest_first(self, db, user, two_open_sales):
        customer, older, newer = two_open_sales
        assert customer.outstanding_balance == Decimal("150")

        result = pay(db, user, customer, "120")

        assert older.balance_amount == Decimal("0")
        assert older.payment_received == Decimal("100")
        assert newer.balance_amount == Decimal("30")
        assert newer.payment_received == Decimal("20")
        assert result["amount_applied"] == Decimal("120")
        assert result["remaining_amount"] == Decimal("0")
        assert result["transactions_updated"] == 2
        assert [u["transaction_id"] for u in result["updated_transactions"]] == [older.id, newer.id]
        assert result["new_customer_outstanding"] == Decimal("30")
        assert customer.outstanding_balance == Decimal("30")
        assert result["has_advance_credit"] is False
        assert result["message"] == "Bulk payment applied successfully"

    def test_overpayment_becomes_advance_credit(self, db, user, two_open_sales):
        customer, older, newer = two_open_sales

        result = pay(db, user, customer, "200")

        assert result["amount_applied"] + result["remaining_amount"] == result["payment_amount"]
        assert result["remaining_amount"] == Decimal("50")
        assert result["new_customer_outstanding"] == Decimal("-50")
        assert result["customer_credit"] == Decimal("50")
        assert result["has_advance_credit"] is True
        assert "advance credit" in result["note"]
        assert customer.outstanding_balance == Decimal("-50")

    def test_exact_payment_clears_everything(self, db, user, two_open_sales):
        customer, _, _ = two_open_sales

        result = pay(db, user, customer, "150")

        assert result["new_customer_outstanding"] == Decimal("0")
        assert result["note"] == "All outstanding cleared"

    def test_advance_payment_with_nothing_owed(self, db, user, make_customer):
        customer = make_customer()

        result = pay(db, user, customer, "100")

        assert result["message"] == "Advance payment accepted successfully"
        assert result["transactions_updated"] == 0
        assert result["remaining_amount"] == Decimal("100")
        assert customer.outstanding_balance == Decimal("-100")
        assert db.query(Payment).count() == 1

    def test_manual_mode_only_touches_selected(self, db, user, two_open_sales):
        customer, older, newer = two_open_sales

        result = pay(db, user, customer, "60", mode="manual", transaction_ids=[newer.id])

        assert older.balance_amount == Decimal("100")
        assert newer.balance_amount == Decimal("0")
        assert result["remaining_amount"] == Decimal("10")
        assert customer.outstanding_balance == Decimal("90")

    def test_deleted_sales_are_skipped(self, db, user, two_open_sales):
        customer, older, newer = two_open_sales
        TransactionService(db).delete(older.id, user.id)
        db.commit()

        result = pay(db, user, customer, "50")

        assert [u["transaction_id"] for u in result["updated_transactions"]] == [newer.id]
        assert older.balance_amount == Decimal("100")
        assert customer.outstanding_balance == Decimal("0")

    def test_idempotency_key_replays_result(self, db, user, two_open_sales):
        customer, older, newer = two_open_sales

        first = pay(db, user, customer, "120", key="pay-1")
        second = pay(db, user, customer, "120", key="pay-1")

        assert second["payment_id"] == first["payment_id"]
        assert second["amount_applied"] == first["amount_applied"]
        assert newer.balance_amount == Decimal("30")
        assert customer.outstanding_balance == Decimal("30")
        assert db.query(Payment).count() == 1

    def test_payment_history_newest_first(self, db, user, two_open_sales):
        customer, older, newer = two_open_sales
        first = pay(db, user, customer, "10")
        second = pay(db, user, customer, "20")

        payments = CustomerService(db).get_payments(customer.id, user.id)

        assert [p.id for p in payments] == [second["payment_id"], first["payment_id"]]
        assert payments[0].transactions_affected == [older.id]


class TestBulkPaymentValidation:
    @pytest.mark.parametrize("amount", [None, "0", "-5"])
    def test_amount_must_be_positive(self, db, user, make_customer, amount):
        customer = make_customer()
        with pytest.raises(InvalidAmountError):
            pay(db, user, customer, amount)

    def test_unknown_mode(self, db, user, make_customer):
        customer = make_customer()
        with pytest.raises(InvalidModeError):
            pay(db, user, customer, "10", mode="lifo")

    def test_amount_checked_before_mode(self, db, user, make_customer):
        customer = make_customer()
        with pytest.raises(InvalidAmountError):
            pay(db, user, customer, "0", mode="lifo")

    @pytest.mark.parametrize("transaction_ids", [None, []])
    def test_manual_needs_transaction_ids(self, db, user, make_customer, transaction_ids):
        customer = make_customer()
        with pytest.raises(MissingTransactionIdsError):
            pay(db, user, customer, "10", mode="manual", transaction_ids=transaction_ids)

    def test_unknown_customer(self, db, user):
        with pytest.raises(CustomerNotFoundError):
            PaymentService(db).bulk_payment(
                BulkPaymentRequest(customer_id=999, payment_amount=Decimal("10"), mode="fifo"), user.id
            )
