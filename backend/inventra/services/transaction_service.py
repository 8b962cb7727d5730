"""
Transaction Service - Sales, their stock effect and the customer balance
"""
import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Optional, List, Dict, Tuple
from sqlalchemy import desc
from sqlalchemy.orm import Session, selectinload, joinedload

from inventra.core.exceptions import (
    CustomerNotFoundError, InsufficientStockError, InvalidInputError,
    InvalidPaymentError, ItemNotFoundError, TransactionNotFoundError
)
from inventra.core.money import ZERO, to_decimal, quantize
from inventra.models import (
    AdditionalCharge, Customer, Item, StockTransactionType, Transaction, TransactionItem, utcnow
)
from inventra.schemas import TransactionCreate, TransactionUpdate
from inventra.services.stock_service import StockLedgerService

logger = logging.getLogger(__name__)


def calculate_totals(lines: List[dict], charges: List[Decimal]) -> dict:
    """Totals for a sale.

    `lines` carry quantity, price_per_unit and buy_price. Additional charges
    count towards the grand total but never towards profit.
    """
    total_amount = ZERO
    total_profit = ZERO
    for line in lines:
        quantity = to_decimal(line["quantity"])
        price = to_decimal(line["price_per_unit"])
        total_amount += quantity * price
        total_profit += (price - to_decimal(line["buy_price"])) * quantity

    total_additional_charges = sum((to_decimal(c) for c in charges), ZERO)
    total_amount = quantize(total_amount)
    total_additional_charges = quantize(total_additional_charges)
    return {
        "total_amount": total_amount,
        "total_additional_charges": total_additional_charges,
        "grand_total": total_amount + total_additional_charges,
        "total_profit": quantize(total_profit),
    }


class TransactionService:
    def __init__(self, db: Session):
        self.db = db
        self.stock = StockLedgerService(db)

    # ==================== QUERIES ====================

    def get_by_id(self, transaction_id: int, user_id: int) -> Optional[Transaction]:
        return self.db.query(Transaction).options(
            selectinload(Transaction.items),
            selectinload(Transaction.additional_charges),
            joinedload(Transaction.customer)
        ).filter(
            Transaction.id == transaction_id,
            Transaction.user_id == user_id,
            Transaction.is_deleted == False
        ).first()

    def get_or_raise(self, transaction_id: int, user_id: int) -> Transaction:
        transaction = self.get_by_id(transaction_id, user_id)
        if not transaction:
            raise TransactionNotFoundError(transaction_id)
        return transaction

    def get_by_idempotency_key(self, idempotency_key: str, user_id: int) -> Optional[Transaction]:
        return self.db.query(Transaction).filter(
            Transaction.idempotency_key == idempotency_key,
            Transaction.user_id == user_id
        ).first()

    def get_list(
        self,
        user_id: int,
        customer_id: int = None,
        start_date: datetime = None,
        end_date: datetime = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[Transaction], int]:
        query = self.db.query(Transaction).filter(
            Transaction.user_id == user_id,
            Transaction.is_deleted == False
        )
        if customer_id:
            query = query.filter(Transaction.customer_id == customer_id)
        if start_date:
            query = query.filter(Transaction.transaction_date >= start_date)
        if end_date:
            query = query.filter(Transaction.transaction_date <= end_date)

        total = query.count()
        transactions = query.options(
            selectinload(Transaction.items),
            selectinload(Transaction.additional_charges),
            joinedload(Transaction.customer)
        ).order_by(desc(Transaction.transaction_date), desc(Transaction.id))\
            .offset(skip).limit(limit).all()
        return transactions, total

    # ==================== VALIDATION ====================

    def _validate(self, transaction_data: TransactionCreate, user_id: int) -> Tuple[Optional[Customer], Dict[int, Item]]:
        """Check payment, customer and items; nothing is mutated here"""
        payment = transaction_data.payment_received
        if payment is None or payment < 0:
            raise InvalidPaymentError("Payment received must be provided and cannot be negative")
        if not transaction_data.items:
            raise InvalidInputError("A transaction needs at least one item")

        customer = None
        if transaction_data.customer_id is not None:
            customer = self.db.query(Customer).filter(
                Customer.id == transaction_data.customer_id,
                Customer.user_id == user_id,
                Customer.is_deleted == False
            ).first()
            if not customer:
                raise CustomerNotFoundError(transaction_data.customer_id)

        items = {}
        for line in transaction_data.items:
            if line.item_id in items:
                continue
            item = self.db.query(Item).filter(
                Item.id == line.item_id,
                Item.user_id == user_id,
                Item.is_active == True
            ).first()
            if not item:
                raise ItemNotFoundError(line.item_id)
            items[line.item_id] = item
        return customer, items

    def _check_stock(self, transaction_data: TransactionCreate, items: Dict[int, Item], credited: Dict[int, Decimal] = None):
        """Aggregate quantities per item and compare with what would be on hand.

        `credited` holds quantities an edit is about to put back, so the check
        runs against the reverted state without touching the items.
        """
        credited = credited or {}
        requested = defaultdict(Decimal)
        for line in transaction_data.items:
            requested[line.item_id] += to_decimal(line.quantity)

        for item_id, quantity in requested.items():
            item = items[item_id]
            available = to_decimal(item.quantity) + credited.get(item_id, ZERO)
            if available < quantity:
                logger.warning(
                    "Rejected sale: item %s has %s on hand, %s requested", item_id, available, quantity
                )
                raise InsufficientStockError(item.name, available, quantity)

    def _build_lines(
        self,
        transaction_data: TransactionCreate,
        items: Dict[int, Item],
        snapshots: Dict[int, TransactionItem] = None
    ) -> Tuple[List[TransactionItem], List[AdditionalCharge], dict]:
        snapshots = snapshots or {}
        rows = []
        for line in transaction_data.items:
            item = items[line.item_id]
            previous = snapshots.get(line.item_id)
            if line.buy_price is not None:
                buy_price = line.buy_price
            elif previous is not None:
                buy_price = previous.buy_price
            else:
                buy_price = item.buy_price
            rows.append({
                "item_id": line.item_id,
                "name": line.name or (previous.name if previous is not None else item.name),
                "quantity": to_decimal(line.quantity),
                "price_per_unit": quantize(line.price_per_unit),
                "buy_price": quantize(buy_price),
            })

        charges = [quantize(c.amount) for c in transaction_data.additional_charges]
        totals = calculate_totals(rows, charges)

        lines = [
            TransactionItem(
                item_id=row["item_id"],
                name=row["name"],
                quantity=row["quantity"],
                price_per_unit=row["price_per_unit"],
                buy_price=row["buy_price"],
                profit=quantize((row["price_per_unit"] - row["buy_price"]) * row["quantity"])
            )
            for row in rows
        ]
        charge_rows = [
            AdditionalCharge(amount=quantize(c.amount), reason=c.reason)
            for c in transaction_data.additional_charges
        ]
        return lines, charge_rows, totals

    # ==================== EFFECTS ====================

    def apply_transaction_effect(self, transaction: Transaction, user_id: int, stock_notes: str, credit_offset: bool = False):
        """Take each line out of stock, then book the balance on the customer"""
        for line in transaction.items:
            item = self.db.get(Item, line.item_id)
            self.stock.record(item, -to_decimal(line.quantity), StockTransactionType.SALE, stock_notes, user_id)

        customer = transaction.customer
        if customer is None:
            return
        if credit_offset:
            self._apply_customer_balance(transaction, customer)
        else:
            customer.outstanding_balance = to_decimal(customer.outstanding_balance) + to_decimal(transaction.balance_amount)
        self.db.flush()

    def revert_transaction_effect(self, transaction: Transaction, user_id: int, stock_notes: str):
        """Put each line back into stock and take the balance off the customer"""
        for line in transaction.items:
            item = self.db.get(Item, line.item_id)
            self.stock.record(item, to_decimal(line.quantity), StockTransactionType.ADJUSTMENT, stock_notes, user_id)

        customer = transaction.customer
        if customer is not None:
            customer.outstanding_balance = to_decimal(customer.outstanding_balance) - to_decimal(transaction.balance_amount)
        self.db.flush()

    def _apply_customer_balance(self, transaction: Transaction, customer: Customer):
        """Settle a new sale from the customer's advance credit, if any"""
        outstanding = to_decimal(customer.outstanding_balance)
        balance = to_decimal(transaction.balance_amount)

        if outstanding >= 0:
            customer.outstanding_balance = outstanding + balance
            return

        credit_available = -outstanding
        if credit_available >= balance:
            transaction.balance_amount = ZERO
            transaction.payment_received = transaction.grand_total
            transaction.notes = self._annotate(transaction.notes, "(Paid from customer credit)")
            customer.outstanding_balance = outstanding + balance
        else:
            remaining = balance - credit_available
            transaction.payment_received = to_decimal(transaction.payment_received) + credit_available
            transaction.balance_amount = remaining
            transaction.notes = self._annotate(transaction.notes, f"({credit_available} paid from customer credit)")
            customer.outstanding_balance = remaining

        logger.info(
            "Applied %s customer credit to transaction %s",
            min(credit_available, balance), transaction.id
        )

    @staticmethod
    def _annotate(notes: Optional[str], suffix: str) -> str:
        return f"{notes} {suffix}" if notes else suffix

    # ==================== COMMANDS ====================

    def create(self, transaction_data: TransactionCreate, user_id: int, idempotency_key: str = None) -> Transaction:
        if idempotency_key:
            existing = self.get_by_idempotency_key(idempotency_key, user_id)
            if existing:
                logger.info("Idempotent replay of transaction %s", existing.id)
                return existing

        customer, items = self._validate(transaction_data, user_id)
        self._check_stock(transaction_data, items)
        lines, charges, totals = self._build_lines(transaction_data, items)

        payment_received = quantize(transaction_data.payment_received)
        transaction = Transaction(
            customer=customer,
            items=lines,
            additional_charges=charges,
            total_amount=totals["total_amount"],
            total_additional_charges=totals["total_additional_charges"],
            grand_total=totals["grand_total"],
            payment_received=payment_received,
            balance_amount=totals["grand_total"] - payment_received,
            total_profit=totals["total_profit"],
            payment_method=transaction_data.payment_method,
            notes=transaction_data.notes,
            transaction_date=transaction_data.transaction_date or utcnow(),
            idempotency_key=idempotency_key,
            user_id=user_id
        )
        self.db.add(transaction)
        self.db.flush()

        buyer = customer.name if customer else "Walk-in Customer"
        self.apply_transaction_effect(transaction, user_id, f"Sold to: {buyer}", credit_offset=True)

        logger.info(
            "Created transaction %s for user %s: grand total %s, balance %s",
            transaction.id, user_id, transaction.grand_total, transaction.balance_amount
        )
        return transaction

    def update(self, transaction_id: int, user_id: int, transaction_data: TransactionUpdate) -> Transaction:
        transaction = self.get_or_raise(transaction_id, user_id)
        customer, items = self._validate(transaction_data, user_id)

        credited = defaultdict(Decimal)
        for line in transaction.items:
            credited[line.item_id] += to_decimal(line.quantity)
        self._check_stock(transaction_data, items, credited)

        snapshots = {line.item_id: line for line in transaction.items}
        lines, charges, totals = self._build_lines(transaction_data, items, snapshots)

        self.revert_transaction_effect(transaction, user_id, f"Reverted for edit of transaction #{transaction.id}")

        payment_received = quantize(transaction_data.payment_received)
        transaction.customer = customer
        transaction.items = lines
        transaction.additional_charges = charges
        transaction.total_amount = totals["total_amount"]
        transaction.total_additional_charges = totals["total_additional_charges"]
        transaction.grand_total = totals["grand_total"]
        transaction.payment_received = payment_received
        transaction.balance_amount = totals["grand_total"] - payment_received
        transaction.total_profit = totals["total_profit"]
        transaction.payment_method = transaction_data.payment_method
        transaction.notes = transaction_data.notes
        if transaction_data.transaction_date:
            transaction.transaction_date = transaction_data.transaction_date
        self.db.flush()

        self.apply_transaction_effect(transaction, user_id, f"Sale updated - Transaction #{transaction.id}")

        logger.info(
            "Updated transaction %s for user %s: grand total %s, balance %s",
            transaction.id, user_id, transaction.grand_total, transaction.balance_amount
        )
        return transaction

    def delete(self, transaction_id: int, user_id: int) -> Transaction:
        transaction = self.get_or_raise(transaction_id, user_id)
        self.revert_transaction_effect(transaction, user_id, "Reversal of deleted sale transaction")
        transaction.is_deleted = True
        self.db.flush()
        logger.info("Deleted transaction %s for user %s", transaction_id, user_id)
        return transaction
