"""
Return Service - Sales returns
"""
import logging
from typing import Optional, List
from sqlalchemy import desc
from sqlalchemy.orm import Session, selectinload, joinedload

from inventra.core.exceptions import (
    CustomerNotFoundError, InvalidAmountError, InvalidInputError,
    ItemNotFoundError, TransactionNotFoundError
)
from inventra.core.money import ZERO, to_decimal, quantize
from inventra.models import Customer, Item, ReturnItem, ReturnTransaction, StockTransactionType, Transaction
from inventra.schemas import ReturnCreate
from inventra.services.stock_service import StockLedgerService

logger = logging.getLogger(__name__)


class ReturnService:
    def __init__(self, db: Session):
        self.db = db
        self.stock = StockLedgerService(db)

    def get_by_user(self, user_id: int) -> List[ReturnTransaction]:
        return self.db.query(ReturnTransaction).options(
            selectinload(ReturnTransaction.items),
            joinedload(ReturnTransaction.customer)
        ).filter(
            ReturnTransaction.user_id == user_id
        ).order_by(desc(ReturnTransaction.transaction_date), desc(ReturnTransaction.id)).all()

    def get_by_idempotency_key(self, idempotency_key: str, user_id: int) -> Optional[ReturnTransaction]:
        return self.db.query(ReturnTransaction).filter(
            ReturnTransaction.idempotency_key == idempotency_key,
            ReturnTransaction.user_id == user_id
        ).first()

    def create(self, return_data: ReturnCreate, user_id: int, idempotency_key: str = None) -> ReturnTransaction:
        """Book returned goods back into stock and refund the customer.

        The original sale is only read: its totals stay as they were and the
        refund lands on the customer's outstanding balance.
        """
        if idempotency_key:
            existing = self.get_by_idempotency_key(idempotency_key, user_id)
            if existing:
                logger.info("Idempotent replay of return %s", existing.id)
                return existing

        refund = return_data.refund_amount
        if refund is None or refund <= 0:
            raise InvalidAmountError("Refund amount must be greater than zero")
        if not return_data.items:
            raise InvalidInputError("A return needs at least one item")

        original = None
        if return_data.original_transaction_id is not None:
            original = self.db.query(Transaction).options(
                selectinload(Transaction.items)
            ).filter(
                Transaction.id == return_data.original_transaction_id,
                Transaction.user_id == user_id,
                Transaction.is_deleted == False
            ).first()
            if not original:
                raise TransactionNotFoundError(return_data.original_transaction_id)

        customer = None
        if original is not None and original.customer_id is not None:
            customer = original.customer
        elif return_data.customer_id is not None:
            customer = self.db.query(Customer).filter(
                Customer.id == return_data.customer_id,
                Customer.user_id == user_id,
                Customer.is_deleted == False
            ).first()
            if not customer:
                raise CustomerNotFoundError(return_data.customer_id)

        # Cost basis: what the goods cost when they were sold. An item sold on
        # several lines takes the cost of its first line.
        snapshots = {}
        if original is not None:
            for line in sorted(original.items, key=lambda l: l.id):
                snapshots.setdefault(line.item_id, line.buy_price)

        items = {}
        for line in return_data.items:
            item = self.db.query(Item).filter(
                Item.id == line.item_id,
                Item.user_id == user_id
            ).first()
            if not item:
                raise ItemNotFoundError(line.item_id)
            items[line.item_id] = item

        return_items = []
        total_value = ZERO
        total_profit_lost = ZERO
        for line in return_data.items:
            item = items[line.item_id]
            quantity = to_decimal(line.quantity)
            price = quantize(line.price_per_unit)
            cost_price = quantize(snapshots.get(line.item_id, item.buy_price))
            value = quantize(quantity * price)
            profit_lost = quantize(quantity * (price - cost_price))
            total_value += value
            total_profit_lost += profit_lost
            return_items.append(ReturnItem(
                item_id=item.id,
                item_name=item.name,
                quantity=quantity,
                price_per_unit=price,
                cost_price=cost_price,
                total=value,
                profit_lost=profit_lost
            ))

        return_transaction = ReturnTransaction(
            original_transaction_id=original.id if original is not None else None,
            customer=customer,
            items=return_items,
            total_return_value=total_value,
            total_profit_lost=total_profit_lost,
            refund_amount=quantize(refund),
            notes=return_data.notes,
            idempotency_key=idempotency_key,
            user_id=user_id
        )
        self.db.add(return_transaction)
        self.db.flush()

        stock_notes = f"Return: {return_data.notes or 'Item returned'}"
        for return_item in return_items:
            self.stock.record(
                items[return_item.item_id],
                return_item.quantity,
                StockTransactionType.RETURN,
                stock_notes,
                user_id
            )

        if customer is not None:
            customer.outstanding_balance = to_decimal(customer.outstanding_balance) - quantize(refund)

        self.db.flush()
        logger.info(
            "Created return %s for user %s: value %s, refund %s",
            return_transaction.id, user_id, total_value, refund
        )
        return return_transaction
