"""
Stock Ledger Service - Item quantities and the stock journal
"""
import logging
from datetime import datetime
from typing import Optional, List, Tuple
from sqlalchemy import desc
from sqlalchemy.orm import Session, joinedload

from inventra.core.exceptions import InsufficientStockError, ItemNotFoundError, InvalidInputError
from inventra.core.money import to_decimal
from inventra.models import Item, StockTransaction, StockTransactionType, utcnow
from inventra.schemas import StockTransactionCreate

logger = logging.getLogger(__name__)


class StockLedgerService:
    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        item: Item,
        quantity_change,
        transaction_type: StockTransactionType,
        notes: str,
        user_id: int,
        transaction_date: Optional[datetime] = None
    ) -> StockTransaction:
        """Move an item's stock by a signed delta and journal the movement"""
        quantity_change = to_decimal(quantity_change)
        current = to_decimal(item.quantity)
        new_quantity = current + quantity_change
        if new_quantity < 0:
            raise InsufficientStockError(item.name, current, -quantity_change)

        item.quantity = new_quantity

        entry = StockTransaction(
            item_id=item.id,
            user_id=user_id,
            quantity=quantity_change,
            transaction_type=transaction_type.value,
            notes=notes,
            transaction_date=transaction_date or utcnow()
        )
        self.db.add(entry)
        self.db.flush()

        logger.info(
            "Stock %s for item %s: %s (now %s)",
            transaction_type.value, item.id, quantity_change, new_quantity
        )
        return entry

    def add_stock(self, stock_data: StockTransactionCreate, user_id: int) -> StockTransaction:
        """Manual stock entry (purchase received, count correction)"""
        if stock_data.quantity == 0:
            raise InvalidInputError("Quantity change cannot be zero")

        item = self.db.query(Item).filter(
            Item.id == stock_data.item_id,
            Item.user_id == user_id,
            Item.is_active == True
        ).first()
        if not item:
            raise ItemNotFoundError(stock_data.item_id)

        return self.record(
            item,
            stock_data.quantity,
            StockTransactionType(stock_data.transaction_type.value),
            stock_data.notes or "",
            user_id,
            stock_data.transaction_date
        )

    def get_history(
        self,
        user_id: int,
        item_id: int = None,
        skip: int = 0,
        limit: int = 50
    ) -> Tuple[List[StockTransaction], int]:
        query = self.db.query(StockTransaction).filter(StockTransaction.user_id == user_id)
        if item_id:
            query = query.filter(StockTransaction.item_id == item_id)

        total = query.count()
        entries = query.options(joinedload(StockTransaction.item))\
            .order_by(desc(StockTransaction.transaction_date), desc(StockTransaction.id))\
            .offset(skip).limit(limit).all()
        return entries, total

