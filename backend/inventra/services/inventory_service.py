"""
Inventory Service - Items, Price History, Customer Prices
"""
import logging
from typing import Optional, List
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from inventra.core.exceptions import DuplicateItemError, ItemNotFoundError, CustomerNotFoundError
from inventra.core.money import to_decimal, quantize
from inventra.models import Item, ItemPriceHistory, CustomerPrice, Customer, StockTransactionType
from inventra.schemas import ItemCreate, ItemUpdate, CustomerPriceUpdate
from inventra.services.stock_service import StockLedgerService

logger = logging.getLogger(__name__)


class ItemService:
    def __init__(self, db: Session):
        self.db = db
        self.stock = StockLedgerService(db)

    def get_by_id(self, item_id: int, user_id: int) -> Optional[Item]:
        return self.db.query(Item).options(
            selectinload(Item.price_history),
            selectinload(Item.customer_prices)
        ).filter(
            Item.id == item_id,
            Item.user_id == user_id,
            Item.is_active == True
        ).first()

    def get_or_raise(self, item_id: int, user_id: int) -> Item:
        item = self.get_by_id(item_id, user_id)
        if not item:
            raise ItemNotFoundError(item_id)
        return item

    def get_by_user(self, user_id: int) -> List[Item]:
        return self.db.query(Item).options(
            selectinload(Item.price_history),
            selectinload(Item.customer_prices)
        ).filter(
            Item.user_id == user_id,
            Item.is_active == True
        ).order_by(Item.name).all()

    def is_name_unique(self, name: str, user_id: int, exclude_item_id: int = None) -> bool:
        """Item names are unique per user, ignoring case"""
        query = self.db.query(Item).filter(
            func.lower(Item.name) == name.strip().lower(),
            Item.user_id == user_id,
            Item.is_active == True
        )
        if exclude_item_id:
            query = query.filter(Item.id != exclude_item_id)
        return query.first() is None

    def create(self, item_data: ItemCreate, user_id: int) -> Item:
        if not self.is_name_unique(item_data.name, user_id):
            raise DuplicateItemError(item_data.name)

        buy_price = quantize(item_data.buy_price)
        sell_price = quantize(item_data.sell_price)

        item = Item(
            name=item_data.name.strip(),
            unit=item_data.unit.value,
            buy_price=buy_price,
            sell_price=sell_price,
            quantity=to_decimal(0),
            user_id=user_id
        )
        item.price_history.append(ItemPriceHistory(
            buy_price=buy_price,
            sell_price=sell_price,
            notes="Initial price"
        ))
        self.db.add(item)
        self.db.flush()

        # Opening stock goes through the journal like any other movement
        self.stock.record(item, item_data.quantity, StockTransactionType.ADDITION, "Initial stock", user_id)

        logger.info("Created item %s (%s) for user %s", item.id, item.name, user_id)
        return item

    def update(self, item_id: int, user_id: int, item_data: ItemUpdate) -> Item:
        item = self.get_or_raise(item_id, user_id)
        update_data = item_data.model_dump(exclude_unset=True, exclude_none=True)

        if 'name' in update_data and update_data['name'].strip().lower() != item.name.lower():
            if not self.is_name_unique(update_data['name'], user_id, exclude_item_id=item_id):
                raise DuplicateItemError(update_data['name'])
            item.name = update_data['name'].strip()

        if 'unit' in update_data:
            item.unit = update_data['unit'].value

        old_buy = to_decimal(item.buy_price)
        old_sell = to_decimal(item.sell_price)
        new_buy = quantize(update_data.get('buy_price', old_buy))
        new_sell = quantize(update_data.get('sell_price', old_sell))

        if new_buy != old_buy or new_sell != old_sell:
            item.buy_price = new_buy
            item.sell_price = new_sell
            item.price_history.append(ItemPriceHistory(
                buy_price=new_buy,
                sell_price=new_sell,
                notes=(
                    f"Price updated from Buy: {old_buy} / Sell: {old_sell} "
                    f"to Buy: {new_buy} / Sell: {new_sell}"
                )
            ))

        if 'quantity' in update_data:
            old_quantity = to_decimal(item.quantity)
            new_quantity = to_decimal(update_data['quantity'])
            difference = new_quantity - old_quantity
            if difference != 0:
                sign = "+" if difference > 0 else ""
                self.stock.record(
                    item,
                    difference,
                    StockTransactionType.ADJUSTMENT,
                    f"Stock adjusted from {old_quantity} to {new_quantity} ({sign}{difference})",
                    user_id
                )

        self.db.flush()
        return item

    def delete(self, item_id: int, user_id: int) -> Item:
        """Deactivate an item; sale lines keep pointing at it"""
        item = self.get_or_raise(item_id, user_id)

        remaining = to_decimal(item.quantity)
        value = quantize(remaining * to_decimal(item.buy_price))
        self.stock.record(
            item,
            -remaining,
            StockTransactionType.ADJUSTMENT,
            f"Item deleted: {item.name} ({remaining} {item.unit}) - Value: {value}",
            user_id
        )
        item.is_active = False
        self.db.flush()
        logger.info("Deactivated item %s for user %s", item_id, user_id)
        return item

    # ==================== CUSTOMER PRICES ====================

    def get_customer_prices(self, item_id: int, user_id: int) -> List[CustomerPrice]:
        return self.get_or_raise(item_id, user_id).customer_prices

    def set_customer_price(self, item_id: int, user_id: int, price_data: CustomerPriceUpdate) -> List[CustomerPrice]:
        item = self.get_or_raise(item_id, user_id)

        customer = self.db.query(Customer).filter(
            Customer.id == price_data.customer_id,
            Customer.user_id == user_id,
            Customer.is_deleted == False
        ).first()
        if not customer:
            raise CustomerNotFoundError(price_data.customer_id)

        existing = next(
            (cp for cp in item.customer_prices if cp.customer_id == price_data.customer_id),
            None
        )
        if existing:
            existing.price = quantize(price_data.price)
        else:
            item.customer_prices.append(CustomerPrice(
                customer_id=price_data.customer_id,
                price=quantize(price_data.price)
            ))

        self.db.flush()
        return item.customer_prices

    def remove_customer_price(self, item_id: int, user_id: int, customer_id: int) -> List[CustomerPrice]:
        item = self.get_or_raise(item_id, user_id)
        item.customer_prices = [cp for cp in item.customer_prices if cp.customer_id != customer_id]
        self.db.flush()
        return item.customer_prices
