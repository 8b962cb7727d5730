from decimal import Decimal

import pytest

from inventra.core.exceptions import (
    CustomerNotFoundError, DuplicateItemError, InsufficientStockError, InvalidInputError, ItemNotFoundError
)
from inventra.models import StockTransaction
from inventra.schemas import CustomerPriceUpdate, ItemCreate, ItemUpdate, StockTransactionCreate
from inventra.services.inventory_service import ItemService
from inventra.services.stock_service import StockLedgerService


def journal(db, item):
    return db.query(StockTransaction).filter(StockTransaction.item_id == item.id)\
        .order_by(StockTransaction.id).all()


class TestItemCatalogue:
    def test_create_records_price_and_opening_stock(self, db, make_item):
        item = make_item(quantity="12", buy_price="60", sell_price="100")

        assert item.quantity == Decimal("12")
        assert [h.notes for h in item.price_history] == ["Initial price"]
        entries = journal(db, item)
        assert len(entries) == 1
        assert entries[0].transaction_type == "addition"
        assert entries[0].quantity == Decimal("12")
        assert entries[0].notes == "Initial stock"

    def test_names_are_unique_ignoring_case(self, db, user, make_item):
        make_item("Rice")
        with pytest.raises(DuplicateItemError):
            ItemService(db).create(
                ItemCreate(name="  rice ", buy_price=Decimal("1"), sell_price=Decimal("2"), quantity=Decimal("0")),
                user.id,
            )

    def test_price_change_is_logged(self, db, user, make_item):
        item = make_item(buy_price="60", sell_price="100")

        ItemService(db).update(item.id, user.id, ItemUpdate(sell_price=Decimal("120")))
        db.commit()

        assert item.sell_price == Decimal("120")
        assert len(item.price_history) == 2
        assert "Sell: 100" in item.price_history[-1].notes
        assert item.price_history[-1].sell_price == Decimal("120")

    def test_rename_without_price_change_adds_no_history(self, db, user, make_item):
        item = make_item("Rice")

        ItemService(db).update(item.id, user.id, ItemUpdate(name="Basmati Rice"))
        db.commit()

        assert item.name == "Basmati Rice"
        assert len(item.price_history) == 1

    def test_quantity_change_is_an_adjustment(self, db, user, make_item):
        item = make_item(quantity="10")

        ItemService(db).update(item.id, user.id, ItemUpdate(quantity=Decimal("15")))
        db.commit()

        assert item.quantity == Decimal("15")
        entry = journal(db, item)[-1]
        assert entry.transaction_type == "adjustment"
        assert entry.quantity == Decimal("5")
        assert entry.notes.startswith("Stock adjusted from 10")
        assert entry.notes.endswith("(+5.00)")

    def test_delete_zeroes_and_deactivates(self, db, user, make_item):
        item = make_item(quantity="4", buy_price="25")
        service = ItemService(db)

        assert service.delete(item.id, user.id) is item
        db.commit()

        assert item.is_active is False
        assert item.quantity == Decimal("0")
        entry = journal(db, item)[-1]
        assert entry.quantity == Decimal("-4")
        assert "Value: 100.00" in entry.notes
        assert service.get_by_id(item.id, user.id) is None
        with pytest.raises(ItemNotFoundError):
            service.delete(item.id, user.id)

    def test_deleted_name_can_be_reused(self, db, user, make_item):
        item = make_item("Rice")
        ItemService(db).delete(item.id, user.id)
        db.commit()

        replacement = make_item("Rice")
        assert replacement.id != item.id


class TestCustomerPrices:
    def test_upsert_and_remove(self, db, user, make_item, make_customer):
        item = make_item()
        customer = make_customer()
        service = ItemService(db)

        service.set_customer_price(item.id, user.id, CustomerPriceUpdate(customer_id=customer.id, price=Decimal("90")))
        prices = service.set_customer_price(
            item.id, user.id, CustomerPriceUpdate(customer_id=customer.id, price=Decimal("85"))
        )
        db.commit()

        assert len(prices) == 1
        assert prices[0].price == Decimal("85")

        assert service.remove_customer_price(item.id, user.id, customer.id) == []
        db.commit()
        assert service.get_customer_prices(item.id, user.id) == []

    def test_customer_must_exist(self, db, user, make_item):
        item = make_item()
        with pytest.raises(CustomerNotFoundError):
            ItemService(db).set_customer_price(item.id, user.id, CustomerPriceUpdate(customer_id=999, price=Decimal("1")))


class TestStockLedger:
    def test_manual_addition(self, db, user, make_item):
        item = make_item(quantity="10")

        entry = StockLedgerService(db).add_stock(
            StockTransactionCreate(item_id=item.id, quantity=Decimal("5"), notes="Supplier delivery"), user.id
        )
        db.commit()

        assert entry.transaction_type == "addition"
        assert entry.item_name == "Rice"
        assert item.quantity == Decimal("15")

    def test_adjustment_cannot_go_negative(self, db, user, make_item):
        item = make_item(quantity="3")
        with pytest.raises(InsufficientStockError):
            StockLedgerService(db).add_stock(
                StockTransactionCreate(item_id=item.id, quantity=Decimal("-4"), transaction_type="adjustment"),
                user.id,
            )

    def test_zero_change_rejected(self, db, user, make_item):
        item = make_item()
        with pytest.raises(InvalidInputError):
            StockLedgerService(db).add_stock(StockTransactionCreate(item_id=item.id, quantity=Decimal("0")), user.id)

    def test_unknown_item(self, db, user):
        with pytest.raises(ItemNotFoundError):
            StockLedgerService(db).add_stock(StockTransactionCreate(item_id=999, quantity=Decimal("1")), user.id)

    def test_history_is_paginated_newest_first(self, db, user, make_item):
        rice = make_item("Rice")
        oil = make_item("Oil")
        service = StockLedgerService(db)
        service.add_stock(StockTransactionCreate(item_id=rice.id, quantity=Decimal("1")), user.id)
        db.commit()

        entries, total = service.get_history(user.id)
        assert total == 3
        assert entries[0].notes == ""

        entries, total = service.get_history(user.id, item_id=oil.id)
        assert total == 1
        assert entries[0].item_name == "Oil"

        entries, total = service.get_history(user.id, skip=2, limit=10)
        assert len(entries) == 1
