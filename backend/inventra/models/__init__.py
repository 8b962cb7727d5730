"""
SQLAlchemy Models for the Inventory & Customer Ledger
"""
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, Numeric,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import relationship
import enum

from inventra.core.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ==================== ENUMS ====================

class ItemUnit(enum.Enum):
    PCS = "pcs"
    KG = "kg"
    LITRE = "litre"
    GRAM = "gram"
    METER = "meter"
    BOX = "box"
    DOZEN = "dozen"


class StockTransactionType(enum.Enum):
    ADDITION = "addition"
    SALE = "sale"
    RETURN = "return"
    ADJUSTMENT = "adjustment"


class PaymentMode(enum.Enum):
    FIFO = "fifo"
    MANUAL = "manual"


# ==================== USERS ====================

class User(Base):
    """Account owner; every ledger row is scoped to one user"""
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone_number = Column(String(50), nullable=False, unique=True)
    company_name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


# ==================== INVENTORY MODELS ====================

class Item(Base):
    """Stock item. `quantity` only changes through the stock ledger."""
    __tablename__ = 'items'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    unit = Column(String(20), default=ItemUnit.PCS.value)
    buy_price = Column(Numeric(15, 2), default=Decimal("0.00"))
    sell_price = Column(Numeric(15, 2), default=Decimal("0.00"))
    quantity = Column(Numeric(15, 2), default=Decimal("0.00"))
    is_active = Column(Boolean, default=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    price_history = relationship(
        "ItemPriceHistory", back_populates="item",
        cascade="all, delete-orphan", order_by="ItemPriceHistory.id"
    )
    customer_prices = relationship(
        "CustomerPrice", back_populates="item",
        cascade="all, delete-orphan", order_by="CustomerPrice.id"
    )
    stock_transactions = relationship("StockTransaction", back_populates="item")

    __table_args__ = (
        Index('ix_items_user_id', 'user_id'),
    )


class ItemPriceHistory(Base):
    """Append-only log of buy/sell price changes"""
    __tablename__ = 'item_price_history'

    id = Column(Integer, primary_key=True)
    buy_price = Column(Numeric(15, 2), nullable=False)
    sell_price = Column(Numeric(15, 2), nullable=False)
    notes = Column(Text, nullable=True)
    changed_at = Column(DateTime, default=utcnow)
    item_id = Column(Integer, ForeignKey('items.id', ondelete='CASCADE'), nullable=False)

    item = relationship("Item", back_populates="price_history")


class CustomerPrice(Base):
    """Per-customer override of an item's sell price"""
    __tablename__ = 'customer_prices'

    id = Column(Integer, primary_key=True)
    price = Column(Numeric(15, 2), nullable=False)
    item_id = Column(Integer, ForeignKey('items.id', ondelete='CASCADE'), nullable=False)
    customer_id = Column(Integer, ForeignKey('customers.id', ondelete='CASCADE'), nullable=False)

    item = relationship("Item", back_populates="customer_prices")
    customer = relationship("Customer")

    __table_args__ = (
        UniqueConstraint('item_id', 'customer_id', name='uq_customer_price'),
    )


class StockTransaction(Base):
    """Immutable stock journal entry; `quantity` is the signed delta"""
    __tablename__ = 'stock_transactions'

    id = Column(Integer, primary_key=True)
    quantity = Column(Numeric(15, 2), nullable=False)
    transaction_type = Column(String(20), nullable=False)
    notes = Column(Text, nullable=True)
    transaction_date = Column(DateTime, default=utcnow)
    item_id = Column(Integer, ForeignKey('items.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    item = relationship("Item", back_populates="stock_transactions")

    __table_args__ = (
        Index('ix_stock_transactions_user_item', 'user_id', 'item_id'),
    )

    @property
    def item_name(self) -> str:
        return self.item.name if self.item else "Unknown"


# ==================== CUSTOMER MODELS ====================

class Customer(Base):
    """Customer with a signed running balance (negative = advance credit)"""
    __tablename__ = 'customers'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=False)
    outstanding_balance = Column(Numeric(15, 2), default=Decimal("0.00"))
    is_deleted = Column(Boolean, default=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    transactions = relationship("Transaction", back_populates="customer")
    payments = relationship("Payment", back_populates="customer")

    __table_args__ = (
        Index('ix_customers_user_id', 'user_id'),
    )


# ==================== SALES MODELS ====================

class Transaction(Base):
    """Sale. Soft-deleted only; never removed."""
    __tablename__ = 'transactions'

    id = Column(Integer, primary_key=True)
    total_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    total_additional_charges = Column(Numeric(15, 2), default=Decimal("0.00"))
    grand_total = Column(Numeric(15, 2), default=Decimal("0.00"))
    payment_received = Column(Numeric(15, 2), default=Decimal("0.00"))
    balance_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    total_profit = Column(Numeric(15, 2), default=Decimal("0.00"))
    payment_method = Column(String(50), default="cash")
    notes = Column(Text, nullable=True)
    transaction_date = Column(DateTime, default=utcnow, nullable=False)
    is_deleted = Column(Boolean, default=False)
    idempotency_key = Column(String(100), nullable=True)
    customer_id = Column(Integer, ForeignKey('customers.id', ondelete='SET NULL'), nullable=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    customer = relationship("Customer", back_populates="transactions")
    items = relationship(
        "TransactionItem", back_populates="transaction",
        cascade="all, delete-orphan", order_by="TransactionItem.id"
    )
    additional_charges = relationship(
        "AdditionalCharge", back_populates="transaction",
        cascade="all, delete-orphan", order_by="AdditionalCharge.id"
    )

    __table_args__ = (
        UniqueConstraint('user_id', 'idempotency_key', name='uq_transaction_idempotency'),
        Index('ix_transactions_user_customer', 'user_id', 'customer_id'),
        Index('ix_transactions_date', 'transaction_date'),
    )

    @property
    def customer_name(self) -> str:
        return self.customer.name if self.customer else "Walk-in"


class TransactionItem(Base):
    """Sale line; buy_price is the snapshot taken when the line was written"""
    __tablename__ = 'transaction_items'

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    quantity = Column(Numeric(15, 2), nullable=False)
    price_per_unit = Column(Numeric(15, 2), nullable=False)
    buy_price = Column(Numeric(15, 2), default=Decimal("0.00"))
    profit = Column(Numeric(15, 2), default=Decimal("0.00"))
    item_id = Column(Integer, ForeignKey('items.id', ondelete='CASCADE'), nullable=False)
    transaction_id = Column(Integer, ForeignKey('transactions.id', ondelete='CASCADE'), nullable=False)

    transaction = relationship("Transaction", back_populates="items")
    item = relationship("Item")

    @property
    def total(self):
        return self.quantity * self.price_per_unit


class AdditionalCharge(Base):
    """Delivery, packing and similar charges; excluded from profit"""
    __tablename__ = 'transaction_charges'

    id = Column(Integer, primary_key=True)
    amount = Column(Numeric(15, 2), nullable=False)
    reason = Column(String(255), nullable=True)
    transaction_id = Column(Integer, ForeignKey('transactions.id', ondelete='CASCADE'), nullable=False)

    transaction = relationship("Transaction", back_populates="additional_charges")


# ==================== RETURN MODELS ====================

class ReturnTransaction(Base):
    """Sales return. Append-only."""
    __tablename__ = 'return_transactions'

    id = Column(Integer, primary_key=True)
    total_return_value = Column(Numeric(15, 2), default=Decimal("0.00"))
    total_profit_lost = Column(Numeric(15, 2), default=Decimal("0.00"))
    refund_amount = Column(Numeric(15, 2), nullable=False)
    notes = Column(Text, nullable=True)
    transaction_date = Column(DateTime, default=utcnow)
    idempotency_key = Column(String(100), nullable=True)
    original_transaction_id = Column(Integer, ForeignKey('transactions.id', ondelete='SET NULL'), nullable=True)
    customer_id = Column(Integer, ForeignKey('customers.id', ondelete='SET NULL'), nullable=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    original_transaction = relationship("Transaction")
    customer = relationship("Customer")
    items = relationship(
        "ReturnItem", back_populates="return_transaction",
        cascade="all, delete-orphan", order_by="ReturnItem.id"
    )

    __table_args__ = (
        UniqueConstraint('user_id', 'idempotency_key', name='uq_return_idempotency'),
    )

    @property
    def customer_name(self) -> str:
        return self.customer.name if self.customer else "Walk-in"


class ReturnItem(Base):
    """Returned line"""
    __tablename__ = 'return_items'

    id = Column(Integer, primary_key=True)
    item_name = Column(String(255), nullable=False)
    quantity = Column(Numeric(15, 2), nullable=False)
    price_per_unit = Column(Numeric(15, 2), nullable=False)
    cost_price = Column(Numeric(15, 2), default=Decimal("0.00"))
    total = Column(Numeric(15, 2), default=Decimal("0.00"))
    profit_lost = Column(Numeric(15, 2), default=Decimal("0.00"))
    item_id = Column(Integer, ForeignKey('items.id', ondelete='CASCADE'), nullable=False)
    return_transaction_id = Column(Integer, ForeignKey('return_transactions.id', ondelete='CASCADE'), nullable=False)

    return_transaction = relationship("ReturnTransaction", back_populates="items")


# ==================== PAYMENT MODELS ====================

class Payment(Base):
    """Bulk payment received from a customer. Append-only."""
    __tablename__ = 'payments'

    id = Column(Integer, primary_key=True)
    payment_amount = Column(Numeric(15, 2), nullable=False)
    amount_applied = Column(Numeric(15, 2), default=Decimal("0.00"))
    remaining_amount = Column(Numeric(15, 2), default=Decimal("0.00"))
    mode = Column(String(10), nullable=False)
    outstanding_after = Column(Numeric(15, 2), default=Decimal("0.00"))
    payment_date = Column(DateTime, default=utcnow)
    idempotency_key = Column(String(100), nullable=True)
    customer_id = Column(Integer, ForeignKey('customers.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    customer = relationship("Customer", back_populates="payments")
    allocations = relationship(
        "PaymentAllocation", back_populates="payment",
        cascade="all, delete-orphan", order_by="PaymentAllocation.id"
    )

    __table_args__ = (
        UniqueConstraint('user_id', 'idempotency_key', name='uq_payment_idempotency'),
        Index('ix_payments_customer_id', 'customer_id'),
    )

    @property
    def transactions_affected(self):
        return [allocation.transaction_id for allocation in self.allocations]


class PaymentAllocation(Base):
    """Portion of a payment applied to one transaction"""
    __tablename__ = 'payment_allocations'

    id = Column(Integer, primary_key=True)
    previous_balance = Column(Numeric(15, 2), nullable=False)
    amount_applied = Column(Numeric(15, 2), nullable=False)
    new_balance = Column(Numeric(15, 2), nullable=False)
    payment_id = Column(Integer, ForeignKey('payments.id', ondelete='CASCADE'), nullable=False)
    transaction_id = Column(Integer, ForeignKey('transactions.id', ondelete='CASCADE'), nullable=False)

    payment = relationship("Payment", back_populates="allocations")
