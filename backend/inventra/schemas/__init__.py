"""
Pydantic Schemas for API Validation
"""
from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import List, Optional
from datetime import datetime
from decimal import Decimal
from enum import Enum


# ==================== ENUMS ====================

class ItemUnitEnum(str, Enum):
    PCS = "pcs"
    KG = "kg"
    LITRE = "litre"
    GRAM = "gram"
    METER = "meter"
    BOX = "box"
    DOZEN = "dozen"


class ManualStockTypeEnum(str, Enum):
    ADDITION = "addition"
    ADJUSTMENT = "adjustment"


# ==================== COMMON ====================

class MessageResponse(BaseModel):
    message: str
    success: bool = True


class Pagination(BaseModel):
    total: int
    limit: int
    skip: int
    has_more: bool


# ==================== AUTH SCHEMAS ====================

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    phone_number: str = Field(..., min_length=5, max_length=50)
    company_name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email_or_phone: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class UserResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone_number: str
    company_name: str
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(Token):
    user: UserResponse


# ==================== ITEM SCHEMAS ====================

class ItemBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    unit: ItemUnitEnum = ItemUnitEnum.PCS
    buy_price: Decimal = Field(..., ge=0)
    sell_price: Decimal = Field(..., ge=0)


class ItemCreate(ItemBase):
    quantity: Decimal = Field(..., ge=0)


class ItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    unit: Optional[ItemUnitEnum] = None
    buy_price: Optional[Decimal] = Field(None, ge=0)
    sell_price: Optional[Decimal] = Field(None, ge=0)
    quantity: Optional[Decimal] = Field(None, ge=0)


class PriceHistoryResponse(BaseModel):
    buy_price: Decimal
    sell_price: Decimal
    notes: Optional[str] = None
    changed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CustomerPriceUpdate(BaseModel):
    customer_id: int
    price: Decimal = Field(..., ge=0)


class CustomerPriceResponse(BaseModel):
    customer_id: int
    price: Decimal

    model_config = ConfigDict(from_attributes=True)


class ItemResponse(ItemBase):
    id: int
    quantity: Decimal
    is_active: bool
    created_at: datetime
    price_history: List[PriceHistoryResponse] = []
    customer_prices: List[CustomerPriceResponse] = []

    model_config = ConfigDict(from_attributes=True)


# ==================== STOCK SCHEMAS ====================

class StockTransactionCreate(BaseModel):
    item_id: int
    quantity: Decimal = Field(..., description="Positive to add stock, negative to remove")
    transaction_type: ManualStockTypeEnum = ManualStockTypeEnum.ADDITION
    notes: Optional[str] = None
    transaction_date: Optional[datetime] = None


class StockTransactionResponse(BaseModel):
    id: int
    item_id: int
    item_name: str = "Unknown"
    quantity: Decimal
    transaction_type: str
    notes: Optional[str] = None
    transaction_date: datetime
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StockTransactionList(BaseModel):
    stock_transactions: List[StockTransactionResponse]
    pagination: Pagination


# ==================== CUSTOMER SCHEMAS ====================

class CustomerBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    phone_number: str = Field(..., min_length=1, max_length=50)


class CustomerCreate(CustomerBase):
    outstanding_balance: Decimal = Decimal("0.00")  # Opening balance carried over from paper books


class CustomerUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    phone_number: Optional[str] = Field(None, min_length=1, max_length=50)


class CustomerResponse(CustomerBase):
    id: int
    outstanding_balance: Decimal
    is_deleted: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== TRANSACTION SCHEMAS ====================

class TransactionItemCreate(BaseModel):
    item_id: int
    quantity: Decimal = Field(..., gt=0)
    price_per_unit: Decimal = Field(..., ge=0)
    # Sent back on edit to keep the original cost snapshot
    buy_price: Optional[Decimal] = Field(None, ge=0)
    name: Optional[str] = None


class AdditionalChargeSchema(BaseModel):
    amount: Decimal = Field(..., ge=0)
    reason: Optional[str] = Field(None, max_length=255)

    model_config = ConfigDict(from_attributes=True)


class TransactionCreate(BaseModel):
    customer_id: Optional[int] = None
    items: List[TransactionItemCreate] = Field(..., min_length=1)
    payment_received: Optional[Decimal] = None
    additional_charges: List[AdditionalChargeSchema] = []
    payment_method: str = Field(default="cash", max_length=50)
    notes: Optional[str] = None
    transaction_date: Optional[datetime] = None


class TransactionUpdate(TransactionCreate):
    pass


class TransactionItemResponse(BaseModel):
    id: int
    item_id: int
    name: str
    quantity: Decimal
    price_per_unit: Decimal
    buy_price: Decimal
    profit: Decimal
    total: Decimal

    model_config = ConfigDict(from_attributes=True)


class TransactionResponse(BaseModel):
    id: int
    customer_id: Optional[int] = None
    customer_name: str
    items: List[TransactionItemResponse] = []
    additional_charges: List[AdditionalChargeSchema] = []
    total_amount: Decimal
    total_additional_charges: Decimal
    grand_total: Decimal
    payment_received: Decimal
    balance_amount: Decimal
    total_profit: Decimal
    payment_method: str
    notes: Optional[str] = None
    transaction_date: datetime
    is_deleted: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TransactionList(BaseModel):
    transactions: List[TransactionResponse]
    pagination: Pagination


# ==================== RETURN SCHEMAS ====================

class ReturnItemCreate(BaseModel):
    item_id: int
    quantity: Decimal = Field(..., gt=0)
    price_per_unit: Decimal = Field(..., ge=0)


class ReturnCreate(BaseModel):
    original_transaction_id: Optional[int] = None
    customer_id: Optional[int] = None
    items: List[ReturnItemCreate] = Field(..., min_length=1)
    refund_amount: Optional[Decimal] = None
    notes: Optional[str] = None


class ReturnItemResponse(BaseModel):
    item_id: int
    item_name: str
    quantity: Decimal
    price_per_unit: Decimal
    cost_price: Decimal
    total: Decimal
    profit_lost: Decimal

    model_config = ConfigDict(from_attributes=True)


class ReturnResponse(BaseModel):
    id: int
    original_transaction_id: Optional[int] = None
    customer_id: Optional[int] = None
    customer_name: str
    items: List[ReturnItemResponse] = []
    total_return_value: Decimal
    total_profit_lost: Decimal
    refund_amount: Decimal
    notes: Optional[str] = None
    transaction_date: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== PAYMENT SCHEMAS ====================

class BulkPaymentRequest(BaseModel):
    customer_id: int
    payment_amount: Optional[Decimal] = None
    mode: Optional[str] = None
    transaction_ids: Optional[List[int]] = None


class AllocationResponse(BaseModel):
    transaction_id: int
    previous_balance: Decimal
    payment_applied: Decimal
    new_balance: Decimal


class BulkPaymentResponse(BaseModel):
    message: str
    payment_id: int
    payment_amount: Decimal
    amount_applied: Decimal
    remaining_amount: Decimal
    transactions_updated: int
    updated_transactions: List[AllocationResponse]
    new_customer_outstanding: Decimal
    customer_credit: Decimal
    has_advance_credit: bool
    note: str


class PaymentResponse(BaseModel):
    id: int
    customer_id: int
    payment_amount: Decimal
    amount_applied: Decimal
    remaining_amount: Decimal
    mode: str
    transactions_affected: List[int] = []
    payment_date: datetime

    model_config = ConfigDict(from_attributes=True)


# ==================== RECONCILIATION SCHEMAS ====================

class FixBalancesRequest(BaseModel):
    customer_id: int


class TransactionBalanceDetail(BaseModel):
    id: int
    date: datetime
    grand_total: Decimal
    total_amount: Decimal
    payment_received: Decimal
    calculated_balance: Decimal
    old_balance: Optional[Decimal] = None


class FixBalancesResponse(BaseModel):
    message: str
    transactions_fixed: int
    total_transactions: int
    new_outstanding_balance: Decimal
    old_outstanding_balance: Decimal
    transaction_details: List[TransactionBalanceDetail]


class CustomerFixSummary(BaseModel):
    customer_id: int
    name: str
    transactions_fixed: int
    old_balance: Decimal
    new_balance: Decimal


class FixAllBalancesResponse(BaseModel):
    success: bool = True
    total_customers: int
    customers_fixed: int
    transactions_fixed: int
    summary: List[CustomerFixSummary]
