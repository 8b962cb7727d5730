"""
Ledger Exceptions

Services raise these before mutating anything wherever they can. They derive
from ValueError so callers that catch ValueError keep working.
"""
from decimal import Decimal
from typing import Optional


class LedgerError(ValueError):
    """Base class for all expected ledger failures"""
    status_code = 400
    code = "invalid_input"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ==================== NOT FOUND ====================

class NotFoundError(LedgerError):
    status_code = 404
    code = "not_found"


class ItemNotFoundError(NotFoundError):
    code = "item_not_found"

    def __init__(self, item_id):
        super().__init__(f"Item not found: {item_id}")
        self.item_id = item_id


class CustomerNotFoundError(NotFoundError):
    code = "customer_not_found"

    def __init__(self, customer_id):
        super().__init__("Customer not found")
        self.customer_id = customer_id


class TransactionNotFoundError(NotFoundError):
    code = "transaction_not_found"

    def __init__(self, transaction_id):
        super().__init__("Transaction not found")
        self.transaction_id = transaction_id


# ==================== STOCK ====================

class InsufficientStockError(LedgerError):
    code = "insufficient_stock"

    def __init__(self, item_name: str, available: Decimal, requested: Optional[Decimal] = None):
        message = f"Insufficient stock for '{item_name}'. Available: {available}"
        if requested is not None:
            message += f", Requested: {requested}"
        super().__init__(message)
        self.item_name = item_name
        self.available = available
        self.requested = requested


# ==================== INPUT ====================

class InvalidInputError(LedgerError):
    code = "invalid_input"


class InvalidPaymentError(InvalidInputError):
    code = "invalid_payment"


class InvalidAmountError(InvalidInputError):
    code = "invalid_amount"


class InvalidModeError(InvalidInputError):
    code = "invalid_mode"

    def __init__(self, mode):
        super().__init__(f'Mode must be either "fifo" or "manual", got {mode!r}')
        self.mode = mode


class MissingTransactionIdsError(InvalidInputError):
    code = "missing_transaction_ids"

    def __init__(self):
        super().__init__("Transaction IDs are required for manual mode")


class DuplicateItemError(InvalidInputError):
    code = "duplicate_item"

    def __init__(self, name: str):
        super().__init__(f"An item named '{name}' already exists")
        self.name = name
