# Services Package
from inventra.services.user_service import UserService
from inventra.services.stock_service import StockLedgerService
from inventra.services.inventory_service import ItemService
from inventra.services.crm_service import CustomerService
from inventra.services.transaction_service import TransactionService, calculate_totals
from inventra.services.return_service import ReturnService
from inventra.services.payment_service import PaymentService, allocate_payment
from inventra.services.reconciliation_service import ReconciliationService

__all__ = [
    'UserService',
    'StockLedgerService',
    'ItemService',
    'CustomerService',
    'TransactionService',
    'calculate_totals',
    'ReturnService',
    'PaymentService',
    'allocate_payment',
    'ReconciliationService',
]
