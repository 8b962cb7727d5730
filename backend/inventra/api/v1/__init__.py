# API v1 Package
from inventra.api.v1 import auth, items, stock_transactions, customers, transactions, returns

__all__ = [
    'auth',
    'items',
    'stock_transactions',
    'customers',
    'transactions',
    'returns',
]
