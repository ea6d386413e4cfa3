from .catalog import Product, Customer, Supplier
from .auth import User, SessionToken
from .sales import (
    Transaction, TransactionItem, TransactionPaymentMethod,
    Return, ReturnItem, ReturnPaymentMethod,
)
from .purchasing import Purchase, PurchaseItem, Expense
from .shifts import Shift
from .counts import InventoryCount, InventoryCountItem, ActiveInventoryCount

__all__ = [
    'Product', 'Customer', 'Supplier',
    'User', 'SessionToken',
    'Transaction', 'TransactionItem', 'TransactionPaymentMethod',
    'Return', 'ReturnItem', 'ReturnPaymentMethod',
    'Purchase', 'PurchaseItem', 'Expense',
    'Shift',
    'InventoryCount', 'InventoryCountItem', 'ActiveInventoryCount',
]
