from .inventory import Product
from .customers import Customer
from .sales import Sale, SaleItem, Payment
from .documents import Return, ReturnItem, StockAdjustment, StockAdjustmentItem
from .purchasing import Supplier, Purchase, PurchaseItem

__all__ = [
    'Product',
    'Customer',
    'Sale', 'SaleItem', 'Payment',
    'Return', 'ReturnItem', 'StockAdjustment', 'StockAdjustmentItem',
    'Supplier', 'Purchase', 'PurchaseItem',
]
