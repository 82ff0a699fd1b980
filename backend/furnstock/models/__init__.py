from .tenancy import Company
from .catalog import Product, Supplier
from .inventory import WarehouseStock, StockTransfer, ManualTransaction
from .purchases import PurchaseTransaction, PurchaseItem, GRNRecord, VendorBillRecord
from .sales import SalesTransaction, SalesItem, DeliveryRecord, SalesInvoice, SalesLog
from .accounting import AccountingPosting, LedgerEntry
from .documents import DocumentSequence

__all__ = [
    'Company',
    'Product', 'Supplier',
    'WarehouseStock', 'StockTransfer', 'ManualTransaction',
    'PurchaseTransaction', 'PurchaseItem', 'GRNRecord', 'VendorBillRecord',
    'SalesTransaction', 'SalesItem', 'DeliveryRecord', 'SalesInvoice', 'SalesLog',
    'AccountingPosting', 'LedgerEntry',
    'DocumentSequence',
]
