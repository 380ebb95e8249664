from .catalog import Branch, Product, StaffTariff, Staff
from .sales import Sale, BasketLine
from .inventory import InventoryRecord, InventoryLedgerEntry, Income, IncomeProduct
from .transactions import FinancialTransaction

__all__ = [
    'Branch', 'Product', 'StaffTariff', 'Staff',
    'Sale', 'BasketLine',
    'InventoryRecord', 'InventoryLedgerEntry', 'Income', 'IncomeProduct',
    'FinancialTransaction',
]
