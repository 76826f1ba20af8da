from .tenancy import Vendor, Location
from .auth import Operator, AuthToken
from .registers import Register, RegisterSession
from .inventory import Product, InventoryRecord, StockMovement
from .sales import Sale, SaleLine

__all__ = [
    'Vendor', 'Location',
    'Operator', 'AuthToken',
    'Register', 'RegisterSession',
    'Product', 'InventoryRecord', 'StockMovement',
    'Sale', 'SaleLine',
]
