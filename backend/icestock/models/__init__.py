from .accounts import User, Manager
from .delivery import DeliveryPartner, SearchHistory
from .customers import Customer
from .inventory import Product, RestockHistory
from .orders import Order, StickyNote
from .seller import SellerDetails, BankDetails
from .security import SecurityEvent

__all__ = [
    'User', 'Manager',
    'DeliveryPartner', 'SearchHistory',
    'Customer',
    'Product', 'RestockHistory',
    'Order', 'StickyNote',
    'SellerDetails', 'BankDetails',
    'SecurityEvent',
]
