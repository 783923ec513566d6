from .auth import User, ROLES
from .catalog import Product
from .orders import Order, OrderItem, ORDER_STATUS_OPEN, ORDER_STATUSES

__all__ = [
    'User', 'ROLES',
    'Product',
    'Order', 'OrderItem', 'ORDER_STATUS_OPEN', 'ORDER_STATUSES',
]
