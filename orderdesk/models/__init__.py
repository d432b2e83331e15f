"""Models package - exports all SQLAlchemy models."""
# Catalog
from orderdesk.models.product import Product
from orderdesk.models.client import Client
from orderdesk.models.discount import Discount
from orderdesk.models.payment_condition import PaymentCondition

# Orders
from orderdesk.models.order import (
    Order, OrderStatus, ALLOWED_TRANSITIONS, EDITABLE_STATUSES, DELETABLE_STATUSES,
    can_transition, parse_status
)
from orderdesk.models.order_item import OrderItem

__all__ = [
    # Catalog
    'Product', 'Client', 'Discount', 'PaymentCondition',
    # Orders
    'Order', 'OrderStatus', 'OrderItem',
    'ALLOWED_TRANSITIONS', 'EDITABLE_STATUSES', 'DELETABLE_STATUSES',
    'can_transition', 'parse_status',
]
