"""Order model and status lifecycle."""
import enum
from sqlalchemy import Column, BigInteger, String, Boolean, Numeric, DateTime, Text, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from orderdesk.database import Base, BigIntPK
from orderdesk.utils.money import money_str


class OrderStatus(str, enum.Enum):
    """Order status enum."""
    DRAFT = 'draft'
    CONFIRMED = 'confirmed'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


# draft -> confirmed -> processing -> shipped -> delivered
# cancelled only from draft or confirmed
ALLOWED_TRANSITIONS = {
    OrderStatus.DRAFT: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}

# Line items may be replaced and totals freely recomputed only here
EDITABLE_STATUSES = {OrderStatus.DRAFT, OrderStatus.CONFIRMED}
DELETABLE_STATUSES = {OrderStatus.DRAFT, OrderStatus.CONFIRMED}


def parse_status(value):
    """Return the OrderStatus for a raw value, or None if it is not a known status."""
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().lower())
    except ValueError:
        return None


def can_transition(current, requested):
    """Check whether an order may move from `current` to `requested`."""
    current = parse_status(current)
    requested = parse_status(requested)
    if current is None or requested is None:
        return False
    return requested in ALLOWED_TRANSITIONS[current]


class Order(Base):
    """
    Sales order.

    subtotal / total_discount / total_commission / total / has_pending_items
    are a cache of pricing_service.aggregate_order over the current items.
    """

    __tablename__ = 'orders'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_number = Column(String(32), nullable=False, unique=True)
    client_id = Column(BigInteger, ForeignKey('clients.id'), nullable=False)
    payment_condition_id = Column(BigInteger, ForeignKey('payment_conditions.id'), nullable=True)
    status = Column(String(20), nullable=False, default=OrderStatus.DRAFT.value)
    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    total_discount = Column(Numeric(14, 2), nullable=False, default=0)
    total_commission = Column(Numeric(14, 2), nullable=False, default=0, server_default='0')
    shipping_rate = Column(Numeric(14, 2), nullable=False, default=0, server_default='0')
    total = Column(Numeric(14, 2), nullable=False, default=0)
    has_pending_items = Column(Boolean, nullable=False, default=False, server_default='false')
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    client = relationship('Client', back_populates='orders')
    payment_condition = relationship('PaymentCondition')
    items = relationship(
        'OrderItem',
        back_populates='order',
        cascade='all, delete-orphan',
        order_by='OrderItem.id'
    )

    def __repr__(self):
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.status}', total={self.total})>"

    @property
    def status_enum(self):
        return parse_status(self.status)

    @property
    def is_editable(self):
        """Items can be replaced while the order is a draft or confirmed."""
        return self.status_enum in EDITABLE_STATUSES

    @property
    def is_deletable(self):
        """Only draft and confirmed orders can be deleted."""
        return self.status_enum in DELETABLE_STATUSES

    def apply_aggregate(self, aggregate):
        """Copy an OrderAggregate onto the cached total columns."""
        self.subtotal = aggregate.subtotal
        self.total_discount = aggregate.total_discount
        self.total_commission = aggregate.total_commission
        self.shipping_rate = aggregate.shipping_rate
        self.total = aggregate.total
        self.has_pending_items = aggregate.has_pending_items

    def to_dict(self, include_items=False):
        data = {
            'id': self.id,
            'order_number': self.order_number,
            'client_id': self.client_id,
            'client': self.client.to_dict() if self.client else None,
            'payment_condition_id': self.payment_condition_id,
            'payment_condition': self.payment_condition.to_dict() if self.payment_condition else None,
            'status': self.status,
            'subtotal': money_str(self.subtotal),
            'total_discount': money_str(self.total_discount),
            'total_commission': money_str(self.total_commission),
            'shipping_rate': money_str(self.shipping_rate),
            'total': money_str(self.total),
            'has_pending_items': bool(self.has_pending_items),
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
        return data
