"""OrderItem model for order line items."""
from sqlalchemy import Column, BigInteger, String, Boolean, Integer, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from orderdesk.database import Base, BigIntPK
from orderdesk.utils.money import ZERO, apply_percentage, money_str, round2


class OrderItem(Base):
    """
    Order line.

    Stores a snapshot of the priced line (original price, discount and
    commission percentages) so totals can be re-derived later even if the
    product or discount changes.
    """

    __tablename__ = 'order_items'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    order_id = Column(BigInteger, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey('products.id'), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    original_unit_price = Column(Numeric(12, 2), nullable=False)
    discount_id = Column(BigInteger, ForeignKey('discounts.id'), nullable=True)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(14, 2), nullable=False, default=0)
    total_price = Column(Numeric(14, 2), nullable=False)
    commission_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    commission_amount = Column(Numeric(14, 2), nullable=False, default=0)
    client_ref = Column(String(64), nullable=True)
    pending_quantity = Column(Integer, nullable=False, default=0, server_default='0')
    has_pending = Column(Boolean, nullable=False, default=False, server_default='false')
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    order = relationship('Order', back_populates='items')
    product = relationship('Product')
    discount = relationship('Discount')

    def __repr__(self):
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, product_id={self.product_id}, qty={self.quantity})>"

    @classmethod
    def from_result(cls, result):
        """Build a row from a pricing_service.LineItemResult."""
        return cls(
            product_id=result.product_id,
            quantity=result.quantity,
            unit_price=result.unit_price_final,
            original_unit_price=result.unit_price_original,
            discount_id=result.discount_id,
            discount_percentage=result.discount_percentage,
            discount_amount=result.discount_amount,
            total_price=result.line_subtotal,
            commission_percentage=result.commission_percentage,
            commission_amount=result.commission_amount,
            client_ref=result.client_reference,
            pending_quantity=result.pending_quantity,
            has_pending=result.has_pending
        )

    def to_line_result(self):
        """
        Re-derive the priced line from what is stored now.

        Uses quantity, unit_price and discount_amount as they are in the row,
        so a row edited outside the aggregator shows up as drift in the order
        totals. The discount is recomputed only when the column is empty.
        """
        from orderdesk.services.pricing_service import LineItemResult

        quantity = self.quantity or 0
        unit_price = self.unit_price if self.unit_price is not None else ZERO
        original = self.original_unit_price if self.original_unit_price is not None else unit_price
        discount_pct = self.discount_percentage or ZERO
        commission_pct = self.commission_percentage or ZERO

        line_subtotal = round2(quantity * unit_price)
        if self.discount_amount is not None:
            discount_amount = round2(self.discount_amount)
        else:
            discount_amount = round2(quantity * apply_percentage(original, discount_pct))

        return LineItemResult(
            product_id=self.product_id,
            quantity=quantity,
            unit_price_original=round2(original),
            unit_price_final=round2(unit_price),
            line_subtotal=line_subtotal,
            discount_amount=discount_amount,
            commission_amount=round2(apply_percentage(line_subtotal, commission_pct)),
            pending_quantity=self.pending_quantity or 0,
            has_pending=bool(self.has_pending),
            discount_id=self.discount_id,
            discount_percentage=discount_pct,
            commission_percentage=commission_pct,
            client_reference=self.client_ref
        )

    def to_dict(self):
        return {
            'id': self.id,
            'order_id': self.order_id,
            'product_id': self.product_id,
            'product_code': self.product.code if self.product else None,
            'product_name': self.product.display_name if self.product else None,
            'quantity': self.quantity,
            'unit_price': money_str(self.unit_price),
            'original_unit_price': money_str(self.original_unit_price),
            'discount_id': self.discount_id,
            'discount_name': self.discount.name if self.discount else None,
            'discount_percentage': str(self.discount_percentage),
            'discount_amount': money_str(self.discount_amount),
            'total_price': money_str(self.total_price),
            'commission_percentage': str(self.commission_percentage),
            'commission_amount': money_str(self.commission_amount),
            'client_ref': self.client_ref,
            'pending_quantity': self.pending_quantity,
            'has_pending': bool(self.has_pending),
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
