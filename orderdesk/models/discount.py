"""Discount model."""
from sqlalchemy import Column, String, Boolean, Numeric, DateTime
from sqlalchemy.sql import func
from orderdesk.database import Base, BigIntPK


class Discount(Base):
    """
    Named discount rule.

    Percentages are stored in [0, 100]; the commission percentage is paid to
    the seller on the discounted line value and may be 0.
    """

    __tablename__ = 'discounts'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    discount_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    commission_percentage = Column(Numeric(5, 2), nullable=False, default=0, server_default='0')
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<Discount(id={self.id}, name='{self.name}', pct={self.discount_percentage})>"

    def to_pricing(self):
        """Build the pricing-engine rule, clamping percentages to [0, 100]."""
        from orderdesk.services.pricing_service import Discount as PricingDiscount
        from orderdesk.utils.money import ZERO, HUNDRED

        def clamp(value):
            return min(max(value if value is not None else ZERO, ZERO), HUNDRED)

        return PricingDiscount(
            id=self.id,
            discount_percentage=clamp(self.discount_percentage),
            commission_percentage=clamp(self.commission_percentage),
            name=self.name
        )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'discount_percentage': str(self.discount_percentage),
            'commission_percentage': str(self.commission_percentage),
            'active': self.active,
        }
