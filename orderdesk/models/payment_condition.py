"""Payment condition model."""
from sqlalchemy import Column, String, Boolean, Integer, Text
from orderdesk.database import Base, BigIntPK


class PaymentCondition(Base):
    """Payment condition (cash, 30/60/90 days, ...)."""

    __tablename__ = 'payment_conditions'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    installments = Column(Integer, nullable=False, default=1)
    is_cash = Column(Boolean, nullable=False, default=False)
    active = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<PaymentCondition(id={self.id}, name='{self.name}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'installments': self.installments,
            'is_cash': self.is_cash,
            'active': self.active,
        }
