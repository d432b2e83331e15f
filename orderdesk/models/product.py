"""Product model."""
from sqlalchemy import Column, String, Boolean, Integer, Numeric, DateTime, Text
from sqlalchemy.sql import func
from orderdesk.database import Base, BigIntPK


class Product(Base):
    """Product sold through orders. `code` is the catalog reference used by bulk add."""

    __tablename__ = 'products'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    code = Column(String(64), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    application = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0, server_default='0')
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<Product(id={self.id}, code='{self.code}', price={self.price}, stock={self.stock})>"

    @property
    def display_name(self):
        return self.name or self.code

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.display_name,
            'application': self.application,
            'price': str(self.price) if self.price is not None else None,
            'stock': self.stock,
            'active': self.active,
        }
