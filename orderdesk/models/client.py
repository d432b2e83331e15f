"""Client model."""
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from orderdesk.database import Base, BigIntPK


class Client(Base):
    """Client (customer the order is placed for)."""

    __tablename__ = 'clients'

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    code = Column(String(64), nullable=False, unique=True)
    name = Column(String(255), nullable=False)
    city = Column(String(120), nullable=True)
    cnpj = Column(String(32), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    orders = relationship('Order', back_populates='client')

    def __repr__(self):
        return f"<Client(id={self.id}, code='{self.code}', name='{self.name}')>"

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'name': self.name,
            'city': self.city,
            'cnpj': self.cnpj,
        }
