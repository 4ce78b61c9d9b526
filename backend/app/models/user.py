"""
User model. Accounts are owned by the identity service; this table is a
read-only lookup for the caller's role and ownership checks.
"""

from sqlalchemy import Column, Integer, String, Boolean
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin
from app.models.enums import UserRole, enum_column


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(200), nullable=True)
    role = Column(enum_column(UserRole), nullable=False, default=UserRole.CUSTOMER)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    listings = relationship("Listing", back_populates="operator", lazy="raise")
    bookings = relationship("Booking", back_populates="customer", lazy="raise")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
