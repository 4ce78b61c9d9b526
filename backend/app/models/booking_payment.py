"""
Accounting snapshot for one booking, written once at creation time.

All amounts are paise; rates are basis points (10000 = 100%).
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.db.base import Base, TimestampMixin
from app.models.enums import PaymentMethod, SettlementStatus, enum_column


class BookingPayment(Base, TimestampMixin):
    __tablename__ = "booking_payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(
        Integer, ForeignKey("bookings.id", ondelete="RESTRICT"), nullable=False, unique=True, index=True
    )
    currency = Column(String(3), nullable=False, default="INR")
    payment_method = Column(enum_column(PaymentMethod), nullable=False, default=PaymentMethod.ONLINE)

    base_price = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    subtotal_amount = Column(Integer, nullable=False)
    addons_amount = Column(Integer, nullable=False, default=0)
    discount_amount = Column(Integer, nullable=False, default=0)
    taxable_amount = Column(Integer, nullable=False)
    tax_rate_bp = Column(Integer, nullable=False)
    tax_amount = Column(Integer, nullable=False)
    total_amount = Column(Integer, nullable=False)
    amount_paid_online = Column(Integer, nullable=False)
    amount_to_collect_offline = Column(Integer, nullable=False)

    platform_commission_rate_bp = Column(Integer, nullable=False)
    platform_commission = Column(Integer, nullable=False)
    tcs_rate_bp = Column(Integer, nullable=False)
    tcs_amount = Column(Integer, nullable=False)
    seller_gross_earnings = Column(Integer, nullable=False)
    net_payable_to_seller = Column(Integer, nullable=False)

    settlement_status = Column(
        enum_column(SettlementStatus), nullable=False, default=SettlementStatus.PENDING
    )

    booking = relationship("Booking", back_populates="payment")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_payment_quantity_positive"),
        CheckConstraint(
            "amount_paid_online + amount_to_collect_offline = total_amount",
            name="check_payment_split_sums_to_total",
        ),
        CheckConstraint("taxable_amount + tax_amount = total_amount", name="check_payment_total"),
    )

    def __repr__(self) -> str:
        return f"<BookingPayment(booking={self.booking_id}, total={self.total_amount})>"
