"""
Pydantic schemas for booking-related request/response validation.

Required booking fields are Optional here on purpose: the booking engine
reports every missing field by name in one 400 response, which a 422
from request parsing cannot do.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import Field

from app.models.booking import Booking
from app.models.booking_payment import BookingPayment
from app.models.enums import BookingFormat, BookingStatus, PaymentMethod, SettlementStatus
from app.schemas.common import CamelModel, Money, to_paise, to_rupees
from app.services.booking_service import BookingRequest


class SelectedAddon(CamelModel):
    name: str
    price: Decimal = Field(ge=0)
    quantity: int = Field(default=1, gt=0)


class BookingCreate(CamelModel):
    customer_id: Optional[int] = None
    slot_id: Optional[int] = None
    date_range_id: Optional[int] = None
    participant_count: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    participants: list[dict[str, Any]] = Field(default_factory=list)
    contact_details: Optional[dict[str, Any]] = None
    selected_addons: list[SelectedAddon] = Field(default_factory=list)

    # Client-side pricing, advisory only
    subtotal: Optional[Decimal] = None
    addons_total: Optional[Decimal] = Field(default=None, ge=0)
    tax_amount: Optional[Decimal] = None
    discount_amount: Optional[Decimal] = Field(default=None, ge=0)
    total_amount: Optional[Decimal] = None
    amount_paid_now: Optional[Decimal] = Field(default=None, ge=0)
    amount_pending_at_venue: Optional[Decimal] = None
    payment_method: PaymentMethod = PaymentMethod.ONLINE
    promo_code: Optional[str] = Field(default=None, max_length=50)

    def to_request(self) -> BookingRequest:
        return BookingRequest(
            customer_id=self.customer_id,
            slot_id=self.slot_id,
            date_range_id=self.date_range_id,
            participant_count=self.participant_count,
            start_date=self.start_date,
            end_date=self.end_date,
            participants=self.participants,
            contact_details=self.contact_details,
            selected_addons=[
                {"name": addon.name, "price": to_paise(addon.price), "quantity": addon.quantity}
                for addon in self.selected_addons
            ],
            addons_total=to_paise(self.addons_total),
            discount_amount=to_paise(self.discount_amount) or 0,
            amount_paid_now=to_paise(self.amount_paid_now),
            payment_method=self.payment_method,
            promo_code=self.promo_code,
            client_total_amount=to_paise(self.total_amount),
        )


class PaymentView(CamelModel):
    id: int
    currency: str
    payment_method: PaymentMethod
    base_price: Money
    quantity: int
    subtotal_amount: Money
    addons_amount: Money
    discount_amount: Money
    taxable_amount: Money
    tax_rate_bp: int
    tax_amount: Money
    total_amount: Money
    amount_paid_online: Money
    amount_to_collect_offline: Money


class AdminPaymentView(PaymentView):
    platform_commission_rate_bp: int
    platform_commission: Money
    tcs_rate_bp: int
    tcs_amount: Money
    seller_gross_earnings: Money
    net_payable_to_seller: Money
    settlement_status: SettlementStatus


class BookingView(CamelModel):
    id: int
    booking_reference: str
    customer_id: int
    listing_id: int
    booking_format: BookingFormat
    slot_id: Optional[int] = None
    date_range_id: Optional[int] = None
    start_date: date
    end_date: date
    participant_count: int
    total_days: int
    base_price: Money
    total_amount: Money
    status: BookingStatus
    pricing_snapshot: dict[str, Any] = Field(default_factory=dict)
    participants: list[dict[str, Any]] = Field(default_factory=list)
    contact_details: Optional[dict[str, Any]] = None
    selected_addons: list[dict[str, Any]] = Field(default_factory=list)
    promo_code: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    payment: Optional[PaymentView] = None


class AdminBookingView(BookingView):
    payment: Optional[AdminPaymentView] = None


class BookingCreateResponse(CamelModel):
    booking: BookingView
    booking_payment: PaymentView
    booking_reference: str


_SNAPSHOT_MONEY_KEYS = ("subtotal", "addons", "discount", "tax", "total", "paidNow", "pendingAtVenue")
_PAYMENT_MONEY_FIELDS = (
    "base_price", "subtotal_amount", "addons_amount", "discount_amount", "taxable_amount",
    "tax_amount", "total_amount", "amount_paid_online", "amount_to_collect_offline",
)
_ADMIN_MONEY_FIELDS = (
    "platform_commission", "tcs_amount", "seller_gross_earnings", "net_payable_to_seller",
)


def payment_view(payment: BookingPayment, admin: bool = False) -> PaymentView:
    data = {
        "id": payment.id,
        "currency": payment.currency,
        "payment_method": payment.payment_method,
        "quantity": payment.quantity,
        "tax_rate_bp": payment.tax_rate_bp,
    }
    data.update({name: to_rupees(getattr(payment, name)) for name in _PAYMENT_MONEY_FIELDS})
    if not admin:
        return PaymentView(**data)

    data.update({name: to_rupees(getattr(payment, name)) for name in _ADMIN_MONEY_FIELDS})
    data.update(
        platform_commission_rate_bp=payment.platform_commission_rate_bp,
        tcs_rate_bp=payment.tcs_rate_bp,
        settlement_status=payment.settlement_status,
    )
    return AdminPaymentView(**data)


def booking_view(booking: Booking, payment: Optional[BookingPayment] = None, admin: bool = False) -> BookingView:
    payment = payment or booking.payment
    snapshot = dict(booking.pricing_snapshot or {})
    for key in _SNAPSHOT_MONEY_KEYS:
        if key in snapshot:
            snapshot[key] = float(to_rupees(snapshot[key]))
    addons = [
        {**addon, "price": float(to_rupees(addon.get("price", 0)))}
        for addon in (booking.selected_addons or [])
    ]

    view_cls = AdminBookingView if admin else BookingView
    return view_cls(
        id=booking.id,
        booking_reference=booking.booking_reference,
        customer_id=booking.customer_id,
        listing_id=booking.listing_id,
        booking_format=booking.booking_format,
        slot_id=booking.listing_slot_id,
        date_range_id=booking.date_range_id,
        start_date=booking.start_date,
        end_date=booking.end_date,
        participant_count=booking.participant_count,
        total_days=booking.total_days,
        base_price=to_rupees(booking.base_price),
        total_amount=to_rupees(booking.total_amount),
        status=booking.status,
        pricing_snapshot=snapshot,
        participants=booking.participants or [],
        contact_details=booking.contact_details,
        selected_addons=addons,
        promo_code=booking.promo_code,
        cancelled_at=booking.cancelled_at,
        created_at=booking.created_at,
        payment=payment_view(payment, admin=admin) if payment else None,
    )
