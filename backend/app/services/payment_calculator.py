"""
Payment breakdown calculator.

MONEY RULES
===========

Everything in here is integer paise. Rates are basis points, so a rate
of 1800 means 18%. The only rounding rule is round-half-up on a
non-negative numerator:

    round(amount x rate / 10000) == (amount * rate + 5000) // 10000

Rupee decimals exist only at the HTTP boundary and are converted with
rupees_to_paise / paise_to_rupees, which use Decimal so that "0.1 + 0.2"
style drift can never reach a stored amount.

Breakdown:
  subtotal        = base_price x quantity  (or sum(daily_prices) x units)
  taxable         = subtotal + addons - discount
  tax             = round(taxable x tax_rate)
  total           = taxable + tax
  paid_online     = supplied, or round(total x advance_rate)
  offline         = max(0, total - paid_online)
  commission      = round(subtotal x commission_rate)
  tcs             = round(total x tcs_rate)
  seller_gross    = subtotal + addons - discount
  net_to_seller   = seller_gross - commission - tcs
"""

from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from app.core.config import get_settings
from app.core.exceptions import ValidationError
from app.models.enums import BookingFormat, PaymentMethod

settings = get_settings()

BASIS_POINTS = 10000
PAISE_PER_RUPEE = 100
_PAISA = Decimal("0.01")


def round_half_up(amount: int, rate_bp: int) -> int:
    """amount x rate_bp / 10000, rounded half-up to a whole paisa."""
    return (amount * rate_bp + BASIS_POINTS // 2) // BASIS_POINTS


def rupees_to_paise(rupees) -> int:
    value = Decimal(str(rupees)).quantize(_PAISA, rounding=ROUND_HALF_UP)
    return int(value * PAISE_PER_RUPEE)


def paise_to_rupees(paise: int) -> Decimal:
    return (Decimal(paise) / PAISE_PER_RUPEE).quantize(_PAISA)


def format_amount(paise: int, currency: str = "INR") -> str:
    symbol = "₹" if currency == "INR" else f"{currency} "
    return f"{symbol}{paise_to_rupees(paise):,.2f}"


def quantity_for_format(booking_format: BookingFormat, participant_count: int, total_days: int) -> int:
    """
    Billing quantity per format.

    batch / slot:   participants
    day_rental:     days
    slot_rental:    days x participants
    """
    if booking_format in (BookingFormat.BATCH, BookingFormat.SLOT):
        return participant_count
    if booking_format == BookingFormat.DAY_RENTAL:
        return total_days
    return total_days * participant_count


@dataclass(frozen=True)
class BreakdownInput:
    booking_format: BookingFormat
    base_price: int
    quantity: int
    addons_amount: int = 0
    discount_amount: int = 0
    amount_paid_online: Optional[int] = None
    payment_method: PaymentMethod = PaymentMethod.ONLINE
    tax_rate_bp: Optional[int] = None
    advance_booking_rate_bp: Optional[int] = None
    platform_commission_rate_bp: Optional[int] = None
    tcs_rate_bp: Optional[int] = None
    # Per-day prices for date-range formats; replaces base_price x days.
    daily_prices: Sequence[int] = field(default_factory=tuple)
    units_per_day: int = 1


@dataclass(frozen=True)
class Breakdown:
    base_price: int
    quantity: int
    subtotal_amount: int
    addons_amount: int
    discount_amount: int
    taxable_amount: int
    tax_rate_bp: int
    tax_amount: int
    total_amount: int
    amount_paid_online: int
    amount_to_collect_offline: int
    payment_method: PaymentMethod
    platform_commission_rate_bp: int
    platform_commission: int
    tcs_rate_bp: int
    tcs_amount: int
    seller_gross_earnings: int
    net_payable_to_seller: int

    def as_dict(self) -> dict:
        data = asdict(self)
        data["payment_method"] = self.payment_method.value
        return data

    def snapshot(self) -> dict:
        """Customer-facing subset embedded on the booking row."""
        return {
            "subtotal": self.subtotal_amount,
            "addons": self.addons_amount,
            "discount": self.discount_amount,
            "tax": self.tax_amount,
            "taxRateBp": self.tax_rate_bp,
            "total": self.total_amount,
            "paidNow": self.amount_paid_online,
            "pendingAtVenue": self.amount_to_collect_offline,
            "currency": settings.CURRENCY,
        }


def _check_rate(name: str, value: int) -> None:
    if not 0 <= value <= BASIS_POINTS:
        raise ValidationError(f"{name} must be between 0 and {BASIS_POINTS} basis points", fields=[name])


def calculate_breakdown(data: BreakdownInput) -> Breakdown:
    """
    Compute the authoritative payment breakdown for one booking.

    Pure: no I/O, no settings lookups beyond defaults for unset rates.
    Raises ValidationError on non-positive price/quantity, out-of-range
    rates, negative addons/discount, or a discount larger than the
    amount it discounts.
    """
    tax_rate = settings.DEFAULT_TAX_RATE_BP if data.tax_rate_bp is None else data.tax_rate_bp
    advance_rate = (
        settings.DEFAULT_ADVANCE_BOOKING_RATE_BP
        if data.advance_booking_rate_bp is None
        else data.advance_booking_rate_bp
    )
    commission_rate = (
        settings.PLATFORM_COMMISSION_RATE_BP
        if data.platform_commission_rate_bp is None
        else data.platform_commission_rate_bp
    )
    tcs_rate = settings.TCS_RATE_BP if data.tcs_rate_bp is None else data.tcs_rate_bp

    if data.base_price <= 0:
        raise ValidationError("basePrice must be positive", fields=["basePrice"])
    if data.quantity <= 0:
        raise ValidationError("quantity must be positive", fields=["quantity"])
    _check_rate("taxRate", tax_rate)
    _check_rate("advanceBookingRate", advance_rate)
    _check_rate("platformCommissionRate", commission_rate)
    _check_rate("tcsRate", tcs_rate)
    if data.addons_amount < 0:
        raise ValidationError("addonsAmount cannot be negative", fields=["addonsAmount"])
    if data.discount_amount < 0:
        raise ValidationError("discountAmount cannot be negative", fields=["discountAmount"])

    if data.daily_prices:
        if any(price <= 0 for price in data.daily_prices):
            raise ValidationError("daily prices must be positive", fields=["dailyPrices"])
        if data.units_per_day <= 0:
            raise ValidationError("unitsPerDay must be positive", fields=["unitsPerDay"])
        subtotal = sum(data.daily_prices) * data.units_per_day
    else:
        subtotal = data.base_price * data.quantity

    if data.discount_amount > subtotal + data.addons_amount:
        raise ValidationError("discountAmount exceeds subtotal plus addons", fields=["discountAmount"])

    taxable = subtotal + data.addons_amount - data.discount_amount
    tax = round_half_up(taxable, tax_rate)
    total = taxable + tax

    if data.amount_paid_online is None:
        paid_online = round_half_up(total, advance_rate)
    else:
        if not 0 <= data.amount_paid_online <= total:
            raise ValidationError(
                "amountPaidNow must be between 0 and the total amount", fields=["amountPaidNow"]
            )
        paid_online = data.amount_paid_online
    offline = max(0, total - paid_online)

    commission = round_half_up(subtotal, commission_rate)
    tcs = round_half_up(total, tcs_rate)
    seller_gross = subtotal + data.addons_amount - data.discount_amount

    return Breakdown(
        base_price=data.base_price,
        quantity=data.quantity,
        subtotal_amount=subtotal,
        addons_amount=data.addons_amount,
        discount_amount=data.discount_amount,
        taxable_amount=taxable,
        tax_rate_bp=tax_rate,
        tax_amount=tax,
        total_amount=total,
        amount_paid_online=paid_online,
        amount_to_collect_offline=offline,
        payment_method=data.payment_method,
        platform_commission_rate_bp=commission_rate,
        platform_commission=commission,
        tcs_rate_bp=tcs_rate,
        tcs_amount=tcs,
        seller_gross_earnings=seller_gross,
        net_payable_to_seller=seller_gross - commission - tcs,
    )
