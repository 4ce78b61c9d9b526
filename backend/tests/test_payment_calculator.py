"""
Tests for the integer-paise payment breakdown.
"""

from decimal import Decimal

import pytest

from app.core.exceptions import ValidationError
from app.models.enums import BookingFormat, PaymentMethod
from app.services.payment_calculator import (
    BreakdownInput,
    calculate_breakdown,
    format_amount,
    paise_to_rupees,
    quantity_for_format,
    round_half_up,
    rupees_to_paise,
)


def _batch(**overrides) -> BreakdownInput:
    values = dict(booking_format=BookingFormat.BATCH, base_price=500000, quantity=2, tax_rate_bp=1800)
    values.update(overrides)
    return BreakdownInput(**values)


def test_two_participants_at_5000_rupees():
    """500000 paise x 2 at 18% tax: subtotal 1000000, tax 180000, total 1180000."""
    breakdown = calculate_breakdown(_batch())

    assert breakdown.subtotal_amount == 1000000
    assert breakdown.tax_amount == 180000
    assert breakdown.total_amount == 1180000
    assert breakdown.taxable_amount == 1000000


def test_default_rates_split_and_deductions():
    """Advance 25%, commission 10% of subtotal, TCS 1% of total."""
    breakdown = calculate_breakdown(_batch())

    assert breakdown.amount_paid_online == 295000
    assert breakdown.amount_to_collect_offline == 885000
    assert breakdown.platform_commission == 100000
    assert breakdown.tcs_amount == 11800
    assert breakdown.seller_gross_earnings == 1000000
    assert breakdown.net_payable_to_seller == 888200


def test_addons_and_discount_are_taxed():
    breakdown = calculate_breakdown(_batch(addons_amount=50000, discount_amount=20000))

    assert breakdown.taxable_amount == 1030000
    assert breakdown.tax_amount == 185400
    assert breakdown.total_amount == 1215400
    # Commission is charged on the subtotal only.
    assert breakdown.platform_commission == 100000
    assert breakdown.seller_gross_earnings == 1030000


@pytest.mark.parametrize(
    "base_price,quantity,tax_rate_bp,paid",
    [(333, 1, 1800, None), (99999, 7, 1250, 12345), (1, 1, 5000, 0), (250, 3, 0, None)],
)
def test_parts_always_add_up(base_price, quantity, tax_rate_bp, paid):
    """No paisa is lost between taxable, tax, online and offline parts."""
    breakdown = calculate_breakdown(
        _batch(base_price=base_price, quantity=quantity, tax_rate_bp=tax_rate_bp, amount_paid_online=paid)
    )

    assert breakdown.taxable_amount + breakdown.tax_amount == breakdown.total_amount
    assert breakdown.amount_paid_online + breakdown.amount_to_collect_offline == breakdown.total_amount
    assert (
        breakdown.seller_gross_earnings - breakdown.platform_commission - breakdown.tcs_amount
        == breakdown.net_payable_to_seller
    )


def test_round_half_up():
    assert round_half_up(1, 5000) == 1
    assert round_half_up(1, 4999) == 0
    assert round_half_up(333, 1800) == 60
    assert round_half_up(25, 2000) == 5
    assert round_half_up(0, 1800) == 0


def test_listing_tax_rate_overrides_default():
    breakdown = calculate_breakdown(_batch(tax_rate_bp=500))
    assert breakdown.tax_rate_bp == 500
    assert breakdown.tax_amount == 50000


def test_supplied_online_amount_is_kept():
    breakdown = calculate_breakdown(_batch(amount_paid_online=1180000, payment_method=PaymentMethod.ONLINE))
    assert breakdown.amount_paid_online == 1180000
    assert breakdown.amount_to_collect_offline == 0


def test_daily_prices_replace_base_price():
    """A day rental prices each day separately; an override day costs its own price."""
    breakdown = calculate_breakdown(
        BreakdownInput(
            booking_format=BookingFormat.DAY_RENTAL,
            base_price=200000,
            quantity=3,
            tax_rate_bp=1800,
            daily_prices=(200000, 300000, 200000),
        )
    )
    assert breakdown.subtotal_amount == 700000
    assert breakdown.total_amount == 826000


def test_slot_rental_multiplies_daily_prices_by_participants():
    breakdown = calculate_breakdown(
        BreakdownInput(
            booking_format=BookingFormat.SLOT_RENTAL,
            base_price=100000,
            quantity=4,
            tax_rate_bp=0,
            daily_prices=(100000, 150000),
            units_per_day=2,
        )
    )
    assert breakdown.subtotal_amount == 500000
    assert breakdown.total_amount == 500000


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"base_price": 0}, "basePrice"),
        ({"quantity": 0}, "quantity"),
        ({"tax_rate_bp": 10001}, "taxRate"),
        ({"tax_rate_bp": -1}, "taxRate"),
        ({"advance_booking_rate_bp": 20000}, "advanceBookingRate"),
        ({"addons_amount": -1}, "addonsAmount"),
        ({"discount_amount": -5}, "discountAmount"),
        ({"discount_amount": 1000001}, "discountAmount"),
        ({"amount_paid_online": 1180001}, "amountPaidNow"),
        ({"daily_prices": (100, 0)}, "dailyPrices"),
    ],
)
def test_invalid_input_names_field(overrides, field):
    with pytest.raises(ValidationError) as exc_info:
        calculate_breakdown(_batch(**overrides))
    assert exc_info.value.fields == [field]


def test_quantity_per_format():
    assert quantity_for_format(BookingFormat.BATCH, 3, 5) == 3
    assert quantity_for_format(BookingFormat.SLOT, 2, 1) == 2
    assert quantity_for_format(BookingFormat.DAY_RENTAL, 4, 3) == 3
    assert quantity_for_format(BookingFormat.SLOT_RENTAL, 2, 3) == 6


def test_rupee_conversion_is_exact():
    assert rupees_to_paise("0.1") == 10
    assert rupees_to_paise(0.1 + 0.2) == 30
    assert rupees_to_paise(Decimal("10.005")) == 1001
    assert rupees_to_paise(5000) == 500000
    assert paise_to_rupees(1180000) == Decimal("11800.00")
    assert format_amount(1180000) == "₹11,800.00"


def test_snapshot_keys():
    snapshot = calculate_breakdown(_batch()).snapshot()
    assert snapshot["total"] == 1180000
    assert snapshot["paidNow"] + snapshot["pendingAtVenue"] == snapshot["total"]
    assert snapshot["currency"] == "INR"
