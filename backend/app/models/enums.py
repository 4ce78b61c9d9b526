"""
Closed vocabularies shared by models, services and schemas.

Stored as plain strings (native_enum=False) so the same tables work on
PostgreSQL and SQLite and adding a member never needs an ALTER TYPE.
"""

from enum import Enum

from sqlalchemy import Enum as SAEnum


class UserRole(str, Enum):
    CUSTOMER = "customer"
    OPERATOR = "operator"
    ADMIN = "admin"


class BookingFormat(str, Enum):
    BATCH = "batch"              # multi-day shared batch
    DAY_RENTAL = "day_rental"    # day-wise rental over a date range
    SLOT = "slot"                # single-day slot instance
    SLOT_RENTAL = "slot_rental"  # slot definition + date range


class BookingStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class SettlementStatus(str, Enum):
    PENDING = "PENDING"
    SETTLED = "SETTLED"
    ON_HOLD = "ON_HOLD"


class PaymentMethod(str, Enum):
    ONLINE = "online"
    PARTIAL = "partial"
    PAY_AT_VENUE = "pay_at_venue"


class RescheduleStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    APPROVED_WITH_CHARGE = "approved_with_charge"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class RescheduleDecision(str, Enum):
    APPROVED = "approved"
    APPROVED_WITH_CHARGE = "approved_with_charge"
    REJECTED = "rejected"


class InitiatorRole(str, Enum):
    CUSTOMER = "customer"
    OPERATOR = "operator"
    ADMIN = "admin"


def enum_column(enum_cls: type[Enum]) -> SAEnum:
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
