"""
Importing this package registers every table on Base.metadata and lets the
string-based relationship() targets resolve.
"""

from app.models.user import User
from app.models.listing import Listing, SlotDefinition
from app.models.inventory import (
    BatchSlot,
    InventoryBlockedDate,
    InventoryDateOverride,
    InventoryDateRange,
    ListingSlot,
    SlotInstance,
)
from app.models.booking import Booking, InventoryHolds, InventoryRef
from app.models.booking_payment import BookingPayment
from app.models.reschedule import Reschedule

__all__ = [
    "User",
    "Listing", "SlotDefinition",
    "ListingSlot", "BatchSlot", "SlotInstance",
    "InventoryDateRange", "InventoryDateOverride", "InventoryBlockedDate",
    "Booking", "InventoryHolds", "InventoryRef", "BookingPayment",
    "Reschedule",
]
