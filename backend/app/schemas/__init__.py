from app.schemas.booking import (
    AdminBookingView,
    BookingCreate,
    BookingCreateResponse,
    BookingView,
)
from app.schemas.reschedule import (
    RescheduleInitiate,
    ReschedulePayment,
    RescheduleReview,
    RescheduleView,
)
from app.schemas.inventory import DateRangeCalendar

__all__ = [
    "BookingCreate", "BookingView", "AdminBookingView", "BookingCreateResponse",
    "RescheduleInitiate", "RescheduleReview", "ReschedulePayment", "RescheduleView",
    "DateRangeCalendar",
]
