import re
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import ValidationError
from .models import Booking, PaymentStatus

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_check_in(value: str | None) -> date:
    if not value or not DATE_RE.match(value):
        raise ValidationError("Valid check_in date (YYYY-MM-DD) is required")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError("Valid check_in date (YYYY-MM-DD) is required")


async def room_occupancy(db: AsyncSession, accommodation_id: int, check_in: date) -> int:
    """
    Rooms held by successful bookings that start on `check_in` and run past it.

    A plain read: bookings committed concurrently may or may not be counted.
    """
    stmt = select(func.coalesce(func.sum(Booking.rooms), 0)).where(
        Booking.payment_status == PaymentStatus.SUCCESS.value,
        Booking.accommodation_id == accommodation_id,
        Booking.check_in == check_in,
        Booking.check_out > check_in,
    )
    total = (await db.execute(stmt)).scalar_one()
    return int(total or 0)
