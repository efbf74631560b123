import logging
import re
import uuid
from dataclasses import dataclass
from datetime import date

from sqlalchemy import String, cast, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .db import transaction
from .errors import NotFoundError, ValidationError
from .models import Accommodation, Booking, PaymentStatus, User
from .schemas import BookingFields, BookingOut, OfflineBookingFields

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ONLINE_REQUIRED = (
    "guest_name",
    "accommodation_id",
    "package_id",
    "check_in",
    "check_out",
    "total_amount",
)
OFFLINE_REQUIRED = (
    "guest_name",
    "guest_email",
    "accommodation_id",
    "check_in",
    "check_out",
    "total_amount",
)


def new_txn_id(prefix: str = "BOOK") -> str:
    return f"{prefix}-{uuid.uuid4()}"


def is_valid_email(value: str | None) -> bool:
    return bool(value) and isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))


def _missing(data: BookingFields, required) -> list[str]:
    missing = []
    for field in required:
        value = getattr(data, field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    return missing


def validate_booking(data: BookingFields, required=ONLINE_REQUIRED, offline: bool = False):
    missing = _missing(data, required)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    if offline:
        if not is_valid_email(data.guest_email):
            raise ValidationError("Invalid email format")

        total_guests = data.adults + data.children
        total_food = data.food_veg + data.food_nonveg + data.food_jain
        if total_food > 0 and total_food != total_guests:
            raise ValidationError("Food preferences must match total guests")

    if data.check_in >= data.check_out:
        raise ValidationError("Check-out must be after check-in")

    if data.total_amount <= 0 or data.advance_amount < 0:
        raise ValidationError("Invalid amount values")

    if data.adults < 1 or data.rooms < 1:
        raise ValidationError("Must have at least 1 adult and 1 room")


def serialize_booking(booking: Booking, **extra) -> dict:
    body = BookingOut.model_validate(booking).model_dump(mode="json")
    body.update(extra)
    return body


@dataclass
class BookingContext:
    """A booking with the accommodation it references and that accommodation's owner."""

    booking: Booking
    accommodation: Accommodation | None
    owner: User | None


class BookingRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, data: BookingFields) -> Booking:
        validate_booking(data)

        async with transaction(self.db, "create booking"):
            await self._require_accommodation(data.accommodation_id)

            booking = Booking(
                **self._columns(data),
                payment_status=PaymentStatus.PENDING.value,
                payment_txn_id=new_txn_id(),
            )
            self.db.add(booking)
            await self.db.flush()

        logger.info("created booking id=%s txn=%s", booking.id, booking.payment_txn_id)
        return booking

    async def create_offline(self, data: OfflineBookingFields) -> BookingContext:
        validate_booking(data, required=OFFLINE_REQUIRED, offline=True)

        async with transaction(self.db, "create booking"):
            accommodation = await self._require_accommodation(data.accommodation_id)

            booking = Booking(
                **self._columns(data),
                payment_status=PaymentStatus.SUCCESS.value,
                payment_txn_id=new_txn_id(),
            )
            self.db.add(booking)
            await self.db.flush()

            owner = None
            if accommodation.owner_id is not None:
                owner = await self.db.get(User, accommodation.owner_id)

        logger.info("created offline booking id=%s txn=%s", booking.id, booking.payment_txn_id)
        return BookingContext(booking=booking, accommodation=accommodation, owner=owner)

    async def list_bookings(
        self,
        search: str | None = None,
        payment_status: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[dict], int]:
        conditions = []
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(
                Booking.guest_name.ilike(pattern),
                Booking.guest_email.ilike(pattern),
                Booking.guest_phone.ilike(pattern),
                Booking.payment_txn_id.ilike(pattern),
                cast(Booking.id, String).like(pattern),
            ))
        if payment_status:
            conditions.append(Booking.payment_status == payment_status)
        if start_date:
            conditions.append(Booking.check_in >= start_date)
        if end_date:
            conditions.append(Booking.check_in <= end_date)

        stmt = (
            select(Booking, Accommodation.name.label("accommodation_name"))
            .outerjoin(Accommodation, Booking.accommodation_id == Accommodation.id)
            .where(*conditions)
            .order_by(Booking.created_at.desc(), Booking.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        rows = (await self.db.execute(stmt)).all()

        count_stmt = select(func.count(Booking.id)).where(*conditions)
        total = (await self.db.execute(count_stmt)).scalar_one()

        data = [
            serialize_booking(booking, accommodation_name=accommodation_name)
            for booking, accommodation_name in rows
        ]
        return data, total

    async def get_by_txn(self, txnid: str) -> Booking | None:
        res = await self.db.execute(select(Booking).where(Booking.payment_txn_id == txnid))
        return res.scalar_one_or_none()

    async def details(self, txnid: str) -> BookingContext:
        stmt = (
            select(Booking, Accommodation, User)
            .outerjoin(Accommodation, Booking.accommodation_id == Accommodation.id)
            .outerjoin(User, Accommodation.owner_id == User.id)
            .where(Booking.payment_txn_id == txnid)
        )
        row = (await self.db.execute(stmt)).first()
        if not row:
            raise NotFoundError("Booking not found")

        booking, accommodation, owner = row
        return BookingContext(booking=booking, accommodation=accommodation, owner=owner)

    async def get_pending(self, booking_id: int) -> Booking | None:
        res = await self.db.execute(
            select(Booking).where(
                Booking.id == booking_id,
                Booking.payment_status == PaymentStatus.PENDING.value,
            )
        )
        return res.scalar_one_or_none()

    async def assign_txn(self, booking_id: int, txnid: str) -> None:
        async with transaction(self.db, "save transaction id"):
            res = await self.db.execute(
                update(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.payment_status == PaymentStatus.PENDING.value,
                )
                .values(payment_txn_id=txnid)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 0:
                raise NotFoundError("Pending booking not found")

    async def mark_success(self, txnid: str) -> bool:
        """Move a pending booking to success. False when nothing was pending under `txnid`."""
        async with transaction(self.db, "update payment status"):
            res = await self.db.execute(
                update(Booking)
                .where(
                    Booking.payment_txn_id == txnid,
                    Booking.payment_status == PaymentStatus.PENDING.value,
                )
                .values(payment_status=PaymentStatus.SUCCESS.value)
                .execution_options(synchronize_session=False)
            )
        return res.rowcount > 0

    async def update_status(self, booking_id: int, payment_status: str | None) -> None:
        if not payment_status:
            raise ValidationError("Payment status is required")
        if payment_status not in PaymentStatus.values():
            raise ValidationError("Invalid payment status")

        async with transaction(self.db, "update payment status"):
            res = await self.db.execute(
                update(Booking)
                .where(Booking.id == booking_id)
                .values(payment_status=payment_status)
                .execution_options(synchronize_session=False)
            )
            if res.rowcount == 0:
                raise NotFoundError("Booking not found")

    async def delete(self, booking_id: int) -> None:
        async with transaction(self.db, "delete booking"):
            existing = await self.db.get(Booking, booking_id)
            if not existing:
                raise NotFoundError("Booking not found")
            await self.db.execute(delete(Booking).where(Booking.id == booking_id))

        logger.info("deleted booking id=%s", booking_id)

    async def _require_accommodation(self, accommodation_id: int) -> Accommodation:
        accommodation = await self.db.get(Accommodation, accommodation_id)
        if not accommodation:
            raise NotFoundError("Accommodation not found")
        return accommodation

    @staticmethod
    def _columns(data: BookingFields) -> dict:
        return {
            "guest_name": data.guest_name,
            "guest_email": data.guest_email,
            "guest_phone": data.guest_phone or None,
            "accommodation_id": data.accommodation_id,
            "package_id": data.package_id,
            "check_in": data.check_in,
            "check_out": data.check_out,
            "adults": data.adults,
            "children": data.children,
            "rooms": data.rooms,
            "food_veg": data.food_veg or 0,
            "food_nonveg": data.food_nonveg or 0,
            "food_jain": data.food_jain or 0,
            "total_amount": data.total_amount,
            "advance_amount": data.advance_amount,
            "discount": data.discount or 0,
            "coupon_code": data.coupon_code or None,
        }
