import asyncio
import logging
import smtplib
from dataclasses import asdict, dataclass
from datetime import date, datetime
from email.message import EmailMessage
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .booking_repository import BookingContext, is_valid_email
from .config import Settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"

SUBJECT = "NirwanaStays Resort Booking"


def format_date(value) -> str:
    if not value:
        return "Invalid date"
    if isinstance(value, datetime):
        value = value.date()
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value[:10])
        except ValueError:
            return "Invalid date"
    return value.strftime("%d/%m/%Y")


def money(value) -> str:
    return f"{float(value or 0):.2f}"


@dataclass
class BookingConfirmation:
    email: str
    name: str
    booking_id: int
    booking_date: str
    check_in: str
    check_out: str
    total_price: str
    advance_payable: str
    remaining_amount: str
    full_amount: str
    discount: str
    coupon: str
    mobile: str
    total_person: int
    adults: int
    children: int
    rooms: int
    veg_count: int
    nonveg_count: int
    jain_count: int
    accommodation_name: str
    accommodation_address: str
    latitude: str
    longitude: str
    accommodation_type: str
    owner_email: str
    owner_name: str
    owner_phone: str

    @property
    def is_villa(self) -> bool:
        return self.accommodation_type.strip().lower() == "villa"


def build_confirmation(
    ctx: BookingContext,
    full_amount: float | None = None,
    booked_on: date | None = None,
) -> BookingConfirmation:
    """`booked_on` overrides the creation date, e.g. with the day a payment settled."""
    booking, acc, owner = ctx.booking, ctx.accommodation, ctx.owner

    total = float(booking.total_amount or 0)
    advance = float(booking.advance_amount or 0)
    discount = float(booking.discount or 0)

    return BookingConfirmation(
        email=(booking.guest_email or "").strip(),
        name=booking.guest_name or "",
        booking_id=booking.id,
        booking_date=format_date(booked_on or booking.created_at or date.today()),
        check_in=format_date(booking.check_in),
        check_out=format_date(booking.check_out),
        total_price=money(total - discount),
        advance_payable=money(advance),
        remaining_amount=money(total - advance),
        full_amount=money(full_amount if full_amount is not None else total),
        discount=money(discount),
        coupon=booking.coupon_code or "",
        mobile=booking.guest_phone or "",
        total_person=(booking.adults or 0) + (booking.children or 0),
        adults=booking.adults or 0,
        children=booking.children or 0,
        rooms=booking.rooms or 0,
        veg_count=booking.food_veg or 0,
        nonveg_count=booking.food_nonveg or 0,
        jain_count=booking.food_jain or 0,
        accommodation_name=acc.name if acc else "",
        accommodation_address=(acc.address or "") if acc else "",
        latitude="" if not acc or acc.latitude is None else str(acc.latitude),
        longitude="" if not acc or acc.longitude is None else str(acc.longitude),
        accommodation_type=(acc.type or "resort") if acc else "resort",
        owner_email=(owner.email or "") if owner else "",
        owner_name=(owner.name or "") if owner else "",
        owner_phone=(owner.phone_number or "") if owner else "",
    )


class SmtpMailer:
    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls

    def _send_sync(self, message: EmailMessage):
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send(self, message: EmailMessage):
        await asyncio.to_thread(self._send_sync, message)


class NotificationDispatcher:
    def __init__(self, settings: Settings, mailer):
        self.mailer = mailer
        self.mail_from = settings.mail_from
        self.mail_bcc = settings.mail_bcc
        self.env = Environment(
            loader=FileSystemLoader(TEMPLATE_DIR),
            autoescape=select_autoescape(["html"]),
        )

    def render(self, confirmation: BookingConfirmation) -> str:
        name = "email/villa.html" if confirmation.is_villa else "email/resort.html"
        return self.env.get_template(name).render(**asdict(confirmation))

    def build_message(self, confirmation: BookingConfirmation) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = SUBJECT
        msg["From"] = self.mail_from
        msg["To"] = confirmation.email
        if confirmation.owner_email:
            msg["Cc"] = confirmation.owner_email
        if self.mail_bcc:
            msg["Bcc"] = self.mail_bcc
        msg.set_content(
            f"Booking {confirmation.booking_id} at {confirmation.accommodation_name} is confirmed."
        )
        msg.add_alternative(self.render(confirmation), subtype="html")
        return msg

    async def send_confirmation(self, confirmation: BookingConfirmation) -> bool:
        if not is_valid_email(confirmation.email):
            logger.error("invalid or missing email, aborting mail send: %r", confirmation.email)
            return False

        await self.mailer.send(self.build_message(confirmation))
        logger.info("confirmation email sent booking=%s to=%s", confirmation.booking_id, confirmation.email)
        return True


async def dispatch_best_effort(dispatcher: NotificationDispatcher, confirmation: BookingConfirmation):
    """Runs after the booking is committed; nothing raised here may reach the caller."""
    try:
        await dispatcher.send_confirmation(confirmation)
    except Exception:
        logger.exception("email sending failed (booking already saved) booking=%s", confirmation.booking_id)
