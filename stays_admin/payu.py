"""
PayU hosted-checkout integration.

Outbound: build the signed form the browser posts to ``{gateway}/_payment``.
Inbound: PayU posts the transaction result back to our success/failure URLs;
the reverse hash is checked before the reported status is trusted.
"""
import hashlib
import hmac
import logging
import math
import re
from collections.abc import Mapping
from dataclasses import dataclass

from .booking_repository import BookingContext, BookingRepository, new_txn_id
from .config import Settings
from .errors import NotFoundError, ValidationError
from .models import PaymentStatus
from .schemas import PaymentInitRequest

logger = logging.getLogger(__name__)

UDF_FIELDS = [f"udf{i}" for i in range(1, 11)]

PRODUCTINFO_MAX = 100
FIRSTNAME_MAX = 60
EMAIL_MAX = 50


def sha512_hex(value: str) -> str:
    return hashlib.sha512(value.encode("utf-8")).hexdigest()


def format_amount(amount: float) -> str:
    return f"{amount:.2f}"


def payable_amounts(booking) -> set[str]:
    """Amounts a guest may pay for `booking`: the advance, or the full total with or without discount."""
    total = float(booking.total_amount or 0)
    candidates = (booking.advance_amount, total, total - float(booking.discount or 0))
    return {format_amount(float(v)) for v in candidates if v}


def clean_phone(phone) -> str:
    return re.sub(r"\D", "", str(phone)) if phone is not None else ""


@dataclass
class Reconciliation:
    """Where to send the payer, and the booking to confirm by email if this callback settled it."""

    outcome: str
    context: BookingContext | None = None


class PayUBridge:
    def __init__(self, settings: Settings):
        self._key = settings.payu_merchant_key
        self._salt = settings.payu_merchant_salt
        self.payment_url = f"{settings.payu_base_url.rstrip('/')}/_payment"
        self._callback_base = f"{settings.admin_base_url.rstrip('/')}/bookings"
        self._frontend = settings.frontend_base_url.rstrip("/")

    # ---- hashing ----

    def request_hash(self, txnid: str, amount: str, productinfo: str, firstname: str, email: str,
                     udfs: Mapping[str, str] | None = None) -> str:
        udfs = udfs or {}
        parts = [self._key, txnid, amount, productinfo, firstname, email]
        parts += [udfs.get(name, "") for name in UDF_FIELDS]
        parts.append(self._salt)
        return sha512_hex("|".join(parts))

    def response_hash(self, form: Mapping[str, str]) -> str:
        """Reverse hash PayU sends back: salt first, key last, udfs in descending order."""
        parts = [self._salt, form.get("status", "")]
        parts += [form.get(name, "") for name in reversed(UDF_FIELDS)]
        parts += [
            form.get("email", ""),
            form.get("firstname", ""),
            form.get("productinfo", ""),
            form.get("amount", ""),
            form.get("txnid", ""),
            self._key,
        ]
        additional = form.get("additionalCharges")
        if additional:
            parts.insert(0, additional)
        return sha512_hex("|".join(parts))

    def verify_callback(self, txnid: str, form: Mapping[str, str]) -> bool:
        posted = (form.get("hash") or "").lower()
        if not posted:
            logger.warning("payu callback without hash txn=%s", txnid)
            return False

        if form.get("txnid") != txnid:
            logger.warning("payu callback txnid mismatch path=%s form=%s", txnid, form.get("txnid"))
            return False

        expected = self.response_hash(form)
        if not hmac.compare_digest(expected, posted):
            logger.warning("payu hash mismatch, possible tampering txn=%s", txnid)
            return False

        return form.get("status", "").lower() == "success"

    # ---- urls ----

    def success_callback_url(self, txnid: str) -> str:
        return f"{self._callback_base}/success/verify/{txnid}"

    def failure_callback_url(self, txnid: str) -> str:
        return f"{self._callback_base}/failed/verify/{txnid}"

    def frontend_result_url(self, outcome: str, txnid: str) -> str:
        return f"{self._frontend}/payment/{outcome}/{txnid}"

    # ---- initiate ----

    async def initiate(self, repo: BookingRepository, data: PaymentInitRequest) -> dict:
        if not data.amount or not data.firstname or not data.email or not data.booking_id or not data.productinfo:
            raise ValidationError("Missing required payment parameters")

        try:
            numeric_amount = float(data.amount)
        except (TypeError, ValueError):
            raise ValidationError("Invalid amount")
        if not math.isfinite(numeric_amount) or numeric_amount <= 0:
            raise ValidationError("Invalid amount")
        amount = format_amount(numeric_amount)

        phone = clean_phone(data.phone)
        if len(phone) != 10:
            raise ValidationError("Valid 10-digit phone required")

        booking = await repo.get_pending(data.booking_id)
        if not booking:
            raise NotFoundError("Pending booking not found")
        if amount not in payable_amounts(booking):
            raise ValidationError("Amount does not match booking", detail=amount)

        txnid = new_txn_id("PAYU")
        productinfo = data.productinfo[:PRODUCTINFO_MAX]
        firstname = data.firstname[:FIRSTNAME_MAX]
        email = data.email[:EMAIL_MAX]
        udfs = {name: "" for name in UDF_FIELDS}

        digest = self.request_hash(txnid, amount, productinfo, firstname, email, udfs)

        await repo.assign_txn(booking.id, txnid)
        logger.info("payu payment initiated booking=%s txn=%s amount=%s", booking.id, txnid, amount)

        return {
            "payu_url": self.payment_url,
            "payment_data": {
                "key": self._key,
                "txnid": txnid,
                "amount": amount,
                "productinfo": productinfo,
                "firstname": firstname,
                "email": email,
                "phone": phone,
                "surl": self.success_callback_url(txnid),
                "furl": self.failure_callback_url(txnid),
                "hash": digest,
                "currency": "INR",
                **udfs,
            },
        }

    # ---- callbacks ----

    async def reconcile_success(self, repo: BookingRepository, txnid: str, form: Mapping[str, str]) -> Reconciliation:
        if not self.verify_callback(txnid, form):
            return Reconciliation("failed")

        if await repo.mark_success(txnid):
            logger.info("payment success txn=%s", txnid)
            return Reconciliation("success", await repo.details(txnid))

        booking = await repo.get_by_txn(txnid)
        if booking and booking.payment_status == PaymentStatus.SUCCESS.value:
            logger.info("repeated success callback txn=%s, nothing to do", txnid)
            return Reconciliation("success")

        logger.warning(
            "success callback for booking that is not pending txn=%s status=%s",
            txnid, booking.payment_status if booking else None,
        )
        return Reconciliation("failed")
