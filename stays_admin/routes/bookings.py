import logging
import math
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ..availability import parse_check_in, room_occupancy
from ..booking_repository import BookingRepository, serialize_booking
from ..db import get_db
from ..errors import InternalError, NotFoundError, ValidationError
from ..notifications import build_confirmation, dispatch_best_effort
from ..rbac import admin_user
from ..schemas import (
    BookingFields,
    BookingStatusUpdate,
    ManualMailerRequest,
    OfflineBookingFields,
    PaymentInitRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])


def get_repo(db: AsyncSession = Depends(get_db)) -> BookingRepository:
    return BookingRepository(db)


@router.get("", dependencies=[Depends(admin_user)])
async def list_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: str | None = None,
    payment_status: str | None = None,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    repo: BookingRepository = Depends(get_repo),
):
    data, total = await repo.list_bookings(
        search=search,
        payment_status=payment_status or status,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return {
        "success": True,
        "data": data,
        "pagination": {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit),
        },
    }


@router.post("")
async def create_booking(data: BookingFields, repo: BookingRepository = Depends(get_repo)):
    booking = await repo.create(data)
    return {
        "success": True,
        "data": {
            "booking_id": booking.id,
            "payment_txn_id": booking.payment_txn_id,
            "payment_status": booking.payment_status,
        },
    }


@router.post("/offline", dependencies=[Depends(admin_user)])
async def create_offline_booking(
    data: OfflineBookingFields,
    request: Request,
    background_tasks: BackgroundTasks,
    repo: BookingRepository = Depends(get_repo),
):
    ctx = await repo.create_offline(data)

    # mail goes out after the response; the booking is already committed
    confirmation = build_confirmation(ctx, full_amount=data.full_amount)
    background_tasks.add_task(dispatch_best_effort, request.app.state.notifier, confirmation)

    owner_email = ctx.owner.email if ctx.owner else None
    booking = serialize_booking(
        ctx.booking,
        accommodation_name=ctx.accommodation.name,
        accommodation_type=ctx.accommodation.type,
        owner_email=owner_email,
    )
    return {"success": True, "data": {"booking": booking, "owner_email": owner_email}}


@router.delete("/delete/{booking_id}", dependencies=[Depends(admin_user)])
async def delete_booking(booking_id: int, repo: BookingRepository = Depends(get_repo)):
    await repo.delete(booking_id)
    return {"success": True, "message": "Booking deleted successfully"}


@router.post("/payments/payu")
async def initiate_payu_payment(
    data: PaymentInitRequest,
    request: Request,
    repo: BookingRepository = Depends(get_repo),
):
    payload = await request.app.state.payu.initiate(repo, data)
    return {"success": True, **payload}


def _form_fields(form) -> dict[str, str]:
    return {k: v for k, v in form.items() if isinstance(v, str)}


@router.post("/success/verify/{txnid}")
async def payu_success_callback(
    txnid: str,
    request: Request,
    background_tasks: BackgroundTasks,
    repo: BookingRepository = Depends(get_repo),
):
    bridge = request.app.state.payu
    try:
        form = _form_fields(await request.form())
        result = await bridge.reconcile_success(repo, txnid, form)
        if result.context is not None:
            confirmation = build_confirmation(result.context, booked_on=date.today())
            background_tasks.add_task(dispatch_best_effort, request.app.state.notifier, confirmation)
    except Exception:
        logger.exception("payment verification error txn=%s", txnid)
        return RedirectResponse(bridge.frontend_result_url("failed", txnid), status_code=302)

    return RedirectResponse(bridge.frontend_result_url(result.outcome, txnid), status_code=302)


@router.post("/failed/verify/{txnid}")
async def payu_failure_callback(txnid: str, request: Request):
    logger.info("payment failed callback txn=%s", txnid)
    return RedirectResponse(
        request.app.state.payu.frontend_result_url("failed", txnid),
        status_code=302,
    )


@router.get("/details/{txnid}")
async def booking_details(txnid: str, repo: BookingRepository = Depends(get_repo)):
    ctx = await repo.details(txnid)
    acc, owner = ctx.accommodation, ctx.owner

    accommodation = {}
    if acc is not None:
        accommodation = {
            "name": acc.name,
            "address": acc.address,
            "latitude": acc.latitude,
            "longitude": acc.longitude,
            "owner_id": acc.owner_id,
            "type": acc.type,
        }

    return {
        "booking": serialize_booking(ctx.booking),
        "accommodation": accommodation,
        "ownerEmail": owner.email if owner else None,
        "ownerName": owner.name if owner else None,
        "ownerMobile": owner.phone_number if owner else None,
        "bookedDate": date.today().isoformat(),
    }


@router.post("/manualMailer", dependencies=[Depends(admin_user)])
async def resend_confirmation(
    data: ManualMailerRequest,
    request: Request,
    repo: BookingRepository = Depends(get_repo),
):
    if not data.txn_id:
        raise ValidationError("Transaction ID (txn_id) is required")

    ctx = await repo.details(data.txn_id)
    if ctx.accommodation is None:
        raise NotFoundError("Accommodation not found")
    if ctx.owner is None:
        raise NotFoundError("Owner not found")

    recipient = (ctx.booking.guest_email or "").strip()
    if not recipient:
        raise ValidationError("Guest email not found for this booking")

    try:
        sent = await request.app.state.notifier.send_confirmation(build_confirmation(ctx))
    except Exception as e:
        logger.exception("manual mail failed txn=%s", data.txn_id)
        raise InternalError("Failed to send email", detail=str(e))

    if not sent:
        raise ValidationError("Invalid email format")

    return {
        "success": True,
        "message": "Email sent successfully",
        "data": {
            "email": recipient,
            "booking_id": ctx.booking.id,
            "transaction_id": data.txn_id,
        },
    }


@router.put("/{booking_id}/status", dependencies=[Depends(admin_user)])
async def update_booking_status(
    booking_id: int,
    data: BookingStatusUpdate,
    repo: BookingRepository = Depends(get_repo),
):
    await repo.update_status(booking_id, data.payment_status)
    return {"success": True, "message": "Payment status updated"}


@router.get("/room-occupancy")
async def get_room_occupancy(
    check_in: str | None = None,
    accommodation_id: int | None = Query(None, alias="id"),
    db: AsyncSession = Depends(get_db),
):
    day = parse_check_in(check_in)
    if accommodation_id is None:
        raise ValidationError("Accommodation id is required")

    total = await room_occupancy(db, accommodation_id, day)
    return {"success": True, "date": day.isoformat(), "total_rooms": total}
