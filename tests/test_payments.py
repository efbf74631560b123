from datetime import date, timedelta

import pytest
from sqlalchemy import update

from conftest import booking_payload, fetch_booking
from stays_admin.models import Booking, utcnow
from stays_admin.payu import PayUBridge, sha512_hex

FRONTEND = "https://nirwanastays.com"


@pytest.fixture
def bridge(app):
    return app.state.payu


async def create_booking(client, accommodation_id) -> dict:
    res = await client.post("/bookings", json=booking_payload(accommodation_id))
    return res.json()["data"]


def signed_form(bridge: PayUBridge, txnid: str, status: str = "success", **overrides) -> dict:
    form = {
        "txnid": txnid,
        "status": status,
        "amount": "1500.00",
        "productinfo": "Lakeside Camp",
        "firstname": "Asha",
        "email": "asha@example.com",
        "mihpayid": "403993715521",
    }
    form.update(overrides)
    form["hash"] = bridge.response_hash(form)
    return form


async def test_initiate_builds_signed_payload(app, client, accommodation, bridge):
    booking = await create_booking(client, accommodation.id)

    res = await client.post("/bookings/payments/payu", json={
        "amount": "1500",
        "firstname": "Asha",
        "email": "asha@example.com",
        "phone": "98765 43210",
        "booking_id": booking["booking_id"],
        "productinfo": "Lakeside Camp",
    })

    assert res.status_code == 200
    body = res.json()
    assert body["payu_url"] == "https://test.payu.in/_payment"

    data = body["payment_data"]
    txnid = data["txnid"]
    assert txnid.startswith("PAYU-")
    assert data["amount"] == "1500.00"
    assert data["phone"] == "9876543210"
    assert data["currency"] == "INR"
    assert data["key"] == "TESTKEY"
    assert data["surl"] == f"https://api.nirwanastays.com/admin/bookings/success/verify/{txnid}"
    assert data["furl"] == f"https://api.nirwanastays.com/admin/bookings/failed/verify/{txnid}"
    assert all(data[f"udf{i}"] == "" for i in range(1, 11))

    expected = sha512_hex(f"TESTKEY|{txnid}|1500.00|Lakeside Camp|Asha|asha@example.com|" + "|" * 10 + "TESTSALT")
    assert data["hash"] == expected

    stored = await fetch_booking(app, id=booking["booking_id"])
    assert stored.payment_txn_id == txnid


async def test_initiate_truncates_long_fields(client, accommodation):
    booking = await create_booking(client, accommodation.id)

    res = await client.post("/bookings/payments/payu", json={
        "amount": 5999.999,
        "firstname": "A" * 80,
        "email": "asha@example.com",
        "phone": 9876543210,
        "booking_id": booking["booking_id"],
        "productinfo": "P" * 150,
    })

    data = res.json()["payment_data"]
    assert data["amount"] == "6000.00"
    assert len(data["firstname"]) == 60
    assert len(data["productinfo"]) == 100


@pytest.mark.parametrize("override, error", [
    ({"firstname": None}, "Missing required payment parameters"),
    ({"amount": "abc"}, "Invalid amount"),
    ({"amount": "-5"}, "Invalid amount"),
    ({"amount": "Infinity"}, "Invalid amount"),
    ({"amount": "1e400"}, "Invalid amount"),
    ({"amount": "NaN"}, "Invalid amount"),
    ({"amount": "100"}, "Amount does not match booking"),
    ({"phone": "12345"}, "Valid 10-digit phone required"),
])
async def test_initiate_rejects_bad_input(client, accommodation, override, error):
    booking = await create_booking(client, accommodation.id)
    payload = {
        "amount": "1500",
        "firstname": "Asha",
        "email": "asha@example.com",
        "phone": "9876543210",
        "booking_id": booking["booking_id"],
        "productinfo": "Lakeside Camp",
    }
    payload.update(override)

    res = await client.post("/bookings/payments/payu", json=payload)

    assert res.status_code == 400
    assert res.json()["error"] == error


async def test_initiate_requires_pending_booking(client):
    res = await client.post("/bookings/payments/payu", json={
        "amount": "1500",
        "firstname": "Asha",
        "email": "asha@example.com",
        "phone": "9876543210",
        "booking_id": 12345,
        "productinfo": "Lakeside Camp",
    })

    assert res.status_code == 404
    assert res.json()["error"] == "Pending booking not found"


async def test_success_callback_settles_booking_and_mails(app, client, accommodation, owner, mailer, bridge):
    txnid = (await create_booking(client, accommodation.id))["payment_txn_id"]

    res = await client.post(f"/bookings/success/verify/{txnid}", data=signed_form(bridge, txnid))

    assert res.status_code == 302
    assert res.headers["location"] == f"{FRONTEND}/payment/success/{txnid}"
    assert (await fetch_booking(app, payment_txn_id=txnid)).payment_status == "success"
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["Cc"] == owner.email


async def test_repeated_success_callback_does_not_mail_twice(client, accommodation, owner, mailer, bridge):
    txnid = (await create_booking(client, accommodation.id))["payment_txn_id"]
    form = signed_form(bridge, txnid)

    await client.post(f"/bookings/success/verify/{txnid}", data=form)
    res = await client.post(f"/bookings/success/verify/{txnid}", data=form)

    assert res.headers["location"] == f"{FRONTEND}/payment/success/{txnid}"
    assert len(mailer.sent) == 1


async def test_tampered_callback_is_rejected(app, client, accommodation, mailer, bridge):
    txnid = (await create_booking(client, accommodation.id))["payment_txn_id"]
    form = signed_form(bridge, txnid)
    form["amount"] = "1.00"

    res = await client.post(f"/bookings/success/verify/{txnid}", data=form)

    assert res.status_code == 302
    assert res.headers["location"] == f"{FRONTEND}/payment/failed/{txnid}"
    assert (await fetch_booking(app, payment_txn_id=txnid)).payment_status == "pending"
    assert mailer.sent == []


async def test_callback_for_other_transaction_is_rejected(app, client, accommodation, bridge):
    txnid = (await create_booking(client, accommodation.id))["payment_txn_id"]
    other = (await create_booking(client, accommodation.id))["payment_txn_id"]

    res = await client.post(f"/bookings/success/verify/{txnid}", data=signed_form(bridge, other))

    assert res.headers["location"] == f"{FRONTEND}/payment/failed/{txnid}"
    assert (await fetch_booking(app, payment_txn_id=txnid)).payment_status == "pending"
    assert (await fetch_booking(app, payment_txn_id=other)).payment_status == "pending"


async def test_signed_failure_status_on_success_url_is_rejected(app, client, accommodation, bridge):
    txnid = (await create_booking(client, accommodation.id))["payment_txn_id"]

    res = await client.post(f"/bookings/success/verify/{txnid}", data=signed_form(bridge, txnid, status="failure"))

    assert res.headers["location"] == f"{FRONTEND}/payment/failed/{txnid}"
    assert (await fetch_booking(app, payment_txn_id=txnid)).payment_status == "pending"


async def test_success_callback_for_expired_booking_redirects_to_failure(app, client, accommodation, bridge, admin_headers):
    created = await create_booking(client, accommodation.id)
    txnid = created["payment_txn_id"]
    await client.put(f"/bookings/{created['booking_id']}/status", json={"payment_status": "expired"}, headers=admin_headers)

    res = await client.post(f"/bookings/success/verify/{txnid}", data=signed_form(bridge, txnid))

    assert res.headers["location"] == f"{FRONTEND}/payment/failed/{txnid}"
    assert (await fetch_booking(app, payment_txn_id=txnid)).payment_status == "expired"


async def test_failure_callback_redirects_without_write(app, client, accommodation):
    txnid = (await create_booking(client, accommodation.id))["payment_txn_id"]

    res = await client.post(f"/bookings/failed/verify/{txnid}", data={"status": "failure"})

    assert res.status_code == 302
    assert res.headers["location"] == f"{FRONTEND}/payment/failed/{txnid}"
    assert (await fetch_booking(app, payment_txn_id=txnid)).payment_status == "pending"


def test_response_hash_prefixes_additional_charges(settings):
    bridge = PayUBridge(settings)
    form = {"txnid": "PAYU-1", "status": "success", "amount": "10.00", "productinfo": "p",
            "firstname": "f", "email": "e@x.io", "additionalCharges": "2.50"}

    expected = sha512_hex("2.50|TESTSALT|success|" + "|" * 10 + "e@x.io|f|p|10.00|PAYU-1|TESTKEY")

    assert bridge.response_hash(form) == expected
    assert bridge.verify_callback("PAYU-1", {**form, "hash": expected.upper()})


def test_callback_without_hash_fails_verification(settings):
    bridge = PayUBridge(settings)
    assert bridge.verify_callback("PAYU-1", {"txnid": "PAYU-1", "status": "success"}) is False


async def test_initiate_does_not_touch_booking_on_wrong_amount(app, client, accommodation):
    booking = await create_booking(client, accommodation.id)

    res = await client.post("/bookings/payments/payu", json={
        "amount": "1",
        "firstname": "Asha",
        "email": "asha@example.com",
        "phone": "9876543210",
        "booking_id": booking["booking_id"],
        "productinfo": "Lakeside Camp",
    })

    assert res.status_code == 400
    stored = await fetch_booking(app, id=booking["booking_id"])
    assert stored.payment_txn_id == booking["payment_txn_id"]


@pytest.mark.parametrize("discount, amount", [(0, "1500"), (0, "6000"), (500, "5500")])
async def test_initiate_accepts_advance_or_full_amount(client, accommodation, discount, amount):
    res = await client.post("/bookings", json=booking_payload(accommodation.id, discount=discount))
    booking_id = res.json()["data"]["booking_id"]

    res = await client.post("/bookings/payments/payu", json={
        "amount": amount,
        "firstname": "Asha",
        "email": "asha@example.com",
        "phone": "9876543210",
        "booking_id": booking_id,
        "productinfo": "Lakeside Camp",
    })

    assert res.status_code == 200


async def test_paid_confirmation_is_dated_on_payment_day(app, client, accommodation, owner, mailer, bridge):
    txnid = (await create_booking(client, accommodation.id))["payment_txn_id"]
    async with app.state.sessionmaker() as session:
        await session.execute(
            update(Booking).where(Booking.payment_txn_id == txnid).values(created_at=utcnow() - timedelta(days=3))
        )
        await session.commit()

    await client.post(f"/bookings/success/verify/{txnid}", data=signed_form(bridge, txnid))

    html = mailer.sent[0].get_body(preferencelist=("html",)).get_content()
    assert date.today().strftime("%d/%m/%Y") in html
