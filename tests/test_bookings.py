from conftest import booking_payload, count_bookings, fetch_booking


async def test_create_booking_is_pending_with_book_token(app, client, accommodation):
    res = await client.post("/bookings", json=booking_payload(accommodation.id))

    assert res.status_code == 200
    body = res.json()
    assert body["success"] is True
    assert body["data"]["payment_status"] == "pending"
    assert body["data"]["payment_txn_id"].startswith("BOOK-")

    stored = await fetch_booking(app, id=body["data"]["booking_id"])
    assert stored.payment_status == "pending"
    assert stored.total_amount == 6000


async def test_checkout_not_after_checkin_is_rejected_and_not_persisted(app, client, accommodation):
    payload = booking_payload(accommodation.id)
    payload["check_out"] = payload["check_in"]

    res = await client.post("/bookings", json=payload)

    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "Check-out must be after check-in"}
    assert await count_bookings(app) == 0


async def test_missing_fields_are_listed(client):
    res = await client.post("/bookings", json={"guest_name": "Asha"})

    assert res.status_code == 400
    assert res.json()["error"] == (
        "Missing required fields: accommodation_id, package_id, check_in, check_out, total_amount"
    )


async def test_zero_adults_rejected(client, accommodation):
    res = await client.post("/bookings", json=booking_payload(accommodation.id, adults=0))

    assert res.status_code == 400
    assert res.json()["error"] == "Must have at least 1 adult and 1 room"


async def test_zero_rooms_rejected(client, accommodation):
    res = await client.post("/bookings", json=booking_payload(accommodation.id, rooms=0))

    assert res.status_code == 400
    assert res.json()["error"] == "Must have at least 1 adult and 1 room"


async def test_negative_advance_rejected(app, client, accommodation):
    res = await client.post("/bookings", json=booking_payload(accommodation.id, advance_amount=-1))

    assert res.status_code == 400
    assert res.json()["error"] == "Invalid amount values"
    assert await count_bookings(app) == 0


async def test_non_positive_total_rejected(client, accommodation):
    res = await client.post("/bookings", json=booking_payload(accommodation.id, total_amount=0))

    assert res.status_code == 400
    assert res.json()["error"] == "Invalid amount values"


async def test_unknown_accommodation_is_404(app, client):
    res = await client.post("/bookings", json=booking_payload(9999))

    assert res.status_code == 404
    assert res.json()["error"] == "Accommodation not found"
    assert await count_bookings(app) == 0


async def test_details_round_trip(client, accommodation, owner):
    created = (await client.post("/bookings", json=booking_payload(accommodation.id))).json()["data"]

    res = await client.get(f"/bookings/details/{created['payment_txn_id']}")

    assert res.status_code == 200
    body = res.json()
    assert body["booking"]["id"] == created["booking_id"]
    assert body["booking"]["guest_name"] == "Asha Rao"
    assert body["accommodation"]["name"] == "Lakeside Camp"
    assert body["ownerEmail"] == owner.email
    assert body["ownerMobile"] == owner.phone_number


async def test_details_unknown_token_is_404(client):
    res = await client.get("/bookings/details/BOOK-missing")
    assert res.status_code == 404


async def test_list_requires_token(client):
    res = await client.get("/bookings")
    assert res.status_code == 401


async def test_list_filters_and_paginates(client, accommodation, admin_headers):
    guests = [("Asha Rao", "rao@example.com"), ("Vikram Shah", "vik@example.com"), ("Asha Menon", "menon@example.com")]
    for name, email in guests:
        await client.post("/bookings", json=booking_payload(accommodation.id, guest_name=name, guest_email=email))

    res = await client.get("/bookings", params={"search": "asha", "limit": 1}, headers=admin_headers)

    assert res.status_code == 200
    body = res.json()
    assert body["pagination"] == {"total": 2, "page": 1, "limit": 1, "totalPages": 2}
    assert len(body["data"]) == 1
    assert body["data"][0]["accommodation_name"] == "Lakeside Camp"
    assert "Asha" in body["data"][0]["guest_name"]


async def test_list_filters_by_status(client, accommodation, admin_headers):
    await client.post("/bookings", json=booking_payload(accommodation.id))

    res = await client.get("/bookings", params={"payment_status": "success"}, headers=admin_headers)

    assert res.json()["pagination"]["total"] == 0


async def test_offline_booking_is_success_and_mails_guest_and_owner(client, accommodation, owner, mailer, admin_headers):
    payload = booking_payload(accommodation.id, full_amount=6500, discount=500, coupon_code="MONSOON")

    res = await client.post("/bookings/offline", json=payload, headers=admin_headers)

    assert res.status_code == 200
    data = res.json()["data"]
    assert data["booking"]["payment_status"] == "success"
    assert data["owner_email"] == owner.email

    assert len(mailer.sent) == 1
    msg = mailer.sent[0]
    assert msg["To"] == "asha@example.com"
    assert msg["Cc"] == owner.email
    assert msg["Bcc"] == "nirwanastays@gmail.com"
    assert msg["Subject"] == "NirwanaStays Resort Booking"
    html = msg.get_body(preferencelist=("html",)).get_content()
    assert "Lakeside Camp" in html
    assert "5500.00" in html  # total less discount
    assert "4500.00" in html  # total less advance


async def test_offline_food_counts_must_match_guests(client, accommodation, admin_headers):
    payload = booking_payload(accommodation.id, food_veg=1, food_nonveg=0)

    res = await client.post("/bookings/offline", json=payload, headers=admin_headers)

    assert res.status_code == 400
    assert res.json()["error"] == "Food preferences must match total guests"


async def test_offline_requires_valid_email(client, accommodation, admin_headers):
    payload = booking_payload(accommodation.id, guest_email="not-an-email")

    res = await client.post("/bookings/offline", json=payload, headers=admin_headers)

    assert res.status_code == 400
    assert res.json()["error"] == "Invalid email format"


async def test_offline_mail_failure_keeps_booking(app, client, accommodation, mailer, admin_headers):
    mailer.fail = True

    res = await client.post("/bookings/offline", json=booking_payload(accommodation.id), headers=admin_headers)

    assert res.status_code == 200
    booking_id = res.json()["data"]["booking"]["id"]
    stored = await fetch_booking(app, id=booking_id)
    assert stored.payment_status == "success"


async def test_update_status(app, client, accommodation, admin_headers):
    created = (await client.post("/bookings", json=booking_payload(accommodation.id))).json()["data"]
    url = f"/bookings/{created['booking_id']}/status"

    assert (await client.put(url, json={}, headers=admin_headers)).json()["error"] == "Payment status is required"
    bad = await client.put(url, json={"payment_status": "refunded"}, headers=admin_headers)
    assert bad.status_code == 400
    assert bad.json()["error"] == "Invalid payment status"

    ok = await client.put(url, json={"payment_status": "failed"}, headers=admin_headers)
    assert ok.status_code == 200
    assert (await fetch_booking(app, id=created["booking_id"])).payment_status == "failed"

    missing = await client.put("/bookings/9999/status", json={"payment_status": "failed"}, headers=admin_headers)
    assert missing.status_code == 404


async def test_delete_booking(app, client, accommodation, admin_headers):
    created = (await client.post("/bookings", json=booking_payload(accommodation.id))).json()["data"]

    res = await client.delete(f"/bookings/delete/{created['booking_id']}", headers=admin_headers)

    assert res.json() == {"success": True, "message": "Booking deleted successfully"}
    assert await count_bookings(app) == 0


async def test_delete_unknown_booking_is_404(client, admin_headers):
    res = await client.delete("/bookings/delete/4242", headers=admin_headers)

    assert res.status_code == 404
    assert res.json() == {"success": False, "error": "Booking not found"}


async def test_manual_mailer_resends(client, accommodation, owner, mailer, admin_headers):
    created = (await client.post("/bookings", json=booking_payload(accommodation.id))).json()["data"]

    res = await client.post(
        "/bookings/manualMailer", json={"txn_id": created["payment_txn_id"]}, headers=admin_headers
    )

    assert res.status_code == 200
    assert res.json()["data"] == {
        "email": "asha@example.com",
        "booking_id": created["booking_id"],
        "transaction_id": created["payment_txn_id"],
    }
    assert len(mailer.sent) == 1


async def test_manual_mailer_errors(client, accommodation, owner, mailer, admin_headers):
    assert (await client.post("/bookings/manualMailer", json={}, headers=admin_headers)).status_code == 400
    unknown = await client.post("/bookings/manualMailer", json={"txn_id": "BOOK-x"}, headers=admin_headers)
    assert unknown.status_code == 404

    created = (await client.post("/bookings", json=booking_payload(accommodation.id))).json()["data"]
    mailer.fail = True
    res = await client.post(
        "/bookings/manualMailer", json={"txn_id": created["payment_txn_id"]}, headers=admin_headers
    )
    assert res.status_code == 500
    assert res.json()["error"] == "Failed to send email"
