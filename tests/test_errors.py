from dataclasses import replace

import pytest
from httpx import ASGITransport, AsyncClient

from stays_admin.main import create_app


async def post_invalid_booking(settings, mailer):
    app = create_app(settings, mailer=mailer, start_sweeper=False)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            return await c.post("/bookings", json={"guest_name": "Asha", "adults": "many"})
    finally:
        await app.state.engine.dispose()


@pytest.mark.parametrize("app_env, has_details", [("development", True), ("production", False)])
async def test_error_details_hidden_in_production(settings, mailer, app_env, has_details):
    res = await post_invalid_booking(replace(settings, app_env=app_env), mailer)

    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert body["error"] == "Invalid request"
    assert ("details" in body) is has_details
