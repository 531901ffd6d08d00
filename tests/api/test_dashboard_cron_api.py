"""Dashboard counters and the cron-triggered alert run."""

from decimal import Decimal

from tests.factories import make_customer, make_lead, make_trip


async def test_dashboard_counts_and_revenue(client, test_db, users, headers):
    trip = await make_trip(test_db, standard_price=Decimal("10000"))
    pending = await make_customer(test_db, "Pending")
    paying = await make_customer(test_db, "Paying")
    await make_lead(test_db, pending, users["sales"])

    await client.post(
        "/bookings", json={"customer_id": pending.id, "trip_id": trip.id}, headers=headers["sales"],
    )
    res = await client.post(
        "/bookings",
        json={"customer_id": paying.id, "trip_id": trip.id, "first_payment": {"amount": "5000"}},
        headers=headers["sales"],
    )
    assert res.status_code == 201, res.text

    res = await client.get("/dashboard", headers=headers["staff"])
    assert res.status_code == 200
    body = res.json()
    assert body["stats"]["customer_count"] == 2
    assert body["stats"]["active_leads"] == 1
    assert body["stats"]["pending_deposit_bookings"] == 1
    assert Decimal(body["stats"]["revenue"]) == Decimal("5000")
    assert len(body["recent_bookings"]) == 2
    assert body["recent_leads"][0]["customer_name"] == "Pending Traveller"


# ==============================================================================
# Cron
# ==============================================================================


async def test_cron_requires_secret(client, users):
    res = await client.post("/cron/alerts")
    assert res.status_code == 401

    res = await client.post("/cron/alerts", headers={"Authorization": "Bearer wrong"})
    assert res.status_code == 401


async def test_cron_user_token_is_not_enough(client, users, headers):
    res = await client.post("/cron/alerts", headers=headers["super_admin"])
    assert res.status_code == 401


async def test_cron_runs_alerts(client, users):
    res = await client.post("/cron/alerts", headers={"Authorization": "Bearer test-cron-secret"})
    assert res.status_code == 200
    assert res.json() == {
        "passport_alerts": 0, "trip_alerts": 0, "abandoned_leads": 0, "completed_leads": 0,
    }
