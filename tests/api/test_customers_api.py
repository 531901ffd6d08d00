"""Customers API - customers with tags, passports and interactions.

Invariants:
    - A customer's first passport becomes primary; at most one primary
    - Tag names are unique (case-insensitive)
    - A customer with bookings cannot be deleted
"""

from datetime import date, timedelta

from tests.factories import make_customer, make_trip


async def _tag(client, headers, name):
    res = await client.post("/tags", json={"name": name}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


async def test_customer_crud_with_tags(client, users, headers):
    vip = await _tag(client, headers["sales"], "VIP")
    repeat = await _tag(client, headers["sales"], "Repeat")

    res = await client.post(
        "/customers",
        json={
            "first_name_en": "Suda",
            "last_name_en": "Wong",
            "first_name_th": "สุดา",
            "last_name_th": "วงศ์",
            "phone_number": "0899999999",
            "tag_ids": [vip["id"]],
        },
        headers=headers["sales"],
    )
    assert res.status_code == 201, res.text
    customer = res.json()
    assert customer["display_name"] == "สุดา วงศ์"
    assert [t["name"] for t in customer["tags"]] == ["VIP"]

    res = await client.put(
        f"/customers/{customer['id']}",
        json={"nickname": "Su", "tag_ids": [repeat["id"]]},
        headers=headers["sales"],
    )
    assert res.status_code == 200
    assert res.json()["nickname"] == "Su"
    assert [t["name"] for t in res.json()["tags"]] == ["Repeat"]

    res = await client.get("/customers", params={"tag_id": repeat["id"]}, headers=headers["sales"])
    assert res.json()["total"] == 1
    res = await client.get("/customers", params={"tag_id": vip["id"]}, headers=headers["sales"])
    assert res.json()["total"] == 0

    res = await client.delete(f"/customers/{customer['id']}", headers=headers["sales"])
    assert res.status_code == 204


async def test_unknown_tag_rejected(client, users, headers):
    res = await client.post(
        "/customers",
        json={"first_name_en": "A", "last_name_en": "B", "tag_ids": [999]},
        headers=headers["sales"],
    )
    assert res.status_code == 400


async def test_customer_title(client, users, headers):
    res = await client.post(
        "/customers",
        json={"first_name_en": "Mali", "last_name_en": "Dee", "title": "miss"},
        headers=headers["sales"],
    )
    assert res.status_code == 201, res.text
    customer = res.json()
    assert customer["title"] == "miss"

    res = await client.put(
        f"/customers/{customer['id']}", json={"title": "mrs"}, headers=headers["sales"],
    )
    assert res.json()["title"] == "mrs"

    res = await client.post(
        "/customers",
        json={"first_name_en": "Mali", "last_name_en": "Dee", "title": "dr"},
        headers=headers["sales"],
    )
    assert res.status_code == 422


async def test_tag_names_unique_case_insensitive(client, users, headers):
    await _tag(client, headers["sales"], "Family")
    res = await client.post("/tags", json={"name": "family"}, headers=headers["sales"])
    assert res.status_code == 409


async def test_tag_list_counts_customers(client, users, headers):
    tag = await _tag(client, headers["sales"], "Golf")
    for name in ("One", "Two"):
        await client.post(
            "/customers",
            json={"first_name_en": name, "last_name_en": "X", "tag_ids": [tag["id"]]},
            headers=headers["sales"],
        )

    res = await client.get("/tags", headers=headers["sales"])
    assert res.json() == [{"id": tag["id"], "name": "Golf", "customer_count": 2}]


async def test_customer_with_booking_cannot_be_deleted(client, test_db, users, headers):
    customer = await make_customer(test_db)
    trip = await make_trip(test_db)
    await client.post(
        "/bookings", json={"customer_id": customer.id, "trip_id": trip.id}, headers=headers["sales"],
    )

    res = await client.delete(f"/customers/{customer.id}", headers=headers["sales"])
    assert res.status_code == 400


async def test_first_passport_is_primary_and_primary_moves(client, test_db, users, headers):
    customer = await make_customer(test_db)
    expiry = (date.today() + timedelta(days=2000)).isoformat()

    res = await client.post(
        "/passports",
        json={"customer_id": customer.id, "passport_number": "AA1", "issuing_country": "Thailand",
              "expiry_date": expiry},
        headers=headers["sales"],
    )
    first = res.json()
    assert first["is_primary"] is True

    res = await client.post(
        "/passports",
        json={"customer_id": customer.id, "passport_number": "AA2", "issuing_country": "Thailand",
              "expiry_date": expiry, "is_primary": True},
        headers=headers["sales"],
    )
    second = res.json()
    assert second["is_primary"] is True

    res = await client.get("/passports", params={"customer_id": customer.id}, headers=headers["sales"])
    primary = {p["passport_number"]: p["is_primary"] for p in res.json()}
    assert primary == {"AA1": False, "AA2": True}

    res = await client.get(f"/customers/{customer.id}", headers=headers["sales"])
    assert len(res.json()["passports"]) == 2


async def test_passport_dates_validated(client, test_db, users, headers):
    customer = await make_customer(test_db)

    res = await client.post(
        "/passports",
        json={"customer_id": customer.id, "passport_number": "AA1", "issuing_country": "Thailand",
              "issue_date": "2030-01-01", "expiry_date": "2029-01-01"},
        headers=headers["sales"],
    )
    assert res.status_code == 422


async def test_interactions(client, test_db, users, headers):
    customer = await make_customer(test_db)

    res = await client.post(
        f"/customers/{customer.id}/interactions",
        json={"type": "line", "content": "Asked about visa for Japan"},
        headers=headers["sales"],
    )
    assert res.status_code == 201
    assert res.json()["agent_name"] == "Somchai Sales"

    res = await client.get(f"/customers/{customer.id}/interactions", headers=headers["sales"])
    assert [i["type"] for i in res.json()] == ["line"]
