"""Families API - households of customers.

Invariants:
    - A family needs a non-empty name
    - Members must be existing customers; unknown ids are a 400
    - Deleting a family keeps its customers
"""

from tests.factories import make_customer


async def _family(client, headers, **body):
    res = await client.post("/families", json={"name": "Srisuk", **body}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


async def test_family_crud(client, test_db, users, headers):
    dad = await make_customer(test_db, "Prasert")
    mum = await make_customer(test_db, "Wilai")
    son = await make_customer(test_db, "Tawan")

    family = await _family(
        client, headers["sales"],
        phone_number="0811111111",
        line_id="srisuk.home",
        customer_ids=[dad.id, mum.id],
    )
    assert family["line_id"] == "srisuk.home"
    assert sorted(c["id"] for c in family["customers"]) == sorted([dad.id, mum.id])

    res = await client.put(
        f"/families/{family['id']}",
        json={"note": "Prefers twin rooms", "customer_ids": [dad.id, mum.id, son.id]},
        headers=headers["sales"],
    )
    assert res.status_code == 200
    body = res.json()
    assert body["note"] == "Prefers twin rooms"
    assert len(body["customers"]) == 3

    res = await client.get(f"/families/{family['id']}", headers=headers["staff"])
    assert res.json()["phone_number"] == "0811111111"

    res = await client.delete(f"/families/{family['id']}", headers=headers["sales"])
    assert res.status_code == 204
    res = await client.get(f"/families/{family['id']}", headers=headers["sales"])
    assert res.status_code == 404
    res = await client.get(f"/customers/{son.id}", headers=headers["sales"])
    assert res.status_code == 200


async def test_family_name_required(client, users, headers):
    res = await client.post("/families", json={"name": "  "}, headers=headers["sales"])
    assert res.status_code == 400

    family = await _family(client, headers["sales"])
    res = await client.put(
        f"/families/{family['id']}", json={"name": None}, headers=headers["sales"],
    )
    assert res.status_code == 400


async def test_unknown_member_rejected(client, users, headers):
    res = await client.post(
        "/families", json={"name": "Ghosts", "customer_ids": [4242]}, headers=headers["sales"],
    )
    assert res.status_code == 400
    assert "4242" in res.json()["detail"]


async def test_list_search_and_member_filter(client, test_db, users, headers):
    anong = await make_customer(test_db, "Anong")
    await _family(client, headers["sales"], name="Chaiyo", customer_ids=[anong.id])
    await _family(client, headers["sales"], name="Rattana", email="rattana@tourdesk.co.th")

    res = await client.get("/families", params={"search": "rattana"}, headers=headers["sales"])
    assert [f["name"] for f in res.json()["data"]] == ["Rattana"]

    res = await client.get("/families", params={"customer_id": anong.id}, headers=headers["sales"])
    assert [f["name"] for f in res.json()["data"]] == ["Chaiyo"]

    res = await client.get("/families", headers=headers["sales"])
    body = res.json()
    assert body["total"] == 2
    assert [f["name"] for f in body["data"]] == ["Chaiyo", "Rattana"]


async def test_requires_authentication(client, users):
    res = await client.get("/families")
    assert res.status_code == 401
