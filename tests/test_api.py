"""HTTP surface tests through httpx.AsyncClient + ASGITransport."""

import pytest

FARMER = "farmer-1"
BUYER = "buyer-1"


@pytest.fixture
def farmer(auth_headers):
    return auth_headers(FARMER)


@pytest.fixture
def buyer(auth_headers):
    return auth_headers(BUYER)


async def _post_listing(client, headers, **overrides):
    body = {"crop": "Tomato", "quantity": 100, "price_per_unit": 20, "location": "Nashik"}
    body.update(overrides)
    resp = await client.post("/api/listings", json=body, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


async def _post_offer(client, headers, listing_id, price=18, quantity=50):
    resp = await client.post(
        f"/api/listings/{listing_id}/offers",
        json={"offer_price": price, "quantity": quantity},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


class TestHealthAndAuth:

    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"

    async def test_anonymous_sign_in_then_me(self, client):
        resp = await client.post("/api/auth/anonymous")
        assert resp.status_code == 200
        token = resp.json()["access_token"]
        uid = resp.json()["uid"]

        me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json() == {"uid": uid, "profile": None}

    async def test_missing_token(self, client):
        resp = await client.get("/api/listings/mine")
        assert resp.status_code == 401

    async def test_garbage_token(self, client):
        resp = await client.get("/api/listings/mine", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401


class TestProfiles:

    async def test_onboarding(self, client, farmer):
        resp = await client.put(
            "/api/users/me",
            json={"name": "Ramesh", "phone": "+919800000001", "role": "farmer"},
            headers=farmer,
        )
        assert resp.status_code == 200
        assert resp.json()["role"] == "farmer"
        assert resp.json()["id"] == FARMER

        me = await client.get("/api/users/me", headers=farmer)
        assert me.json()["name"] == "Ramesh"

    async def test_validation_error_body(self, client, farmer):
        resp = await client.put(
            "/api/users/me",
            json={"name": " ", "phone": "1", "role": "farmer"},
            headers=farmer,
        )
        assert resp.status_code == 422
        assert resp.json() == {"detail": "Enter your name"}

    async def test_unknown_profile(self, client, buyer):
        resp = await client.get("/api/users/nobody", headers=buyer)
        assert resp.status_code == 404
        assert "nobody" in resp.json()["detail"]

    async def test_avatar_upload(self, client, farmer, backend):
        await client.put(
            "/api/users/me",
            json={"name": "Ramesh", "phone": "1", "role": "farmer"},
            headers=farmer,
        )
        resp = await client.post(
            "/api/users/me/avatar",
            files={"file": ("me.png", b"png-bytes", "image/png")},
            headers=farmer,
        )
        assert resp.status_code == 200
        assert resp.json()["url"].endswith(f"users/{FARMER}.png")
        assert f"users/{FARMER}.png" in backend.storage.objects


class TestListings:

    async def test_create_and_browse(self, client, farmer):
        listing_id = await _post_listing(client, farmer)
        await _post_listing(client, farmer, crop="Onion", price_per_unit=18)

        resp = await client.get("/api/listings", params={"q": "tom"})
        assert resp.status_code == 200
        data = resp.json()
        assert [l["id"] for l in data] == [listing_id]
        assert data[0]["pricePerUnit"] == 20.0
        assert data[0]["userId"] == FARMER

    async def test_price_filter(self, client, farmer):
        await _post_listing(client, farmer, price_per_unit=20)
        await _post_listing(client, farmer, price_per_unit=40)
        resp = await client.get("/api/listings", params={"max_price": 30})
        assert [l["pricePerUnit"] for l in resp.json()] == [20.0]

    async def test_invalid_listing(self, client, farmer):
        resp = await client.post(
            "/api/listings",
            json={"crop": "Tomato", "quantity": 0, "price_per_unit": 20},
            headers=farmer,
        )
        assert resp.status_code == 422
        assert "quantity" in resp.json()["detail"]

    async def test_nan_price_rejected(self, client, farmer):
        resp = await client.post(
            "/api/listings",
            content='{"crop": "Tomato", "quantity": 5, "price_per_unit": NaN}',
            headers={**farmer, "Content-Type": "application/json"},
        )
        assert resp.status_code == 422
        assert "pricePerUnit" in resp.json()["detail"]
        assert (await client.get("/api/listings")).json() == []

    async def test_only_owner_can_edit(self, client, farmer, buyer):
        listing_id = await _post_listing(client, farmer)
        resp = await client.patch(f"/api/listings/{listing_id}", json={"price_per_unit": 5}, headers=buyer)
        assert resp.status_code == 403

        resp = await client.patch(f"/api/listings/{listing_id}", json={"price_per_unit": 22}, headers=farmer)
        assert resp.status_code == 200
        assert resp.json()["pricePerUnit"] == 22.0

    async def test_delete(self, client, farmer):
        listing_id = await _post_listing(client, farmer)
        resp = await client.delete(f"/api/listings/{listing_id}", headers=farmer)
        assert resp.status_code == 204
        assert (await client.get(f"/api/listings/{listing_id}")).status_code == 404

    async def test_mine(self, client, farmer, auth_headers):
        listing_id = await _post_listing(client, farmer)
        await _post_listing(client, auth_headers("farmer-2"))
        resp = await client.get("/api/listings/mine", headers=farmer)
        assert [l["id"] for l in resp.json()] == [listing_id]

    async def test_image_upload(self, client, farmer):
        listing_id = await _post_listing(client, farmer)
        resp = await client.post(
            f"/api/listings/{listing_id}/image",
            files={"file": ("tomato.jpg", b"jpeg", "image/jpeg")},
            headers=farmer,
        )
        assert resp.status_code == 200
        listing = (await client.get(f"/api/listings/{listing_id}")).json()
        assert listing["imageUrl"] == resp.json()["url"]


class TestNegotiationFlow:

    async def test_accept_flow(self, client, farmer, buyer):
        listing_id = await _post_listing(client, farmer)
        offer_id = await _post_offer(client, buyer, listing_id)

        pending = await client.get("/api/offers/pending", headers=farmer)
        assert [o["id"] for o in pending.json()] == [offer_id]

        resp = await client.post(
            f"/api/offers/{offer_id}/respond",
            json={"action": "accepted"},
            headers=farmer,
        )
        assert resp.status_code == 200
        tx_id = resp.json()["transaction_id"]
        assert tx_id

        txs = (await client.get("/api/transactions/mine", headers=buyer)).json()
        assert [t["id"] for t in txs] == [tx_id]
        assert txs[0]["totalAmount"] == 900.0

        farmer_txs = (await client.get("/api/transactions/mine", params={"as": "farmer"}, headers=farmer)).json()
        assert [t["id"] for t in farmer_txs] == [tx_id]

        listing = (await client.get(f"/api/listings/{listing_id}")).json()
        assert listing["status"] == "sold"

        assert (await client.get("/api/offers/pending", headers=farmer)).json() == []

    async def test_counter_flow(self, client, farmer, buyer):
        listing_id = await _post_listing(client, farmer)
        offer_id = await _post_offer(client, buyer, listing_id)

        resp = await client.post(
            f"/api/offers/{offer_id}/respond",
            json={"action": "countered", "counter_price": 19.5},
            headers=farmer,
        )
        assert resp.status_code == 200
        assert resp.json()["transaction_id"] is None

        mine = (await client.get("/api/offers/mine", headers=buyer)).json()
        assert mine[0]["status"] == "countered"
        assert mine[0]["counterPrice"] == 19.5

        listing = (await client.get(f"/api/listings/{listing_id}")).json()
        assert listing["status"] == "open"

    async def test_repeat_answer_is_conflict(self, client, farmer, buyer):
        listing_id = await _post_listing(client, farmer)
        offer_id = await _post_offer(client, buyer, listing_id)
        await client.post(f"/api/offers/{offer_id}/respond", json={"action": "rejected"}, headers=farmer)
        resp = await client.post(f"/api/offers/{offer_id}/respond", json={"action": "accepted"}, headers=farmer)
        assert resp.status_code == 409

    async def test_stranger_cannot_respond(self, client, farmer, buyer, auth_headers):
        listing_id = await _post_listing(client, farmer)
        offer_id = await _post_offer(client, buyer, listing_id)
        resp = await client.post(
            f"/api/offers/{offer_id}/respond",
            json={"action": "accepted"},
            headers=auth_headers("someone-else"),
        )
        assert resp.status_code == 403

    async def test_offer_over_available_quantity(self, client, farmer, buyer):
        listing_id = await _post_listing(client, farmer, quantity=10)
        resp = await client.post(
            f"/api/listings/{listing_id}/offers",
            json={"offer_price": 18, "quantity": 11},
            headers=buyer,
        )
        assert resp.status_code == 422

    async def test_listing_offers_owner_only(self, client, farmer, buyer):
        listing_id = await _post_listing(client, farmer)
        await _post_offer(client, buyer, listing_id)
        assert (await client.get(f"/api/listings/{listing_id}/offers", headers=buyer)).status_code == 403
        assert len((await client.get(f"/api/listings/{listing_id}/offers", headers=farmer)).json()) == 1

    async def test_transaction_status(self, client, farmer, buyer):
        listing_id = await _post_listing(client, farmer)
        offer_id = await _post_offer(client, buyer, listing_id)
        tx_id = (await client.post(
            f"/api/offers/{offer_id}/respond", json={"action": "accepted"}, headers=farmer,
        )).json()["transaction_id"]

        resp = await client.post(f"/api/transactions/{tx_id}/status", json={"status": "completed"}, headers=buyer)
        assert resp.status_code == 403

        resp = await client.post(f"/api/transactions/{tx_id}/status", json={"status": "completed"}, headers=farmer)
        assert resp.status_code == 200
        assert resp.json()["status"] == "completed"


class TestDemoSeed:

    async def test_seed_is_idempotent(self, client):
        first = await client.post("/api/demo/seed")
        assert first.status_code == 200
        assert len(first.json()["listing_ids"]) == 4

        second = await client.post("/api/demo/seed")
        assert second.json()["listing_ids"] == []

        listings = (await client.get("/api/listings")).json()
        assert len(listings) == 4
