"""End-to-end tests through the HTTP layer."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from vendorhub.api.deps import get_notifier
from vendorhub.core.database import get_db
from vendorhub.core.security import create_access_token
from vendorhub.main import app


def auth(actor_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(actor_id)}"}


@pytest_asyncio.fixture
async def client(session_factory, notifier):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create_product(client, supplier_id="supplier-1", price="40.00", quantity=100, **extra):
    response = await client.post(
        "/api/v1/products",
        json={"name": "Onions", "price": price, "available_quantity": quantity, **extra},
        headers=auth(supplier_id),
    )
    assert response.status_code == 201
    return response.json()


class TestAuthentication:
    """Test bearer token handling."""

    @pytest.mark.asyncio
    async def test_missing_token_rejected(self, client):
        response = await client.get("/api/v1/wallet")

        assert response.status_code in (401, 403)

    @pytest.mark.asyncio
    async def test_invalid_token_rejected(self, client):
        response = await client.get(
            "/api/v1/wallet", headers={"Authorization": "Bearer garbage"}
        )

        assert response.status_code == 401


class TestProductsApi:
    """Test catalog endpoints."""

    @pytest.mark.asyncio
    async def test_create_and_fetch(self, client):
        product = await create_product(client, supplier_id="supplier-9", price="12.50")

        response = await client.get(f"/api/v1/products/{product['product_id']}")

        assert response.status_code == 200
        body = response.json()
        assert body["supplier_id"] == "supplier-9"
        assert Decimal(body["price"]) == Decimal("12.50")

    @pytest.mark.asyncio
    async def test_unknown_product(self, client):
        response = await client.get(f"/api/v1/products/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_rejects_non_positive_price(self, client):
        response = await client.post(
            "/api/v1/products",
            json={"name": "Free", "price": "0", "available_quantity": 1},
            headers=auth("supplier-1"),
        )

        assert response.status_code == 422


class TestOrderLifecycleApi:
    """Test place, pay, deliver through the API."""

    @pytest.mark.asyncio
    async def test_pay_and_deliver(self, client, notifier):
        product = await create_product(client)
        buyer = auth("vendor-1")

        top_up = await client.post("/api/v1/wallet/top-up", json={"amount": "500.00"}, headers=buyer)
        assert top_up.status_code == 200

        placed = await client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": product["product_id"], "quantity": 2}]},
            headers=buyer,
        )
        assert placed.status_code == 201
        order_id = placed.json()["order_ids"][0]

        paid = await client.post(f"/api/v1/orders/{order_id}/pay", headers=buyer)
        assert paid.status_code == 200
        assert paid.json()["payment_status"] == "paid"

        wallet = (await client.get("/api/v1/wallet", headers=buyer)).json()
        assert Decimal(wallet["balance"]) == Decimal("420.00")
        assert Decimal(wallet["escrow_balance"]) == Decimal("80.00")

        delivered = await client.post(
            f"/api/v1/orders/{order_id}/confirm-delivery", headers=auth("supplier-1")
        )
        assert delivered.status_code == 200
        assert delivered.json()["status"] == "delivered"
        assert delivered.json()["payment_status"] == "completed"

        supplier_wallet = (await client.get("/api/v1/wallet", headers=auth("supplier-1"))).json()
        assert Decimal(supplier_wallet["balance"]) == Decimal("80.00")
        assert ("order_delivered", order_id, "delivered", "vendor-1") in notifier.events

    @pytest.mark.asyncio
    async def test_insufficient_funds(self, client):
        product = await create_product(client)
        buyer = auth("vendor-2")
        placed = await client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": product["product_id"], "quantity": 3}]},
            headers=buyer,
        )
        order_id = placed.json()["order_ids"][0]

        response = await client.post(f"/api/v1/orders/{order_id}/pay", headers=buyer)

        assert response.status_code == 402
        assert response.json()["detail"]["code"] == "INSUFFICIENT_FUNDS"

    @pytest.mark.asyncio
    async def test_client_cannot_set_price(self, client):
        product = await create_product(client, price="40.00")
        buyer = auth("vendor-1")

        response = await client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": product["product_id"], "quantity": 2, "price": "0.01"}]},
            headers=buyer,
        )

        assert response.status_code == 422
        mine = (await client.get("/api/v1/orders", headers=buyer)).json()
        assert mine["total"] == 0

    @pytest.mark.asyncio
    async def test_order_priced_from_catalog(self, client):
        product = await create_product(client, price="40.00")
        buyer = auth("vendor-1")
        placed = await client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": product["product_id"], "quantity": 2}]},
            headers=buyer,
        )
        order_id = placed.json()["order_ids"][0]

        order = (await client.get(f"/api/v1/orders/{order_id}", headers=buyer)).json()

        assert Decimal(order["items"][0]["unit_price"]) == Decimal("40.00")
        assert Decimal(order["total_amount"]) == Decimal("80.00")

    @pytest.mark.asyncio
    async def test_insufficient_stock(self, client):
        product = await create_product(client, quantity=3)

        response = await client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": product["product_id"], "quantity": 4}]},
            headers=auth("vendor-1"),
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "INSUFFICIENT_STOCK"
        assert detail["message"] == "Insufficient stock for Onions. Available: 3"

    @pytest.mark.asyncio
    async def test_order_hidden_from_other_users(self, client):
        product = await create_product(client)
        placed = await client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": product["product_id"], "quantity": 1}]},
            headers=auth("vendor-1"),
        )
        order_id = placed.json()["order_ids"][0]

        response = await client.get(f"/api/v1/orders/{order_id}", headers=auth("vendor-3"))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_only_buyer_can_cancel(self, client):
        product = await create_product(client)
        placed = await client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": product["product_id"], "quantity": 1}]},
            headers=auth("vendor-1"),
        )
        order_id = placed.json()["order_ids"][0]

        response = await client.post(f"/api/v1/orders/{order_id}/cancel", headers=auth("vendor-3"))

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"


class TestGroupOrdersApi:
    """Test group-buy endpoints."""

    @pytest.mark.asyncio
    async def test_close_requires_enough_members(self, client):
        product = await create_product(client)
        deadline = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()

        created = await client.post(
            "/api/v1/group-orders",
            json={
                "title": "Weekly onions",
                "leader_name": "Asha",
                "deadline": deadline,
                "products": [
                    {"product_id": product["product_id"], "target_quantity": 30, "initial_quantity": 5}
                ],
            },
            headers=auth("leader-1"),
        )
        assert created.status_code == 201
        group_id = created.json()["group_order_id"]

        response = await client.post(f"/api/v1/group-orders/{group_id}/close", headers=auth("leader-1"))

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INSUFFICIENT_MEMBERS"

    @pytest.mark.asyncio
    async def test_join_appears_in_member_listing(self, client):
        product = await create_product(client)
        deadline = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
        created = await client.post(
            "/api/v1/group-orders",
            json={
                "title": "Weekly onions",
                "leader_name": "Asha",
                "deadline": deadline,
                "products": [{"product_id": product["product_id"], "target_quantity": 30}],
            },
            headers=auth("leader-1"),
        )
        group_id = created.json()["group_order_id"]

        joined = await client.post(
            f"/api/v1/group-orders/{group_id}/join",
            json={"updates": [{"product_id": product["product_id"], "quantity": 4}]},
            headers=auth("vendor-5"),
        )
        assert joined.status_code == 200

        mine = await client.get("/api/v1/group-orders/mine", headers=auth("vendor-5"))
        assert [g["group_order_id"] for g in mine.json()["group_orders"]] == [group_id]

    @pytest.mark.asyncio
    async def test_rejects_inverted_member_bounds(self, client):
        response = await client.post(
            "/api/v1/group-orders",
            json={
                "title": "Bad",
                "leader_name": "Asha",
                "deadline": datetime.now(timezone.utc).isoformat(),
                "products": [{"product_id": str(uuid4()), "target_quantity": 1}],
                "min_members": 5,
                "max_members": 2,
            },
            headers=auth("leader-1"),
        )

        assert response.status_code == 422


class TestInvitationsApi:
    """Test invitation endpoints."""

    @pytest.mark.asyncio
    async def test_invite_and_accept(self, client):
        product = await create_product(client)
        deadline = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
        created = await client.post(
            "/api/v1/group-orders",
            json={
                "title": "Weekly onions",
                "leader_name": "Asha",
                "deadline": deadline,
                "products": [
                    {"product_id": product["product_id"], "target_quantity": 30, "initial_quantity": 5}
                ],
            },
            headers=auth("leader-1"),
        )
        group_id = created.json()["group_order_id"]

        sent = await client.post(
            f"/api/v1/group-orders/{group_id}/invitations",
            json={"method": "email", "contact": "friend@example.com"},
            headers=auth("leader-1"),
        )
        assert sent.status_code == 201
        invitation_id = sent.json()["invitation_id"]
        assert sent.json()["status"] == "pending"

        accepted = await client.post(
            f"/api/v1/invitations/{invitation_id}/accept",
            json={"updates": [{"product_id": product["product_id"], "quantity": 3}]},
            headers=auth("vendor-7"),
        )
        assert accepted.status_code == 200
        assert accepted.json()["member_ids"] == ["leader-1", "vendor-7"]

        listed = await client.get(
            f"/api/v1/group-orders/{group_id}/invitations", headers=auth("vendor-7")
        )
        assert listed.status_code == 200
        [invitation] = listed.json()["invitations"]
        assert invitation["status"] == "accepted"
        assert invitation["accepted_by"] == "vendor-7"

        again = await client.post(
            f"/api/v1/invitations/{invitation_id}/decline", headers=auth("vendor-8")
        )
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "INVALID_STATE"

    @pytest.mark.asyncio
    async def test_invalid_email_rejected(self, client):
        response = await client.post(
            f"/api/v1/group-orders/{uuid4()}/invitations",
            json={"method": "email", "contact": "not-an-email"},
            headers=auth("leader-1"),
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_non_leader_cannot_invite(self, client):
        product = await create_product(client)
        deadline = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
        created = await client.post(
            "/api/v1/group-orders",
            json={
                "title": "Weekly onions",
                "leader_name": "Asha",
                "deadline": deadline,
                "products": [{"product_id": product["product_id"], "target_quantity": 30}],
            },
            headers=auth("leader-1"),
        )
        group_id = created.json()["group_order_id"]

        response = await client.post(
            f"/api/v1/group-orders/{group_id}/invitations",
            json={"method": "sms", "contact": "+91 98765 43210"},
            headers=auth("vendor-2"),
        )

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"
