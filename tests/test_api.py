from decimal import Decimal

import httpx
import pytest_asyncio

from masscoin.domains.ledger.dependencies import get_ledger_service
from masscoin.main import app
from masscoin.shared.utils.security import create_access_token

PREFIX = "/api/masscoin"


def auth(user_id, is_admin=False):
    token = create_access_token({"sub": user_id, "is_admin": is_admin})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(service):
    app.dependency_overrides[get_ledger_service] = lambda: service
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def test_wallet_requires_token(client):
    r = await client.get(f"{PREFIX}/wallet")
    assert r.status_code == 401

    r = await client.get(f"{PREFIX}/wallet", headers={"Authorization": "Bearer garbage"})
    assert r.status_code == 401


async def test_get_wallet(client):
    r = await client.get(f"{PREFIX}/wallet", headers=auth("alice"))
    assert r.status_code == 200
    body = r.json()
    assert body["user_id"] == "alice"
    assert Decimal(body["balance"]) == Decimal("1000")
    assert body["wallet_address"].startswith("MC")


async def test_transfer_request_flow(client):
    r = await client.post(
        f"{PREFIX}/transfer-requests",
        json={"recipient_id": "bob", "amount": "300", "message": "lunch"},
        headers=auth("alice"),
    )
    assert r.status_code == 201
    request = r.json()
    assert request["status"] == "PENDING"
    assert request["context_type"] == "NONE"
    assert request["context_id"] is None

    r = await client.get(f"{PREFIX}/transfer-requests/count", headers=auth("bob"))
    assert r.json() == {"pending": 1}
    r = await client.get(f"{PREFIX}/transfer-requests", headers=auth("bob"))
    assert [item["id"] for item in r.json()] == [request["id"]]

    r = await client.post(
        f"{PREFIX}/transfer-requests/{request['id']}/approve", headers=auth("alice")
    )
    assert r.status_code == 403
    assert r.json()["code"] == "unauthorized"

    r = await client.post(
        f"{PREFIX}/transfer-requests/{request['id']}/approve", headers=auth("bob")
    )
    assert r.status_code == 200
    assert r.json()["type"] == "P2P_TRANSFER"
    assert r.json()["description"] == "lunch"

    r = await client.post(
        f"{PREFIX}/transfer-requests/{request['id']}/reject", headers=auth("bob")
    )
    assert r.status_code == 409
    assert r.json()["detail"] == "Request is not pending"


async def test_duplicate_transfer_request(client):
    payload = {"recipient_id": "bob", "amount": "10"}
    r = await client.post(f"{PREFIX}/transfer-requests", json=payload, headers=auth("alice"))
    assert r.status_code == 201

    r = await client.post(f"{PREFIX}/transfer-requests", json=payload, headers=auth("alice"))
    assert r.status_code == 409
    assert r.json() == {
        "detail": "Transfer request already exists",
        "code": "duplicate_request",
    }


async def test_expired_request(client, clock):
    r = await client.post(
        f"{PREFIX}/transfer-requests",
        json={"recipient_id": "bob", "amount": "5"},
        headers=auth("alice"),
    )
    clock.advance(hours=3)

    r = await client.post(
        f"{PREFIX}/transfer-requests/{r.json()['id']}/approve", headers=auth("bob")
    )
    assert r.status_code == 410
    assert r.json()["code"] == "expired"


async def test_direct_transfer_errors(client):
    r = await client.post(
        f"{PREFIX}/transfer",
        json={"recipient_id": "bob", "amount": "5000"},
        headers=auth("alice"),
    )
    assert r.status_code == 400
    assert r.json()["code"] == "insufficient_funds"

    r = await client.post(
        f"{PREFIX}/transfer",
        json={"recipient_id": "bob", "amount": "-3"},
        headers=auth("alice"),
    )
    assert r.status_code == 422

    r = await client.post(
        f"{PREFIX}/transfer",
        json={"recipient_id": "bob", "amount": "0.00001"},
        headers=auth("alice"),
    )
    assert r.status_code == 422

    r = await client.post(
        f"{PREFIX}/transfer",
        json={"recipient_id": "mallory", "amount": "3"},
        headers=auth("alice"),
    )
    assert r.status_code == 404
    assert r.json()["code"] == "user_not_found"


async def test_tip_endpoint(client):
    r = await client.post(
        f"{PREFIX}/tip",
        json={"content_id": "post-1", "amount": "2.5", "description": "nice"},
        headers=auth("alice"),
    )
    assert r.status_code == 201
    assert r.json()["type"] == "CONTENT_TIP"
    assert r.json()["recipient_id"] == "bob"

    r = await client.post(
        f"{PREFIX}/tip",
        json={"content_id": "post-alice", "amount": "1"},
        headers=auth("alice"),
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "You cannot tip yourself"


async def test_stake_and_withdraw(client):
    r = await client.post(f"{PREFIX}/stake", json={"amount": "100"}, headers=auth("carol"))
    assert Decimal(r.json()["staked_amount"]) == Decimal("100")

    r = await client.post(f"{PREFIX}/unstake", json={"amount": "500"}, headers=auth("carol"))
    assert r.status_code == 400
    assert r.json()["code"] == "insufficient_stake"

    r = await client.post(
        f"{PREFIX}/withdrawals",
        json={
            "amount": "50",
            "method": "paypal",
            "destination": "carol@b.test",
            "metadata": {"note": "rent"},
        },
        headers=auth("carol"),
    )
    assert r.status_code == 201
    assert r.json()["details"] == {"note": "rent"}

    r = await client.get(f"{PREFIX}/withdrawals", headers=auth("carol"))
    assert len(r.json()) == 1

    r = await client.get(f"{PREFIX}/wallet", headers=auth("carol"))
    assert Decimal(r.json()["balance"]) == Decimal("850")


async def test_history_and_stats(client):
    await client.post(
        f"{PREFIX}/tip", json={"content_id": "reel-1", "amount": "4"}, headers=auth("dave")
    )

    r = await client.get(f"{PREFIX}/transactions?page=0&size=1", headers=auth("dave"))
    body = r.json()
    assert body["total"] == 2
    assert body["size"] == 1
    assert len(body["items"]) == 1

    r = await client.get(f"{PREFIX}/stats", headers=auth("dave"))
    assert r.json()["total_tips_sent"] == 1


async def test_reward_requires_admin(client):
    payload = {"user_id": "bob", "amount": "25", "reason": "Bug bounty"}

    r = await client.post(f"{PREFIX}/admin/reward", json=payload, headers=auth("alice"))
    assert r.status_code == 403

    r = await client.post(
        f"{PREFIX}/admin/reward", json=payload, headers=auth("alice", is_admin=True)
    )
    assert r.status_code == 201
    assert r.json()["type"] == "REWARD_DISTRIBUTION"
    assert r.json()["sender_id"] is None
