from decimal import Decimal

from sqlalchemy import func, select

from masscoin.domains.ledger import transfer_requests
from masscoin.domains.ledger.models import Transaction, TransferRequest, Wallet


async def test_sweeper_expires_and_refunds_once(
    service, clock, balance, load_request, bus, notifications
):
    request = await service.create_transfer_request("alice", "bob", Decimal("300"))
    clock.advance(hours=1, seconds=1)

    assert await service.expire_stale_requests() == 1
    assert await service.expire_stale_requests() == 0

    stored = await load_request(request.id)
    assert stored.status == "EXPIRED"
    assert stored.resolved_at == clock.now
    assert await balance("alice") == (Decimal("1000"), Decimal("0"))

    await bus.drain()
    [note] = notifications.for_user("alice")
    assert note["title"] == "Transfer Expired"
    assert note["type"] == "MASS_COIN_TRANSFER_REJECTED"


async def test_sweeper_leaves_live_requests(service, clock, load_request):
    stale = await service.create_transfer_request("alice", "bob", Decimal("10"))
    clock.advance(minutes=30)
    live = await service.create_transfer_request("carol", "bob", Decimal("10"))
    clock.advance(minutes=31)

    assert await service.expire_stale_requests() == 1

    assert (await load_request(stale.id)).status == "EXPIRED"
    assert (await load_request(live.id)).status == "PENDING"


async def test_sweeper_accepts_explicit_time(service, clock, load_request):
    request = await service.create_transfer_request("alice", "bob", Decimal("10"))

    assert await service.expire_stale_requests(now=clock.now) == 0
    assert await service.expire_stale_requests(now=request.expires_at) == 1


async def test_sweeper_respects_batch_size(service, clock):
    for sender in ("alice", "carol", "dave"):
        await service.create_transfer_request(sender, "bob", Decimal("1"))
    clock.advance(hours=2)
    service.sweep_batch_size = 2

    assert await service.expire_stale_requests() == 2
    assert await service.expire_stale_requests() == 1


async def test_sweeper_skips_failing_item(service, clock, balance, load_request, monkeypatch):
    broken = await service.create_transfer_request("alice", "bob", Decimal("100"))
    healthy = await service.create_transfer_request("carol", "bob", Decimal("100"))
    clock.advance(hours=2)

    real_expire = transfer_requests.expire

    async def flaky_expire(db, request_id, now):
        if request_id == broken.id:
            raise RuntimeError("lock timeout")
        return await real_expire(db, request_id, now)

    monkeypatch.setattr(transfer_requests, "expire", flaky_expire)
    assert await service.expire_stale_requests() == 1
    assert (await load_request(broken.id)).status == "PENDING"
    assert (await load_request(healthy.id)).status == "EXPIRED"
    assert await balance("carol") == (Decimal("1000"), Decimal("0"))

    monkeypatch.setattr(transfer_requests, "expire", real_expire)
    assert await service.expire_stale_requests() == 1
    assert await balance("alice") == (Decimal("1000"), Decimal("0"))


async def test_value_is_conserved(service, clock, session_factory):
    await service.create_transfer_request("alice", "bob", Decimal("300"))
    approved = await service.create_transfer_request("carol", "bob", Decimal("40"))
    rejected = await service.create_transfer_request("dave", "alice", Decimal("70"))
    await service.approve_transfer_request("bob", approved.id)
    await service.reject_transfer_request("alice", rejected.id)
    await service.transfer_direct("bob", "carol", Decimal("125.5"))
    await service.tip_content("dave", "post-1", Decimal("9.25"))
    await service.stake("carol", Decimal("200"))
    await service.reward_user("dave", Decimal("30"), "event winner")
    await service.request_withdrawal("bob", Decimal("15"), "paypal", "bob@b.test")
    pending = await service.create_transfer_request("carol", "dave", Decimal("12"))

    async with session_factory() as db:
        held = await db.scalar(
            select(func.sum(Wallet.balance) + func.sum(Wallet.staked_amount))
        )
        escrowed = await db.scalar(
            select(func.sum(TransferRequest.amount)).filter(
                TransferRequest.status == "PENDING"
            )
        )
        issued = await db.scalar(
            select(func.sum(Transaction.amount)).filter(
                Transaction.type.in_(["AIRDROP", "REWARD_DISTRIBUTION"])
            )
        )
        withdrawn = await db.scalar(
            select(func.sum(Transaction.amount)).filter(Transaction.type == "WITHDRAWAL")
        )

    assert escrowed == pending.amount + Decimal("300")
    assert Decimal(held) + Decimal(escrowed) == Decimal(issued) - Decimal(withdrawn)

    clock.advance(hours=2)
    assert await service.expire_stale_requests() == 2

    async with session_factory() as db:
        held_after = await db.scalar(
            select(func.sum(Wallet.balance) + func.sum(Wallet.staked_amount))
        )
    assert Decimal(held_after) == Decimal(issued) - Decimal(withdrawn)
