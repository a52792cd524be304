import re
from decimal import Decimal

import pytest

from masscoin.domains.ledger import wallet_store
from masscoin.domains.ledger.exceptions import (
    InsufficientFunds,
    InsufficientStake,
    InvalidAmount,
    InvalidState,
    UserNotFound,
    WalletNotFound,
)


async def test_new_wallet_gets_signup_airdrop(service, balance, ledger_rows):
    wallet = await service.get_or_create_wallet("alice")

    assert wallet.user_id == "alice"
    assert await balance("alice") == (Decimal("1000"), Decimal("0"))
    rows = await ledger_rows("alice")
    assert len(rows) == 1
    airdrop = rows[0]
    assert airdrop.type == "AIRDROP"
    assert airdrop.status == "CONFIRMED"
    assert airdrop.sender_id is None
    assert airdrop.amount == Decimal("1000")
    assert airdrop.description == "Welcome bonus - 1000 Mass Coins"


async def test_get_or_create_is_idempotent(service, ledger_rows):
    first = await service.get_or_create_wallet("alice")
    second = await service.get_or_create_wallet("alice")

    assert first.id == second.id
    assert first.wallet_address == second.wallet_address
    assert len(await ledger_rows("alice", "AIRDROP")) == 1


async def test_get_or_create_reuses_row_inside_one_session(session_factory):
    async with session_factory() as db:
        wallet, created = await wallet_store.get_or_create(db, "bob")
        again, created_again = await wallet_store.get_or_create(db, "bob")
        await db.commit()

    assert created is True
    assert created_again is False
    assert again.id == wallet.id


async def test_unknown_user_gets_no_wallet(service, balance):
    with pytest.raises(UserNotFound):
        await service.get_or_create_wallet("mallory")
    assert await balance("mallory") is None


def test_wallet_address_format():
    address = wallet_store.generate_wallet_address()
    assert re.fullmatch(r"MC[0-9A-F]{32}", address)
    assert address != wallet_store.generate_wallet_address()


async def test_stake_and_unstake_move_between_balances(service, balance, ledger_rows):
    wallet = await service.stake("alice", Decimal("300"))
    assert (wallet.balance, wallet.staked_amount) == (Decimal("700"), Decimal("300"))

    wallet = await service.unstake("alice", "100")
    assert (wallet.balance, wallet.staked_amount) == (Decimal("800"), Decimal("200"))

    # Staking is internal bookkeeping, not a value movement
    assert len(await ledger_rows("alice")) == 1


async def test_stake_more_than_balance(service, balance):
    await service.get_or_create_wallet("alice")
    with pytest.raises(InsufficientFunds):
        await service.stake("alice", Decimal("1000.01"))
    assert await balance("alice") == (Decimal("1000"), Decimal("0"))


async def test_unstake_more_than_staked(service, balance):
    await service.stake("alice", Decimal("50"))
    with pytest.raises(InsufficientStake):
        await service.unstake("alice", Decimal("51"))
    assert await balance("alice") == (Decimal("950"), Decimal("50"))


@pytest.mark.parametrize(
    "amount", [0, -5, "abc", None, "NaN", "0.00001", "1.00005", "1E16"]
)
async def test_stake_rejects_invalid_amounts(service, amount):
    with pytest.raises(InvalidAmount):
        await service.stake("alice", amount)


async def test_adjust_never_goes_negative(session_factory):
    async with session_factory() as db:
        await wallet_store.get_or_create(db, "carol")
        with pytest.raises(InsufficientFunds):
            await wallet_store.adjust(db, "carol", Decimal("-1000.0001"))
        wallet = await wallet_store.adjust(db, "carol", Decimal("-1000"))
        assert wallet.balance == Decimal("0")
        await db.rollback()


async def test_adjust_missing_wallet(session_factory):
    async with session_factory() as db:
        with pytest.raises(WalletNotFound):
            await wallet_store.adjust(db, "nobody", Decimal("5"))


async def test_update_wallet_address(service):
    await service.get_or_create_wallet("alice")
    wallet = await service.update_wallet_address("alice", "MC-ALICE-CUSTOM")
    assert wallet.wallet_address == "MC-ALICE-CUSTOM"


async def test_update_wallet_address_requires_wallet(service):
    with pytest.raises(WalletNotFound):
        await service.update_wallet_address("alice", "MC-ANY")


async def test_update_wallet_address_must_be_unique(service):
    alice = await service.get_or_create_wallet("alice")
    await service.get_or_create_wallet("bob")

    with pytest.raises(InvalidState):
        await service.update_wallet_address("bob", alice.wallet_address)


@pytest.mark.parametrize("amount", ["0.0001", "1.5000", "12.3456"])
async def test_stake_accepts_four_decimal_places(service, amount):
    wallet = await service.stake("alice", amount)

    assert wallet.staked_amount == Decimal(amount)
