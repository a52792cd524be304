from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import masscoin.domains.ledger.models  # noqa: F401
from masscoin import Base
from masscoin.core.event_bus import EventBus
from masscoin.domains.ledger import wallet_store
from masscoin.domains.ledger.entities import UserProfile
from masscoin.domains.ledger.exceptions import UserNotFound
from masscoin.domains.ledger.models import Transaction, TransferRequest
from masscoin.domains.ledger.service import LedgerService

USERS = {
    "alice": UserProfile("alice", "Alice Liddell", "https://cdn.test/alice.png"),
    "bob": UserProfile("bob", "Bob Stone"),
    "carol": UserProfile("carol", "Carol White"),
    "dave": UserProfile("dave", "Dave Green"),
}
POSTS = {"post-1": "bob", "post-alice": "alice"}
REELS = {"reel-1": "carol"}


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeIdentity:
    async def find_user(self, user_id):
        if user_id not in USERS:
            raise UserNotFound(user_id)
        return USERS[user_id]


class FakeContent:
    async def find_post_owner(self, content_id):
        return POSTS.get(content_id)

    async def find_reel_owner(self, content_id):
        return REELS.get(content_id)


class RecordingSink:
    def __init__(self):
        self.sent = []
        self.fail = False

    async def notify(self, **kwargs):
        if self.fail:
            raise RuntimeError("notification service down")
        self.sent.append(kwargs)

    def for_user(self, user_id):
        return [n for n in self.sent if n["user_id"] == user_id]


class RecordingChat:
    def __init__(self):
        self.posted = []

    async def post_transfer_message(self, **kwargs):
        self.posted.append(kwargs)


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(eng.sync_engine, "connect")
    def _no_implicit_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(eng.sync_engine, "begin")
    def _explicit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 1, 1, 12, 0, 0))


@pytest.fixture
def notifications():
    return RecordingSink()


@pytest.fixture
def chat():
    return RecordingChat()


@pytest.fixture
def bus():
    return EventBus(handler_timeout=1.0)


@pytest_asyncio.fixture
async def service(session_factory, bus, clock, notifications, chat):
    svc = LedgerService(
        session_factory=session_factory,
        identity=FakeIdentity(),
        content=FakeContent(),
        bus=bus,
        clock=clock,
        signup_grant=Decimal("1000"),
        transfer_ttl=timedelta(hours=1),
        sweep_batch_size=100,
    )
    await svc.initialize(notifications=notifications, chat=chat)
    yield svc
    await svc.shutdown()


@pytest.fixture
def balance(session_factory):
    """Current (balance, staked_amount) of a user's wallet, or None"""

    async def _balance(user_id):
        async with session_factory() as db:
            wallet = await wallet_store.get(db, user_id)
            if wallet is None:
                return None
            return wallet.balance, wallet.staked_amount

    return _balance


@pytest.fixture
def ledger_rows(session_factory):
    """All transactions touching a user, optionally filtered by type"""

    async def _rows(user_id, tx_type=None):
        async with session_factory() as db:
            query = select(Transaction).filter(
                (Transaction.sender_id == user_id) | (Transaction.recipient_id == user_id)
            )
            if tx_type is not None:
                query = query.filter(Transaction.type == tx_type)
            return list((await db.execute(query)).scalars().all())

    return _rows


@pytest.fixture
def load_request(session_factory):
    async def _load(request_id):
        async with session_factory() as db:
            return await db.get(TransferRequest, request_id)

    return _load
