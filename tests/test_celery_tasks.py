import pytest

from masscoin.core import database
from masscoin.core.celery import celery_app
from masscoin.domains.ledger.service import ledger_service
from masscoin.tasks import expiry_sweeper
from masscoin.tasks.expiry_sweeper import expire_stale_transfer_requests


def test_sweep_task_no_event_loop_crash(monkeypatch):
    async def fake_sweep(): return 3
    monkeypatch.setattr(expiry_sweeper, "sweep_expired_requests", fake_sweep)
    assert expire_stale_transfer_requests() == 3


def test_sweep_task_reraises_when_called_directly(monkeypatch):
    async def boom(): raise RuntimeError('db down')
    monkeypatch.setattr(expiry_sweeper, "sweep_expired_requests", boom)
    with pytest.raises(RuntimeError):
        expire_stale_transfer_requests()


def test_sweep_is_on_beat_schedule():
    entry = celery_app.conf.beat_schedule['expire-stale-transfer-requests']
    assert entry['task'] == expire_stale_transfer_requests.name
    assert entry['schedule'] > 0


async def test_sweep_cleans_up_after_failure(monkeypatch):
    calls = []

    async def initialize(): calls.append('initialize')
    async def expire(): raise RuntimeError('boom')
    async def shutdown(): calls.append('shutdown')
    async def close_db(): calls.append('close_db')

    monkeypatch.setattr(ledger_service, "initialize", initialize)
    monkeypatch.setattr(ledger_service, "expire_stale_requests", expire)
    monkeypatch.setattr(ledger_service, "shutdown", shutdown)
    monkeypatch.setattr(database, "close_db", close_db)

    with pytest.raises(RuntimeError):
        await expiry_sweeper.sweep_expired_requests()
    assert calls == ['initialize', 'shutdown', 'close_db']
