from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from masscoin.core import (
    celery,
    config,
    database,
    event_bus,
    exception_handlers,
    redis,
)
from masscoin.domains import ledger
from masscoin.domains.ledger.service import ledger_service

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    event_bus.init_event_bus()
    await database.init_db()
    await ledger_service.initialize()
    yield
    await ledger_service.shutdown()
    await redis.RedisManager.close()
    await database.close_db()


app = FastAPI(title="MassCoin Ledger", version=VERSION, lifespan=lifespan)

exception_handlers.setup_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ledger.router, prefix="/api/masscoin", tags=["MassCoin"])


@app.get("/health")
async def health():
    services = {
        "database": await database.check_connection(),
        "redis": await redis.check_connection(),
        "rabbitmq": await celery.check_connection(),
    }
    status = "healthy" if all(services.values()) else "degraded"
    return {
        "status": status,
        "services": services,
        "version": VERSION,
        "token_ticker": config.settings.TOKEN_TICKER,
    }
