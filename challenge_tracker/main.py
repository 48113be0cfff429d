import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stdout,
)

from challenge_tracker.api import accounts, challenges, health, notifications, payouts, prop_firms
from challenge_tracker.core.config import settings
from challenge_tracker.db.session import async_session_factory, engine
from challenge_tracker.services.providers.metacopier_provider import MetaCopierProvider
from challenge_tracker.services.runtime import create_runtime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("=== CHALLENGE TRACKER STARTUP BEGIN ===")
    runtime = create_runtime(MetaCopierProvider(), session_factory=async_session_factory)
    app.state.tracker = runtime
    if settings.POLLING_ENABLED:
        runtime.start_polling()
    else:
        logger.warning("Polling disabled, accounts refresh only on demand")
    logger.info("=== CHALLENGE TRACKER STARTUP COMPLETE ===")

    yield

    await runtime.shutdown()
    await engine.dispose()


app = FastAPI(
    title="Challenge Tracker",
    description="Monitoraggio delle challenge prop firm su account MetaCopier",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(accounts.router)
app.include_router(challenges.router)
app.include_router(notifications.router)
app.include_router(payouts.router)
app.include_router(prop_firms.router)
