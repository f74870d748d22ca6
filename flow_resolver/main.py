"""
Flow Resolver: payment resolution API.

Decides how a user's payment should be made across their linked e-wallets,
banks, cards and BNPL accounts: which rail pays, whether it needs a top-up
first, and whether the user has to confirm. A second endpoint ranks every
rail with a scored explanation so the user can pick a different one.

Start the server:
    uvicorn flow_resolver.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from flow_resolver.api.funding import router as funding_router
from flow_resolver.api.health import router as health_router
from flow_resolver.api.resolve import router as resolve_router
from flow_resolver.config import settings
from flow_resolver.database import init_db

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup."""
    await init_db()
    yield


app = FastAPI(
    title="Flow Resolver",
    description=(
        "Payment resolution engine for multi-rail consumer payments. "
        "Chooses a funding source, plans top-ups within the user's guardrails "
        "and explains every decision."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(funding_router, prefix="/api")
app.include_router(resolve_router, prefix="/api")
