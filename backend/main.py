"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import account_holders, reporting, splits, transactions
from database import get_session_local, init_db
from logging_config import setup_logging
from services.events import get_event_bus
from services.watchlist_service import WatchlistService

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and attach post-commit subscribers on startup."""
    init_db()

    bus = get_event_bus()
    archiver = WatchlistService.subscribe(bus, get_session_local())
    logger.info("Lot accounting service started")
    yield
    bus.unsubscribe(WatchlistService.TOPIC, archiver)


app = FastAPI(
    title="Lot Ledger",
    description="FIFO tax-lot accounting with realized P/L",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS configuration for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(account_holders.router)
app.include_router(transactions.router)
app.include_router(splits.router)
app.include_router(reporting.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}
