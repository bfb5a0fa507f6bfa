"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from papertrade.config import settings
from papertrade.database import create_db_and_tables
from papertrade.utils.logging import setup_logging
from papertrade.api import trades, strategies, price, dashboard, system


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    setup_logging()
    create_db_and_tables()
    from papertrade.engine.scheduler import start_scheduler, stop_scheduler
    start_scheduler()

    yield

    stop_scheduler()


app = FastAPI(
    title="Paper Trade Service",
    description="Paper trading of long/short setups against a live price feed",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(trades.router)
app.include_router(strategies.router)
app.include_router(price.router)
app.include_router(dashboard.router)
app.include_router(system.router)
