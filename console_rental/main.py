from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from console_rental.api.v1 import (
    consoles,
    dashboard,
    expenses,
    health,
    history,
    members,
    pricing,
    products,
    sessions,
)
from console_rental.config.logging import setup_logging
from console_rental.config.settings import Settings
from console_rental.core.utils import to_local
from console_rental.db.database import get_sessionmaker, session_scope
from console_rental.db.models import Base
from console_rental.monitoring.metrics import init_app_info, setup_instrumentator
from console_rental.services.factory import ServiceFactory
from console_rental.services.ticker import SessionTicker

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting console-rental service")
    settings: Settings = app.state.settings

    Base.metadata.create_all(bind=app.state.sessionmaker.kw["bind"])
    with session_scope(app.state.sessionmaker) as session:
        app.state.factory.load_pricing(session, app.state.clock())

    ticker = None
    if settings.ticker_enabled:
        ticker = SessionTicker(
            app.state.factory,
            app.state.sessionmaker,
            interval_sec=settings.tick_interval_sec,
            clock=app.state.clock,
        )
        ticker.start()
    app.state.ticker = ticker

    yield

    if ticker is not None:
        ticker.stop()
    logger.info("Shutting down console-rental service")


def create_app(
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    settings = settings or Settings()
    setup_logging(settings)

    app = FastAPI(
        title="Console Rental Service",
        description="Point of sale for a game-console rental shop",
        version=VERSION,
        lifespan=lifespan,
    )

    factory = ServiceFactory(settings)
    app.state.settings = settings
    app.state.factory = factory
    app.state.sessionmaker = get_sessionmaker(settings.database_url, settings.db_pool_timeout_sec)
    app.state.clock = clock or (lambda: to_local(datetime.now().astimezone(), factory.zone))

    if settings.metrics_enabled:
        instrumentator = setup_instrumentator()
        instrumentator.instrument(app).expose(app)
        init_app_info(VERSION)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api/v1", tags=["health"])
    app.include_router(consoles.router, prefix="/api/v1", tags=["consoles"])
    app.include_router(products.router, prefix="/api/v1", tags=["products"])
    app.include_router(members.router, prefix="/api/v1", tags=["members"])
    app.include_router(sessions.router, prefix="/api/v1", tags=["sessions"])
    app.include_router(pricing.router, prefix="/api/v1", tags=["pricing"])
    app.include_router(expenses.router, prefix="/api/v1", tags=["expenses"])
    app.include_router(history.router, prefix="/api/v1", tags=["history"])
    app.include_router(dashboard.router, prefix="/api/v1", tags=["dashboard"])

    return app


def main():
    import uvicorn

    uvicorn.run(
        "console_rental.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_config=None,
    )


app = create_app()


if __name__ == "__main__":
    main()
