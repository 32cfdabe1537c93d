# salon/main.py

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from salon.config import Settings, get_settings
from salon.db import SalonStore
from salon.errors import BookingError, booking_error_handler, validation_error_handler
from salon.routers import appointments_routes, work_intervals_routes


def create_app(
    store: Optional[SalonStore] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    store = store or SalonStore(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.init_schema()
        yield
        store.dispose()

    app = FastAPI(title="Salon booking API", lifespan=lifespan)
    app.state.store = store
    # Routes read the settings this app was built with, not the process-wide ones
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(appointments_routes.router)
    app.include_router(work_intervals_routes.router)

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    return app


app = create_app()
