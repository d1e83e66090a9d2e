"""Therapy budget service entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from therapy_budget.api.router import router
from therapy_budget.database import dispose_database, init_database
from therapy_budget.errors import TherapyBudgetError, therapy_budget_error_handler
from therapy_budget.observability import configure_logging, get_logger
from therapy_budget.settings import Settings

logger = get_logger(__name__)
settings = Settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    configure_logging(settings.log_level, json_output=settings.log_json)
    logger.info(
        "therapy-budget starting",
        service=settings.service_name,
        version=settings.version,
    )
    init_database(settings.database_url, echo=settings.database_echo)
    yield
    await dispose_database()
    logger.info("therapy-budget shutting down")


def create_app() -> FastAPI:
    """Build the FastAPI application with routes and error handlers."""
    application = FastAPI(
        title=settings.service_name,
        version=settings.version,
        lifespan=lifespan,
    )
    application.add_exception_handler(TherapyBudgetError, therapy_budget_error_handler)  # type: ignore[arg-type]

    @application.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": settings.service_name}

    application.include_router(router, prefix="/api/v1")
    return application


app = create_app()
