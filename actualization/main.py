"""
actualization/main.py

FastAPI application factory for the actualization service.
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from actualization.config import get_executor_settings, get_log_level, get_polling_settings, load_env_files
from actualization.logging_utils import configure_logging

logger = logging.getLogger(__name__)


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - ACTUALIZATION_EXECUTOR_BASE_URL is required and must be http(s).
    - Numeric settings, when set, must parse.
    """

    load_env_files()

    errors: list[str] = []

    # --- Executor -------------------------------------------------------
    base_url = os.getenv("ACTUALIZATION_EXECUTOR_BASE_URL", "").strip()
    if not base_url:
        errors.append(
            "ACTUALIZATION_EXECUTOR_BASE_URL is not set. Point it at the job executor API."
        )
    elif not base_url.lower().startswith(("http://", "https://")):
        errors.append(
            f"ACTUALIZATION_EXECUTOR_BASE_URL='{base_url}' is not valid. It must start with http:// or https://."
        )

    # --- Numeric settings -----------------------------------------------
    numeric_vars = {
        "ACTUALIZATION_EXECUTOR_TIMEOUT_SECONDS": float,
        "ACTUALIZATION_EXECUTOR_MAX_RETRIES": int,
        "ACTUALIZATION_EXECUTOR_BACKOFF_INITIAL_SECONDS": float,
        "ACTUALIZATION_EXECUTOR_BACKOFF_MULTIPLIER": float,
        "ACTUALIZATION_POLL_INTERVAL_MS": int,
        "ACTUALIZATION_MAX_NOTICES": int,
    }
    for name, parser in numeric_vars.items():
        raw_value = os.getenv(name)
        if raw_value is None or not raw_value.strip():
            continue
        try:
            parser(raw_value.strip())
        except ValueError:
            errors.append(f"{name}='{raw_value}' is not a valid {parser.__name__}.")

    if errors:
        raise RuntimeError(
            "Startup validation failed: missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Start the poll scheduler and session registry on boot; close sessions and shut down on exit."""
    from actualization.connectors.executor import HTTPJobExecutorClient
    from actualization.scheduler.poll_timer import build_scheduler
    from actualization.services.session_registry import SessionRegistry

    scheduler = build_scheduler()
    scheduler.start()
    registry = SessionRegistry(
        executor=HTTPJobExecutorClient(settings=get_executor_settings()),
        scheduler=scheduler,
        polling=get_polling_settings(),
    )
    application.state.session_registry = registry
    logger.info("Scheduler started; actualization sessions ready")
    try:
        yield
    finally:
        registry.close_all()
        scheduler.shutdown(wait=False)
        logger.info("Scheduler shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    configure_logging(get_log_level())

    application = FastAPI(
        title="Actualization API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from actualization.api.routers import actualization_router

    application.include_router(actualization_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
