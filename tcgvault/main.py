"""
TCG Vault — Application Entrypoint

Initializes the async SQLAlchemy engine, configures structlog, wires the
services and runs the sync scheduler.

Run via:
    python -m tcgvault.main
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import AsyncExitStack
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tcgvault.config import settings
from tcgvault.pipeline.images import ImageSearchClient
from tcgvault.pipeline.pricecharting import PriceChartingClient
from tcgvault.pipeline.scheduler import run_scheduler
from tcgvault.pipeline.scrydex import ScrydexClient
from tcgvault.pipeline.tcgcsv import TCGCSVClient
from tcgvault.services import build_services


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    # stdlib logging for third-party libraries
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Database Setup
# ---------------------------------------------------------------------------


async def create_db_engine() -> tuple[Any, async_sessionmaker[AsyncSession]]:
    """
    Create SQLAlchemy async engine and session factory.

    Returns:
        (engine, session_factory) tuple.
    """
    logger = structlog.get_logger(__name__)
    logger.info("database_engine_initializing")

    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    logger.info("database_engine_ready")
    return engine, session_factory


# ---------------------------------------------------------------------------
# Application Startup
# ---------------------------------------------------------------------------


async def main() -> None:
    """
    Execution order:
    1. Configure logging (structlog JSON)
    2. Create async database engine and session factory
    3. Verify database connection (health check)
    4. Open API clients and wire services
    5. Run the sync scheduler until a shutdown signal
    """
    _configure_logging(log_level=settings.LOG_LEVEL)
    logger = structlog.get_logger(__name__)

    logger.info("tcg_vault_startup_begin", version="0.1.0")

    if not settings.SCRYDEX_API_KEY:
        logger.warning("config_scrydex_api_key_missing", note="expecting a key-injecting proxy")
    if not settings.PRICECHARTING_API_KEY:
        logger.warning("config_pricecharting_api_key_missing", note="sealed API fallback disabled")

    try:
        engine, session_factory = await create_db_engine()
    except Exception as e:
        logger.error(
            "database_engine_creation_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise

    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        logger.info("database_health_check_passed")
    except Exception as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        await engine.dispose()
        raise

    try:
        async with AsyncExitStack() as stack:
            scrydex = await stack.enter_async_context(ScrydexClient())
            tcgcsv = await stack.enter_async_context(TCGCSVClient())
            pricecharting = (
                await stack.enter_async_context(PriceChartingClient())
                if settings.PRICECHARTING_API_KEY
                else None
            )
            image_search = (
                await stack.enter_async_context(ImageSearchClient())
                if settings.IMAGE_SEARCH_API_KEY
                else None
            )
            services = build_services(session_factory, scrydex, pricecharting, tcgcsv, image_search)

            logger.info(
                "tcg_vault_startup_complete",
                sync_jobs=[job.domain for job in services.sync_jobs],
                mapped_expansions=len(services.expansion_map),
            )

            try:
                await run_scheduler(services.sync_jobs)
            finally:
                await services.pricing.close()
    except KeyboardInterrupt:
        logger.info("tcg_vault_interrupted_by_user")
    except Exception as e:
        logger.error(
            "tcg_vault_fatal_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        await engine.dispose()
        logger.info("tcg_vault_shutdown_complete")


# ---------------------------------------------------------------------------
# CLI Entry
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    asyncio.run(main())
