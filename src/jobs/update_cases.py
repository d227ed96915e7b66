"""Run one update batch outside the API process.

Run directly:        python -m src.jobs.update_cases

Exit status is 1 when the tracked-case list could not be read at all,
0 otherwise (individual case failures are reported in the summary).
"""

import asyncio
import sys

import structlog

from src.core.config import Settings
from src.core.exceptions import DatabaseError
from src.core.logging import setup_logging
from src.db.session import create_engine, create_session_factory
from src.services.container import build_services

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


async def run_once(settings: Settings) -> int:
    """Build the service graph, run the pipeline once and return an exit code."""
    engine = create_engine(settings)
    services = build_services(settings, create_session_factory(engine))
    try:
        summary = await services.pipeline.run()
    except DatabaseError as exc:
        logger.error("update_job_failed", message=exc.message, details=exc.details)
        return 1
    finally:
        await services.close()
        await engine.dispose()

    logger.info("update_job_completed", **summary.model_dump())
    return 0


def main() -> None:
    settings = Settings()
    setup_logging(settings)
    sys.exit(asyncio.run(run_once(settings)))


if __name__ == "__main__":
    main()
