"""Uvicorn entry point for the case tracker API.

Run directly:        python -m src.main
Run via uvicorn:     uvicorn src.main:app --reload

The scheduled update batch has its own entry point in
``src.jobs.update_cases`` and does not need the API running.
"""

import uvicorn

from src.api.app import create_app
from src.core.config import Settings

app = create_app()


def main() -> None:
    """Serve the API. Request logging comes from the tracing middleware."""
    settings = Settings()
    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        access_log=False,
        proxy_headers=True,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()
