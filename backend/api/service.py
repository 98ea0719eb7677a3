"""
API service entrypoint.
Runs the FastAPI application via uvicorn. PORT overrides the configured port
when the platform sets it.
"""
from __future__ import annotations

import os

import uvicorn

from shared.config import get_settings


def main() -> None:
    """Start the API service."""
    settings = get_settings()
    port = int(os.environ.get("PORT", settings.api_port))

    uvicorn.run(
        "api.app:app",
        host=settings.api_host,
        port=port,
        log_level=settings.log_level.lower(),
        access_log=False,  # request logging middleware covers this
        timeout_keep_alive=30,
    )


if __name__ == "__main__":
    main()
