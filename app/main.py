"""
ASGI Entry Point for Piggybank

Run with:
    uvicorn app.main:app --host 0.0.0.0 --port 8000

or directly:
    python -m app.main

Storage, identity and push are configured from environment variables
or a .env file. Missing Google Sheets settings fall back to
in-memory storage with a warning.
"""

import uvicorn

from piggybank.api import create_app
from piggybank.config import get_settings


app = create_app()


if __name__ == "__main__":
    settings = get_settings().app
    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug_mode,
    )
