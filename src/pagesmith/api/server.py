"""
ASGI Entry Point for the PageSmith API.

Loads `.env` before the application factory runs so that settings read at
import time see the same environment as the server.

Usage
-----
Run via the module entry point:
    $ python -m pagesmith.api.server

Or via uvicorn directly:
    $ uvicorn pagesmith.api.server:app --reload
"""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from pagesmith.api.app import create_app
from pagesmith.core.settings import get_logger
from pagesmith.llm.client import validate_api_key

# Load environment variables from .env BEFORE building the app.
load_dotenv(dotenv_path=Path(".env"))

app = create_app()

_log = get_logger("pagesmith.server")


def main() -> None:
    """Run the API server locally for development."""
    if validate_api_key(os.getenv("OPENROUTER_API_KEY")):
        _log.info("OPENROUTER_API_KEY loaded (%s...)", os.environ["OPENROUTER_API_KEY"][:12])
    else:
        _log.warning("OPENROUTER_API_KEY missing or malformed; POST /generate will fail")

    uvicorn.run(
        "pagesmith.api.server:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )


if __name__ == "__main__":
    main()
