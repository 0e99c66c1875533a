"""
Run the energy report API with uvicorn.

Usage:
    python -m energy_api [--host HOST] [--port PORT] [--reload]

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import argparse

import uvicorn

from energy_api.config import get_http_settings


def main() -> None:
    """Parse command line options and start uvicorn."""
    settings = get_http_settings()

    parser = argparse.ArgumentParser(description="Run the room energy report API")
    parser.add_argument("--host", default=settings.API_HOST, help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings.API_PORT, help="Port to bind to")
    parser.add_argument(
        "--reload", action="store_true", help="Enable auto-reload (development only)",
    )
    args = parser.parse_args()

    uvicorn.run(
        "energy_api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
