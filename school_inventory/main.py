"""Entrypoint for running the development server."""
from __future__ import annotations

import os

from .app import create_app
from .config import configure_logging, get_settings


def run() -> None:
    """Convenience wrapper used by ``python -m school_inventory.main``."""

    settings = get_settings()
    configure_logging(settings.log_level)
    app = create_app(settings=settings)
    app.run(
        host=os.environ.get("SCHOOL_INV_HOST", "127.0.0.1"),
        port=int(os.environ.get("SCHOOL_INV_PORT", "5000")),
        debug=settings.environment == "development",
    )


if __name__ == "__main__":
    run()
