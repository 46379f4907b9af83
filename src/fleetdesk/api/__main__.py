"""
fleetdesk.api.__main__

Entrypoint for `python -m fleetdesk.api`: load settings, build the app, serve it
with uvicorn.
"""

from __future__ import annotations

import uvicorn

from fleetdesk.api.app import create_app
from fleetdesk.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()
