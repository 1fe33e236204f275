"""
Vehicle Hailing Booking Backend
===============================
Entry point. Run with: uvicorn main:app --reload

Host, port and auto-reload come from ``API_HOST`` / ``API_PORT`` /
``API_RELOAD`` (see ``hailing/config.py``).
"""

import uvicorn

from hailing.api.app import create_app
from hailing.config import settings

app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
