"""FastAPI server for Folio.

Exposes:
- GET /                                  (redirect to /reader/albums)
- GET /reader/albums?folder={id}
- GET /reader/albums/{album_id}
- GET /reader/albums/{album_id}/pages/{page}
- GET /reader/covers/{entry_id}

The IndexManager is attached as `app.state.manager` before serving.
"""

from __future__ import annotations

import asyncio
import logging
import os
import socket
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import RedirectResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from reader import router as reader_router

from .config import FolioConfig
from .index import IndexManager
from .logging_config import get_logger

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log the first client that connects, with its full URL."""

    async def dispatch(self, request, call_next):
        if not getattr(request.app.state, "logged_first_request", False):
            user_agent = request.headers.get("user-agent", "")
            client_name = user_agent.split("/")[0] if user_agent else "unknown"
            client_ip = request.client.host if request.client else "unknown"
            logging.getLogger("folio.request").info(
                'client_connected="%s" ip="%s" url="%s %s"',
                client_name,
                client_ip,
                request.method,
                str(request.url),
            )
            request.app.state.logged_first_request = True
        return await call_next(request)


def _get_lan_ip() -> Optional[str]:
    """Return this machine's LAN IP (for the reader URL when binding to 0.0.0.0)."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
    except OSError:
        return None


@asynccontextmanager
async def _lifespan(app: FastAPI):
    async def _print_startup_messages():
        await asyncio.sleep(0.1)
        logger.info(f"Started server process [{os.getpid()}]")
        reader_url = getattr(app.state, "reader_url", None)
        if reader_url:
            logger.info(f"Web reader: {reader_url}")

    asyncio.create_task(_print_startup_messages())
    yield


app = FastAPI(title="Folio", lifespan=_lifespan)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(reader_router, prefix="/reader")


@app.get("/", include_in_schema=False)
def root() -> RedirectResponse:
    return RedirectResponse(url="/reader/albums", status_code=302)


@app.get("/favicon.ico", include_in_schema=False)
def favicon() -> Response:
    return Response(status_code=204)


def run_server(
    config: FolioConfig,
    manager: IndexManager,
    host: Optional[str] = None,
    port: Optional[int] = None,
) -> None:
    """Run the FastAPI app with Uvicorn."""
    import uvicorn

    effective_host = host or config.server_host
    effective_port = port or config.server_port

    app.state.manager = manager
    if effective_host == "0.0.0.0":
        public_host = _get_lan_ip() or "localhost"
    else:
        public_host = effective_host
    app.state.reader_url = f"http://{public_host}:{effective_port}/reader/albums"

    uvicorn.run(
        app,
        host=effective_host,
        port=effective_port,
        log_level="info",
        log_config=None,
    )
