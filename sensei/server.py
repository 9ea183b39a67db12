"""HTTP status server shared by the pipeline and the status page."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Body, FastAPI, Header
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .constants import STATUS_SERVER_ORIGINS
from .errors import StaleStatusError
from .persistence.http import VERSION_HEADER
from .persistence.repository import StatusStore

logger = logging.getLogger(__name__)


def create_app(store: StatusStore, cors_origins: Optional[List[str]] = None) -> FastAPI:
    """Build the status API around ``store``."""

    app = FastAPI(title="Sensei Status", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if cors_origins is not None else STATUS_SERVER_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[VERSION_HEADER],
    )

    @app.get("/status")
    async def read_status():
        try:
            record = await store.get_record()
        except Exception as e:
            logger.error(f"Error reading status file: {e}")
            return JSONResponse({"error": "Failed to read status file"}, status_code=500)
        return JSONResponse(
            record.status.to_document(), headers={VERSION_HEADER: str(record.version)}
        )

    @app.post("/update-status")
    async def update_status(
        partial: Optional[Dict[str, Any]] = Body(default=None),
        if_match: Optional[str] = Header(default=None),
    ):
        logger.info("Updating status file...")
        try:
            expected = int(if_match) if if_match is not None else None
        except ValueError:
            return JSONResponse({"error": f"Invalid If-Match: {if_match}"}, status_code=400)

        try:
            status = await store.merge_status(partial or {}, expected_version=expected)
        except StaleStatusError as e:
            return JSONResponse(
                {"error": str(e), "expected": e.expected, "actual": e.actual},
                status_code=409,
            )
        except ValueError as e:
            return JSONResponse({"error": str(e)}, status_code=422)
        except Exception as e:
            logger.error(f"Error updating status file: {e}")
            return JSONResponse({"error": "Failed to update status file"}, status_code=500)
        return {"status": status.to_document()}

    @app.delete("/status")
    async def reset_status():
        await store.reset()
        return {"status": {}}

    @app.get("/health")
    async def health():
        record = await store.get_record()
        return {"status": "ok", "version": record.version}

    return app


def serve(
    store: StatusStore,
    host: str,
    port: int,
    cors_origins: Optional[List[str]] = None,
) -> None:
    """Run the status API with uvicorn until interrupted."""
    logger.info(f"Server listening on {host}:{port}")
    uvicorn.run(create_app(store, cors_origins), host=host, port=port)
