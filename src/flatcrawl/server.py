"""Review server: a table page plus a JSON API over the record store."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse

from .config import AppConfig
from .errors import FlatcrawlError, StorageError
from .gist import GistStorage, sync_table_to_gist
from .models import Record
from .storage import CsvStorage

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"


def create_app(
    config: AppConfig,
    storage: Optional[CsvStorage] = None,
    gist_factory: Optional[Callable[[], GistStorage]] = None,
) -> FastAPI:
    """Build the review app bound to ``config``'s table."""
    # Table I/O is synchronous and runs on the event loop, so requests never
    # interleave their read-modify-write. CsvStorage assumes a single writer.
    storage = storage or CsvStorage(config.csv_path)
    gist_factory = gist_factory or (lambda: GistStorage(config.gist))

    app = FastAPI(
        title="flatcrawl",
        description="Review and edit tracked URLs",
        version="1.0.0",
    )

    @app.get("/", include_in_schema=False)
    async def index() -> FileResponse:
        return FileResponse(STATIC_DIR / "index.html")

    @app.get("/api/data")
    async def get_data() -> list[dict]:
        try:
            records = storage.read_all()
        except StorageError as e:
            logger.error(f"Error reading table: {e}")
            raise HTTPException(status_code=500, detail="Failed to read table data") from e
        return [record.model_dump(by_alias=True) for record in records]

    @app.post("/api/data")
    async def update_data(records: list[Record]) -> dict:
        try:
            storage.upsert_by_key(records)
        except StorageError as e:
            logger.error(f"Error updating table: {e}")
            raise HTTPException(status_code=500, detail="Failed to update table data") from e
        return {"success": True, "message": f"Updated {len(records)} records"}

    @app.post("/api/sync")
    async def sync() -> dict:
        try:
            gist_id = await sync_table_to_gist(config, gist_factory())
        except FlatcrawlError as e:
            logger.error(f"Sync error: {e}")
            raise HTTPException(
                status_code=500, detail={"error": "Sync failed", "details": str(e)}
            ) from e
        return {"success": True, "message": "Sync completed successfully", "gistId": gist_id}

    return app
