"""GitHub gist mirror of the record table."""

import asyncio
import csv
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from .config import AppConfig, GistConfig
from .errors import ConfigurationError, GistError, StorageError
from .storage import CsvStorage, parse_table

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
SYNC_ATTEMPTS = 3
RETRY_DELAY_S = 2.0

T = TypeVar("T")


async def retry(
    fn: Callable[[], Awaitable[T]],
    attempts: int = SYNC_ATTEMPTS,
    delay: float = RETRY_DELAY_S,
) -> T:
    """Call ``fn`` up to ``attempts`` times (at least once) with a fixed delay in between.

    The error from the final attempt propagates unchanged.
    """
    attempts = max(attempts, 1)
    attempt = 1
    while True:
        try:
            return await fn()
        except GistError as e:
            logger.warning(f"Attempt {attempt}/{attempts} failed: {e}")
            if attempt >= attempts:
                raise
        await asyncio.sleep(delay)
        attempt += 1


class GistStorage:
    """Create, update and fetch the gist that mirrors the table."""

    def __init__(
        self,
        config: GistConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        retry_delay: float = RETRY_DELAY_S,
    ) -> None:
        if not config.token:
            raise ConfigurationError("GITHUB_TOKEN is required for gist sync")
        self.config = config
        self.retry_delay = retry_delay
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=GITHUB_API,
            headers={
                "Authorization": f"Bearer {self.config.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=30.0,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            async with self._client() as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            raise GistError(
                f"GitHub API {method} {path} returned {e.response.status_code}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise GistError(f"GitHub API {method} {path} failed: {e}") from e

    def _files(self, content: str) -> dict:
        return {self.config.filename: {"content": content}}

    async def create_gist(self, content: str) -> str:
        """Create a new private gist holding ``content``; return its id."""
        logger.info("Creating new gist...")
        data = await self._request(
            "POST",
            "/gists",
            json={
                "description": self.config.description,
                "public": False,
                "files": self._files(content),
            },
        )
        gist_id = data["id"]
        logger.info(f"Gist created with ID: {gist_id} (set GIST_ID={gist_id} to reuse it)")
        return gist_id

    async def update_gist(self, gist_id: str, content: str) -> None:
        logger.info(f"Updating gist {gist_id}...")
        await self._request("PATCH", f"/gists/{gist_id}", json={"files": self._files(content)})
        logger.info("Gist updated successfully")

    async def sync_content(self, content: str) -> str:
        """Push ``content`` to the configured gist, creating one if needed.

        Returns:
            The gist id.
        """

        async def attempt() -> str:
            if self.config.gist_id:
                await self.update_gist(self.config.gist_id, content)
                return self.config.gist_id
            return await self.create_gist(content)

        return await retry(attempt, SYNC_ATTEMPTS, self.retry_delay)

    async def get_content(self) -> str:
        """Fetch the table text from the configured gist."""
        if not self.config.gist_id:
            raise ConfigurationError("GIST_ID is required for fetching gist content")
        logger.info(f"Fetching content from gist {self.config.gist_id}...")
        data = await self._request("GET", f"/gists/{self.config.gist_id}")
        file = (data.get("files") or {}).get(self.config.filename)
        if not file or not file.get("content"):
            raise GistError(f"File {self.config.filename} not found in gist")
        return file["content"]


async def sync_table_to_gist(
    config: AppConfig,
    gist: Optional[GistStorage] = None,
) -> str:
    """Mirror the table file to the configured gist; return the gist id."""
    logger.info("Syncing table to GitHub gist...")
    if not config.csv_path.exists():
        raise StorageError(f"Table file not found: {config.csv_path}")
    try:
        content = config.csv_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError(f"Failed to read table {config.csv_path}: {e}") from e
    logger.info(f"Table read ({len(content.splitlines())} lines)")

    gist = gist or GistStorage(config.gist)
    gist_id = await gist.sync_content(content)
    logger.info(f"Table synced to gist {gist_id}")
    return gist_id


async def pull_table_from_gist(
    config: AppConfig,
    gist: Optional[GistStorage] = None,
) -> int:
    """Replace the local table with the gist's copy; return the record count.

    The gist text is parsed before anything is written, so a corrupt remote
    copy leaves the local table untouched.
    """
    logger.info("Pulling table from GitHub gist...")
    gist = gist or GistStorage(config.gist)
    content = await gist.get_content()
    try:
        records = parse_table(content)
    except csv.Error as e:
        raise StorageError(f"Malformed table in gist: {e}") from e
    CsvStorage(config.csv_path).write_all(records)
    logger.info(f"Restored {len(records)} records to {config.csv_path}")
    return len(records)
