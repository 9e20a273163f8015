"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from flatcrawl.config import AppConfig, SourceSpec
from flatcrawl.storage import CsvStorage


class FakeBrowser:
    """Stands in for the headless browser: source URL -> URL list or error."""

    def __init__(self, pages: dict[str, object]) -> None:
        self.pages = pages
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    async def run(self, source_url: str, script: str) -> list[str]:
        self.calls.append((source_url, script))
        result = self.pages[source_url]
        if isinstance(result, Exception):
            raise result
        return list(result)

    async def close(self) -> None:
        self.closed = True


class HealthyMonitor:
    def has_headroom(self) -> bool:
        return True

    def get_snapshot(self) -> dict:
        return {"memory_percent": 10.0}


@pytest.fixture
def storage(tmp_path: Path) -> CsvStorage:
    return CsvStorage(tmp_path / "urls.csv")


@pytest.fixture
def monitor() -> HealthyMonitor:
    return HealthyMonitor()


@pytest.fixture
def make_config(tmp_path: Path):
    """Build an AppConfig from ``{name: (url, removeParams)}``."""

    def _make(sources: dict[str, tuple[str, list[str]]]) -> AppConfig:
        return AppConfig(
            csv_path=tmp_path / "urls.csv",
            sources={
                name: SourceSpec.model_validate(
                    {
                        "url": url,
                        "command": "Array.from(document.links).map(a => a.href)",
                        "normalization": {"removeParams": params},
                    }
                )
                for name, (url, params) in sources.items()
            },
        )

    return _make


@pytest.fixture
def fake_browser():
    """Factory for FakeBrowser instances."""
    return FakeBrowser
