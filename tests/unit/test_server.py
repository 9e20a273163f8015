"""Tests for the review server API."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from flatcrawl.config import AppConfig, GistConfig
from flatcrawl.errors import GistError
from flatcrawl.models import Record
from flatcrawl.server import create_app
from flatcrawl.storage import CsvStorage


def _record(id, url, **kw) -> Record:
    return Record(id=id, source="jobs", url=url, dateAdded=1700000000, **kw)


@pytest.fixture
def config(tmp_path) -> AppConfig:
    return AppConfig(csv_path=tmp_path / "urls.csv", sources={}, gist=GistConfig(token="t"))


@pytest.fixture
def seeded(config) -> CsvStorage:
    storage = CsvStorage(config.csv_path)
    storage.write_all([_record(1, "https://x/1"), _record(2, "https://x/2")])
    return storage


def test_index_page(config, seeded):
    client = TestClient(create_app(config, storage=seeded))
    response = client.get("/")
    assert response.status_code == 200
    assert "<table>" in response.text


def test_get_data_uses_camel_case(config, seeded):
    client = TestClient(create_app(config, storage=seeded))
    data = client.get("/api/data").json()
    assert [row["id"] for row in data] == [1, 2]
    assert data[0]["dateAdded"] == 1700000000
    assert data[0]["seen"] is False


def test_get_data_bootstraps_empty_table(config):
    client = TestClient(create_app(config))
    assert client.get("/api/data").json() == []
    assert config.csv_path.exists()


def test_get_data_storage_error(config):
    config.csv_path.write_text("id,source\n1,jobs\n", encoding="utf-8")
    client = TestClient(create_app(config))
    response = client.get("/api/data")
    assert response.status_code == 500


def test_post_data_upserts_flags(config, seeded):
    client = TestClient(create_app(config, storage=seeded))
    row = client.get("/api/data").json()[1]
    row.update(seen=True, archived=True, cost="42")

    response = client.post("/api/data", json=[row])

    assert response.status_code == 200
    assert response.json()["success"] is True
    records = seeded.read_all()
    assert [r.id for r in records] == [1, 2]
    assert records[1].seen and records[1].archived and records[1].cost == "42"
    assert records[0] == _record(1, "https://x/1")


def test_post_data_rejects_invalid_payload(config, seeded):
    client = TestClient(create_app(config, storage=seeded))
    response = client.post("/api/data", json=[{"id": "abc", "url": "https://x/1"}])
    assert response.status_code == 422
    assert len(seeded.read_all()) == 2


def test_sync_success(config, seeded):
    gist = MagicMock()
    gist.sync_content = AsyncMock(return_value="g1")
    client = TestClient(create_app(config, storage=seeded, gist_factory=lambda: gist))

    response = client.post("/api/sync")

    assert response.status_code == 200
    assert response.json()["gistId"] == "g1"
    pushed = gist.sync_content.await_args.args[0]
    assert pushed.startswith("id,source,cost,url,dateAdded")


def test_sync_failure(config, seeded):
    gist = MagicMock()
    gist.sync_content = AsyncMock(side_effect=GistError("GitHub API PATCH /gists/x returned 500"))
    client = TestClient(create_app(config, storage=seeded, gist_factory=lambda: gist))

    response = client.post("/api/sync")

    assert response.status_code == 500
    assert "returned 500" in response.json()["detail"]["details"]


def test_sync_without_token(tmp_path):
    config = AppConfig(csv_path=tmp_path / "urls.csv", sources={})
    CsvStorage(config.csv_path).read_all()
    client = TestClient(create_app(config))
    response = client.post("/api/sync")
    assert response.status_code == 500
    assert "GITHUB_TOKEN" in response.json()["detail"]["details"]
