"""Pydantic models for tracked URL records and scrape results."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

# Column order of the persisted table.
COLUMNS = [
    "id",
    "source",
    "cost",
    "url",
    "dateAdded",
    "seen",
    "ok",
    "called",
    "active",
    "archived",
]

FLAG_COLUMNS = ["seen", "ok", "called", "active", "archived"]


class RecordDraft(BaseModel):
    """A discovered URL before it has been assigned an id."""

    model_config = ConfigDict(populate_by_name=True)

    source: str = Field(description="Name of the configured source")
    cost: str = Field(default="", description="Free-form, user-editable")
    url: str = Field(description="Raw URL exactly as extracted")
    date_added: int = Field(alias="dateAdded", description="Unix timestamp (seconds)")
    seen: bool = False
    ok: bool = False
    called: bool = False
    active: bool = False
    archived: bool = False


class Record(RecordDraft):
    """A tracked URL as stored in the table."""

    id: int = Field(gt=0)

    @classmethod
    def from_draft(cls, draft: RecordDraft, record_id: int) -> "Record":
        return cls(id=record_id, **draft.model_dump())

    def to_row(self) -> dict[str, str]:
        """Serialize to the table's string columns."""
        data = self.model_dump(by_alias=True)
        row = {column: str(data[column]) for column in COLUMNS}
        for flag in FLAG_COLUMNS:
            row[flag] = "true" if data[flag] else "false"
        return row


class SourceOutcome(BaseModel):
    """Result of processing one source."""

    source: str
    success: bool = True
    error: Optional[str] = None
    urls_found: int = 0
    invalid_urls: int = 0
    duplicates: int = 0
    new_records: list[Record] = Field(default_factory=list)

    @computed_field
    @property
    def new_count(self) -> int:
        return len(self.new_records)


class RunSummary(BaseModel):
    """Aggregate result of a scrape run, returned to the CLI."""

    outcomes: list[SourceOutcome] = Field(default_factory=list)

    @computed_field
    @property
    def sources_attempted(self) -> int:
        return len(self.outcomes)

    @property
    def failed(self) -> list[SourceOutcome]:
        return [o for o in self.outcomes if not o.success]

    @computed_field
    @property
    def sources_failed(self) -> int:
        return len(self.failed)

    @computed_field
    @property
    def total_new(self) -> int:
        return sum(o.new_count for o in self.outcomes)
