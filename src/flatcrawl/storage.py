"""CSV-backed record store."""

import csv
import io
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable, Union

from pydantic import ValidationError

from .errors import StorageError
from .models import COLUMNS, FLAG_COLUMNS, Record, RecordDraft

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("id", "url")


def _parse_flag(value: object) -> bool:
    # Anything but the literal "true" token reads as False.
    return value == "true"


def _parse_row(row: dict, line_no: int) -> Record:
    try:
        record_id = int(row["id"])
    except (TypeError, ValueError):
        raise StorageError(f"Invalid id {row.get('id')!r} on line {line_no}") from None

    date_added = (row.get("dateAdded") or "").strip()
    try:
        return Record(
            id=record_id,
            source=row.get("source") or "",
            cost=row.get("cost") or "",
            url=row.get("url") or "",
            dateAdded=int(date_added) if date_added else 0,
            **{flag: _parse_flag(row.get(flag)) for flag in FLAG_COLUMNS},
        )
    except (ValueError, ValidationError) as e:
        raise StorageError(f"Invalid record on line {line_no}: {e}") from e


def format_table(records: Iterable[Record]) -> str:
    """Serialize records to the table's CSV text, header included."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=COLUMNS, lineterminator="\n")
    writer.writeheader()
    for record in records:
        writer.writerow(record.to_row())
    return buffer.getvalue()


def parse_table(text: str) -> list[Record]:
    """Parse the table's CSV text into records.

    Extra columns are ignored and missing optional columns take their
    defaults, so older tables read without migration.
    """
    reader = csv.DictReader(io.StringIO(text))
    header = reader.fieldnames or []
    if not header:
        return []
    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise StorageError(f"Table header is missing column(s): {', '.join(missing)}")

    records: list[Record] = []
    for row in reader:
        if not any((value or "").strip() for key, value in row.items() if key is not None):
            continue
        records.append(_parse_row(row, reader.line_num))
    return records


class CsvStorage:
    """Single source of truth for tracked URLs.

    Every write rewrites the whole table through a temporary file that is
    moved over the original, so readers never see a half-written table.
    Not safe for concurrent writers.
    """

    def __init__(self, csv_path: Union[str, Path]) -> None:
        self.csv_path = Path(csv_path)

    def _ensure_table(self) -> None:
        if not self.csv_path.exists():
            logger.info(f"Creating new table at {self.csv_path}")
            self._write_text(format_table([]))

    def _write_text(self, text: str) -> None:
        directory = self.csv_path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.csv_path.name}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.csv_path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to write table {self.csv_path}: {e}") from e

    def read_all(self) -> list[Record]:
        """Read every record, creating an empty table on first use."""
        self._ensure_table()
        logger.debug(f"Reading table from {self.csv_path}")
        try:
            text = self.csv_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Failed to read table {self.csv_path}: {e}") from e
        try:
            records = parse_table(text)
        except csv.Error as e:
            raise StorageError(f"Malformed table {self.csv_path}: {e}") from e
        logger.debug(f"Read {len(records)} records from table")
        return records

    def write_all(self, records: Iterable[Record]) -> None:
        """Replace the table with ``records``."""
        records = list(records)
        logger.debug(f"Writing {len(records)} records to {self.csv_path}")
        self._write_text(format_table(records))

    def existing_urls(self) -> set[str]:
        return {record.url for record in self.read_all()}

    def highest_id(self) -> int:
        return max((record.id for record in self.read_all()), default=0)

    def append_new(self, drafts: Iterable[RecordDraft]) -> list[Record]:
        """Assign ids to ``drafts`` and append them.

        Returns:
            The new records, in input order, with ids populated.
        """
        drafts = list(drafts)
        records = self.read_all()
        next_id = max((record.id for record in records), default=0) + 1
        added = [Record.from_draft(draft, next_id + i) for i, draft in enumerate(drafts)]
        if added:
            self.write_all(records + added)
        logger.info(f"Appended {len(added)} new records to {self.csv_path}")
        return added

    def upsert_by_key(self, updates: Iterable[Record]) -> None:
        """Replace stored records that share an id with an update; insert the rest."""
        updates = list(updates)
        by_id = {record.id: record for record in self.read_all()}
        for record in updates:
            by_id[record.id] = record
        self.write_all(by_id.values())
        logger.info(f"Upserted {len(updates)} records in {self.csv_path}")
