"""
Table Archive and Rollback Operations

Archiving renames a live table to `_archived_{phase}_{table}` so it disappears
from normal application queries while keeping its data. Rollback renames it
back. Both operations issue a single remote rename through `exec_sql` and
return an in-memory ArchiveLogRecord; persisting the records is the caller's
job (see write_archive_log and archive_tables.py).

Neither operation checks that the target name is free, wraps the rename in a
transaction with anything else, or verifies that the rename took effect.

Example Usage:
    archiver = TableArchiver(get_supabase_client(), logger)
    record = archiver.archive_table("invoices", "phase1")
    archiver.rollback_archive(record.archived_name, record.original_name)
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Literal

from pydantic import BaseModel, ConfigDict, Field

from scripts.database.supabase_client import RemoteCallError, SupabaseAdminClient

ARCHIVE_PREFIX = "_archived_"
DEFAULT_PHASE = "unknown"
# Postgres truncates longer identifiers (NAMEDATALEN - 1)
MAX_IDENTIFIER_BYTES = 63


class ArchiveError(Exception):
    """An archive or rollback rename could not be applied."""


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def archived_table_name(table_name: str, phase: str = DEFAULT_PHASE) -> str:
    """
    Compute the archived name for a table.

    Args:
        table_name (str): Live table name
        phase (str): Phase label grouping this archive batch

    Returns:
        str: Exactly `_archived_{phase}_{table_name}`

    Raises:
        ValueError: If table_name is empty or the archived name would exceed
            the 63-byte identifier limit
    """
    if not table_name:
        raise ValueError("table_name must be a non-empty string")

    archived_name = f"{ARCHIVE_PREFIX}{phase}_{table_name}"
    if len(archived_name.encode("utf-8")) > MAX_IDENTIFIER_BYTES:
        raise ValueError(
            f"Archived name '{archived_name}' exceeds the {MAX_IDENTIFIER_BYTES}-byte "
            "identifier limit; use a shorter phase label"
        )
    return archived_name


def parse_archived_name(
    archived_name: str, phase: str | None = None
) -> tuple[str, str] | None:
    """
    Split an archived name into (phase, original table name).

    With an explicit phase the exact `_archived_{phase}_` prefix is stripped.
    Without one, the phase is everything up to the first underscore after the
    prefix, so phase labels containing underscores need the explicit form.

    Returns:
        tuple[str, str] | None: (phase, original_name), or None if the name is
        not an archived name
    """
    if phase is not None:
        prefix = f"{ARCHIVE_PREFIX}{phase}_"
        if archived_name.startswith(prefix) and len(archived_name) > len(prefix):
            return phase, archived_name[len(prefix) :]
        return None

    if not archived_name.startswith(ARCHIVE_PREFIX):
        return None
    found_phase, sep, original = archived_name[len(ARCHIVE_PREFIX) :].partition("_")
    if not sep or not found_phase or not original:
        return None
    return found_phase, original


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def rename_table_sql(old_name: str, new_name: str) -> str:
    return f"ALTER TABLE {quote_identifier(old_name)} RENAME TO {quote_identifier(new_name)};"


class ArchiveLogRecord(BaseModel):
    """Ephemeral summary of one archive or rollback rename."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: str = Field(default_factory=_utc_timestamp)
    action: Literal["ARCHIVE", "ROLLBACK"]
    original_name: str = Field(..., alias="originalName", min_length=1)
    archived_name: str = Field(..., alias="archivedName", min_length=1)
    phase: str | None = None
    reversible: bool = True

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


@dataclass
class ArchiveBatchResult:
    """Outcome of a bulk archive or rollback loop."""

    records: list[ArchiveLogRecord] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    planned: list[tuple[str, str]] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def success_count(self) -> int:
        return len(self.records)


class TableArchiver:
    """
    Rename tables to and from their archived names.

    The archiver holds no state between calls; callers must keep the returned
    records to know what can be rolled back.
    """

    def __init__(
        self, client: SupabaseAdminClient, logger: logging.Logger | None = None
    ):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def _rename(self, old_name: str, new_name: str) -> None:
        self.client.exec_sql(rename_table_sql(old_name, new_name))

    def archive_table(
        self, table_name: str, phase: str = DEFAULT_PHASE
    ) -> ArchiveLogRecord:
        """
        Rename a live table to its archived name.

        Args:
            table_name (str): Existing table to archive
            phase (str): Free-form phase label, defaults to "unknown"

        Returns:
            ArchiveLogRecord: action ARCHIVE, reversible

        Raises:
            ValueError: If table_name is empty
            ArchiveError: If the remote rename reports an error
        """
        archived_name = archived_table_name(table_name, phase)
        self.logger.info(f"📦 Archiving {table_name} -> {archived_name}")

        try:
            self._rename(table_name, archived_name)
        except RemoteCallError as e:
            self.logger.error(f"❌ Failed to archive {table_name}: {e.message}")
            raise ArchiveError(f"Failed to archive {table_name}: {e.message}") from e

        self.logger.info(f"✅ Successfully archived {table_name}")
        return ArchiveLogRecord(
            action="ARCHIVE",
            original_name=table_name,
            archived_name=archived_name,
            phase=phase,
            reversible=True,
        )

    def rollback_archive(
        self, archived_name: str, original_name: str
    ) -> ArchiveLogRecord:
        """
        Rename an archived table back to its original name.

        Args:
            archived_name (str): Current (archived) table name
            original_name (str): Name to restore

        Returns:
            ArchiveLogRecord: action ROLLBACK; phase recovered from the archived
            name when it matches the original name, else None

        Raises:
            ValueError: If either name is empty
            ArchiveError: If the remote rename reports an error
        """
        if not archived_name or not original_name:
            raise ValueError("archived_name and original_name must be non-empty")

        self.logger.info(f"🔄 Rolling back {archived_name} -> {original_name}")

        try:
            self._rename(archived_name, original_name)
        except RemoteCallError as e:
            self.logger.error(f"❌ Failed to rollback {archived_name}: {e.message}")
            raise ArchiveError(
                f"Failed to rollback {archived_name}: {e.message}"
            ) from e

        self.logger.info(f"✅ Successfully rolled back {original_name}")

        phase = None
        suffix = f"_{original_name}"
        if archived_name.startswith(ARCHIVE_PREFIX) and archived_name.endswith(suffix):
            phase = archived_name[len(ARCHIVE_PREFIX) : -len(suffix)] or None

        return ArchiveLogRecord(
            action="ROLLBACK",
            original_name=original_name,
            archived_name=archived_name,
            phase=phase,
            reversible=True,
        )

    def archive_tables(
        self,
        table_names: Iterable[str],
        phase: str = DEFAULT_PHASE,
        dry_run: bool = False,
    ) -> ArchiveBatchResult:
        """
        Archive tables one at a time, logging and counting failures.

        A failed table, whatever the error, is counted in `failures` and the
        loop continues, so `records` always holds every rename that was
        applied. In dry-run mode the planned renames are logged and returned
        in `planned`; nothing is sent.
        """
        result = ArchiveBatchResult()

        for table_name in table_names:
            try:
                if dry_run:
                    archived_name = archived_table_name(table_name, phase)
                    self.logger.info(
                        f"[dry-run] would archive {table_name} -> {archived_name}"
                    )
                    result.planned.append((table_name, archived_name))
                else:
                    result.records.append(self.archive_table(table_name, phase))
            except ArchiveError as e:
                result.failures[table_name] = str(e)
            except Exception as e:
                self.logger.error(f"❌ Skipping {table_name!r}: {e}")
                result.failures[table_name] = str(e)

        return result

    def rollback_records(
        self, records: Iterable[ArchiveLogRecord], dry_run: bool = False
    ) -> ArchiveBatchResult:
        """
        Roll back ARCHIVE records in reverse order of the log.

        ROLLBACK records in the input are ignored.
        """
        result = ArchiveBatchResult()
        archive_records = [r for r in records if r.action == "ARCHIVE"]

        for record in reversed(archive_records):
            if dry_run:
                self.logger.info(
                    f"[dry-run] would roll back {record.archived_name} -> {record.original_name}"
                )
                result.planned.append((record.archived_name, record.original_name))
                continue

            try:
                result.records.append(
                    self.rollback_archive(record.archived_name, record.original_name)
                )
            except ArchiveError as e:
                result.failures[record.archived_name] = str(e)
            except Exception as e:
                self.logger.error(f"❌ Skipping rollback of {record.archived_name}: {e}")
                result.failures[record.archived_name] = str(e)

        return result


def write_archive_log(
    records: Iterable[ArchiveLogRecord], phase: str, backup_dir: str
) -> str:
    """
    Write archive log records to a timestamped JSON file.

    Returns:
        str: Path of the written file
    """
    now = datetime.now(timezone.utc)
    os.makedirs(backup_dir, exist_ok=True)
    path = os.path.join(
        backup_dir, f"archive-log-{phase}-{now.strftime('%Y-%m-%dT%H-%M-%S')}.json"
    )

    payload = {
        "timestamp": now.isoformat(),
        "phase": phase,
        "records": [record.to_dict() for record in records],
    }
    with open(path, "w") as f:
        json.dump(payload, f, indent=2)

    return path


def load_archive_log(path: str) -> list[ArchiveLogRecord]:
    """
    Load records from a file written by write_archive_log.

    Raises:
        FileNotFoundError: If the log file does not exist
        pydantic.ValidationError: If a record is malformed
    """
    with open(path, "r") as f:
        payload = json.load(f)

    return [ArchiveLogRecord.model_validate(r) for r in payload.get("records", [])]
