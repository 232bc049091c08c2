"""
Unit tests for table_archive.py module.

Tests cover archived-name computation and parsing, the archive and rollback
operations, bulk loops and archive log persistence. The remote client is
mocked; no network calls are made.
"""

import json
from unittest.mock import call

import pytest
from pydantic import ValidationError

from scripts.database.supabase_client import RemoteCallError
from scripts.database.table_archive import (
    ArchiveError,
    ArchiveLogRecord,
    TableArchiver,
    archived_table_name,
    load_archive_log,
    parse_archived_name,
    rename_table_sql,
    write_archive_log,
)


class TestArchivedNames:
    """Test cases for archived-name helpers."""

    def test_archived_name_format(self):
        assert archived_table_name("invoices", "phase1") == "_archived_phase1_invoices"

    def test_archived_name_default_phase(self):
        assert archived_table_name("invoices") == "_archived_unknown_invoices"

    def test_archived_name_applies_no_other_transformation(self):
        assert (
            archived_table_name("Land_Parcels", "Phase 2")
            == "_archived_Phase 2_Land_Parcels"
        )

    def test_archived_name_rejects_empty_table(self):
        with pytest.raises(ValueError, match="non-empty"):
            archived_table_name("", "phase1")

    def test_archived_name_rejects_identifiers_over_63_bytes(self):
        with pytest.raises(ValueError, match="63-byte"):
            archived_table_name("a" * 50, "phase1")

    def test_archived_name_at_63_bytes_is_allowed(self):
        table_name = "a" * (63 - len("_archived_phase1_"))

        assert len(archived_table_name(table_name, "phase1").encode()) == 63

    def test_archived_name_limit_counts_bytes(self):
        with pytest.raises(ValueError):
            archived_table_name("é" * 24, "phase1")

    @pytest.mark.parametrize(
        "table_name, phase",
        [
            ("invoices", "phase1"),
            ("land_parcels", "phase2"),
            ("user_roles", "2024_q3"),
        ],
    )
    def test_parse_with_explicit_phase_recovers_original(self, table_name, phase):
        archived = archived_table_name(table_name, phase)
        assert parse_archived_name(archived, phase) == (phase, table_name)

    def test_parse_without_phase_splits_at_first_underscore(self):
        assert parse_archived_name("_archived_phase1_land_parcels") == (
            "phase1",
            "land_parcels",
        )

    def test_parse_rejects_other_phase(self):
        assert parse_archived_name("_archived_phase1_invoices", "phase2") is None

    @pytest.mark.parametrize(
        "name", ["invoices", "_archived_", "_archived_phase1", "_archived_phase1_"]
    )
    def test_parse_rejects_non_archived_names(self, name):
        assert parse_archived_name(name) is None

    def test_rename_sql_quotes_identifiers(self):
        assert (
            rename_table_sql("invoices", "_archived_phase1_invoices")
            == 'ALTER TABLE "invoices" RENAME TO "_archived_phase1_invoices";'
        )

    def test_rename_sql_escapes_embedded_quotes(self):
        assert rename_table_sql('odd"name', "x") == 'ALTER TABLE "odd""name" RENAME TO "x";'


class TestArchiveTable:
    """Test cases for TableArchiver.archive_table."""

    def test_archive_invoices_phase1(self, mock_client, mock_logger):
        archiver = TableArchiver(mock_client, mock_logger)

        record = archiver.archive_table("invoices", "phase1")

        mock_client.exec_sql.assert_called_once_with(
            'ALTER TABLE "invoices" RENAME TO "_archived_phase1_invoices";'
        )
        data = record.to_dict()
        assert data["action"] == "ARCHIVE"
        assert data["originalName"] == "invoices"
        assert data["archivedName"] == "_archived_phase1_invoices"
        assert data["phase"] == "phase1"
        assert data["reversible"] is True
        assert data["timestamp"]

    def test_archive_uses_unknown_phase_by_default(self, mock_client, mock_logger):
        record = TableArchiver(mock_client, mock_logger).archive_table("invoices")

        assert record.archived_name == "_archived_unknown_invoices"
        assert record.phase == "unknown"

    def test_archive_remote_error_propagates(self, mock_client, mock_logger):
        mock_client.exec_sql.side_effect = RemoteCallError(
            'relation "invoices" does not exist', status_code=400, code="42P01"
        )
        archiver = TableArchiver(mock_client, mock_logger)

        with pytest.raises(ArchiveError, match="Failed to archive invoices") as exc_info:
            archiver.archive_table("invoices", "phase1")

        assert isinstance(exc_info.value.__cause__, RemoteCallError)
        mock_logger.error.assert_called_once()
        assert "invoices" in mock_logger.error.call_args[0][0]

    def test_archive_issues_single_call(self, mock_client, mock_logger):
        TableArchiver(mock_client, mock_logger).archive_table("invoices", "phase1")

        assert mock_client.exec_sql.call_count == 1


class TestRollbackArchive:
    """Test cases for TableArchiver.rollback_archive."""

    def test_rollback_invoices(self, mock_client, mock_logger):
        archiver = TableArchiver(mock_client, mock_logger)

        record = archiver.rollback_archive("_archived_phase1_invoices", "invoices")

        mock_client.exec_sql.assert_called_once_with(
            'ALTER TABLE "_archived_phase1_invoices" RENAME TO "invoices";'
        )
        assert record.action == "ROLLBACK"
        assert record.original_name == "invoices"
        assert record.archived_name == "_archived_phase1_invoices"
        assert record.phase == "phase1"

    def test_rollback_unrecognised_name_has_no_phase(self, mock_client, mock_logger):
        record = TableArchiver(mock_client, mock_logger).rollback_archive(
            "old_invoices", "invoices"
        )

        assert record.phase is None

    def test_rollback_remote_error_propagates(self, mock_client, mock_logger):
        mock_client.exec_sql.side_effect = RemoteCallError("already exists")
        archiver = TableArchiver(mock_client, mock_logger)

        with pytest.raises(ArchiveError, match="Failed to rollback"):
            archiver.rollback_archive("_archived_phase1_invoices", "invoices")

        mock_logger.error.assert_called_once()

    def test_rollback_rejects_empty_names(self, mock_client, mock_logger):
        with pytest.raises(ValueError):
            TableArchiver(mock_client, mock_logger).rollback_archive("", "invoices")

        mock_client.exec_sql.assert_not_called()

    def test_archive_then_rollback_restores_name(self, mock_client, mock_logger):
        archiver = TableArchiver(mock_client, mock_logger)

        archived = archiver.archive_table("invoices", "phase1")
        restored = archiver.rollback_archive(
            archived.archived_name, archived.original_name
        )

        assert restored.original_name == "invoices"
        assert mock_client.exec_sql.call_args_list == [
            call('ALTER TABLE "invoices" RENAME TO "_archived_phase1_invoices";'),
            call('ALTER TABLE "_archived_phase1_invoices" RENAME TO "invoices";'),
        ]


class TestBulkOperations:
    """Test cases for archive_tables and rollback_records."""

    def test_archive_tables_continues_after_failure(self, mock_client, mock_logger):
        mock_client.exec_sql.side_effect = [None, RemoteCallError("locked"), None]
        archiver = TableArchiver(mock_client, mock_logger)

        result = archiver.archive_tables(["parcels", "plots", "listings"], "phase2")

        assert [r.original_name for r in result.records] == ["parcels", "listings"]
        assert list(result.failures) == ["plots"]
        assert result.success_count == 2
        assert result.failure_count == 1

    def test_archive_tables_counts_invalid_names_as_failures(self, mock_client, mock_logger):
        archiver = TableArchiver(mock_client, mock_logger)

        result = archiver.archive_tables(["parcels", "", "a" * 50, "plots"], "phase1")

        assert [r.original_name for r in result.records] == ["parcels", "plots"]
        assert set(result.failures) == {"", "a" * 50}
        assert mock_client.exec_sql.call_count == 2

    def test_archive_tables_keeps_records_after_unexpected_error(
        self, mock_client, mock_logger
    ):
        mock_client.exec_sql.side_effect = [None, RuntimeError("boom"), None]
        archiver = TableArchiver(mock_client, mock_logger)

        result = archiver.archive_tables(["parcels", "plots", "listings"], "phase2")

        assert [r.original_name for r in result.records] == ["parcels", "listings"]
        assert result.failures == {"plots": "boom"}

    def test_archive_tables_dry_run_reports_overlong_names(self, mock_client, mock_logger):
        archiver = TableArchiver(mock_client, mock_logger)

        result = archiver.archive_tables(["a" * 50], "phase1", dry_run=True)

        assert result.planned == []
        assert "63-byte" in result.failures["a" * 50]

    def test_archive_tables_dry_run_sends_nothing(self, mock_client, mock_logger):
        archiver = TableArchiver(mock_client, mock_logger)

        result = archiver.archive_tables(["parcels", "plots"], "phase2", dry_run=True)

        mock_client.exec_sql.assert_not_called()
        assert result.records == []
        assert result.planned == [
            ("parcels", "_archived_phase2_parcels"),
            ("plots", "_archived_phase2_plots"),
        ]

    def test_rollback_records_reverse_order(self, mock_client, mock_logger):
        archiver = TableArchiver(mock_client, mock_logger)
        archived = archiver.archive_tables(["parcels", "plots"], "phase2").records
        mock_client.exec_sql.reset_mock()

        result = archiver.rollback_records(archived)

        assert [r.original_name for r in result.records] == ["plots", "parcels"]
        assert all(r.action == "ROLLBACK" for r in result.records)
        assert mock_client.exec_sql.call_count == 2

    def test_rollback_records_skips_rollback_entries(self, mock_client, mock_logger):
        records = [
            ArchiveLogRecord(
                action="ROLLBACK",
                original_name="parcels",
                archived_name="_archived_phase2_parcels",
            )
        ]

        result = TableArchiver(mock_client, mock_logger).rollback_records(records)

        mock_client.exec_sql.assert_not_called()
        assert result.records == []


class TestArchiveLog:
    """Test cases for archive log records and files."""

    def test_record_rejects_unknown_action(self):
        with pytest.raises(ValidationError):
            ArchiveLogRecord(action="DELETE", original_name="a", archived_name="b")

    def test_record_accepts_camel_case_input(self):
        record = ArchiveLogRecord.model_validate(
            {
                "action": "ARCHIVE",
                "originalName": "invoices",
                "archivedName": "_archived_phase1_invoices",
                "phase": "phase1",
            }
        )
        assert record.original_name == "invoices"
        assert record.reversible is True

    def test_write_and_load_archive_log(self, mock_client, mock_logger, tmp_path):
        archiver = TableArchiver(mock_client, mock_logger)
        records = archiver.archive_tables(["parcels", "plots"], "phase2").records

        path = write_archive_log(records, "phase2", str(tmp_path / "backups"))

        assert "archive-log-phase2-" in path
        with open(path) as f:
            payload = json.load(f)
        assert payload["phase"] == "phase2"
        assert payload["records"][0]["archivedName"] == "_archived_phase2_parcels"

        loaded = load_archive_log(path)
        assert [r.original_name for r in loaded] == ["parcels", "plots"]
        assert loaded == records

    def test_load_missing_log_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_archive_log(str(tmp_path / "missing.json"))
