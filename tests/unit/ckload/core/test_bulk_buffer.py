"""
Unit tests for BulkLoadBuffer.

Staging files go to a temporary directory and the bulk load is captured
by RecordingConnection, so no datastore is needed.
"""
import gc
from unittest.mock import MagicMock

import polars as pl
import pytest
from conftest import RecordingConnection, read_staged

from ckload.core.bulk import BufferState, BulkLoadBuffer
from ckload.utility.exceptions import (
    BufferClosedError,
    RemoteWriteError,
    StagingOpenError,
    StagingWriteError,
)


@pytest.fixture
def buffer(temp_dir, recording_connection):
    buf = BulkLoadBuffer("hits", "hits.json", recording_connection, staging_dir=temp_dir)
    yield buf
    buf.close()


class TestStagingFile:
    """Staging file lifecycle."""

    def test_path_derived_from_file_name_stem(self, temp_dir, recording_connection):
        buf = BulkLoadBuffer(
            "hits", "exports/hits-2024-06-01.json", recording_connection, temp_dir
        )
        try:
            assert buf.staging_path == temp_dir / "hits-2024-06-01.csv"
            assert buf.staging_path.exists()
            assert buf.state is BufferState.OPEN
            assert buf.row_count == 0
        finally:
            buf.close()

    def test_missing_directory_raises_staging_open_error(
        self, temp_dir, recording_connection
    ):
        with pytest.raises(StagingOpenError) as exc_info:
            BulkLoadBuffer("hits", "hits.json", recording_connection, temp_dir / "nope")
        assert "hits.csv" in exc_info.value.context["path"]

    def test_empty_file_name_raises_staging_open_error(
        self, temp_dir, recording_connection
    ):
        with pytest.raises(StagingOpenError):
            BulkLoadBuffer("hits", "", recording_connection, temp_dir)

    def test_same_stem_is_refused_and_first_buffer_kept(
        self, temp_dir, recording_connection
    ):
        """Test a second buffer cannot take over a live staging file."""
        first = BulkLoadBuffer("t1", "batch.json", recording_connection, temp_dir)
        try:
            first.add_row(["a1"])

            with pytest.raises(StagingOpenError, match="already in use"):
                BulkLoadBuffer("t2", "in/batch.parquet", recording_connection, temp_dir)
            gc.collect()

            assert first.state is BufferState.OPEN
            assert first.staging_path.exists()
            assert read_staged(first.staging_path) == [["a1"]]
        finally:
            first.close()

    def test_stem_reusable_after_close(self, temp_dir, recording_connection):
        BulkLoadBuffer("t1", "batch.json", recording_connection, temp_dir).close()

        second = BulkLoadBuffer("t2", "batch.csv", recording_connection, temp_dir)
        try:
            assert second.state is BufferState.OPEN
        finally:
            second.close()

    def test_close_removes_file_and_is_idempotent(self, buffer):
        buffer.add_row([1, "a"])
        path = buffer.staging_path

        buffer.close()
        buffer.close()

        assert not path.exists()
        assert buffer.closed

    def test_context_manager_closes(self, temp_dir, recording_connection):
        with BulkLoadBuffer("hits", "hits", recording_connection, temp_dir) as buf:
            buf.add_row([1])
            path = buf.staging_path
            assert path.exists()

        assert not path.exists()
        assert buf.closed

    def test_garbage_collection_removes_file(self, temp_dir, recording_connection):
        buf = BulkLoadBuffer("hits", "hits", recording_connection, temp_dir)
        path = buf.staging_path

        del buf
        gc.collect()

        assert not path.exists()

    def test_clear_data_starts_new_empty_file(self, buffer):
        buffer.add_row([1, "a"])
        buffer.add_row([2, "b"])

        buffer.clear_data()

        assert buffer.row_count == 0
        assert buffer.state is BufferState.OPEN
        assert buffer.staging_path.exists()
        assert buffer.staging_path.stat().st_size == 0


class TestAddRow:
    """Appending records."""

    def test_empty_row_is_rejected(self, buffer):
        assert buffer.add_row([]) is False
        assert buffer.row_count == 0

    def test_rows_counted(self, buffer):
        assert buffer.add_row(["a", "b,c"]) is True
        assert buffer.add_row(['x"y']) is True
        assert buffer.row_count == 2

    def test_special_characters_round_trip(self, buffer):
        """Test delimiters, quotes, line breaks and empty fields survive staging."""
        rows = [
            ["plain", "with,comma", 'with"quote'],
            ["multi\nline", "", "crlf\r\nbreak"],
            ["", "", ""],
        ]
        for row in rows:
            buffer.add_row(row)
        buffer._handle.flush()

        assert read_staged(buffer.staging_path) == rows

    def test_none_and_bool_fields(self, buffer):
        buffer.add_row([None, True, False, 3, 1.5])
        buffer._handle.flush()

        assert read_staged(buffer.staging_path) == [["", "1", "0", "3", "1.5"]]

    def test_mapping_values_in_order(self, buffer):
        buffer.add_row({"id": 7, "url": "/home"})
        buffer._handle.flush()

        assert read_staged(buffer.staging_path) == [["7", "/home"]]

    def test_closed_buffer_rejects_rows(self, buffer):
        buffer.close()

        with pytest.raises(BufferClosedError):
            buffer.add_row([1])

    def test_rows_reach_disk_as_they_are_added(self, buffer):
        """Test each record is on disk once add_row returns."""
        buffer.add_row([1, "a"])

        assert read_staged(buffer.staging_path) == [["1", "a"]]

    def test_unencodable_row_raises_and_keeps_count(self, buffer):
        buffer.add_row(["ok"])

        with pytest.raises(StagingWriteError):
            buffer.add_row(["bad \ud800 surrogate"])

        assert buffer.row_count == 1
        assert read_staged(buffer.staging_path) == [["ok"]]

    def test_write_failure_raises_and_keeps_count(self, buffer):
        buffer.add_row([1])
        buffer._writer = MagicMock()
        buffer._writer.writerow.side_effect = OSError("No space left on device")

        with pytest.raises(StagingWriteError, match="No space left") as exc_info:
            buffer.add_row([2])

        assert buffer.row_count == 1
        assert exc_info.value.context["row_count"] == 1


class TestColumns:
    def test_empty_columns_rejected(self, buffer):
        assert buffer.add_columns([]) is False
        assert buffer.columns == []

    def test_columns_replaced(self, buffer):
        assert buffer.add_columns(["id", "url"]) is True
        assert buffer.add_columns(["ts"]) is True
        assert buffer.columns == ["ts"]


class TestAddFrame:
    """Staging Polars DataFrames."""

    def test_frame_rows_and_columns(self, buffer):
        df = pl.DataFrame({"id": [1, 2, 3], "url": ["/a", "/b,c", None]})

        assert buffer.add_frame(df) == 3

        assert buffer.columns == ["id", "url"]
        assert buffer.row_count == 3
        buffer._handle.flush()
        assert read_staged(buffer.staging_path) == [
            ["1", "/a"],
            ["2", "/b,c"],
            ["3", ""],
        ]

    def test_existing_columns_kept(self, buffer):
        buffer.add_columns(["event_id", "path"])
        buffer.add_frame(pl.DataFrame({"id": [1], "url": ["/a"]}))

        assert buffer.columns == ["event_id", "path"]

    def test_empty_frame(self, buffer):
        assert buffer.add_frame(pl.DataFrame()) == 0
        assert buffer.columns == []


class TestExecute:
    """Committing staged rows."""

    @pytest.mark.asyncio
    async def test_execute_returns_staged_count(self, buffer, recording_connection):
        buffer.add_columns(["a", "b"])
        buffer.add_row(["a", "b,c"])
        buffer.add_row(['x"y'])

        rows = await buffer.execute()

        assert rows == 2
        assert recording_connection.calls == [
            ("hits", ["a", "b"], str(buffer.staging_path))
        ]
        assert recording_connection.staged_rows == [["a", "b,c"], ['x"y']]

    @pytest.mark.asyncio
    async def test_execute_without_columns(self, buffer, recording_connection):
        buffer.add_row([1, 2])

        assert await buffer.execute() == 1
        assert recording_connection.calls[0][1] == []

    @pytest.mark.asyncio
    async def test_buffer_reusable_after_execute(self, buffer, recording_connection):
        buffer.add_row([1])
        await buffer.execute()

        buffer.clear_data()
        buffer.add_row([2])
        buffer.add_row([3])

        assert await buffer.execute() == 2
        assert recording_connection.staged_rows == [["2"], ["3"]]

    @pytest.mark.asyncio
    async def test_remote_failure_propagates_and_keeps_rows(self, temp_dir):
        failing = RecordingConnection(error=RemoteWriteError("Code: 60. Unknown table"))
        buf = BulkLoadBuffer("hits", "hits", failing, temp_dir)
        try:
            buf.add_row([1])

            with pytest.raises(RemoteWriteError, match="Unknown table"):
                await buf.execute()

            assert buf.state is BufferState.OPEN
            assert buf.row_count == 1
            assert buf.staging_path.exists()
        finally:
            buf.close()

    @pytest.mark.asyncio
    async def test_execute_on_closed_buffer(self, buffer, recording_connection):
        buffer.close()

        with pytest.raises(BufferClosedError):
            await buffer.execute()

        assert recording_connection.calls == []


def test_repr(buffer):
    buffer.add_row([1])
    assert repr(buffer) == "BulkLoadBuffer(table='hits', rows=1, state=open)"
