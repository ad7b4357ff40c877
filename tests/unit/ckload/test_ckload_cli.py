"""
Tests for the ckload CLI.

Connections are provisioned for real (provisioning opens no links); the
bulk load itself goes to a RecordingConnection.
"""
from unittest.mock import patch

import polars as pl
import pytest
from click.testing import CliRunner
from conftest import RecordingConnection

from ckload.cli import ckload
from ckload.utility.exceptions import RemoteWriteError


@pytest.fixture
def cli_runner():
    """Fixture providing Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def config_file(temp_dir):
    path = temp_dir / "connections.yml"
    path.write_text(
        "connections:\n"
        "  events: clickhouse://default@db:8123/?database=web\n"
        "  bulk:\n"
        "    dsn: click://default@db:9004/web?max=2\n"
    )
    return path


@pytest.fixture
def source_csv(temp_dir):
    path = temp_dir / "hits.csv"
    pl.DataFrame({"id": [1, 2], "url": ["/a", "/b,c"]}).write_csv(path)
    return path


class TestProvision:
    def test_lists_provisioned_connections(self, cli_runner, config_file):
        result = cli_runner.invoke(ckload, ["provision", str(config_file)])

        assert result.exit_code == 0
        assert "events -> clickhouse" in result.output
        assert "bulk -> click" in result.output

    def test_empty_config(self, cli_runner, temp_dir):
        path = temp_dir / "empty.yml"
        path.write_text("connections: {}\n")

        result = cli_runner.invoke(ckload, ["provision", str(path)])

        assert result.exit_code == 0
        assert "No connections found" in result.output

    def test_unsupported_scheme_fails(self, cli_runner, temp_dir):
        path = temp_dir / "bad.yml"
        path.write_text("connections:\n  legacy: foo://db/web\n")

        result = cli_runner.invoke(ckload, ["provision", str(path)])

        assert result.exit_code == 1
        assert "Not supported driver foo" in result.output

    def test_missing_config_file(self, cli_runner, temp_dir):
        result = cli_runner.invoke(ckload, ["provision", str(temp_dir / "nope.yml")])
        assert result.exit_code != 0


class TestLoad:
    @pytest.fixture
    def staging_dir(self, temp_dir):
        path = temp_dir / "staging"
        path.mkdir()
        return path

    def _load(self, cli_runner, *args, connection=None):
        with patch("ckload.cli.get_connection", return_value=connection) as lookup:
            result = cli_runner.invoke(ckload, ["load", *map(str, args)])
        return result, lookup

    def test_loads_csv_through_named_connection(
        self, cli_runner, config_file, source_csv, staging_dir
    ):
        recording = RecordingConnection()

        result, lookup = self._load(
            cli_runner,
            config_file,
            "events",
            "hits",
            source_csv,
            "--staging-dir",
            staging_dir,
            connection=recording,
        )

        assert result.exit_code == 0, result.output
        assert "Loaded 2 rows into hits" in result.output
        lookup.assert_called_once_with("events", "clickhouse")
        table, columns, staging_path = recording.calls[0]
        assert (table, columns) == ("hits", ["id", "url"])
        assert staging_path == str(staging_dir / "hits.csv")
        assert recording.staged_rows == [["1", "/a"], ["2", "/b,c"]]
        assert list(staging_dir.iterdir()) == []

    def test_columns_option(self, cli_runner, config_file, source_csv, staging_dir):
        recording = RecordingConnection()

        result, lookup = self._load(
            cli_runner,
            config_file,
            "bulk",
            "web.hits",
            source_csv,
            "-c",
            "event_id, path",
            "-s",
            staging_dir,
            connection=recording,
        )

        assert result.exit_code == 0, result.output
        lookup.assert_called_once_with("bulk", "click")
        assert recording.calls[0][:2] == ("web.hits", ["event_id", "path"])

    def test_missing_staging_dir(self, cli_runner, config_file, source_csv, temp_dir):
        recording = RecordingConnection()

        result, _ = self._load(
            cli_runner,
            config_file,
            "events",
            "hits",
            source_csv,
            "-s",
            temp_dir / "nope",
            connection=recording,
        )

        assert result.exit_code == 1
        assert "Unable to open staging file" in result.output
        assert recording.calls == []

    def test_unknown_connection_name(self, cli_runner, config_file, source_csv):
        result, lookup = self._load(cli_runner, config_file, "missing", "hits", source_csv)

        assert result.exit_code == 1
        assert "No connection named 'missing'" in result.output
        lookup.assert_not_called()

    def test_unsupported_source_format(self, cli_runner, config_file, temp_dir):
        source = temp_dir / "hits.json"
        source.write_text("[]")

        result, _ = self._load(cli_runner, config_file, "events", "hits", source)

        assert result.exit_code == 1
        assert "Unsupported source format '.json'" in result.output

    def test_remote_failure_reported(
        self, cli_runner, config_file, source_csv, staging_dir
    ):
        failing = RecordingConnection(error=RemoteWriteError("Code: 60. Unknown table"))

        result, _ = self._load(
            cli_runner,
            config_file,
            "events",
            "hits",
            source_csv,
            "-s",
            staging_dir,
            connection=failing,
        )

        assert result.exit_code == 1
        assert "Unknown table" in result.output
        assert list(staging_dir.iterdir()) == []
