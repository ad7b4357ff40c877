#!/usr/bin/env python3
"""
ckload CLI - provision connections and bulk-load files from the shell.
"""

import asyncio
import sys
from pathlib import Path
from typing import List, Optional

import click
import polars as pl

from ckload.connections import (
    Connection,
    close_all_registries,
    get_connection,
    provision_from_config,
)
from ckload.core import BulkLoadBuffer, load_connections_config
from ckload.utility.exceptions import CkloadError, ConfigError
from ckload.utility.logger import get_logger


def _parse_columns(value: Optional[str]) -> List[str]:
    """Split a comma-separated column list."""
    if not value:
        return []
    return [c.strip() for c in value.split(",") if c.strip()]


def _read_source(source: Path) -> pl.DataFrame:
    """Read a CSV or Parquet file into a DataFrame."""
    suffix = source.suffix.lower()
    if suffix == ".parquet":
        return pl.read_parquet(source)
    if suffix == ".csv":
        return pl.read_csv(source)
    raise ConfigError(f"Unsupported source format '{suffix}' (use .csv or .parquet)")


async def _load(
    connection: Connection,
    table: str,
    source: Path,
    df: pl.DataFrame,
    columns: List[str],
    staging_dir: Optional[Path],
) -> int:
    try:
        with BulkLoadBuffer(table, source.name, connection, staging_dir) as buffer:
            if columns:
                buffer.add_columns(columns)
            buffer.add_frame(df)
            return await buffer.execute()
    finally:
        await close_all_registries()


@click.group()
@click.version_option(package_name="ckload")
def ckload():
    """
    ckload - connection provisioning and bulk loading for columnar datastores
    """
    pass


@ckload.command()
@click.argument(
    "config", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
def provision(config: Path):
    """Provision every connection in CONFIG and list them.

    CONFIG: Path to a connections YAML file
    """
    try:
        provisioned = provision_from_config(load_connections_config(config))
    except CkloadError as e:
        click.echo(f"Error: {str(e)}")
        sys.exit(1)

    if not provisioned:
        click.echo(f"No connections found in {config}")
        return

    for name, scheme in provisioned.items():
        click.echo(f"{name} -> {scheme}")


@ckload.command()
@click.argument(
    "config", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.argument("name")
@click.argument("table")
@click.argument(
    "source", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--columns",
    "-c",
    help=(
        "Comma-separated target columns for the source fields, in order "
        "(default: the source's own column names)"
    ),
)
@click.option(
    "--staging-dir",
    "-s",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for the staging file (default: /dev/shm)",
)
def load(
    config: Path,
    name: str,
    table: str,
    source: Path,
    columns: Optional[str],
    staging_dir: Optional[Path],
):
    """Bulk-load SOURCE (CSV or Parquet) into TABLE over connection NAME.

    CONFIG: Path to a connections YAML file
    """
    logger = get_logger("ckload.cli.load")

    try:
        provisioned = provision_from_config(load_connections_config(config))
        if name not in provisioned:
            click.echo(f"Error: No connection named '{name}' in {config}")
            sys.exit(1)
        connection = get_connection(name, provisioned[name])

        try:
            df = _read_source(source)
        except (OSError, pl.exceptions.PolarsError) as e:
            click.echo(f"Error: Cannot read {source}: {str(e)}")
            sys.exit(1)

        rows = asyncio.run(
            _load(connection, table, source, df, _parse_columns(columns), staging_dir)
        )
    except CkloadError as e:
        logger.error(f"Load into {table} failed: {str(e)}")
        click.echo(f"Error: {str(e)}")
        sys.exit(1)

    click.echo(f"Loaded {rows:,} rows into {table}")


if __name__ == "__main__":
    ckload()
