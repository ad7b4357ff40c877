"""
SQL text for the bulk-load command.
"""
import re
from typing import Sequence

_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_identifier(name: str) -> str:
    """Backtick-quote an identifier unless it is a plain word."""
    if _PLAIN_IDENTIFIER.match(name):
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


def quote_table(table: str) -> str:
    """Quote ``table`` or ``database.table``."""
    return ".".join(quote_identifier(part) for part in table.split(".", 1))


def insert_statement(table: str, columns: Sequence[str]) -> str:
    """
    ``INSERT INTO <table> [(<columns>)]``.

    An empty column list leaves the column clause out, so records map
    onto the table's columns positionally.
    """
    if not table:
        raise ValueError("Table name is required")
    statement = f"INSERT INTO {quote_table(table)}"
    if columns:
        statement += " (" + ", ".join(quote_identifier(c) for c in columns) + ")"
    return statement
