"""Catalog reader - runs parameterized catalog queries over a DB-API connection."""

from __future__ import annotations

import logging
from typing import Any, Sequence


logger = logging.getLogger(__name__)

Row = tuple[str | None, ...]


class CatalogQueryError(Exception):
    """Raised when a catalog query cannot be executed."""
    pass


def quote_identifier(name: str) -> str:
    """
    Quote a SQL Server identifier (database, schema, object name).

    Identifiers cannot be bound as parameters, so any name that ends up in
    a FROM clause goes through here: the name is wrapped in brackets and
    embedded closing brackets are doubled.
    """
    return "[" + name.replace("]", "]]") + "]"


def placeholders(count: int) -> str:
    """Positional parameter markers for an IN list, e.g. ``?, ?, ?``."""
    return ", ".join("?" for _ in range(count))


def _as_text(value: Any) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return str(value)


class CatalogReader:
    """
    Executes catalog queries and returns their rows as tuples of strings.

    The reader knows nothing about the tree; it only binds values and
    normalizes rows. All rows are fetched before returning so callers may
    issue the next query on the same connection right away.
    """

    def __init__(self, connection: Any):
        """
        Args:
            connection: An open DB-API connection (pyodbc in production)
        """
        self._connection = connection

    def execute_rows(self, query: str, params: Sequence[str] = ()) -> list[Row]:
        """
        Execute a query with positionally bound values.

        Raises:
            CatalogQueryError: If the driver fails for any reason
        """
        try:
            cursor = self._connection.cursor()
            if params:
                cursor.execute(query, list(params))
            else:
                cursor.execute(query)
            rows = cursor.fetchall()
            cursor.close()
        except Exception as e:
            logger.error(f"Catalog query failed: {e}")
            raise CatalogQueryError(f"Catalog query failed: {e}") from e

        return [tuple(_as_text(value) for value in row) for row in rows]
