"""Tabular metric store on duckdb.

One row per (job, dimension). Tables are created on first use and never
altered afterwards.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from pathlib import Path

import duckdb
import pandas as pd

from .exceptions import LoadbenchConfigError, LoadbenchStorageError
from .logging_config import get_logger
from .models import MetricRow

logger = get_logger("storage")

TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

ROW_COLUMNS: tuple[str, ...] = (
    "date_time",
    "session",
    "description",
    "scenario",
    "hardware",
    "hardware_version",
    "operating_system",
    "runtime_version",
    "scheme",
    "web_host",
    "client_threads",
    "connections",
    "duration",
    "pipeline_depth",
    "path",
    "method",
    "headers",
    "dimension",
    "value",
)


def check_table_name(table: str) -> str:
    if not TABLE_NAME_PATTERN.match(table):
        raise LoadbenchConfigError(f"Invalid table name: {table!r}", context={"table": table})
    return table


@dataclass(slots=True)
class MetricStore:
    db_path: Path

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path))

    def ensure_table(self, table: str) -> None:
        """Create the table and its id sequence if absent. An existing table is left as is."""
        check_table_name(table)
        try:
            with self._connect() as con:
                con.execute(f"CREATE SEQUENCE IF NOT EXISTS {table}_id_seq START 1")
                con.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id INTEGER PRIMARY KEY DEFAULT nextval('{table}_id_seq'),
                        excluded BOOLEAN DEFAULT FALSE,
                        date_time TIMESTAMPTZ NOT NULL,
                        session VARCHAR NOT NULL,
                        description VARCHAR,
                        scenario VARCHAR NOT NULL,
                        hardware VARCHAR NOT NULL,
                        hardware_version VARCHAR NOT NULL,
                        operating_system VARCHAR NOT NULL,
                        runtime_version VARCHAR NOT NULL,
                        scheme VARCHAR NOT NULL,
                        web_host VARCHAR NOT NULL,
                        client_threads INTEGER NOT NULL,
                        connections INTEGER NOT NULL,
                        duration INTEGER NOT NULL,
                        pipeline_depth INTEGER,
                        path VARCHAR,
                        method VARCHAR NOT NULL,
                        headers VARCHAR,
                        dimension VARCHAR NOT NULL,
                        value DOUBLE NOT NULL
                    );
                    """
                )
        except duckdb.Error as e:
            raise LoadbenchStorageError(
                f"Cannot create table {table}",
                context={"db_path": str(self.db_path)},
                original_error=e,
            ) from e
        logger.debug("Table %s ready in %s", table, self.db_path)

    def insert(self, table: str, row: MetricRow) -> None:
        """Insert one metric row in its own transaction."""
        check_table_name(table)
        values = asdict(row)
        columns = ", ".join(ROW_COLUMNS)
        placeholders = ", ".join("?" for _ in ROW_COLUMNS)
        try:
            with self._connect() as con:
                con.execute("BEGIN TRANSACTION")
                try:
                    con.execute(
                        f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                        [values[c] for c in ROW_COLUMNS],
                    )
                    con.execute("COMMIT")
                except duckdb.Error:
                    con.execute("ROLLBACK")
                    raise
        except duckdb.Error as e:
            raise LoadbenchStorageError(
                f"Cannot write dimension {row.dimension}",
                context={"table": table},
                original_error=e,
            ) from e

    def load_rows(self, table: str) -> pd.DataFrame:
        check_table_name(table)
        with self._connect() as con:
            return con.execute(f"SELECT * FROM {table} ORDER BY id").fetchdf()
