"""
SQLite-based backing store.

Keeps every table of the key-value layout in one local SQLite file.
No external database setup required - just works.
"""

import asyncio
import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, List, Optional

from .backends import KeyValueBackend, SortKeyRange, index_attributes
from .keys import INDEX_KEY_ATTRIBUTES

logger = logging.getLogger(__name__)

# Database file location
DEFAULT_DB_PATH = Path(__file__).parent.parent.parent / "data" / "claims.db"

# One column per key attribute, e.g. GSI1PK -> gsi1pk
KEY_COLUMNS = [attr.lower() for pair in INDEX_KEY_ATTRIBUTES.values() for attr in pair]


class SQLiteBackend(KeyValueBackend):
    """
    SQLite storage for key-value items with secondary indexes.

    Each item is stored as JSON next to its key attributes, which get
    their own columns and SQL indexes so partition queries stay cheap.
    Blocking sqlite3 calls run in a worker thread with a fresh
    connection per call.

    Usage:
        backend = SQLiteBackend(Path("data/claims.db"))
        store = ClaimStore(backend)
    """

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize the backend and create the schema if needed."""
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create tables if they don't exist."""
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS items (
                    table_name TEXT NOT NULL,
                    pk TEXT NOT NULL,
                    sk TEXT NOT NULL,

                    -- Secondary index keys
                    gsi1pk TEXT,
                    gsi1sk TEXT,
                    gsi2pk TEXT,
                    gsi2sk TEXT,
                    gsi3pk TEXT,
                    gsi3sk TEXT,

                    -- Full item (JSON)
                    data TEXT NOT NULL,

                    PRIMARY KEY (table_name, pk, sk)
                )
            """)

            # Create indexes for the partition queries
            for index in INDEX_KEY_ATTRIBUTES:
                if index is None:
                    continue
                pk_col, sk_col = (attr.lower() for attr in INDEX_KEY_ATTRIBUTES[index])
                conn.execute(
                    f"CREATE INDEX IF NOT EXISTS idx_items_{index.lower()} "
                    f"ON items(table_name, {pk_col}, {sk_col})"
                )

            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Get a database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # Blocking implementations

    def _get_sync(self, table: str, key: Dict[str, str]) -> Optional[dict]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT data FROM items WHERE table_name = ? AND pk = ? AND sk = ?",
                (table, key["PK"], key["SK"])
            ).fetchone()

            if row:
                return json.loads(row["data"])
        return None

    def _put_sync(self, table: str, item: dict) -> None:
        columns = ["table_name", *KEY_COLUMNS, "data"]
        values = [table]
        values.extend(item.get(col.upper()) for col in KEY_COLUMNS)
        values.append(json.dumps(item))

        with self._get_connection() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO items ({', '.join(columns)}) "
                f"VALUES ({', '.join('?' for _ in columns)})",
                values
            )
            conn.commit()

    def _query_sync(
        self,
        table: str,
        partition_value: str,
        index: Optional[str],
        sort_range: Optional[SortKeyRange],
        ascending: bool,
    ) -> List[dict]:
        pk_col, sk_col = (attr.lower() for attr in index_attributes(index))

        query = f"SELECT data FROM items WHERE table_name = ? AND {pk_col} = ?"
        params = [table, partition_value]

        if sort_range is not None and sort_range.lower is not None:
            query += f" AND {sk_col} >= ?"
            params.append(sort_range.lower)

        if sort_range is not None and sort_range.upper is not None:
            query += f" AND {sk_col} <= ?"
            params.append(sort_range.upper)

        query += f" ORDER BY {sk_col} {'ASC' if ascending else 'DESC'}"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [json.loads(row["data"]) for row in rows]

    # KeyValueBackend

    async def get(self, table: str, key: Dict[str, str]) -> Optional[dict]:
        return await asyncio.to_thread(self._get_sync, table, key)

    async def put(self, table: str, item: dict) -> None:
        await asyncio.to_thread(self._put_sync, table, item)

    async def query(
        self,
        table: str,
        partition_value: str,
        index: Optional[str] = None,
        sort_range: Optional[SortKeyRange] = None,
        ascending: bool = True,
    ) -> List[dict]:
        logger.debug(
            f"SQLite query: table={table}, index={index}, "
            f"partition={partition_value}, range={sort_range}"
        )
        return await asyncio.to_thread(
            self._query_sync, table, partition_value, index, sort_range, ascending
        )

    def count(self, table: str) -> int:
        """Count items in a table."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM items WHERE table_name = ?",
                (table,)
            ).fetchone()
            return row[0]
