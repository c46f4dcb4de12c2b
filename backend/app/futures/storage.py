"""SQLite persistence for bars and indicator values."""

from __future__ import annotations

import logging
from threading import Lock

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    create_engine,
    delete,
    event,
    func,
    select,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

metadata = MetaData()


def _series_table(name: str, *value_columns: str) -> Table:
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("symbol", String, nullable=False),
        Column("date", String, nullable=False),
        Column("time", String, nullable=False),
        *(Column(col, Float, nullable=False) for col in value_columns),
        Column("created_at", DateTime, server_default=func.current_timestamp()),
        UniqueConstraint("symbol", "date", "time"),
        Index(f"idx_{name.split('_')[0]}_symbol_date", "symbol", "date"),
    )


kline_table = _series_table("kline_data", "open", "high", "low", "close", "volume", "open_interest")
kd_table = _series_table("kd_data", "k_value", "d_value")
macd_table = _series_table("macd_data", "macd_value", "signal_value", "histogram_value")

# record key -> column name, per table
KLINE_FIELDS = {
    "open": "open",
    "high": "high",
    "low": "low",
    "close": "close",
    "volume": "volume",
    "openInterest": "open_interest",
}
KD_FIELDS = {"k": "k_value", "d": "d_value"}
MACD_FIELDS = {"macd": "macd_value", "signal": "signal_value", "histogram": "histogram_value"}


class FuturesStore:
    """Batch upsert and range queries over the kline / KD / MACD tables.

    Rows are unique on (symbol, date, time); saving the same key again
    replaces its values. Records are plain dicts using the wire field names
    (``openInterest``, ``k``, ``macd`` ...).

    Thread-safe: the SeriesProvider writes from worker threads via
    ``asyncio.to_thread``, so every operation holds a lock.
    """

    def __init__(self, db_url: str = "sqlite:///futures-data.db") -> None:
        self._db_url = db_url
        self._lock = Lock()

        in_memory = db_url in ("sqlite://", "sqlite:///:memory:")
        self._engine = create_engine(
            db_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool if in_memory else None,
        )
        if not in_memory:
            event.listen(self._engine, "connect", _enable_wal)

        metadata.create_all(self._engine)
        logger.info("Futures store ready: %s", db_url)

    # --- Writes ---

    def save_bars(self, records: list[dict]) -> int:
        return self._upsert(kline_table, KLINE_FIELDS, records)

    def save_kd(self, records: list[dict]) -> int:
        return self._upsert(kd_table, KD_FIELDS, records)

    def save_macd(self, records: list[dict]) -> int:
        return self._upsert(macd_table, MACD_FIELDS, records)

    # --- Reads ---

    def query_bars(self, symbol: str, start_date: str | None = None, end_date: str | None = None) -> list[dict]:
        return self._query(kline_table, KLINE_FIELDS, symbol, start_date, end_date)

    def query_kd(self, symbol: str, start_date: str | None = None, end_date: str | None = None) -> list[dict]:
        return self._query(kd_table, KD_FIELDS, symbol, start_date, end_date)

    def query_macd(self, symbol: str, start_date: str | None = None, end_date: str | None = None) -> list[dict]:
        return self._query(macd_table, MACD_FIELDS, symbol, start_date, end_date)

    def stats(self) -> dict:
        """Row counts per table and the distinct symbols that have bars."""
        with self._lock, self._engine.connect() as conn:
            counts = {
                f"{name}_count": conn.execute(select(func.count()).select_from(table)).scalar_one()
                for name, table in (("kline", kline_table), ("kd", kd_table), ("macd", macd_table))
            }
            symbols = conn.execute(
                select(kline_table.c.symbol).distinct().order_by(kline_table.c.symbol)
            ).scalars().all()
        return {**counts, "symbols": list(symbols), "db_url": self._db_url}

    # --- Maintenance ---

    def clear_all(self) -> None:
        with self._lock, self._engine.begin() as conn:
            for table in (kline_table, kd_table, macd_table):
                conn.execute(delete(table))
        logger.info("Futures store cleared")

    def clear_symbol(self, symbol: str) -> None:
        with self._lock, self._engine.begin() as conn:
            for table in (kline_table, kd_table, macd_table):
                conn.execute(delete(table).where(table.c.symbol == symbol))
        logger.info("Futures store cleared for %s", symbol)

    def close(self) -> None:
        self._engine.dispose()

    # --- Internal ---

    def _upsert(self, table: Table, fields: dict[str, str], records: list[dict]) -> int:
        if not records:
            return 0

        rows = [
            {
                "symbol": r["symbol"],
                "date": r["date"],
                "time": r["time"],
                **{column: r[key] for key, column in fields.items()},
            }
            for r in records
        ]
        stmt = sqlite_insert(table)
        stmt = stmt.on_conflict_do_update(
            index_elements=["symbol", "date", "time"],
            set_={column: stmt.excluded[column] for column in fields.values()},
        )
        with self._lock, self._engine.begin() as conn:
            conn.execute(stmt, rows)
        logger.debug("Saved %d rows to %s", len(rows), table.name)
        return len(rows)

    def _query(
        self,
        table: Table,
        fields: dict[str, str],
        symbol: str,
        start_date: str | None,
        end_date: str | None,
    ) -> list[dict]:
        query = select(table).where(table.c.symbol == symbol)
        if start_date:
            query = query.where(table.c.date >= start_date)
        if end_date:
            query = query.where(table.c.date <= end_date)
        query = query.order_by(table.c.date, table.c.time)

        with self._lock, self._engine.connect() as conn:
            rows = conn.execute(query).mappings().all()

        return [
            {
                "symbol": row["symbol"],
                "date": row["date"],
                "time": row["time"],
                **{key: row[column] for key, column in fields.items()},
            }
            for row in rows
        ]


def _enable_wal(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()
