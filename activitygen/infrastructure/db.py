import asyncio
from datetime import datetime
from typing import List, Set

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Json
import structlog

from ..generation.ports import AggregationOptions, SegmentReader
from ..generation.records import ClientRecord
from ..shared.settings import settings
from .activity import (
    ClientCounts,
    MonthlyCount,
    entity_segment_path,
    fold_month,
    monthly_counts,
    precomputed_query,
)

log = structlog.get_logger()

_conn: psycopg.AsyncConnection | None = None


async def get_conn() -> psycopg.AsyncConnection:
    """Return a singleton async connection with retry on startup."""
    global _conn
    if _conn and not _conn.closed:
        return _conn

    dsn_kwargs = dict(
        host=settings.db_host,
        port=settings.db_port,
        user=settings.db_user,
        password=settings.db_password,
        dbname=settings.db_name,
    )

    # retry connect ~30s total
    attempts, delay = 30, 1.0
    for i in range(1, attempts + 1):
        try:
            log.info("db_connecting", attempt=i, host=settings.db_host, dbname=settings.db_name)
            _conn = await psycopg.AsyncConnection.connect(
                **dsn_kwargs,
                autocommit=True,
                row_factory=dict_row,
            )
            log.info("db_connected")
            return _conn
        except psycopg.OperationalError as e:
            log.warning("db_connect_failed", attempt=i, error=str(e))
            if i == attempts:
                log.error("db_gave_up_connecting")
                raise
            await asyncio.sleep(delay)
            delay = min(delay * 1.5, 5.0)


async def ensure_migrations() -> None:
    """
    Create tables idempotently (safe to call on every startup).
    """
    conn = await get_conn()

    stmts = [
        """
        CREATE TABLE IF NOT EXISTS activity_entity_segments (
            path            TEXT PRIMARY KEY,
            start_timestamp BIGINT NOT NULL,
            sequence_number INT NOT NULL,
            clients         JSONB NOT NULL DEFAULT '[]'::jsonb,
            written_at      TIMESTAMPTZ NOT NULL DEFAULT now()
        );
        """,
        "CREATE INDEX IF NOT EXISTS idx_segments_start ON activity_entity_segments (start_timestamp, sequence_number);",
        """
        CREATE TABLE IF NOT EXISTS activity_distinct_clients (
            month_start    TIMESTAMPTZ NOT NULL,
            client_id      TEXT NOT NULL,
            namespace_id   TEXT NOT NULL,
            mount_accessor TEXT NOT NULL,
            client_type    TEXT NOT NULL,
            PRIMARY KEY (month_start, client_id)
        );
        """,
        """
        CREATE TABLE IF NOT EXISTS activity_precomputed_queries (
            start_time TIMESTAMPTZ PRIMARY KEY,
            end_time   TIMESTAMPTZ NOT NULL,
            query      JSONB NOT NULL
        );
        """,
        """
        CREATE TABLE IF NOT EXISTS activity_monthly_counts (
            month_start        TIMESTAMPTZ PRIMARY KEY,
            entity_clients     INT NOT NULL,
            non_entity_clients INT NOT NULL,
            refreshed_at       TIMESTAMPTZ NOT NULL DEFAULT now()
        );
        """,
    ]

    async with conn.cursor() as cur:
        for sql in stmts:
            try:
                await cur.execute(sql)
            except psycopg.Error as e:
                log.warning(
                    "migration_stmt_failed",
                    error=str(e),
                    sql=sql.strip().splitlines()[0][:120]
                )
        log.info("migrations_applied")


async def shutdown() -> None:
    """Close the global connection if open."""
    global _conn
    if _conn and not _conn.closed:
        await _conn.close()
        _conn = None


class PostgresActivityLog:
    """Activity log persisted in Postgres through the shared connection."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()

    async def save_entity_segment(
        self, start_timestamp: int, sequence_number: int, clients: List[ClientRecord]
    ) -> str:
        path = entity_segment_path(start_timestamp, sequence_number)
        conn = await get_conn()
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO activity_entity_segments (path, start_timestamp, sequence_number, clients)
                VALUES (%(path)s, %(start)s, %(seq)s, %(clients)s)
                ON CONFLICT (path) DO UPDATE SET clients = EXCLUDED.clients, written_at = now();
                """,
                {
                    "path": path,
                    "start": start_timestamp,
                    "seq": sequence_number,
                    "clients": Json([c.as_dict() for c in clients]),
                },
            )
        return path

    async def segment_to_precomputed_query(
        self, timestamp: datetime, reader: SegmentReader, opts: AggregationOptions
    ) -> None:
        clients = fold_month(timestamp, reader, opts)
        conn = await get_conn()
        async with conn.cursor() as cur:
            if opts.write_distinct_clients:
                for record in clients.values():
                    await cur.execute(
                        """
                        INSERT INTO activity_distinct_clients
                            (month_start, client_id, namespace_id, mount_accessor, client_type)
                        VALUES (%(month)s, %(client_id)s, %(namespace_id)s, %(mount_accessor)s, %(client_type)s)
                        ON CONFLICT (month_start, client_id) DO NOTHING;
                        """,
                        {
                            "month": timestamp,
                            "client_id": record.client_id,
                            "namespace_id": record.namespace_id,
                            "mount_accessor": record.mount_accessor,
                            "client_type": record.client_type.value,
                        },
                    )
            if opts.write_precomputed_queries:
                query = precomputed_query(opts, timestamp)
                await cur.execute(
                    """
                    INSERT INTO activity_precomputed_queries (start_time, end_time, query)
                    VALUES (%(start)s, %(end)s, %(query)s)
                    ON CONFLICT (start_time) DO UPDATE SET end_time = EXCLUDED.end_time, query = EXCLUDED.query;
                    """,
                    {"start": query.start_time, "end": query.end_time, "query": Json(query.as_dict())},
                )

    async def refresh_from_stored_log(self, now: datetime) -> None:
        task = asyncio.create_task(self._refresh(now))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _refresh(self, now: datetime) -> None:
        conn = await get_conn()
        try:
            async with conn.cursor() as cur:
                await cur.execute("SELECT start_timestamp, clients FROM activity_entity_segments;")
                rows = await cur.fetchall()
                counts = monthly_counts(
                    (r["start_timestamp"], [ClientRecord.from_dict(c) for c in r["clients"]]) for r in rows
                )
                for mc in counts:
                    await cur.execute(
                        """
                        INSERT INTO activity_monthly_counts (month_start, entity_clients, non_entity_clients)
                        VALUES (%(month)s, %(entity)s, %(non_entity)s)
                        ON CONFLICT (month_start) DO UPDATE SET
                            entity_clients = EXCLUDED.entity_clients,
                            non_entity_clients = EXCLUDED.non_entity_clients,
                            refreshed_at = now();
                        """,
                        {
                            "month": mc.month,
                            "entity": mc.counts.entity_clients,
                            "non_entity": mc.counts.non_entity_clients,
                        },
                    )
        except psycopg.Error as e:
            # nobody awaits this task, so the failure only surfaces in the logs
            log.error("activity_refresh_failed", error=str(e))
            raise
        log.info("activity_refreshed", now=now.isoformat(), months=len(counts))

    async def wait_for_refresh(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    async def monthly_counts(self) -> List[MonthlyCount]:
        conn = await get_conn()
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT month_start, entity_clients, non_entity_clients FROM activity_monthly_counts ORDER BY month_start;"
            )
            rows = await cur.fetchall()
        return [
            MonthlyCount(
                month=r["month_start"],
                counts=ClientCounts(entity_clients=r["entity_clients"], non_entity_clients=r["non_entity_clients"]),
            )
            for r in rows
        ]
