from __future__ import annotations

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import duckdb

from telemetry.config import telemetry_enabled, telemetry_path
from telemetry.sql import (
    CREATE_EVENTS_TABLE_SQL,
    INSERT_EVENTS_SQL,
    SLOWEST_SQL_TEMPLATE,
    SUMMARY_SQL_TEMPLATE,
)

logger = logging.getLogger(__name__)

__all__ = ["TelemetryStore", "telemetry_enabled", "telemetry_path"]


def _safe_float(v) -> float | None:
    try:
        if v is None:
            return None
        return float(v)
    except (TypeError, ValueError):
        return None


def _bound(bounds: dict[str, float] | None, key: str) -> float | None:
    if not bounds:
        return None
    return _safe_float(bounds.get(key))


@dataclass
class TelemetryStore:
    """
    Append-only DuckDB log of marker sync passes.

    Writes go through a queue drained by one writer thread, so recording never
    blocks the caller.
    """

    path: Path
    conn: duckdb.DuckDBPyConnection
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _q: "queue.Queue[dict[str, Any]]" = field(default_factory=queue.Queue, repr=False)
    _stop: threading.Event = field(default_factory=threading.Event, repr=False)
    _worker: threading.Thread | None = field(default=None, repr=False)

    def ensure_schema(self) -> None:
        with self._lock:
            self.conn.execute(CREATE_EVENTS_TABLE_SQL)

    def start(self) -> None:
        if self._worker is not None:
            return
        self._stop.clear()
        self._worker = threading.Thread(
            target=self._run, name="telemetry-writer", daemon=True
        )
        self._worker.start()

    def stop(self, *, timeout_s: float = 2.0) -> None:
        self._stop.set()
        w = self._worker
        if w is not None and w.is_alive():
            w.join(timeout=timeout_s)
        self._worker = None

    def record(
        self,
        *,
        endpoint: str,
        style: str,
        color_mode: str,
        view_zoom: float | None,
        bounds: dict[str, float] | None,
        stats: dict[str, Any],
    ) -> None:
        # Non-blocking: enqueue and return.
        self.start()
        try:
            self._q.put_nowait(
                {
                    "ts_ms": int(time.time() * 1000),
                    "endpoint": str(endpoint),
                    "style": str(style),
                    "color_mode": str(color_mode),
                    "view_zoom": _safe_float(view_zoom),
                    "north": _bound(bounds, "north"),
                    "south": _bound(bounds, "south"),
                    "east": _bound(bounds, "east"),
                    "west": _bound(bounds, "west"),
                    "stats_json": json.dumps(stats, ensure_ascii=False),
                }
            )
        except queue.Full:
            logger.debug("Telemetry queue full; dropping event")

    def flush(self, *, timeout_s: float = 2.0) -> None:
        """
        Wait until queued events are written (used by tests).
        """
        if self._worker is None:
            return
        deadline = time.time() + timeout_s
        while time.time() < deadline:
            if self._q.unfinished_tasks == 0:
                break
            time.sleep(0.01)
        # The writer flushes on a time trigger.
        time.sleep(0.55)

    def query(self, sql: str, params: list[Any] | None = None) -> list[tuple]:
        """
        Run a read query inside this process.

        DuckDB holds a file lock while the writer is active, so other processes
        cannot open the database.
        """
        with self._lock:
            if params:
                return self.conn.execute(sql, params).fetchall()
            return self.conn.execute(sql).fetchall()

    def summary(
        self,
        *,
        endpoint: str | None = None,
        style: str | None = None,
        since_ms: int | None = None,
    ) -> list[dict[str, Any]]:
        where = []
        params: list[Any] = []
        if endpoint:
            where.append("endpoint = ?")
            params.append(endpoint)
        if style:
            where.append("style = ?")
            params.append(style)
        if since_ms is not None:
            where.append("ts_ms >= ?")
            params.append(int(since_ms))

        where_sql = f"WHERE {' AND '.join(where)}" if where else ""
        rows = self.query(SUMMARY_SQL_TEMPLATE.format(where_sql=where_sql), params)

        out: list[dict[str, Any]] = []
        for (
            endpoint_v,
            style_v,
            n,
            avg_created,
            avg_removed,
            avg_restyled,
            total_failed,
            avg_ms,
            p95_ms,
        ) in rows:
            out.append(
                {
                    "endpoint": endpoint_v,
                    "style": style_v,
                    "n": int(n),
                    "avgCreated": _safe_float(avg_created),
                    "avgRemoved": _safe_float(avg_removed),
                    "avgRestyled": _safe_float(avg_restyled),
                    "totalFailed": int(total_failed or 0),
                    "avgDurationMs": _safe_float(avg_ms),
                    "p95DurationMs": _safe_float(p95_ms),
                }
            )
        return out

    def slowest(
        self,
        *,
        endpoint: str | None = None,
        limit: int = 25,
    ) -> list[dict[str, Any]]:
        where = ["json_extract(stats_json, '$.durationMs') IS NOT NULL"]
        params: list[Any] = []
        if endpoint:
            where.append("endpoint = ?")
            params.append(endpoint)
        params.append(int(max(1, min(200, limit))))

        rows = self.query(
            SLOWEST_SQL_TEMPLATE.format(where_sql=" AND ".join(where)),
            params,
        )
        return [
            {
                "tsMs": int(ts_ms),
                "endpoint": endpoint_v,
                "style": style_v,
                "durationMs": _safe_float(duration_ms),
                "created": int(created) if created is not None else None,
                "removed": int(removed) if removed is not None else None,
                "viewZoom": _safe_float(view_zoom),
            }
            for ts_ms, endpoint_v, style_v, duration_ms, created, removed, view_zoom in rows
        ]

    def reset(self) -> None:
        # Stop the writer first so it can't write to a closed connection.
        self.stop(timeout_s=2.0)
        with self._lock:
            try:
                self.conn.close()
            except duckdb.Error as exc:
                logger.debug("Closing telemetry db failed: %s", exc)
            self.path.unlink(missing_ok=True)

    def _run(self) -> None:
        self.ensure_schema()
        batch: list[dict[str, Any]] = []
        last_flush = time.time()

        def flush_batch() -> None:
            nonlocal batch
            if not batch:
                return
            with self._lock:
                try:
                    self.conn.executemany(
                        INSERT_EVENTS_SQL,
                        [
                            (
                                e["ts_ms"],
                                e["endpoint"],
                                e["style"],
                                e["color_mode"],
                                e["view_zoom"],
                                e["north"],
                                e["south"],
                                e["east"],
                                e["west"],
                                e["stats_json"],
                            )
                            for e in batch
                        ],
                    )
                    # Make rows visible to readers immediately.
                    self.conn.execute("CHECKPOINT;")
                except duckdb.Error:
                    logger.warning("Dropping %d telemetry events", len(batch), exc_info=True)
            batch = []

        while not self._stop.is_set():
            try:
                e = self._q.get(timeout=0.1)
            except queue.Empty:
                e = None

            if e is not None:
                batch.append(e)
                self._q.task_done()

            # Flush on size or time.
            now = time.time()
            if len(batch) >= 250 or (batch and (now - last_flush) >= 0.5):
                flush_batch()
                last_flush = now

        # Drain remaining
        while True:
            try:
                e = self._q.get_nowait()
            except queue.Empty:
                break
            batch.append(e)
            self._q.task_done()
        flush_batch()
