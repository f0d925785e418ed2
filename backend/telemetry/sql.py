from __future__ import annotations

CREATE_EVENTS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS sync_events (
  ts_ms BIGINT,
  endpoint TEXT,
  style TEXT,
  color_mode TEXT,
  view_zoom DOUBLE,
  north DOUBLE,
  south DOUBLE,
  east DOUBLE,
  west DOUBLE,
  stats_json TEXT
);
"""

SUMMARY_SQL_TEMPLATE = """
SELECT
  endpoint,
  style,
  COUNT(*) AS n,
  AVG(try_cast(json_extract(stats_json, '$.created') AS DOUBLE)) AS avg_created,
  AVG(try_cast(json_extract(stats_json, '$.removed') AS DOUBLE)) AS avg_removed,
  AVG(try_cast(json_extract(stats_json, '$.restyled') AS DOUBLE)) AS avg_restyled,
  SUM(json_array_length(json_extract(stats_json, '$.failed'))) AS total_failed,
  AVG(try_cast(json_extract(stats_json, '$.durationMs') AS DOUBLE)) AS avg_duration_ms,
  quantile_cont(try_cast(json_extract(stats_json, '$.durationMs') AS DOUBLE), 0.95) AS p95_duration_ms
FROM sync_events
{where_sql}
GROUP BY endpoint, style
ORDER BY endpoint, style
"""

SLOWEST_SQL_TEMPLATE = """
SELECT
  ts_ms,
  endpoint,
  style,
  try_cast(json_extract(stats_json, '$.durationMs') AS DOUBLE) AS duration_ms,
  try_cast(json_extract(stats_json, '$.created') AS BIGINT) AS created,
  try_cast(json_extract(stats_json, '$.removed') AS BIGINT) AS removed,
  view_zoom
FROM sync_events
WHERE {where_sql}
ORDER BY duration_ms DESC
LIMIT ?
"""

INSERT_EVENTS_SQL = """
INSERT INTO sync_events
  (ts_ms, endpoint, style, color_mode, view_zoom, north, south, east, west, stats_json)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""
