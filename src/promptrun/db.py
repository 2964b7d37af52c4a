import json
import sqlite3
from datetime import datetime, timezone
from uuid import uuid4


def init_db(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")

    conn.executescript("""
        CREATE TABLE IF NOT EXISTS providers (
            provider_id TEXT PRIMARY KEY,
            label       TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS runs (
            run_id      TEXT PRIMARY KEY,
            created_at  TEXT NOT NULL,
            git_sha     TEXT,
            pack_id     TEXT NOT NULL,
            provider_id TEXT NOT NULL,
            FOREIGN KEY (provider_id) REFERENCES providers(provider_id)
        );

        CREATE TABLE IF NOT EXISTS cases (
            case_id   TEXT PRIMARY KEY,
            pack_id   TEXT NOT NULL,
            vars_json TEXT,
            expected  TEXT
        );

        CREATE TABLE IF NOT EXISTS outputs (
            output_id   TEXT PRIMARY KEY,
            run_id      TEXT NOT NULL,
            case_id     TEXT NOT NULL,
            prompt      TEXT NOT NULL,
            output_text TEXT,
            error       TEXT,
            latency_ms  REAL,
            CHECK ((output_text IS NULL) != (error IS NULL)),
            FOREIGN KEY (run_id)  REFERENCES runs(run_id),
            FOREIGN KEY (case_id) REFERENCES cases(case_id)
        );

        CREATE TABLE IF NOT EXISTS scores (
            output_id    TEXT PRIMARY KEY,
            score        REAL,
            label        TEXT,
            reason       TEXT,
            details_json TEXT,
            FOREIGN KEY (output_id) REFERENCES outputs(output_id)
        );

        CREATE INDEX IF NOT EXISTS idx_outputs_run_case
            ON outputs(run_id, case_id);

        CREATE INDEX IF NOT EXISTS idx_runs_provider
            ON runs(provider_id);
    """)
    conn.commit()
    return conn


def insert_provider(
    conn: sqlite3.Connection,
    *,
    provider_id: str,
    label: str,
) -> str:
    conn.execute(
        "INSERT OR IGNORE INTO providers (provider_id, label) VALUES (?, ?)",
        (provider_id, label),
    )
    conn.commit()
    return provider_id


def insert_run(
    conn: sqlite3.Connection,
    *,
    pack_id: str,
    provider_id: str,
    git_sha: str | None = None,
) -> str:
    run_id = uuid4().hex
    created_at = datetime.now(timezone.utc).isoformat()
    conn.execute(
        "INSERT INTO runs (run_id, created_at, git_sha, pack_id, provider_id) VALUES (?, ?, ?, ?, ?)",
        (run_id, created_at, git_sha, pack_id, provider_id),
    )
    conn.commit()
    return run_id


def insert_case(
    conn: sqlite3.Connection,
    *,
    pack_id: str,
    case_vars: dict | None = None,
    expected: str | None = None,
    case_id: str | None = None,
) -> str:
    case_id = case_id or uuid4().hex
    conn.execute(
        "INSERT OR IGNORE INTO cases (case_id, pack_id, vars_json, expected) VALUES (?, ?, ?, ?)",
        (case_id, pack_id, json.dumps(case_vars) if case_vars else None, expected),
    )
    conn.commit()
    return case_id


def insert_output(
    conn: sqlite3.Connection,
    *,
    run_id: str,
    case_id: str,
    prompt: str,
    output_text: str | None = None,
    error: str | None = None,
    latency_ms: float | None = None,
) -> str:
    if (output_text is None) == (error is None):
        raise ValueError("Exactly one of output_text and error must be set")
    output_id = uuid4().hex
    conn.execute(
        "INSERT INTO outputs (output_id, run_id, case_id, prompt, output_text, error, latency_ms) VALUES (?, ?, ?, ?, ?, ?, ?)",
        (output_id, run_id, case_id, prompt, output_text, error, latency_ms),
    )
    conn.commit()
    return output_id


def insert_score(
    conn: sqlite3.Connection,
    *,
    output_id: str,
    score: float,
    label: str | None = None,
    reason: str | None = None,
    details: dict | None = None,
) -> None:
    conn.execute(
        "INSERT INTO scores (output_id, score, label, reason, details_json) VALUES (?, ?, ?, ?, ?)",
        (output_id, score, label, reason, json.dumps(details) if details else None),
    )
    conn.commit()


def get_run_results(conn: sqlite3.Connection, run_id: str) -> list[dict]:
    rows = conn.execute(
        """
        SELECT o.output_id, o.case_id, o.prompt, o.output_text, o.error,
               o.latency_ms,
               s.score, s.label, s.reason, s.details_json,
               c.expected, c.vars_json
        FROM outputs o
        LEFT JOIN scores s  ON s.output_id = o.output_id
        LEFT JOIN cases c   ON c.case_id   = o.case_id
        WHERE o.run_id = ?
        ORDER BY o.case_id
        """,
        (run_id,),
    ).fetchall()
    return [dict(r) for r in rows]


def get_scores_by_run(conn: sqlite3.Connection, run_id: str) -> list[dict]:
    rows = conn.execute(
        """
        SELECT s.output_id, s.score, s.label, s.reason, s.details_json,
               o.case_id, o.latency_ms
        FROM scores s
        JOIN outputs o ON o.output_id = s.output_id
        WHERE o.run_id = ?
        ORDER BY o.case_id
        """,
        (run_id,),
    ).fetchall()
    return [dict(r) for r in rows]


def get_run_summary(conn: sqlite3.Connection, run_id: str) -> dict | None:
    row = conn.execute(
        """
        SELECT r.run_id, r.created_at, r.pack_id, r.provider_id, p.label,
               COUNT(o.output_id)                     AS outputs,
               SUM(CASE WHEN o.error IS NOT NULL THEN 1 ELSE 0 END) AS errors,
               AVG(s.score)                           AS mean_score,
               AVG(o.latency_ms)                      AS mean_latency_ms
        FROM runs r
        JOIN providers p   ON p.provider_id = r.provider_id
        LEFT JOIN outputs o ON o.run_id = r.run_id
        LEFT JOIN scores s  ON s.output_id = o.output_id
        WHERE r.run_id = ?
        GROUP BY r.run_id
        """,
        (run_id,),
    ).fetchone()
    return dict(row) if row else None


def list_run_ids(conn: sqlite3.Connection) -> list[str]:
    rows = conn.execute(
        "SELECT run_id FROM runs ORDER BY created_at DESC"
    ).fetchall()
    return [r["run_id"] for r in rows]


def latest_run_id(conn: sqlite3.Connection) -> str | None:
    row = conn.execute(
        "SELECT run_id FROM runs ORDER BY created_at DESC LIMIT 1"
    ).fetchone()
    return row["run_id"] if row else None
