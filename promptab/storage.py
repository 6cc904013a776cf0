from __future__ import annotations

import json
import logging
import math
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .analysis import ABTestAnalysis, TestResult, Variant
from .config import Settings


logger = logging.getLogger(__name__)


def _resolve_path(db_path: Optional[Path]) -> Path:
    return Settings.from_env().db_path if db_path is None else Path(db_path)


def _get_conn(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    return conn


def init_db(db_path: Optional[Path] = None) -> None:
    db_path = _resolve_path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with closing(_get_conn(db_path)) as conn, conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS test_runs (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              name TEXT NOT NULL,
              min_sample_size INTEGER NOT NULL,
              alpha REAL NOT NULL,
              winner TEXT,
              confidence REAL NOT NULL,
              recommended_sample_size REAL NOT NULL,
              is_complete INTEGER NOT NULL,
              insights TEXT NOT NULL,
              created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS test_variants (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              run_id INTEGER NOT NULL,
              variant_id TEXT NOT NULL,
              name TEXT NOT NULL,
              prompt TEXT NOT NULL,
              FOREIGN KEY (run_id) REFERENCES test_runs(id)
            );

            CREATE TABLE IF NOT EXISTS test_results (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              run_id INTEGER NOT NULL,
              variant_id TEXT NOT NULL,
              input TEXT NOT NULL,
              output TEXT NOT NULL,
              score REAL NOT NULL,
              tokens INTEGER,
              cost REAL,
              timestamp INTEGER NOT NULL,
              FOREIGN KEY (run_id) REFERENCES test_runs(id)
            );
            """
        )


def save_test_run(
    name: str,
    variants: Sequence[Variant],
    analysis: ABTestAnalysis,
    min_sample_size: int,
    alpha: float,
    db_path: Optional[Path] = None,
) -> int:
    """Store a test's variants, their results and the analysis made of them.

    Without ``db_path`` the run goes to the configured `Settings.db_path`.
    """
    db_path = _resolve_path(db_path)
    init_db(db_path)
    now = datetime.now(timezone.utc).isoformat()

    with closing(_get_conn(db_path)) as conn, conn:
        cur = conn.execute(
            """
            INSERT INTO test_runs (
              name, min_sample_size, alpha, winner, confidence,
              recommended_sample_size, is_complete, insights, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                name,
                int(min_sample_size),
                float(alpha),
                analysis.winner,
                float(analysis.confidence),
                float(analysis.recommended_sample_size),
                int(analysis.is_complete),
                json.dumps(analysis.insights),
                now,
            ),
        )
        run_id = int(cur.lastrowid)

        conn.executemany(
            "INSERT INTO test_variants (run_id, variant_id, name, prompt) VALUES (?, ?, ?, ?)",
            [(run_id, v.id, v.name, v.prompt) for v in variants],
        )
        conn.executemany(
            """
            INSERT INTO test_results (
              run_id, variant_id, input, output, score, tokens, cost, timestamp
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (run_id, v.id, r.input, r.output, float(r.score), r.tokens, r.cost, int(r.timestamp))
                for v in variants
                for r in v.results
            ],
        )

    logger.info("Saved test run #%d (%s) with %d variants", run_id, name, len(variants))
    return run_id


def get_test_runs(limit: int = 25, db_path: Optional[Path] = None) -> List[Dict[str, Any]]:
    db_path = _resolve_path(db_path)
    init_db(db_path)
    with closing(_get_conn(db_path)) as conn, conn:
        rows = conn.execute(
            "SELECT * FROM test_runs ORDER BY datetime(created_at) DESC, id DESC LIMIT ?",
            (int(limit),),
        ).fetchall()

    runs = []
    for row in rows:
        run = dict(row)
        run["insights"] = json.loads(run["insights"])
        run["is_complete"] = bool(run["is_complete"])
        recommended = run["recommended_sample_size"]
        if math.isfinite(recommended):
            run["recommended_sample_size"] = int(recommended)
        runs.append(run)
    return runs


def get_test_results(run_id: int, db_path: Optional[Path] = None) -> pd.DataFrame:
    db_path = _resolve_path(db_path)
    init_db(db_path)
    with closing(_get_conn(db_path)) as conn, conn:
        rows = conn.execute(
            """
            SELECT r.variant_id, v.name AS variant, r.input, r.output, r.score, r.tokens, r.cost, r.timestamp
            FROM test_results r
            JOIN test_variants v ON v.run_id = r.run_id AND v.variant_id = r.variant_id
            WHERE r.run_id = ?
            ORDER BY r.id
            """,
            (int(run_id),),
        ).fetchall()

    if not rows:
        return pd.DataFrame(columns=["variant_id", "variant", "input", "output", "score", "tokens", "cost", "timestamp"])

    df = pd.DataFrame([dict(r) for r in rows])
    df["timestamp"] = pd.to_datetime(df["timestamp"], unit="ms")
    return df.sort_values("timestamp", kind="stable").reset_index(drop=True)


def load_variants(run_id: int, db_path: Optional[Path] = None) -> List[Variant]:
    """Rebuild the variants of a stored run, results in their original order."""
    db_path = _resolve_path(db_path)
    init_db(db_path)
    with closing(_get_conn(db_path)) as conn, conn:
        variant_rows = conn.execute(
            "SELECT variant_id, name, prompt FROM test_variants WHERE run_id = ? ORDER BY id",
            (int(run_id),),
        ).fetchall()
        result_rows = conn.execute(
            """
            SELECT variant_id, input, output, score, tokens, cost, timestamp
            FROM test_results WHERE run_id = ? ORDER BY id
            """,
            (int(run_id),),
        ).fetchall()

    variants = {r["variant_id"]: Variant(id=r["variant_id"], name=r["name"], prompt=r["prompt"]) for r in variant_rows}
    for r in result_rows:
        variants[r["variant_id"]].results.append(
            TestResult(
                input=r["input"],
                output=r["output"],
                score=r["score"],
                timestamp=r["timestamp"],
                tokens=r["tokens"],
                cost=r["cost"],
            )
        )
    return list(variants.values())
