"""SQLite persistence for finished world runs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
import json
import sqlite3


@dataclass
class RunRecord:
    run_id: str
    seed: int
    domain: str
    created: str
    world: dict
    statistics: dict


class RunStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.conn = sqlite3.connect(self.path)
        self.conn.row_factory = sqlite3.Row
        self._ensure_schema()

    def close(self) -> None:
        self.conn.close()

    def save_run(self, run_id: str, seed: int, domain: str, world: dict, statistics: dict) -> RunRecord:
        created = datetime.now(timezone.utc).isoformat(timespec="seconds")
        cur = self.conn.cursor()
        cur.execute(
            """
            INSERT INTO runs (run_id, seed, domain, created, world_json, statistics_json)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(run_id) DO UPDATE SET
                seed = excluded.seed,
                domain = excluded.domain,
                created = excluded.created,
                world_json = excluded.world_json,
                statistics_json = excluded.statistics_json
            """,
            (run_id, seed, domain, created, json.dumps(world), json.dumps(statistics)),
        )
        self.conn.commit()
        return RunRecord(run_id=run_id, seed=seed, domain=domain, created=created, world=world, statistics=statistics)

    def load_run(self, run_id: str) -> RunRecord | None:
        cur = self.conn.cursor()
        cur.execute(
            "SELECT run_id, seed, domain, created, world_json, statistics_json FROM runs WHERE run_id = ?",
            (run_id,),
        )
        row = cur.fetchone()
        if row is None:
            return None
        return RunRecord(
            run_id=row["run_id"],
            seed=int(row["seed"]),
            domain=row["domain"],
            created=row["created"],
            world=json.loads(row["world_json"] or "{}"),
            statistics=json.loads(row["statistics_json"] or "{}"),
        )

    def list_runs(self) -> list[tuple[str, int, str]]:
        cur = self.conn.cursor()
        cur.execute("SELECT run_id, seed, created FROM runs ORDER BY created DESC, run_id")
        return [(row["run_id"], int(row["seed"]), row["created"]) for row in cur.fetchall()]

    def delete_run(self, run_id: str) -> bool:
        cur = self.conn.cursor()
        cur.execute("DELETE FROM runs WHERE run_id = ?", (run_id,))
        self.conn.commit()
        return cur.rowcount > 0

    def _ensure_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS runs (
                run_id TEXT PRIMARY KEY,
                seed INTEGER NOT NULL,
                domain TEXT NOT NULL,
                created TEXT NOT NULL,
                world_json TEXT NOT NULL,
                statistics_json TEXT NOT NULL
            )
            """
        )
        self.conn.commit()
