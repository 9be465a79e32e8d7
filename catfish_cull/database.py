import os
import sqlite3
import logging
from datetime import datetime
from typing import Optional, List
from contextlib import contextmanager

from catfish_cull import config
from catfish_cull.checkin import RosterCounts
from catfish_cull.models import Team, LeaderboardRow, EventState

logger = logging.getLogger(__name__)


# ============================================================================
# Database Setup
# ============================================================================

def init_database(path: str = config.DATABASE_PATH):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    conn = sqlite3.connect(path)
    c = conn.cursor()

    c.execute("""
        CREATE TABLE IF NOT EXISTS teams (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            team_number INTEGER UNIQUE,
            competitor1_name TEXT,
            competitor1_email TEXT,
            competitor1_shirt TEXT,
            competitor2_name TEXT,
            competitor2_email TEXT,
            competitor2_shirt TEXT,
            competitor3_name TEXT,
            competitor3_email TEXT,
            club TEXT,
            notes TEXT,
            is_junior INTEGER DEFAULT 0,
            is_women INTEGER DEFAULT 0,
            registered INTEGER DEFAULT 0,
            created_at TEXT,
            updated_at TEXT
        )
    """)

    c.execute("""
        CREATE TABLE IF NOT EXISTS catches (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            team_id INTEGER NOT NULL,
            catfish_count INTEGER NOT NULL DEFAULT 0,
            heaviest_fish_grams INTEGER,
            lightest_fish_grams INTEGER,
            photo_urls TEXT DEFAULT '[]',
            status TEXT DEFAULT 'provisional',
            protest_notes TEXT,
            created_at TEXT,
            updated_at TEXT,
            FOREIGN KEY (team_id) REFERENCES teams(id) ON DELETE CASCADE
        )
    """)

    c.execute("""
        CREATE TABLE IF NOT EXISTS event_state (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            status TEXT DEFAULT 'provisional',
            protest_deadline TEXT,
            prizegiving_time TEXT
        )
    """)

    c.execute("CREATE INDEX IF NOT EXISTS idx_catches_team ON catches(team_id, created_at)")

    existing = c.execute("SELECT COUNT(*) FROM event_state").fetchone()[0]
    if existing == 0:
        c.execute(
            "INSERT INTO event_state (status, protest_deadline, prizegiving_time) VALUES ('provisional', ?, ?)",
            (config.PROTEST_DEADLINE, config.PRIZEGIVING_TIME),
        )
        logger.info("Seeded event state (protest deadline %s)", config.PROTEST_DEADLINE)

    conn.commit()
    conn.close()


@contextmanager
def get_db(path: str = config.DATABASE_PATH):
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


def now_iso() -> str:
    return datetime.utcnow().isoformat(timespec="microseconds")


# ============================================================================
# Data sources
# ============================================================================

class DataSource:
    """Snapshot queries consumed by the live display pipelines.

    Implementations answer each poll with the complete current state; callers
    replace their derived views wholesale on every successful poll.
    """

    def poll_roster(self) -> List[Team]:
        raise NotImplementedError

    def poll_catches(self) -> List[LeaderboardRow]:
        """Active (most recent) catch per team joined with its team."""
        raise NotImplementedError

    def poll_event_state(self) -> EventState:
        raise NotImplementedError

    def poll_counts(self) -> Optional[RosterCounts]:
        """Precomputed roster aggregates, or None when the source has none."""
        return None


ACTIVE_CATCHES_SQL = """
    SELECT c.id AS catch_id, c.team_id, t.team_number,
           t.competitor1_name, t.competitor2_name, t.competitor3_name,
           t.is_junior, t.is_women,
           c.catfish_count, c.heaviest_fish_grams, c.lightest_fish_grams,
           c.photo_urls, c.status, c.protest_notes, c.created_at
    FROM catches c
    JOIN teams t ON t.id = c.team_id
    WHERE c.id = (
        SELECT c2.id FROM catches c2
        WHERE c2.team_id = c.team_id
        ORDER BY c2.created_at DESC, c2.id DESC
        LIMIT 1
    )
    ORDER BY c.catfish_count DESC, t.team_number
"""


def row_to_leaderboard_row(row) -> LeaderboardRow:
    data = dict(row)
    names = [data.get(k) for k in ("competitor1_name", "competitor2_name", "competitor3_name")]
    data["team_names"] = " & ".join(n.strip() for n in names if n and n.strip())
    return LeaderboardRow.model_validate(data)


class SqliteDataSource(DataSource):
    def __init__(self, path: str = config.DATABASE_PATH):
        self.path = path

    def poll_roster(self) -> List[Team]:
        with get_db(self.path) as conn:
            rows = conn.execute("SELECT * FROM teams ORDER BY team_number").fetchall()
            return [Team.model_validate(dict(r)) for r in rows]

    def poll_catches(self) -> List[LeaderboardRow]:
        with get_db(self.path) as conn:
            rows = conn.execute(ACTIVE_CATCHES_SQL).fetchall()
            return [row_to_leaderboard_row(r) for r in rows]

    def poll_event_state(self) -> EventState:
        with get_db(self.path) as conn:
            row = conn.execute("SELECT * FROM event_state ORDER BY id LIMIT 1").fetchone()
            if not row:
                return EventState()
            return EventState.model_validate(dict(row))

    def poll_counts(self) -> Optional[RosterCounts]:
        with get_db(self.path) as conn:
            row = conn.execute("""
                SELECT COUNT(*) AS total,
                       SUM(CASE WHEN registered THEN 1 ELSE 0 END) AS checked_in,
                       SUM(CASE WHEN NOT registered AND TRIM(COALESCE(competitor2_name, '')) <> ''
                           THEN 1 ELSE 0 END) AS waiting,
                       SUM(CASE WHEN NOT registered AND TRIM(COALESCE(competitor2_name, '')) = ''
                           THEN 1 ELSE 0 END) AS incomplete
                FROM teams
            """).fetchone()
            return RosterCounts(
                total=row["total"] or 0,
                checked_in=row["checked_in"] or 0,
                waiting=row["waiting"] or 0,
                incomplete=row["incomplete"] or 0,
            )
