"""Shared fixtures for the Catfish Cull test suite."""
import os
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from catfish_cull.app import create_app
from catfish_cull.auth import SessionContext
from catfish_cull.checkin import RosterCounts
from catfish_cull.database import DataSource, init_database, get_db
from catfish_cull.models import EventState, LeaderboardRow, Team
from catfish_cull.sequencer import Sequencer

STAFF_PASSWORD = "weighmaster"
BASE_TIME = datetime(2026, 3, 14, 9, 0, 0)


class FakeSource(DataSource):
    """In-memory data source; set ``failing`` to simulate a backend outage."""

    def __init__(self, roster=None, catches=None, counts=None):
        self.roster = list(roster or [])
        self.catches = list(catches or [])
        self.counts = counts
        self.event_state = EventState(status="provisional", protest_deadline="5:00 PM", prizegiving_time="6:30 PM")
        self.failing = False
        self.polls = 0

    def _check(self):
        self.polls += 1
        if self.failing:
            raise ConnectionError("backend unavailable")

    def poll_roster(self):
        self._check()
        return list(self.roster)

    def poll_catches(self):
        self._check()
        return list(self.catches)

    def poll_event_state(self):
        self._check()
        return self.event_state

    def poll_counts(self):
        return self.counts


def make_team(number, names=("Alice Smith", "Bob Jones"), registered=False, minutes=0, **kwargs):
    names = list(names) + [None] * (3 - len(names))
    return Team(
        id=number,
        team_number=number,
        competitor1_name=names[0],
        competitor2_name=names[1],
        competitor3_name=names[2],
        registered=registered,
        created_at=BASE_TIME,
        updated_at=BASE_TIME + timedelta(minutes=minutes),
        **kwargs,
    )


def make_row(number, count, status="provisional", third=None, minutes=0, **kwargs):
    return LeaderboardRow(
        catch_id=number * 10,
        team_id=number,
        team_number=number,
        competitor1_name=f"Diver {number}A",
        competitor2_name=f"Diver {number}B",
        competitor3_name=third,
        team_names=f"Diver {number}A & Diver {number}B",
        catfish_count=count,
        status=status,
        created_at=BASE_TIME + timedelta(minutes=minutes),
        **kwargs,
    )


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def db_path(tmp_path):
    path = os.path.join(str(tmp_path), "catfish.db")
    init_database(path)
    return path


@pytest.fixture
def insert_team(db_path):
    def _insert(team_number, competitor1="Alice Smith", competitor2="Bob Jones", competitor3=None,
                registered=False, is_junior=False, is_women=False, notes=None, stamp=None):
        stamp = stamp or BASE_TIME.isoformat()
        with get_db(db_path) as conn:
            cur = conn.execute(
                """INSERT INTO teams (team_number, competitor1_name, competitor2_name, competitor3_name,
                   is_junior, is_women, registered, notes, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (team_number, competitor1, competitor2, competitor3,
                 int(is_junior), int(is_women), int(registered), notes, stamp, stamp),
            )
            conn.commit()
            return cur.lastrowid
    return _insert


@pytest.fixture
def insert_catch(db_path):
    def _insert(team_id, count, status="provisional", heaviest=None, lightest=None, stamp=None):
        stamp = stamp or BASE_TIME.isoformat()
        with get_db(db_path) as conn:
            cur = conn.execute(
                """INSERT INTO catches (team_id, catfish_count, heaviest_fish_grams, lightest_fish_grams,
                   photo_urls, status, created_at, updated_at) VALUES (?, ?, ?, ?, '[]', ?, ?, ?)""",
                (team_id, count, heaviest, lightest, status, stamp, stamp),
            )
            conn.commit()
            return cur.lastrowid
    return _insert


@pytest.fixture
def app(db_path):
    # Timers far apart so automatic advancement never races the assertions.
    sequencer = Sequencer(dwell_ms=600_000, progress_ms=600_000, refresh_ms=600_000)
    return create_app(
        database_path=db_path,
        session=SessionContext(password=STAFF_PASSWORD, secret="test-secret"),
        sequencer=sequencer,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def staff_headers(client):
    resp = client.post("/api/auth/login", json={"password": STAFF_PASSWORD})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def roster_counts():
    return RosterCounts(total=99, checked_in=1, waiting=2, incomplete=3)
