"""
Catfish Cull Live Leaderboard & Check-In Backend API
FastAPI + SQLite backend for a single-day catfish tournament.
"""

import json
import asyncio
import logging
from contextlib import asynccontextmanager, AsyncExitStack
from typing import Optional

from fastapi import FastAPI, APIRouter, HTTPException, Query, Depends, UploadFile, File, Request
from fastapi.middleware.cors import CORSMiddleware

from catfish_cull import config
from catfish_cull.auth import SessionContext, get_session, require_staff
from catfish_cull.database import DataSource, SqliteDataSource, init_database, get_db, now_iso
from catfish_cull.display import CheckInDisplay, LeaderboardFeed
from catfish_cull.models import (
    CatchCreate, CatchEntry, CatchStatus, CatchStatusUpdate, CheckInUpdate, Division, EventStatus,
    ImportCommit, LoginRequest, PageNavigation, SectionSwitch, Team, ViewportReport,
)
from catfish_cull.paging import ViewportSizer
from catfish_cull.reconcile import read_registrant_rows, reconcile_registrants
from catfish_cull.sequencer import Sequencer
from catfish_cull.standings import rank_leaderboard, status_counts

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Helpers
# ============================================================================

def get_checkin(request: Request) -> CheckInDisplay:
    return request.app.state.checkin


def get_leaderboard(request: Request) -> LeaderboardFeed:
    return request.app.state.leaderboard


def get_database_path(request: Request) -> str:
    return request.app.state.database_path


def get_team_by_id(team_id: int, conn) -> dict:
    row = conn.execute("SELECT * FROM teams WHERE id = ?", (team_id,)).fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="Team not found")
    return dict(row)


def get_event_state(conn) -> dict:
    row = conn.execute("SELECT * FROM event_state ORDER BY id LIMIT 1").fetchone()
    if not row:
        raise HTTPException(status_code=404, detail="Event state not initialised")
    return dict(row)


# ============================================================================
# Public Endpoints
# ============================================================================

@router.get("/api/health")
def health():
    return {"status": "ok"}


@router.get("/api/leaderboard")
async def get_standings(
    division: Division = Query(Division.ALL),
    feed: LeaderboardFeed = Depends(get_leaderboard),
):
    return feed.standings(division)


@router.get("/api/event")
async def get_event(feed: LeaderboardFeed = Depends(get_leaderboard)):
    return feed.event_state


# ============================================================================
# Check-In Display
# ============================================================================

@router.get("/api/checkin")
async def get_checkin_display(display: CheckInDisplay = Depends(get_checkin)):
    return display.snapshot()


@router.post("/api/checkin/section")
async def switch_section(data: SectionSwitch, display: CheckInDisplay = Depends(get_checkin)):
    try:
        display.switch_section(data.section)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown section: {data.section}")
    return display.snapshot()


@router.post("/api/checkin/page")
async def navigate_page(data: PageNavigation, display: CheckInDisplay = Depends(get_checkin)):
    if data.page is not None:
        display.jump_to_page(data.page)
    elif data.delta in (-1, 1):
        display.advance_page(data.delta)
    else:
        raise HTTPException(status_code=400, detail="Provide a page number or a delta of -1 or 1")
    return display.snapshot()


@router.post("/api/checkin/viewport")
async def report_viewport(data: ViewportReport, display: CheckInDisplay = Depends(get_checkin)):
    display.resize(data.width, data.height)
    return display.snapshot()


# ============================================================================
# Auth Endpoints
# ============================================================================

@router.post("/api/auth/login")
def login(req: LoginRequest, session: SessionContext = Depends(get_session)):
    if not session.verify_password(req.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"token": session.create_token(), "role": "staff"}


@router.post("/api/auth/logout")
def logout(user: dict = Depends(require_staff), session: SessionContext = Depends(get_session)):
    session.revoke(user)
    return {"success": True}


@router.get("/api/auth/me")
def auth_me(user: dict = Depends(require_staff)):
    return {"role": user.get("role"), "expires": user.get("exp")}


# ============================================================================
# Teams & Check-In
# ============================================================================

@router.get("/api/teams")
def list_teams(user: dict = Depends(require_staff), path: str = Depends(get_database_path)):
    with get_db(path) as conn:
        rows = conn.execute("SELECT * FROM teams ORDER BY team_number").fetchall()
        return [Team.model_validate(dict(r)) for r in rows]


@router.post("/api/teams/{team_id}/check-in")
async def check_in_team(
    team_id: int,
    data: CheckInUpdate,
    request: Request,
    user: dict = Depends(require_staff),
    path: str = Depends(get_database_path),
):
    def write():
        with get_db(path) as conn:
            get_team_by_id(team_id, conn)
            conn.execute(
                "UPDATE teams SET registered = ?, updated_at = ? WHERE id = ?",
                (1 if data.registered else 0, now_iso(), team_id),
            )
            conn.commit()
            return Team.model_validate(get_team_by_id(team_id, conn))

    team = await asyncio.to_thread(write)
    await request.app.state.checkin.refresh()
    return team


# ============================================================================
# Weigh-In
# ============================================================================

@router.post("/api/catches")
async def submit_catch(
    data: CatchCreate,
    request: Request,
    user: dict = Depends(require_staff),
    path: str = Depends(get_database_path),
):
    def write():
        with get_db(path) as conn:
            row = conn.execute("SELECT * FROM teams WHERE team_number = ?", (data.team_number,)).fetchone()
            if not row:
                raise HTTPException(status_code=404, detail=f"Team #{data.team_number} not found")
            team = Team.model_validate(dict(row))
            stamp = now_iso()
            cur = conn.execute(
                "INSERT INTO catches (team_id, catfish_count, heaviest_fish_grams, lightest_fish_grams, photo_urls, status, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (team.id, data.catfish_count, data.heaviest_fish_grams, data.lightest_fish_grams,
                 json.dumps(data.photo_urls), CatchStatus.PROVISIONAL.value, stamp, stamp),
            )
            conn.commit()
            catch = CatchEntry.model_validate(dict(conn.execute("SELECT * FROM catches WHERE id = ?", (cur.lastrowid,)).fetchone()))
            return team, catch

    team, catch = await asyncio.to_thread(write)
    await request.app.state.leaderboard.refresh()
    logger.info("Weigh-in recorded for team #%s: %d catfish", team.team_number, data.catfish_count)
    return {"catch": catch, "team": team, "eligible": not team.has_third_competitor}


@router.put("/api/catches/{cid}/status")
async def update_catch_status(
    cid: int,
    data: CatchStatusUpdate,
    request: Request,
    user: dict = Depends(require_staff),
    path: str = Depends(get_database_path),
):
    notes = (data.protest_notes or "").strip() or None
    if data.status == CatchStatus.UNDER_PROTEST and not notes:
        raise HTTPException(status_code=400, detail="Protest details are required")
    def write():
        with get_db(path) as conn:
            if get_event_state(conn)["status"] == EventStatus.FINAL.value:
                raise HTTPException(status_code=409, detail="Results are final; status changes are locked")
            existing = conn.execute("SELECT id FROM catches WHERE id = ?", (cid,)).fetchone()
            if not existing:
                raise HTTPException(status_code=404, detail="Catch not found")
            conn.execute(
                "UPDATE catches SET status = ?, protest_notes = ?, updated_at = ? WHERE id = ?",
                (data.status.value, notes, now_iso(), cid),
            )
            conn.commit()
            return CatchEntry.model_validate(dict(conn.execute("SELECT * FROM catches WHERE id = ?", (cid,)).fetchone()))

    catch = await asyncio.to_thread(write)
    await request.app.state.leaderboard.refresh()
    return catch


@router.delete("/api/catches/{cid}")
async def delete_catch(
    cid: int,
    request: Request,
    user: dict = Depends(require_staff),
    path: str = Depends(get_database_path),
):
    def write():
        with get_db(path) as conn:
            affected = conn.execute("DELETE FROM catches WHERE id = ?", (cid,)).rowcount
            conn.commit()
            if not affected:
                raise HTTPException(status_code=404, detail="Catch not found")

    await asyncio.to_thread(write)
    await request.app.state.leaderboard.refresh()
    return {"deleted": True}


# ============================================================================
# Results Management
# ============================================================================

@router.get("/api/results")
def get_results(request: Request, user: dict = Depends(require_staff)):
    source = request.app.state.source
    rows = source.poll_catches()
    return {
        "standings": rank_leaderboard(rows),
        "statusCounts": status_counts(rows),
        "eventState": source.poll_event_state(),
    }


@router.post("/api/results/finalize")
async def finalize_results(
    request: Request,
    user: dict = Depends(require_staff),
    path: str = Depends(get_database_path),
):
    def write():
        with get_db(path) as conn:
            state = get_event_state(conn)
            if state["status"] == EventStatus.FINAL.value:
                raise HTTPException(status_code=409, detail="Results are already final")
            confirmed = conn.execute(
                "UPDATE catches SET status = ?, updated_at = ? WHERE status = ?",
                (CatchStatus.CONFIRMED.value, now_iso(), CatchStatus.PROVISIONAL.value),
            ).rowcount
            conn.execute(
                "UPDATE event_state SET status = ? WHERE id = ?", (EventStatus.FINAL.value, state["id"])
            )
            conn.commit()
            return get_event_state(conn), confirmed

    state, confirmed = await asyncio.to_thread(write)
    await request.app.state.leaderboard.refresh()
    logger.info("Results finalised: %d provisional catches confirmed", confirmed)
    return {"eventState": state, "confirmed": confirmed}


# ============================================================================
# TryBooking Import
# ============================================================================

@router.post("/api/import/preview")
async def import_preview(
    file: UploadFile = File(...),
    first_team_number: int = Query(1, ge=1),
    user: dict = Depends(require_staff),
):
    content = await file.read()
    try:
        rows = read_registrant_rows(file.filename, content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    result = reconcile_registrants(rows, first_team_number=first_team_number)
    return {
        "candidates": result.candidates,
        "matched": result.matched,
        "unmatched": result.unmatched,
    }


@router.post("/api/import/commit")
async def import_commit(
    data: ImportCommit,
    request: Request,
    user: dict = Depends(require_staff),
    path: str = Depends(get_database_path),
):
    numbers = [c.team_number for c in data.candidates]
    duplicates = sorted({n for n in numbers if numbers.count(n) > 1})
    if duplicates:
        raise HTTPException(status_code=409, detail=f"Duplicate team numbers in import: {duplicates}")

    def write():
        with get_db(path) as conn:
            if numbers:
                placeholders = ", ".join("?" for _ in numbers)
                taken = [
                    r["team_number"] for r in conn.execute(
                        f"SELECT team_number FROM teams WHERE team_number IN ({placeholders})", numbers
                    ).fetchall()
                ]
                if taken:
                    raise HTTPException(status_code=409, detail=f"Team numbers already in use: {sorted(taken)}")

            stamp = now_iso()
            for c in data.candidates:
                notes = c.notes
                if not notes and not c.matched and c.partner_text:
                    notes = f"Specified partner: {c.partner_text} (not registered)"
                conn.execute(
                    """INSERT INTO teams
                       (team_number, competitor1_name, competitor1_email, competitor1_shirt,
                        competitor2_name, competitor2_email, competitor2_shirt,
                        notes, is_junior, is_women, registered, created_at, updated_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?)""",
                    (c.team_number, c.competitor1_name, c.competitor1_email, c.competitor1_shirt,
                     c.competitor2_name, c.competitor2_email, c.competitor2_shirt,
                     notes, 1 if c.is_junior else 0, 1 if c.is_women else 0, stamp, stamp),
                )
            conn.commit()

    await asyncio.to_thread(write)
    await request.app.state.checkin.refresh()
    logger.info("Imported %d teams", len(data.candidates))
    return {"inserted": len(data.candidates)}


# ============================================================================
# Application factory
# ============================================================================

def create_app(
    database_path: Optional[str] = None,
    source: Optional[DataSource] = None,
    session: Optional[SessionContext] = None,
    sequencer: Optional[Sequencer] = None,
    sizer: Optional[ViewportSizer] = None,
) -> FastAPI:
    config.configure_logging()
    path = database_path or config.DATABASE_PATH
    source = source or SqliteDataSource(path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_database(path)
        async with AsyncExitStack() as stack:
            await stack.enter_async_context(app.state.checkin.running())
            await stack.enter_async_context(app.state.leaderboard.running())
            yield

    app = FastAPI(
        title="Catfish Cull API",
        description="Live leaderboard and check-in backend for a catfish tournament",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.database_path = path
    app.state.source = source
    app.state.session = session or SessionContext()
    app.state.checkin = CheckInDisplay(source, sizer=sizer, sequencer=sequencer)
    app.state.leaderboard = LeaderboardFeed(source)
    app.include_router(router)
    return app


app = create_app()
