"""
REST API for the matchday backend.
Thin wrappers around domain logic, persistence and the live match engines.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, Generator

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from matchday import config
from matchday.live import (
    ClockStateError,
    EngineClosedError,
    EventNotFoundError,
    EventValidationError,
    LiveMatchEngine,
    LiveMatchRegistry,
    MatchSnapshot,
)
from matchday.models import Match, MatchEventType, MatchStatus, target_from_dict
from matchday.persistence import (
    CompetitionRepository,
    PlayerRepository,
    SanctionRepository,
    TeamRepository,
    get_connection,
    init_db,
)
from matchday.services import (
    CompetitionNotFoundError,
    CompetitionService,
    MatchNotFoundError,
    MatchTransitionError,
    UnknownTeamError,
)
from matchday.services.scheduling import schedule_to_dicts

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def domain_errors() -> Generator:
    """Translate domain exceptions to HTTP status codes."""
    try:
        yield
    except (MatchTransitionError, ClockStateError, EngineClosedError) as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except (CompetitionNotFoundError, MatchNotFoundError, EventNotFoundError, UnknownTeamError) as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except (EventValidationError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


# ---------- Live engines ----------
# Concurrency: engines are process-local. Live endpoints are async so every clock
# task runs on the server's event loop.

service = CompetitionService()


def _persist_live_state(engine: LiveMatchEngine) -> None:
    """
    Subscribe a writer that stores this engine's match. Ticks are written every
    LIVE_SAVE_INTERVAL_SECONDS of match time; every other snapshot is written at once.
    """

    def _write(snapshot: MatchSnapshot) -> None:
        if snapshot.reason == "tick" and snapshot.elapsed_seconds % max(1, config.LIVE_SAVE_INTERVAL_SECONDS):
            return
        with db_conn() as conn:
            service.save_live_state(conn, engine.match)

    engine.subscribe(_write)


live_registry = LiveMatchRegistry(on_open=_persist_live_state)


def _open_engine(conn, match: Match) -> LiveMatchEngine:
    if match.status == MatchStatus.FINISHED:
        raise HTTPException(status_code=409, detail=f"Match {match.id} is finished; restart it first")
    engine = live_registry.get(match.id)
    if engine is not None:
        return engine
    return live_registry.open(match, service.match_roster(conn, match))


def _live_engine(match_id: str) -> LiveMatchEngine:
    """Engine for a match that is In Progress, reopened from storage if needed."""
    engine = live_registry.get(match_id)
    if engine is None:
        with db_conn() as conn:
            with domain_errors():
                match = service.get_match(conn, match_id)
            engine = _open_engine(conn, match)
    if engine.match.status != MatchStatus.IN_PROGRESS:
        raise HTTPException(status_code=409, detail=f"Match {match_id} is not in progress")
    return engine


def _snapshot_message(snapshot: MatchSnapshot) -> dict[str, Any]:
    return {"type": "match_snapshot", **snapshot.to_dict()}


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    init_db()
    yield
    live_registry.close_all()


# ---------- FastAPI app ----------
app = FastAPI(
    title="Matchday API",
    description="Competition scheduling, standings and live match console",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Request/Response models ----------


class CreateTeamRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    logo_url: str = ""


class CreatePlayerRequest(BaseModel):
    team_id: str
    name: str = Field(..., min_length=1, max_length=200)


class CreateCompetitionRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    team_ids: list[str] = Field(..., description="Schedule order of the participating teams")
    two_legged: bool = False
    points_for_win: int = Field(default=config.DEFAULT_POINTS_FOR_WIN, ge=0)
    points_for_tie_break_win: int = Field(default=config.DEFAULT_POINTS_FOR_TIE_BREAK_WIN, ge=0)


class GenerateScheduleRequest(BaseModel):
    start_date: datetime | None = Field(None, description="Date of round 1 is start_date + 7 days")


class SanctionTargetBody(BaseModel):
    kind: str = Field(..., description="'team' or 'player'")
    team_id: str | None = None
    player_id: str | None = None


class CreateSanctionRequest(BaseModel):
    target: SanctionTargetBody
    reason: str = Field(..., min_length=1)
    details: str = ""
    date: datetime | None = None


class AddEventRequest(BaseModel):
    type: MatchEventType
    team_id: str
    primary_player_id: str | None = None
    secondary_player_id: str | None = Field(None, description="Player coming on; SUBSTITUTION only")


# ---------- Teams & players ----------


@app.post("/teams")
def create_team(req: CreateTeamRequest) -> dict[str, Any]:
    with db_conn() as conn:
        team = TeamRepository().create(conn, req.name, logo_url=req.logo_url)
        return team.to_dict()


@app.get("/teams")
def list_teams() -> dict[str, Any]:
    with db_conn() as conn:
        return {"teams": [t.to_dict() for t in TeamRepository().list_all(conn)]}


@app.get("/teams/{team_id}")
def get_team(team_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        team = TeamRepository().get(conn, team_id)
        if team is None:
            raise HTTPException(status_code=404, detail="Team not found")
        players = PlayerRepository().list_by_team(conn, team_id)
        return {**team.to_dict(), "players": [p.to_dict() for p in players]}


@app.post("/players")
def create_player(req: CreatePlayerRequest) -> dict[str, Any]:
    with db_conn() as conn:
        if TeamRepository().get(conn, req.team_id) is None:
            raise HTTPException(status_code=404, detail=f"Team not found: {req.team_id}")
        player = PlayerRepository().create(conn, req.team_id, req.name)
        return player.to_dict()


@app.get("/players")
def list_players(team_id: str = Query(..., description="Team whose players to list")) -> dict[str, Any]:
    with db_conn() as conn:
        players = PlayerRepository().list_by_team(conn, team_id)
        return {"team_id": team_id, "players": [p.to_dict() for p in players]}


# ---------- Competitions ----------


@app.post("/competitions")
def create_competition(req: CreateCompetitionRequest) -> dict[str, Any]:
    if len(set(req.team_ids)) != len(req.team_ids):
        raise HTTPException(status_code=400, detail="team_ids must be unique")
    with db_conn() as conn:
        known = TeamRepository().get_many(conn, req.team_ids)
        missing = [tid for tid in req.team_ids if tid not in known]
        if missing:
            raise HTTPException(status_code=400, detail=f"Unknown teams: {missing}")
        competition = CompetitionRepository().create(
            conn,
            req.name,
            req.team_ids,
            two_legged=req.two_legged,
            points_for_win=req.points_for_win,
            points_for_tie_break_win=req.points_for_tie_break_win,
        )
        return competition.to_dict()


@app.get("/competitions/{competition_id}")
def get_competition(competition_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        with domain_errors():
            competition = service.get_competition(conn, competition_id)
        matches = service.competition_matches(conn, competition_id)
        return {**competition.to_dict(), "matches": [m.to_dict() for m in matches]}


@app.post("/competitions/{competition_id}/schedule")
async def generate_schedule_endpoint(
    competition_id: str,
    req: GenerateScheduleRequest | None = None,
) -> dict[str, Any]:
    """Generate round-robin fixtures, replacing the competition's previous ones."""
    with db_conn() as conn:
        with domain_errors():
            old = service.competition_matches(conn, competition_id)
            fixtures = service.generate_competition_schedule(
                conn, competition_id, start_date=req.start_date if req else None
            )
    for m in old:
        live_registry.discard(m.id)
    return {"competition_id": competition_id, "matches": [m.to_dict() for m in fixtures]}


@app.get("/competitions/{competition_id}/schedule")
def get_schedule(competition_id: str) -> dict[str, Any]:
    """Rounds (with byes) for the current team order, plus the stored fixtures."""
    with db_conn() as conn:
        with domain_errors():
            rounds = service.competition_schedule(conn, competition_id)
        matches = service.competition_matches(conn, competition_id)
        return {
            "competition_id": competition_id,
            "rounds": schedule_to_dicts(rounds),
            "matches": [m.to_dict() for m in matches],
        }


@app.get("/competitions/{competition_id}/standings")
def get_standings(competition_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        with domain_errors():
            rows = service.standings(conn, competition_id)
        return {"competition_id": competition_id, "standings": [s.to_dict() for s in rows]}


@app.get("/competitions/{competition_id}/player-stats")
def get_player_stats(
    competition_id: str,
    limit: int | None = Query(None, ge=1, description="Top N lines only"),
) -> dict[str, Any]:
    with db_conn() as conn:
        with domain_errors():
            lines = service.player_stats(conn, competition_id)
        if limit is not None:
            lines = lines[:limit]
        return {"competition_id": competition_id, "players": [s.to_dict() for s in lines]}


@app.post("/competitions/{competition_id}/sanctions")
def create_sanction(competition_id: str, req: CreateSanctionRequest) -> dict[str, Any]:
    try:
        target = target_from_dict(req.target.model_dump(exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail="target must be {kind: 'team', team_id} or {kind: 'player', player_id}") from e
    with db_conn() as conn:
        with domain_errors():
            service.get_competition(conn, competition_id)
        sanction = SanctionRepository().create(
            conn, competition_id, target, req.reason, details=req.details, date=req.date
        )
        return sanction.to_dict()


@app.get("/competitions/{competition_id}/sanctions")
def list_sanctions(
    competition_id: str,
    team_id: str | None = Query(None, description="Only sanctions against this team or its players"),
) -> dict[str, Any]:
    with db_conn() as conn:
        with domain_errors():
            service.get_competition(conn, competition_id)
        sanctions = SanctionRepository().list_by_competition(conn, competition_id)
        if team_id is not None:
            roster = service.team_roster(conn, team_id)
            sanctions = [s for s in sanctions if s.applies_to_team(team_id, roster)]
        return {"competition_id": competition_id, "sanctions": [s.to_dict() for s in sanctions]}


# ---------- Matches & live console ----------


@app.get("/matches/{match_id}")
async def get_match(match_id: str) -> dict[str, Any]:
    """Stored match, overlaid with live state when an engine is open for it."""
    engine = live_registry.get(match_id)
    if engine is not None:
        match = engine.match
        snapshot = engine.snapshot()
    else:
        with db_conn() as conn:
            with domain_errors():
                match = service.get_match(conn, match_id)
        snapshot = MatchSnapshot.from_match(match)
    timeline = sorted(match.events, key=lambda e: e.minute, reverse=True)
    return {
        "match": match.to_dict(),
        "clock": snapshot.to_dict()["clock"],
        "minute": snapshot.minute,
        "clock_running": snapshot.clock_running,
        "timeline": [e.to_dict() for e in timeline],
    }


@app.post("/matches/{match_id}/start")
async def start_match(match_id: str) -> dict[str, Any]:
    """Not Started -> In Progress (if needed) and start the clock."""
    with db_conn() as conn:
        with domain_errors():
            match = service.start_match(conn, match_id)
        engine = _open_engine(conn, match)
    with domain_errors():
        if engine.match.status != MatchStatus.IN_PROGRESS:
            engine.set_status(MatchStatus.IN_PROGRESS)
        return _snapshot_message(engine.start())


@app.post("/matches/{match_id}/pause")
async def pause_match(match_id: str) -> dict[str, Any]:
    engine = _live_engine(match_id)
    with domain_errors():
        return _snapshot_message(engine.pause())


@app.post("/matches/{match_id}/resume")
async def resume_match(match_id: str) -> dict[str, Any]:
    engine = _live_engine(match_id)
    with domain_errors():
        return _snapshot_message(engine.resume())


@app.post("/matches/{match_id}/reset-clock")
async def reset_match_clock(match_id: str) -> dict[str, Any]:
    engine = _live_engine(match_id)
    with domain_errors():
        return _snapshot_message(engine.reset_clock())


@app.post("/matches/{match_id}/reset-score")
async def reset_match_score(match_id: str) -> dict[str, Any]:
    engine = _live_engine(match_id)
    with domain_errors():
        return _snapshot_message(engine.reset_score())


@app.post("/matches/{match_id}/events")
async def add_match_event(match_id: str, req: AddEventRequest) -> dict[str, Any]:
    engine = _live_engine(match_id)
    with domain_errors():
        snapshot = engine.add_event(req.type, req.team_id, req.primary_player_id, req.secondary_player_id)
    return _snapshot_message(snapshot)


@app.delete("/matches/{match_id}/events/{event_id}")
async def remove_match_event(match_id: str, event_id: str) -> dict[str, Any]:
    engine = _live_engine(match_id)
    with domain_errors():
        return _snapshot_message(engine.remove_event(event_id))


@app.post("/matches/{match_id}/finish")
async def finish_match(match_id: str) -> dict[str, Any]:
    """
    In Progress -> Finished. Stops the clock, stores the final state and closes
    the live engine; the result then counts in the standings.
    """
    engine = live_registry.get(match_id)
    with db_conn() as conn:
        with domain_errors():
            if engine is not None and engine.match.status == MatchStatus.IN_PROGRESS:
                engine.pause()
                service.save_live_state(conn, engine.match)
            match = service.finish_match(conn, match_id)
    if engine is not None and not engine.closed:
        engine.set_status(MatchStatus.FINISHED)
    live_registry.discard(match_id)
    return {"match": match.to_dict(), "finished": True}


@app.post("/matches/{match_id}/restart")
async def restart_match(match_id: str) -> dict[str, Any]:
    """
    Reset a match to Not Started: clock, score and event log cleared. An open
    engine is reset in place so its subscribers see the cleared state.
    """
    with db_conn() as conn:
        with domain_errors():
            match = service.restart_match(conn, match_id)
    engine = live_registry.get(match_id)
    if engine is not None and not engine.closed:
        engine.set_status(MatchStatus.NOT_STARTED)
        engine.reset_clock()
    return {"match": match.to_dict(), "restarted": True}


@app.websocket("/ws/matches/{match_id}")
async def websocket_match(websocket: WebSocket, match_id: str):
    """
    Subscribe to a match. Server pushes { type: "match_snapshot", ... } on every
    mutation (including clock ticks). On connect the current state is sent first.
    """
    await websocket.accept()
    with db_conn() as conn:
        match = service.find_match(conn, match_id)
        if match is None:
            await websocket.close(code=4404)
            return
        engine = None
        if match.status != MatchStatus.FINISHED:
            engine = _open_engine(conn, match)

    async def _pump() -> None:
        async for snapshot in engine.emitter.stream(initial=engine.snapshot("connect")):
            await websocket.send_json(_snapshot_message(snapshot))

    pump: asyncio.Task | None = None
    if engine is None:
        await websocket.send_json(_snapshot_message(MatchSnapshot.from_match(match)))
    else:
        pump = asyncio.create_task(_pump())
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        if pump is not None:
            pump.cancel()


# ---------- Run with: uvicorn matchday.api:app --reload ----------
