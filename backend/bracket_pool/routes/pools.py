"""
Pool setup and read endpoints: configuration, teams, entries, the draw, the
bracket and standings.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from bracket_pool.database import get_session
from bracket_pool.models.entry import Entry
from bracket_pool.models.pool import PushRule
from bracket_pool.models.pool_team import PoolTeam
from bracket_pool.services.draw_service import run_draw
from bracket_pool.services.errors import PoolEngineError
from bracket_pool.services.pool_setup import (
    add_entry,
    add_teams,
    create_pool,
    get_pool,
    payout_problem,
    set_entry_approval,
    update_pool,
)
from bracket_pool.services.standings_service import build_standings, list_bracket, team_names
from bracket_pool.utils.http_errors import to_http_exception

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class PoolCreate(BaseModel):
    name: str
    tournament_year: int
    push_rule: PushRule = PushRule.favorite_advances
    sweet16_payout_pct: float = 0.0
    elite8_payout_pct: float = 0.0
    final4_payout_pct: float = 0.0
    runnerup_payout_pct: float = 0.0
    champion_payout_pct: float = 100.0
    spread_required: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @model_validator(mode="after")
    def validate_payouts(self):
        problem = payout_problem(self.model_dump())
        if problem:
            raise ValueError(problem)
        return self


class PoolUpdate(BaseModel):
    name: Optional[str] = None
    tournament_year: Optional[int] = None
    push_rule: Optional[PushRule] = None
    sweet16_payout_pct: Optional[float] = None
    elite8_payout_pct: Optional[float] = None
    final4_payout_pct: Optional[float] = None
    runnerup_payout_pct: Optional[float] = None
    champion_payout_pct: Optional[float] = None
    spread_required: Optional[bool] = None


class PoolResponse(BaseModel):
    id: int
    name: str
    tournament_year: int
    push_rule: str
    sweet16_payout_pct: float
    elite8_payout_pct: float
    final4_payout_pct: float
    runnerup_payout_pct: float
    champion_payout_pct: float
    spread_required: bool
    draw_completed: bool
    draw_completed_at: Optional[datetime] = None
    champion_entry_id: Optional[int] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TeamCreate(BaseModel):
    name: str
    seed: int
    region: str


class TeamsCreate(BaseModel):
    teams: List[TeamCreate]


class TeamResponse(BaseModel):
    id: int
    pool_id: int
    name: str
    seed: int
    region: Optional[str] = None
    eliminated: bool
    eliminated_round: Optional[str] = None

    class Config:
        from_attributes = True


class EntryCreate(BaseModel):
    display_name: str
    approved: bool = True


class EntryUpdate(BaseModel):
    approved: bool


class EntryResponse(BaseModel):
    id: int
    pool_id: int
    display_name: str
    approved: bool
    current_team_id: Optional[int] = None
    original_team_id: Optional[int] = None
    eliminated: bool
    eliminated_round: Optional[str] = None
    payout_pct: float

    class Config:
        from_attributes = True


class DrawAssignmentResponse(BaseModel):
    entry_id: int
    team_id: int
    display_name: str
    team_name: str
    seed: int
    region: str


class DrawResponse(BaseModel):
    pool_id: int
    draw_completed_at: datetime
    games_created: int
    assignments: List[DrawAssignmentResponse]


class BracketGameResponse(BaseModel):
    id: int
    round: str
    region: Optional[str] = None
    game_number: int
    status: str
    higher_seed_team_id: Optional[int] = None
    higher_seed_team_name: Optional[str] = None
    higher_seed_seed: Optional[int] = None
    lower_seed_team_id: Optional[int] = None
    lower_seed_team_name: Optional[str] = None
    lower_seed_seed: Optional[int] = None
    higher_seed_entry_id: Optional[int] = None
    lower_seed_entry_id: Optional[int] = None
    spread: Optional[float] = None
    higher_seed_score: Optional[int] = None
    lower_seed_score: Optional[int] = None
    winning_team_id: Optional[int] = None
    spread_covering_team_id: Optional[int] = None
    advancing_entry_id: Optional[int] = None


class StandingResponse(BaseModel):
    entry_id: int
    display_name: str
    current_team_id: Optional[int] = None
    current_team_name: Optional[str] = None
    current_team_seed: Optional[int] = None
    original_team_id: Optional[int] = None
    original_team_name: Optional[str] = None
    eliminated: bool
    eliminated_round: Optional[str] = None
    payout_pct: float
    is_champion: bool

    class Config:
        from_attributes = True


# ============================================================================
# Pools
# ============================================================================


@router.post("/pools", response_model=PoolResponse, status_code=201)
def create_pool_endpoint(pool_data: PoolCreate, session: Session = Depends(get_session)):
    """Create a pool with its push rule and payout table"""
    data = pool_data.model_dump()
    data["push_rule"] = pool_data.push_rule.value
    try:
        return create_pool(session, data)
    except PoolEngineError as e:
        raise to_http_exception(e)


@router.get("/pools/{pool_id}", response_model=PoolResponse)
def get_pool_endpoint(pool_id: int, session: Session = Depends(get_session)):
    try:
        return get_pool(session, pool_id)
    except PoolEngineError as e:
        raise to_http_exception(e)


@router.patch("/pools/{pool_id}", response_model=PoolResponse)
def update_pool_endpoint(pool_id: int, pool_data: PoolUpdate, session: Session = Depends(get_session)):
    """Change pool configuration. Rejected once the draw has run."""
    changes = {k: v for k, v in pool_data.model_dump(exclude_unset=True).items() if v is not None}
    if "push_rule" in changes:
        changes["push_rule"] = PushRule(changes["push_rule"]).value
    if not changes:
        raise HTTPException(status_code=422, detail="No changes supplied")
    try:
        return update_pool(session, pool_id, changes)
    except PoolEngineError as e:
        raise to_http_exception(e)


# ============================================================================
# Teams and entries
# ============================================================================


@router.post("/pools/{pool_id}/teams", response_model=List[TeamResponse], status_code=201)
def add_teams_endpoint(pool_id: int, payload: TeamsCreate, session: Session = Depends(get_session)):
    try:
        return add_teams(session, pool_id, [t.model_dump() for t in payload.teams])
    except PoolEngineError as e:
        raise to_http_exception(e)


@router.get("/pools/{pool_id}/teams", response_model=List[TeamResponse])
def list_teams_endpoint(pool_id: int, session: Session = Depends(get_session)):
    try:
        get_pool(session, pool_id)
    except PoolEngineError as e:
        raise to_http_exception(e)
    return session.exec(
        select(PoolTeam).where(PoolTeam.pool_id == pool_id).order_by(PoolTeam.region, PoolTeam.seed)
    ).all()


@router.post("/pools/{pool_id}/entries", response_model=EntryResponse, status_code=201)
def add_entry_endpoint(pool_id: int, payload: EntryCreate, session: Session = Depends(get_session)):
    try:
        return add_entry(session, pool_id, payload.display_name, payload.approved)
    except PoolEngineError as e:
        raise to_http_exception(e)


@router.get("/pools/{pool_id}/entries", response_model=List[EntryResponse])
def list_entries_endpoint(pool_id: int, session: Session = Depends(get_session)):
    try:
        get_pool(session, pool_id)
    except PoolEngineError as e:
        raise to_http_exception(e)
    return session.exec(select(Entry).where(Entry.pool_id == pool_id).order_by(Entry.id)).all()


@router.patch("/pools/{pool_id}/entries/{entry_id}", response_model=EntryResponse)
def update_entry_endpoint(pool_id: int, entry_id: int, payload: EntryUpdate, session: Session = Depends(get_session)):
    """Approve or un-approve an entry before the draw"""
    try:
        return set_entry_approval(session, pool_id, entry_id, payload.approved)
    except PoolEngineError as e:
        raise to_http_exception(e)


# ============================================================================
# Draw, bracket, standings
# ============================================================================


@router.post("/pools/{pool_id}/draw", response_model=DrawResponse)
def run_draw_endpoint(pool_id: int, session: Session = Depends(get_session)):
    """Blind draw: one team per approved entry, then the 63-game bracket. One time only."""
    try:
        result = run_draw(session, pool_id)
    except PoolEngineError as e:
        raise to_http_exception(e)
    return DrawResponse(
        pool_id=result.pool_id,
        draw_completed_at=result.draw_completed_at,
        games_created=result.games_created,
        assignments=[DrawAssignmentResponse(**vars(a)) for a in result.assignments],
    )


@router.get("/pools/{pool_id}/bracket", response_model=List[BracketGameResponse])
def get_bracket_endpoint(pool_id: int, session: Session = Depends(get_session)):
    """All games in bracket order with team names and seeds filled in"""
    try:
        get_pool(session, pool_id)
    except PoolEngineError as e:
        raise to_http_exception(e)

    teams = team_names(session, pool_id)
    out: List[BracketGameResponse] = []
    for g in list_bracket(session, pool_id):
        higher = teams.get(g.higher_seed_team_id)
        lower = teams.get(g.lower_seed_team_id)
        out.append(BracketGameResponse(
            id=g.id,
            round=g.round,
            region=g.region,
            game_number=g.game_number,
            status=g.status,
            higher_seed_team_id=g.higher_seed_team_id,
            higher_seed_team_name=higher.name if higher else None,
            higher_seed_seed=higher.seed if higher else None,
            lower_seed_team_id=g.lower_seed_team_id,
            lower_seed_team_name=lower.name if lower else None,
            lower_seed_seed=lower.seed if lower else None,
            higher_seed_entry_id=g.higher_seed_entry_id,
            lower_seed_entry_id=g.lower_seed_entry_id,
            spread=g.spread,
            higher_seed_score=g.higher_seed_score,
            lower_seed_score=g.lower_seed_score,
            winning_team_id=g.winning_team_id,
            spread_covering_team_id=g.spread_covering_team_id,
            advancing_entry_id=g.advancing_entry_id,
        ))
    return out


@router.get("/pools/{pool_id}/standings", response_model=List[StandingResponse])
def get_standings_endpoint(pool_id: int, session: Session = Depends(get_session)):
    """Entries alive first, then by the round they reached"""
    try:
        pool = get_pool(session, pool_id)
    except PoolEngineError as e:
        raise to_http_exception(e)
    return build_standings(session, pool_id, pool.champion_entry_id)
