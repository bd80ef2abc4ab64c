"""
Game runtime: spreads, status and final scores.

Status flow: scheduled -> in_progress -> final (final is terminal).
A final score runs resolution, advancement and payouts in one transaction;
resubmitting the same score returns the stored result.
"""
from datetime import datetime
from typing import Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from bracket_pool.database import get_session
from bracket_pool.models.game import Game
from bracket_pool.services.advancement_service import replay_advancement
from bracket_pool.services.errors import PoolEngineError
from bracket_pool.services.pool_setup import get_pool
from bracket_pool.services.scoring_service import set_spread, start_game, submit_final_score
from bracket_pool.utils.http_errors import to_http_exception

router = APIRouter()


class SpreadUpdate(BaseModel):
    spread: float


class FinalScore(BaseModel):
    higher_seed_score: int
    lower_seed_score: int


class GameState(BaseModel):
    id: int
    pool_id: int
    round: str
    region: Optional[str] = None
    game_number: int
    status: str
    spread: Optional[float] = None
    higher_seed_score: Optional[int] = None
    lower_seed_score: Optional[int] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GameResultResponse(BaseModel):
    game_id: int
    round: str
    higher_seed_score: int
    lower_seed_score: int
    spread: Optional[float] = None
    winning_team_id: int
    spread_covering_team_id: int
    advancing_entry_id: Optional[int] = None
    eliminated_entry_id: Optional[int] = None
    next_game_id: Optional[int] = None
    next_slot: Optional[str] = None
    champion_entry_id: Optional[int] = None


def _game_state(g: Game) -> GameState:
    return GameState.model_validate(g)


@router.put("/pools/{pool_id}/games/{game_id}/spread", response_model=GameState)
def set_spread_endpoint(pool_id: int, game_id: int, payload: SpreadUpdate, session: Session = Depends(get_session)):
    """Set a spread (negative = higher slot favored). Locked once the game starts."""
    try:
        return _game_state(set_spread(session, pool_id, game_id, payload.spread))
    except PoolEngineError as e:
        raise to_http_exception(e)


@router.post("/pools/{pool_id}/games/{game_id}/start", response_model=GameState)
def start_game_endpoint(pool_id: int, game_id: int, session: Session = Depends(get_session)):
    try:
        return _game_state(start_game(session, pool_id, game_id))
    except PoolEngineError as e:
        raise to_http_exception(e)


@router.post("/pools/{pool_id}/games/{game_id}/final", response_model=GameResultResponse)
def submit_final_endpoint(pool_id: int, game_id: int, payload: FinalScore, session: Session = Depends(get_session)):
    """Record the final score; the spread-covering entry advances."""
    try:
        result = submit_final_score(session, pool_id, game_id, payload.higher_seed_score, payload.lower_seed_score)
    except PoolEngineError as e:
        raise to_http_exception(e)
    return GameResultResponse(**vars(result))


@router.post("/pools/{pool_id}/replay-advancement", response_model=Dict[str, int])
def replay_advancement_endpoint(pool_id: int, session: Session = Depends(get_session)) -> Dict[str, int]:
    """Re-run advancement for all final games (repair after an interrupted request). Idempotent."""
    try:
        get_pool(session, pool_id)
        return replay_advancement(session, pool_id)
    except PoolEngineError as e:
        raise to_http_exception(e)
