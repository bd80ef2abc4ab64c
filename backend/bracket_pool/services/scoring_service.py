"""
Commissioner-facing game operations.

submit_final_score() is the one pipeline that moves the bracket:
GameResolver -> AdvancementPropagator -> PayoutCalculator, committed as one
transaction. The finalize step is a conditional UPDATE (status != final), so of
two concurrent submissions exactly one does the work; the other reloads the
game and returns the same result without touching entries again.

Status flow: scheduled -> in_progress -> final (final is terminal).
Spreads can only be edited while a game is scheduled.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session

from bracket_pool.models.game import Game, GameStatus
from bracket_pool.models.pool import Pool
from bracket_pool.services.advancement_service import (
    AdvancementResult,
    apply_advancement,
    resolution_from_state,
    result_from_state,
)
from bracket_pool.services.errors import (
    GameAlreadyFinalError,
    GameNotReadyError,
    NotFoundError,
    PoolEngineError,
    SpreadLockedError,
)
from bracket_pool.services.game_resolver import resolve_game, validate_score, validate_spread
from bracket_pool.services.payout_service import PayoutAssignment, compute_payouts
from bracket_pool.utils.sql import conditional_update

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GameResult:
    """Outcome of a finalized game. Built from stored state, so replays compare equal."""
    game_id: int
    round: str
    higher_seed_score: int
    lower_seed_score: int
    spread: Optional[float]
    winning_team_id: int
    spread_covering_team_id: int
    advancing_entry_id: Optional[int]
    eliminated_entry_id: Optional[int]
    next_game_id: Optional[int]
    next_slot: Optional[str]
    champion_entry_id: Optional[int]


def get_pool_game(session: Session, pool_id: int, game_id: int) -> Game:
    game = session.get(Game, game_id, populate_existing=True)
    if not game or game.pool_id != pool_id:
        raise NotFoundError(f"Game {game_id} not found in pool {pool_id}")
    return game


def _get_pool(session: Session, pool_id: int) -> Pool:
    pool = session.get(Pool, pool_id)
    if not pool:
        raise NotFoundError(f"Pool {pool_id} not found")
    return pool


def _game_result(game: Game, advancement: AdvancementResult) -> GameResult:
    return GameResult(
        game_id=game.id,
        round=advancement.round,
        higher_seed_score=game.higher_seed_score,
        lower_seed_score=game.lower_seed_score,
        spread=game.spread,
        winning_team_id=game.winning_team_id,
        spread_covering_team_id=game.spread_covering_team_id,
        advancing_entry_id=advancement.advancing_entry_id,
        eliminated_entry_id=advancement.eliminated_entry_id,
        next_game_id=advancement.next_game_id,
        next_slot=advancement.next_slot,
        champion_entry_id=advancement.champion_entry_id,
    )


def set_spread(session: Session, pool_id: int, game_id: int, value: float) -> Game:
    """
    Set or change a game's spread. Only allowed while the game is scheduled.

    Raises:
        NotFoundError, SpreadValidationError, SpreadLockedError
    """
    game = get_pool_game(session, pool_id, game_id)
    spread = validate_spread(value)
    matched = conditional_update(
        session,
        Game,
        Game.id == game_id,
        Game.status == GameStatus.scheduled.value,
        values={"spread": spread},
    )
    if matched == 0:
        session.rollback()
        session.refresh(game)
        raise SpreadLockedError(
            f"Spread for game {game_id} is locked: game is {game.status}, spreads can only change while scheduled"
        )
    session.commit()
    session.refresh(game)
    logger.info("Game %d spread set to %+g", game_id, spread)
    return game


def _require_ready(pool: Pool, game: Game) -> None:
    missing: List[str] = []
    if game.higher_seed_team_id is None or game.lower_seed_team_id is None:
        missing.append("both teams")
    if game.higher_seed_entry_id is None or game.lower_seed_entry_id is None:
        missing.append("both entries")
    if pool.spread_required and game.spread is None:
        missing.append("a spread")
    if missing:
        raise GameNotReadyError(f"Game {game.id} is not ready: needs {' and '.join(missing)}")


def start_game(session: Session, pool_id: int, game_id: int) -> Game:
    """scheduled -> in_progress. Starting an in-progress game again is a no-op."""
    pool = _get_pool(session, pool_id)
    game = get_pool_game(session, pool_id, game_id)
    if game.status == GameStatus.final:
        raise GameAlreadyFinalError(f"Game {game_id} is already final")
    if game.status == GameStatus.in_progress:
        return game
    _require_ready(pool, game)

    matched = conditional_update(
        session,
        Game,
        Game.id == game_id,
        Game.status == GameStatus.scheduled.value,
        values={"status": GameStatus.in_progress.value, "started_at": datetime.utcnow()},
    )
    session.commit()
    session.refresh(game)
    if matched:
        logger.info("Game %d started", game_id)
    elif game.status == GameStatus.final:
        raise GameAlreadyFinalError(f"Game {game_id} is already final")
    return game


def _finish_replay(session: Session, pool: Pool, game: Game, higher_score: int, lower_score: int) -> GameResult:
    """Game already final: same scores -> prior result, different scores -> reject."""
    if game.higher_seed_score != higher_score or game.lower_seed_score != lower_score:
        raise GameAlreadyFinalError(
            f"Game {game.id} is already final ({game.higher_seed_score}-{game.lower_seed_score}); "
            f"refusing to re-score it {higher_score}-{lower_score}"
        )
    if game.advancing_entry_id is None:
        # Finalized but never advanced: finish the job from the stored resolution
        resolved = resolution_from_state(game)
        if resolved is None:
            raise GameNotReadyError(f"Game {game.id} is final but has no stored resolution")
        try:
            apply_advancement(session, game, resolved)
            compute_payouts(session, pool)
            session.commit()
        except PoolEngineError:
            session.rollback()
            raise
        session.refresh(game)
    else:
        logger.warning("Game %d already final with the same score; returning prior result", game.id)
        # Settles payouts a repaired game left behind; a no-op otherwise
        if compute_payouts(session, pool):
            session.commit()
    return _game_result(game, result_from_state(session, game))


def submit_final_score(session: Session, pool_id: int, game_id: int, higher_score: int, lower_score: int) -> GameResult:
    """
    Record a final score and run resolution, advancement and payouts.

    Idempotent: resubmitting the same score for a final game returns the same
    GameResult and changes nothing.

    Raises:
        NotFoundError: pool or game missing
        ScoreValidationError: negative / non-integer scores
        TiedGameError: equal scores
        GameNotReadyError: teams, entries or a required spread missing
        GameAlreadyFinalError: game already final with a different score
        AlreadyEliminatedError, SlotConflictError, ConsistencyError: from advancement
    """
    pool = _get_pool(session, pool_id)
    game = get_pool_game(session, pool_id, game_id)
    validate_score(higher_score, "higher_seed_score")
    validate_score(lower_score, "lower_seed_score")

    if game.status == GameStatus.final:
        return _finish_replay(session, pool, game, higher_score, lower_score)

    _require_ready(pool, game)
    resolved = resolve_game(
        game_id=game.id,
        higher_team_id=game.higher_seed_team_id,
        lower_team_id=game.lower_seed_team_id,
        higher_score=higher_score,
        lower_score=lower_score,
        spread=game.spread,
        push_rule=pool.push_rule,
    )

    now = datetime.utcnow()
    try:
        claimed = conditional_update(
            session,
            Game,
            Game.id == game_id,
            Game.status != GameStatus.final.value,
            values={
                "status": GameStatus.final.value,
                "higher_seed_score": higher_score,
                "lower_seed_score": lower_score,
                "winning_team_id": resolved.winning_team_id,
                "spread_covering_team_id": resolved.spread_covering_team_id,
                "started_at": game.started_at or now,
                "completed_at": now,
            },
        )
        if claimed == 0:
            # Another submission finalized this game first
            session.rollback()
            game = get_pool_game(session, pool_id, game_id)
            logger.warning("Game %d was finalized concurrently; falling back to its stored result", game_id)
            return _finish_replay(session, pool, game, higher_score, lower_score)

        session.refresh(game)
        advancement = apply_advancement(session, game, resolved)
        payouts: List[PayoutAssignment] = compute_payouts(session, pool)
        session.commit()
    except PoolEngineError:
        session.rollback()
        raise

    session.refresh(game)
    logger.info(
        "Game %d final %d-%d (spread %s): winner team %d, covering team %d, entry %s advances, %d payouts",
        game_id,
        higher_score,
        lower_score,
        "none" if game.spread is None else f"{game.spread:+g}",
        resolved.winning_team_id,
        resolved.spread_covering_team_id,
        advancement.advancing_entry_id,
        len(payouts),
    )
    return _game_result(game, result_from_state(session, game))
