"""
Advancement: when a game is finalized, eliminate the losing entry and install
the advancing entry into the next game's slot.

The advancing entry is whichever entry holds the spread-covering team. That
entry then controls the team that actually won on the scoreboard (team
inheritance); when the covering team lost outright the two entries swap
current_team_id, so every team still maps to exactly one entry.

Every write is conditional:
- elimination only matches rows with eliminated = false
- slot install only matches a slot that is empty or already holds the same entry
- champion is only set once
so re-running a resolution cannot double-eliminate or double-install.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from sqlmodel import Session, or_, select

from bracket_pool.models.entry import Entry
from bracket_pool.models.game import Game, GameStatus, Round
from bracket_pool.models.pool import Pool
from bracket_pool.models.pool_team import PoolTeam
from bracket_pool.services.bracket_graph import (
    BracketSlot,
    Slot,
    as_round,
    next_slot,
    position_sort_key,
)
from bracket_pool.services.errors import (
    AlreadyEliminatedError,
    ConsistencyError,
    GameNotReadyError,
    SlotConflictError,
)
from bracket_pool.services.game_resolver import ResolvedGame
from bracket_pool.services.payout_service import compute_payouts
from bracket_pool.utils.sql import conditional_update

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdvancementResult:
    game_id: int
    round: str
    advancing_entry_id: Optional[int]
    eliminated_entry_id: Optional[int]
    advancing_team_id: Optional[int]
    next_game_id: Optional[int]
    next_slot: Optional[str]
    champion_entry_id: Optional[int]


def find_game_at(session: Session, pool_id: int, dest: BracketSlot) -> Optional[Game]:
    region = dest.region.value if dest.region is not None else None
    return session.exec(
        select(Game).where(
            Game.pool_id == pool_id,
            Game.round == dest.round.value,
            Game.region == region,
            Game.game_number == dest.game_number,
        )
        .execution_options(populate_existing=True)
    ).first()


def _destination(session: Session, game: Game) -> Optional[tuple]:
    """(BracketSlot, Game) the winner of game feeds, or None for the Final."""
    if as_round(game.round) == Round.FINAL:
        return None
    dest = next_slot(game.round, game.region, game.game_number)
    dest_game = find_game_at(session, game.pool_id, dest)
    if dest_game is None:
        raise ConsistencyError(
            f"No {dest.round.value} game {dest.game_number} "
            f"({dest.region.value if dest.region else 'national'}) to receive the winner of game {game.id}"
        )
    return dest, dest_game


def result_from_state(session: Session, game: Game) -> AdvancementResult:
    """Rebuild the advancement outcome from stored state. Same state, same result."""
    advancing = game.advancing_entry_id
    eliminated = None
    if advancing is not None:
        eliminated = game.lower_seed_entry_id if advancing == game.higher_seed_entry_id else game.higher_seed_entry_id

    next_game_id = None
    slot_name = None
    champion = None
    located = _destination(session, game)
    if located is not None:
        dest, dest_game = located
        next_game_id = dest_game.id
        slot_name = dest.slot.value
    else:
        pool = session.get(Pool, game.pool_id, populate_existing=True)
        champion = pool.champion_entry_id if pool else None

    return AdvancementResult(
        game_id=game.id,
        round=as_round(game.round).value,
        advancing_entry_id=advancing,
        eliminated_entry_id=eliminated,
        advancing_team_id=game.winning_team_id if advancing is not None else None,
        next_game_id=next_game_id,
        next_slot=slot_name,
        champion_entry_id=champion,
    )


def _eliminate_entry(session: Session, entry_id: int, round_tag: Round) -> None:
    matched = conditional_update(
        session,
        Entry,
        Entry.id == entry_id,
        Entry.eliminated == False,  # noqa: E712
        values={"eliminated": True, "eliminated_round": round_tag.value},
    )
    if matched == 0:
        entry = session.get(Entry, entry_id)
        already = entry.eliminated_round if entry else "unknown"
        raise AlreadyEliminatedError(
            f"Entry {entry_id} was already eliminated in {already}; refusing to eliminate again in {round_tag.value}"
        )
    logger.info("Entry %d eliminated in %s", entry_id, round_tag.value)


def _eliminate_team(session: Session, team_id: int, round_tag: Round) -> None:
    matched = conditional_update(
        session,
        PoolTeam,
        PoolTeam.id == team_id,
        PoolTeam.eliminated == False,  # noqa: E712
        values={"eliminated": True, "eliminated_round": round_tag.value},
    )
    if matched == 0:
        raise AlreadyEliminatedError(f"Team {team_id} is already eliminated; cannot lose again in {round_tag.value}")


def _transfer_teams(session: Session, advancing_entry_id: int, eliminated_entry_id: int, resolved: ResolvedGame) -> None:
    """Covering entry takes the scoreboard winner; the other entry keeps the loser."""
    advancing = session.get(Entry, advancing_entry_id)
    eliminated = session.get(Entry, eliminated_entry_id)
    session.refresh(advancing)
    session.refresh(eliminated)
    advancing.current_team_id = resolved.winning_team_id
    eliminated.current_team_id = resolved.losing_team_id
    session.add(advancing)
    session.add(eliminated)
    logger.info(
        "Team transfer in game %d: entry %d now controls team %d, entry %d keeps team %d",
        resolved.game_id,
        advancing_entry_id,
        resolved.winning_team_id,
        eliminated_entry_id,
        resolved.losing_team_id,
    )


def install_advancing_entry(session: Session, game: Game, entry_id: int, team_id: int) -> int:
    """Write entry/team into the destination slot. Returns 1 if a slot changed, 0 if already there."""
    dest, dest_game = _destination(session, game)
    if dest.slot == Slot.HIGHER:
        entry_col, team_col = Game.higher_seed_entry_id, Game.higher_seed_team_id
        entry_field, team_field = "higher_seed_entry_id", "higher_seed_team_id"
    else:
        entry_col, team_col = Game.lower_seed_entry_id, Game.lower_seed_team_id
        entry_field, team_field = "lower_seed_entry_id", "lower_seed_team_id"

    if getattr(dest_game, entry_field) == entry_id and getattr(dest_game, team_field) == team_id:
        return 0

    matched = conditional_update(
        session,
        Game,
        Game.id == dest_game.id,
        or_(entry_col.is_(None), entry_col == entry_id),
        or_(team_col.is_(None), team_col == team_id),
        values={entry_field: entry_id, team_field: team_id},
    )
    if matched == 0:
        session.refresh(dest_game)
        raise SlotConflictError(
            f"Game {dest_game.id} {dest.slot.value} slot already holds entry "
            f"{getattr(dest_game, entry_field)} / team {getattr(dest_game, team_field)}"
        )
    session.refresh(dest_game)
    logger.debug("Installed entry %d / team %d into game %d (%s)", entry_id, team_id, dest_game.id, dest.slot.value)
    return 1


def _crown_champion(session: Session, pool_id: int, entry_id: int) -> None:
    matched = conditional_update(
        session,
        Pool,
        Pool.id == pool_id,
        or_(Pool.champion_entry_id.is_(None), Pool.champion_entry_id == entry_id),
        values={"champion_entry_id": entry_id, "completed_at": datetime.utcnow()},
    )
    if matched == 0:
        raise SlotConflictError(f"Pool {pool_id} already has a different champion")
    logger.info("Pool %d champion: entry %d", pool_id, entry_id)


def apply_advancement(session: Session, game: Game, resolved: ResolvedGame) -> AdvancementResult:
    """
    Apply a resolved final game to entries, teams and the bracket.

    The game row must already be claimed as final. Does not commit; the caller
    owns the transaction. Re-applying a game whose advancing_entry_id is set is
    a no-op that returns the stored result.

    Raises:
        GameNotReadyError: a slot has no entry
        AlreadyEliminatedError: the losing entry or team was already out
        ConsistencyError: BracketGraph destination missing from the stored bracket
        SlotConflictError: destination slot holds a different entry
    """
    if game.advancing_entry_id is not None:
        logger.warning("Game %d already advanced entry %d; returning prior result", game.id, game.advancing_entry_id)
        return result_from_state(session, game)

    if game.higher_seed_entry_id is None or game.lower_seed_entry_id is None:
        raise GameNotReadyError(f"Game {game.id} is missing an entry in one of its slots")

    round_tag = as_round(game.round)
    if resolved.covering_side == Slot.HIGHER:
        advancing_id, eliminated_id = game.higher_seed_entry_id, game.lower_seed_entry_id
    else:
        advancing_id, eliminated_id = game.lower_seed_entry_id, game.higher_seed_entry_id

    _eliminate_entry(session, eliminated_id, round_tag)
    _eliminate_team(session, resolved.losing_team_id, round_tag)
    if resolved.upset_via_spread:
        _transfer_teams(session, advancing_id, eliminated_id, resolved)

    if round_tag == Round.FINAL:
        _crown_champion(session, game.pool_id, advancing_id)
    else:
        install_advancing_entry(session, game, advancing_id, resolved.winning_team_id)

    conditional_update(
        session,
        Game,
        Game.id == game.id,
        Game.advancing_entry_id.is_(None),
        values={"advancing_entry_id": advancing_id},
    )
    session.refresh(game)
    return result_from_state(session, game)


def resolution_from_state(game: Game) -> Optional[ResolvedGame]:
    """Rebuild a ResolvedGame from a final game's stored fields, or None if incomplete."""
    if game.winning_team_id is None or game.spread_covering_team_id is None:
        return None
    if game.higher_seed_score is None or game.lower_seed_score is None:
        return None
    higher, lower = game.higher_seed_team_id, game.lower_seed_team_id
    margin = game.higher_seed_score - game.lower_seed_score
    adjusted = margin + (game.spread or 0.0)
    return ResolvedGame(
        game_id=game.id,
        winning_team_id=game.winning_team_id,
        losing_team_id=lower if game.winning_team_id == higher else higher,
        spread_covering_team_id=game.spread_covering_team_id,
        winner_side=Slot.HIGHER if game.winning_team_id == higher else Slot.LOWER,
        covering_side=Slot.HIGHER if game.spread_covering_team_id == higher else Slot.LOWER,
        margin=margin,
        adjusted_margin=adjusted,
        push=adjusted == 0,
    )


def replay_advancement(session: Session, pool_id: int) -> Dict:
    """
    Re-run advancement for every final game in a pool, in bracket order.

    Fills destination slots that are still empty and finishes games that were
    finalized but never advanced. Useful after recovering from an interrupted
    request.

    Returns:
        Dict with:
        - games_processed: number of final games visited
        - games_advanced: final games that had no advancing entry yet
          (payouts are assigned for the entries those games eliminated)
        - slots_filled: destination slots written
        - open_slots_before / open_slots_after: game slots with no entry

    Guarantees:
        - Idempotent (safe to call multiple times)
        - Deterministic ordering (bracket order)
    """
    games = session.exec(
        select(Game).where(Game.pool_id == pool_id).execution_options(populate_existing=True)
    ).all()
    open_before = sum(
        (g.higher_seed_entry_id is None) + (g.lower_seed_entry_id is None) for g in games
    )

    finals = sorted(
        (g for g in games if g.status == GameStatus.final),
        key=lambda g: position_sort_key(g.round, g.region, g.game_number),
    )

    games_advanced = 0
    slots_filled = 0
    for game in finals:
        if game.advancing_entry_id is None:
            resolved = resolution_from_state(game)
            if resolved is None:
                raise ConsistencyError(f"Game {game.id} is final but has no stored resolution")
            apply_advancement(session, game, resolved)
            games_advanced += 1
            continue
        if as_round(game.round) != Round.FINAL:
            slots_filled += install_advancing_entry(session, game, game.advancing_entry_id, game.winning_team_id)

    if games_advanced:
        pool = session.get(Pool, pool_id)
        compute_payouts(session, pool)
    session.commit()

    session.expire_all()
    games_after = session.exec(select(Game).where(Game.pool_id == pool_id)).all()
    open_after = sum(
        (g.higher_seed_entry_id is None) + (g.lower_seed_entry_id is None) for g in games_after
    )
    logger.info(
        "Replayed advancement for pool %d: %d final games, %d advanced, %d slots filled",
        pool_id, len(finals), games_advanced, slots_filled,
    )
    return {
        "games_processed": len(finals),
        "games_advanced": games_advanced,
        "slots_filled": slots_filled,
        "open_slots_before": open_before,
        "open_slots_after": open_after,
    }
