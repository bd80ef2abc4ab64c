"""
Read models for collaborators: the bracket for rendering and per-entry standings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlmodel import Session, select

from bracket_pool.models.entry import Entry
from bracket_pool.models.game import Game
from bracket_pool.models.pool_team import PoolTeam
from bracket_pool.services.bracket_graph import ROUND_ORDER, as_round, position_sort_key


@dataclass
class StandingRow:
    entry_id: int
    display_name: str
    current_team_id: Optional[int]
    current_team_name: Optional[str]
    current_team_seed: Optional[int]
    original_team_id: Optional[int]
    original_team_name: Optional[str]
    eliminated: bool
    eliminated_round: Optional[str]
    payout_pct: float
    is_champion: bool


def list_bracket(session: Session, pool_id: int) -> List[Game]:
    """All games in bracket order: round, region (East, West, South, Midwest), game_number."""
    games = session.exec(
        select(Game).where(Game.pool_id == pool_id).execution_options(populate_existing=True)
    ).all()
    return sorted(games, key=lambda g: position_sort_key(g.round, g.region, g.game_number))


def team_names(session: Session, pool_id: int) -> Dict[int, PoolTeam]:
    teams = session.exec(select(PoolTeam).where(PoolTeam.pool_id == pool_id)).all()
    return {t.id: t for t in teams}


def build_standings(session: Session, pool_id: int, champion_entry_id: Optional[int] = None) -> List[StandingRow]:
    """
    Entries ordered alive first, then by how deep they went, then payout.
    Entries still alive sort by payout (the champion once crowned) then name.
    """
    entries = session.exec(
        select(Entry)
        .where(Entry.pool_id == pool_id, Entry.approved == True)  # noqa: E712
        .execution_options(populate_existing=True)
    ).all()
    teams = team_names(session, pool_id)

    rows: List[StandingRow] = []
    for e in entries:
        current = teams.get(e.current_team_id) if e.current_team_id else None
        original = teams.get(e.original_team_id) if e.original_team_id else None
        rows.append(StandingRow(
            entry_id=e.id,
            display_name=e.display_name,
            current_team_id=e.current_team_id,
            current_team_name=current.name if current else None,
            current_team_seed=current.seed if current else None,
            original_team_id=e.original_team_id,
            original_team_name=original.name if original else None,
            eliminated=e.eliminated,
            eliminated_round=e.eliminated_round,
            payout_pct=e.payout_pct,
            is_champion=champion_entry_id is not None and e.id == champion_entry_id,
        ))

    def sort_key(row: StandingRow) -> tuple:
        depth = len(ROUND_ORDER) if not row.eliminated else ROUND_ORDER.index(as_round(row.eliminated_round))
        return (row.eliminated, -depth, -row.payout_pct, row.display_name.lower(), row.entry_id)

    rows.sort(key=sort_key)
    return rows
