"""
RandomDrawAssigner: the one-time blind draw.

Assigns each of the 64 approved entries one of the 64 seeded teams with a
Fisher-Yates shuffle over a cryptographically adequate RNG, records
original_team_id, creates the 63-game bracket skeleton and closes the
draw gate. There is no re-draw: the gate is a check-and-set on
Pool.draw_completed and a second call fails with AlreadyDrawnError.
"""

from __future__ import annotations

import logging
import random
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from bracket_pool.models.entry import Entry
from bracket_pool.models.game import Game, GameStatus, Round
from bracket_pool.models.pool import Pool
from bracket_pool.models.pool_team import PoolTeam
from bracket_pool.services.bracket_graph import (
    R64_SEED_MATCHUPS,
    REGION_ORDER,
    all_positions,
)
from bracket_pool.services.errors import (
    AlreadyDrawnError,
    CountMismatchError,
    NotFoundError,
    RegionSeedError,
)
from bracket_pool.services.spread_tools import suggest_spread
from bracket_pool.utils.sql import conditional_update

logger = logging.getLogger(__name__)

BRACKET_SIZE = 64
SEEDS_PER_REGION = 16


@dataclass
class DrawAssignment:
    entry_id: int
    team_id: int
    display_name: str
    team_name: str
    seed: int
    region: Optional[str]


@dataclass
class DrawResult:
    pool_id: int
    draw_completed_at: datetime
    assignments: List[DrawAssignment] = field(default_factory=list)
    games_created: int = 0


def fisher_yates(items: Sequence, rng: Optional[random.Random] = None) -> list:
    """Return a shuffled copy of items; the input is not mutated."""
    rng = rng or random.SystemRandom()
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = rng.randrange(i + 1)
        result[i], result[j] = result[j], result[i]
    return result


def draw_assignment(
    entry_ids: Sequence[int],
    team_ids: Sequence[int],
    rng: Optional[random.Random] = None,
) -> Dict[int, int]:
    """Uniformly random bijection entry_id -> team_id."""
    if len(entry_ids) != len(team_ids):
        raise CountMismatchError(
            f"Cannot pair {len(entry_ids)} entries with {len(team_ids)} teams"
        )
    if len(set(entry_ids)) != len(entry_ids) or len(set(team_ids)) != len(team_ids):
        raise CountMismatchError("Duplicate entry or team ids in draw input")
    shuffled = fisher_yates(team_ids, rng)
    return dict(zip(entry_ids, shuffled))


def validate_region_layout(teams: Sequence[PoolTeam]) -> None:
    """Each region needs exactly one team per seed 1-16."""
    errors: List[str] = []
    by_region: Dict[str, List[int]] = defaultdict(list)
    for team in teams:
        by_region[team.region].append(team.seed)

    valid_regions = {r.value for r in REGION_ORDER}
    stray = sorted(str(r) for r in by_region if r not in valid_regions)
    if stray:
        errors.append(f"Unknown regions: {', '.join(stray)}")

    for region in REGION_ORDER:
        seeds = by_region.get(region.value, [])
        if len(seeds) != SEEDS_PER_REGION:
            errors.append(f"{region.value} region has {len(seeds)} teams (need {SEEDS_PER_REGION})")
        missing = sorted(set(range(1, SEEDS_PER_REGION + 1)) - set(seeds))
        if missing:
            errors.append(f"{region.value} region missing seeds {missing}")
        if len(set(seeds)) != len(seeds):
            errors.append(f"{region.value} region has duplicate seeds")

    if errors:
        raise RegionSeedError("; ".join(errors))


def build_bracket_games(pool_id: int, teams: Sequence[PoolTeam], owner_by_team: Dict[int, int]) -> List[Game]:
    """All 63 games. Round of 64 is fully populated; later rounds start empty."""
    team_by_position = {(t.region, t.seed): t for t in teams}
    games: List[Game] = []
    for pos in all_positions():
        game = Game(
            pool_id=pool_id,
            round=pos.round.value,
            region=pos.region.value if pos.region is not None else None,
            game_number=pos.game_number,
            status=GameStatus.scheduled.value,
        )
        if pos.round == Round.R64:
            higher_seed, lower_seed = R64_SEED_MATCHUPS[pos.game_number]
            higher = team_by_position[(pos.region.value, higher_seed)]
            lower = team_by_position[(pos.region.value, lower_seed)]
            game.higher_seed_team_id = higher.id
            game.lower_seed_team_id = lower.id
            game.higher_seed_entry_id = owner_by_team[higher.id]
            game.lower_seed_entry_id = owner_by_team[lower.id]
            game.spread = suggest_spread(higher_seed, lower_seed)
        games.append(game)
    return games


def run_draw(session: Session, pool_id: int, rng: Optional[random.Random] = None) -> DrawResult:
    """
    Run the blind draw for a pool.

    Raises:
        NotFoundError: pool does not exist
        AlreadyDrawnError: draw gate already closed (checked first)
        CountMismatchError: not exactly 64 approved entries and 64 teams
        RegionSeedError: teams are not 4 regions x seeds 1-16
    """
    pool = session.get(Pool, pool_id)
    if not pool:
        raise NotFoundError(f"Pool {pool_id} not found")
    if pool.draw_completed:
        raise AlreadyDrawnError(f"Draw already completed for pool {pool_id}")

    teams = session.exec(select(PoolTeam).where(PoolTeam.pool_id == pool_id).order_by(PoolTeam.id)).all()
    entries = session.exec(
        select(Entry).where(Entry.pool_id == pool_id, Entry.approved == True).order_by(Entry.id)  # noqa: E712
    ).all()

    if len(teams) != BRACKET_SIZE:
        raise CountMismatchError(f"Need exactly {BRACKET_SIZE} teams (have {len(teams)})")
    if len(entries) != BRACKET_SIZE:
        raise CountMismatchError(f"Need exactly {BRACKET_SIZE} approved entries (have {len(entries)})")
    validate_region_layout(teams)

    now = datetime.utcnow()
    claimed = conditional_update(
        session,
        Pool,
        Pool.id == pool_id,
        Pool.draw_completed == False,  # noqa: E712
        values={"draw_completed": True, "draw_completed_at": now},
    )
    if claimed == 0:
        session.rollback()
        raise AlreadyDrawnError(f"Draw already completed for pool {pool_id}")

    mapping = draw_assignment([e.id for e in entries], [t.id for t in teams], rng)
    team_by_id = {t.id: t for t in teams}

    result = DrawResult(pool_id=pool_id, draw_completed_at=now)
    for entry in entries:
        team = team_by_id[mapping[entry.id]]
        entry.current_team_id = team.id
        entry.original_team_id = team.id
        session.add(entry)
        result.assignments.append(DrawAssignment(
            entry_id=entry.id,
            team_id=team.id,
            display_name=entry.display_name,
            team_name=team.name,
            seed=team.seed,
            region=team.region,
        ))

    owner_by_team = {team_id: entry_id for entry_id, team_id in mapping.items()}
    games = build_bracket_games(pool_id, teams, owner_by_team)
    for game in games:
        session.add(game)
    result.games_created = len(games)

    session.commit()
    session.refresh(pool)
    logger.info("Draw completed for pool %d: %d assignments, %d games", pool_id, len(mapping), len(games))
    return result
