"""
DEV-ONLY demo tooling: fill a pool with 64 teams and 64 entries, then play the
bracket one round at a time with simulated scores.

Simulated games go through scoring_service.submit_final_score, so they exercise
exactly the same resolution, advancement and payout path as real scores.
"""

from __future__ import annotations

import logging
import random
from typing import Dict, List, Optional

from sqlmodel import Session, select

from bracket_pool.models.entry import Entry
from bracket_pool.models.game import GameStatus
from bracket_pool.models.pool_team import PoolTeam
from bracket_pool.services.bracket_graph import REGION_ORDER, ROUND_ORDER, as_round
from bracket_pool.services.errors import PoolLockedError
from bracket_pool.services.pool_setup import add_entry, add_teams, get_pool
from bracket_pool.services.scoring_service import set_spread, submit_final_score
from bracket_pool.services.spread_tools import simulate_game_score, suggest_spread
from bracket_pool.services.standings_service import list_bracket

logger = logging.getLogger(__name__)

DEMO_FIRST_NAMES = ["Alex", "Jordan", "Casey", "Morgan", "Taylor", "Riley", "Avery", "Quinn"]
DEMO_LAST_NAMES = ["Thompson", "Smith", "Brown", "Davis", "Wilson", "Johnson", "Martinez", "Anderson"]
DEMO_MASCOTS = [
    "Wildcats", "Huskies", "Bulldogs", "Tigers", "Eagles", "Bears", "Spartans", "Cougars",
    "Hawks", "Rams", "Falcons", "Owls", "Badgers", "Wolves", "Hornets", "Pirates",
]


def seed_demo_pool(session: Session, pool_id: int) -> Dict[str, int]:
    """Register 16 seeds in each region and 64 approved entries."""
    pool = get_pool(session, pool_id)
    if pool.draw_completed:
        raise PoolLockedError(f"Pool {pool_id} already drawn; demo data can only seed an empty pool")
    has_teams = session.exec(select(PoolTeam).where(PoolTeam.pool_id == pool_id)).first()
    has_entries = session.exec(select(Entry).where(Entry.pool_id == pool_id)).first()
    if has_teams or has_entries:
        raise PoolLockedError(f"Pool {pool_id} already has teams or entries")

    teams = [
        {"name": f"{region.value} {DEMO_MASCOTS[seed - 1]}", "seed": seed, "region": region.value}
        for region in REGION_ORDER
        for seed in range(1, 17)
    ]
    created_teams = add_teams(session, pool_id, teams)

    created_entries = 0
    for first in DEMO_FIRST_NAMES:
        for last in DEMO_LAST_NAMES:
            add_entry(session, pool_id, f"{first} {last}")
            created_entries += 1

    logger.info("Seeded demo pool %d with %d teams and %d entries", pool_id, len(created_teams), created_entries)
    return {"teams_created": len(created_teams), "entries_created": created_entries}


def simulate_next_round(session: Session, pool_id: int, rng: Optional[random.Random] = None) -> Dict:
    """
    Finalize every playable game in the earliest round that still has open games.

    Missing spreads on scheduled games are filled with suggest_spread() first.

    Returns:
        Dict with round, games_simulated, champion_entry_id
    """
    rng = rng or random.Random()
    pool = get_pool(session, pool_id)
    games = list_bracket(session, pool_id)
    open_games = [g for g in games if g.status != GameStatus.final]
    if not open_games:
        return {"round": None, "games_simulated": 0, "champion_entry_id": pool.champion_entry_id}

    current_round = min((as_round(g.round) for g in open_games), key=ROUND_ORDER.index)
    teams = {t.id: t for t in session.exec(select(PoolTeam).where(PoolTeam.pool_id == pool_id)).all()}

    simulated: List[int] = []
    for game in open_games:
        if as_round(game.round) != current_round:
            continue
        if game.higher_seed_entry_id is None or game.lower_seed_entry_id is None:
            continue
        if game.spread is None and game.status == GameStatus.scheduled:
            higher = teams[game.higher_seed_team_id]
            lower = teams[game.lower_seed_team_id]
            set_spread(session, pool_id, game.id, suggest_spread(higher.seed, lower.seed))
        higher_score, lower_score = simulate_game_score(game.spread, rng)
        submit_final_score(session, pool_id, game.id, higher_score, lower_score)
        simulated.append(game.id)

    session.refresh(pool)
    logger.info("Simulated %d %s games in pool %d", len(simulated), current_round.value, pool_id)
    return {
        "round": current_round.value,
        "games_simulated": len(simulated),
        "champion_entry_id": pool.champion_entry_id,
    }
