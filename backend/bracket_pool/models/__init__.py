from bracket_pool.models.entry import Entry
from bracket_pool.models.game import Game, GameStatus, Region, Round
from bracket_pool.models.pool import Pool, PushRule
from bracket_pool.models.pool_team import PoolTeam

__all__ = [
    "Pool",
    "PushRule",
    "PoolTeam",
    "Entry",
    "Game",
    "GameStatus",
    "Region",
    "Round",
]
