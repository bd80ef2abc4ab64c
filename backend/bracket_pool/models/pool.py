from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracket_pool.models.entry import Entry
    from bracket_pool.models.game import Game
    from bracket_pool.models.pool_team import PoolTeam


class PushRule(str, Enum):
    higher_seed_advances = "higher_seed_advances"
    favorite_advances = "favorite_advances"
    underdog_advances = "underdog_advances"
    coin_flip = "coin_flip"


class Pool(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    tournament_year: int
    push_rule: PushRule = Field(default=PushRule.favorite_advances, sa_column=Column(String, nullable=False))

    # Round pots (percent of the total); validated to sum to 100 at create/update
    sweet16_payout_pct: float = Field(default=0.0)
    elite8_payout_pct: float = Field(default=0.0)
    final4_payout_pct: float = Field(default=0.0)
    runnerup_payout_pct: float = Field(default=0.0)
    champion_payout_pct: float = Field(default=100.0)

    spread_required: bool = Field(default=True)

    # One-time draw gate (check-and-set in draw_service)
    draw_completed: bool = Field(default=False)
    draw_completed_at: Optional[datetime] = Field(default=None)

    champion_entry_id: Optional[int] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    teams: List["PoolTeam"] = Relationship(back_populates="pool")
    entries: List["Entry"] = Relationship(back_populates="pool")
    games: List["Game"] = Relationship(back_populates="pool")
