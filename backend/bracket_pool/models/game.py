from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Index, String, text
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracket_pool.models.pool import Pool


class Round(str, Enum):
    R64 = "R64"
    R32 = "R32"
    S16 = "S16"
    E8 = "E8"
    F4 = "F4"
    FINAL = "Final"


class Region(str, Enum):
    east = "East"
    west = "West"
    south = "South"
    midwest = "Midwest"


class GameStatus(str, Enum):
    scheduled = "scheduled"
    in_progress = "in_progress"
    final = "final"


class Game(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("pool_id", "round", "region", "game_number", name="uq_pool_game_position"),
        # F4 and Final have no region, and NULLs never collide in the constraint above
        Index(
            "uq_pool_national_game_position",
            "pool_id",
            "round",
            "game_number",
            unique=True,
            sqlite_where=text("region IS NULL"),
            postgresql_where=text("region IS NULL"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    pool_id: int = Field(foreign_key="pool.id", index=True)
    round: Round = Field(sa_column=Column(String, nullable=False))
    region: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))  # None from F4 onward
    game_number: int  # 0-based ordinal within round + region

    # Slot names are structural: HIGHER is fed by the even-numbered upstream game
    higher_seed_team_id: Optional[int] = Field(default=None, foreign_key="poolteam.id")
    lower_seed_team_id: Optional[int] = Field(default=None, foreign_key="poolteam.id")
    higher_seed_entry_id: Optional[int] = Field(default=None, foreign_key="entry.id")
    lower_seed_entry_id: Optional[int] = Field(default=None, foreign_key="entry.id")

    # Signed from the higher slot's perspective; negative = higher slot favored
    spread: Optional[float] = Field(default=None)
    higher_seed_score: Optional[int] = Field(default=None)
    lower_seed_score: Optional[int] = Field(default=None)

    status: GameStatus = Field(default=GameStatus.scheduled, sa_column=Column(String, nullable=False))
    winning_team_id: Optional[int] = Field(default=None, foreign_key="poolteam.id")
    spread_covering_team_id: Optional[int] = Field(default=None, foreign_key="poolteam.id")
    advancing_entry_id: Optional[int] = Field(default=None, foreign_key="entry.id")

    started_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    pool: "Pool" = Relationship(back_populates="games")
