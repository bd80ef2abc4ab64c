from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracket_pool.models.pool import Pool


class Entry(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    pool_id: int = Field(foreign_key="pool.id", index=True)
    display_name: str
    approved: bool = Field(default=True)

    # Team inheritance: current_team_id follows the team this entry controls;
    # original_team_id is the team it was drawn (set once by the draw)
    current_team_id: Optional[int] = Field(default=None, foreign_key="poolteam.id")
    original_team_id: Optional[int] = Field(default=None, foreign_key="poolteam.id")

    eliminated: bool = Field(default=False)
    eliminated_round: Optional[str] = Field(default=None)  # write-once

    payout_pct: float = Field(default=0.0)
    payout_assigned_at: Optional[datetime] = Field(default=None)  # write-once marker
    created_at: datetime = Field(default_factory=datetime.utcnow)

    pool: "Pool" = Relationship(back_populates="entries")
