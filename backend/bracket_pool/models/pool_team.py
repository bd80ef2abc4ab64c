from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from bracket_pool.models.pool import Pool


class PoolTeam(SQLModel, table=True):
    __table_args__ = (
        # One team per seed line within a region
        SAUniqueConstraint("pool_id", "region", "seed", name="uq_pool_region_seed"),
        SAUniqueConstraint("pool_id", "name", name="uq_pool_team_name"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    pool_id: int = Field(foreign_key="pool.id", index=True)
    name: str
    seed: int  # 1-16, 1 = best
    region: Optional[str] = Field(default=None, sa_column=Column(String, nullable=True))  # East | West | South | Midwest

    eliminated: bool = Field(default=False)
    eliminated_round: Optional[str] = Field(default=None)  # write-once
    created_at: datetime = Field(default_factory=datetime.utcnow)

    pool: "Pool" = Relationship(back_populates="teams")
