"""
PayoutCalculator: payout percentage per entry from the round it went out in.

Each configured percentage is the pot for one finishing position, split evenly
among the entries finishing there:

  eliminated in S16   -> sweet16_payout_pct / 8
  eliminated in E8    -> elite8_payout_pct  / 4
  eliminated in F4    -> final4_payout_pct  / 2
  lost the Final      -> runnerup_payout_pct
  champion            -> champion_payout_pct
  eliminated R64/R32  -> 0

Payouts are not cumulative and are written once per entry (payout_assigned_at);
each run only touches entries eliminated since the previous run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union

from sqlmodel import Session, select

from bracket_pool.models.entry import Entry
from bracket_pool.models.game import Round
from bracket_pool.models.pool import Pool
from bracket_pool.services.bracket_graph import as_round
from bracket_pool.utils.sql import conditional_update

logger = logging.getLogger(__name__)

# round eliminated in -> (Pool percentage field, entries sharing the pot)
ROUND_PAYOUTS: Dict[Round, Tuple[str, int]] = {
    Round.S16: ("sweet16_payout_pct", 8),
    Round.E8: ("elite8_payout_pct", 4),
    Round.F4: ("final4_payout_pct", 2),
    Round.FINAL: ("runnerup_payout_pct", 1),
}
CHAMPION_PAYOUT = ("champion_payout_pct", 1)

PAYOUT_FIELDS = [
    "sweet16_payout_pct",
    "elite8_payout_pct",
    "final4_payout_pct",
    "runnerup_payout_pct",
    "champion_payout_pct",
]


@dataclass(frozen=True)
class PayoutAssignment:
    entry_id: int
    finish: str  # round tag eliminated in, or "Champion"
    payout_pct: float


def configured_total(pool: Pool) -> float:
    return sum(getattr(pool, name) or 0.0 for name in PAYOUT_FIELDS)


def payout_for_elimination(pool: Pool, round_tag: Union[Round, str]) -> float:
    """Per-entry share for an entry eliminated in round_tag."""
    share = ROUND_PAYOUTS.get(as_round(round_tag))
    if share is None:
        return 0.0
    field_name, split = share
    return (getattr(pool, field_name) or 0.0) / split


def payout_for_champion(pool: Pool) -> float:
    field_name, split = CHAMPION_PAYOUT
    return (getattr(pool, field_name) or 0.0) / split


def _assign(session: Session, entry_id: int, pct: float, now: datetime) -> bool:
    matched = conditional_update(
        session,
        Entry,
        Entry.id == entry_id,
        Entry.payout_assigned_at.is_(None),
        values={"payout_pct": pct, "payout_assigned_at": now},
    )
    return matched == 1


def compute_payouts(session: Session, pool: Pool, now: Optional[datetime] = None) -> List[PayoutAssignment]:
    """
    Assign payouts to newly eliminated entries and, once crowned, the champion.

    Does not commit; runs inside the caller's transaction.
    Returns only the assignments made by this call.
    """
    now = now or datetime.utcnow()
    assigned: List[PayoutAssignment] = []
    # champion_entry_id may have just been set by a guarded write
    session.refresh(pool)

    pending = session.exec(
        select(Entry)
        .where(
            Entry.pool_id == pool.id,
            Entry.eliminated == True,  # noqa: E712
            Entry.payout_assigned_at.is_(None),
        )
        .order_by(Entry.id)
        .execution_options(populate_existing=True)
    ).all()
    for entry in pending:
        pct = payout_for_elimination(pool, entry.eliminated_round)
        if _assign(session, entry.id, pct, now):
            assigned.append(PayoutAssignment(entry.id, as_round(entry.eliminated_round).value, pct))

    if pool.champion_entry_id is not None:
        pct = payout_for_champion(pool)
        if _assign(session, pool.champion_entry_id, pct, now):
            assigned.append(PayoutAssignment(pool.champion_entry_id, "Champion", pct))
            logger.info("Pool %d champion entry %d paid %.4g%%", pool.id, pool.champion_entry_id, pct)

    for a in assigned:
        session.expire(session.get(Entry, a.entry_id))
    if assigned:
        logger.info(
            "Pool %d: assigned %d payouts (%.4g%% total)",
            pool.id, len(assigned), sum(a.payout_pct for a in assigned),
        )
    return assigned
