"""
Pool setup: configuration, team registration and entry registration.

Everything here is only allowed before the draw. Once Pool.draw_completed is
set the configuration, team list and entry list are frozen.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlmodel import Session, select

from bracket_pool.models.entry import Entry
from bracket_pool.models.game import Region
from bracket_pool.models.pool import Pool, PushRule
from bracket_pool.models.pool_team import PoolTeam
from bracket_pool.services.errors import (
    NotFoundError,
    PayoutConfigError,
    PoolLockedError,
    ValidationError,
)
from bracket_pool.services.payout_service import PAYOUT_FIELDS

logger = logging.getLogger(__name__)

PAYOUT_TOTAL = 100.0
PAYOUT_TOLERANCE = 0.01

CONFIG_FIELDS = PAYOUT_FIELDS + ["name", "tournament_year", "push_rule", "spread_required"]


def payout_problem(pcts: Dict[str, float]) -> Optional[str]:
    """Why a payout table is invalid, or None. Shared by request models and services."""
    for name in PAYOUT_FIELDS:
        value = pcts.get(name, 0.0) or 0.0
        if value < 0 or value > PAYOUT_TOTAL:
            return f"{name} must be between 0 and 100 (got {value})"
    total = sum(pcts.get(name, 0.0) or 0.0 for name in PAYOUT_FIELDS)
    if abs(total - PAYOUT_TOTAL) > PAYOUT_TOLERANCE:
        return f"Payouts sum to {total:g}% (should be 100%)"
    return None


def get_pool(session: Session, pool_id: int) -> Pool:
    pool = session.get(Pool, pool_id)
    if not pool:
        raise NotFoundError(f"Pool {pool_id} not found")
    return pool


def _require_open(pool: Pool, action: str) -> None:
    if pool.draw_completed:
        raise PoolLockedError(f"Cannot {action}: draw already completed for pool {pool.id}")


def create_pool(session: Session, data: Dict[str, Any]) -> Pool:
    pool = Pool(**data)
    problem = payout_problem({name: getattr(pool, name) for name in PAYOUT_FIELDS})
    if problem:
        raise PayoutConfigError(problem)
    pool.push_rule = PushRule(pool.push_rule).value
    session.add(pool)
    session.commit()
    session.refresh(pool)
    logger.info("Created pool %d (%s, %d)", pool.id, pool.name, pool.tournament_year)
    return pool


def update_pool(session: Session, pool_id: int, changes: Dict[str, Any]) -> Pool:
    """Apply configuration changes. Rejected after the draw."""
    pool = get_pool(session, pool_id)
    _require_open(pool, "change pool configuration")

    unknown = set(changes) - set(CONFIG_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown pool settings: {', '.join(sorted(unknown))}")

    merged = {name: getattr(pool, name) for name in PAYOUT_FIELDS}
    merged.update({k: v for k, v in changes.items() if k in PAYOUT_FIELDS})
    problem = payout_problem(merged)
    if problem:
        raise PayoutConfigError(problem)

    for key, value in changes.items():
        if key == "push_rule":
            value = PushRule(value).value
        setattr(pool, key, value)
    session.add(pool)
    session.commit()
    session.refresh(pool)
    return pool


def add_teams(session: Session, pool_id: int, teams: Iterable[Dict[str, Any]]) -> List[PoolTeam]:
    """Register seeded teams. Seeds 1-16, one of the four regions, no duplicates."""
    pool = get_pool(session, pool_id)
    _require_open(pool, "add teams")

    existing = session.exec(select(PoolTeam).where(PoolTeam.pool_id == pool_id)).all()
    taken_positions = {(t.region, t.seed) for t in existing}
    taken_names = {t.name.lower() for t in existing}

    created: List[PoolTeam] = []
    for raw in teams:
        name = (raw.get("name") or "").strip()
        seed = raw.get("seed")
        try:
            region = Region(raw.get("region")).value
        except ValueError:
            raise ValidationError(f"Team '{name}': unknown region {raw.get('region')!r}")
        if not name:
            raise ValidationError("Team name is required")
        if not isinstance(seed, int) or isinstance(seed, bool) or not 1 <= seed <= 16:
            raise ValidationError(f"Team '{name}': seed must be 1-16 (got {seed!r})")
        if (region, seed) in taken_positions:
            raise ValidationError(f"{region} already has a #{seed} seed")
        if name.lower() in taken_names:
            raise ValidationError(f"Team '{name}' already registered")
        taken_positions.add((region, seed))
        taken_names.add(name.lower())
        team = PoolTeam(pool_id=pool_id, name=name, seed=seed, region=region)
        session.add(team)
        created.append(team)

    session.commit()
    for team in created:
        session.refresh(team)
    logger.info("Pool %d: registered %d teams", pool_id, len(created))
    return created


def add_entry(session: Session, pool_id: int, display_name: str, approved: bool = True) -> Entry:
    pool = get_pool(session, pool_id)
    _require_open(pool, "add entries")
    name = (display_name or "").strip()
    if not name:
        raise ValidationError("display_name is required")
    entry = Entry(pool_id=pool_id, display_name=name, approved=approved)
    session.add(entry)
    session.commit()
    session.refresh(entry)
    return entry


def set_entry_approval(session: Session, pool_id: int, entry_id: int, approved: bool) -> Entry:
    pool = get_pool(session, pool_id)
    _require_open(pool, "change entry approval")
    entry = session.get(Entry, entry_id)
    if not entry or entry.pool_id != pool_id:
        raise NotFoundError(f"Entry {entry_id} not found in pool {pool_id}")
    entry.approved = approved
    session.add(entry)
    session.commit()
    session.refresh(entry)
    return entry
