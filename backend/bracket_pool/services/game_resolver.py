"""
GameResolver: decide who won a finalized game and who covered the spread.

The spread is signed from the HIGHER slot's perspective:
  spread = -7  -> higher slot favored by 7
  spread = +7  -> higher slot getting 7 points as the underdog

adjusted = (higher_score - lower_score) + spread
  adjusted > 0 -> higher slot covers
  adjusted < 0 -> lower slot covers
  adjusted == 0 -> push, settled by the pool's push rule

The straight winner is recorded for display; the covering team drives advancement.
"""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from typing import Optional, Union

from bracket_pool.models.pool import PushRule
from bracket_pool.services.bracket_graph import Slot
from bracket_pool.services.errors import (
    ScoreValidationError,
    SpreadValidationError,
    TiedGameError,
)

MAX_ABS_SPREAD = 100.0


@dataclass(frozen=True)
class ResolvedGame:
    game_id: int
    winning_team_id: int
    losing_team_id: int
    spread_covering_team_id: int
    winner_side: Slot
    covering_side: Slot
    margin: int  # higher_score - lower_score
    adjusted_margin: float
    push: bool

    @property
    def upset_via_spread(self) -> bool:
        """Covering side lost outright."""
        return self.winner_side != self.covering_side


def validate_score(value: object, label: str = "score") -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ScoreValidationError(f"{label} must be an integer, got {value!r}")
    if value < 0:
        raise ScoreValidationError(f"{label} cannot be negative, got {value}")
    return value


def validate_spread(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SpreadValidationError(f"spread must be a number, got {value!r}")
    spread = float(value)
    if not math.isfinite(spread):
        raise SpreadValidationError("spread must be finite")
    if abs(spread) > MAX_ABS_SPREAD:
        raise SpreadValidationError(f"spread {spread} outside +/-{MAX_ABS_SPREAD:g}")
    return spread


def coin_flip_side(game_id: int) -> Slot:
    """Deterministic 'coin flip' for a push: same game id, same side, every time."""
    digest = hashlib.sha256(f"coin_flip:{game_id}".encode()).hexdigest()
    return Slot.HIGHER if int(digest[:12], 16) % 2 == 0 else Slot.LOWER


def push_side(game_id: int, spread: float, push_rule: Union[PushRule, str]) -> Slot:
    rule = PushRule(push_rule)
    if rule == PushRule.higher_seed_advances:
        return Slot.HIGHER
    if rule == PushRule.favorite_advances:
        # Negative spread means the higher slot is favored; a pick'em counts as the lower slot's
        return Slot.HIGHER if spread < 0 else Slot.LOWER
    if rule == PushRule.underdog_advances:
        return Slot.LOWER if spread < 0 else Slot.HIGHER
    return coin_flip_side(game_id)


def resolve_game(
    game_id: int,
    higher_team_id: int,
    lower_team_id: int,
    higher_score: int,
    lower_score: int,
    spread: Optional[float],
    push_rule: Union[PushRule, str],
) -> ResolvedGame:
    """Resolve a final score into straight winner and spread-covering team.

    Raises:
        ScoreValidationError: scores missing, negative or non-integer
        TiedGameError: equal scores (an elimination game cannot end tied)
    """
    validate_score(higher_score, "higher_seed_score")
    validate_score(lower_score, "lower_seed_score")
    if higher_score == lower_score:
        raise TiedGameError(f"Game {game_id} cannot be final with a tied score ({higher_score}-{lower_score})")

    line = validate_spread(spread) if spread is not None else 0.0

    margin = higher_score - lower_score
    adjusted = margin + line

    winner_side = Slot.HIGHER if margin > 0 else Slot.LOWER
    is_push = adjusted == 0
    if adjusted > 0:
        covering_side = Slot.HIGHER
    elif adjusted < 0:
        covering_side = Slot.LOWER
    else:
        covering_side = push_side(game_id, line, push_rule)

    def team_for(side: Slot) -> int:
        return higher_team_id if side == Slot.HIGHER else lower_team_id

    winner = team_for(winner_side)
    return ResolvedGame(
        game_id=game_id,
        winning_team_id=winner,
        losing_team_id=lower_team_id if winner == higher_team_id else higher_team_id,
        spread_covering_team_id=team_for(covering_side),
        winner_side=winner_side,
        covering_side=covering_side,
        margin=margin,
        adjusted_margin=adjusted,
        push=is_push,
    )
