"""
BracketGraph: pure structural map of a 64-team single-elimination bracket.

Coordinates are (round, region, game_number):
- R64..E8 games live inside a region; game_number is 0-based within round + region
  (R64: 0-7, R32: 0-3, S16: 0-1, E8: 0)
- F4 and Final carry no region (F4: 0-1, Final: 0)

Advancement rule: game n of round R feeds game n // 2 of round R+1.
Even n feeds the HIGHER slot, odd n the LOWER slot. At E8 -> F4 the region's
index in REGION_ORDER stands in for n, so East/West meet in F4 game 0 and
South/Midwest in F4 game 1.

Nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from bracket_pool.models.game import Region, Round
from bracket_pool.services.errors import ConsistencyError


class Slot(str, Enum):
    HIGHER = "higher"
    LOWER = "lower"


ROUND_ORDER: List[Round] = [Round.R64, Round.R32, Round.S16, Round.E8, Round.F4, Round.FINAL]
REGION_ORDER: List[Region] = [Region.east, Region.west, Region.south, Region.midwest]

# Games per region for regional rounds, total games for national rounds
GAMES_PER_REGION: Dict[Round, int] = {Round.R64: 8, Round.R32: 4, Round.S16: 2, Round.E8: 1}
NATIONAL_GAMES: Dict[Round, int] = {Round.F4: 2, Round.FINAL: 1}

TOTAL_GAMES = 63

# Round of 64 matchups (higher seed, lower seed) in game_number order
R64_SEED_MATCHUPS: List[Tuple[int, int]] = [
    (1, 16),
    (8, 9),
    (5, 12),
    (4, 13),
    (6, 11),
    (3, 14),
    (7, 10),
    (2, 15),
]


@dataclass(frozen=True)
class BracketSlot:
    """A destination: which game in the next round, and which side of it."""
    round: Round
    region: Optional[Region]
    game_number: int
    slot: Slot


@dataclass(frozen=True)
class GamePosition:
    round: Round
    region: Optional[Region]
    game_number: int


def as_round(value: Union[Round, str]) -> Round:
    """Normalize a stored round tag ('R64', 'Final', ...) to Round."""
    try:
        return Round(value)
    except ValueError:
        raise ConsistencyError(f"Unknown round tag: {value!r}")


def as_region(value: Optional[Union[Region, str]]) -> Optional[Region]:
    if value is None:
        return None
    try:
        return Region(value)
    except ValueError:
        raise ConsistencyError(f"Unknown region: {value!r}")


def round_index(round_tag: Union[Round, str]) -> int:
    return ROUND_ORDER.index(as_round(round_tag))


def next_round(round_tag: Union[Round, str]) -> Optional[Round]:
    idx = round_index(round_tag)
    if idx == len(ROUND_ORDER) - 1:
        return None
    return ROUND_ORDER[idx + 1]


def games_in_round(round_tag: Union[Round, str]) -> int:
    r = as_round(round_tag)
    if r in GAMES_PER_REGION:
        return GAMES_PER_REGION[r] * len(REGION_ORDER)
    return NATIONAL_GAMES[r]


def _slot_for(index: int) -> Slot:
    return Slot.HIGHER if index % 2 == 0 else Slot.LOWER


def _check_position(r: Round, region: Optional[Region], game_number: int) -> None:
    if r in GAMES_PER_REGION:
        if region is None:
            raise ConsistencyError(f"{r.value} game {game_number} has no region")
        limit = GAMES_PER_REGION[r]
    else:
        if region is not None:
            raise ConsistencyError(f"{r.value} game {game_number} must not carry a region (got {region.value})")
        limit = NATIONAL_GAMES[r]
    if not 0 <= game_number < limit:
        raise ConsistencyError(
            f"{r.value} game_number {game_number} out of range 0..{limit - 1}"
        )


def next_slot(
    round_tag: Union[Round, str],
    region: Optional[Union[Region, str]],
    game_number: int,
) -> BracketSlot:
    """Destination slot for the team advancing out of (round, region, game_number).

    Raises ConsistencyError for coordinates that do not exist in a 64-team bracket
    and for the Final, which has no destination.
    """
    r = as_round(round_tag)
    reg = as_region(region)
    _check_position(r, reg, game_number)

    following = next_round(r)
    if following is None:
        raise ConsistencyError("The Final has no next slot")

    if r == Round.E8:
        region_idx = REGION_ORDER.index(reg)
        return BracketSlot(following, None, region_idx // 2, _slot_for(region_idx))

    dest_region = reg if following in GAMES_PER_REGION else None
    return BracketSlot(following, dest_region, game_number // 2, _slot_for(game_number))


def feeders(
    round_tag: Union[Round, str],
    region: Optional[Union[Region, str]],
    game_number: int,
) -> Dict[Slot, GamePosition]:
    """Inverse of next_slot: the upstream games feeding each slot. Empty for R64."""
    r = as_round(round_tag)
    reg = as_region(region)
    _check_position(r, reg, game_number)

    idx = round_index(r)
    if idx == 0:
        return {}
    prev = ROUND_ORDER[idx - 1]

    if r == Round.F4:
        return {
            Slot.HIGHER: GamePosition(prev, REGION_ORDER[game_number * 2], 0),
            Slot.LOWER: GamePosition(prev, REGION_ORDER[game_number * 2 + 1], 0),
        }
    prev_region = reg if prev in GAMES_PER_REGION else None
    return {
        Slot.HIGHER: GamePosition(prev, prev_region, game_number * 2),
        Slot.LOWER: GamePosition(prev, prev_region, game_number * 2 + 1),
    }


def all_positions() -> List[GamePosition]:
    """Every game in the bracket, in round order then region order then game_number."""
    positions: List[GamePosition] = []
    for r in ROUND_ORDER:
        if r in GAMES_PER_REGION:
            for reg in REGION_ORDER:
                for n in range(GAMES_PER_REGION[r]):
                    positions.append(GamePosition(r, reg, n))
        else:
            for n in range(NATIONAL_GAMES[r]):
                positions.append(GamePosition(r, None, n))
    return positions


def position_sort_key(round_tag: Union[Round, str], region: Optional[Union[Region, str]], game_number: int) -> tuple:
    reg = as_region(region)
    return (
        round_index(round_tag),
        REGION_ORDER.index(reg) if reg is not None else -1,
        game_number,
    )
