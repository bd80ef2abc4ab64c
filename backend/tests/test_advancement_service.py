"""Advancement: elimination, slot install, team inheritance, replay."""
import random

import pytest
from sqlmodel import Session, select

from bracket_pool.models.entry import Entry
from bracket_pool.models.game import Game, GameStatus
from bracket_pool.models.pool import Pool
from bracket_pool.models.pool_team import PoolTeam
from bracket_pool.services.advancement_service import replay_advancement
from bracket_pool.services.demo_service import simulate_next_round
from bracket_pool.services.errors import (
    AlreadyEliminatedError,
    GameNotReadyError,
    SlotConflictError,
)
from bracket_pool.services.game_resolver import resolve_game
from bracket_pool.services.scoring_service import submit_final_score


def _game(session: Session, pool_id: int, round_tag: str, region, n: int) -> Game:
    return session.exec(
        select(Game).where(
            Game.pool_id == pool_id,
            Game.round == round_tag,
            Game.region == region,
            Game.game_number == n,
        ).execution_options(populate_existing=True)
    ).one()


def _entry(session: Session, entry_id: int) -> Entry:
    return session.get(Entry, entry_id, populate_existing=True)


def test_favorite_covers_and_advances(session: Session, drawn_pool: Pool):
    game = _game(session, drawn_pool.id, "R64", "East", 0)  # 1 vs 16, spread -23
    higher_entry, lower_entry = game.higher_seed_entry_id, game.lower_seed_entry_id
    higher_team, lower_team = game.higher_seed_team_id, game.lower_seed_team_id

    result = submit_final_score(session, drawn_pool.id, game.id, 95, 60)

    assert result.winning_team_id == higher_team
    assert result.spread_covering_team_id == higher_team
    assert result.advancing_entry_id == higher_entry
    assert result.eliminated_entry_id == lower_entry

    loser = _entry(session, lower_entry)
    assert loser.eliminated and loser.eliminated_round == "R64"
    assert loser.current_team_id == lower_team
    assert _entry(session, higher_entry).current_team_id == higher_team

    r32 = _game(session, drawn_pool.id, "R32", "East", 0)
    assert result.next_game_id == r32.id
    assert result.next_slot == "higher"
    assert r32.higher_seed_entry_id == higher_entry
    assert r32.higher_seed_team_id == higher_team
    assert r32.lower_seed_entry_id is None

    assert session.get(PoolTeam, lower_team, populate_existing=True).eliminated


def test_upset_via_spread_transfers_team(session: Session, drawn_pool: Pool):
    game = _game(session, drawn_pool.id, "R64", "East", 1)  # 8 vs 9 -> lower slot feeds R32 game 0
    higher_entry, lower_entry = game.higher_seed_entry_id, game.lower_seed_entry_id
    higher_team, lower_team = game.higher_seed_team_id, game.lower_seed_team_id
    assert game.spread == -2.5

    # Higher seed wins by 2 but does not cover 2.5
    result = submit_final_score(session, drawn_pool.id, game.id, 70, 68)

    assert result.winning_team_id == higher_team
    assert result.spread_covering_team_id == lower_team
    assert result.advancing_entry_id == lower_entry
    assert result.next_slot == "lower"

    advancing = _entry(session, lower_entry)
    eliminated = _entry(session, higher_entry)
    assert not advancing.eliminated
    assert advancing.current_team_id == higher_team
    assert advancing.original_team_id == lower_team
    assert eliminated.eliminated
    assert eliminated.current_team_id == lower_team

    r32 = _game(session, drawn_pool.id, "R32", "East", 0)
    assert r32.lower_seed_entry_id == lower_entry
    assert r32.lower_seed_team_id == higher_team


def test_alive_teams_and_alive_entries_stay_paired(session: Session, drawn_pool: Pool):
    for n in range(8):
        game = _game(session, drawn_pool.id, "R64", "West", n)
        # Alternate covers and non-covers
        submit_final_score(session, drawn_pool.id, game.id, 71, 70 if n % 2 else 40)

    entries = session.exec(select(Entry).where(Entry.pool_id == drawn_pool.id)).all()
    alive_teams = {t.id for t in session.exec(select(PoolTeam).where(PoolTeam.pool_id == drawn_pool.id)) if not t.eliminated}
    alive_entry_teams = [e.current_team_id for e in entries if not e.eliminated]
    assert len(alive_entry_teams) == 64 - 8
    assert set(alive_entry_teams) == alive_teams


def test_eliminated_entry_cannot_lose_again(session: Session, drawn_pool: Pool):
    game = _game(session, drawn_pool.id, "R64", "South", 0)
    lower = _entry(session, game.lower_seed_entry_id)
    lower.eliminated = True
    lower.eliminated_round = "R64"
    session.add(lower)
    session.commit()

    with pytest.raises(AlreadyEliminatedError):
        submit_final_score(session, drawn_pool.id, game.id, 90, 50)

    # Rolled back: game not final, nothing installed downstream
    game = _game(session, drawn_pool.id, "R64", "South", 0)
    assert game.status == GameStatus.scheduled
    assert game.advancing_entry_id is None
    assert _game(session, drawn_pool.id, "R32", "South", 0).higher_seed_entry_id is None


def test_slot_conflict_rolls_back(session: Session, drawn_pool: Pool):
    game = _game(session, drawn_pool.id, "R64", "Midwest", 0)
    intruder = _game(session, drawn_pool.id, "R64", "East", 3).higher_seed_entry_id
    r32 = _game(session, drawn_pool.id, "R32", "Midwest", 0)
    r32.higher_seed_entry_id = intruder
    session.add(r32)
    session.commit()

    with pytest.raises(SlotConflictError):
        submit_final_score(session, drawn_pool.id, game.id, 90, 50)
    assert _game(session, drawn_pool.id, "R64", "Midwest", 0).status == GameStatus.scheduled
    assert _entry(session, game.lower_seed_entry_id).eliminated is False


def test_later_round_waits_for_both_entries(session: Session, drawn_pool: Pool):
    first = _game(session, drawn_pool.id, "R64", "East", 0)
    submit_final_score(session, drawn_pool.id, first.id, 95, 60)
    r32 = _game(session, drawn_pool.id, "R32", "East", 0)
    with pytest.raises(GameNotReadyError):
        submit_final_score(session, drawn_pool.id, r32.id, 70, 60)


def test_replay_fills_missing_slot(session: Session, drawn_pool: Pool):
    game = _game(session, drawn_pool.id, "R64", "East", 2)
    result = submit_final_score(session, drawn_pool.id, game.id, 80, 60)

    # Lose the install, as if a request died half way
    r32 = _game(session, drawn_pool.id, "R32", "East", 1)
    r32.higher_seed_entry_id = None
    r32.higher_seed_team_id = None
    session.add(r32)
    session.commit()

    stats = replay_advancement(session, drawn_pool.id)
    assert stats["games_processed"] == 1
    assert stats["slots_filled"] == 1
    assert stats["open_slots_before"] - stats["open_slots_after"] == 1

    r32 = _game(session, drawn_pool.id, "R32", "East", 1)
    assert r32.higher_seed_entry_id == result.advancing_entry_id

    again = replay_advancement(session, drawn_pool.id)
    assert again["slots_filled"] == 0
    assert again["games_advanced"] == 0
    assert again["open_slots_after"] == stats["open_slots_after"]


def test_replay_advances_final_game_that_never_advanced(session: Session, drawn_pool: Pool):
    game = _game(session, drawn_pool.id, "R64", "West", 5)  # 3 vs 14
    resolved = resolve_game(
        game.id, game.higher_seed_team_id, game.lower_seed_team_id, 75, 70, game.spread, drawn_pool.push_rule
    )
    game.status = GameStatus.final.value
    game.higher_seed_score = 75
    game.lower_seed_score = 70
    game.winning_team_id = resolved.winning_team_id
    game.spread_covering_team_id = resolved.spread_covering_team_id
    session.add(game)
    session.commit()

    stats = replay_advancement(session, drawn_pool.id)
    assert stats["games_advanced"] == 1

    game = _game(session, drawn_pool.id, "R64", "West", 5)
    # 75-70 with -12: 14 seed covers, takes over the 3 seed
    assert game.advancing_entry_id == game.lower_seed_entry_id
    r32 = _game(session, drawn_pool.id, "R32", "West", 2)
    assert r32.lower_seed_entry_id == game.lower_seed_entry_id
    assert r32.lower_seed_team_id == game.higher_seed_team_id
    assert _entry(session, game.higher_seed_entry_id).eliminated


def test_replay_pays_out_a_stranded_final(session: Session, drawn_pool: Pool):
    rng = random.Random(17)
    for _ in range(5):
        simulate_next_round(session, drawn_pool.id, rng)

    final = _game(session, drawn_pool.id, "Final", None, 0)
    resolved = resolve_game(
        final.id, final.higher_seed_team_id, final.lower_seed_team_id, 70, 60, -1.5, drawn_pool.push_rule
    )
    # Finalized, but the request died before advancement ran
    final.spread = -1.5
    final.status = GameStatus.final.value
    final.higher_seed_score = 70
    final.lower_seed_score = 60
    final.winning_team_id = resolved.winning_team_id
    final.spread_covering_team_id = resolved.spread_covering_team_id
    session.add(final)
    session.commit()

    stats = replay_advancement(session, drawn_pool.id)
    assert stats["games_advanced"] == 1

    session.refresh(drawn_pool)
    champion = _entry(session, final.higher_seed_entry_id)
    runner_up = _entry(session, final.lower_seed_entry_id)
    assert drawn_pool.champion_entry_id == champion.id
    assert champion.payout_pct == 40.0
    assert runner_up.payout_pct == 14.0
    assert runner_up.payout_assigned_at is not None

    entries = session.exec(
        select(Entry).where(Entry.pool_id == drawn_pool.id).execution_options(populate_existing=True)
    ).all()
    assert sum(e.payout_pct for e in entries) == pytest.approx(100.0)

    # Resubmitting the same score afterwards changes nothing
    before = [(e.id, e.payout_pct) for e in entries]
    again = submit_final_score(session, drawn_pool.id, final.id, 70, 60)
    assert again.champion_entry_id == champion.id
    after = session.exec(
        select(Entry).where(Entry.pool_id == drawn_pool.id).execution_options(populate_existing=True)
    ).all()
    assert [(e.id, e.payout_pct) for e in after] == before


def test_resubmitting_score_settles_missing_payouts(session: Session, drawn_pool: Pool):
    rng = random.Random(23)
    for _ in range(6):
        simulate_next_round(session, drawn_pool.id, rng)
    session.refresh(drawn_pool)
    champion = _entry(session, drawn_pool.champion_entry_id)

    # Payout lost after the champion was crowned
    champion.payout_pct = 0.0
    champion.payout_assigned_at = None
    session.add(champion)
    session.commit()

    final = _game(session, drawn_pool.id, "Final", None, 0)
    submit_final_score(session, drawn_pool.id, final.id, final.higher_seed_score, final.lower_seed_score)
    assert _entry(session, champion.id).payout_pct == 40.0
