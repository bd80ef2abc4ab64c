"""Game runtime endpoints: spread, start, final score, replay, demo simulation."""
import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def drawn(client: TestClient) -> dict:
    """Pool with demo teams/entries, drawn. Returns {'pool': ..., 'bracket': [...]}"""
    pool = client.post("/api/pools", json={
        "name": "Runtime Pool",
        "tournament_year": 2026,
        "sweet16_payout_pct": 16,
        "elite8_payout_pct": 16,
        "final4_payout_pct": 14,
        "runnerup_payout_pct": 14,
        "champion_payout_pct": 40,
    }).json()
    assert client.post(f"/api/pools/{pool['id']}/demo/seed").status_code == 200
    assert client.post(f"/api/pools/{pool['id']}/draw").status_code == 200
    bracket = client.get(f"/api/pools/{pool['id']}/bracket").json()
    return {"pool": pool, "bracket": bracket}


def _url(drawn: dict, game: dict, action: str) -> str:
    return f"/api/pools/{drawn['pool']['id']}/games/{game['id']}/{action}"


def test_set_spread_then_lock(client: TestClient, drawn: dict):
    game = drawn["bracket"][0]
    response = client.put(_url(drawn, game, "spread"), json={"spread": -21.5})
    assert response.status_code == 200
    assert response.json()["spread"] == -21.5

    started = client.post(_url(drawn, game, "start"))
    assert started.status_code == 200
    assert started.json()["status"] == "in_progress"

    locked = client.put(_url(drawn, game, "spread"), json={"spread": -10})
    assert locked.status_code == 409
    assert locked.json()["detail"]["code"] == "SPREAD_LOCKED"


def test_spread_out_of_range(client: TestClient, drawn: dict):
    response = client.put(_url(drawn, drawn["bracket"][0], "spread"), json={"spread": 250})
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "SPREAD_INVALID"


def test_final_score_advances_covering_entry(client: TestClient, drawn: dict):
    game = drawn["bracket"][1]  # East 8 vs 9, spread -2.5
    response = client.post(_url(drawn, game, "final"), json={"higher_seed_score": 70, "lower_seed_score": 68})
    assert response.status_code == 200, response.text
    result = response.json()
    assert result["winning_team_id"] == game["higher_seed_team_id"]
    assert result["spread_covering_team_id"] == game["lower_seed_team_id"]
    assert result["advancing_entry_id"] == game["lower_seed_entry_id"]
    assert result["eliminated_entry_id"] == game["higher_seed_entry_id"]
    assert result["next_slot"] == "lower"

    bracket = client.get(f"/api/pools/{drawn['pool']['id']}/bracket").json()
    r32 = next(g for g in bracket if g["id"] == result["next_game_id"])
    assert r32["lower_seed_entry_id"] == game["lower_seed_entry_id"]
    assert r32["lower_seed_team_id"] == game["higher_seed_team_id"]

    standings = client.get(f"/api/pools/{drawn['pool']['id']}/standings").json()
    advancing = next(r for r in standings if r["entry_id"] == game["lower_seed_entry_id"])
    assert advancing["current_team_id"] == game["higher_seed_team_id"]
    assert advancing["original_team_id"] == game["lower_seed_team_id"]


def test_final_score_replay_and_conflict(client: TestClient, drawn: dict):
    game = drawn["bracket"][0]
    body = {"higher_seed_score": 88, "lower_seed_score": 60}
    first = client.post(_url(drawn, game, "final"), json=body)
    second = client.post(_url(drawn, game, "final"), json=body)
    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()

    conflict = client.post(_url(drawn, game, "final"), json={"higher_seed_score": 60, "lower_seed_score": 88})
    assert conflict.status_code == 409
    assert conflict.json()["detail"]["code"] == "GAME_ALREADY_FINAL"


def test_tied_and_negative_scores(client: TestClient, drawn: dict):
    game = drawn["bracket"][0]
    tied = client.post(_url(drawn, game, "final"), json={"higher_seed_score": 70, "lower_seed_score": 70})
    assert tied.status_code == 409
    assert tied.json()["detail"]["code"] == "TIED_GAME"

    negative = client.post(_url(drawn, game, "final"), json={"higher_seed_score": -2, "lower_seed_score": 70})
    assert negative.status_code == 422
    assert negative.json()["detail"]["code"] == "SCORE_INVALID"


def test_unready_game(client: TestClient, drawn: dict):
    final = drawn["bracket"][-1]
    response = client.post(_url(drawn, final, "final"), json={"higher_seed_score": 70, "lower_seed_score": 60})
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "GAME_NOT_READY"


def test_unknown_game(client: TestClient, drawn: dict):
    response = client.post(
        f"/api/pools/{drawn['pool']['id']}/games/99999/final",
        json={"higher_seed_score": 70, "lower_seed_score": 60},
    )
    assert response.status_code == 404


def test_replay_advancement_is_idempotent(client: TestClient, drawn: dict):
    game = drawn["bracket"][0]
    client.post(_url(drawn, game, "final"), json={"higher_seed_score": 90, "lower_seed_score": 60})

    url = f"/api/pools/{drawn['pool']['id']}/replay-advancement"
    first = client.post(url).json()
    second = client.post(url).json()
    assert first["games_processed"] == 1
    assert first["slots_filled"] == 0
    assert second == first


def test_simulate_whole_bracket(client: TestClient, drawn: dict):
    pool_id = drawn["pool"]["id"]
    rounds = [client.post(f"/api/pools/{pool_id}/demo/simulate-round").json() for _ in range(6)]
    assert [r["round"] for r in rounds] == ["R64", "R32", "S16", "E8", "F4", "Final"]

    pool = client.get(f"/api/pools/{pool_id}").json()
    assert pool["champion_entry_id"] == rounds[-1]["champion_entry_id"] is not None
    assert pool["completed_at"] is not None

    standings = client.get(f"/api/pools/{pool_id}/standings").json()
    assert standings[0]["is_champion"]
    assert sum(row["payout_pct"] for row in standings) == pytest.approx(100.0)
