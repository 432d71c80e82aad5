import time

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from tycoon.data import get_settings
from tycoon.server.app import app
from tycoon.settings import get_arena_settings


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'server.db'}")
    monkeypatch.setenv("DB_AUTO_CREATE_TABLES", "true")
    monkeypatch.setenv("ARENA_RUNNER_AUTOSTART", "false")
    get_settings.cache_clear()
    get_arena_settings.cache_clear()
    with TestClient(app) as c:
        yield c


def _create_game(client: TestClient, players: int = 2) -> dict:
    resp = client.post("/games", json={"number_of_players": players})
    assert resp.status_code == 200, resp.text
    game = resp.json()
    seats = []
    for i in range(players):
        seat = client.post(f"/games/{game['game_id']}/seats", json={"owner_ref": f"player-{i}"})
        assert seat.status_code == 200, seat.text
        seats.append(seat.json()["seat_id"])
    started = client.post(f"/games/{game['game_id']}/start")
    assert started.status_code == 200, started.text
    assert started.json()["next_player_id"] == seats[0]
    return {"game_id": game["game_id"], "seats": seats}


def _create_agent_game(client: TestClient) -> int:
    resp = client.post(
        "/games",
        json={
            "agents": [
                {"name": "Ada", "strategy": "heuristic", "risk_profile": "aggressive"},
                {"name": "Bo", "strategy": "random"},
            ]
        },
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["status"] == "RUNNING"
    assert data["runner_started"] is False
    return data["game_id"]


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_play_a_turn(client):
    game = _create_game(client)
    gid, (first, second) = game["game_id"], game["seats"]

    can = client.get(f"/games/{gid}/can-roll", params={"seat_id": first})
    assert can.status_code == 200 and can.json()["can_roll"] is True

    rolled = client.post(f"/games/{gid}/roll", json={"seat_id": first, "dice": [2, 3]})
    assert rolled.status_code == 200, rolled.text
    turn = rolled.json()
    assert turn["new_position"] == 5
    assert turn["buyable"] is True
    assert turn["rent_paid"] == {"player": 0, "owner": 0, "players": 0}
    assert "card" not in turn

    bought = client.post(f"/games/{gid}/ledger", json={"seat_id": first, "action": "buy_property", "property_id": 5})
    assert bought.status_code == 200, bought.text
    assert bought.json()["balance"] == 1300

    ended = client.post(f"/games/{gid}/end-turn", json={"seat_id": first})
    assert ended.status_code == 200
    assert ended.json()["next_player_id"] == second

    view = client.get(f"/games/{gid}").json()
    assert view["status"] == "RUNNING"
    assert view["next_player_id"] == second
    assert [p["id"] for p in view["properties"]] == [5]
    assert view["properties"][0]["owner_id"] == first
    assert [s["phase"] for s in view["seats"]] == ["waiting_turn", "rolling"]


def test_error_codes(client):
    game = _create_game(client)
    gid, (first, second) = game["game_id"], game["seats"]

    assert client.get("/games/9999").status_code == 404

    out_of_turn = client.post(f"/games/{gid}/roll", json={"seat_id": second})
    assert out_of_turn.status_code == 409
    assert out_of_turn.json()["error"] == "NotYourTurnError"
    assert set(out_of_turn.json()) == {"error", "detail", "retryable"}
    assert out_of_turn.json()["retryable"] is False

    mismatch = client.post(f"/games/{gid}/roll", json={"seat_id": first, "dice": [2, 3], "claimed_position": 9})
    assert mismatch.status_code == 422
    assert mismatch.json()["error"] == "InvalidMoveError"

    bad_dice = client.post(f"/games/{gid}/roll", json={"seat_id": first, "dice": [0, 3]})
    assert bad_dice.status_code == 422

    assert client.post(f"/games/{gid}/roll", json={"seat_id": first, "dice": [1, 2]}).status_code == 200
    again = client.post(f"/games/{gid}/roll", json={"seat_id": first, "dice": [1, 2]})
    assert again.status_code == 409
    assert again.json()["error"] == "AlreadyRolledError"

    not_here = client.post(f"/games/{gid}/ledger", json={"seat_id": first, "action": "buy_property", "property_id": 39})
    assert not_here.status_code == 400
    assert not_here.json()["retryable"] is False

    assert client.post("/games", json={"number_of_players": 1}).status_code == 422


def test_start_requires_full_table(client):
    gid = client.post("/games", json={"number_of_players": 3}).json()["game_id"]
    client.post(f"/games/{gid}/seats", json={"owner_ref": "solo"})
    resp = client.post(f"/games/{gid}/start")
    assert resp.status_code == 409


def test_websocket_streams_initial_snapshot(client):
    gid = _create_game(client)["game_id"]

    with client.websocket_connect(f"/ws/games/{gid}") as ws:
        first = ws.receive_json()
        assert first["type"] == "snapshot"
        assert first["game_id"] == gid
        assert first["data"]["id"] == gid
        assert len(first["data"]["seats"]) == 2


def test_websocket_unknown_game_is_closed(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws/games/9999") as ws:
            ws.receive_json()


def test_runner_rejects_human_games(client):
    gid = _create_game(client)["game_id"]
    resp = client.post(f"/games/{gid}/runner/start", json={"interval": 0.05})
    assert resp.status_code == 400
    assert client.post(f"/games/{gid}/runner/stop").status_code == 404
    assert client.get(f"/games/{gid}/runner").status_code == 404


def test_agent_game_runner_lifecycle(client):
    gid = _create_agent_game(client)

    started = client.post(f"/games/{gid}/runner/start", json={"interval": 0.05})
    assert started.status_code == 200, started.text
    assert started.json()["running"] is True

    deadline = time.time() + 5
    log = []
    while time.time() < deadline and len(log) < 2:
        time.sleep(0.1)
        log = client.get(f"/games/{gid}/runner").json()["log"]
    assert len(log) >= 2
    assert {entry["agent"] for entry in log} <= {"Ada", "Bo"}

    live = client.get("/live-games").json()["games"]
    assert [g["game_id"] for g in live] == [gid]
    assert live[0]["status"] == "RUNNING"

    stopped = client.post(f"/games/{gid}/runner/stop")
    assert stopped.status_code == 200
    assert client.get(f"/games/{gid}").json()["status"] == "STOPPED"
    assert client.get("/live-games").json()["games"] == []
