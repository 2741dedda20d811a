"""Game API tests: envelope, per-player engines and the wallet bridge."""
import httpx
from fastapi.testclient import TestClient

from spinx.accounts.client import AccountClient
from spinx.main import app
from spinx.logic.models import RoundPhase

PLAYER_ID = "test-player-api"
HEADERS = {"X-Player-Id": PLAYER_ID}


def engine_for(player_id: str = PLAYER_ID):
    return app.state.registry.engines[player_id]


class TestHealthAndConfig:

    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_config(self, client: TestClient):
        data = client.get("/config").json()
        assert data["protocolVersion"] == "1.0"
        assert data["currency"] == "KSh"
        assert len(data["segments"]) == 10
        assert data["betWindowSeconds"] == 5
        assert data["badgeThreshold"] == 5
        assert len(data["configHash"]) == 16


class TestMissingPlayerId:

    def test_state_without_player_id_returns_400(self, client: TestClient):
        response = client.get("/state")
        assert response.status_code == 400
        data = response.json()
        assert data["protocolVersion"] == "1.0"
        assert data["error"]["code"] == "INVALID_REQUEST"
        assert data["error"]["recoverable"] is False

    def test_bet_with_empty_player_id_returns_400(self, client: TestClient):
        response = client.post("/bet", json={"stake": 10}, headers={"X-Player-Id": ""})
        assert response.status_code == 400


class TestState:

    def test_new_player_state(self, client: TestClient):
        data = client.get("/state", headers=HEADERS).json()
        assert data["wallet"]["balance"] == 20000
        assert data["wallet"]["freeSpins"] == 1
        assert data["round"]["phase"] == "BETTING_OPEN"
        assert data["round"]["roundNumber"] == 1
        assert data["history"] == []

    def test_players_are_isolated(self, client: TestClient):
        client.post("/bet", json={"stake": 100}, headers=HEADERS)
        other = client.get("/state", headers={"X-Player-Id": "someone-else"}).json()
        assert other["wallet"]["balance"] == 20000
        assert other["round"]["pendingBet"] is None


class TestBet:

    def test_cash_bet(self, client: TestClient):
        response = client.post("/bet", json={"stake": 100}, headers=HEADERS)
        assert response.status_code == 200
        data = response.json()
        assert data["bet"]["stake"] == 100
        assert data["wallet"]["balance"] == 19900

        state = client.get("/state", headers=HEADERS).json()
        assert state["round"]["pendingBet"]["betId"] == data["bet"]["betId"]

    def test_duplicate_bet_409(self, client: TestClient):
        client.post("/bet", json={"stake": 100}, headers=HEADERS)
        response = client.post("/bet", json={"stake": 100}, headers=HEADERS)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_BET"
        assert client.get("/state", headers=HEADERS).json()["wallet"]["balance"] == 19900

    def test_invalid_stake_400(self, client: TestClient):
        for body in ({"stake": "abc"}, {}, {"stake": -5}, {"stake": 0}):
            response = client.post("/bet", json=body, headers=HEADERS)
            assert response.status_code == 400, body
            assert response.json()["error"]["code"] == "INVALID_STAKE"

    def test_insufficient_funds_402(self, client: TestClient):
        response = client.post("/bet", json={"stake": 50000}, headers=HEADERS)
        assert response.status_code == 402
        assert response.json()["error"]["code"] == "INSUFFICIENT_FUNDS"

    def test_free_spin_bet(self, client: TestClient):
        response = client.post("/bet", json={"useFreeSpin": True}, headers=HEADERS)
        assert response.status_code == 200
        assert response.json()["wallet"]["freeSpins"] == 0

    def test_no_free_spins_409(self, client: TestClient):
        client.get("/state", headers=HEADERS)
        engine_for().ledger.wallet.free_spins = 0
        response = client.post("/bet", json={"useFreeSpin": True}, headers=HEADERS)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "NO_FREE_SPINS"

    def test_betting_closed_409(self, client: TestClient):
        client.get("/state", headers=HEADERS)
        engine = engine_for()
        for _ in range(engine.state.countdown_seconds):
            engine.on_timer()
        assert engine.phase != RoundPhase.BETTING_OPEN

        response = client.post("/bet", json={"stake": 10}, headers=HEADERS)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "BETTING_CLOSED"
        assert response.json()["error"]["recoverable"] is True

    def test_resolved_round_shows_in_history(self, client: TestClient):
        client.post("/bet", json={"stake": 100}, headers=HEADERS)
        engine = engine_for()
        for _ in range(engine.state.countdown_seconds + engine.timing.spin):
            engine.on_timer()

        data = client.get("/state", headers=HEADERS).json()
        assert len(data["history"]) == 1
        assert data["history"][0]["stake"] == 100
        assert data["lastMessage"] != ""
        assert len(data["feed"]) == 1


class TestToggles:

    def test_auto_play_toggle(self, client: TestClient):
        response = client.post("/auto-play", json={"enabled": True}, headers=HEADERS)
        assert response.json() == {"autoPlayEnabled": True, "attemptsUsed": 0}
        response = client.post("/auto-play", json={}, headers=HEADERS)
        assert response.json()["autoPlayEnabled"] is False

    def test_sound_toggle(self, client: TestClient):
        assert client.post("/sound", json={}, headers=HEADERS).json() == {"soundEnabled": True}
        state = client.get("/state", headers=HEADERS).json()
        assert state["wallet"]["soundEnabled"] is True

    def test_stake(self, client: TestClient):
        assert client.post("/stake", json={"stake": 25}, headers=HEADERS).json() == {"stake": 25}
        response = client.post("/stake", json={"stake": "x"}, headers=HEADERS)
        assert response.status_code == 400


class TestEvents:

    def test_events_since(self, client: TestClient):
        data = client.get("/events", headers=HEADERS).json()
        assert data["events"][0]["type"] == "countdown"
        last = data["events"][-1]["seq"]

        engine_for().on_timer()
        newer = client.get(f"/events?since={last}", headers=HEADERS).json()["events"]
        assert [e["type"] for e in newer] == ["countdown"]
        assert newer[0]["seconds"] == 4


class TestWalletTransaction:

    def test_confirmed_balance_adopted(self, client: TestClient, account_requests):
        response = client.post(
            "/wallet/transaction",
            json={"username": "alice", "type": "deposit", "amount": 50},
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["balance"] == 150
        assert account_requests[0].url.path == "/api/transaction"

    def test_remote_failure_leaves_wallet_untouched(self, client: TestClient):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"success": False, "message": "Insufficient balance"})

        app.state.account_client = AccountClient(
            base_url="http://accounts.test", transport=httpx.MockTransport(handler)
        )
        response = client.post(
            "/wallet/transaction",
            json={"username": "alice", "type": "withdraw", "amount": 50},
            headers=HEADERS,
        )
        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "REMOTE_SERVICE_ERROR"
        assert error["message"] == "Insufficient balance"
        assert client.get("/state", headers=HEADERS).json()["wallet"]["balance"] == 20000

    def test_non_positive_amount_rejected(self, client: TestClient, account_requests):
        response = client.post(
            "/wallet/transaction",
            json={"username": "alice", "type": "deposit", "amount": 0},
            headers=HEADERS,
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_REQUEST"
        assert account_requests == []

    def test_refused_while_bet_pending(self, client: TestClient, account_requests):
        client.post("/bet", json={"stake": 100}, headers=HEADERS)
        response = client.post(
            "/wallet/transaction",
            json={"username": "alice", "type": "deposit", "amount": 50},
            headers=HEADERS,
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "BETTING_CLOSED"
        assert account_requests == []
        assert client.get("/state", headers=HEADERS).json()["wallet"]["balance"] == 19900
