from fastapi.testclient import TestClient

from mission.main import create_app
from mission.store.memory_repo import MemoryRepo


class BrokenRepo(MemoryRepo):
    async def list_room_summaries(self):
        raise RuntimeError("store down")

    async def put_room_summary(self, summary):
        raise RuntimeError("store down")


def _client(repo=None):
    return TestClient(create_app(repo=repo if repo is not None else MemoryRepo()))


def test_register_then_list_sorted():
    client = _client()
    client.post("/rooms", json={"roomCode": "OLD111", "orgName": "a", "createdAt": 1})
    client.post("/rooms", json={"roomCode": "NEW222", "orgName": "b", "createdAt": 3})
    client.post("/rooms", json={"roomCode": "END333", "orgName": "c", "createdAt": 9, "isEnded": True})

    res = client.get("/rooms")
    assert res.status_code == 200
    assert res.headers["access-control-allow-origin"] == "*"
    codes = [r["roomCode"] for r in res.json()["rooms"]]
    assert codes == ["NEW222", "OLD111", "END333"]


def test_register_returns_created_room():
    client = _client()
    res = client.post("/rooms", json={"roomCode": "ABC123", "orgName": "IMF", "createdAt": 5})
    assert res.status_code == 201
    body = res.json()
    assert body["success"] is True
    assert body["room"] == {"roomCode": "ABC123", "orgName": "IMF", "createdAt": 5, "isEnded": False}


def test_register_requires_code_and_org():
    client = _client()
    assert client.post("/rooms", json={"orgName": "IMF"}).status_code == 400
    assert client.post("/rooms", json={"roomCode": "ABC123"}).status_code == 400
    assert client.post("/rooms", json=["not", "a", "dict"]).status_code == 400
    res = client.post("/rooms", content=b"{nope", headers={"content-type": "application/json"})
    assert res.status_code == 400


def test_unregister():
    client = _client()
    client.post("/rooms", json={"roomCode": "ABC123", "orgName": "IMF"})

    res = client.delete("/rooms", params={"code": "ABC123"})
    assert res.status_code == 200
    assert res.json() == {"success": True}
    assert client.get("/rooms").json()["rooms"] == []

    assert client.delete("/rooms").status_code == 400


def test_room_codes_are_upper_cased():
    client = _client()
    res = client.post("/rooms", json={"roomCode": " abc123 ", "orgName": "IMF"})
    assert res.status_code == 201
    assert res.json()["room"]["roomCode"] == "ABC123"
    assert client.post("/rooms", json={"roomCode": "   ", "orgName": "IMF"}).status_code == 400

    assert client.delete("/rooms", params={"code": "abc123"}).status_code == 200
    assert client.get("/rooms").json()["rooms"] == []
    assert client.delete("/rooms", params={"code": "  "}).status_code == 400


def test_preflight_has_no_body():
    client = _client()
    res = client.options("/rooms")
    assert res.status_code == 200
    assert res.content == b""


def test_registry_disabled_degrades_to_empty_list(monkeypatch):
    monkeypatch.setenv("REGISTRY_ENABLED", "false")
    client = _client()
    res = client.get("/rooms")
    assert res.status_code == 200
    body = res.json()
    assert body["rooms"] == []
    assert body["error"] == "Registry not configured"


def test_store_failure_degrades_to_empty_list():
    client = _client(BrokenRepo())
    res = client.get("/rooms")
    assert res.status_code == 200
    assert res.json() == {"error": "Internal server error", "rooms": []}


def test_health_reports_injected_store():
    client = _client()
    assert client.get("/health").json() == {"ok": True, "store": "MemoryRepo"}
