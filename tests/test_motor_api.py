import pytest

from app import create_app
from app.domain.exceptions import RepositoryError
from app.domain.motor import MotorSnapshot
from app.services.supervisor import ProcessSupervisor


@pytest.fixture()
def supervisor(test_config):
    sup = ProcessSupervisor.build(test_config)
    sup.database.init_db()
    yield sup
    sup.database.close_db()


@pytest.fixture()
def client(supervisor):
    app = create_app(supervisor, {"TESTING": True})
    return app.test_client()


def test_get_state(client, supervisor):
    supervisor.motor.apply_percent_change(10.0)

    resp = client.get("/api/motor/state")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["ok"] is True
    assert body["data"]["set_point"] == pytest.approx(110.0)
    assert body["data"]["motor_temp"] == 40.0


def test_submit_command_goes_to_command_log(client, supervisor):
    resp = client.post("/api/motor/commands", json={"client_id": "dash", "percent_change": -20})

    assert resp.status_code == 201
    command_id = resp.get_json()["data"]["id"]
    cmd = supervisor.command_log.get(command_id)
    assert cmd.issued_via == "http"
    assert cmd.percent_change == -20.0
    # the arbitrator, not the API, changes the setpoint
    assert supervisor.motor.set_point == 100.0


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"client_id": "dash"},
        {"client_id": "two words", "percent_change": 1},
        {"client_id": "", "percent_change": 1},
        {"client_id": "dash", "percent_change": "lots"},
    ],
)
def test_submit_command_validation(client, supervisor, payload):
    resp = client.post("/api/motor/commands", json=payload)

    assert resp.status_code == 400
    assert resp.get_json()["ok"] is False
    assert resp.get_json()["error"]["errors"]
    assert supervisor.command_log.statistics()["total"] == 0


def test_list_commands_pending_filter(client, supervisor, submitted_at):
    done = supervisor.command_log.insert("a", 1.0, "network")
    pending = supervisor.command_log.insert("b", 2.0, "network")
    supervisor.command_log.mark_processed(done, "controller", submitted_at(0))

    all_cmds = client.get("/api/motor/commands").get_json()["data"]
    pending_cmds = client.get("/api/motor/commands?pending=true").get_json()["data"]

    assert [c["id"] for c in all_cmds["commands"]] == [pending, done]
    assert [c["id"] for c in pending_cmds["commands"]] == [pending]
    assert all_cmds["totals"] == {"total": 2, "pending": 1}


def test_list_commands_rejects_bad_limit(client):
    assert client.get("/api/motor/commands?limit=0").status_code == 400


def test_list_telemetry(client, supervisor):
    supervisor.telemetry.append(MotorSnapshot(99.0, 99.0, 5.0, 100.0, 20.05))

    body = client.get("/api/motor/telemetry?limit=5").get_json()

    assert body["data"]["count"] == 1
    assert body["data"]["samples"][0]["motor_speed"] == 5.0


def test_store_failure_is_reported_without_internals(client, supervisor, monkeypatch):
    def broken(*args, **kwargs):
        raise RepositoryError("disk I/O error at /secret/path")

    monkeypatch.setattr(supervisor.database, "get_recent_commands", broken)

    resp = client.get("/api/motor/commands")

    assert resp.status_code == 500
    assert "/secret/path" not in resp.get_data(as_text=True)


def test_unknown_api_route_is_json_404(client):
    resp = client.get("/api/motor/nope")

    assert resp.status_code == 404
    assert resp.get_json()["ok"] is False


def test_status_lists_units(client):
    body = client.get("/status").get_json()

    assert body["status"] == "ok"
    assert set(body["units"]) == {"SimulationLoop", "CommandArbitrator", "IngressListener"}


def test_submit_command_validator_error_is_json(client):
    resp = client.post("/api/motor/commands", json={"client_id": "two words", "percent_change": 1})

    assert resp.status_code == 400
    [error] = resp.get_json()["error"]["errors"]
    assert error["loc"] == ["client_id"]
    assert "single non-empty token" in error["msg"]
    assert "ctx" not in error


def test_submit_command_rejects_non_object_body(client, supervisor):
    resp = client.post("/api/motor/commands", json=[1, 2])

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Request body must be a JSON object"
    assert supervisor.command_log.statistics()["total"] == 0


def test_get_command_by_id(client, supervisor):
    command_id = supervisor.command_log.insert("alice", 5.0, "network")

    body = client.get(f"/api/motor/commands/{command_id}").get_json()

    assert body["data"]["client_id"] == "alice"
    assert body["data"]["processed"] is False


def test_get_missing_command_is_404(client):
    resp = client.get("/api/motor/commands/999")

    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Command 999 not found"


def test_list_telemetry_rejects_non_integer_limit(client):
    resp = client.get("/api/motor/telemetry?limit=lots")

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "limit must be an integer"


def test_json_keys_keep_insertion_order(supervisor):
    app = create_app(supervisor)

    assert app.json.sort_keys is False
