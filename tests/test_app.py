import json
import uuid

from vehicle_webhook.models import Vehicle
from vehicle_webhook.verify_signature import hmac_hex

from conftest import SECRET, row_counts, signed_post

LEGACY_STATE = {
    "eventName": "STATE",
    "vehicleId": "v1",
    "timestamp": "2024-01-01T00:00:00Z",
    "data": {"battery": {"value": 80, "unit": "%"}},
}


def test_health(client):
    resp = client.get("/")

    assert resp.status_code == 200
    assert resp.get_json() == {"status": "ok"}


def test_legacy_event_end_to_end(client):
    resp = signed_post(client, LEGACY_STATE)

    assert resp.status_code == 200
    data = resp.get_json()
    assert data["ok"] is True
    assert uuid.UUID(data["id"])
    assert data["status"] == "stored"
    assert data["signals"] == {"succeeded": 1, "failed": 0, "skipped": 0}

    resp = client.get("/signals?vehicleId=v1&signalPath=battery.value")
    rows = resp.get_json()
    assert resp.status_code == 200
    assert len(rows) == 1
    assert rows[0]["value"] == "80"
    assert rows[0]["unit"] == "%"
    assert rows[0]["webhookEventId"] == data["id"]


def test_native_event_end_to_end(client, native_payload, app_store):
    resp = signed_post(client, native_payload)

    assert resp.status_code == 200
    assert resp.get_json()["signals"] == {"succeeded": 3, "failed": 0, "skipped": 2}

    rows = client.get("/signals?vehicleId=veh-1&signalPath=charge.amperage").get_json()
    assert [r["value"] for r in rows] == ["33"]

    events = client.get("/events?vehicleId=veh-1").get_json()
    assert len(events) == 1
    assert events[0]["eventName"] == "VEHICLE_STATE"
    assert events[0]["signatureValid"] is True
    assert events[0]["rawPayload"] == native_payload

    assert app_store.session.get(Vehicle, "veh-1").model == "Model 3"


def test_handshake_writes_nothing(client, app_store):
    resp = client.post("/webhook", data=json.dumps({"eventType": "VERIFY", "data": {"challenge": "abc"}}))

    assert resp.status_code == 200
    assert resp.get_json() == {"challenge": hmac_hex(SECRET, "abc")}
    assert row_counts(app_store.session) == (0, 0, 0)


def test_handshake_missing_challenge(client):
    resp = client.post("/webhook", data=json.dumps({"eventType": "VERIFY", "data": {}}))

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "missing challenge"


def test_invalid_signature(client, app_store):
    body = json.dumps(LEGACY_STATE).encode()
    resp = client.post("/webhook", data=body, headers={"SC-Signature": "deadbeef"})

    assert resp.status_code == 401
    assert resp.get_json() == {"ok": False, "error": "invalid signature"}
    assert row_counts(app_store.session) == (0, 0, 0)


def test_missing_signature_header(client):
    resp = client.post("/webhook", data=json.dumps(LEGACY_STATE))

    assert resp.status_code == 401


def test_invalid_json(client):
    resp = client.post("/webhook", data=b"{oops", headers={"SC-Signature": hmac_hex(SECRET, b"{oops")})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid json"


def test_missing_fields(client, app_store):
    resp = signed_post(client, {"eventName": "STATE", "vehicleId": "v1"})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "missing fields"
    assert row_counts(app_store.session) == (0, 0, 0)


def test_secret_not_configured(app, client):
    app.config["WEBHOOK_SECRET"] = ""

    resp = client.post("/webhook", data=json.dumps(LEGACY_STATE))

    assert resp.status_code == 500
    assert resp.get_json()["ok"] is False


def test_events_filters_and_limit(client):
    signed_post(client, LEGACY_STATE)
    signed_post(client, {**LEGACY_STATE, "eventName": "CHARGE"})
    signed_post(client, {**LEGACY_STATE, "vehicleId": "v2"})

    assert len(client.get("/events").get_json()) == 3
    assert [e["eventName"] for e in client.get("/events?vehicleId=v1").get_json()] == ["CHARGE", "STATE"]
    assert len(client.get("/events?vehicleId=v1&eventName=STATE").get_json()) == 1
    assert len(client.get("/events?limit=1").get_json()) == 1
    assert len(client.get("/events?limit=abc").get_json()) == 3


def test_events_limit_is_capped(app, client):
    app.config["EVENTS_MAX_LIMIT"] = 2
    for _ in range(3):
        signed_post(client, LEGACY_STATE)

    assert len(client.get("/events?limit=500").get_json()) == 2


def test_signals_require_vehicle_and_path(client):
    assert client.get("/signals?vehicleId=v1").status_code == 400
    assert client.get("/signals?signalPath=battery.value").status_code == 400


def test_signals_oldest_first(client):
    signed_post(client, LEGACY_STATE)
    signed_post(client, {**LEGACY_STATE, "data": {"battery": {"value": 79, "unit": "%"}}})

    rows = client.get("/signals?vehicleId=v1&signalPath=battery.value").get_json()
    assert [r["value"] for r in rows] == ["80", "79"]


def test_unknown_shape_with_bad_signature_is_unauthorized(client):
    resp = client.post("/webhook", data=json.dumps({"foo": "bar"}), headers={"SC-Signature": "deadbeef"})

    assert resp.status_code == 401
    assert resp.get_json() == {"ok": False, "error": "invalid signature"}


def test_non_finite_numbers_are_invalid_json(client, app_store):
    body = b'{"eventName":"STATE","vehicleId":"v1","timestamp":"2024-01-01T00:00:00Z","data":{"x":NaN}}'
    resp = client.post("/webhook", data=body, headers={"SC-Signature": hmac_hex(SECRET, body)})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid json"
    assert row_counts(app_store.session) == (0, 0, 0)


def test_deeply_nested_body_is_invalid_json(client):
    resp = client.post("/webhook", data=b"[" * 200000)

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "invalid json"
