import json

import pytest
from sqlalchemy import func, select

from vehicle_webhook import create_app
from vehicle_webhook.extensions import db
from vehicle_webhook.models import Signal, Vehicle, WebhookEvent
from vehicle_webhook.store import EventStore, init_db
from vehicle_webhook.verify_signature import hmac_hex

SECRET = "test-secret"


def row_counts(session):
    """(vehicles, events, signals) row counts."""
    return tuple(
        session.scalar(select(func.count()).select_from(model))
        for model in (Vehicle, WebhookEvent, Signal)
    )


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'app.sqlite'}",
        "WEBHOOK_SECRET": SECRET,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_store(app):
    with app.app_context():
        yield EventStore(db.session)


@pytest.fixture
def session_factory(tmp_path):
    engine, SessionLocal = init_db(f"sqlite:///{tmp_path / 'store.sqlite'}")
    yield SessionLocal
    engine.dispose()


@pytest.fixture
def store(session_factory):
    with session_factory() as session:
        yield EventStore(session)


def signed_post(client, payload, secret=SECRET):
    body = json.dumps(payload).encode("utf-8")
    return client.post(
        "/webhook",
        data=body,
        headers={"SC-Signature": hmac_hex(secret, body), "Content-Type": "application/json"},
    )


@pytest.fixture
def native_payload():
    return {
        "eventId": "8a79f1a0-c034-4e44-a8b7-eecb8d123908",
        "eventType": "VEHICLE_STATE",
        "data": {
            "user": {"id": "ad665721-94b2-488f-807c-2a6ee5a9891e"},
            "vehicle": {"id": "veh-1", "make": "Tesla", "model": "Model 3", "year": 2020},
            "signals": [
                {"code": "charge-amperage", "name": "Amperage", "group": "Charge", "body": {"value": 33}},
                {"code": "charge-ischarging", "name": "IsCharging", "group": "Charge", "body": {"value": True}},
                {"code": "tractionbattery-stateofcharge", "name": "StateOfCharge", "group": "TractionBattery",
                 "body": {"value": 78, "unit": "%"}},
                None,
                {"code": "malformed-signal", "group": "Test"},
            ],
        },
        "meta": {"deliveredAt": "2025-10-17T01:38:11.694Z", "mode": "TEST"},
    }
