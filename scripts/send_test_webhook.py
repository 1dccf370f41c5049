import argparse
import json
import os
from datetime import datetime, timezone

import requests
from dotenv import load_dotenv

from vehicle_webhook.verify_signature import hmac_hex

# Load .env variables
load_dotenv()

# Get secret from .env
SECRET = os.getenv("WEBHOOK_SECRET")


def native_payload(vehicle_id: str) -> dict:
    return {
        "eventType": "VEHICLE_STATE",
        "data": {
            "vehicle": {"id": vehicle_id, "make": "Tesla", "model": "Model 3", "year": 2020},
            "signals": [
                {"code": "charge-amperage", "name": "Amperage", "group": "Charge", "body": {"value": 33}},
                {"code": "charge-ischarging", "name": "IsCharging", "group": "Charge", "body": {"value": True}},
                {"code": "tractionbattery-stateofcharge", "name": "StateOfCharge", "group": "TractionBattery",
                 "body": {"value": 78, "unit": "%"}},
                {"code": "malformed-signal", "group": "Test"},
            ],
        },
        "meta": {"deliveredAt": datetime.now(timezone.utc).isoformat(), "mode": "TEST"},
    }


def legacy_payload(vehicle_id: str) -> dict:
    return {
        "eventName": "STATE",
        "vehicleId": vehicle_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": {"battery": {"value": 80, "unit": "%"}, "odometer": {"value": 12034.5, "unit": "km"}},
    }


def main():
    parser = argparse.ArgumentParser(description="Send a signed test webhook")
    parser.add_argument("--url", default="http://127.0.0.1:5000/webhook")
    parser.add_argument("--vehicle", default="test-vehicle")
    parser.add_argument("--shape", choices=("native", "legacy"), default="native")
    parser.add_argument("--verify", action="store_true", help="send a VERIFY handshake instead")
    args = parser.parse_args()

    if not SECRET:
        raise SystemExit("WEBHOOK_SECRET is not set")

    headers = {"Content-Type": "application/json"}
    if args.verify:
        payload = {"eventType": "VERIFY", "data": {"challenge": "test-challenge"}}
        print("Expected challenge:", hmac_hex(SECRET, "test-challenge"))
    else:
        payload = native_payload(args.vehicle) if args.shape == "native" else legacy_payload(args.vehicle)

    # Convert payload to JSON bytes; the signature covers exactly these bytes
    data = json.dumps(payload).encode("utf-8")
    if not args.verify:
        headers["SC-Signature"] = hmac_hex(SECRET, data)

    resp = requests.post(args.url, headers=headers, data=data, timeout=10)

    print("Status:", resp.status_code)
    print("Response:", resp.json())


if __name__ == "__main__":
    main()
