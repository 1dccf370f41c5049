# vehicle_webhook/app.py
import logging
from flask import Blueprint, current_app, request, jsonify

from .errors import WebhookError
from .extensions import db
from .ingest import IngestionCoordinator
from .store import EventStore

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__)


def _limit(default_key: str, max_key: str) -> int:
    default = current_app.config[default_key]
    limit = request.args.get("limit", default=default, type=int)
    if limit <= 0:
        limit = default
    return min(limit, current_app.config[max_key])


@bp.route("/", methods=["GET"])
def health():
    return jsonify({"status": "ok"}), 200


@bp.route("/webhook", methods=["POST"])
def webhook():
    body = request.get_data()
    sig_header = request.headers.get(current_app.config["WEBHOOK_SIGNATURE_HEADER"])

    coordinator = IngestionCoordinator(EventStore(db.session), current_app.config.get("WEBHOOK_SECRET"))
    try:
        result = coordinator.handle(body, sig_header)
    except WebhookError as e:
        if e.status_code >= 500:
            logger.error("Webhook rejected with %s: %s", e.status_code, e.message)
        else:
            logger.warning("Webhook rejected with %s: %s", e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code

    return jsonify(result.to_dict()), 200


@bp.route("/events", methods=["GET"])
def list_events():
    rows = EventStore(db.session).list_events(
        vehicle_id=request.args.get("vehicleId"),
        event_name=request.args.get("eventName"),
        limit=_limit("EVENTS_DEFAULT_LIMIT", "EVENTS_MAX_LIMIT"),
    )
    return jsonify([row.to_dict() for row in rows]), 200


@bp.route("/signals", methods=["GET"])
def list_signals():
    vehicle_id = request.args.get("vehicleId")
    signal_path = request.args.get("signalPath")
    if not vehicle_id or not signal_path:
        return jsonify({"error": "vehicleId and signalPath are required"}), 400

    rows = EventStore(db.session).list_signals(
        vehicle_id,
        signal_path,
        limit=_limit("SIGNALS_DEFAULT_LIMIT", "SIGNALS_MAX_LIMIT"),
    )
    return jsonify([row.to_dict() for row in rows]), 200


if __name__ == "__main__":
    from . import create_app

    create_app().run(host="0.0.0.0", port=5000)
