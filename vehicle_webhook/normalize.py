"""Payload normalization.

The provider delivers two payload shapes:

* native: ``{eventType, data: {vehicle: {id, make, model, year}, signals: [...]}, meta: {deliveredAt}}``
* legacy: ``{eventName, vehicleId, timestamp, data: {...nested attributes...}}``

``classify_payload`` decides the shape once; ``normalize_payload`` then maps it
onto a ``NormalizedEvent`` that the ingestion layer persists.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ParseError, ValidationError
from .flatten import flatten_data

logger = logging.getLogger(__name__)

HANDSHAKE_EVENT_TYPE = "VERIFY"


class PayloadKind(enum.Enum):
    HANDSHAKE = "handshake"
    NATIVE = "native"
    LEGACY = "legacy"


REQUIRED_FIELDS: Dict[PayloadKind, Tuple[str, ...]] = {
    PayloadKind.HANDSHAKE: ("eventType", "data.challenge"),
    PayloadKind.NATIVE: ("eventType", "data.vehicle.id"),
    PayloadKind.LEGACY: ("eventName", "vehicleId", "timestamp"),
}


@dataclass(frozen=True)
class SignalEntry:
    path: str
    value: Optional[str]
    unit: Optional[str] = None


@dataclass(frozen=True)
class VehicleInfo:
    id: str
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None


@dataclass
class NormalizedEvent:
    kind: PayloadKind
    event_name: str
    vehicle: VehicleInfo
    event_timestamp: datetime
    raw_payload: Dict[str, Any]
    signals: List[SignalEntry] = field(default_factory=list)
    skipped: int = 0

    @property
    def vehicle_id(self) -> str:
        return self.vehicle.id


def _reject_constant(name: str):
    raise ValueError(f"{name} is not valid JSON")


def parse_body(body: bytes) -> Dict[str, Any]:
    try:
        payload = json.loads(body.decode("utf-8"), parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise ParseError("invalid json", details={"details": str(e)}) from e
    if not isinstance(payload, dict):
        raise ParseError("invalid json", details={"details": "top-level value must be an object"})
    return payload


def is_handshake(payload: Mapping[str, Any]) -> bool:
    return payload.get("eventType") == HANDSHAKE_EVENT_TYPE


def classify_payload(payload: Mapping[str, Any]) -> PayloadKind:
    if "eventType" in payload:
        if is_handshake(payload):
            return PayloadKind.HANDSHAKE
        return PayloadKind.NATIVE
    if "eventName" in payload:
        return PayloadKind.LEGACY
    raise ValidationError(
        "missing fields",
        details={"required": [list(REQUIRED_FIELDS[PayloadKind.NATIVE]), list(REQUIRED_FIELDS[PayloadKind.LEGACY])]},
    )


def extract_challenge(payload: Mapping[str, Any]) -> str:
    challenge = _mapping(payload.get("data")).get("challenge")
    if not isinstance(challenge, str) or not challenge:
        raise ValidationError("missing challenge", details={"required": list(REQUIRED_FIELDS[PayloadKind.HANDSHAKE])})
    return challenge


def stringify_value(value: Any) -> Optional[str]:
    """Text form of a signal value: strings verbatim, everything else as JSON.

    Integral floats drop the fraction, so ``78.0`` is stored as ``"78"``.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def parse_timestamp(value: Any) -> datetime:
    """ISO-8601 string or epoch milliseconds to an aware UTC datetime."""
    if isinstance(value, bool):
        raise ValidationError("invalid timestamp", details={"timestamp": value})
    try:
        if isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        elif isinstance(value, str):
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        else:
            raise ValueError(f"unsupported timestamp type {type(value).__name__}")
    except (ValueError, OverflowError, OSError) as e:
        raise ValidationError("invalid timestamp", details={"timestamp": value}) from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def extract_signals(raw_signals: Any) -> Tuple[List[SignalEntry], int]:
    """
    Map a native ``data.signals`` array to signal entries.

    Returns ``(entries, skipped)``. A malformed element is skipped and counted;
    it never fails the whole event.
    """
    if not isinstance(raw_signals, list):
        return [], 0

    entries: List[SignalEntry] = []
    skipped = 0
    for raw in raw_signals:
        entry = _native_signal(raw)
        if entry is None:
            skipped += 1
            logger.debug("Skipping malformed signal: %r", raw)
            continue
        entries.append(entry)
    return entries, skipped


def normalize_payload(
    payload: Dict[str, Any],
    kind: Optional[PayloadKind] = None,
    received_at: Optional[datetime] = None,
) -> NormalizedEvent:
    kind = kind or classify_payload(payload)
    if kind is PayloadKind.NATIVE:
        return _normalize_native(payload, received_at or datetime.now(timezone.utc))
    if kind is PayloadKind.LEGACY:
        return _normalize_legacy(payload)
    raise ValidationError(f"{kind.value} payload carries no event")


def _normalize_native(payload: Dict[str, Any], received_at: datetime) -> NormalizedEvent:
    data = _mapping(payload.get("data"))
    vehicle = _mapping(data.get("vehicle"))
    event_type = _text(payload.get("eventType"))
    vehicle_id = _text(vehicle.get("id"))
    if not event_type or not vehicle_id:
        raise ValidationError(
            "missing fields",
            details={
                "required": list(REQUIRED_FIELDS[PayloadKind.NATIVE]),
                "received": {"eventType": event_type, "vehicleId": vehicle_id, "hasVehicle": bool(vehicle)},
            },
        )

    delivered_at = _mapping(payload.get("meta")).get("deliveredAt")
    event_timestamp = parse_timestamp(delivered_at) if delivered_at is not None else received_at

    signals, skipped = extract_signals(data.get("signals"))
    return NormalizedEvent(
        kind=PayloadKind.NATIVE,
        event_name=event_type,
        vehicle=VehicleInfo(
            id=vehicle_id,
            make=_text(vehicle.get("make")),
            model=_text(vehicle.get("model")),
            year=_year(vehicle.get("year")),
        ),
        event_timestamp=event_timestamp,
        raw_payload=payload,
        signals=signals,
        skipped=skipped,
    )


def _normalize_legacy(payload: Dict[str, Any]) -> NormalizedEvent:
    event_name = _text(payload.get("eventName"))
    vehicle_id = _text(payload.get("vehicleId"))
    timestamp = payload.get("timestamp")
    if not event_name or not vehicle_id or timestamp is None or timestamp == "":
        raise ValidationError(
            "missing fields",
            details={
                "required": list(REQUIRED_FIELDS[PayloadKind.LEGACY]),
                "received": {"eventName": event_name, "vehicleId": vehicle_id, "hasTimestamp": timestamp is not None},
            },
        )

    signals: List[SignalEntry] = []
    skipped = 0
    data = payload.get("data")
    if isinstance(data, Mapping):
        for flat in flatten_data(data):
            if not flat.path:
                skipped += 1
                continue
            signals.append(SignalEntry(flat.path, stringify_value(flat.value), flat.unit))

    return NormalizedEvent(
        kind=PayloadKind.LEGACY,
        event_name=event_name,
        vehicle=VehicleInfo(id=vehicle_id),
        event_timestamp=parse_timestamp(timestamp),
        raw_payload=payload,
        signals=signals,
        skipped=skipped,
    )


def _native_signal(raw: Any) -> Optional[SignalEntry]:
    if not isinstance(raw, Mapping):
        return None
    group, name = raw.get("group"), raw.get("name")
    if not isinstance(group, str) or not group or not isinstance(name, str) or not name:
        return None
    if "body" not in raw:
        return None

    body = raw["body"]
    value: Optional[str] = None
    unit: Optional[str] = None
    if isinstance(body, Mapping):
        inner = body.get("value")
        if isinstance(inner, (str, int, float, bool)):
            value = stringify_value(inner)
        elif isinstance(inner, (Mapping, list)):
            value = stringify_value(inner)
        elif "value" not in body and body:
            value = stringify_value(body)
        if isinstance(body.get("unit"), str):
            unit = body["unit"]

    return SignalEntry(f"{group.lower()}.{name.lower()}", value, unit)


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _text(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def _year(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
