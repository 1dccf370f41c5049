"""Webhook ingestion: gate, normalize, persist.

``IngestionCoordinator.handle`` runs one delivery through::

    UNVERIFIED -> VERIFIED -> VEHICLE_ENSURED -> EVENT_PERSISTED
        -> SIGNALS_COMPLETE | SIGNALS_PARTIAL -> DONE

Rejections raise a ``WebhookError`` subclass before anything is written.
Once the event row is committed the delivery counts as stored, whatever
happens to its signal rows.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from .errors import AuthError, ConfigError, PersistenceError
from .normalize import (
    NormalizedEvent,
    SignalEntry,
    classify_payload,
    extract_challenge,
    is_handshake,
    normalize_payload,
    parse_body,
)
from .store import EventStore
from .verify_signature import sign_challenge, verify_signature

logger = logging.getLogger(__name__)


class IngestState(enum.Enum):
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    VEHICLE_ENSURED = "vehicle_ensured"
    EVENT_PERSISTED = "event_persisted"
    SIGNALS_PARTIAL = "signals_partial"
    SIGNALS_COMPLETE = "signals_complete"
    DONE = "done"


@dataclass(frozen=True)
class SignalTally:
    succeeded: int = 0
    failed: int = 0
    reasons: tuple = ()

    def record(self, entry: SignalEntry, error: Optional[Exception] = None) -> "SignalTally":
        if error is None:
            return SignalTally(self.succeeded + 1, self.failed, self.reasons)
        return SignalTally(self.succeeded, self.failed + 1, self.reasons + (f"{entry.path}: {error}",))


@dataclass(frozen=True)
class ChallengeResponse:
    challenge: str

    def to_dict(self) -> dict:
        return {"challenge": self.challenge}


@dataclass
class IngestResult:
    event_id: uuid.UUID
    tally: SignalTally
    skipped: int = 0
    state: IngestState = IngestState.SIGNALS_COMPLETE
    history: List[IngestState] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "id": str(self.event_id),
            "status": "stored",
            "signals": {
                "succeeded": self.tally.succeeded,
                "failed": self.tally.failed,
                "skipped": self.skipped,
            },
        }


class IngestionCoordinator:
    def __init__(self, store: EventStore, secret: Optional[str]):
        self.store = store
        self.secret = secret

    def handle(self, body: bytes, signature: Optional[str]) -> Union[ChallengeResponse, IngestResult]:
        if not self.secret:
            logger.error("Webhook secret not configured")
            raise ConfigError("webhook secret not configured")

        payload = parse_body(body)

        if is_handshake(payload):
            # the handshake is unsigned; answer it before the signature gate
            logger.info("Answering VERIFY handshake")
            return ChallengeResponse(sign_challenge(self.secret, extract_challenge(payload)))

        history = [IngestState.UNVERIFIED]
        if not verify_signature(self.secret, body, signature):
            logger.warning("Invalid signature (present=%s, body=%d bytes)", bool(signature), len(body))
            raise AuthError("invalid signature")
        history.append(IngestState.VERIFIED)

        kind = classify_payload(payload)
        event = normalize_payload(payload, kind, received_at=datetime.now(timezone.utc))
        logger.info(
            "Received %s event %s for vehicle %s (%d signals, %d skipped)",
            kind.value, event.event_name, event.vehicle_id, len(event.signals), event.skipped,
        )

        self._ensure_vehicle(event)
        history.append(IngestState.VEHICLE_ENSURED)

        event_id = self.store.insert_event(
            vehicle_id=event.vehicle_id,
            event_name=event.event_name,
            event_timestamp=event.event_timestamp,
            raw_payload=event.raw_payload,
        )
        history.append(IngestState.EVENT_PERSISTED)
        logger.info("Stored webhook event %s", event_id)

        tally = self.insert_signals(event_id, event.vehicle_id, event.signals)
        signals_state = IngestState.SIGNALS_PARTIAL if tally.failed else IngestState.SIGNALS_COMPLETE
        if tally.failed:
            logger.warning("Event %s: %d of %d signals failed to store", event_id, tally.failed, len(event.signals))

        history += [signals_state, IngestState.DONE]
        return IngestResult(event_id=event_id, tally=tally, skipped=event.skipped, state=signals_state, history=history)

    def insert_signals(self, event_id: uuid.UUID, vehicle_id: str, entries: Iterable[SignalEntry]) -> SignalTally:
        tally = SignalTally()
        for entry in entries:
            try:
                self.store.insert_signal(event_id, vehicle_id, entry)
            except PersistenceError as e:
                logger.exception("Failed to store signal %s for event %s", entry.path, event_id)
                tally = tally.record(entry, e.__cause__ or e)
            else:
                tally = tally.record(entry)
        return tally

    def _ensure_vehicle(self, event: NormalizedEvent) -> None:
        try:
            if self.store.ensure_vehicle(event.vehicle):
                logger.info("Created vehicle %s", event.vehicle_id)
        except PersistenceError:
            # the event row does not depend on vehicle metadata
            logger.exception("Vehicle upsert failed for %s; continuing", event.vehicle_id)
