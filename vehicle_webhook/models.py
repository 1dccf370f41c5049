# vehicle_webhook/models.py
from __future__ import annotations
import uuid
from datetime import datetime, timezone
from typing import Any, Optional
from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .extensions import db


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class Vehicle(db.Model):
    __tablename__ = "vehicles"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    make: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    year: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def __repr__(self):
        return f"<Vehicle id={self.id} make={self.make} model={self.model}>"


class WebhookEvent(db.Model):
    __tablename__ = "webhook_events"
    __table_args__ = (
        Index("ix_webhook_events_vehicle_event", "vehicle_id", "event_name"),
        Index("ix_webhook_events_received_at", "received_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    vehicle_id: Mapped[str] = mapped_column(String(128), ForeignKey("vehicles.id"), nullable=False)
    event_name: Mapped[str] = mapped_column(String(128), nullable=False)
    event_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
    signature_valid: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    raw_payload: Mapped[Any] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "vehicleId": self.vehicle_id,
            "eventName": self.event_name,
            "eventTimestamp": _iso(self.event_timestamp),
            "receivedAt": _iso(self.received_at),
            "signatureValid": self.signature_valid,
            "rawPayload": self.raw_payload,
        }

    def __repr__(self):
        return f"<WebhookEvent id={self.id} vehicle={self.vehicle_id} event={self.event_name}>"


class Signal(db.Model):
    __tablename__ = "signals"
    __table_args__ = (
        Index("ix_signals_vehicle_path_recorded", "vehicle_id", "signal_path", "recorded_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    webhook_event_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("webhook_events.id"), nullable=False)
    vehicle_id: Mapped[str] = mapped_column(String(128), nullable=False)
    signal_path: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": str(self.id),
            "webhookEventId": str(self.webhook_event_id),
            "vehicleId": self.vehicle_id,
            "signalPath": self.signal_path,
            "value": self.value,
            "unit": self.unit,
            "recordedAt": _iso(self.recorded_at),
        }

    def __repr__(self):
        return f"<Signal id={self.id} path={self.signal_path} value={self.value}>"
