# vehicle_webhook/store.py
from __future__ import annotations
import logging
import os
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import create_engine, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .errors import PersistenceError
from .extensions import db
from .models import Signal, Vehicle, WebhookEvent
from .normalize import SignalEntry, VehicleInfo

logger = logging.getLogger(__name__)


def init_db(database_url: str | None):
    """Engine and session factory outside Flask (scripts, tests)."""
    db_url = database_url or "sqlite:///vehicle_webhook.sqlite"
    if db_url.startswith("sqlite:///") and not db_url.startswith("sqlite:////"):
        directory = os.path.dirname(db_url[len("sqlite:///"):])
        if directory:
            os.makedirs(directory, exist_ok=True)

    engine = create_engine(db_url, echo=False)
    db.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return engine, SessionLocal


class EventStore:
    """
    Vehicles, webhook events and signals on top of one SQLAlchemy session.

    Every write commits on success and rolls back before raising
    ``PersistenceError``, so a failed write never poisons later ones.
    """

    def __init__(self, session: Session):
        self.session = session

    def ensure_vehicle(self, vehicle: VehicleInfo) -> bool:
        """Insert the vehicle unless it already exists. Returns True when a row was created."""
        values = {"id": vehicle.id, "make": vehicle.make, "model": vehicle.model, "year": vehicle.year}
        try:
            stmt = self._insert_ignore(Vehicle, values)
            if stmt is not None:
                created = self.session.execute(stmt).rowcount == 1
                self.session.commit()
                return created
            return self._insert_or_skip(Vehicle, values)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError("vehicle upsert failed", details={"vehicleId": vehicle.id}) from e

    def insert_event(
        self,
        vehicle_id: str,
        event_name: str,
        event_timestamp: datetime,
        raw_payload: Dict[str, Any],
    ) -> uuid.UUID:
        event = WebhookEvent(
            vehicle_id=vehicle_id,
            event_name=event_name,
            event_timestamp=event_timestamp,
            signature_valid=True,
            raw_payload=raw_payload,
        )
        try:
            self.session.add(event)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError("failed to store webhook event") from e
        return event.id

    def insert_signal(self, event_id: uuid.UUID, vehicle_id: str, entry: SignalEntry) -> uuid.UUID:
        row = Signal(
            webhook_event_id=event_id,
            vehicle_id=vehicle_id,
            signal_path=entry.path,
            value=entry.value,
            unit=entry.unit,
        )
        try:
            self.session.add(row)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError("failed to store signal", details={"signalPath": entry.path}) from e
        return row.id

    def list_events(
        self,
        vehicle_id: Optional[str] = None,
        event_name: Optional[str] = None,
        limit: int = 50,
    ) -> List[WebhookEvent]:
        stmt = select(WebhookEvent)
        if vehicle_id:
            stmt = stmt.where(WebhookEvent.vehicle_id == vehicle_id)
        if event_name:
            stmt = stmt.where(WebhookEvent.event_name == event_name)
        stmt = stmt.order_by(WebhookEvent.received_at.desc()).limit(limit)
        return list(self.session.scalars(stmt))

    def list_signals(self, vehicle_id: str, signal_path: str, limit: int = 200) -> List[Signal]:
        stmt = (
            select(Signal)
            .where(Signal.vehicle_id == vehicle_id, Signal.signal_path == signal_path)
            .order_by(Signal.recorded_at.asc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    def _insert_ignore(self, model, values: Dict[str, Any]):
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return postgresql.insert(model).values(**values).on_conflict_do_nothing(index_elements=["id"])
        if dialect == "sqlite":
            return sqlite.insert(model).values(**values).on_conflict_do_nothing(index_elements=["id"])
        return None

    def _insert_or_skip(self, model, values: Dict[str, Any]) -> bool:
        # dialects without ON CONFLICT: a duplicate key just means another request won
        try:
            self.session.execute(insert(model).values(**values))
            self.session.commit()
            return True
        except IntegrityError:
            self.session.rollback()
            return False
