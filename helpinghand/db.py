"""
Local relational store: SQLAlchemy tables plus one narrow access object per
record type. Every committed write invalidates its table so push-based
query streams re-run.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from contextlib import aclosing, contextmanager
from typing import AsyncIterator, Callable, Dict, Iterator, List, Optional, TypeVar

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    Integer,
    String,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from helpinghand.live import CallbackRegistry, Subscription, callback_stream
from shared.types import CleaningReminder, Contact, DoctorAppointment, ShoppingItem

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InvalidationTracker:
    """Per-table change notification for live queries."""

    def __init__(self):
        self._lock = threading.Lock()
        self._registries: Dict[str, CallbackRegistry[str]] = {}

    def _registry(self, table: str) -> CallbackRegistry[str]:
        with self._lock:
            registry = self._registries.get(table)
            if registry is None:
                registry = self._registries[table] = CallbackRegistry()
            return registry

    def subscribe(self, table: str, callback: Callable[[str], None]) -> Subscription:
        """Registers `callback` for `table` and fires it once immediately."""
        subscription = self._registry(table).add(callback)
        callback(table)
        return subscription

    def notify(self, table: str) -> None:
        self._registry(table).emit(table)

    def listener_count(self, table: str) -> int:
        return len(self._registry(table))


class _Dao:
    table: str = ""

    def __init__(self, session_factory: sessionmaker, tracker: InvalidationTracker):
        self.Session = session_factory
        self._tracker = tracker

    @contextmanager
    def _write(self) -> Iterator[Session]:
        with self.Session() as session:
            yield session
            session.commit()
        self._tracker.notify(self.table)

    async def _observe(self, query: Callable[[], T]) -> AsyncIterator[T]:
        async with aclosing(
            callback_stream(lambda callback: self._tracker.subscribe(self.table, callback))
        ) as invalidations:
            async for _ in invalidations:
                yield await asyncio.to_thread(query)


class ShoppingItemDao(_Dao):
    table = "shopping_items"

    def list_all(self) -> List[ShoppingItem]:
        with self.Session() as session:
            rows = session.execute(
                select(ShoppingItemRow).order_by(ShoppingItemRow.created_at.desc())
            ).scalars()
            return [row.to_record() for row in rows]

    def observe_all(self) -> AsyncIterator[List[ShoppingItem]]:
        return self._observe(self.list_all)

    def insert(self, item: ShoppingItem) -> None:
        with self._write() as session:
            session.merge(ShoppingItemRow.from_record(item))

    def insert_all(self, items: List[ShoppingItem]) -> None:
        with self._write() as session:
            for item in items:
                session.merge(ShoppingItemRow.from_record(item))

    def update(self, item: ShoppingItem) -> None:
        with self._write() as session:
            row = session.get(ShoppingItemRow, item.id)
            if not row:
                return
            row.text = item.text
            row.is_checked = item.is_checked

    def delete(self, item: ShoppingItem) -> None:
        with self._write() as session:
            session.execute(delete(ShoppingItemRow).where(ShoppingItemRow.id == item.id))

    def delete_checked(self) -> None:
        with self._write() as session:
            session.execute(
                delete(ShoppingItemRow).where(ShoppingItemRow.is_checked.is_(True))
            )

    def delete_all(self) -> None:
        with self._write() as session:
            session.execute(delete(ShoppingItemRow))

    def count(self) -> int:
        with self.Session() as session:
            return session.scalar(select(func.count()).select_from(ShoppingItemRow)) or 0

    def observe_count(self) -> AsyncIterator[int]:
        return self._observe(self.count)


class CleaningReminderDao(_Dao):
    table = "cleaning_reminders"

    def list_all(self) -> List[CleaningReminder]:
        with self.Session() as session:
            rows = session.execute(
                select(CleaningReminderRow).order_by(CleaningReminderRow.id.asc())
            ).scalars()
            return [row.to_record() for row in rows]

    def observe_all(self) -> AsyncIterator[List[CleaningReminder]]:
        return self._observe(self.list_all)

    def get(self, reminder_id: int) -> Optional[CleaningReminder]:
        with self.Session() as session:
            row = session.get(CleaningReminderRow, reminder_id)
            return row.to_record() if row else None

    def next_due(self) -> Optional[CleaningReminder]:
        """The reminder with the closest due day, if any."""
        with self.Session() as session:
            row = session.execute(
                select(CleaningReminderRow)
                .order_by(
                    CleaningReminderRow.next_due_epoch_day.asc(),
                    CleaningReminderRow.id.asc(),
                )
                .limit(1)
            ).scalar_one_or_none()
            return row.to_record() if row else None

    def observe_next_due(self) -> AsyncIterator[Optional[CleaningReminder]]:
        return self._observe(self.next_due)

    def get_due(self, today_epoch_day: int) -> List[CleaningReminder]:
        """Everything due today or earlier."""
        with self.Session() as session:
            rows = session.execute(
                select(CleaningReminderRow)
                .where(CleaningReminderRow.next_due_epoch_day <= today_epoch_day)
                .order_by(
                    CleaningReminderRow.next_due_epoch_day.asc(),
                    CleaningReminderRow.id.asc(),
                )
            ).scalars()
            return [row.to_record() for row in rows]

    def insert(self, reminder: CleaningReminder) -> int:
        """Inserts (or replaces) a reminder and returns its store-assigned id."""
        with self._write() as session:
            row = self._put(session, reminder)
            session.flush()
            return row.id

    def insert_all(self, reminders: List[CleaningReminder]) -> None:
        with self._write() as session:
            for reminder in reminders:
                self._put(session, reminder)

    def update(self, reminder: CleaningReminder) -> None:
        if reminder.id is None:
            return
        with self._write() as session:
            row = session.get(CleaningReminderRow, reminder.id)
            if not row:
                return
            row.name = reminder.name
            row.interval_days = reminder.interval_days
            row.next_due_epoch_day = reminder.next_due_epoch_day
            row.remote_id = reminder.remote_id

    def delete(self, reminder: CleaningReminder) -> None:
        with self._write() as session:
            if reminder.id is not None:
                stmt = delete(CleaningReminderRow).where(CleaningReminderRow.id == reminder.id)
            elif reminder.remote_id:
                stmt = delete(CleaningReminderRow).where(
                    CleaningReminderRow.remote_id == reminder.remote_id
                )
            else:
                return
            session.execute(stmt)

    def delete_all(self) -> None:
        with self._write() as session:
            session.execute(delete(CleaningReminderRow))

    def replace_all(self, reminders: List[CleaningReminder]) -> None:
        """
        Swaps the whole table for `reminders` in one transaction.

        Rows whose remote_id is still present keep their local id; the rest
        are removed.
        """
        incoming = {r.remote_id for r in reminders if r.remote_id}
        with self._write() as session:
            kept: Dict[str, CleaningReminderRow] = {}
            for row in session.execute(select(CleaningReminderRow)).scalars():
                if row.remote_id in incoming:
                    kept[row.remote_id] = row
                else:
                    session.delete(row)
            session.flush()
            for reminder in reminders:
                row = kept.get(reminder.remote_id) if reminder.remote_id else None
                if row is None:
                    self._put(session, reminder)
                    continue
                row.name = reminder.name
                row.interval_days = reminder.interval_days
                row.next_due_epoch_day = reminder.next_due_epoch_day

    @staticmethod
    def _put(session: Session, reminder: CleaningReminder) -> "CleaningReminderRow":
        # A matching remote_id replaces the existing row, like a unique-key conflict.
        if reminder.remote_id:
            existing = session.execute(
                select(CleaningReminderRow).where(
                    CleaningReminderRow.remote_id == reminder.remote_id
                )
            ).scalar_one_or_none()
            if existing is not None and existing.id != reminder.id:
                session.delete(existing)
                session.flush()
        row = CleaningReminderRow.from_record(reminder)
        if reminder.id is None:
            session.add(row)
        else:
            row = session.merge(row)
        return row


class ContactDao(_Dao):
    table = "contacts"

    def list_all(self) -> List[Contact]:
        with self.Session() as session:
            rows = session.execute(
                select(ContactRow).order_by(ContactRow.name.asc())
            ).scalars()
            return [row.to_record() for row in rows]

    def observe_all(self) -> AsyncIterator[List[Contact]]:
        return self._observe(self.list_all)

    def insert(self, contact: Contact) -> None:
        with self._write() as session:
            session.merge(ContactRow.from_record(contact))

    def insert_all(self, contacts: List[Contact]) -> None:
        with self._write() as session:
            for contact in contacts:
                session.merge(ContactRow.from_record(contact))

    def delete(self, contact: Contact) -> None:
        with self._write() as session:
            session.execute(delete(ContactRow).where(ContactRow.id == contact.id))

    def delete_all(self) -> None:
        with self._write() as session:
            session.execute(delete(ContactRow))

    def replace_all(self, contacts: List[Contact]) -> None:
        with self._write() as session:
            session.execute(delete(ContactRow))
            for contact in contacts:
                session.merge(ContactRow.from_record(contact))


class DoctorAppointmentDao(_Dao):
    table = "doctor_appointments"

    def list_all(self) -> List[DoctorAppointment]:
        with self.Session() as session:
            rows = session.execute(
                select(DoctorAppointmentRow).order_by(DoctorAppointmentRow.doctor_name.asc())
            ).scalars()
            return [row.to_record() for row in rows]

    def observe_all(self) -> AsyncIterator[List[DoctorAppointment]]:
        return self._observe(self.list_all)

    def get(self, appointment_id: str) -> Optional[DoctorAppointment]:
        with self.Session() as session:
            row = session.get(DoctorAppointmentRow, appointment_id)
            return row.to_record() if row else None

    def insert(self, appointment: DoctorAppointment) -> None:
        with self._write() as session:
            session.merge(DoctorAppointmentRow.from_record(appointment))

    def insert_all(self, appointments: List[DoctorAppointment]) -> None:
        with self._write() as session:
            for appointment in appointments:
                session.merge(DoctorAppointmentRow.from_record(appointment))

    def update(self, appointment: DoctorAppointment) -> None:
        with self._write() as session:
            if session.get(DoctorAppointmentRow, appointment.id) is None:
                return
            session.merge(DoctorAppointmentRow.from_record(appointment))

    def delete(self, appointment: DoctorAppointment) -> None:
        with self._write() as session:
            session.execute(
                delete(DoctorAppointmentRow).where(DoctorAppointmentRow.id == appointment.id)
            )

    def delete_all(self) -> None:
        with self._write() as session:
            session.execute(delete(DoctorAppointmentRow))

    def replace_all(self, appointments: List[DoctorAppointment]) -> None:
        with self._write() as session:
            session.execute(delete(DoctorAppointmentRow))
            for appointment in appointments:
                session.merge(DoctorAppointmentRow.from_record(appointment))


def _is_sqlite_memory(database_url: str) -> bool:
    url = make_url(database_url)
    return url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:")


class LocalDatabase:
    """
    SQLAlchemy-backed on-device store. Accepts any SQLAlchemy URL; in-memory
    SQLite shares a single connection so every session sees the same data.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("database_url is required for LocalDatabase")
        engine_kwargs: dict = {"future": True}
        if database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {"check_same_thread": False}
            if _is_sqlite_memory(database_url):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update(pool_pre_ping=True, pool_recycle=1800)
        self.engine = create_engine(database_url, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

        self.tracker = InvalidationTracker()
        self.shopping_items = ShoppingItemDao(self.Session, self.tracker)
        self.cleaning_reminders = CleaningReminderDao(self.Session, self.tracker)
        self.contacts = ContactDao(self.Session, self.tracker)
        self.doctor_appointments = DoctorAppointmentDao(self.Session, self.tracker)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        for dao in (
            self.shopping_items,
            self.cleaning_reminders,
            self.contacts,
            self.doctor_appointments,
        ):
            dao.delete_all()

    def close(self) -> None:
        self.engine.dispose()
        logger.info("Local database connections closed")


Base = declarative_base()


class ShoppingItemRow(Base):
    __tablename__ = "shopping_items"

    id = Column(String, primary_key=True)
    text = Column(String, nullable=False)
    is_checked = Column(Boolean, nullable=False, default=False)
    created_at = Column(Float, nullable=False, index=True)

    @classmethod
    def from_record(cls, item: ShoppingItem) -> "ShoppingItemRow":
        return cls(
            id=item.id,
            text=item.text,
            is_checked=item.is_checked,
            created_at=item.created_at,
        )

    def to_record(self) -> ShoppingItem:
        return ShoppingItem(
            id=self.id,
            text=self.text,
            is_checked=bool(self.is_checked),
            created_at=self.created_at,
        )


class CleaningReminderRow(Base):
    __tablename__ = "cleaning_reminders"
    # Ids of deleted rows are never handed out again.
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    remote_id = Column(String, nullable=True, unique=True)
    name = Column(String, nullable=False)
    interval_days = Column(Integer, nullable=False)
    next_due_epoch_day = Column(Integer, nullable=False, index=True)

    @classmethod
    def from_record(cls, reminder: CleaningReminder) -> "CleaningReminderRow":
        return cls(
            id=reminder.id,
            remote_id=reminder.remote_id,
            name=reminder.name,
            interval_days=reminder.interval_days,
            next_due_epoch_day=reminder.next_due_epoch_day,
        )

    def to_record(self) -> CleaningReminder:
        return CleaningReminder(
            id=self.id,
            remote_id=self.remote_id,
            name=self.name,
            interval_days=self.interval_days,
            next_due_epoch_day=self.next_due_epoch_day,
        )


class ContactRow(Base):
    __tablename__ = "contacts"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False, index=True)
    phone = Column(String, nullable=False, default="")
    email = Column(String, nullable=False, default="")

    @classmethod
    def from_record(cls, contact: Contact) -> "ContactRow":
        return cls(id=contact.id, name=contact.name, phone=contact.phone, email=contact.email)

    def to_record(self) -> Contact:
        return Contact(id=self.id, name=self.name, phone=self.phone, email=self.email)


class DoctorAppointmentRow(Base):
    __tablename__ = "doctor_appointments"

    id = Column(String, primary_key=True)
    doctor_name = Column(String, nullable=False, index=True)
    # "Doctor", "Dentist" or "Specialist"
    type = Column(String, nullable=False)
    last_visit_epoch_day = Column(Integer, nullable=True)
    next_visit_epoch_day = Column(Integer, nullable=True)
    phone_raw = Column(String, nullable=False, default="")
    office_name = Column(String, nullable=False, default="")
    interval_months = Column(Integer, nullable=False)

    @classmethod
    def from_record(cls, appointment: DoctorAppointment) -> "DoctorAppointmentRow":
        return cls(
            id=appointment.id,
            doctor_name=appointment.doctor_name,
            type=appointment.type,
            last_visit_epoch_day=appointment.last_visit_epoch_day,
            next_visit_epoch_day=appointment.next_visit_epoch_day,
            phone_raw=appointment.phone_raw,
            office_name=appointment.office_name,
            interval_months=appointment.interval_months,
        )

    def to_record(self) -> DoctorAppointment:
        return DoctorAppointment(
            id=self.id,
            doctor_name=self.doctor_name,
            type=self.type,
            last_visit_epoch_day=self.last_visit_epoch_day,
            next_visit_epoch_day=self.next_visit_epoch_day,
            phone_raw=self.phone_raw,
            office_name=self.office_name,
            interval_months=self.interval_months,
        )
