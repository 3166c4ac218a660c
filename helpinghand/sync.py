"""
Mirrors household sub-collections into the local store.

Reads always come from the local tables. Writes go to
households/{hid}/<collection> only; the local table catches up through the
collection listener, which replaces the whole table with every snapshot.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Generic, List, Optional, Protocol, TypeVar

from helpinghand.documents import DocumentSnapshot, DocumentStore, document_path
from helpinghand.errors import DocumentNotFound, Unauthenticated
from helpinghand.household import HouseholdRepository, household_collection_path
from helpinghand.live import Subscription
from shared.constants import (
    CLEANING_REMINDERS_COLLECTION,
    CONTACTS_COLLECTION,
    DOCTOR_APPOINTMENTS_COLLECTION,
)
from shared.types import (
    CleaningReminder,
    Contact,
    DoctorAppointment,
    from_document,
    to_document,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReplaceableDao(Protocol[T]):
    def replace_all(self, records: List[T]) -> None:
        ...


class HouseholdCollectionSync(Generic[T]):
    """
    Keeps one local table in step with one household sub-collection.

    The household id is resolved lazily on first use and cached until
    `clear()` or `set_household_id()`.
    """

    def __init__(
        self,
        store: DocumentStore,
        households: HouseholdRepository,
        dao: ReplaceableDao[T],
        collection: str,
        decode: Callable[[DocumentSnapshot], T],
        encode: Callable[[T], dict],
    ):
        self.store = store
        self.households = households
        self.dao = dao
        self.collection = collection
        self.decode = decode
        self.encode = encode
        self._lock = threading.Lock()
        self._household_id: Optional[str] = None
        self._listening_to: Optional[str] = None
        self._subscription: Optional[Subscription] = None

    @property
    def listening(self) -> bool:
        return self._subscription is not None

    async def household_id(self) -> Optional[str]:
        """The cached household id, resolving it on first use."""
        if self._household_id:
            return self._household_id
        try:
            household_id = await self.households.get_or_create_household_id()
        except Unauthenticated:
            logger.info("%s sync: no signed-in user, skipping", self.collection)
            return None
        self._household_id = household_id
        return household_id

    async def start(self) -> bool:
        household_id = await self.household_id()
        if household_id is None:
            return False
        self._attach(household_id)
        return True

    def set_household_id(self, household_id: Optional[str]) -> None:
        """Points the mirror at another household (or at none)."""
        if not household_id:
            self.clear()
            return
        self._household_id = household_id
        self._attach(household_id)

    def clear(self) -> None:
        self._detach()
        self._household_id = None

    def _collection_path(self, household_id: str) -> str:
        return household_collection_path(household_id, self.collection)

    def _attach(self, household_id: str) -> None:
        with self._lock:
            if self._subscription is not None and self._listening_to == household_id:
                return
            previous, self._subscription = self._subscription, None
            self._listening_to = household_id
        if previous is not None:
            previous.unsubscribe()
        logger.info("Listening to %s of household %s", self.collection, household_id)
        subscription = self.store.listen_collection(
            self._collection_path(household_id), self._on_snapshot
        )
        with self._lock:
            self._subscription = subscription

    def _detach(self) -> None:
        with self._lock:
            subscription, self._subscription = self._subscription, None
            self._listening_to = None
        if subscription is not None:
            subscription.unsubscribe()

    def _on_snapshot(self, snapshots: List[DocumentSnapshot]) -> None:
        records = []
        for snapshot in snapshots:
            try:
                records.append(self.decode(snapshot))
            except Exception:
                logger.warning(
                    "Skipping %s document %s that could not be decoded",
                    self.collection,
                    snapshot.path,
                    exc_info=True,
                )
        try:
            self.dao.replace_all(records)
        except Exception:
            logger.exception("Replacing local %s failed", self.collection)
            return
        logger.debug("Mirrored %d %s documents", len(records), self.collection)

    async def add(self, record: T) -> Optional[str]:
        """Writes a new document and returns its id (None when signed out)."""
        household_id = await self.household_id()
        if household_id is None:
            return None
        self._attach(household_id)
        collection_path = self._collection_path(household_id)
        doc_id = self.store.new_id(collection_path)
        await asyncio.to_thread(
            self.store.set, document_path(collection_path, doc_id), self.encode(record)
        )
        logger.info("Added %s document %s", self.collection, doc_id)
        return doc_id

    async def update(self, doc_id: str, fields: dict[str, Any]) -> bool:
        household_id = await self.household_id()
        if household_id is None or not doc_id:
            return False
        path = document_path(self._collection_path(household_id), doc_id)
        try:
            await asyncio.to_thread(self.store.update, path, fields)
        except DocumentNotFound:
            logger.info("update: %s no longer exists", path)
            return False
        return True

    async def delete(self, doc_id: str) -> bool:
        household_id = await self.household_id()
        if household_id is None or not doc_id:
            return False
        path = document_path(self._collection_path(household_id), doc_id)
        await asyncio.to_thread(self.store.delete, path)
        logger.info("Deleted %s document %s", self.collection, doc_id)
        return True


def _decode_reminder(snapshot: DocumentSnapshot) -> CleaningReminder:
    return from_document(CleaningReminder, snapshot.data, id=None, remote_id=snapshot.id)


def _encode_reminder(reminder: CleaningReminder) -> dict:
    return to_document(reminder, exclude=("id", "remote_id"))


def _decode_contact(snapshot: DocumentSnapshot) -> Contact:
    return from_document(Contact, snapshot.data, id=snapshot.id)


def _decode_appointment(snapshot: DocumentSnapshot) -> DoctorAppointment:
    return from_document(DoctorAppointment, snapshot.data, id=snapshot.id)


def cleaning_reminder_sync(store, households, dao) -> HouseholdCollectionSync[CleaningReminder]:
    return HouseholdCollectionSync(
        store, households, dao, CLEANING_REMINDERS_COLLECTION, _decode_reminder, _encode_reminder
    )


def contact_sync(store, households, dao) -> HouseholdCollectionSync[Contact]:
    return HouseholdCollectionSync(
        store, households, dao, CONTACTS_COLLECTION, _decode_contact, to_document
    )


def doctor_appointment_sync(store, households, dao) -> HouseholdCollectionSync[DoctorAppointment]:
    return HouseholdCollectionSync(
        store, households, dao, DOCTOR_APPOINTMENTS_COLLECTION, _decode_appointment, to_document
    )
