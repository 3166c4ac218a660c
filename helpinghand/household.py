"""
Household synchronization logic: user/household bootstrap, live member
resolution and membership changes over the users/households collections.

Cross-document sequences (create household then point the profile at it,
add to a member set then point the profile at it) are separate atomic
writes, not one transaction. A failure between them leaves the first write
in place.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from typing import AsyncIterator, List, Optional

from helpinghand.auth import AuthClient
from helpinghand.documents import DocumentSnapshot, DocumentStore, Transaction, document_path
from helpinghand.errors import Unauthenticated
from helpinghand.live import callback_stream
from shared.constants import (
    DEFAULT_HOUSEHOLD_NAME_BASE,
    FIELD_DISPLAY_NAME,
    FIELD_EMAIL,
    FIELD_EMAIL_LOWER,
    FIELD_HOUSEHOLD_ID,
    FIELD_MEMBERS,
    FIELD_NAME,
    HOUSEHOLDS_COLLECTION,
    SOLO_HOUSEHOLD_NAME,
    USERS_COLLECTION,
)
from shared.types import Household, HouseholdMember, UserProfile, from_document

logger = logging.getLogger(__name__)


def user_path(uid: str) -> str:
    return document_path(USERS_COLLECTION, uid)


def household_path(household_id: str) -> str:
    return document_path(HOUSEHOLDS_COLLECTION, household_id)


def household_collection_path(household_id: str, collection: str) -> str:
    return f"{household_path(household_id)}/{collection}"


def _member_ids(snapshot: DocumentSnapshot) -> List[str]:
    members = snapshot.get(FIELD_MEMBERS) or []
    return list(dict.fromkeys(m for m in members if isinstance(m, str) and m))


def _is_valid_household_id(household_id: str) -> bool:
    return bool(household_id) and "/" not in household_id


class HouseholdRepository:
    """
    Household membership over a remote document store.

    The authentication client and the store are injected so tests can pass
    in-memory doubles. Store calls block, so every operation runs them in a
    worker thread.
    """

    def __init__(self, auth: AuthClient, store: DocumentStore):
        self.auth = auth
        self.store = store

    async def ensure_user_profile(self) -> str:
        """
        Makes sure users/{uid} exists for the signed-in identity.

        A new profile gets the identity's email, normalized email, display
        name and a null household reference. An existing profile is only
        written when one of the normalized fields changed.

        Returns:
            str: The signed-in uid.

        Raises:
            Unauthenticated: If nobody is signed in.
        """
        user = self.auth.current_user
        if user is None:
            raise Unauthenticated("ensure_user_profile requires a signed-in user")

        path = user_path(user.uid)
        snapshot = await asyncio.to_thread(self.store.get, path)

        email = (user.email or "").strip()
        fields = {
            FIELD_EMAIL: email,
            FIELD_EMAIL_LOWER: email.lower(),
            FIELD_DISPLAY_NAME: (user.display_name or "").strip(),
        }

        if not snapshot.exists:
            await asyncio.to_thread(
                self.store.set, path, {**fields, FIELD_HOUSEHOLD_ID: None}
            )
            logger.info("Created user profile for %s", user.uid)
        else:
            updates = {
                field: value
                for field, value in fields.items()
                if snapshot.get(field) != value
            }
            if updates:
                await asyncio.to_thread(self.store.update, path, updates)
                logger.info(
                    "Normalized user profile %s fields=%s", user.uid, sorted(updates)
                )
        return user.uid

    async def get_or_create_household_id(self) -> str:
        """
        Returns the signed-in user's household id, creating a solo household
        on first use.
        """
        uid = await self.ensure_user_profile()
        profile = await asyncio.to_thread(self.store.get, user_path(uid))

        existing = profile.get(FIELD_HOUSEHOLD_ID)
        if existing:
            return existing

        household_id = self.store.new_id(HOUSEHOLDS_COLLECTION)
        name_base = (profile.get(FIELD_DISPLAY_NAME) or "").strip() or DEFAULT_HOUSEHOLD_NAME_BASE
        await asyncio.to_thread(
            self.store.set,
            household_path(household_id),
            {FIELD_NAME: f"{name_base}'s household", FIELD_MEMBERS: [uid]},
        )
        await asyncio.to_thread(
            self.store.update, user_path(uid), {FIELD_HOUSEHOLD_ID: household_id}
        )
        logger.info("Created household %s for %s", household_id, uid)
        return household_id

    async def get_profile(self, uid: str) -> Optional[UserProfile]:
        snapshot = await asyncio.to_thread(self.store.get, user_path(uid))
        if not snapshot.exists:
            return None
        return from_document(UserProfile, snapshot.data, uid=uid)

    async def get_household(self, household_id: str) -> Optional[Household]:
        if not _is_valid_household_id(household_id):
            return None
        snapshot = await asyncio.to_thread(self.store.get, household_path(household_id))
        if not snapshot.exists:
            return None
        return Household(
            id=household_id,
            name=snapshot.get(FIELD_NAME) or "",
            members=_member_ids(snapshot),
        )

    async def observe_members(
        self, household_id: str
    ) -> AsyncIterator[List[HouseholdMember]]:
        """
        Live member list of a household.

        Emits on subscription and after every change to households/{id}.
        A missing household or an empty member set emits []. Member uids are
        resolved against users/{uid} inside one read-only transaction; uids
        without a profile are dropped. A failed resolution emits [] and the
        stream keeps going. The store listener is removed when the consumer
        stops iterating or is cancelled. An id that cannot name a household
        emits a single [] and ends the stream.
        """
        if not _is_valid_household_id(household_id):
            yield []
            return
        path = household_path(household_id)
        async with aclosing(
            callback_stream(lambda callback: self.store.listen(path, callback))
        ) as snapshots:
            async for snapshot in snapshots:
                yield await self._resolve_members(household_id, snapshot)

    async def _resolve_members(
        self, household_id: str, snapshot: DocumentSnapshot
    ) -> List[HouseholdMember]:
        if not snapshot.exists:
            return []
        member_ids = _member_ids(snapshot)
        if not member_ids:
            return []

        def _read_profiles(transaction: Transaction) -> List[HouseholdMember]:
            members = []
            for uid in member_ids:
                profile = transaction.get(user_path(uid))
                if not profile.exists:
                    continue
                email = profile.get(FIELD_EMAIL) or ""
                name = (profile.get(FIELD_DISPLAY_NAME) or "").strip() or email
                members.append(HouseholdMember(uid=uid, display_name=name, email=email))
            return members

        try:
            return await asyncio.to_thread(
                self.store.run_transaction, _read_profiles, read_only=True
            )
        except Exception:
            logger.exception("observe_members: resolving members of %s failed", household_id)
            return []

    async def add_member_by_email(self, household_id: str, email: str) -> bool:
        """
        Adds the user registered under `email` to a household.

        The lookup is trimmed and case-insensitive. The member set is updated
        in a transaction (no duplicates); afterwards, outside that
        transaction, the user's household reference is set if they had none.

        Returns:
            bool: False if the email is blank, no profile matches or the
            household does not exist. Nothing is mutated in those cases.
        """
        normalized = email.strip().lower()
        household_id = household_id.strip()
        if not normalized or not _is_valid_household_id(household_id):
            return False

        matches = await asyncio.to_thread(
            self.store.find, USERS_COLLECTION, FIELD_EMAIL_LOWER, normalized, 1
        )
        if not matches:
            logger.info("add_member_by_email: no profile for %s", normalized)
            return False
        uid = matches[0].id
        target = household_path(household_id)

        def _add_member(transaction: Transaction) -> bool:
            household = transaction.get(target)
            if not household.exists:
                return False
            members = _member_ids(household)
            if uid in members:
                return True
            transaction.update(target, {FIELD_MEMBERS: members + [uid]})
            return True

        added = await asyncio.to_thread(self.store.run_transaction, _add_member)
        if not added:
            logger.info("add_member_by_email: household %s not found", household_id)
            return False

        profile = await asyncio.to_thread(self.store.get, user_path(uid))
        if not profile.get(FIELD_HOUSEHOLD_ID):
            await asyncio.to_thread(
                self.store.update, user_path(uid), {FIELD_HOUSEHOLD_ID: household_id}
            )
        logger.info("Added %s to household %s", uid, household_id)
        return True

    async def join_household(self, code: str) -> bool:
        """
        Joins the household whose id is `code` (the shareable code).

        The member set of the target is updated in a transaction. Then the
        profile is pointed at the target and the user is removed from the
        previous household's member set. Returns False for a blank or
        unknown code.
        """
        uid = await self.ensure_user_profile()
        household_id = code.strip()
        if not _is_valid_household_id(household_id):
            return False

        profile = await asyncio.to_thread(self.store.get, user_path(uid))
        previous = profile.get(FIELD_HOUSEHOLD_ID)
        target = household_path(household_id)

        def _join(transaction: Transaction) -> bool:
            household = transaction.get(target)
            if not household.exists:
                return False
            members = _member_ids(household)
            if uid not in members:
                transaction.update(target, {FIELD_MEMBERS: members + [uid]})
            return True

        if not await asyncio.to_thread(self.store.run_transaction, _join):
            logger.info("join_household: household %s not found", household_id)
            return False

        if previous != household_id:
            await asyncio.to_thread(
                self.store.update, user_path(uid), {FIELD_HOUSEHOLD_ID: household_id}
            )
            if previous:
                try:
                    await self._remove_member(previous, uid)
                except Exception:
                    logger.exception(
                        "join_household: leaving previous household %s failed", previous
                    )
        logger.info("%s joined household %s", uid, household_id)
        return True

    async def leave_and_create_solo_household(self) -> str:
        """
        Leaves the current household and starts a new solo one.

        The old household is kept even when it ends up with no members.

        Returns:
            str: The new household id.
        """
        uid = await self.ensure_user_profile()
        profile = await asyncio.to_thread(self.store.get, user_path(uid))
        previous = profile.get(FIELD_HOUSEHOLD_ID)

        household_id = self.store.new_id(HOUSEHOLDS_COLLECTION)
        await asyncio.to_thread(
            self.store.set,
            household_path(household_id),
            {FIELD_NAME: SOLO_HOUSEHOLD_NAME, FIELD_MEMBERS: [uid]},
        )

        def _move(transaction: Transaction) -> None:
            if previous and previous != household_id:
                old_path = household_path(previous)
                old = transaction.get(old_path)
                if old.exists:
                    transaction.update(
                        old_path,
                        {FIELD_MEMBERS: [m for m in _member_ids(old) if m != uid]},
                    )
            transaction.update(user_path(uid), {FIELD_HOUSEHOLD_ID: household_id})

        await asyncio.to_thread(self.store.run_transaction, _move)
        logger.info("%s left %s for solo household %s", uid, previous, household_id)
        return household_id

    async def _remove_member(self, household_id: str, uid: str) -> None:
        path = household_path(household_id)

        def _remove(transaction: Transaction) -> None:
            household = transaction.get(path)
            if not household.exists:
                return
            members = _member_ids(household)
            if uid in members:
                transaction.update(path, {FIELD_MEMBERS: [m for m in members if m != uid]})

        await asyncio.to_thread(self.store.run_transaction, _remove)
