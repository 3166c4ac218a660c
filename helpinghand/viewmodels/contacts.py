from __future__ import annotations

import logging
from typing import AsyncIterator, List, Optional

from helpinghand.db import ContactDao
from helpinghand.sync import HouseholdCollectionSync
from helpinghand.viewmodels.synced import SyncedListViewModel
from shared.types import Contact

logger = logging.getLogger(__name__)


class ContactsViewModel(SyncedListViewModel):
    def __init__(self, dao: ContactDao, sync: HouseholdCollectionSync[Contact]):
        super().__init__(sync)
        self.dao = dao

    def contacts(self) -> AsyncIterator[List[Contact]]:
        return self.dao.observe_all()

    async def add_contact(self, name: str, phone: str = "", email: str = "") -> Optional[str]:
        """A contact needs a name and at least one of phone or email."""
        name, phone, email = name.strip(), phone.strip(), email.strip()
        if not name or not (phone or email):
            logger.debug("add_contact: validation failed for %r", name)
            return None
        contact = Contact(name=name, phone=phone, email=email)
        return await self._guard(self.sync.add(contact), "add_contact", "Failed to add contact")

    async def delete_contact(self, contact: Contact) -> bool:
        result = await self._guard(
            self.sync.delete(contact.id), "delete_contact", "Failed to delete contact"
        )
        return bool(result)
