from __future__ import annotations

import logging
from typing import Awaitable, Optional, TypeVar

from helpinghand.live import MutableState
from helpinghand.sync import HouseholdCollectionSync

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncedListViewModel:
    """
    Shared plumbing for lists mirrored from a household sub-collection.

    Reads come from the local table; writes go through the sync, so the list
    updates once the household document change comes back.
    """

    def __init__(self, sync: HouseholdCollectionSync):
        self.sync = sync
        self.error_message: MutableState[Optional[str]] = MutableState(None)

    async def start(self) -> bool:
        return await self._guard(self.sync.start(), "start", "Failed to load household data") or False

    def on_household_id_changed(self, household_id: Optional[str]) -> None:
        logger.info(
            "%s: household changed to %s", type(self).__name__, household_id
        )
        self.sync.set_household_id(household_id)

    def close(self) -> None:
        self.sync.clear()

    async def _guard(self, action: Awaitable[T], name: str, message: str) -> Optional[T]:
        try:
            result = await action
        except Exception:
            logger.exception("%s.%s failed", type(self).__name__, name)
            self.error_message.value = message
            return None
        self.error_message.value = None
        return result
