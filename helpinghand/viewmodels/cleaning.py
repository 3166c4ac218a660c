from __future__ import annotations

import logging
from typing import AsyncIterator, Callable, List, Optional

from helpinghand.db import CleaningReminderDao
from helpinghand.sync import HouseholdCollectionSync
from helpinghand.viewmodels.synced import SyncedListViewModel
from shared.types import CleaningReminder
from shared.utils import today_epoch_day

logger = logging.getLogger(__name__)


class CleaningReminderViewModel(SyncedListViewModel):
    def __init__(
        self,
        dao: CleaningReminderDao,
        sync: HouseholdCollectionSync[CleaningReminder],
        today: Callable[[], int] = today_epoch_day,
    ):
        super().__init__(sync)
        self.dao = dao
        self._today = today

    def reminders(self) -> AsyncIterator[List[CleaningReminder]]:
        return self.dao.observe_all()

    def next_due(self) -> AsyncIterator[Optional[CleaningReminder]]:
        """The closest due reminder, for the dashboard."""
        return self.dao.observe_next_due()

    async def add_reminder(self, name: str, interval_days: int) -> Optional[str]:
        name = name.strip()
        if not name or interval_days <= 0:
            logger.debug("add_reminder: validation failed for %r/%s", name, interval_days)
            return None
        reminder = CleaningReminder(
            name=name,
            interval_days=interval_days,
            next_due_epoch_day=self._today() + interval_days,
        )
        return await self._guard(self.sync.add(reminder), "add_reminder", "Failed to add reminder")

    async def reset_cycle(self, item: CleaningReminder) -> bool:
        """Marks a task as done today: next due becomes today + interval."""
        if not item.remote_id:
            logger.warning("reset_cycle: reminder %s has no household document", item.id)
            return False
        next_due = self._today() + item.interval_days
        result = await self._guard(
            self.sync.update(item.remote_id, {"nextDueEpochDay": next_due}),
            "reset_cycle",
            "Failed to update reminder",
        )
        return bool(result)

    async def delete_reminder(self, item: CleaningReminder) -> bool:
        if not item.remote_id:
            logger.warning("delete_reminder: reminder %s has no household document", item.id)
            return False
        result = await self._guard(
            self.sync.delete(item.remote_id), "delete_reminder", "Failed to delete reminder"
        )
        return bool(result)
