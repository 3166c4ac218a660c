from __future__ import annotations

from typing import AsyncIterator, Optional

from helpinghand.db import CleaningReminderDao, ShoppingItemDao
from shared.types import CleaningReminder


class DashboardViewModel:
    def __init__(self, shopping_dao: ShoppingItemDao, cleaning_dao: CleaningReminderDao):
        self.shopping_dao = shopping_dao
        self.cleaning_dao = cleaning_dao

    def item_count(self) -> AsyncIterator[int]:
        return self.shopping_dao.observe_count()

    def next_due_reminder(self) -> AsyncIterator[Optional[CleaningReminder]]:
        return self.cleaning_dao.observe_next_due()
