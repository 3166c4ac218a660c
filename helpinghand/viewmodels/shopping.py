from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import AsyncIterator, List, Optional

from helpinghand.db import ShoppingItemDao
from helpinghand.live import MutableState
from shared.types import ShoppingItem

logger = logging.getLogger(__name__)


class ShoppingCartViewModel:
    """Shopping list kept in the local store only."""

    def __init__(self, dao: ShoppingItemDao):
        self.dao = dao
        self.error_message: MutableState[Optional[str]] = MutableState(None)

    def items(self) -> AsyncIterator[List[ShoppingItem]]:
        return self.dao.observe_all()

    async def add_item(self, text: str) -> Optional[ShoppingItem]:
        text = text.strip()
        if not text:
            return None
        item = ShoppingItem(text=text)
        try:
            await asyncio.to_thread(self.dao.insert, item)
        except Exception:
            logger.exception("add_item: insert failed for %r", text)
            self.error_message.value = "Failed to add item"
            return None
        return item

    async def toggle_checked(self, item: ShoppingItem, checked: bool) -> None:
        try:
            await asyncio.to_thread(
                self.dao.update, dataclasses.replace(item, is_checked=checked)
            )
        except Exception:
            logger.exception("toggle_checked: update failed for %s", item.id)
            self.error_message.value = "Failed to update item"

    async def delete_checked(self) -> None:
        try:
            await asyncio.to_thread(self.dao.delete_checked)
        except Exception:
            logger.exception("delete_checked: failed")
            self.error_message.value = "Failed to delete checked items"
