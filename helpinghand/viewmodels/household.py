from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, List, Optional

from helpinghand.household import HouseholdRepository
from helpinghand.live import MutableState, first
from shared.types import HouseholdMember

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HouseholdUiState:
    household_id: Optional[str] = None
    members: List[HouseholdMember] = field(default_factory=list)
    error_message: Optional[str] = None
    is_busy: bool = False


class HouseholdViewModel:
    """
    Household screen: the current household, its live member list and the
    membership actions.

    Listeners registered with `on_household_changed` are told whenever the
    user ends up in a different household (join, leave), so the mirrored
    lists can follow.
    """

    def __init__(self, repo: HouseholdRepository):
        self.repo = repo
        self.ui_state: MutableState[HouseholdUiState] = MutableState(HouseholdUiState())
        self._members_task: Optional[asyncio.Task] = None
        self._household_listeners: List[Callable[[Optional[str]], None]] = []

    def on_household_changed(self, callback: Callable[[Optional[str]], None]) -> None:
        self._household_listeners.append(callback)

    async def load(self) -> Optional[str]:
        """Bootstraps the household and reads its current members once."""
        try:
            household_id = await self.repo.get_or_create_household_id()
            members = await first(self.repo.observe_members(household_id))
        except Exception:
            logger.exception("load: failed to load household")
            self.ui_state.update(error_message="Failed to load household")
            return None
        self.ui_state.update(household_id=household_id, members=members, error_message=None)
        return household_id

    async def start(self) -> None:
        """Like `load`, then keeps the member list current until `close`."""
        household_id = await self.load()
        if household_id:
            self._observe(household_id)

    def observe_members(self) -> AsyncIterator[List[HouseholdMember]]:
        household_id = self.ui_state.value.household_id
        if not household_id:
            raise ValueError("No household loaded")
        return self.repo.observe_members(household_id)

    def _observe(self, household_id: str) -> None:
        self._stop_observing()
        self._members_task = asyncio.create_task(self._collect_members(household_id))

    async def _collect_members(self, household_id: str) -> None:
        async with aclosing(self.repo.observe_members(household_id)) as updates:
            async for members in updates:
                self.ui_state.update(members=members)

    def _stop_observing(self) -> None:
        if self._members_task is not None:
            self._members_task.cancel()
            self._members_task = None

    def _household_changed(self, household_id: str) -> None:
        self.ui_state.update(household_id=household_id, members=[])
        if self._members_task is not None:
            self._observe(household_id)
        for callback in list(self._household_listeners):
            try:
                callback(household_id)
            except Exception:
                logger.exception("Household change listener failed")

    async def add_member_by_email(self, email: str) -> bool:
        household_id = self.ui_state.value.household_id
        if not household_id:
            return False

        self.ui_state.update(is_busy=True, error_message=None)
        try:
            added = await self.repo.add_member_by_email(household_id, email)
        except Exception:
            logger.exception("add_member_by_email: failed")
            self.ui_state.update(is_busy=False, error_message="Failed to add household member")
            return False

        if not added:
            self.ui_state.update(is_busy=False, error_message="No user found with that email")
            return False
        self.ui_state.update(is_busy=False)
        return True

    async def join_household(self, code: str) -> bool:
        self.ui_state.update(is_busy=True, error_message=None)
        try:
            joined = await self.repo.join_household(code)
        except Exception:
            logger.exception("join_household: failed")
            self.ui_state.update(is_busy=False, error_message="Failed to join household")
            return False

        if not joined:
            self.ui_state.update(is_busy=False, error_message="Household not found")
            return False
        self.ui_state.update(is_busy=False)
        self._household_changed(code.strip())
        return True

    async def leave_household(self) -> Optional[str]:
        self.ui_state.update(is_busy=True, error_message=None)
        try:
            household_id = await self.repo.leave_and_create_solo_household()
        except Exception:
            logger.exception("leave_household: failed")
            self.ui_state.update(is_busy=False, error_message="Failed to leave household")
            return None

        self.ui_state.update(is_busy=False)
        self._household_changed(household_id)
        return household_id

    async def close(self) -> None:
        task, self._members_task = self._members_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def reset(self) -> None:
        """Forgets the loaded household (after sign-out)."""
        self._stop_observing()
        self.ui_state.value = HouseholdUiState()
