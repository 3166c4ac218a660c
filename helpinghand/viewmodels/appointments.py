from __future__ import annotations

import logging
from datetime import date
from typing import AsyncIterator, Callable, List, Optional

from helpinghand.db import DoctorAppointmentDao
from helpinghand.sync import HouseholdCollectionSync
from helpinghand.viewmodels.synced import SyncedListViewModel
from shared.constants import (
    MAX_DOCTOR_NAME_CHARS,
    MAX_INTERVAL_MONTHS,
    MAX_OFFICE_NAME_CHARS,
    MAX_PHONE_DIGITS,
    MIN_INTERVAL_MONTHS,
)
from shared.types import AppointmentType, DoctorAppointment
from shared.utils import add_months, digits_only, to_epoch_day

logger = logging.getLogger(__name__)


def normalize_phone(raw: str) -> str:
    return digits_only(raw)[:MAX_PHONE_DIGITS]


def clamp_interval(months: int) -> int:
    return max(MIN_INTERVAL_MONTHS, min(MAX_INTERVAL_MONTHS, months))


class DoctorAppointmentsViewModel(SyncedListViewModel):
    """
    Doctor, dentist and specialist visits shared by the household.

    The next visit of a new appointment is today plus its interval in
    calendar months.
    """

    def __init__(
        self,
        dao: DoctorAppointmentDao,
        sync: HouseholdCollectionSync[DoctorAppointment],
        today: Callable[[], date] = date.today,
    ):
        super().__init__(sync)
        self.dao = dao
        self._today = today

    def appointments(self) -> AsyncIterator[List[DoctorAppointment]]:
        return self.dao.observe_all()

    async def add_appointment(
        self,
        name: str,
        type: str = AppointmentType.DOCTOR.value,
        phone: str = "",
        office: str = "",
        interval_months: int = 12,
    ) -> Optional[str]:
        name = name.strip()[:MAX_DOCTOR_NAME_CHARS]
        if not name:
            logger.debug("add_appointment: name blank, skipping")
            return None
        interval = clamp_interval(interval_months)
        appointment = DoctorAppointment(
            doctor_name=name,
            type=type,
            next_visit_epoch_day=to_epoch_day(add_months(self._today(), interval)),
            phone_raw=normalize_phone(phone),
            office_name=office.strip()[:MAX_OFFICE_NAME_CHARS],
            interval_months=interval,
        )
        return await self._guard(
            self.sync.add(appointment), "add_appointment", "Failed to add appointment"
        )

    async def update_next_visit(self, appointment: DoctorAppointment, new_date: date) -> bool:
        result = await self._guard(
            self.sync.update(appointment.id, {"nextVisitEpochDay": to_epoch_day(new_date)}),
            "update_next_visit",
            "Failed to update appointment",
        )
        return bool(result)

    async def delete_appointment(self, appointment: DoctorAppointment) -> bool:
        result = await self._guard(
            self.sync.delete(appointment.id), "delete_appointment", "Failed to delete appointment"
        )
        return bool(result)
