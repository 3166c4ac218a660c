"""Record types for the local store and the household documents."""

import time
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any, List, Optional, Type, TypeVar

from dacite import Config, from_dict

from shared.json_utils import convert_keys
from shared.utils import (
    format_phone_number,
    from_epoch_day,
    months_between,
    to_epoch_day,
)

T = TypeVar("T")


class AppointmentType(StrEnum):
    DOCTOR = "Doctor"
    DENTIST = "Dentist"
    SPECIALIST = "Specialist"


@dataclass
class ShoppingItem:
    text: str
    is_checked: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: float = field(default_factory=time.time)


@dataclass
class CleaningReminder:
    name: str
    interval_days: int = 0
    next_due_epoch_day: int = 0
    # Assigned by the local store on insert.
    id: Optional[int] = None
    # Id of the household document this row mirrors, if any.
    remote_id: Optional[str] = None


@dataclass
class Contact:
    name: str
    phone: str = ""
    email: str = ""
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def display_phone(self) -> str:
        return format_phone_number(self.phone)


@dataclass
class DoctorAppointment:
    doctor_name: str
    type: str = AppointmentType.DOCTOR.value
    last_visit_epoch_day: Optional[int] = None
    next_visit_epoch_day: Optional[int] = None
    # Digits only.
    phone_raw: str = ""
    office_name: str = ""
    interval_months: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def next_visit_text(self, today: Optional[date] = None) -> str:
        """Human readable distance to the next (or since the last) visit."""
        today = today or date.today()
        if self.next_visit_epoch_day is not None:
            days_until = self.next_visit_epoch_day - to_epoch_day(today)
            if days_until < 0:
                return f"Overdue by {-days_until} days"
            if days_until == 0:
                return "Today"
            if days_until < 7:
                return f"In {days_until} days"
            if days_until < 30:
                return f"In {days_until // 7} weeks"
            return f"In {days_until // 30} months"
        if self.last_visit_epoch_day is not None:
            months_ago = months_between(from_epoch_day(self.last_visit_epoch_day), today)
            return f"Last visit {months_ago}mo ago"
        return "No visits scheduled"

    def formatted_next_date(self) -> str:
        if self.next_visit_epoch_day is None:
            return "Not set"
        return from_epoch_day(self.next_visit_epoch_day).strftime("%b %d, %Y")

    def display_phone(self) -> str:
        return format_phone_number(self.phone_raw)


@dataclass
class Meal:
    id: int
    title: str
    image_url: str = ""
    used_ingredients: List[str] = field(default_factory=list)
    missed_ingredients: List[str] = field(default_factory=list)


@dataclass
class UserProfile:
    uid: str
    email: str = ""
    email_lower: str = ""
    display_name: str = ""
    household_id: Optional[str] = None


@dataclass
class Household:
    id: str
    name: str = ""
    members: List[str] = field(default_factory=list)


@dataclass
class HouseholdMember:
    """Read-only view of a household member resolved from users/{uid}."""

    uid: str
    display_name: str
    email: str


def to_document(record: Any, exclude: tuple[str, ...] = ("id",)) -> dict:
    """Serializes a record into a camelCase document payload."""
    payload = {k: v for k, v in asdict(record).items() if k not in exclude}
    return convert_keys(payload, "snake_to_camel")


def from_document(data_class: Type[T], data: dict, **overrides: Any) -> T:
    """
    Builds a record from a camelCase document payload.

    Unknown fields are ignored. Raises dacite errors when a required field
    is missing.
    """
    payload = convert_keys(dict(data or {}), "camel_to_snake")
    payload.update(overrides)
    return from_dict(data_class=data_class, data=payload, config=Config(check_types=False))
