"""
Pydantic schemas for the household service API.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field

from shared.constants import MAX_DOCTOR_NAME_CHARS, MAX_OFFICE_NAME_CHARS
from shared.types import (
    AppointmentType,
    CleaningReminder,
    Contact,
    DoctorAppointment,
    HouseholdMember,
    Meal,
    ShoppingItem,
)
from shared.utils import from_epoch_day


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    name: str = ""
    email: str
    password: str


class ProfileRequest(BaseModel):
    display_name: str


class UserResponse(BaseModel):
    uid: str
    email: str
    display_name: str


class StatusResponse(BaseModel):
    status: str = "ok"


class MemberResponse(BaseModel):
    uid: str
    display_name: str
    email: str

    @classmethod
    def from_member(cls, member: HouseholdMember) -> "MemberResponse":
        return cls(uid=member.uid, display_name=member.display_name, email=member.email)


class HouseholdResponse(BaseModel):
    household_id: str
    members: List[MemberResponse] = []


class AddMemberRequest(BaseModel):
    email: str = Field(..., max_length=320)


class JoinHouseholdRequest(BaseModel):
    code: str = Field(..., max_length=128)


class ShoppingItemCreate(BaseModel):
    text: str = Field(..., max_length=256)


class ShoppingItemUpdate(BaseModel):
    checked: bool


class ShoppingItemResponse(BaseModel):
    id: str
    text: str
    is_checked: bool

    @classmethod
    def from_record(cls, item: ShoppingItem) -> "ShoppingItemResponse":
        return cls(id=item.id, text=item.text, is_checked=item.is_checked)


class ShoppingListResponse(BaseModel):
    items: List[ShoppingItemResponse]


class ReminderCreate(BaseModel):
    name: str = Field(..., max_length=128)
    interval_days: int


class ReminderResponse(BaseModel):
    id: Optional[int]
    remote_id: Optional[str] = None
    name: str
    interval_days: int
    next_due_epoch_day: int
    next_due_date: date

    @classmethod
    def from_record(cls, reminder: CleaningReminder) -> "ReminderResponse":
        return cls(
            id=reminder.id,
            remote_id=reminder.remote_id,
            name=reminder.name,
            interval_days=reminder.interval_days,
            next_due_epoch_day=reminder.next_due_epoch_day,
            next_due_date=from_epoch_day(reminder.next_due_epoch_day),
        )


class ReminderListResponse(BaseModel):
    reminders: List[ReminderResponse]


class ContactCreate(BaseModel):
    name: str = Field(..., max_length=128)
    phone: str = ""
    email: str = ""


class ContactResponse(BaseModel):
    id: str
    name: str
    phone: str
    email: str
    display_phone: str

    @classmethod
    def from_record(cls, contact: Contact) -> "ContactResponse":
        return cls(
            id=contact.id,
            name=contact.name,
            phone=contact.phone,
            email=contact.email,
            display_phone=contact.display_phone(),
        )


class ContactListResponse(BaseModel):
    contacts: List[ContactResponse]


class AppointmentCreate(BaseModel):
    # Longer values are cut to the stored limits rather than rejected.
    doctor_name: str = Field(..., max_length=MAX_DOCTOR_NAME_CHARS * 4)
    type: AppointmentType = AppointmentType.DOCTOR
    phone: str = ""
    office_name: str = Field(default="", max_length=MAX_OFFICE_NAME_CHARS * 4)
    interval_months: int = 12


class NextVisitUpdate(BaseModel):
    next_visit: date


class AppointmentResponse(BaseModel):
    id: str
    doctor_name: str
    type: str
    office_name: str
    phone_raw: str
    display_phone: str
    interval_months: int
    last_visit_epoch_day: Optional[int] = None
    next_visit_epoch_day: Optional[int] = None
    next_visit_text: str
    formatted_next_date: str

    @classmethod
    def from_record(cls, appointment: DoctorAppointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            doctor_name=appointment.doctor_name,
            type=appointment.type,
            office_name=appointment.office_name,
            phone_raw=appointment.phone_raw,
            display_phone=appointment.display_phone(),
            interval_months=appointment.interval_months,
            last_visit_epoch_day=appointment.last_visit_epoch_day,
            next_visit_epoch_day=appointment.next_visit_epoch_day,
            next_visit_text=appointment.next_visit_text(),
            formatted_next_date=appointment.formatted_next_date(),
        )


class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]


class MealResponse(BaseModel):
    id: int
    title: str
    image_url: str
    used_ingredients: List[str]
    missed_ingredients: List[str]

    @classmethod
    def from_record(cls, meal: Meal) -> "MealResponse":
        return cls(
            id=meal.id,
            title=meal.title,
            image_url=meal.image_url,
            used_ingredients=list(meal.used_ingredients),
            missed_ingredients=list(meal.missed_ingredients),
        )


class MealsResponse(BaseModel):
    meals: List[MealResponse]


class DashboardResponse(BaseModel):
    item_count: int
    next_due_reminder: Optional[ReminderResponse] = None
