"""
HTTP routes. Every handler delegates to a view-model and renders its result.
"""

from __future__ import annotations

import logging
from contextlib import aclosing
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status

from helpinghand.auth import AuthClient, AuthUser
from helpinghand.dependencies import (
    get_appointments_view_model,
    get_auth_client,
    get_auth_view_model,
    get_cleaning_view_model,
    get_contacts_view_model,
    get_dashboard_view_model,
    get_household_view_model,
    get_meals_view_model,
    get_shopping_view_model,
    get_synced_view_models,
)
from helpinghand.live import first
from helpinghand.schemas import (
    AddMemberRequest,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentResponse,
    ContactCreate,
    ContactListResponse,
    ContactResponse,
    DashboardResponse,
    HouseholdResponse,
    JoinHouseholdRequest,
    LoginRequest,
    MealResponse,
    MealsResponse,
    MemberResponse,
    NextVisitUpdate,
    ProfileRequest,
    RegisterRequest,
    ReminderCreate,
    ReminderListResponse,
    ReminderResponse,
    ShoppingItemCreate,
    ShoppingItemResponse,
    ShoppingItemUpdate,
    ShoppingListResponse,
    StatusResponse,
    UserResponse,
)
from helpinghand.viewmodels import (
    AuthViewModel,
    CleaningReminderViewModel,
    ContactsViewModel,
    DashboardViewModel,
    DoctorAppointmentsViewModel,
    HouseholdViewModel,
    MealsViewModel,
    ShoppingCartViewModel,
)
from shared.types import HouseholdMember

logger = logging.getLogger(__name__)

router = APIRouter()


def require_user(auth: AuthClient = Depends(get_auth_client)) -> AuthUser:
    user = auth.current_user
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in.")
    return user


def _user_response(user: AuthUser) -> UserResponse:
    return UserResponse(uid=user.uid, email=user.email, display_name=user.display_name)


def _household_response(vm: HouseholdViewModel) -> HouseholdResponse:
    state = vm.ui_state.value
    return HouseholdResponse(
        household_id=state.household_id or "",
        members=[MemberResponse.from_member(m) for m in state.members],
    )


def _failure(message: Optional[str], default: str, code: int = status.HTTP_400_BAD_REQUEST):
    return HTTPException(status_code=code, detail=message or default)


# --- Auth -------------------------------------------------------------------


@router.post("/auth/login", response_model=UserResponse)
async def login(payload: LoginRequest, vm: AuthViewModel = Depends(get_auth_view_model)):
    if not await vm.login(payload.email, payload.password):
        raise _failure(vm.ui_state.value.error_message, "Login failed", status.HTTP_401_UNAUTHORIZED)
    return _user_response(vm.current_user.value)


@router.post("/auth/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, vm: AuthViewModel = Depends(get_auth_view_model)):
    if not await vm.register(payload.name, payload.email, payload.password):
        raise _failure(vm.ui_state.value.error_message, "Registration failed")
    return _user_response(vm.current_user.value)


@router.post("/auth/logout", response_model=StatusResponse)
def logout(
    vm: AuthViewModel = Depends(get_auth_view_model),
    household_vm: HouseholdViewModel = Depends(get_household_view_model),
):
    vm.logout()
    household_vm.reset()
    for synced in get_synced_view_models():
        synced.close()
    return StatusResponse()


@router.get("/auth/profile", response_model=UserResponse)
def get_profile(user: AuthUser = Depends(require_user)):
    return _user_response(user)


@router.put("/auth/profile", response_model=UserResponse)
async def update_profile(
    payload: ProfileRequest,
    user: AuthUser = Depends(require_user),
    vm: AuthViewModel = Depends(get_auth_view_model),
):
    if not await vm.update_display_name(payload.display_name):
        raise _failure(vm.ui_state.value.error_message, "Update failed")
    return _user_response(vm.current_user.value)


# --- Household --------------------------------------------------------------


async def _loaded_household(vm: HouseholdViewModel) -> HouseholdViewModel:
    if not await vm.load():
        raise _failure(
            vm.ui_state.value.error_message,
            "Failed to load household",
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return vm


@router.get("/household", response_model=HouseholdResponse)
async def get_household(
    user: AuthUser = Depends(require_user),
    vm: HouseholdViewModel = Depends(get_household_view_model),
):
    return _household_response(await _loaded_household(vm))


@router.post("/household/members", response_model=HouseholdResponse)
async def add_household_member(
    payload: AddMemberRequest,
    user: AuthUser = Depends(require_user),
    vm: HouseholdViewModel = Depends(get_household_view_model),
):
    await _loaded_household(vm)
    if not await vm.add_member_by_email(payload.email):
        state = vm.ui_state.value
        code = (
            status.HTTP_404_NOT_FOUND
            if state.error_message == "No user found with that email"
            else status.HTTP_502_BAD_GATEWAY
        )
        raise _failure(state.error_message, "Failed to add household member", code)
    return _household_response(await _loaded_household(vm))


@router.post("/household/join", response_model=HouseholdResponse)
async def join_household(
    payload: JoinHouseholdRequest,
    user: AuthUser = Depends(require_user),
    vm: HouseholdViewModel = Depends(get_household_view_model),
):
    if not await vm.join_household(payload.code):
        state = vm.ui_state.value
        code = (
            status.HTTP_404_NOT_FOUND
            if state.error_message == "Household not found"
            else status.HTTP_502_BAD_GATEWAY
        )
        raise _failure(state.error_message, "Failed to join household", code)
    return _household_response(await _loaded_household(vm))


@router.post("/household/leave", response_model=HouseholdResponse)
async def leave_household(
    user: AuthUser = Depends(require_user),
    vm: HouseholdViewModel = Depends(get_household_view_model),
):
    if not await vm.leave_household():
        raise _failure(
            vm.ui_state.value.error_message,
            "Failed to leave household",
            status.HTTP_502_BAD_GATEWAY,
        )
    return _household_response(await _loaded_household(vm))


def _members_payload(members: List[HouseholdMember]) -> list:
    return [MemberResponse.from_member(m).model_dump() for m in members]


@router.websocket("/household/members/ws")
async def household_members_ws(
    websocket: WebSocket,
    auth: AuthClient = Depends(get_auth_client),
    vm: HouseholdViewModel = Depends(get_household_view_model),
):
    await websocket.accept()
    if auth.current_user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Not logged in.")
        return
    if not await vm.load():
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Failed to load household")
        return

    try:
        async with aclosing(vm.observe_members()) as updates:
            async for members in updates:
                await websocket.send_json(_members_payload(members))
    except WebSocketDisconnect:
        logger.info("Member stream client disconnected")


# --- Shopping list ----------------------------------------------------------


@router.get("/shopping/items", response_model=ShoppingListResponse)
async def list_shopping_items(vm: ShoppingCartViewModel = Depends(get_shopping_view_model)):
    items = await first(vm.items())
    return ShoppingListResponse(items=[ShoppingItemResponse.from_record(i) for i in items])


@router.post(
    "/shopping/items", response_model=ShoppingItemResponse, status_code=status.HTTP_201_CREATED
)
async def add_shopping_item(
    payload: ShoppingItemCreate, vm: ShoppingCartViewModel = Depends(get_shopping_view_model)
):
    item = await vm.add_item(payload.text)
    if item is None:
        raise _failure(vm.error_message.value, "Item text can't be blank.")
    return ShoppingItemResponse.from_record(item)


@router.patch("/shopping/items/{item_id}", response_model=ShoppingItemResponse)
async def toggle_shopping_item(
    item_id: str,
    payload: ShoppingItemUpdate,
    vm: ShoppingCartViewModel = Depends(get_shopping_view_model),
):
    item = next((i for i in await first(vm.items()) if i.id == item_id), None)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    await vm.toggle_checked(item, payload.checked)
    updated = next((i for i in await first(vm.items()) if i.id == item_id), item)
    return ShoppingItemResponse.from_record(updated)


@router.delete("/shopping/items/checked", response_model=StatusResponse)
async def delete_checked_items(vm: ShoppingCartViewModel = Depends(get_shopping_view_model)):
    await vm.delete_checked()
    return StatusResponse()


# --- Cleaning reminders -----------------------------------------------------


async def _reminder(vm: CleaningReminderViewModel, reminder_id: int):
    reminder = next((r for r in await first(vm.reminders()) if r.id == reminder_id), None)
    if reminder is None:
        raise HTTPException(status_code=404, detail="Reminder not found")
    return reminder


@router.get("/cleaning/reminders", response_model=ReminderListResponse)
async def list_reminders(
    user: AuthUser = Depends(require_user),
    vm: CleaningReminderViewModel = Depends(get_cleaning_view_model),
):
    await vm.start()
    reminders = await first(vm.reminders())
    return ReminderListResponse(reminders=[ReminderResponse.from_record(r) for r in reminders])


@router.post(
    "/cleaning/reminders", response_model=ReminderListResponse, status_code=status.HTTP_201_CREATED
)
async def add_reminder(
    payload: ReminderCreate,
    user: AuthUser = Depends(require_user),
    vm: CleaningReminderViewModel = Depends(get_cleaning_view_model),
):
    if not await vm.add_reminder(payload.name, payload.interval_days):
        raise _failure(vm.error_message.value, "A name and a positive interval are required.")
    reminders = await first(vm.reminders())
    return ReminderListResponse(reminders=[ReminderResponse.from_record(r) for r in reminders])


@router.post("/cleaning/reminders/{reminder_id}/reset", response_model=StatusResponse)
async def reset_reminder(
    reminder_id: int,
    user: AuthUser = Depends(require_user),
    vm: CleaningReminderViewModel = Depends(get_cleaning_view_model),
):
    if not await vm.reset_cycle(await _reminder(vm, reminder_id)):
        raise _failure(vm.error_message.value, "Failed to update reminder", 502)
    return StatusResponse()


@router.delete("/cleaning/reminders/{reminder_id}", response_model=StatusResponse)
async def delete_reminder(
    reminder_id: int,
    user: AuthUser = Depends(require_user),
    vm: CleaningReminderViewModel = Depends(get_cleaning_view_model),
):
    if not await vm.delete_reminder(await _reminder(vm, reminder_id)):
        raise _failure(vm.error_message.value, "Failed to delete reminder", 502)
    return StatusResponse()


# --- Contacts ---------------------------------------------------------------


@router.get("/contacts", response_model=ContactListResponse)
async def list_contacts(
    user: AuthUser = Depends(require_user),
    vm: ContactsViewModel = Depends(get_contacts_view_model),
):
    await vm.start()
    contacts = await first(vm.contacts())
    return ContactListResponse(contacts=[ContactResponse.from_record(c) for c in contacts])


@router.post("/contacts", response_model=ContactListResponse, status_code=status.HTTP_201_CREATED)
async def add_contact(
    payload: ContactCreate,
    user: AuthUser = Depends(require_user),
    vm: ContactsViewModel = Depends(get_contacts_view_model),
):
    if not await vm.add_contact(payload.name, payload.phone, payload.email):
        raise _failure(vm.error_message.value, "A name and a phone number or email are required.")
    contacts = await first(vm.contacts())
    return ContactListResponse(contacts=[ContactResponse.from_record(c) for c in contacts])


@router.delete("/contacts/{contact_id}", response_model=StatusResponse)
async def delete_contact(
    contact_id: str,
    user: AuthUser = Depends(require_user),
    vm: ContactsViewModel = Depends(get_contacts_view_model),
):
    contact = next((c for c in await first(vm.contacts()) if c.id == contact_id), None)
    if contact is None:
        raise HTTPException(status_code=404, detail="Contact not found")
    if not await vm.delete_contact(contact):
        raise _failure(vm.error_message.value, "Failed to delete contact", 502)
    return StatusResponse()


# --- Doctor appointments ----------------------------------------------------


async def _appointment(vm: DoctorAppointmentsViewModel, appointment_id: str):
    appointment = vm.dao.get(appointment_id)
    if appointment is None:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


@router.get("/appointments", response_model=AppointmentListResponse)
async def list_appointments(
    user: AuthUser = Depends(require_user),
    vm: DoctorAppointmentsViewModel = Depends(get_appointments_view_model),
):
    await vm.start()
    appointments = await first(vm.appointments())
    return AppointmentListResponse(
        appointments=[AppointmentResponse.from_record(a) for a in appointments]
    )


@router.post(
    "/appointments", response_model=AppointmentListResponse, status_code=status.HTTP_201_CREATED
)
async def add_appointment(
    payload: AppointmentCreate,
    user: AuthUser = Depends(require_user),
    vm: DoctorAppointmentsViewModel = Depends(get_appointments_view_model),
):
    added = await vm.add_appointment(
        payload.doctor_name,
        payload.type.value,
        payload.phone,
        payload.office_name,
        payload.interval_months,
    )
    if not added:
        raise _failure(vm.error_message.value, "Doctor name can't be blank.")
    appointments = await first(vm.appointments())
    return AppointmentListResponse(
        appointments=[AppointmentResponse.from_record(a) for a in appointments]
    )


@router.put("/appointments/{appointment_id}/next-visit", response_model=StatusResponse)
async def update_next_visit(
    appointment_id: str,
    payload: NextVisitUpdate,
    user: AuthUser = Depends(require_user),
    vm: DoctorAppointmentsViewModel = Depends(get_appointments_view_model),
):
    appointment = await _appointment(vm, appointment_id)
    if not await vm.update_next_visit(appointment, payload.next_visit):
        raise _failure(vm.error_message.value, "Failed to update appointment", 502)
    return StatusResponse()


@router.delete("/appointments/{appointment_id}", response_model=StatusResponse)
async def delete_appointment(
    appointment_id: str,
    user: AuthUser = Depends(require_user),
    vm: DoctorAppointmentsViewModel = Depends(get_appointments_view_model),
):
    appointment = await _appointment(vm, appointment_id)
    if not await vm.delete_appointment(appointment):
        raise _failure(vm.error_message.value, "Failed to delete appointment", 502)
    return StatusResponse()


# --- Meals and dashboard ----------------------------------------------------


@router.post("/meals/search", response_model=MealsResponse)
async def search_meals(vm: MealsViewModel = Depends(get_meals_view_model)):
    meals = await vm.fetch_meals_from_checked_items()
    return MealsResponse(meals=[MealResponse.from_record(m) for m in meals])


@router.get("/meals", response_model=MealsResponse)
def list_meals(vm: MealsViewModel = Depends(get_meals_view_model)):
    return MealsResponse(meals=[MealResponse.from_record(m) for m in vm.meals.value])


@router.post("/meals/{meal_id}/add-missing", response_model=ShoppingListResponse)
async def add_missing_ingredients(
    meal_id: int, vm: MealsViewModel = Depends(get_meals_view_model)
):
    meal = next((m for m in vm.meals.value if m.id == meal_id), None)
    if meal is None:
        raise HTTPException(status_code=404, detail="Meal not found")
    added = await vm.add_missing_ingredients(meal)
    return ShoppingListResponse(items=[ShoppingItemResponse.from_record(i) for i in added])


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(vm: DashboardViewModel = Depends(get_dashboard_view_model)):
    item_count = await first(vm.item_count())
    next_due = await first(vm.next_due_reminder())
    return DashboardResponse(
        item_count=item_count,
        next_due_reminder=ReminderResponse.from_record(next_due) if next_due else None,
    )
