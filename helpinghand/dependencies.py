"""
Dependency wiring for the FastAPI app and the reminder worker.
"""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import credentials, firestore

from helpinghand.auth import AuthClient, FirebaseAuthClient, InMemoryAuthClient
from helpinghand.config import Settings, get_settings
from helpinghand.db import LocalDatabase
from helpinghand.documents import DocumentStore, FirestoreDocumentStore, InMemoryDocumentStore
from helpinghand.household import HouseholdRepository
from helpinghand.notifications import LogNotifier, Notifier
from helpinghand.recipes import RecipeClient, SpoonacularClient
from helpinghand.sync import (
    HouseholdCollectionSync,
    cleaning_reminder_sync,
    contact_sync,
    doctor_appointment_sync,
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

logger = logging.getLogger(__name__)

IN_MEMORY_DATABASE_URL = "sqlite+pysqlite:///:memory:"

_local_db: LocalDatabase | None = None
_document_store: DocumentStore | None = None
_auth_client: AuthClient | None = None
_household_repository: HouseholdRepository | None = None
_cleaning_sync: HouseholdCollectionSync | None = None
_contact_sync: HouseholdCollectionSync | None = None
_appointment_sync: HouseholdCollectionSync | None = None
_recipe_client: RecipeClient | None = None
_notifier: Notifier | None = None
_view_models: dict = {}


def _use_firebase(settings: Settings) -> bool:
    return not settings.use_in_memory_backends and settings.firebase_configured


def _firebase_app(settings: Settings) -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass
    cred = (
        credentials.Certificate(settings.firebase_credentials_path)
        if settings.firebase_credentials_path
        else None
    )
    options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
    logger.info("Initializing Firebase app for project %s", settings.firebase_project_id)
    return firebase_admin.initialize_app(cred, options)


def get_local_db() -> LocalDatabase:
    """
    Return a singleton local database so every view-model sees the same tables.
    """
    global _local_db
    if _local_db:
        return _local_db

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _local_db = LocalDatabase(IN_MEMORY_DATABASE_URL)
    else:
        _local_db = LocalDatabase(settings.database_url)
    return _local_db


def get_document_store() -> DocumentStore:
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if _use_firebase(settings):
        _document_store = FirestoreDocumentStore(firestore.client(_firebase_app(settings)))
    else:
        _document_store = InMemoryDocumentStore()
    return _document_store


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if not settings.use_in_memory_backends and settings.firebase_web_api_key:
        _auth_client = FirebaseAuthClient(settings.firebase_web_api_key)
    else:
        _auth_client = InMemoryAuthClient()
    return _auth_client


def get_household_repository() -> HouseholdRepository:
    global _household_repository
    if _household_repository:
        return _household_repository
    _household_repository = HouseholdRepository(get_auth_client(), get_document_store())
    return _household_repository


def get_cleaning_sync() -> HouseholdCollectionSync:
    global _cleaning_sync
    if _cleaning_sync:
        return _cleaning_sync
    _cleaning_sync = cleaning_reminder_sync(
        get_document_store(), get_household_repository(), get_local_db().cleaning_reminders
    )
    return _cleaning_sync


def get_contact_sync() -> HouseholdCollectionSync:
    global _contact_sync
    if _contact_sync:
        return _contact_sync
    _contact_sync = contact_sync(
        get_document_store(), get_household_repository(), get_local_db().contacts
    )
    return _contact_sync


def get_appointment_sync() -> HouseholdCollectionSync:
    global _appointment_sync
    if _appointment_sync:
        return _appointment_sync
    _appointment_sync = doctor_appointment_sync(
        get_document_store(), get_household_repository(), get_local_db().doctor_appointments
    )
    return _appointment_sync


def get_recipe_client() -> RecipeClient:
    global _recipe_client
    if _recipe_client:
        return _recipe_client
    settings = get_settings()
    if not settings.spoonacular_api_key:
        logger.warning("HELPINGHAND_SPOONACULAR_API_KEY is not set; recipe lookups will fail")
    _recipe_client = SpoonacularClient(
        api_key=settings.spoonacular_api_key,
        base_url=settings.spoonacular_base_url,
    )
    return _recipe_client


def get_notifier() -> Notifier:
    global _notifier
    if _notifier:
        return _notifier
    _notifier = LogNotifier()
    return _notifier


def _view_model(name: str, factory):
    if name not in _view_models:
        _view_models[name] = factory()
    return _view_models[name]


def get_auth_view_model() -> AuthViewModel:
    return _view_model("auth", lambda: AuthViewModel(get_auth_client()))


def get_shopping_view_model() -> ShoppingCartViewModel:
    return _view_model("shopping", lambda: ShoppingCartViewModel(get_local_db().shopping_items))


def get_cleaning_view_model() -> CleaningReminderViewModel:
    return _view_model(
        "cleaning",
        lambda: CleaningReminderViewModel(get_local_db().cleaning_reminders, get_cleaning_sync()),
    )


def get_contacts_view_model() -> ContactsViewModel:
    return _view_model(
        "contacts", lambda: ContactsViewModel(get_local_db().contacts, get_contact_sync())
    )


def get_appointments_view_model() -> DoctorAppointmentsViewModel:
    return _view_model(
        "appointments",
        lambda: DoctorAppointmentsViewModel(
            get_local_db().doctor_appointments, get_appointment_sync()
        ),
    )


def get_meals_view_model() -> MealsViewModel:
    return _view_model(
        "meals", lambda: MealsViewModel(get_local_db().shopping_items, get_recipe_client())
    )


def get_dashboard_view_model() -> DashboardViewModel:
    return _view_model(
        "dashboard",
        lambda: DashboardViewModel(
            get_local_db().shopping_items, get_local_db().cleaning_reminders
        ),
    )


def _build_household_view_model() -> HouseholdViewModel:
    view_model = HouseholdViewModel(get_household_repository())
    # Mirrored lists follow the user into a joined or new household.
    for synced in (
        get_cleaning_view_model(),
        get_contacts_view_model(),
        get_appointments_view_model(),
    ):
        view_model.on_household_changed(synced.on_household_id_changed)
    return view_model


def get_household_view_model() -> HouseholdViewModel:
    return _view_model("household", _build_household_view_model)


def get_synced_view_models() -> list:
    return [
        get_cleaning_view_model(),
        get_contacts_view_model(),
        get_appointments_view_model(),
    ]


def reset_dependencies() -> None:
    """Drops every singleton (useful in tests)."""
    global _local_db, _document_store, _auth_client, _household_repository
    global _cleaning_sync, _contact_sync, _appointment_sync, _recipe_client, _notifier
    for synced in (_cleaning_sync, _contact_sync, _appointment_sync):
        if synced:
            synced.clear()
    if _local_db:
        _local_db.close()
    _local_db = None
    _document_store = None
    _auth_client = None
    _household_repository = None
    _cleaning_sync = None
    _contact_sync = None
    _appointment_sync = None
    _recipe_client = None
    _notifier = None
    _view_models.clear()
