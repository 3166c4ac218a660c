"""
Per-screen state holders. Each one exposes observable state or streams plus
mutation methods; failures are logged and surfaced on the state instead of
raised.
"""

from helpinghand.viewmodels.appointments import DoctorAppointmentsViewModel
from helpinghand.viewmodels.auth import AuthUiState, AuthViewModel
from helpinghand.viewmodels.cleaning import CleaningReminderViewModel
from helpinghand.viewmodels.contacts import ContactsViewModel
from helpinghand.viewmodels.dashboard import DashboardViewModel
from helpinghand.viewmodels.household import HouseholdUiState, HouseholdViewModel
from helpinghand.viewmodels.meals import MealsViewModel
from helpinghand.viewmodels.shopping import ShoppingCartViewModel

__all__ = [
    "AuthUiState",
    "AuthViewModel",
    "CleaningReminderViewModel",
    "ContactsViewModel",
    "DashboardViewModel",
    "DoctorAppointmentsViewModel",
    "HouseholdUiState",
    "HouseholdViewModel",
    "MealsViewModel",
    "ShoppingCartViewModel",
]
