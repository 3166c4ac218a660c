"""Collection names, document fields and limits shared across the service."""

USERS_COLLECTION = "users"
HOUSEHOLDS_COLLECTION = "households"

# Household sub-collections mirrored into the local store.
CLEANING_REMINDERS_COLLECTION = "cleaning_reminders"
CONTACTS_COLLECTION = "contacts"
DOCTOR_APPOINTMENTS_COLLECTION = "doctor_appointments"

# users/{uid}
FIELD_EMAIL = "email"
FIELD_EMAIL_LOWER = "emailLower"
FIELD_DISPLAY_NAME = "displayName"
FIELD_HOUSEHOLD_ID = "householdId"

# households/{id}
FIELD_NAME = "name"
FIELD_MEMBERS = "members"

DEFAULT_HOUSEHOLD_NAME_BASE = "Household"
SOLO_HOUSEHOLD_NAME = "My household"

# Doctor appointment input limits.
MAX_DOCTOR_NAME_CHARS = 60
MAX_OFFICE_NAME_CHARS = 60
MAX_PHONE_DIGITS = 15
MIN_INTERVAL_MONTHS = 1
MAX_INTERVAL_MONTHS = 60

# Cleaning reminder notifications.
CLEANING_CHANNEL_ID = "cleaning_reminders_channel"
CLEANING_NOTIFICATION_ID = 1001
CLEANING_NOTIFICATION_TITLE = "Cleaning reminder"

# Recipe lookup defaults.
RECIPE_RESULT_COUNT = 5
RECIPE_RANKING = 2
