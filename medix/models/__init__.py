"""Database models."""

from medix.models.appointments import appointments
from medix.models.base import metadata
from medix.models.doctor_schedules import doctor_schedule_overrides, doctor_schedules
from medix.models.doctors import doctors
from medix.models.notifications import notifications, push_tokens
from medix.models.patients import patients
from medix.models.users import users
from medix.models.wallets import wallet_transactions, wallets

__all__ = [
    "appointments",
    "doctor_schedule_overrides",
    "doctor_schedules",
    "doctors",
    "metadata",
    "notifications",
    "patients",
    "push_tokens",
    "users",
    "wallet_transactions",
    "wallets",
]
