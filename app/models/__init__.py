"""Database models."""

from app.models.appointments import appointments
from app.models.references import appointment_tags, clinic_users, contacts, users

__all__ = [
    "appointment_tags",
    "appointments",
    "clinic_users",
    "contacts",
    "users",
]
