"""Read-only views of tables owned by other parts of the platform.

The scheduling service never writes to these tables. It only checks that the
contact, practitioner and tag referenced by an appointment exist inside the
caller's clinic. Columns not needed for those checks are omitted.
"""

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    Table,
    Text,
    text,
)

metadata = MetaData()

contacts = Table(
    "contacts",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("clinic_id", Integer, nullable=False, index=True),
    Column("name", Text, nullable=False),
)

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
)

# Practitioner membership in a clinic
clinic_users = Table(
    "clinic_users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("clinic_id", Integer, nullable=False, index=True),
    Column("user_id", Integer, nullable=False, index=True),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
)

appointment_tags = Table(
    "appointment_tags",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("clinic_id", Integer, nullable=False, index=True),
    Column("name", Text, nullable=False),
    Column("color", Text, nullable=True),
)
