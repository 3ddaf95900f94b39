"""
Patient data model
"""

import enum
import uuid

from sqlalchemy import Column, Date, DateTime, Enum, String, Text, Uuid
from sqlalchemy.ext.hybrid import hybrid_property
from database.connection import Base

GENDERS = ("Male", "Female", "Other")

# Columns the caller may set; everything else is managed by the store
BUSINESS_FIELDS = (
    "first_name",
    "last_name",
    "date_of_birth",
    "gender",
    "email",
    "phone",
    "address",
    "city",
    "state",
    "zip_code",
    "emergency_contact_name",
    "emergency_contact_phone",
)

# Free-text columns wide enough for ciphertext and never searched or compared
ENCRYPTABLE_FIELDS = (
    "address",
    "emergency_contact_name",
    "emergency_contact_phone",
)

SYSTEM_FIELDS = (
    "id",
    "check_in_time",
    "is_deleted",
    "deleted_at",
    "created_at",
    "updated_at",
)


class LifecycleState(str, enum.Enum):
    ACTIVE = "active"
    SOFT_DELETED = "soft_deleted"
    # A purged record no longer has a row
    PURGED = "purged"


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(Enum(*GENDERS, name="patient_gender"), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(11), nullable=False)
    # Encrypted columns are Text: hex IV + ciphertext outgrows the plaintext
    address = Column(Text, nullable=False)
    city = Column(String(255), nullable=False)
    state = Column(String(255), nullable=False)
    zip_code = Column(String(4), nullable=False)
    emergency_contact_name = Column(Text)
    emergency_contact_phone = Column(Text)
    check_in_time = Column(DateTime(timezone=True))
    # Single soft-delete marker; is_deleted is derived from it
    deleted_at = Column(DateTime(timezone=True), index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    @hybrid_property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @is_deleted.expression
    def is_deleted(cls):
        return cls.deleted_at.is_not(None)

    @property
    def lifecycle_state(self) -> LifecycleState:
        if self.deleted_at is None:
            return LifecycleState.ACTIVE
        return LifecycleState.SOFT_DELETED

    def to_dict(self):
        return {
            "id": self.id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "date_of_birth": self.date_of_birth,
            "gender": self.gender,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "emergency_contact_name": self.emergency_contact_name,
            "emergency_contact_phone": self.emergency_contact_phone,
            "check_in_time": self.check_in_time,
            "is_deleted": self.is_deleted,
            "deleted_at": self.deleted_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
