"""
Patient Pydantic schemas for request/response validation
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import date, datetime
from uuid import UUID

GENDER_PATTERN = "^(Male|Female|Other)$"
PHONE_PATTERN = "^[0-9]{11}$"
ZIP_CODE_PATTERN = "^[0-9]{4}$"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _not_in_future(value: Optional[date]) -> Optional[date]:
    if value is not None and value > date.today():
        raise ValueError("Date of birth cannot be in the future")
    return value


class PatientBase(CamelModel):
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field(..., min_length=1, max_length=255)
    date_of_birth: date
    gender: str = Field(..., pattern=GENDER_PATTERN)
    # Syntax is checked by the store so the address is kept exactly as sent
    email: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., pattern=PHONE_PATTERN)
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1, max_length=255)
    state: str = Field(..., min_length=1, max_length=255)
    zip_code: str = Field(..., pattern=ZIP_CODE_PATTERN)
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None


class PatientCreate(PatientBase):
    @field_validator("date_of_birth")
    @classmethod
    def check_birth_date(cls, value: date) -> date:
        return _not_in_future(value)


class PatientUpdate(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=255)
    last_name: Optional[str] = Field(None, min_length=1, max_length=255)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, pattern=GENDER_PATTERN)
    email: Optional[str] = Field(None, min_length=1, max_length=255)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    address: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1, max_length=255)
    state: Optional[str] = Field(None, min_length=1, max_length=255)
    zip_code: Optional[str] = Field(None, pattern=ZIP_CODE_PATTERN)
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None

    @field_validator("date_of_birth")
    @classmethod
    def check_birth_date(cls, value: Optional[date]) -> Optional[date]:
        return _not_in_future(value)


class PatientResponse(CamelModel):
    """A patient as returned to callers, with sensitive fields decrypted"""

    id: UUID
    first_name: str
    last_name: str
    date_of_birth: date
    gender: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    zip_code: str
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    check_in_time: Optional[datetime] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class PatientListResponse(CamelModel):
    records: list[PatientResponse]
    total_pages: int
    current_page: int
    total_records: int


class PatientActionResponse(CamelModel):
    message: str
    patient_id: UUID
