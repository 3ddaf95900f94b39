"""
Patient record store

Owns the record lifecycle (active -> soft deleted -> restored or purged) and
the visibility rules applied to every read. Sensitive columns go through the
field cipher on the way in and out.
"""

import enum
import logging
import re
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, or_, select, true
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.patient import (
    BUSINESS_FIELDS,
    ENCRYPTABLE_FIELDS,
    GENDERS,
    SYSTEM_FIELDS,
    Patient,
)
from schemas.patient import PatientListResponse, PatientResponse
from services.errors import (
    ConfigurationError,
    DuplicateEmail,
    NotFound,
    StorageUnavailable,
    ValidationFailed,
)
from utils.encryption import FieldCipher

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^[0-9]{11}$")
ZIP_CODE_RE = re.compile(r"^[0-9]{4}$")

REQUIRED_TEXT_FIELDS = {
    "first_name": "First name is required",
    "last_name": "Last name is required",
    "address": "Address is required",
    "city": "City is required",
    "state": "State is required",
}
OPTIONAL_TEXT_FIELDS = ("emergency_contact_name", "emergency_contact_phone")
SEARCH_FIELDS = ("first_name", "last_name", "email", "phone")


class RecordScope(str, enum.Enum):
    ACTIVE = "active"
    DELETED = "deleted"
    ALL = "all"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _scope_filter(scope: RecordScope):
    if scope is RecordScope.ACTIVE:
        return Patient.deleted_at.is_(None)
    if scope is RecordScope.DELETED:
        return Patient.is_deleted
    return true()


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            return None
    return None


def validate_fields(values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check a complete set of business fields.

    Returns the values with ``date_of_birth`` coerced to a ``date``. Raises
    ValidationFailed listing every bad field.
    """
    errors: Dict[str, str] = {}
    cleaned = dict(values)

    for name, message in REQUIRED_TEXT_FIELDS.items():
        value = values.get(name)
        if not isinstance(value, str) or not value.strip():
            errors[name] = message

    for name in OPTIONAL_TEXT_FIELDS:
        value = values.get(name)
        if value is not None and not isinstance(value, str):
            errors[name] = "Must be a string"

    birth_date = _parse_date(values.get("date_of_birth"))
    if birth_date is None:
        errors["date_of_birth"] = "Date of birth is required"
    elif birth_date > date.today():
        errors["date_of_birth"] = "Date of birth cannot be in the future"
    else:
        cleaned["date_of_birth"] = birth_date

    if values.get("gender") not in GENDERS:
        errors["gender"] = "Gender must be one of " + ", ".join(GENDERS)

    email = values.get("email")
    try:
        if not isinstance(email, str):
            raise EmailNotValidError("missing")
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        errors["email"] = "Please include a valid email"

    phone = values.get("phone")
    if not isinstance(phone, str) or not PHONE_RE.match(phone):
        errors["phone"] = "Phone number must be exactly 11 digits"

    zip_code = values.get("zip_code")
    if not isinstance(zip_code, str) or not ZIP_CODE_RE.match(zip_code):
        errors["zip_code"] = "Zip code must be exactly 4 digits"

    if errors:
        raise ValidationFailed(errors)
    return cleaned


def build_field_cipher(secret: str, fields: Iterable[str]) -> FieldCipher:
    """
    Derive the process key and check the encrypted field list.

    Only free-text columns that are never searched or compared can be
    encrypted; ciphertext with a random IV cannot be matched.
    """
    fields = tuple(fields)
    invalid = sorted(set(fields) - set(ENCRYPTABLE_FIELDS))
    if invalid:
        raise ConfigurationError(
            "Cannot encrypt fields: "
            + ", ".join(invalid)
            + " (allowed: "
            + ", ".join(ENCRYPTABLE_FIELDS)
            + ")"
        )
    return FieldCipher.from_secret(secret, fields)


class PatientStore:
    """Lifecycle operations on patient rows, one record per call"""

    def __init__(self, session: AsyncSession, cipher: FieldCipher):
        self.session = session
        self.cipher = cipher

    @asynccontextmanager
    async def _storage(self, action: str):
        try:
            yield
        except (SQLAlchemyError, OSError) as exc:
            logger.error(
                "Storage failure while trying to %s: %s",
                action,
                exc,
                extra={"event": "storage_error"},
            )
            try:
                await self.session.rollback()
            except SQLAlchemyError:
                logger.exception("Rollback failed after storage error")
            raise StorageUnavailable(action) from exc

    def _to_record(self, patient: Patient) -> PatientResponse:
        return PatientResponse.model_validate(
            self.cipher.decrypt_fields(patient.to_dict())
        )

    @staticmethod
    def _business_values(fields: Dict[str, Any]) -> Dict[str, Any]:
        unknown = set(fields) - set(BUSINESS_FIELDS) - set(SYSTEM_FIELDS)
        if unknown:
            raise ValidationFailed({name: "Unknown field" for name in sorted(unknown)})
        # id and system-managed columns are never taken from the caller
        return {name: value for name, value in fields.items() if name in BUSINESS_FIELDS}

    async def _load(self, patient_id: UUID, scope: RecordScope) -> Patient:
        result = await self.session.execute(
            select(Patient).where(Patient.id == patient_id, _scope_filter(scope))
        )
        patient = result.scalar_one_or_none()
        if patient is None:
            raise NotFound(patient_id, scope.value)
        return patient

    async def _ensure_email_available(
        self, email: str, exclude_id: Optional[UUID] = None
    ) -> None:
        # Purged rows are gone, so every remaining row holds its email
        query = select(Patient.id).where(func.lower(Patient.email) == email.lower())
        if exclude_id is not None:
            query = query.where(Patient.id != exclude_id)
        result = await self.session.execute(query.limit(1))
        if result.scalar_one_or_none() is not None:
            raise DuplicateEmail(email)

    async def _commit(self, email: str) -> None:
        try:
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise DuplicateEmail(email) from exc

    async def _apply(
        self, patient_id: UUID, scope: RecordScope, action: str, **changes: Any
    ) -> Patient:
        async with self._storage(action):
            patient = await self._load(patient_id, scope)
            for name, value in changes.items():
                setattr(patient, name, value)
            patient.updated_at = _utcnow()
            await self.session.commit()
            await self.session.refresh(patient)
        return patient

    async def create(self, fields: Dict[str, Any]) -> PatientResponse:
        values = validate_fields(self._business_values(fields))

        async with self._storage("create patient"):
            await self._ensure_email_available(values["email"])

            now = _utcnow()
            patient = Patient(
                **self.cipher.encrypt_fields(values), created_at=now, updated_at=now
            )
            self.session.add(patient)
            await self._commit(values["email"])
            await self.session.refresh(patient)

        logger.info(
            "Patient registered",
            extra={"event": "patient_created", "patient_id": patient.id},
        )
        return self._to_record(patient)

    async def get_by_id(
        self, patient_id: UUID, scope: RecordScope = RecordScope.ACTIVE
    ) -> PatientResponse:
        async with self._storage("load patient"):
            patient = await self._load(patient_id, scope)
        return self._to_record(patient)

    async def list(
        self,
        scope: RecordScope = RecordScope.ACTIVE,
        page: int = 1,
        page_size: int = 10,
        search: Optional[str] = None,
    ) -> PatientListResponse:
        """
        Return one page of patients in ``scope``.

        Active patients are ordered newest first, deleted patients by most
        recently deleted. A page past the end is empty, not an error.
        """
        errors = {}
        if page < 1:
            errors["page"] = "Page must be at least 1"
        if page_size < 1:
            errors["page_size"] = "Page size must be at least 1"
        if errors:
            raise ValidationFailed(errors)

        conditions = [_scope_filter(scope)]
        search = (search or "").strip()
        if search:
            conditions.append(
                or_(
                    *(
                        getattr(Patient, name).icontains(search, autoescape=True)
                        for name in SEARCH_FIELDS
                    )
                )
            )

        if scope is RecordScope.DELETED:
            ordering = Patient.deleted_at.desc()
        else:
            ordering = Patient.created_at.desc()

        count_query = select(func.count(Patient.id)).where(*conditions)
        query = (
            select(Patient)
            .where(*conditions)
            .order_by(ordering, Patient.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        async with self._storage("list patients"):
            total = (await self.session.execute(count_query)).scalar_one()
            patients = (await self.session.execute(query)).scalars().all()

        return PatientListResponse(
            records=[self._to_record(p) for p in patients],
            total_pages=(total + page_size - 1) // page_size,
            current_page=page,
            total_records=total,
        )

    async def update(self, patient_id: UUID, fields: Dict[str, Any]) -> PatientResponse:
        """
        Merge ``fields`` over an active patient.

        Unsupplied fields keep their stored values; the merged record is
        validated as a whole.
        """
        changes = self._business_values(fields)

        async with self._storage("update patient"):
            patient = await self._load(patient_id, RecordScope.ACTIVE)
            current = self.cipher.decrypt_fields(patient.to_dict())

            merged = {name: current[name] for name in BUSINESS_FIELDS}
            merged.update(changes)
            values = validate_fields(merged)

            if values["email"].lower() != current["email"].lower():
                await self._ensure_email_available(values["email"], exclude_id=patient.id)

            updates = self.cipher.encrypt_fields({name: values[name] for name in changes})
            for name, value in updates.items():
                setattr(patient, name, value)
            patient.updated_at = _utcnow()

            await self._commit(values["email"])
            await self.session.refresh(patient)

        logger.info(
            "Patient updated",
            extra={"event": "patient_updated", "patient_id": patient.id},
        )
        return self._to_record(patient)

    async def soft_delete(self, patient_id: UUID) -> PatientResponse:
        patient = await self._apply(
            patient_id, RecordScope.ACTIVE, "soft delete patient", deleted_at=_utcnow()
        )
        logger.info(
            "Patient soft deleted",
            extra={"event": "patient_soft_deleted", "patient_id": patient_id},
        )
        return self._to_record(patient)

    async def restore(self, patient_id: UUID) -> PatientResponse:
        patient = await self._apply(
            patient_id, RecordScope.DELETED, "restore patient", deleted_at=None
        )
        logger.info(
            "Patient restored",
            extra={"event": "patient_restored", "patient_id": patient_id},
        )
        return self._to_record(patient)

    async def check_in(self, patient_id: UUID) -> PatientResponse:
        patient = await self._apply(
            patient_id, RecordScope.ACTIVE, "check in patient", check_in_time=_utcnow()
        )
        return self._to_record(patient)

    async def reset_check_in(self, patient_id: UUID) -> PatientResponse:
        patient = await self._apply(
            patient_id, RecordScope.ACTIVE, "reset check-in", check_in_time=None
        )
        return self._to_record(patient)

    async def purge(self, patient_id: UUID) -> None:
        """Permanently remove a soft-deleted patient"""
        async with self._storage("purge patient"):
            patient = await self._load(patient_id, RecordScope.DELETED)
            await self.session.delete(patient)
            await self.session.commit()

        logger.info(
            "Patient permanently deleted",
            extra={"event": "patient_purged", "patient_id": patient_id},
        )
