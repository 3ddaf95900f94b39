"""
Errors raised by the patient record store
"""

from typing import Dict, Optional
from uuid import UUID


class PatientStoreError(Exception):
    """Base class for record store failures"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(PatientStoreError):
    """No record matches the id within the requested scope"""

    def __init__(self, patient_id: UUID, scope: Optional[str] = None):
        label = "Deleted patient" if scope == "deleted" else "Patient"
        super().__init__(f"{label} not found")
        self.patient_id = patient_id
        self.scope = scope


class DuplicateEmail(PatientStoreError):
    def __init__(self, email: str):
        super().__init__("Patient with this email already exists")
        self.email = email


class ValidationFailed(PatientStoreError):
    """One or more field values are malformed; ``errors`` maps field to message"""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("Validation failed")
        self.errors = errors


class StorageUnavailable(PatientStoreError):
    """The database call failed; not retried"""

    def __init__(self, action: str):
        super().__init__(f"Storage unavailable while trying to {action}")
        self.action = action


class ConfigurationError(Exception):
    """Raised at start-up when settings cannot be used"""
