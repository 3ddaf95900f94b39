"""
Patient check-in controller
"""

from fastapi import APIRouter, Depends
from uuid import UUID

from schemas.patient import PatientResponse
from services.patient_store import PatientStore
from utils.dependencies import get_patient_store

router = APIRouter()


@router.put("/{patient_id}", response_model=PatientResponse)
async def check_in_patient(
    patient_id: UUID,
    store: PatientStore = Depends(get_patient_store),
):
    """
    Check in a patient at the current time
    """
    return await store.check_in(patient_id)


@router.put("/{patient_id}/reset", response_model=PatientResponse)
async def reset_check_in(
    patient_id: UUID,
    store: PatientStore = Depends(get_patient_store),
):
    """
    Clear a patient's check-in time
    """
    return await store.reset_check_in(patient_id)
