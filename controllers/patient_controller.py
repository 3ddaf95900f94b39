"""
Patient management controller
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
from uuid import UUID

from schemas.patient import (
    PatientActionResponse,
    PatientCreate,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
)
from services.patient_store import PatientStore, RecordScope
from utils.dependencies import get_patient_store

router = APIRouter()


@router.get("", response_model=PatientListResponse)
async def list_patients(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(
        None, description="Search by first name, last name, email or phone"
    ),
    store: PatientStore = Depends(get_patient_store),
):
    """
    List active patients with pagination and optional search
    """
    return await store.list(RecordScope.ACTIVE, page=page, page_size=limit, search=search)


@router.get("/deleted/all", response_model=PatientListResponse)
async def list_deleted_patients(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None),
    store: PatientStore = Depends(get_patient_store),
):
    """
    List soft-deleted patients, most recently deleted first
    """
    return await store.list(RecordScope.DELETED, page=page, page_size=limit, search=search)


@router.get("/deleted/{patient_id}", response_model=PatientResponse)
async def get_deleted_patient(
    patient_id: UUID,
    store: PatientStore = Depends(get_patient_store),
):
    return await store.get_by_id(patient_id, RecordScope.DELETED)


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(
    patient_id: UUID,
    store: PatientStore = Depends(get_patient_store),
):
    """
    Get patient details by ID
    """
    return await store.get_by_id(patient_id, RecordScope.ACTIVE)


@router.post("", response_model=PatientResponse, status_code=201)
async def create_patient(
    patient_data: PatientCreate,
    store: PatientStore = Depends(get_patient_store),
):
    """
    Register a new patient
    """
    return await store.create(patient_data.model_dump())


@router.put("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: UUID,
    patient_data: PatientUpdate,
    store: PatientStore = Depends(get_patient_store),
):
    """
    Update patient information

    Only the fields present in the request body are changed.
    """
    return await store.update(patient_id, patient_data.model_dump(exclude_unset=True))


@router.delete("/{patient_id}", response_model=PatientActionResponse)
async def delete_patient(
    patient_id: UUID,
    store: PatientStore = Depends(get_patient_store),
):
    """
    Soft delete a patient; the record can still be restored
    """
    await store.soft_delete(patient_id)
    return PatientActionResponse(message="Patient removed", patient_id=patient_id)


@router.put("/{patient_id}/restore", response_model=PatientResponse)
async def restore_patient(
    patient_id: UUID,
    store: PatientStore = Depends(get_patient_store),
):
    """
    Restore a soft-deleted patient
    """
    return await store.restore(patient_id)


@router.delete("/{patient_id}/permanent", response_model=PatientActionResponse)
async def permanently_delete_patient(
    patient_id: UUID,
    store: PatientStore = Depends(get_patient_store),
):
    """
    Permanently delete a soft-deleted patient
    """
    await store.purge(patient_id)
    return PatientActionResponse(
        message="Patient permanently deleted", patient_id=patient_id
    )
