"""
FastAPI dependencies shared by the controllers
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from database.connection import get_db
from services.patient_store import PatientStore


async def get_patient_store(
    request: Request, db: AsyncSession = Depends(get_db)
) -> PatientStore:
    return PatientStore(db, request.app.state.cipher)
