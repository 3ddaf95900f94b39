from datetime import date

import pytest
import pytest_asyncio

from database.connection import create_engine, create_session_factory, create_tables
from services.patient_store import PatientStore, build_field_cipher
from utils.config import DEFAULT_ENCRYPTED_FIELDS

TEST_SECRET = "test-encryption-secret"


@pytest.fixture
def cipher():
    return build_field_cipher(TEST_SECRET, DEFAULT_ENCRYPTED_FIELDS)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'patients.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    async with create_session_factory(engine)() as session:
        yield session


@pytest.fixture
def store(session, cipher):
    return PatientStore(session, cipher)


@pytest.fixture
def patient_fields():
    def _make(index: int = 0, **overrides) -> dict:
        fields = {
            "first_name": f"Sara{index}",
            "last_name": "Ahmadi",
            "date_of_birth": date(1990, 5, 17),
            "gender": "Female",
            "email": f"patient{index}@example.com",
            "phone": f"0912345{index:04d}",
            "address": "12 Valiasr St, Unit 3",
            "city": "Tehran",
            "state": "Tehran",
            "zip_code": "1234",
            "emergency_contact_name": "Reza Ahmadi",
            "emergency_contact_phone": "09120000000",
        }
        fields.update(overrides)
        return fields

    return _make
