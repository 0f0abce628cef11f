import os

# Settings are read at import time, so the environment goes first
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.main import app
from app.core.config import settings
from app.core.database import get_db, Base
from app.core.security import UserRole, get_password_hash, create_user_token
from app.models.user import User
from app.models.patient import Patient
from app.models.doctor import Doctor
from app.models.staff import Pharmacist, LabTechnician

DEFAULT_PASSWORD = "Password123"

engine = create_engine(
    settings.get_database_url, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db(test_db):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def client(test_db):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

@pytest.fixture
def make_user(db):
    """Factory: insert a user of the given role, with its profile row."""
    counter = {"n": 0}

    def _make_user(role=UserRole.PATIENT, username=None, full_name="Test User",
                   is_active=True, with_profile=True, **profile):
        counter["n"] += 1
        role = UserRole(role).value
        username = username or f"{role}{counter['n']}"
        first_name, _, last_name = full_name.partition(" ")

        user = User(
            first_name=first_name,
            last_name=last_name,
            email=f"{username}@example.com",
            username=username,
            password_hash=get_password_hash(DEFAULT_PASSWORD),
            role=role,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        if with_profile:
            profile_model = {
                UserRole.PATIENT.value: Patient,
                UserRole.DOCTOR.value: Doctor,
                UserRole.PHARMACIST.value: Pharmacist,
                UserRole.LAB_TECHNICIAN.value: LabTechnician,
            }.get(role)
            if profile_model is not None:
                db.add(profile_model(user_id=user.id, **profile))
                db.commit()
                db.refresh(user)
        return user

    return _make_user

def auth_headers(user):
    token = create_user_token(user.id, user.username, user.role)
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def admin(make_user):
    return make_user(UserRole.ADMIN, username="admin", full_name="Ada Admin")

@pytest.fixture
def doctor(make_user):
    return make_user(UserRole.DOCTOR, username="drhouse", full_name="Greg House",
                     specialization="Diagnostics")

@pytest.fixture
def patient(make_user):
    return make_user(UserRole.PATIENT, username="janedoe", full_name="Jane Doe",
                     health_id="HID-001", nic="901234567V", rfid="RFID00123456")

@pytest.fixture
def headers():
    """Return a callable building the Authorization header for a user."""
    return auth_headers
