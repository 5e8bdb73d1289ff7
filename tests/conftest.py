"""
Shared fixtures – an in-memory clinic database with one user per role.
"""

import uuid
from datetime import date, datetime, time, timedelta

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.pool import StaticPool

from smartclinic.database import enable_sqlite_foreign_keys
from smartclinic.models import AuthUser, CallContext, utcnow
from smartclinic.procedures.root import app_router
from smartclinic.router import call
from smartclinic.schema import appointments, clinical_notes, immunizations, metadata, patients, users

USERS = {
    "admin": ("Ada Admin", "admin"),
    "doctor": ("Dr. Dana Reyes", "doctor"),
    "doctor2": ("Dr. Omar Lind", "doctor"),
    "nurse": ("Nia Nurse", "nurse"),
    "member": ("Max Member", "member"),
}


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(eng)
    metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def accounts(engine):
    """{key: AuthUser} for the seeded users; each user's api key is ``key-<key>``."""
    created = {}
    with engine.begin() as conn:
        for key, (name, role) in USERS.items():
            user_id = str(uuid.uuid4())
            conn.execute(insert(users).values(
                id=user_id, name=name, email=f"{key}@clinic.test",
                role=role, api_key=f"key-{key}",
            ))
            created[key] = AuthUser(id=user_id, name=name, email=f"{key}@clinic.test", role=role)
    return created


@pytest.fixture
def ctx_for(engine, accounts):
    """ctx_for("doctor") -> CallContext for that user; ctx_for(None) is anonymous."""
    def make(key):
        return CallContext(engine=engine, user=accounts[key] if key else None)
    return make


@pytest.fixture
def run(ctx_for):
    """run("doctor", "appointment.list", {...}) -> procedure result."""
    def invoke(key, path, payload=None, kind=None):
        return call(app_router, ctx_for(key), path, payload, kind=kind)
    return invoke


# ── Row factories ────────────────────────────────────────────────────

def _insert(engine, table, values):
    values = {"id": str(uuid.uuid4()), **values}
    with engine.begin() as conn:
        conn.execute(insert(table).values(**values))
    return values


@pytest.fixture
def make_patient(engine):
    counter = iter(range(1, 10_000))

    def make(**overrides):
        values = {
            "medical_record_number": f"MRN-{next(counter):06d}",
            "first_name": "Lily",
            "last_name": "Hart",
            "date_of_birth": date(2019, 4, 2),
            "gender": "female",
            **overrides,
        }
        return _insert(engine, patients, values)
    return make


def today_at(hour: int) -> datetime:
    return datetime.combine(utcnow().date(), time(hour))


@pytest.fixture
def make_appointment(engine):
    def make(patient_id, doctor_id, **overrides):
        values = {
            "patient_id": patient_id,
            "doctor_id": doctor_id,
            "date": utcnow() + timedelta(days=3),
            "type": "check-up",
            "status": "scheduled",
            "reason": "Well-child visit",
            **overrides,
        }
        return _insert(engine, appointments, values)
    return make


@pytest.fixture
def make_note(engine):
    def make(patient_id, author_id, **overrides):
        values = {"patient_id": patient_id, "author_id": author_id, **overrides}
        return _insert(engine, clinical_notes, values)
    return make


@pytest.fixture
def make_immunization(engine):
    def make(patient_id, **overrides):
        values = {
            "patient_id": patient_id,
            "vaccine_name": "MMR",
            "administration_date": utcnow() - timedelta(days=90),
            "status": "administered",
            **overrides,
        }
        return _insert(engine, immunizations, values)
    return make


def future_iso(days: int = 5) -> str:
    return (utcnow() + timedelta(days=days)).replace(microsecond=0).isoformat()


def past_iso(days: int = 5) -> str:
    return (utcnow() - timedelta(days=days)).replace(microsecond=0).isoformat()
