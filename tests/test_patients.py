"""
Patient procedures – registration, search and pediatric summaries.
"""

from datetime import timedelta

import pytest
from sqlalchemy import insert

from smartclinic.errors import Forbidden, NotFound, ValidationError
from smartclinic.models import utcnow
from smartclinic.schema import medical_history, patient_allergies

from conftest import past_iso

MISSING_ID = "00000000-0000-4000-8000-000000000000"


def registration(**overrides):
    payload = {
        "medical_record_number": "MRN-000123",
        "first_name": "Noah",
        "last_name": "Okafor",
        "date_of_birth": "2020-06-15",
        "gender": "male",
        "allergies": ["peanuts"],
    }
    payload.update(overrides)
    return payload


def test_doctor_registers_patient(run, accounts):
    patient = run("doctor", "patient.create", registration())
    assert patient["created_by"] == accounts["doctor"].id
    assert patient["allergies"] == ["peanuts"]
    assert patient["is_active"] is True


@pytest.mark.parametrize("who", ["nurse", "member"])
def test_non_doctors_cannot_register(run, who):
    with pytest.raises(Forbidden):
        run(who, "patient.create", registration())


def test_registration_validation(run, make_patient):
    with pytest.raises(ValidationError) as e:
        run("doctor", "patient.create", registration(medical_record_number="123"))
    assert e.value.details[0]["field"] == "medical_record_number"

    tomorrow = (utcnow() + timedelta(days=1)).date().isoformat()
    with pytest.raises(ValidationError):
        run("doctor", "patient.create", registration(date_of_birth=tomorrow))

    make_patient(medical_record_number="MRN-000123")
    with pytest.raises(ValidationError, match="already in use"):
        run("doctor", "patient.create", registration())


def test_member_delete_is_forbidden(run, make_patient):
    patient = make_patient()
    with pytest.raises(Forbidden, match="Required: admin"):
        run("member", "patient.delete", {"id": patient["id"]})


def test_admin_delete(run, make_patient):
    patient = make_patient()
    assert run("admin", "patient.delete", {"id": patient["id"]})["id"] == patient["id"]
    with pytest.raises(NotFound):
        run("admin", "patient.delete", {"id": patient["id"]})


def test_list_search_and_active_filter(run, make_patient):
    make_patient(first_name="Ava", last_name="Stone", phone="555-0100")
    make_patient(first_name="Liam", last_name="Stoneman", is_active=False)
    make_patient(first_name="Mia", last_name="Park")

    assert run("member", "patient.list", {"search": "Stone"})["pagination"]["total"] == 2
    assert run("member", "patient.list", {"search": "555-01"})["pagination"]["total"] == 1
    assert run("member", "patient.list", {"is_active": False})["data"][0]["first_name"] == "Liam"
    assert run("member", "patient.list")["pagination"]["total"] == 3


def test_get_by_id_is_idempotent(run, make_patient):
    patient = make_patient()
    assert run("nurse", "patient.getById", {"id": patient["id"]}) == \
        run("nurse", "patient.getById", {"id": patient["id"]})
    with pytest.raises(NotFound):
        run("nurse", "patient.getById", {"id": MISSING_ID})


def test_update_tracks_editor_and_mrn_uniqueness(run, accounts, make_patient):
    patient = make_patient()
    other = make_patient()

    updated = run("doctor", "patient.update", {"id": patient["id"], "notes": "Asthmatic"})
    assert updated["notes"] == "Asthmatic"
    assert updated["updated_by"] == accounts["doctor"].id
    assert updated["first_name"] == patient["first_name"]

    # keeping its own MRN is not a collision
    run("doctor", "patient.update", {"id": patient["id"], "medical_record_number": patient["medical_record_number"]})
    with pytest.raises(ValidationError, match="already in use"):
        run("doctor", "patient.update", {"id": patient["id"], "medical_record_number": other["medical_record_number"]})


def test_medical_history_and_active_allergies(run, engine, make_patient):
    patient = make_patient()
    with engine.begin() as conn:
        conn.execute(insert(medical_history).values(
            id="10000000-0000-4000-8000-000000000001", patient_id=patient["id"],
            condition="Asthma", diagnosis_date=utcnow() - timedelta(days=400)))
        conn.execute(insert(medical_history).values(
            id="10000000-0000-4000-8000-000000000002", patient_id=patient["id"],
            condition="Otitis media", diagnosis_date=utcnow() - timedelta(days=20)))
        conn.execute(insert(patient_allergies).values(
            id="20000000-0000-4000-8000-000000000001", patient_id=patient["id"],
            allergen="Penicillin", severity="high"))
        conn.execute(insert(patient_allergies).values(
            id="20000000-0000-4000-8000-000000000002", patient_id=patient["id"],
            allergen="Eggs", severity="low", is_active=False))

    history = run("doctor", "patient.getMedicalHistory", {"patient_id": patient["id"]})
    assert [h["condition"] for h in history] == ["Otitis media", "Asthma"]

    allergies = run("doctor", "patient.getAllergies", {"patient_id": patient["id"]})
    assert [a["allergen"] for a in allergies] == ["Penicillin"]

    with pytest.raises(Forbidden):
        run("nurse", "patient.getAllergies", {"patient_id": patient["id"]})


def test_pediatric_stats(run, accounts, make_patient, make_note):
    patient = make_patient()
    now = utcnow()
    make_note(patient["id"], accounts["doctor"].id, created_at=now - timedelta(days=10),
              vital_signs={"height": 100.0, "weight": 16.0})
    make_note(patient["id"], accounts["doctor"].id, created_at=now - timedelta(days=1),
              vital_signs={"temperature": 37.9})

    stats = run("doctor", "patient.getPediatricStats", {"patient_id": patient["id"]})
    assert stats["latest_vitals"] == {"temperature": 37.9}
    assert [p["height"] for p in stats["growth_data"]] == [100.0]

    empty = run("doctor2", "patient.getPediatricStats", {"patient_id": patient["id"]})
    assert empty == {"growth_data": [], "latest_vitals": None}


def test_delete_removes_dependent_clinical_rows(run, accounts, make_patient, make_appointment,
                                                make_note, make_immunization):
    patient = make_patient()
    appt = make_appointment(patient["id"], accounts["doctor"].id)
    note = make_note(patient["id"], accounts["doctor"].id, appointment_id=appt["id"])
    make_immunization(patient["id"])
    expense = run("nurse", "expense.create", {
        "type": "income", "category": "consultation", "amount": "75",
        "description": "Visit fee", "transaction_date": past_iso(1),
        "patient_id": patient["id"], "appointment_id": appt["id"],
    })

    run("admin", "patient.delete", {"id": patient["id"]})

    listed = run("doctor", "appointment.list")
    assert listed["pagination"]["total"] == 0
    assert listed["data"] == []
    with pytest.raises(NotFound):
        run("doctor", "appointment.update", {"id": appt["id"], "notes": "x"})
    with pytest.raises(NotFound):
        run("doctor", "clinicalNote.delete", {"id": note["id"]})
    assert run("doctor", "immunization.list")["pagination"]["total"] == 0

    # financial history outlives the patient
    kept = run("member", "expense.getById", {"id": expense["id"]})
    assert kept["expense"]["patient_id"] is None
    assert kept["expense"]["appointment_id"] is None
    assert kept["patient"] is None
