"""
Populate a development database with fake clinic data.

Usage: DB_URI=sqlite:///clinic.db python scripts/seed.py
"""

import random
import uuid
from datetime import datetime, timedelta

from faker import Faker
from sqlalchemy import insert

from smartclinic.database import init_engine, init_schema
from smartclinic.models import utcnow
from smartclinic.schema import (
    APPOINTMENT_STATUSES,
    APPOINTMENT_TYPES,
    BLOOD_TYPES,
    EXPENSE_CATEGORIES,
    PRIORITY_LEVELS,
    appointments,
    budgets,
    clinical_notes,
    expenses,
    immunizations,
    medical_history,
    patient_allergies,
    patients,
    users,
)

# --------------------------------------------------------------------
# CONFIG
# --------------------------------------------------------------------
NUM_DOCTORS = 3
NUM_PATIENTS = 40

# how many rows for each child table per patient
PER_PATIENT = {
    "appointments": (0, 4),
    "immunizations": (1, 5),
    "clinical_notes": (0, 4),
    "medical_history": (0, 2),
    "patient_allergies": (0, 2),
    "expenses": (0, 3),
}

VACCINES = ("DTaP", "Hib", "IPV", "MMR", "Varicella", "HepB", "PCV13", "Influenza")

# --------------------------------------------------------------------
# SETUP
# --------------------------------------------------------------------
fake = Faker()
random.seed(42)
Faker.seed(42)


# --------------------------------------------------------------------
# HELPERS
# --------------------------------------------------------------------
def new_id():
    return str(uuid.uuid4())


def random_bool(p_true=0.5):
    return random.random() < p_true


def random_datetime_within(days_back=365):
    now = utcnow()
    delta = timedelta(days=random.randint(0, days_back), seconds=random.randint(0, 86400))
    return now - delta


def per_patient_count(table_name):
    lo, hi = PER_PATIENT.get(table_name, (0, 0))
    if hi <= 0:
        return 0
    return random.randint(lo, hi)


# --------------------------------------------------------------------
# SEED FUNCTIONS
# --------------------------------------------------------------------
def seed_users(conn, n_doctors=NUM_DOCTORS):
    """Admin, doctors, a nurse and a front-desk member; returns {role: [(id, api_key)]}."""
    specs = [("admin", "Clinic Admin")]
    specs += [("doctor", f"Dr. {fake.first_name()} {fake.last_name()}") for _ in range(n_doctors)]
    specs += [("nurse", f"{fake.name()}, RN"), ("member", fake.name())]

    rows, created = [], {}
    for role, name in specs:
        row = {
            "id": new_id(),
            "name": name,
            "email": fake.unique.email(),
            "role": role,
            "gender": random.choice(["male", "female"]),
            "api_key": f"sc_{role}_{fake.unique.pystr(min_chars=24, max_chars=24)}",
            "is_active": True,
            "banned": False,
        }
        rows.append(row)
        created.setdefault(role, []).append((row["id"], row["api_key"]))
    conn.execute(insert(users), rows)
    return created


def seed_patients(conn, creator_ids, n=NUM_PATIENTS):
    rows = []
    for i in range(1, n + 1):
        rows.append(
            {
                "id": new_id(),
                "medical_record_number": f"MRN-{i:06d}",
                "first_name": fake.first_name(),
                "last_name": fake.last_name(),
                "date_of_birth": fake.date_of_birth(minimum_age=0, maximum_age=17),
                "gender": random.choice(["male", "female"]),
                "blood_type": random.choice(BLOOD_TYPES) if random_bool(0.7) else None,
                "phone": fake.phone_number(),
                "email": fake.email() if random_bool(0.5) else None,
                "address": fake.address(),
                "emergency_contact_name": fake.name(),
                "emergency_contact_phone": fake.phone_number(),
                "emergency_contact_relation": random.choice(["mother", "father", "guardian"]),
                "insurance_provider": random.choice(["Aetna", "BlueCross", "Medicaid", None]),
                "allergies": [],
                "current_medications": [],
                "pre_existing_conditions": [],
                "is_active": random_bool(0.95),
                "created_at": random_datetime_within(365),
                "created_by": random.choice(creator_ids),
            }
        )
    conn.execute(insert(patients), rows)
    return [r["id"] for r in rows]


def seed_appointments(conn, patient_ids, doctor_ids, creator_ids):
    rows = []
    for pid in patient_ids:
        for _ in range(per_patient_count("appointments")):
            when = utcnow() + timedelta(days=random.randint(-60, 60), hours=random.randint(8, 17))
            rows.append(
                {
                    "id": new_id(),
                    "patient_id": pid,
                    "doctor_id": random.choice(doctor_ids),
                    "appointment_price_in_cents": random.choice([0, 5000, 7500, 12000]),
                    "date": when,
                    "duration": random.choice([15, 30, 45]),
                    "type": random.choice(APPOINTMENT_TYPES),
                    "status": "scheduled" if when > utcnow() else random.choice(APPOINTMENT_STATUSES),
                    "priority": random.choice(PRIORITY_LEVELS),
                    "reason": fake.sentence(nb_words=6),
                    "notes": fake.text(max_nb_chars=80),
                    "created_by": random.choice(creator_ids),
                }
            )
    if rows:
        conn.execute(insert(appointments), rows)
    return rows


def seed_immunizations(conn, patient_ids, doctor_ids):
    rows = []
    for pid in patient_ids:
        for dose in range(1, per_patient_count("immunizations") + 1):
            given = random_datetime_within(720)
            scheduled = random_bool(0.3)
            rows.append(
                {
                    "id": new_id(),
                    "patient_id": pid,
                    "vaccine_name": random.choice(VACCINES),
                    "manufacturer": fake.company(),
                    "lot_number": fake.bothify("??####").upper(),
                    "administration_date": given,
                    "next_due_date": given + timedelta(days=random.choice([60, 180, 365])),
                    "status": "scheduled" if scheduled else "administered",
                    "administered_by": random.choice(doctor_ids),
                    "dose_number": dose,
                    "total_doses": max(dose, 3),
                }
            )
    if rows:
        conn.execute(insert(immunizations), rows)


def seed_clinical_notes(conn, patient_ids, doctor_ids):
    rows = []
    for pid in patient_ids:
        height = random.uniform(50, 120)
        weight = random.uniform(3, 25)
        for _ in range(per_patient_count("clinical_notes")):
            height += random.uniform(0, 4)
            weight += random.uniform(0, 1.5)
            rows.append(
                {
                    "id": new_id(),
                    "patient_id": pid,
                    "author_id": random.choice(doctor_ids),
                    "subjective": fake.sentence(),
                    "objective": fake.sentence(),
                    "assessment": fake.sentence(),
                    "plan": fake.sentence(),
                    "vital_signs": {
                        "heart_rate": random.randint(70, 140),
                        "temperature": round(random.uniform(36.2, 38.5), 1),
                        "height": round(height, 1),
                        "weight": round(weight, 1),
                        "bmi": round(weight / (height / 100) ** 2, 1),
                    },
                    "created_at": random_datetime_within(365),
                }
            )
    if rows:
        conn.execute(insert(clinical_notes), rows)


def seed_history(conn, patient_ids, creator_ids):
    history, allergies = [], []
    for pid in patient_ids:
        for _ in range(per_patient_count("medical_history")):
            history.append(
                {
                    "id": new_id(),
                    "patient_id": pid,
                    "condition": random.choice(["Asthma", "Otitis media", "Eczema", "Bronchiolitis"]),
                    "diagnosis_date": random_datetime_within(1000),
                    "status": random.choice(["active", "resolved", "chronic"]),
                    "severity": random.choice(PRIORITY_LEVELS),
                    "created_by": random.choice(creator_ids),
                }
            )
        for _ in range(per_patient_count("patient_allergies")):
            allergies.append(
                {
                    "id": new_id(),
                    "patient_id": pid,
                    "allergen": random.choice(["Peanuts", "Penicillin", "Eggs", "Latex", "Dust mites"]),
                    "severity": random.choice(PRIORITY_LEVELS),
                    "reaction": random.choice(["Hives", "Swelling", "Rash", "Anaphylaxis"]),
                    "is_active": random_bool(0.85),
                }
            )
    if history:
        conn.execute(insert(medical_history), history)
    if allergies:
        conn.execute(insert(patient_allergies), allergies)


def seed_finances(conn, patient_ids, appointment_rows, admin_id):
    rows = []
    for appt in appointment_rows:
        if appt["status"] == "completed" and appt["appointment_price_in_cents"]:
            rows.append(
                {
                    "id": new_id(),
                    "type": "income",
                    "category": "consultation",
                    "amount": appt["appointment_price_in_cents"] / 100,
                    "description": f"Visit fee ({appt['type']})",
                    "transaction_date": appt["date"],
                    "patient_id": appt["patient_id"],
                    "appointment_id": appt["id"],
                    "payment_method": random.choice(["cash", "card", "insurance"]),
                    "created_by": admin_id,
                }
            )
    for _ in range(len(patient_ids)):
        rows.append(
            {
                "id": new_id(),
                "type": "outflow",
                "category": random.choice(["supplies", "medication", "utilities", "rent", "equipment"]),
                "amount": round(random.uniform(20, 2500), 2),
                "description": fake.sentence(nb_words=4),
                "transaction_date": random_datetime_within(365),
                "payment_method": "bank transfer",
                "created_by": admin_id,
            }
        )
    conn.execute(insert(expenses), rows)

    year = datetime.now().year
    conn.execute(
        insert(budgets),
        [
            {
                "id": new_id(),
                "category": category,
                "fiscal_year": year,
                "allocated_amount": random.choice([5000, 10000, 25000, 50000]),
                "spent_amount": round(random.uniform(0, 20000), 2),
                "created_by": admin_id,
            }
            for category in EXPENSE_CATEGORIES
        ],
    )


# --------------------------------------------------------------------
# MAIN
# --------------------------------------------------------------------
def main():
    engine = init_engine()
    init_schema(engine)

    with engine.begin() as conn:
        accounts = seed_users(conn)
        admin_id = accounts["admin"][0][0]
        doctor_ids = [uid for uid, _ in accounts["doctor"]]
        staff_ids = doctor_ids + [uid for uid, _ in accounts["nurse"]] + [admin_id]

        patient_ids = seed_patients(conn, doctor_ids)
        appointment_rows = seed_appointments(conn, patient_ids, doctor_ids, staff_ids)
        seed_immunizations(conn, patient_ids, doctor_ids)
        seed_clinical_notes(conn, patient_ids, doctor_ids)
        seed_history(conn, patient_ids, staff_ids)
        seed_finances(conn, patient_ids, appointment_rows, admin_id)

    print(f"[seed] Inserted {len(patient_ids)} patients and {len(appointment_rows)} appointments.")
    print("[seed] API keys:")
    for role, entries in accounts.items():
        for _uid, key in entries:
            print(f"  {role:<7} {key}")


if __name__ == "__main__":
    main()
