"""
Relational schema – SQLAlchemy Core tables for the clinic.
"""

import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    UniqueConstraint,
)

from smartclinic.models import utcnow

metadata = MetaData()

# ── Enumerations ─────────────────────────────────────────────────────
APPOINTMENT_STATUSES = ("scheduled", "in-progress", "completed", "cancelled", "no-show")
APPOINTMENT_TYPES = (
    "consultation", "check-up", "follow-up", "emergency",
    "vaccination", "surgery", "therapy",
)
GENDERS = ("male", "female", "other", "prefer-not-to-say")
BLOOD_TYPES = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")
TRANSACTION_TYPES = ("income", "outflow")
EXPENSE_CATEGORIES = (
    "consultation", "medication", "laboratory", "imaging", "procedure", "supplies",
    "equipment", "rent", "utilities", "salaries", "insurance", "other",
)
IMMUNIZATION_STATUSES = ("administered", "scheduled", "overdue", "contraindicated")
PRIORITY_LEVELS = ("low", "medium", "high", "emergency")
TRANSACTION_STATUSES = ("pending", "completed", "failed")

priority_level = Enum(*PRIORITY_LEVELS, name="priority_level", metadata=metadata)
expense_category = Enum(*EXPENSE_CATEGORIES, name="expense_category", metadata=metadata)


def _uuid() -> str:
    return str(uuid.uuid4())


def _id_column() -> Column:
    return Column("id", String(36), primary_key=True, default=_uuid)


def _timestamps():
    return (
        Column("created_at", DateTime, nullable=False, default=utcnow),
        Column("updated_at", DateTime, default=utcnow, onupdate=utcnow),
    )


# ── Identity ─────────────────────────────────────────────────────────

users = Table(
    "users", metadata,
    _id_column(),
    Column("name", String(200), nullable=False),
    Column("email", String(320), nullable=False, unique=True),
    Column("role", Enum("admin", "doctor", "nurse", "member", name="user_role"),
           nullable=False, default="member"),
    Column("gender", String(20)),
    Column("api_key", String(128), unique=True),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("banned", Boolean, nullable=False, default=False),
    Column("ban_reason", Text),
    *_timestamps(),
)

# ── Patients ─────────────────────────────────────────────────────────

patients = Table(
    "patients", metadata,
    _id_column(),
    Column("medical_record_number", String(20), nullable=False, unique=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("date_of_birth", Date, nullable=False),
    Column("gender", Enum(*GENDERS, name="gender"), nullable=False),
    Column("blood_type", Enum(*BLOOD_TYPES, name="blood_type")),
    Column("phone", String(50)),
    Column("email", String(320)),
    Column("address", Text),
    Column("emergency_contact_name", String(200)),
    Column("emergency_contact_phone", String(50)),
    Column("emergency_contact_relation", String(100)),
    Column("insurance_provider", String(200)),
    Column("insurance_policy_number", String(100)),
    Column("allergies", JSON, default=list),
    Column("current_medications", JSON, default=list),
    Column("pre_existing_conditions", JSON, default=list),
    Column("notes", Text),
    Column("is_active", Boolean, nullable=False, default=True),
    *_timestamps(),
    Column("created_by", String(36), ForeignKey("users.id")),
    Column("updated_by", String(36), ForeignKey("users.id")),
)

medical_history = Table(
    "medical_history", metadata,
    _id_column(),
    Column("patient_id", String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    Column("condition", Text, nullable=False),
    Column("diagnosis_date", DateTime, nullable=False),
    Column("status", String(20), default="active"),  # active, resolved, chronic
    Column("severity", priority_level),
    Column("notes", Text),
    Column("treatment", Text),
    *_timestamps(),
    Column("created_by", String(36), ForeignKey("users.id")),
)

patient_allergies = Table(
    "patient_allergies", metadata,
    _id_column(),
    Column("patient_id", String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    Column("allergen", Text, nullable=False),
    Column("severity", priority_level, nullable=False),
    Column("reaction", Text),
    Column("onset_date", DateTime),
    Column("is_active", Boolean, default=True),
    *_timestamps(),
)

# ── Clinical work ────────────────────────────────────────────────────

appointments = Table(
    "appointments", metadata,
    _id_column(),
    Column("patient_id", String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    Column("doctor_id", String(36), ForeignKey("users.id"), nullable=False),
    Column("appointment_price_in_cents", Integer, nullable=False, default=0),
    Column("date", DateTime, nullable=False),
    Column("duration", Integer, nullable=False, default=30),  # minutes
    Column("type", Enum(*APPOINTMENT_TYPES, name="appointment_type"), nullable=False),
    Column("status", Enum(*APPOINTMENT_STATUSES, name="appointment_status"),
           nullable=False, default="scheduled"),
    Column("priority", priority_level, default="medium"),
    Column("reason", Text),
    Column("symptoms", Text),
    Column("notes", Text),
    Column("diagnosis", Text),
    Column("prescription", Text),
    Column("follow_up_date", DateTime),
    Column("is_recurring", Boolean, default=False),
    Column("recurrence_pattern", String(20)),  # daily, weekly, monthly
    Column("recurrence_end_date", DateTime),
    *_timestamps(),
    Column("created_by", String(36), ForeignKey("users.id")),
)

immunizations = Table(
    "immunizations", metadata,
    _id_column(),
    Column("patient_id", String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    Column("vaccine_name", Text, nullable=False),
    Column("vaccine_code", String(20)),  # CVX code
    Column("manufacturer", Text),
    Column("lot_number", String(100)),
    Column("administration_date", DateTime, nullable=False),
    Column("next_due_date", DateTime),
    Column("status", Enum(*IMMUNIZATION_STATUSES, name="immunization_status"),
           nullable=False, default="administered"),
    Column("administered_by", String(36), ForeignKey("users.id")),
    Column("administration_site", String(100)),
    Column("dose_number", Integer, default=1),
    Column("total_doses", Integer, default=1),
    Column("reactions", Text),
    Column("notes", Text),
    *_timestamps(),
)

clinical_notes = Table(
    "clinical_notes", metadata,
    _id_column(),
    Column("patient_id", String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False),
    Column("appointment_id", String(36), ForeignKey("appointments.id", ondelete="SET NULL")),
    Column("author_id", String(36), ForeignKey("users.id"), nullable=False),
    Column("subjective", Text),
    Column("objective", Text),
    Column("assessment", Text),
    Column("plan", Text),
    Column("vital_signs", JSON),
    Column("is_confidential", Boolean, default=False),
    *_timestamps(),
)

# ── Finance ──────────────────────────────────────────────────────────

expenses = Table(
    "expenses", metadata,
    _id_column(),
    Column("type", Enum(*TRANSACTION_TYPES, name="transaction_type"), nullable=False),
    Column("category", expense_category, nullable=False),
    Column("amount", Numeric(10, 2), nullable=False),
    Column("description", Text, nullable=False),
    Column("transaction_date", DateTime, nullable=False),
    Column("reference_number", String(100)),
    Column("patient_id", String(36), ForeignKey("patients.id", ondelete="SET NULL")),
    Column("appointment_id", String(36), ForeignKey("appointments.id", ondelete="SET NULL")),
    Column("is_recurring", Boolean, default=False),
    Column("recurrence_interval", String(20)),  # monthly, quarterly, yearly
    Column("payment_method", String(50)),  # cash, card, insurance, bank transfer
    Column("status", String(20), default="completed"),
    *_timestamps(),
    Column("created_by", String(36), ForeignKey("users.id")),
)

budgets = Table(
    "budgets", metadata,
    _id_column(),
    Column("category", expense_category, nullable=False),
    Column("fiscal_year", Integer, nullable=False),
    Column("allocated_amount", Numeric(10, 2), nullable=False),
    Column("spent_amount", Numeric(10, 2), default=0),
    Column("notes", Text),
    *_timestamps(),
    Column("created_by", String(36), ForeignKey("users.id")),
    UniqueConstraint("category", "fiscal_year", name="budgets_category_year_unique"),
)
