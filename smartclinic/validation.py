"""
Input schemas for every procedure, built on pydantic.

Create models describe a full record; update models carry the record ``id``
plus any subset of its fields. Fields a caller leaves out of an update are
left untouched, and required columns may not be nulled.
"""

import re
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Annotated, ClassVar, List, Literal, Optional, Tuple
from uuid import UUID

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    Field,
    PositiveInt,
    StringConstraints,
    model_validator,
)

from smartclinic.config import (
    DEFAULT_PAGE_LIMIT,
    MAX_PAGE_LIMIT,
    MAX_UPCOMING_VACCINATION_DAYS,
    UPCOMING_VACCINATION_DAYS,
)
from smartclinic.models import utcnow
from smartclinic.schema import (
    APPOINTMENT_STATUSES,
    APPOINTMENT_TYPES,
    BLOOD_TYPES,
    EXPENSE_CATEGORIES,
    GENDERS,
    IMMUNIZATION_STATUSES,
    PRIORITY_LEVELS,
    TRANSACTION_STATUSES,
    TRANSACTION_TYPES,
)

MRN_PATTERN = re.compile(r"^MRN-[0-9]{6}$")
MONEY_PATTERN = re.compile(r"^\d+(\.\d{1,2})?$")
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Alias keeps the `date` filter field below from shadowing its own type.
Day = date


# ── Field validators ─────────────────────────────────────────────────

def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _in_future(value: datetime) -> datetime:
    if value <= utcnow():
        raise ValueError("Appointment must be in the future")
    return value


def _not_future(value: datetime) -> datetime:
    if value > utcnow():
        raise ValueError("Date cannot be in the future")
    return value


def _birth_date(value: date) -> date:
    if value > utcnow().date():
        raise ValueError("Date of birth cannot be in the future")
    return value


def _mrn(value: str) -> str:
    if not MRN_PATTERN.match(value):
        raise ValueError("MRN must be in format MRN-000001")
    return value


def _email_or_blank(value: str) -> str:
    if value and not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email address")
    return value


def _money(value):
    if isinstance(value, bool):
        raise ValueError("Amount must be a valid decimal")
    text = str(value).strip()
    if not MONEY_PATTERN.match(text):
        raise ValueError("Amount must be a valid decimal")
    return Decimal(text)


def _positive(value: Decimal) -> Decimal:
    if value <= 0:
        raise ValueError("Amount must be positive")
    return value


def _uuid_text(value: str) -> str:
    try:
        return str(UUID(value))
    except ValueError:
        raise ValueError("Invalid id, expected a UUID") from None


Id = Annotated[str, AfterValidator(_uuid_text)]
UserId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
NonEmpty = Annotated[str, StringConstraints(min_length=1)]
UtcDateTime = Annotated[datetime, AfterValidator(_naive_utc)]
FutureDateTime = Annotated[datetime, AfterValidator(_naive_utc), AfterValidator(_in_future)]
PastDateTime = Annotated[datetime, AfterValidator(_naive_utc), AfterValidator(_not_future)]
BirthDate = Annotated[date, AfterValidator(_birth_date)]
MedicalRecordNumber = Annotated[str, AfterValidator(_mrn)]
Email = Annotated[str, AfterValidator(_email_or_blank)]
Money = Annotated[Decimal, BeforeValidator(_money)]
PositiveMoney = Annotated[Decimal, BeforeValidator(_money), AfterValidator(_positive)]


# ── Shared shapes ────────────────────────────────────────────────────

class ById(BaseModel):
    id: Id


class PatientRef(BaseModel):
    patient_id: Id


class Page(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PartialUpdate(BaseModel):
    """Base for update inputs: an ``id`` plus the fields being changed."""
    id: Id

    non_nullable: ClassVar[Tuple[str, ...]] = ()

    @model_validator(mode="after")
    def _reject_nulls(self):
        for name in self.non_nullable:
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"id"})


# ── Patients ─────────────────────────────────────────────────────────

class PatientCreate(BaseModel):
    medical_record_number: MedicalRecordNumber
    first_name: NonEmpty
    last_name: NonEmpty
    date_of_birth: BirthDate
    gender: Literal[GENDERS]
    blood_type: Optional[Literal[BLOOD_TYPES]] = None
    phone: Optional[str] = None
    email: Optional[Email] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relation: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    allergies: List[str] = Field(default_factory=list)
    current_medications: List[str] = Field(default_factory=list)
    pre_existing_conditions: List[str] = Field(default_factory=list)
    notes: Optional[str] = None
    is_active: bool = True


class PatientUpdate(PartialUpdate):
    medical_record_number: Optional[MedicalRecordNumber] = None
    first_name: Optional[NonEmpty] = None
    last_name: Optional[NonEmpty] = None
    date_of_birth: Optional[BirthDate] = None
    gender: Optional[Literal[GENDERS]] = None
    blood_type: Optional[Literal[BLOOD_TYPES]] = None
    phone: Optional[str] = None
    email: Optional[Email] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relation: Optional[str] = None
    insurance_provider: Optional[str] = None
    insurance_policy_number: Optional[str] = None
    allergies: Optional[List[str]] = None
    current_medications: Optional[List[str]] = None
    pre_existing_conditions: Optional[List[str]] = None
    notes: Optional[str] = None
    is_active: Optional[bool] = None

    non_nullable = (
        "medical_record_number", "first_name", "last_name", "date_of_birth", "gender",
        "allergies", "current_medications", "pre_existing_conditions", "is_active",
    )


class PatientList(Page):
    search: Optional[str] = None
    is_active: Optional[bool] = None


# ── Appointments ─────────────────────────────────────────────────────

RecurrencePattern = Literal["daily", "weekly", "monthly"]


class AppointmentCreate(BaseModel):
    patient_id: Id
    doctor_id: Optional[UserId] = None
    appointment_price_in_cents: int = Field(default=0, ge=0)
    date: FutureDateTime
    duration: PositiveInt = 30
    type: Literal[APPOINTMENT_TYPES]
    status: Literal[APPOINTMENT_STATUSES] = "scheduled"
    priority: Literal[PRIORITY_LEVELS] = "medium"
    reason: NonEmpty
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    follow_up_date: Optional[UtcDateTime] = None
    is_recurring: bool = False
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_end_date: Optional[UtcDateTime] = None


class AppointmentUpdate(PartialUpdate):
    patient_id: Optional[Id] = None
    doctor_id: Optional[UserId] = None
    appointment_price_in_cents: Optional[int] = Field(default=None, ge=0)
    date: Optional[FutureDateTime] = None
    duration: Optional[PositiveInt] = None
    type: Optional[Literal[APPOINTMENT_TYPES]] = None
    status: Optional[Literal[APPOINTMENT_STATUSES]] = None
    priority: Optional[Literal[PRIORITY_LEVELS]] = None
    reason: Optional[NonEmpty] = None
    symptoms: Optional[str] = None
    notes: Optional[str] = None
    diagnosis: Optional[str] = None
    prescription: Optional[str] = None
    follow_up_date: Optional[UtcDateTime] = None
    is_recurring: Optional[bool] = None
    recurrence_pattern: Optional[RecurrencePattern] = None
    recurrence_end_date: Optional[UtcDateTime] = None

    non_nullable = (
        "patient_id", "doctor_id", "appointment_price_in_cents", "date",
        "duration", "type", "status",
    )


class AppointmentList(Page):
    date: Optional[Day] = None
    status: Optional[Literal[APPOINTMENT_STATUSES]] = None
    doctor_id: Optional[UserId] = None


class UpcomingVaccinations(BaseModel):
    days: int = Field(default=UPCOMING_VACCINATION_DAYS, ge=1, le=MAX_UPCOMING_VACCINATION_DAYS)


# ── Immunizations ────────────────────────────────────────────────────

class ImmunizationCreate(BaseModel):
    patient_id: Id
    vaccine_name: NonEmpty
    vaccine_code: Optional[str] = None
    manufacturer: Optional[str] = None
    lot_number: Optional[str] = None
    administration_date: PastDateTime
    next_due_date: Optional[UtcDateTime] = None
    status: Literal[IMMUNIZATION_STATUSES] = "administered"
    administration_site: Optional[str] = None
    dose_number: PositiveInt = 1
    total_doses: PositiveInt = 1
    reactions: Optional[str] = None
    notes: Optional[str] = None


class ImmunizationUpdate(PartialUpdate):
    patient_id: Optional[Id] = None
    vaccine_name: Optional[NonEmpty] = None
    vaccine_code: Optional[str] = None
    manufacturer: Optional[str] = None
    lot_number: Optional[str] = None
    administration_date: Optional[PastDateTime] = None
    next_due_date: Optional[UtcDateTime] = None
    status: Optional[Literal[IMMUNIZATION_STATUSES]] = None
    administration_site: Optional[str] = None
    dose_number: Optional[PositiveInt] = None
    total_doses: Optional[PositiveInt] = None
    reactions: Optional[str] = None
    notes: Optional[str] = None

    non_nullable = ("patient_id", "vaccine_name", "administration_date", "status")


class ImmunizationList(Page):
    patient_id: Optional[Id] = None
    status: Optional[Literal[IMMUNIZATION_STATUSES]] = None


class OverdueVaccinations(BaseModel):
    patient_id: Optional[Id] = None


class VaccineCoverage(BaseModel):
    vaccine_name: Optional[str] = None


# ── Expenses ─────────────────────────────────────────────────────────

class ExpenseCreate(BaseModel):
    type: Literal[TRANSACTION_TYPES]
    category: Literal[EXPENSE_CATEGORIES]
    amount: PositiveMoney
    description: NonEmpty
    transaction_date: PastDateTime
    reference_number: Optional[str] = None
    patient_id: Optional[Id] = None
    appointment_id: Optional[Id] = None
    is_recurring: bool = False
    recurrence_interval: Optional[Literal["monthly", "quarterly", "yearly"]] = None
    payment_method: Optional[str] = None
    status: Literal[TRANSACTION_STATUSES] = "completed"


class ExpenseUpdate(PartialUpdate):
    type: Optional[Literal[TRANSACTION_TYPES]] = None
    category: Optional[Literal[EXPENSE_CATEGORIES]] = None
    amount: Optional[PositiveMoney] = None
    description: Optional[NonEmpty] = None
    transaction_date: Optional[PastDateTime] = None
    reference_number: Optional[str] = None
    patient_id: Optional[Id] = None
    appointment_id: Optional[Id] = None
    is_recurring: Optional[bool] = None
    recurrence_interval: Optional[Literal["monthly", "quarterly", "yearly"]] = None
    payment_method: Optional[str] = None
    status: Optional[Literal[TRANSACTION_STATUSES]] = None

    non_nullable = ("type", "category", "amount", "description", "transaction_date")


class ExpenseList(Page):
    start_date: Optional[UtcDateTime] = None
    end_date: Optional[UtcDateTime] = None
    type: Optional[Literal[TRANSACTION_TYPES]] = None
    category: Optional[Literal[EXPENSE_CATEGORIES]] = None


class DateRange(BaseModel):
    start_date: UtcDateTime
    end_date: UtcDateTime

    @model_validator(mode="after")
    def _ordered(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


# ── Clinical notes ───────────────────────────────────────────────────

class VitalSigns(BaseModel):
    blood_pressure: Optional[str] = None
    heart_rate: Optional[float] = None
    temperature: Optional[float] = None
    respiratory_rate: Optional[float] = None
    oxygen_saturation: Optional[float] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    bmi: Optional[float] = None


class ClinicalNoteCreate(BaseModel):
    patient_id: Id
    appointment_id: Optional[Id] = None
    subjective: Optional[str] = None
    objective: Optional[str] = None
    assessment: Optional[str] = None
    plan: Optional[str] = None
    vital_signs: Optional[VitalSigns] = None
    is_confidential: bool = False


class ClinicalNoteUpdate(PartialUpdate):
    patient_id: Optional[Id] = None
    appointment_id: Optional[Id] = None
    subjective: Optional[str] = None
    objective: Optional[str] = None
    assessment: Optional[str] = None
    plan: Optional[str] = None
    vital_signs: Optional[VitalSigns] = None
    is_confidential: Optional[bool] = None

    non_nullable = ("patient_id", "is_confidential")


class ClinicalNoteList(Page):
    patient_id: Optional[Id] = None


# ── Budgets ──────────────────────────────────────────────────────────

FiscalYear = Annotated[int, Field(ge=2000, le=2100)]


class BudgetCreate(BaseModel):
    category: Literal[EXPENSE_CATEGORIES]
    fiscal_year: FiscalYear
    allocated_amount: Money
    notes: Optional[str] = None


class BudgetUpdate(PartialUpdate):
    category: Optional[Literal[EXPENSE_CATEGORIES]] = None
    fiscal_year: Optional[FiscalYear] = None
    allocated_amount: Optional[Money] = None
    notes: Optional[str] = None

    non_nullable = ("category", "fiscal_year", "allocated_amount")


class BudgetList(Page):
    fiscal_year: Optional[int] = None


class FiscalYearInput(BaseModel):
    fiscal_year: int
