"""Shared test fixtures."""
from datetime import date

import pytest

from clinic_slots.datasource import InMemoryDataSource
from clinic_slots.engine import SlotAvailabilityEngine
from clinic_slots.models import Appointment, Clinic, Doctor, Referral, Schedule
from tests.utils.dates import TODAY


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def source() -> InMemoryDataSource:
    """Empty in-memory database with one clinic."""
    data_source = InMemoryDataSource()
    data_source.add_clinic(Clinic(id="clinic-001", name="Downtown Medical Center"))
    return data_source


@pytest.fixture
def generalist(source) -> Doctor:
    """
    Generalist working Monday 09:00-10:00 and 14:00-15:00, Thursday
    13:00-14:00. Wednesday is enabled but has no windows.
    """
    doctor = Doctor.model_validate({
        "id": "doc-gen",
        "firstName": "Ana",
        "lastName": "Reyes",
        "isSpecialist": False,
        "clinicAffiliations": ["clinic-001"],
        "availability": {"weeklySchedule": {
            "monday": {"enabled": True, "timeSlots": [
                {"startTime": "09:00", "endTime": "10:00"},
                {"startTime": "14:00", "endTime": "15:00"}
            ]},
            "wednesday": {"enabled": True, "timeSlots": []},
            "thursday": {"enabled": True, "timeSlots": [
                {"startTime": "13:00", "endTime": "14:00"}
            ]},
            "friday": {"enabled": False, "timeSlots": [
                {"startTime": "09:00", "endTime": "12:00"}
            ]}
        }}
    })
    return source.add_doctor(doctor)


@pytest.fixture
def specialist(source) -> Doctor:
    """Specialist with one schedule: Mon and Wed, 10:00-11:00, Room 204."""
    doctor = Doctor.model_validate({
        "id": "doc-spec",
        "firstName": "Luis",
        "lastName": "Ortega",
        "isSpecialist": True,
        "clinicAffiliations": ["clinic-001"]
    })
    source.add_doctor(doctor)
    source.add_schedule(Schedule.model_validate({
        "id": "sch-mw",
        "specialistId": "doc-spec",
        "isActive": True,
        "validFrom": "2025-01-01",
        "recurrence": {"dayOfWeek": [1, 3], "type": "weekly"},
        "slotTemplate": {
            "10:00 AM": {"defaultStatus": "available", "durationMinutes": 20},
            "10:20 AM": {"defaultStatus": "available", "durationMinutes": 20},
            "10:40 AM": {"defaultStatus": "available", "durationMinutes": 20}
        },
        "practiceLocation": {"clinicId": "clinic-001", "roomOrUnit": "Room 204"}
    }))
    return doctor


@pytest.fixture
def engine(source) -> SlotAvailabilityEngine:
    return SlotAvailabilityEngine(source, on_fetch_error="fail-closed")


@pytest.fixture
def book(source):
    """Add an appointment: book("doc-gen", MONDAY, "9:20 AM", status="confirmed")."""
    def _book(doctor_id: str, day: date, time: str, status: str = "pending") -> Appointment:
        return source.add_appointment(Appointment(
            doctor_id=doctor_id,
            patient_id="pat-001",
            appointment_date=day,
            appointment_time=time,
            status=status
        ))
    return _book


@pytest.fixture
def refer(source):
    """Add a referral: refer("doc-spec", MONDAY, "10:20 AM", status="confirmed")."""
    def _refer(specialist_id: str, day: date, time: str, status: str = "pending") -> Referral:
        return source.add_referral(Referral(
            assigned_specialist_id=specialist_id,
            patient_id="pat-002",
            appointment_date=day,
            appointment_time=time,
            status=status
        ))
    return _refer
