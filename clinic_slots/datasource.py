"""Read (and one write) operations against the realtime document database.

Two implementations share the DataSource interface:
- InMemoryDataSource: dictionaries, used by tests and the mock API
- RealtimeDatabaseClient: Firebase-style REST API over requests

Both raise FetchFailure when a read cannot be completed; "not found" is a
None return, never an exception.
"""
import itertools
import json
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from clinic_slots import config
from clinic_slots.circuit_breaker import CircuitBreaker, DataSourceUnavailable
from clinic_slots.errors import FetchFailure, SlotAlreadyBooked
from clinic_slots.http_client import create_circuit_breaker, create_http_session
from clinic_slots.logging_config import get_logger
from clinic_slots.models import Appointment, Clinic, Doctor, Referral, Schedule

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class DataSource(ABC):
    """Operations the availability core consumes from the database."""

    @abstractmethod
    def get_doctor_by_id(self, doctor_id: str) -> Optional[Doctor]:
        """Doctor profile, or None if the id does not resolve."""

    @abstractmethod
    def get_specialist_schedules(self, specialist_id: str) -> Dict[str, Schedule]:
        """All schedule records of a specialist, keyed by schedule id."""

    @abstractmethod
    def get_appointments(self, doctor_id: str, role: str) -> List[Appointment]:
        """Every appointment booked against a doctor (any status)."""

    @abstractmethod
    def get_specialist_referrals(self, specialist_id: str) -> List[Referral]:
        """Every referral assigned to a specialist (any status)."""

    @abstractmethod
    def get_clinic_by_id(self, clinic_id: str) -> Optional[Clinic]:
        """Clinic for display purposes, or None."""

    @abstractmethod
    def create_appointment(self, appointment: Appointment) -> str:
        """Store a new appointment and return its id."""

    def get_booked_time_slots(self, doctor_id: str, day: date) -> List[str]:
        """Time labels of non-cancelled appointments for a doctor on ``day``."""
        return [
            appointment.appointment_time
            for appointment in self.get_appointments(doctor_id, "generalist")
            if appointment.doctor_id == doctor_id
            and appointment.appointment_date == day
            and appointment.occupies_slot()
        ]


class InMemoryDataSource(DataSource):
    """Dictionary-backed data source."""

    def __init__(self):
        self.doctors: Dict[str, Doctor] = {}
        self.schedules: Dict[str, Dict[str, Schedule]] = {}
        self.appointments: Dict[str, Appointment] = {}
        self.referrals: Dict[str, Referral] = {}
        self.clinics: Dict[str, Clinic] = {}
        self._ids = itertools.count(1)

    @classmethod
    def from_snapshot(cls, tree: Dict[str, Any]) -> "InMemoryDataSource":
        """
        Load a database export shaped like the realtime database tree:

            {"doctors": {id: {...}}, "specialistSchedules": {specialistId: {scheduleId: {...}}},
             "appointments": {id: {...}}, "referrals": {id: {...}}, "clinics": {id: {...}}}
        """
        source = cls()
        for doctor_id, doc in (tree.get("doctors") or {}).items():
            source.add_doctor(Doctor.model_validate({**doc, "id": doctor_id}))
        for specialist_id, records in (tree.get("specialistSchedules") or {}).items():
            for schedule_id, doc in (records or {}).items():
                source.add_schedule(Schedule.model_validate(
                    {"specialistId": specialist_id, **doc, "id": schedule_id}
                ))
        for appointment_id, doc in (tree.get("appointments") or {}).items():
            source.add_appointment(Appointment.model_validate({**doc, "id": appointment_id}))
        for referral_id, doc in (tree.get("referrals") or {}).items():
            source.add_referral(Referral.model_validate({**doc, "id": referral_id}))
        for clinic_id, doc in (tree.get("clinics") or {}).items():
            source.add_clinic(Clinic.model_validate({**doc, "id": clinic_id}))
        return source

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def add_doctor(self, doctor: Doctor) -> Doctor:
        self.doctors[doctor.id] = doctor
        return doctor

    def add_schedule(self, schedule: Schedule) -> Schedule:
        if schedule.id is None:
            schedule = schedule.model_copy(update={"id": self._next_id("sch")})
        self.schedules.setdefault(schedule.specialist_id, {})[schedule.id] = schedule
        return schedule

    def add_appointment(self, appointment: Appointment) -> Appointment:
        if appointment.id is None:
            appointment = appointment.model_copy(update={"id": self._next_id("apt")})
        self.appointments[appointment.id] = appointment
        return appointment

    def add_referral(self, referral: Referral) -> Referral:
        if referral.id is None:
            referral = referral.model_copy(update={"id": self._next_id("ref")})
        self.referrals[referral.id] = referral
        return referral

    def add_clinic(self, clinic: Clinic) -> Clinic:
        self.clinics[clinic.id] = clinic
        return clinic

    def get_doctor_by_id(self, doctor_id: str) -> Optional[Doctor]:
        return self.doctors.get(doctor_id)

    def get_specialist_schedules(self, specialist_id: str) -> Dict[str, Schedule]:
        return dict(self.schedules.get(specialist_id, {}))

    def get_appointments(self, doctor_id: str, role: str) -> List[Appointment]:
        return [a for a in self.appointments.values() if a.doctor_id == doctor_id]

    def get_specialist_referrals(self, specialist_id: str) -> List[Referral]:
        return [
            r for r in self.referrals.values()
            if r.assigned_specialist_id == specialist_id
        ]

    def get_clinic_by_id(self, clinic_id: str) -> Optional[Clinic]:
        return self.clinics.get(clinic_id)

    def create_appointment(self, appointment: Appointment) -> str:
        return self.add_appointment(appointment).id


class RealtimeDatabaseClient(DataSource):
    """
    REST client for a Firebase-style realtime database.

    Paths map to ``{base_url}/{path}.json``. Collections are filtered
    server-side with ``orderBy``/``equalTo``; a missing node reads as
    ``null``. Every call goes through a circuit breaker and a retrying
    session; transport errors surface as FetchFailure.
    """

    def __init__(
        self,
        base_url: str = config.REALTIME_DB_URL,
        auth_token: Optional[str] = config.REALTIME_DB_AUTH,
        session: Optional[requests.Session] = None,
        breaker: Optional[CircuitBreaker] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.session = session or create_http_session()
        self.breaker = breaker or create_circuit_breaker()

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.strip('/')}.json"

    def _params(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        params = dict(extra or {})
        if self.auth_token:
            params["auth"] = self.auth_token
        return params

    def _request(
        self,
        method: str,
        path: str,
        source: str,
        on_conflict: Optional[Callable[[], Exception]] = None,
        **kwargs
    ) -> Any:
        url = self._url(path)
        send = getattr(self.session, method.lower())
        params = self._params(kwargs.pop("params", None))
        try:
            response = self.breaker.call(send, url, params=params, **kwargs)
            return response.json()
        except requests.exceptions.HTTPError as e:
            if on_conflict is not None and e.response is not None and e.response.status_code == 409:
                logger.warning("realtime_db_conflict", method=method, path=path, source=source)
                raise on_conflict() from e
            logger.error("realtime_db_request_failed", method=method, path=path, source=source, error=str(e))
            raise FetchFailure(source, str(e)) from e
        except (requests.exceptions.RequestException, DataSourceUnavailable, ValueError) as e:
            logger.error("realtime_db_request_failed", method=method, path=path, source=source, error=str(e))
            raise FetchFailure(source, str(e)) from e

    def _query(self, collection: str, field: str, value: str, source: str) -> Dict[str, Any]:
        # Firebase expects JSON-encoded query values: orderBy="doctorId"
        params = {"orderBy": json.dumps(field), "equalTo": json.dumps(value)}
        return self._request("GET", collection, source, params=params) or {}

    @staticmethod
    def _parse(model: Type[ModelT], doc: Dict[str, Any], source: str, **extra) -> ModelT:
        try:
            return model.model_validate({**doc, **extra})
        except ValidationError as e:
            raise FetchFailure(source, f"malformed {model.__name__} document: {e}") from e

    def get_doctor_by_id(self, doctor_id: str) -> Optional[Doctor]:
        doc = self._request("GET", f"doctors/{doctor_id}", "doctor")
        if not doc:
            return None
        return self._parse(Doctor, doc, "doctor", id=doctor_id)

    def get_specialist_schedules(self, specialist_id: str) -> Dict[str, Schedule]:
        tree = self._request("GET", f"specialistSchedules/{specialist_id}", "schedule") or {}
        return {
            schedule_id: self._parse(
                Schedule, {"specialistId": specialist_id, **doc}, "schedule", id=schedule_id
            )
            for schedule_id, doc in tree.items()
        }

    def get_appointments(self, doctor_id: str, role: str) -> List[Appointment]:
        tree = self._query("appointments", "doctorId", doctor_id, "booking")
        return [
            self._parse(Appointment, doc, "booking", id=appointment_id)
            for appointment_id, doc in tree.items()
        ]

    def get_specialist_referrals(self, specialist_id: str) -> List[Referral]:
        tree = self._query("referrals", "assignedSpecialistId", specialist_id, "booking")
        return [
            self._parse(Referral, doc, "booking", id=referral_id)
            for referral_id, doc in tree.items()
        ]

    def get_clinic_by_id(self, clinic_id: str) -> Optional[Clinic]:
        doc = self._request("GET", f"clinics/{clinic_id}", "clinic")
        if not doc:
            return None
        return self._parse(Clinic, doc, "clinic", id=clinic_id)

    def create_appointment(self, appointment: Appointment) -> str:
        payload = appointment.model_dump(by_alias=True, mode="json", exclude={"id"})
        data = self._request(
            "POST",
            "appointments",
            "booking",
            on_conflict=lambda: SlotAlreadyBooked(
                appointment.appointment_time,
                appointment.appointment_date.isoformat()
            ),
            json=payload
        )
        if not isinstance(data, dict) or "name" not in data:
            raise FetchFailure("booking", "appointment write returned no id")
        return data["name"]
