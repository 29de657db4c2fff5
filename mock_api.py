"""Mock realtime database for local development.

Flask server exposing the Firebase-style REST surface the availability
core reads from:
- GET  /doctors/<id>.json
- GET  /specialistSchedules/<id>.json
- GET  /clinics/<id>.json
- GET  /appointments.json?orderBy="doctorId"&equalTo="<id>"
- GET  /referrals.json?orderBy="assignedSpecialistId"&equalTo="<id>"
- POST /appointments.json  (409 if the slot is already taken)

Run with: python mock_api.py
"""
import json
from datetime import date, timedelta
from typing import Any, Dict, Iterable, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS
from pydantic import BaseModel, ValidationError

from clinic_slots import config
from clinic_slots.conflicts import BookingConflictResolver
from clinic_slots.config import FetchErrorPolicy
from clinic_slots.datasource import InMemoryDataSource
from clinic_slots.errors import InvalidTimeFormat
from clinic_slots.logging_config import TraceIDMiddleware, get_logger, setup_structured_logging
from clinic_slots.models import Appointment, Clinic, Doctor, Schedule
from clinic_slots.schedule_templates import build_slot_template
from clinic_slots.time_labels import parse_label

logger = get_logger(__name__)


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json", exclude={"id"})


def _tree(models: Iterable[BaseModel]) -> Dict[str, Any]:
    return {m.id: _dump(m) for m in models}


def _query_value(name: str) -> Optional[str]:
    """Decode a JSON-encoded query parameter (orderBy="doctorId")."""
    raw = request.args.get(name)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def demo_data_source(today: Optional[date] = None) -> InMemoryDataSource:
    """A generalist, a specialist and one clinic, enough to click through a booking."""
    today = today or date.today()
    source = InMemoryDataSource()

    source.add_clinic(Clinic(id="clinic-001", name="Downtown Medical Center", address="123 Main St"))
    source.add_doctor(Doctor.model_validate({
        "id": "doc-001",
        "firstName": "Ana",
        "lastName": "Reyes",
        "specialty": "General Medicine",
        "isSpecialist": False,
        "clinicAffiliations": ["clinic-001"],
        "availability": {"weeklySchedule": {
            "monday": {"enabled": True, "timeSlots": [
                {"startTime": "09:00", "endTime": "12:00"},
                {"startTime": "13:00", "endTime": "17:00"}
            ]},
            "wednesday": {"enabled": True, "timeSlots": [{"startTime": "09:00", "endTime": "12:00"}]},
            "friday": {"enabled": True, "timeSlots": [{"startTime": "13:00", "endTime": "16:00"}]},
        }}
    }))
    source.add_doctor(Doctor.model_validate({
        "id": "doc-002",
        "firstName": "Luis",
        "lastName": "Ortega",
        "specialty": "Cardiology",
        "isSpecialist": True,
        "clinicAffiliations": ["clinic-001"]
    }))
    source.add_schedule(Schedule(
        specialist_id="doc-002",
        valid_from=today - timedelta(days=7),
        recurrence={"dayOfWeek": [2, 4], "type": "weekly"},
        slot_template=build_slot_template("10:00 AM", "12:00 PM"),
        practice_location={"clinicId": "clinic-001", "roomOrUnit": "Room 204"}
    ))
    return source


def load_data_source() -> InMemoryDataSource:
    if config.MOCK_API_SEED:
        with open(config.MOCK_API_SEED) as f:
            return InMemoryDataSource.from_snapshot(json.load(f))
    return demo_data_source()


def create_app(data_source: Optional[InMemoryDataSource] = None) -> Flask:
    """Build the mock server around ``data_source`` (demo data by default)."""
    store = data_source or load_data_source()
    # A read failure here is a bug in the mock, so never hide it
    resolver = BookingConflictResolver(store, on_fetch_error=FetchErrorPolicy.FAIL_CLOSED)

    app = Flask(__name__)
    CORS(app)
    app.wsgi_app = TraceIDMiddleware(app.wsgi_app)
    app.config["DATA_SOURCE"] = store

    @app.route('/doctors/<doctor_id>.json', methods=['GET'])
    def get_doctor(doctor_id):
        """GET /doctors/doc-001.json - Doctor profile, or null."""
        doctor = store.get_doctor_by_id(doctor_id)
        return jsonify(_dump(doctor) if doctor else None)

    @app.route('/specialistSchedules/<specialist_id>.json', methods=['GET'])
    def get_schedules(specialist_id):
        """GET /specialistSchedules/doc-002.json - Schedules keyed by id, or null."""
        schedules = store.get_specialist_schedules(specialist_id)
        return jsonify(_tree(schedules.values()) or None)

    @app.route('/clinics/<clinic_id>.json', methods=['GET'])
    def get_clinic(clinic_id):
        """GET /clinics/clinic-001.json - Clinic, or null."""
        clinic = store.get_clinic_by_id(clinic_id)
        return jsonify(_dump(clinic) if clinic else None)

    @app.route('/appointments.json', methods=['GET'])
    def list_appointments():
        """GET /appointments.json?orderBy="doctorId"&equalTo="doc-001" """
        order_by, equal_to = _query_value("orderBy"), _query_value("equalTo")
        if order_by is None:
            return jsonify(_tree(store.appointments.values()))
        if order_by != "doctorId":
            return jsonify({"error": f"Index not defined, add \".indexOn\": \"{order_by}\""}), 400
        return jsonify(_tree(store.get_appointments(equal_to, "any")))

    @app.route('/referrals.json', methods=['GET'])
    def list_referrals():
        """GET /referrals.json?orderBy="assignedSpecialistId"&equalTo="doc-002" """
        order_by, equal_to = _query_value("orderBy"), _query_value("equalTo")
        if order_by is None:
            return jsonify(_tree(store.referrals.values()))
        if order_by != "assignedSpecialistId":
            return jsonify({"error": f"Index not defined, add \".indexOn\": \"{order_by}\""}), 400
        return jsonify(_tree(store.get_specialist_referrals(equal_to)))

    @app.route('/appointments.json', methods=['POST'])
    def create_appointment():
        """
        POST /appointments.json - Create an appointment.

        Expected JSON body:
        {
            "doctorId": "doc-001",
            "patientId": "pat-001",
            "appointmentDate": "2025-01-15",
            "appointmentTime": "9:20 AM",
            "status": "pending"
        }

        Returns {"name": "<new id>"}.
        """
        data = request.get_json(silent=True)
        if not data:
            return jsonify({"error": "Request body is required"}), 400

        try:
            appointment = Appointment.model_validate(data)
        except ValidationError as e:
            return jsonify({"error": f"Invalid appointment: {e.errors()[0]['msg']}"}), 400

        doctor = store.get_doctor_by_id(appointment.doctor_id)
        if doctor is None:
            return jsonify({"error": f"Doctor '{appointment.doctor_id}' not found"}), 404

        try:
            parse_label(appointment.appointment_time)
        except InvalidTimeFormat as e:
            return jsonify({"error": str(e)}), 400

        booked = resolver.get_booked_slots(doctor.id, appointment.appointment_date, doctor.is_specialist)
        if appointment.appointment_time in booked:
            logger.warning(
                "mock_api_slot_conflict",
                doctor_id=doctor.id,
                date=appointment.appointment_date.isoformat(),
                time=appointment.appointment_time,
                trace_id=request.environ.get("TRACE_ID")
            )
            return jsonify({
                "error": "This time slot is no longer available",
                "appointmentTime": appointment.appointment_time
            }), 409  # Conflict

        appointment_id = store.create_appointment(appointment)
        logger.info(
            "mock_api_appointment_created",
            appointment_id=appointment_id,
            doctor_id=doctor.id,
            trace_id=request.environ.get("TRACE_ID")
        )
        return jsonify({"name": appointment_id})

    @app.route('/health', methods=['GET'])
    def health_check():
        """GET /health - Health check endpoint."""
        return jsonify({
            "status": "healthy",
            "doctors": len(store.doctors),
            "appointments": len(store.appointments),
            "referrals": len(store.referrals)
        })

    return app


def print_startup_info(app: Flask):
    """Print server startup information."""
    store = app.config["DATA_SOURCE"]
    print("=" * 70)
    print("MOCK REALTIME DATABASE")
    print("=" * 70)
    print(f"\nServer: http://localhost:{config.MOCK_API_PORT}")
    print(f"Seed: {config.MOCK_API_SEED or 'built-in demo data'}")
    for doctor in store.doctors.values():
        kind = "specialist" if doctor.is_specialist else "generalist"
        print(f"   - {doctor.id}: {doctor.display_name} ({kind})")

    print("\nEndpoints:")
    print("   GET   /doctors/<id>.json              - Doctor profile")
    print("   GET   /specialistSchedules/<id>.json  - Specialist schedules")
    print("   GET   /clinics/<id>.json              - Clinic")
    print("   GET   /appointments.json?orderBy=...  - Appointments by doctor")
    print("   GET   /referrals.json?orderBy=...     - Referrals by specialist")
    print("   POST  /appointments.json              - Create appointment")
    print("   GET   /health                         - Health check")

    print("\nServer ready! Waiting for requests...")
    print("=" * 70)


if __name__ == '__main__':
    setup_structured_logging()
    app = create_app()
    print_startup_info(app)
    app.run(
        debug=True,
        port=config.MOCK_API_PORT,
        host='0.0.0.0'
    )
