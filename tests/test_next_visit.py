from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from models import CheckupCenterNextVisit, DoctorNextVisit


@pytest.fixture
def care(client, make_user):
    doctor, center, patient = make_user("DOCTOR"), make_user("CHECKUP_CENTER"), make_user("PATIENT")
    client.post(
        "/api/doctors/assign-patient",
        json={"doctorId": doctor["id"], "patientId": patient["id"]},
        headers=doctor["headers"],
    )
    client.post(
        "/api/checkup-centers/assign-patient",
        json={"checkupCenterId": center["id"], "patientId": patient["id"]},
        headers=center["headers"],
    )
    return {"doctor": doctor, "center": center, "patient": patient}


def test_repeated_updates_keep_one_row(client, db, care):
    doctor, patient = care["doctor"], care["patient"]
    url = f"/api/doctors/{doctor['id']}/patients/{patient['id']}/next-visit"

    first = client.patch(url, json={"nextVisitDate": "2030-01-02T10:00:00Z"}, headers=doctor["headers"])
    second = client.patch(url, json={"nextVisitDate": "2030-02-03T09:30:00Z"}, headers=doctor["headers"])

    assert first.status_code == 200
    assert second.json()["nextVisit"].startswith("2030-02-03T09:30:00")

    rows = db.query(DoctorNextVisit).filter(
        DoctorNextVisit.doctor_id == doctor["id"],
        DoctorNextVisit.patient_id == patient["id"],
    ).all()
    assert len(rows) == 1
    assert rows[0].next_visit == datetime(2030, 2, 3, 9, 30)


def test_offset_timestamps_are_stored_as_utc(client, db, care):
    doctor, patient = care["doctor"], care["patient"]
    url = f"/api/doctors/{doctor['id']}/patients/{patient['id']}/next-visit"

    client.patch(url, json={"nextVisitDate": "2030-01-02T15:30:00+05:30"}, headers=doctor["headers"])

    visit = db.query(DoctorNextVisit).filter(DoctorNextVisit.patient_id == patient["id"]).one()
    assert visit.next_visit == datetime(2030, 1, 2, 10, 0)


def test_unassigned_patient_is_404(client, make_user, care):
    doctor, stranger = care["doctor"], make_user("PATIENT")
    url = f"/api/doctors/{doctor['id']}/patients/{stranger['id']}/next-visit"

    res = client.patch(url, json={"nextVisitDate": "2030-01-02T10:00:00Z"}, headers=doctor["headers"])

    assert res.status_code == 404


def test_other_doctor_cannot_set_next_visit(client, make_user, care):
    other = make_user("DOCTOR")
    url = f"/api/doctors/{care['doctor']['id']}/patients/{care['patient']['id']}/next-visit"

    res = client.patch(url, json={"nextVisitDate": "2030-01-02T10:00:00Z"}, headers=other["headers"])

    assert res.status_code == 403


def test_checkup_center_next_visit(client, db, care):
    center, patient = care["center"], care["patient"]
    url = f"/api/checkup-centers/{center['id']}/patients/{patient['id']}/next-visit"

    client.patch(url, json={"nextVisitDate": "2030-03-01T08:00:00Z"}, headers=center["headers"])
    res = client.patch(url, json={"nextVisitDate": "2030-03-05T08:00:00Z"}, headers=center["headers"])

    assert res.status_code == 200
    assert db.query(CheckupCenterNextVisit).filter(
        CheckupCenterNextVisit.checkup_center_id == center["id"]
    ).count() == 1


def test_duplicate_pair_violates_constraint(db, care):
    doctor, patient = care["doctor"], care["patient"]
    db.add(DoctorNextVisit(doctor_id=doctor["id"], patient_id=patient["id"], next_visit=datetime(2030, 1, 1)))
    db.commit()

    db.add(DoctorNextVisit(doctor_id=doctor["id"], patient_id=patient["id"], next_visit=datetime(2030, 1, 2)))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


# ---------------- APPOINTMENTS ---------------- #

def test_booking_appointments(client, make_user):
    doctor, patient, other = make_user("DOCTOR"), make_user("PATIENT"), make_user("PATIENT")
    slot = {"doctorId": doctor["id"], "nextVisit": "2031-05-01T10:00:00Z"}

    res = client.post("/api/appointments/doctor", json=slot, headers=patient["headers"])
    assert res.status_code == 201
    appointment = res.json()["appointment"]
    assert appointment["doctor"]["id"] == doctor["id"]

    assert client.post("/api/appointments/doctor", json=slot, headers=other["headers"]).status_code == 409

    listing = client.get("/api/appointments/", headers=patient["headers"]).json()
    assert listing["total"] == 1
    assert listing["upcoming"][0]["id"] == appointment["id"]

    mine = client.get("/api/appointments/doctor/mine", headers=doctor["headers"]).json()
    assert mine[0]["patient"]["id"] == patient["id"]

    assert client.delete(f"/api/appointments/doctor/{appointment['id']}", headers=other["headers"]).status_code == 403
    assert client.delete(f"/api/appointments/doctor/{appointment['id']}", headers=patient["headers"]).status_code == 200
    assert client.get("/api/appointments/next-visits", headers=patient["headers"]).json() == []


def test_booking_in_the_past_is_400(client, make_user):
    center, patient = make_user("CHECKUP_CENTER"), make_user("PATIENT")
    res = client.post(
        "/api/appointments/checkup",
        json={"checkupCenterId": center["id"], "visitDate": "2001-01-01T10:00:00Z"},
        headers=patient["headers"],
    )
    assert res.status_code == 400
