from datetime import datetime, timedelta

import pytest


def iso(moment):
    return moment.replace(microsecond=0).isoformat()


@pytest.fixture
def schedule(client, make_user):
    doctor, patient = make_user("DOCTOR"), make_user("PATIENT")
    payload = {
        "patientId": patient["id"],
        "startDate": iso(datetime.utcnow() - timedelta(days=1)),
        "numberOfDays": 10,
        "items": [
            {"medicineName": "Amoxicillin", "dosage": "250mg", "timesPerDay": 2},
            {"medicineName": "Vitamin D", "dosage": "1 tab", "timesPerDay": 1, "gapBetweenDays": 6},
        ],
    }
    res = client.post("/api/medicine-schedules/", json=payload, headers=doctor["headers"])
    assert res.status_code == 201, res.text
    return {"doctor": doctor, "patient": patient, "body": res.json()}


def test_create_schedule(schedule):
    body = schedule["body"]
    assert body["schedulerType"] == "DOCTOR"
    assert body["schedulerId"] == schedule["doctor"]["id"]
    assert [i["medicineName"] for i in body["items"]] == ["Amoxicillin", "Vitamin D"]


def test_patients_cannot_create_schedules(client, make_user):
    patient = make_user("PATIENT")
    payload = {
        "patientId": patient["id"],
        "startDate": "2030-01-01T00:00:00Z",
        "numberOfDays": 1,
        "items": [{"medicineName": "X", "dosage": "1", "timesPerDay": 1}],
    }
    assert client.post("/api/medicine-schedules/", json=payload, headers=patient["headers"]).status_code == 403


def test_empty_items_fail_validation(client, make_user):
    doctor, patient = make_user("DOCTOR"), make_user("PATIENT")
    payload = {"patientId": patient["id"], "startDate": "2030-01-01T00:00:00Z", "numberOfDays": 1, "items": []}

    res = client.post("/api/medicine-schedules/", json=payload, headers=doctor["headers"])

    assert res.status_code == 400
    assert res.json()["error"] == "Validation failed"


def test_patient_views_own_schedules_only(client, make_user, schedule):
    patient, stranger = schedule["patient"], make_user("PATIENT")
    schedule_id = schedule["body"]["id"]

    assert len(client.get("/api/medicine-schedules/patient", headers=patient["headers"]).json()) == 1
    assert client.get(f"/api/medicine-schedules/{schedule_id}", headers=patient["headers"]).status_code == 200
    assert client.get(f"/api/medicine-schedules/{schedule_id}", headers=stranger["headers"]).status_code == 403
    assert client.get(
        f"/api/medicine-schedules/patient/{patient['id']}", headers=stranger["headers"]
    ).status_code == 403


def test_only_prescriber_updates(client, make_user, schedule):
    other_doctor = make_user("DOCTOR")
    url = f"/api/medicine-schedules/{schedule['body']['id']}"
    first_item = schedule["body"]["items"][0]

    assert client.put(url, json={"notes": "x"}, headers=other_doctor["headers"]).status_code == 403

    res = client.put(
        url,
        json={
            "numberOfDays": 14,
            "items": [{"id": first_item["id"], "medicineName": "Amoxicillin", "dosage": "500mg", "timesPerDay": 3}],
        },
        headers=schedule["doctor"]["headers"],
    )
    assert res.status_code == 200
    body = res.json()
    assert body["numberOfDays"] == 14
    assert [(i["id"], i["dosage"]) for i in body["items"]] == [(first_item["id"], "500mg")]

    assert client.delete(url, headers=schedule["doctor"]["headers"]).status_code == 204
    assert client.get(url, headers=schedule["doctor"]["headers"]).status_code == 404


def test_reminder_times_must_match_times_per_day(client, schedule):
    patient = schedule["patient"]
    item = schedule["body"]["items"][0]

    res = client.post(
        "/api/medicine-reminders/set",
        json={"medicineItemId": item["id"], "reminderTimes": ["08:00"]},
        headers=patient["headers"],
    )
    assert res.status_code == 400

    res = client.post(
        "/api/medicine-reminders/set",
        json={"medicineItemId": item["id"], "reminderTimes": ["08:00", "25:00"]},
        headers=patient["headers"],
    )
    assert res.status_code == 400


def test_taking_medicine_awards_compliance_points(client, schedule):
    patient = schedule["patient"]
    item = schedule["body"]["items"][0]
    res = client.post(
        "/api/medicine-reminders/set",
        json={"medicineItemId": item["id"], "reminderTimes": ["8:00", "20:00"]},
        headers=patient["headers"],
    )
    assert res.status_code == 200
    reminders = res.json()["reminderTimes"]
    assert [r["reminderTime"] for r in reminders] == ["08:00", "20:00"]

    today = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
    on_time = client.post(
        f"/api/medicine-reminders/{reminders[0]['id']}/taken",
        json={"takenAt": iso(today + timedelta(hours=8, minutes=10))},
        headers=patient["headers"],
    ).json()
    late = client.post(
        f"/api/medicine-reminders/{reminders[1]['id']}/taken",
        json={"takenAt": iso(today + timedelta(hours=22))},
        headers=patient["headers"],
    ).json()

    assert (on_time["pointsAwarded"], on_time["isOnTime"]) == (5, True)
    assert (late["pointsAwarded"], late["isOnTime"]) == (1, False)
    assert on_time["reminder"]["consecutiveDaysTaken"] == 1
    assert late["reminder"]["totalTimesTaken"] == 1
    assert client.get("/api/rewards/points", headers=patient["headers"]).json()["rewardPoints"] == 6


def test_reminders_of_other_patients_are_hidden(client, make_user, schedule):
    stranger = make_user("PATIENT")
    item = schedule["body"]["items"][0]

    res = client.get(f"/api/medicine-reminders/medicine-item/{item['id']}", headers=stranger["headers"])

    assert res.status_code == 404


def test_patient_reminder_overview(client, schedule):
    res = client.get("/api/medicine-reminders/patient", headers=schedule["patient"]["headers"])

    assert res.status_code == 200
    body = res.json()
    assert len(body["schedules"]) == 1
    assert 0 < len(body["upcomingReminders"]) <= 10


def test_confirm_outside_window_is_400(client, schedule):
    item = schedule["body"]["items"][0]
    res = client.post(
        "/api/medicine-schedules/confirm",
        json={"medicineItemId": item["id"], "takenAt": iso(datetime.utcnow() - timedelta(hours=3))},
        headers=schedule["patient"]["headers"],
    )
    assert res.status_code == 400


def test_confirm_within_window(client, schedule):
    item = schedule["body"]["items"][0]
    res = client.post(
        "/api/medicine-schedules/confirm",
        json={"medicineItemId": item["id"], "takenAt": iso(datetime.utcnow() - timedelta(minutes=5))},
        headers=schedule["patient"]["headers"],
    )
    assert res.status_code == 200
    assert res.json()["pointsAwarded"] == 5


@pytest.fixture
def ended_schedule(client, make_user):
    doctor, patient = make_user("DOCTOR"), make_user("PATIENT")
    payload = {
        "patientId": patient["id"],
        "startDate": iso(datetime.utcnow() - timedelta(days=5)),
        "numberOfDays": 2,
        "items": [{"medicineName": "Amoxicillin", "dosage": "250mg", "timesPerDay": 1}],
    }
    res = client.post("/api/medicine-schedules/", json=payload, headers=doctor["headers"])
    assert res.status_code == 201, res.text
    return {"patient": patient, "item": res.json()["items"][0]}


def test_confirm_after_schedule_ended_is_400(client, ended_schedule):
    patient = ended_schedule["patient"]
    res = client.post(
        "/api/medicine-schedules/confirm",
        json={"medicineItemId": ended_schedule["item"]["id"], "takenAt": iso(datetime.utcnow())},
        headers=patient["headers"],
    )

    assert res.status_code == 400
    assert res.json()["error"] == "This medicine schedule has already ended"
    assert client.get("/api/rewards/points", headers=patient["headers"]).json()["rewardPoints"] == 0


def test_backdated_taken_on_ended_schedule_is_400(client, ended_schedule):
    patient = ended_schedule["patient"]
    reminders = client.post(
        "/api/medicine-reminders/set",
        json={"medicineItemId": ended_schedule["item"]["id"], "reminderTimes": ["08:00"]},
        headers=patient["headers"],
    ).json()["reminderTimes"]
    four_days_ago = (datetime.utcnow() - timedelta(days=4)).replace(hour=8, minute=0)

    res = client.post(
        f"/api/medicine-reminders/{reminders[0]['id']}/taken",
        json={"takenAt": iso(four_days_ago)},
        headers=patient["headers"],
    )

    assert res.status_code == 400
    assert client.get("/api/rewards/points", headers=patient["headers"]).json()["rewardPoints"] == 0


def test_taken_before_schedule_start_is_400(client, schedule):
    patient = schedule["patient"]
    reminders = client.post(
        "/api/medicine-reminders/set",
        json={"medicineItemId": schedule["body"]["items"][0]["id"], "reminderTimes": ["08:00", "20:00"]},
        headers=patient["headers"],
    ).json()["reminderTimes"]

    res = client.post(
        f"/api/medicine-reminders/{reminders[0]['id']}/taken",
        json={"takenAt": iso(datetime.utcnow() - timedelta(days=3))},
        headers=patient["headers"],
    )

    assert res.status_code == 400
    assert res.json()["error"] == "Taken time is outside the medicine schedule"
