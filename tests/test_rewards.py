import pytest
from sqlalchemy import func

from models import Account, RewardSetting, RewardTransaction, Role, TransactionType
from rewards import award_points


@pytest.fixture
def admin(make_user):
    return make_user("ADMIN")


def points_of(client, user):
    return client.get("/api/rewards/points", headers=user["headers"]).json()["rewardPoints"]


def refer(client, referrer, referred, role):
    return client.post(
        "/api/rewards/referrals",
        json={"referredId": referred["id"], "referredRole": role},
        headers=referrer["headers"],
    )


def test_referral_completes_once(client, make_user):
    doctor, patient = make_user("DOCTOR"), make_user("PATIENT")
    referral = refer(client, doctor, patient, "PATIENT").json()["referral"]
    assert referral["status"] == "PENDING"
    assert referral["pointsAwarded"] == 2

    first = client.put(f"/api/rewards/referrals/{referral['id']}/complete", headers=patient["headers"])
    second = client.put(f"/api/rewards/referrals/{referral['id']}/complete", headers=patient["headers"])

    assert first.status_code == 200
    assert first.json()["referral"]["status"] == "COMPLETED"
    assert first.json()["referral"]["completedAt"] is not None
    assert second.status_code == 400
    assert points_of(client, doctor) == 2
    assert points_of(client, patient) == 2

    history = client.get("/api/rewards/history", headers=doctor["headers"]).json()
    assert history["totalCount"] == 1
    assert history["transactions"][0]["transactionType"] == "REFERRAL_REWARD"
    assert history["transactions"][0]["referralId"] == referral["id"]


def test_referral_uses_configured_points(client, make_user, admin):
    client.put("/api/rewards/settings", json={"key": "referral_points", "value": 7}, headers=admin["headers"])
    hospital, clinic = make_user("HOSPITAL"), make_user("CLINIC")

    referral = refer(client, hospital, clinic, "CLINIC").json()["referral"]
    client.put(f"/api/rewards/referrals/{referral['id']}/complete", headers=admin["headers"])

    assert referral["pointsAwarded"] == 7
    assert points_of(client, hospital) == 7
    assert points_of(client, clinic) == 7


def test_counter_matches_ledger(db, make_user):
    patient = make_user("PATIENT")

    award_points(db, patient["id"], Role.PATIENT, 5, TransactionType.MEDICINE_COMPLIANCE, "On time")
    award_points(db, patient["id"], Role.PATIENT, 1, TransactionType.MEDICINE_COMPLIANCE, "Late")
    award_points(db, patient["id"], Role.PATIENT, 10, TransactionType.ADMIN_ADJUSTMENT, "Bonus")

    db.expire_all()
    ledger = db.query(func.sum(RewardTransaction.points)).filter(
        RewardTransaction.user_id == patient["id"]
    ).scalar()
    assert db.get(Account, patient["id"]).reward_points == ledger == 16


def test_self_referral_is_rejected(client, make_user):
    doctor = make_user("DOCTOR")
    assert refer(client, doctor, doctor, "DOCTOR").status_code == 400


def test_referral_with_wrong_role_is_404(client, make_user):
    doctor, patient = make_user("DOCTOR"), make_user("PATIENT")
    assert refer(client, doctor, patient, "DOCTOR").status_code == 404


def test_duplicate_referral_reports_existing_one(client, make_user):
    doctor, patient = make_user("DOCTOR"), make_user("PATIENT")
    first = refer(client, doctor, patient, "PATIENT").json()["referral"]

    res = refer(client, doctor, patient, "PATIENT")

    assert res.status_code == 409
    assert res.json()["referralId"] == first["id"]
    assert res.json()["status"] == "PENDING"


def test_only_referred_user_or_admin_completes(client, make_user, admin):
    doctor, patient, stranger = make_user("DOCTOR"), make_user("PATIENT"), make_user("PATIENT")
    referral = refer(client, doctor, patient, "PATIENT").json()["referral"]
    url = f"/api/rewards/referrals/{referral['id']}/complete"

    assert client.put(url, headers=stranger["headers"]).status_code == 403
    assert client.put(url, headers=doctor["headers"]).status_code == 403
    assert client.put(url, headers=admin["headers"]).status_code == 200


def test_unknown_referral_is_404(client, make_user):
    patient = make_user("PATIENT")
    res = client.put("/api/rewards/referrals/missing/complete", headers=patient["headers"])
    assert res.status_code == 404


def test_service_referral_type_must_match_role(client, make_user):
    doctor, store, patient = make_user("DOCTOR"), make_user("MEDSTORE"), make_user("PATIENT")
    payload = {
        "referredId": store["id"],
        "referredRole": "MEDSTORE",
        "serviceType": "DOCTOR_CONSULT",
        "patientId": patient["id"],
    }
    res = client.post("/api/rewards/service-referrals", json=payload, headers=doctor["headers"])
    assert res.status_code == 400


def test_service_referral_rewards_referrer_only(client, db, make_user):
    clinic, doctor, patient = make_user("CLINIC"), make_user("DOCTOR"), make_user("PATIENT")
    payload = {
        "referredId": doctor["id"],
        "referredRole": "DOCTOR",
        "serviceType": "DOCTOR_CONSULT",
        "patientId": patient["id"],
        "notes": "Cardiology follow-up",
    }
    created = client.post("/api/rewards/service-referrals", json=payload, headers=clinic["headers"])
    assert created.status_code == 201
    referral = created.json()["referral"]
    assert referral["isServiceReferral"] is True
    assert referral["pointsAwarded"] == 0

    # service referrals are not deduplicated
    again = client.post("/api/rewards/service-referrals", json=payload, headers=clinic["headers"])
    assert again.status_code == 201

    res = client.put(f"/api/rewards/referrals/{referral['id']}/complete", headers=doctor["headers"])

    assert res.status_code == 200
    assert res.json()["referral"]["pointsAwarded"] == 25
    assert points_of(client, clinic) == 25
    assert points_of(client, doctor) == 0

    setting = db.query(RewardSetting).filter(RewardSetting.key == "doctor_consult_referral_points").one()
    assert setting.value == 25


def test_get_referrals_given_and_received(client, make_user):
    doctor, patient = make_user("DOCTOR"), make_user("PATIENT")
    refer(client, doctor, patient, "PATIENT")

    given = client.get("/api/rewards/referrals", params={"type": "given"}, headers=doctor["headers"]).json()
    received = client.get("/api/rewards/referrals", params={"type": "received"}, headers=patient["headers"]).json()

    assert given["totalCount"] == 1
    assert received["referrals"][0]["referrerId"] == doctor["id"]


def test_settings_are_admin_only(client, make_user, admin):
    doctor = make_user("DOCTOR")

    assert client.get("/api/rewards/settings", headers=doctor["headers"]).status_code == 403

    res = client.put("/api/rewards/settings", json={"key": "referral_points", "value": -1}, headers=admin["headers"])
    assert res.status_code == 400

    res = client.put(
        "/api/rewards/settings",
        json={"key": "referral_points", "value": 3, "description": "Per party"},
        headers=admin["headers"],
    )
    assert res.status_code == 200
    assert res.json()["setting"]["updatedBy"] == admin["id"]

    settings = client.get("/api/rewards/settings", headers=admin["headers"]).json()["settings"]
    assert [(s["key"], s["value"]) for s in settings] == [("referral_points", 3)]
