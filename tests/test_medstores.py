import pytest


@pytest.fixture
def prescription(client, make_user):
    patient = make_user("PATIENT", name="Asha Rao")
    res = client.post(
        "/api/med-documents/",
        json={
            "fileName": "rx-march.jpg",
            "fileUrl": "https://files.example.com/rx-march.jpg",
            "documentType": "PRESCRIPTION",
            "patientId": patient["id"],
            "description": "Insulin and strips",
            "seekAvailability": True,
        },
        headers=patient["headers"],
    )
    return {"patient": patient, "document": res.json()}


def raise_hand(client, store, document):
    return client.post(f"/api/medstores/{store['id']}/raise-hand/{document['id']}", headers=store["headers"])


def test_unverified_store_cannot_raise_hand(client, make_user, prescription):
    store = make_user("MEDSTORE")
    assert raise_hand(client, store, prescription["document"]).status_code == 403


def test_hand_raise_lifecycle(client, make_user, verify, prescription):
    store = make_user("MEDSTORE")
    verify(store["id"])
    document = prescription["document"]

    first = raise_hand(client, store, document)
    assert first.status_code == 201
    assert first.json()["handRaise"]["medStoreId"] == store["id"]

    assert raise_hand(client, store, document).status_code == 409

    detail = client.get(f"/api/med-documents/{document['id']}", headers=prescription["patient"]["headers"]).json()
    assert [h["medStoreId"] for h in detail["handRaises"]] == [store["id"]]

    url = f"/api/medstores/{store['id']}/withdraw-hand/{document['id']}"
    assert client.delete(url, headers=store["headers"]).status_code == 200
    assert client.delete(url, headers=store["headers"]).status_code == 404


def test_cannot_raise_hand_for_other_store(client, make_user, verify, prescription):
    store, other = make_user("MEDSTORE"), make_user("MEDSTORE")
    verify(other["id"])

    res = client.post(
        f"/api/medstores/{other['id']}/raise-hand/{prescription['document']['id']}",
        headers=store["headers"],
    )

    assert res.status_code == 403


def test_document_must_seek_availability(client, make_user, verify):
    store, patient = make_user("MEDSTORE"), make_user("PATIENT")
    verify(store["id"])
    document = client.post(
        "/api/med-documents/",
        json={
            "fileName": "report.pdf",
            "fileUrl": "https://files.example.com/report.pdf",
            "documentType": "MEDICAL_REPORT",
            "patientId": patient["id"],
        },
        headers=patient["headers"],
    ).json()

    assert raise_hand(client, store, document).status_code == 400


def test_available_prescriptions(client, make_user, verify, prescription):
    store = make_user("MEDSTORE")
    verify(store["id"])
    raise_hand(client, store, prescription["document"])

    res = client.get("/api/medstores/available-prescriptions", headers=store["headers"])
    assert res.status_code == 200
    body = res.json()
    assert body["pagination"]["total"] == 1
    listing = body["data"][0]
    assert listing["patient"]["name"] == "Asha Rao"
    assert listing["handRaiseCount"] == 1
    assert listing["hasRaisedHand"] is True

    searched = client.get(
        "/api/medstores/available-prescriptions", params={"search": "asha"}, headers=store["headers"]
    ).json()
    assert searched["pagination"]["total"] == 1

    missing = client.get(
        "/api/medstores/available-prescriptions", params={"search": "nothing-like-this"}, headers=store["headers"]
    ).json()
    assert missing["data"] == []


def test_available_prescriptions_require_store_role(client, prescription):
    res = client.get("/api/medstores/available-prescriptions", headers=prescription["patient"]["headers"])
    assert res.status_code == 403
