import pytest


@pytest.fixture
def compounder(make_user):
    return make_user("COMPOUNDER", name="Sunil Rao")


def test_listing_requires_authentication(client, compounder):
    assert client.get("/api/compounders/").status_code == 401

    res = client.get("/api/compounders/", params={"search": "sunil"}, headers=compounder["headers"])

    assert res.status_code == 200
    assert [c["name"] for c in res.json()["data"]] == ["Sunil Rao"]


def test_create_compounder(client):
    payload = {"name": "Meera Joshi", "email": "meera@example.com", "password": "secret123", "phone": "9876500000"}

    res = client.post("/api/compounders/", json=payload)

    assert res.status_code == 201
    assert res.json()["role"] == "COMPOUNDER"
    assert "password" not in res.json()


def test_assign_and_remove_clinic(client, make_user, compounder):
    clinic = make_user("CLINIC")
    link = {"compounderId": compounder["id"], "clinicId": clinic["id"]}

    res = client.post("/api/compounders/assign-clinic", json=link, headers=clinic["headers"])
    assert res.status_code == 200
    assert res.json()["clinic"]["id"] == clinic["id"]

    unlink = {"compounderId": compounder["id"]}
    res = client.post("/api/compounders/remove-clinic", json=unlink, headers=compounder["headers"])
    assert res.status_code == 200
    assert res.json()["clinicId"] is None

    res = client.post("/api/compounders/remove-clinic", json=unlink, headers=compounder["headers"])
    assert res.status_code == 400


def test_assign_and_remove_med_store(client, make_user, compounder):
    store = make_user("MEDSTORE")

    res = client.post(
        "/api/compounders/assign-medstore",
        json={"compounderId": compounder["id"], "medStoreId": store["id"]},
        headers=compounder["headers"],
    )
    assert res.status_code == 200
    assert res.json()["medStoreId"] == store["id"]

    res = client.post("/api/compounders/remove-medstore", json={"compounderId": compounder["id"]}, headers=store["headers"])
    assert res.status_code == 200
    assert res.json()["medStore"] is None


def test_assign_hospital_is_idempotent(client, make_user, compounder):
    hospital = make_user("HOSPITAL")
    link = {"compounderId": compounder["id"], "hospitalId": hospital["id"]}

    client.post("/api/compounders/assign-hospital", json=link, headers=hospital["headers"])
    res = client.post("/api/compounders/assign-hospital", json=link, headers=hospital["headers"])

    assert res.status_code == 200
    assert [h["id"] for h in res.json()["hospitals"]] == [hospital["id"]]


def test_outsiders_cannot_change_links(client, make_user, compounder):
    clinic, other_clinic = make_user("CLINIC"), make_user("CLINIC")

    res = client.post(
        "/api/compounders/assign-clinic",
        json={"compounderId": compounder["id"], "clinicId": clinic["id"]},
        headers=other_clinic["headers"],
    )

    assert res.status_code == 403


@pytest.mark.parametrize("path, field", [("assign-clinic", "clinicId"), ("assign-medstore", "medStoreId")])
def test_assign_to_missing_provider_is_404(client, compounder, path, field):
    res = client.post(
        f"/api/compounders/{path}",
        json={"compounderId": compounder["id"], field: "missing"},
        headers=compounder["headers"],
    )

    assert res.status_code == 404


def test_detail_includes_reviews(client, make_user, compounder):
    patient = make_user("PATIENT")
    client.post(
        "/api/reviews/",
        json={"rating": 5, "comment": "Very careful", "compounderId": compounder["id"]},
        headers=patient["headers"],
    )

    res = client.get(f"/api/compounders/{compounder['id']}", headers=patient["headers"])

    assert res.status_code == 200
    reviews = res.json()["reviews"]
    assert [(r["rating"], r["patient"]["id"]) for r in reviews] == [(5, patient["id"])]


def test_profile_is_self_or_admin(client, make_user, compounder):
    other = make_user("COMPOUNDER")
    url = f"/api/compounders/{compounder['id']}"

    assert client.put(url, json={"city": "Nashik"}, headers=other["headers"]).status_code == 403
    assert client.put(url, json={"city": "Nashik"}, headers=compounder["headers"]).json()["city"] == "Nashik"
    assert client.delete(url, headers=compounder["headers"]).status_code == 200
    assert client.get(url, headers=other["headers"]).status_code == 404
