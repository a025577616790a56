def register_user(client, payload: dict) -> dict:
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201
    return response.json()


def login_user(client, email: str, password: str) -> str:
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["accessToken"]


def make_user(client, role: str, email: str, **extra) -> tuple[dict, dict]:
    user = register_user(
        client,
        {
            "name": extra.pop("name", email.split("@")[0].title()),
            "email": email,
            "password": "password123",
            "role": role,
            "department": extra.pop("department", "Nursing"),
            **extra,
        },
    )
    token = login_user(client, email, "password123")
    return user, {"Authorization": f"Bearer {token}"}


def test_list_faculty_with_department_filter(client):
    _, hod_headers = make_user(client, "hod", "hod@example.com")
    make_user(client, "faculty", "asha@example.com", name="Asha")
    make_user(client, "faculty", "ravi@example.com", name="Ravi", department="Pharmacy")

    everyone = client.get("/api/faculty", headers=hod_headers).json()
    assert [item["name"] for item in everyone] == ["Asha", "Ravi"]
    assert everyone[0]["employmentStatus"] == "Full-time"

    pharmacy = client.get("/api/faculty", params={"department": "Pharmacy"}, headers=hod_headers).json()
    assert [item["name"] for item in pharmacy] == ["Ravi"]


def test_faculty_can_edit_own_contact_details_only(client):
    asha, asha_headers = make_user(client, "faculty", "asha@example.com")
    ravi, _ = make_user(client, "faculty", "ravi@example.com")

    response = client.put(
        f"/api/faculty/{asha['id']}",
        json={"phone": "+91 98450 00000", "subjectsKnown": ["Anatomy"]},
        headers=asha_headers,
    )
    assert response.status_code == 200
    assert response.json()["phone"] == "+91 98450 00000"
    assert response.json()["subjectsKnown"] == ["Anatomy"]

    blocked = client.put(f"/api/faculty/{asha['id']}", json={"designation": "Professor"}, headers=asha_headers)
    assert blocked.status_code == 403

    other = client.put(f"/api/faculty/{ravi['id']}", json={"phone": "1"}, headers=asha_headers)
    assert other.status_code == 403


def test_hod_updates_profile_and_user_name(client):
    _, hod_headers = make_user(client, "hod", "hod@example.com")
    asha, asha_headers = make_user(client, "faculty", "asha@example.com")

    response = client.put(
        f"/api/faculty/{asha['id']}",
        json={"name": "Asha Menon", "designation": "Professor"},
        headers=hod_headers,
    )
    assert response.status_code == 200
    assert response.json()["designation"] == "Professor"

    me = client.get("/api/auth/me", headers=asha_headers).json()
    assert me["name"] == "Asha Menon"

    fetched = client.get(f"/api/faculty/{asha['id']}", headers=hod_headers)
    assert fetched.json()["name"] == "Asha Menon"

    assert client.get("/api/faculty/unknown", headers=hod_headers).status_code == 404
