def register_user(client, payload: dict):
    return client.post("/api/auth/register", json=payload)


def login_user(client, email: str, password: str):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def faculty_payload(**overrides) -> dict:
    payload = {
        "name": "Asha Menon",
        "email": "Asha@Example.com",
        "password": "password123",
        "role": "faculty",
        "department": "Nursing",
        "designation": "Assistant Professor",
        "subjectsKnown": ["Anatomy", " Anatomy ", "Physiology"],
    }
    payload.update(overrides)
    return payload


def test_register_creates_linked_faculty_profile(client):
    response = register_user(client, faculty_payload())
    assert response.status_code == 201
    user = response.json()
    assert user["email"] == "asha@example.com"
    assert user["role"] == "faculty"
    assert "hashedPassword" not in user
    assert "password" not in user

    token = login_user(client, "asha@example.com", "password123").json()["accessToken"]
    headers = {"Authorization": f"Bearer {token}"}

    profile = client.get("/api/faculty/me", headers=headers)
    assert profile.status_code == 200
    assert profile.json()["id"] == user["id"]
    assert profile.json()["designation"] == "Assistant Professor"
    assert profile.json()["subjectsKnown"] == ["Anatomy", "Physiology"]


def test_register_rejects_duplicate_email(client):
    assert register_user(client, faculty_payload()).status_code == 201
    duplicate = register_user(client, faculty_payload(email="asha@example.com"))
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "Email already registered"


def test_register_validation_errors_use_error_shape(client):
    response = register_user(client, {"email": "someone@example.com", "password": "password123"})
    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Missing required fields"
    fields = {item["field"] for item in body["details"]["errors"]}
    assert {"name", "role"} <= fields

    short_password = register_user(client, faculty_payload(password="short"))
    assert short_password.status_code == 400


def test_login_and_me(client):
    register_user(client, faculty_payload(role="hod", email="hod@example.com"))

    bad = login_user(client, "hod@example.com", "wrong-password")
    assert bad.status_code == 401
    assert bad.json()["error"] == "Invalid credentials"

    response = login_user(client, "HOD@example.com", "password123")
    assert response.status_code == 200
    body = response.json()
    assert body["tokenType"] == "bearer"
    assert body["user"]["role"] == "hod"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['accessToken']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "hod@example.com"


def test_hod_has_no_faculty_profile(client):
    register_user(client, faculty_payload(role="hod", email="hod@example.com"))
    token = login_user(client, "hod@example.com", "password123").json()["accessToken"]
    headers = {"Authorization": f"Bearer {token}"}

    assert client.get("/api/faculty/me", headers=headers).status_code == 403
    assert client.get("/api/faculty", headers=headers).json() == []


def test_protected_routes_require_a_valid_token(client):
    assert client.get("/api/auth/me").status_code in {401, 403}
    invalid = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert invalid.status_code == 401
    assert invalid.json()["error"] == "Could not validate credentials"
