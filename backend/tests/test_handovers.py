from datetime import datetime, timedelta, timezone

from lms.services.time_slots import day_name


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
            "department": "Nursing",
            **extra,
        },
    )
    token = login_user(client, email, "password123")
    return user, {"Authorization": f"Bearer {token}"}


def today():
    return datetime.now(timezone.utc).date()


def publish_routine(client, hod_headers, faculty_id: str, time_slot: str, subject: str) -> dict:
    response = client.post(
        "/api/routines",
        json={
            "facultyId": faculty_id,
            "entries": [
                {
                    "day": day_name(today()),
                    "timeSlot": time_slot,
                    "subject": subject,
                    "course": "BSc Nursing",
                    "roomNumber": "204",
                }
            ],
        },
        headers=hod_headers,
    )
    assert response.status_code == 201
    return response.json()


def handover_payload(faculty_id: str, substitute_id: str, **overrides) -> dict:
    payload = {
        "facultyId": faculty_id,
        "dateOfClass": today().isoformat(),
        "timeSlot": "09:00-09:50",
        "subject": "Anatomy",
        "course": "BSc Nursing",
        "roomNo": "204",
        "reason": "Attending a clinical audit",
        "substituteId": substitute_id,
    }
    payload.update(overrides)
    return payload


def setup_department(client) -> dict:
    hod, hod_headers = make_user(client, "hod", "hod@example.com", name="Head Of Department")
    asha, asha_headers = make_user(client, "faculty", "asha@example.com", name="Asha", subjectsKnown=["Anatomy"])
    ravi, ravi_headers = make_user(client, "faculty", "ravi@example.com", name="Ravi")
    meera, meera_headers = make_user(
        client,
        "faculty",
        "meera@example.com",
        name="Meera",
        subjectsKnown=["Anatomy", "Physiology"],
    )
    publish_routine(client, hod_headers, asha["id"], "09:00-09:50", "Anatomy")
    publish_routine(client, hod_headers, ravi["id"], "09:30-10:20", "Pharmacology")
    return {
        "hod": (hod, hod_headers),
        "asha": (asha, asha_headers),
        "ravi": (ravi, ravi_headers),
        "meera": (meera, meera_headers),
    }


def test_availability_reports_regular_class_conflict(client):
    people = setup_department(client)
    ravi, ravi_headers = people["ravi"]
    meera, _ = people["meera"]

    busy = client.get(
        "/api/check-substitute-availability",
        params={"substituteId": ravi["id"], "date": today().isoformat(), "timeSlot": "09:00-09:50"},
        headers=ravi_headers,
    )
    assert busy.status_code == 200
    body = busy.json()
    assert body["available"] is False
    assert body["conflict"]["conflictType"] == "regular_class"
    assert body["conflict"]["subject"] == "Pharmacology"
    assert body["conflict"]["isHandover"] is False

    free = client.get(
        "/api/check-substitute-availability",
        params={"substituteId": meera["id"], "date": today().isoformat(), "timeSlot": "09:00-09:50"},
        headers=ravi_headers,
    )
    assert free.json() == {"available": True, "conflict": None}

    other_day = client.get(
        "/api/check-substitute-availability",
        params={
            "substituteId": ravi["id"],
            "date": (today() + timedelta(days=1)).isoformat(),
            "timeSlot": "09:00-09:50",
        },
        headers=ravi_headers,
    )
    assert other_day.json()["available"] is True


def test_availability_uses_routine_in_force_on_the_date(client):
    people = setup_department(client)
    ravi, ravi_headers = people["ravi"]
    _, hod_headers = people["hod"]
    # Same weekday, after the weekly routine's validity window has ended.
    later = today() + timedelta(days=14)

    tracked = client.get(
        "/api/faculty/class-attendance-tracking",
        params={"facultyId": ravi["id"], "date": later.isoformat()},
        headers=hod_headers,
    ).json()
    assert tracked["classes"] == []

    response = client.get(
        "/api/check-substitute-availability",
        params={"substituteId": ravi["id"], "date": later.isoformat(), "timeSlot": "09:00-09:50"},
        headers=ravi_headers,
    )
    assert response.json() == {"available": True, "conflict": None}


def test_submit_rejects_unavailable_substitute(client):
    people = setup_department(client)
    asha, asha_headers = people["asha"]
    ravi, _ = people["ravi"]

    response = client.post("/api/handovers", json=handover_payload(asha["id"], ravi["id"]), headers=asha_headers)
    assert response.status_code == 409
    details = response.json()["details"]
    assert details["available"] is False
    assert details["conflict"]["conflictType"] == "regular_class"


def test_submit_validates_actor_and_substitute(client):
    people = setup_department(client)
    asha, asha_headers = people["asha"]
    ravi, ravi_headers = people["ravi"]
    meera, _ = people["meera"]

    for_someone_else = client.post(
        "/api/handovers",
        json=handover_payload(asha["id"], meera["id"]),
        headers=ravi_headers,
    )
    assert for_someone_else.status_code == 403

    self_substitute = client.post(
        "/api/handovers",
        json=handover_payload(asha["id"], asha["id"]),
        headers=asha_headers,
    )
    assert self_substitute.status_code == 400

    missing = client.post(
        "/api/handovers",
        json={"facultyId": asha["id"], "substituteId": meera["id"]},
        headers=asha_headers,
    )
    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing required fields"


def test_pending_request_blocks_second_assignment(client):
    people = setup_department(client)
    asha, asha_headers = people["asha"]
    meera, meera_headers = people["meera"]
    _, hod_headers = people["hod"]
    nila, nila_headers = make_user(client, "faculty", "nila@example.com", name="Nila")

    first = client.post("/api/handovers", json=handover_payload(asha["id"], meera["id"]), headers=asha_headers)
    assert first.status_code == 201
    assert first.json()["handover"]["status"] == "Pending"
    assert first.json()["handover"]["substituteName"] == "Meera"

    hod_inbox = client.get("/api/notifications", headers=hod_headers).json()["notifications"]
    assert [item["title"] for item in hod_inbox] == ["New Handover Request"]

    second = client.post(
        "/api/handovers",
        json=handover_payload(nila["id"], meera["id"], timeSlot="09:15-10:00", subject="Physiology"),
        headers=nila_headers,
    )
    assert second.status_code == 409
    conflict = second.json()["details"]["conflict"]
    assert conflict["conflictType"] == "handover_assignment"
    assert conflict["handoverId"] == first.json()["handover"]["id"]

    later = client.post(
        "/api/handovers",
        json=handover_payload(nila["id"], meera["id"], timeSlot="11:00-11:50", subject="Physiology"),
        headers=nila_headers,
    )
    assert later.status_code == 201


def test_approval_notifies_both_parties_and_blocks_substitute(client):
    people = setup_department(client)
    asha, asha_headers = people["asha"]
    meera, meera_headers = people["meera"]
    _, hod_headers = people["hod"]

    created = client.post("/api/handovers", json=handover_payload(asha["id"], meera["id"]), headers=asha_headers)
    handover_id = created.json()["handover"]["id"]

    forbidden = client.patch(f"/api/handovers/{handover_id}", json={"status": "Approved"}, headers=asha_headers)
    assert forbidden.status_code == 403

    approved = client.patch(
        f"/api/handovers/{handover_id}",
        json={"status": "Approved", "remarks": "OK"},
        headers=hod_headers,
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "Approved"
    assert approved.json()["decidedAt"] is not None

    meera_inbox = client.get("/api/notifications", headers=meera_headers).json()["notifications"]
    assert meera_inbox[0]["title"] == "You are assigned a New Handover"
    assert meera_inbox[0]["type"] == "handover"

    asha_inbox = client.get("/api/notifications", headers=asha_headers).json()["notifications"]
    assert asha_inbox[0]["title"] == "Handover Request Approved"
    assert asha_inbox[0]["type"] == "approval"

    availability = client.get(
        "/api/check-substitute-availability",
        params={"substituteId": meera["id"], "date": today().isoformat(), "timeSlot": "09:20-09:40"},
        headers=meera_headers,
    ).json()
    assert availability["available"] is False
    assert availability["conflict"]["conflictType"] == "approved_handover"

    decided_again = client.patch(f"/api/handovers/{handover_id}", json={"status": "Rejected"}, headers=hod_headers)
    assert decided_again.status_code == 409

    not_deletable = client.delete(f"/api/handovers/{handover_id}", headers=asha_headers)
    assert not_deletable.status_code == 409


def test_rejection_carries_remarks(client):
    people = setup_department(client)
    asha, asha_headers = people["asha"]
    meera, _ = people["meera"]
    _, hod_headers = people["hod"]

    created = client.post("/api/handovers", json=handover_payload(asha["id"], meera["id"]), headers=asha_headers)
    handover_id = created.json()["handover"]["id"]

    invalid = client.patch(f"/api/handovers/{handover_id}", json={"status": "Pending"}, headers=hod_headers)
    assert invalid.status_code == 400
    unknown = client.patch(f"/api/handovers/{handover_id}", json={"status": "Maybe"}, headers=hod_headers)
    assert unknown.status_code == 400

    rejected = client.patch(
        f"/api/handovers/{handover_id}",
        json={"status": "rejected", "remarks": "Exam week"},
        headers=hod_headers,
    )
    assert rejected.status_code == 200
    assert rejected.json()["status"] == "Rejected"

    inbox = client.get("/api/notifications", headers=asha_headers).json()["notifications"]
    assert inbox[0]["title"] == "Handover Request Rejected"
    assert inbox[0]["type"] == "rejection"
    assert "Remarks: Exam week" in inbox[0]["description"]


def test_approval_can_reassign_substitute(client):
    people = setup_department(client)
    asha, asha_headers = people["asha"]
    meera, _ = people["meera"]
    ravi, _ = people["ravi"]
    _, hod_headers = people["hod"]
    nila, nila_headers = make_user(client, "faculty", "nila@example.com", name="Nila")

    created = client.post("/api/handovers", json=handover_payload(asha["id"], meera["id"]), headers=asha_headers)
    handover_id = created.json()["handover"]["id"]

    busy = client.patch(
        f"/api/handovers/{handover_id}",
        json={"status": "Approved", "substituteId": ravi["id"]},
        headers=hod_headers,
    )
    assert busy.status_code == 409

    reassigned = client.patch(
        f"/api/handovers/{handover_id}",
        json={"status": "Approved", "substituteId": nila["id"]},
        headers=hod_headers,
    )
    assert reassigned.status_code == 200
    assert reassigned.json()["substituteId"] == nila["id"]
    assert reassigned.json()["substituteName"] == "Nila"

    inbox = client.get("/api/notifications", headers=nila_headers).json()["notifications"]
    assert inbox[0]["title"] == "You are assigned a New Handover"


def test_listing_and_deleting_requests(client):
    people = setup_department(client)
    asha, asha_headers = people["asha"]
    meera, meera_headers = people["meera"]
    ravi, ravi_headers = people["ravi"]
    _, hod_headers = people["hod"]

    created = client.post("/api/handovers", json=handover_payload(asha["id"], meera["id"]), headers=asha_headers)
    handover_id = created.json()["handover"]["id"]

    assert len(client.get("/api/handovers", headers=hod_headers).json()) == 1
    assert len(client.get("/api/handovers", params={"status": "Pending"}, headers=hod_headers).json()) == 1
    assert client.get("/api/handovers", params={"status": "Approved"}, headers=hod_headers).json() == []
    assert len(client.get("/api/handovers", headers=meera_headers).json()) == 1
    assert client.get("/api/handovers", headers=ravi_headers).json() == []

    assert client.get(f"/api/handovers/{handover_id}", headers=meera_headers).status_code == 200
    assert client.get(f"/api/handovers/{handover_id}", headers=ravi_headers).status_code == 403
    assert client.get("/api/handovers/unknown", headers=hod_headers).status_code == 404

    assert client.delete(f"/api/handovers/{handover_id}", headers=ravi_headers).status_code == 403
    deleted = client.delete(f"/api/handovers/{handover_id}", headers=asha_headers)
    assert deleted.status_code == 200
    assert deleted.json()["success"] is True
    assert client.get(f"/api/handovers/{handover_id}", headers=hod_headers).status_code == 404


def test_substitute_candidates_rank_available_and_qualified_first(client):
    people = setup_department(client)
    asha, asha_headers = people["asha"]

    response = client.get(
        "/api/handovers/substitute-candidates",
        params={"date": today().isoformat(), "timeSlot": "09:00-09:50", "subject": "anatomy"},
        headers=asha_headers,
    )
    assert response.status_code == 200
    candidates = response.json()
    assert [item["name"] for item in candidates] == ["Meera", "Ravi"]
    assert candidates[0]["available"] is True
    assert candidates[0]["qualified"] is True
    assert candidates[1]["available"] is False
    assert candidates[1]["conflict"]["conflictType"] == "regular_class"
    assert asha["id"] not in {item["id"] for item in candidates}


def test_approved_handover_overlays_daily_tracking(client):
    people = setup_department(client)
    asha, asha_headers = people["asha"]
    meera, meera_headers = people["meera"]
    _, hod_headers = people["hod"]

    schedule = client.get("/api/faculty/class-attendance-tracking", headers=asha_headers).json()
    entry = schedule["classes"][0]
    assert entry["status"] == "pending"

    created = client.post(
        "/api/handovers",
        json=handover_payload(asha["id"], meera["id"], classId=entry["id"]),
        headers=asha_headers,
    )
    handover_id = created.json()["handover"]["id"]
    client.patch(f"/api/handovers/{handover_id}", json={"status": "Approved"}, headers=hod_headers)

    giver = client.get("/api/faculty/class-attendance-tracking", headers=asha_headers).json()["classes"]
    assert giver[0]["status"] == "handed over"
    assert giver[0]["substituteId"] == meera["id"]
    assert giver[0]["handoverId"] == handover_id

    taker = client.get("/api/faculty/class-attendance-tracking", headers=meera_headers).json()["classes"]
    assert len(taker) == 1
    assert taker[0]["id"] == f"handover-{handover_id}"
    assert taker[0]["status"] == "handover"
    assert taker[0]["isSubstituteClass"] is True
    assert taker[0]["originalFacultyId"] == asha["id"]
    assert taker[0]["originalFacultyName"] == "Asha"

    routine = client.get("/api/routines", params={"facultyId": asha["id"]}, headers=asha_headers).json()["routine"]
    assert "handoverStatus" not in routine["entries"][0]
