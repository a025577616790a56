from datetime import timedelta

from sqlalchemy import func, select

from conftest import today_at
from lms.core.exceptions import ConflictError
from lms.models.attendance import AttendanceRecord
from lms.models.faculty import Faculty
from lms.models.user import User, UserRole
from lms.services.attendance import mark_attendance
from lms.services.routines import publish_routine
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
            "department": extra.pop("department", "Nursing"),
            **extra,
        },
    )
    token = login_user(client, email, "password123")
    return user, {"Authorization": f"Bearer {token}"}


def setup_class(client, *, time_slot: str = "09:00-09:50") -> dict:
    hod, hod_headers = make_user(client, "hod", "hod@example.com")
    faculty, faculty_headers = make_user(client, "faculty", "asha@example.com", name="Asha")
    today = today_at(0).date()
    response = client.post(
        "/api/routines",
        json={
            "facultyId": faculty["id"],
            "entries": [
                {
                    "day": day_name(today),
                    "timeSlot": time_slot,
                    "subject": "Anatomy",
                    "course": "BSc Nursing",
                    "roomNumber": "101",
                }
            ],
        },
        headers=hod_headers,
    )
    assert response.status_code == 201
    schedule = client.get("/api/faculty/class-attendance-tracking", headers=faculty_headers).json()
    return {
        "hod": (hod, hod_headers),
        "faculty": (faculty, faculty_headers),
        "today": today,
        "entry_id": schedule["classes"][0]["id"],
        "routine_id": response.json()["routineId"],
    }


def mark_payload(ctx: dict, status: str = "taken", **extra) -> dict:
    faculty, _ = ctx["faculty"]
    return {
        "facultyId": faculty["id"],
        "entryId": ctx["entry_id"],
        "date": ctx["today"].isoformat(),
        "status": status,
        **extra,
    }


def tracked_status(client, headers) -> str:
    body = client.get("/api/faculty/class-attendance-tracking", headers=headers).json()
    return body["classes"][0]["status"]


def test_tracking_follows_the_clock(client, clock):
    ctx = setup_class(client)
    _, headers = ctx["faculty"]

    schedule = client.get("/api/faculty/class-attendance-tracking", headers=headers).json()
    assert schedule["success"] is True
    assert schedule["graceMinutes"] == 30
    tracked = schedule["classes"][0]
    assert tracked["status"] == "pending"
    assert tracked["startTime"] == "09:00"
    assert tracked["endTime"] == "09:50"
    assert tracked["routineId"] == ctx["routine_id"]
    assert tracked["facultyName"] == "Asha"

    clock.set(today_at(9, 0))
    assert tracked_status(client, headers) == "window-open"
    clock.set(today_at(10, 20))
    assert tracked_status(client, headers) == "window-open"
    clock.set(today_at(10, 21))
    assert tracked_status(client, headers) == "missed"


def test_tracking_for_another_day_and_other_faculty(client):
    ctx = setup_class(client)
    _, headers = ctx["faculty"]
    _, hod_headers = ctx["hod"]
    other, other_headers = make_user(client, "faculty", "ravi@example.com")

    tomorrow = ctx["today"] + timedelta(days=1)
    body = client.get(
        "/api/faculty/class-attendance-tracking",
        params={"date": tomorrow.isoformat()},
        headers=headers,
    ).json()
    assert body["date"] == tomorrow.isoformat()
    assert body["classes"] == []

    faculty, _ = ctx["faculty"]
    peek = client.get(
        "/api/faculty/class-attendance-tracking",
        params={"facultyId": faculty["id"]},
        headers=other_headers,
    )
    assert peek.status_code == 403

    as_hod = client.get(
        "/api/faculty/class-attendance-tracking",
        params={"facultyId": faculty["id"]},
        headers=hod_headers,
    )
    assert as_hod.status_code == 200
    assert len(as_hod.json()["classes"]) == 1

    empty = client.get("/api/faculty/class-attendance-tracking", headers=other_headers).json()
    assert empty["facultyId"] == other["id"]
    assert empty["classes"] == []


def test_faculty_marks_class_inside_window(client, clock):
    ctx = setup_class(client)
    faculty, headers = ctx["faculty"]
    _, hod_headers = ctx["hod"]

    clock.set(today_at(9, 10))
    response = client.post(
        "/api/faculty/class-attendance-tracking",
        json=mark_payload(ctx, absentStudents=["Student 4", "Student 9"]),
        headers=headers,
    )
    assert response.status_code == 201
    record = response.json()["record"]
    assert record["status"] == "taken"
    assert record["markedByRole"] == "faculty"
    assert record["entryId"] == ctx["entry_id"]

    tracked = client.get("/api/faculty/class-attendance-tracking", headers=headers).json()["classes"][0]
    assert tracked["status"] == "taken"
    assert tracked["markedByRole"] == "faculty"
    assert tracked["absentStudents"] == ["Student 4", "Student 9"]

    clock.set(today_at(18, 0))
    assert tracked_status(client, headers) == "taken"

    routine = client.get("/api/routines", params={"facultyId": faculty["id"]}, headers=headers).json()["routine"]
    assert routine["entries"][0]["status"] == "taken"
    assert routine["entries"][0]["attendanceStatus"] == "taken"
    assert "lastUpdated" in routine["entries"][0]

    absent = client.get("/api/hod/absent-records", headers=hod_headers).json()["records"]
    assert len(absent) == 1
    assert absent[0]["absentStudents"] == ["Student 4", "Student 9"]
    assert absent[0]["recordedBy"] == "Faculty"
    assert absent[0]["facultyId"] == faculty["id"]


def test_second_mark_is_rejected(client, clock):
    ctx = setup_class(client)
    _, headers = ctx["faculty"]

    clock.set(today_at(9, 5))
    first = client.post("/api/faculty/class-attendance-tracking", json=mark_payload(ctx), headers=headers)
    assert first.status_code == 201

    again = client.post(
        "/api/faculty/class-attendance-tracking",
        json=mark_payload(ctx, status="absent"),
        headers=headers,
    )
    assert again.status_code == 409
    assert again.json()["details"]["status"] == "taken"


def test_marking_outside_window_is_rejected(client, clock):
    ctx = setup_class(client)
    _, headers = ctx["faculty"]

    early = client.post("/api/faculty/class-attendance-tracking", json=mark_payload(ctx), headers=headers)
    assert early.status_code == 409
    assert early.json()["details"]["status"] == "pending"

    clock.set(today_at(11, 0))
    late = client.post("/api/faculty/class-attendance-tracking", json=mark_payload(ctx), headers=headers)
    assert late.status_code == 409
    assert late.json()["details"]["status"] == "missed"


def test_mark_validation(client, clock):
    ctx = setup_class(client)
    faculty, headers = ctx["faculty"]
    _, hod_headers = ctx["hod"]
    _, other_headers = make_user(client, "faculty", "ravi@example.com")
    clock.set(today_at(9, 10))

    bad_status = client.post(
        "/api/faculty/class-attendance-tracking",
        json=mark_payload(ctx, status="done"),
        headers=headers,
    )
    assert bad_status.status_code == 400

    unknown_entry = client.post(
        "/api/faculty/class-attendance-tracking",
        json={**mark_payload(ctx), "entryId": "no-such-entry"},
        headers=headers,
    )
    assert unknown_entry.status_code == 404

    someone_else = client.post("/api/faculty/class-attendance-tracking", json=mark_payload(ctx), headers=other_headers)
    assert someone_else.status_code == 403

    hod_on_faculty_route = client.post(
        "/api/faculty/class-attendance-tracking",
        json=mark_payload(ctx),
        headers=hod_headers,
    )
    assert hod_on_faculty_route.status_code == 403

    missing = client.post(
        "/api/faculty/class-attendance-tracking",
        json={"facultyId": faculty["id"], "status": "taken"},
        headers=headers,
    )
    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing required fields"


def test_class_id_is_accepted_in_place_of_entry_id(client, clock):
    ctx = setup_class(client)
    _, headers = ctx["faculty"]
    clock.set(today_at(9, 10))

    payload = mark_payload(ctx)
    payload["classId"] = payload.pop("entryId")
    response = client.post("/api/faculty/class-attendance-tracking", json=payload, headers=headers)
    assert response.status_code == 201


def test_hod_override_replaces_record_and_notifies(client, clock):
    ctx = setup_class(client)
    faculty, headers = ctx["faculty"]
    _, hod_headers = ctx["hod"]

    clock.set(today_at(9, 10))
    client.post(
        "/api/faculty/class-attendance-tracking",
        json=mark_payload(ctx, status="absent"),
        headers=headers,
    )

    clock.set(today_at(16, 0))
    forbidden = client.post("/api/hod/class-attendance-tracking", json=mark_payload(ctx), headers=headers)
    assert forbidden.status_code == 403

    response = client.post(
        "/api/hod/class-attendance-tracking",
        json=mark_payload(ctx, status="taken", absentStudents=["Student 2"]),
        headers=hod_headers,
    )
    assert response.status_code == 200
    assert response.json()["record"]["status"] == "taken"
    assert response.json()["record"]["markedByRole"] == "hod"

    assert tracked_status(client, headers) == "taken"

    inbox = client.get("/api/notifications", headers=headers).json()["notifications"]
    assert inbox[0]["title"] == "Attendance Updated by HOD"
    assert inbox[0]["type"] == "attendance"
    assert '"taken"' in inbox[0]["description"]

    absent = client.get(
        "/api/hod/absent-records",
        params={"facultyId": faculty["id"], "startDate": ctx["today"].isoformat()},
        headers=hod_headers,
    ).json()["records"]
    assert [item["recordedBy"] for item in absent] == ["HOD"]


def test_repeated_overrides_keep_one_absentee_row(client, clock):
    ctx = setup_class(client)
    _, headers = ctx["faculty"]
    _, hod_headers = ctx["hod"]
    clock.set(today_at(16, 0))

    for absentees in (["Student 1"], ["Student 1", "Student 7"]):
        response = client.post(
            "/api/hod/class-attendance-tracking",
            json=mark_payload(ctx, status="taken", absentStudents=absentees),
            headers=hod_headers,
        )
        assert response.status_code == 200

    records = client.get("/api/hod/absent-records", headers=hod_headers).json()["records"]
    assert [item["absentStudents"] for item in records] == [["Student 1", "Student 7"]]

    client.post(
        "/api/hod/class-attendance-tracking",
        json=mark_payload(ctx, status="missed", absentStudents=["Student 1"]),
        headers=hod_headers,
    )
    assert tracked_status(client, headers) == "missed"
    assert client.get("/api/hod/absent-records", headers=hod_headers).json() == {"records": []}


def test_hod_can_record_a_missed_class_before_it_closes(client, clock):
    ctx = setup_class(client)
    _, headers = ctx["faculty"]
    _, hod_headers = ctx["hod"]

    response = client.post(
        "/api/hod/class-attendance-tracking",
        json=mark_payload(ctx, status="missed"),
        headers=hod_headers,
    )
    assert response.status_code == 200
    assert tracked_status(client, headers) == "missed"


def test_department_view_lists_all_faculty(client, clock):
    ctx = setup_class(client)
    _, hod_headers = ctx["hod"]
    _, faculty_headers = ctx["faculty"]
    make_user(client, "faculty", "ravi@example.com", name="Ravi", department="Pharmacy")

    body = client.get("/api/hod/class-attendance-tracking", headers=hod_headers).json()
    assert body["graceMinutes"] == 30
    assert len(body["classes"]) == 1
    assert sorted(item["name"] for item in body["faculties"]) == ["Asha", "Ravi"]

    pharmacy = client.get(
        "/api/hod/class-attendance-tracking",
        params={"department": "Pharmacy"},
        headers=hod_headers,
    ).json()
    assert pharmacy["classes"] == []
    assert [item["name"] for item in pharmacy["faculties"]] == ["Ravi"]

    assert client.get("/api/hod/class-attendance-tracking", headers=faculty_headers).status_code == 403


def test_missed_classes_report(client, clock):
    ctx = setup_class(client)
    faculty, headers = ctx["faculty"]
    _, hod_headers = ctx["hod"]

    assert client.get("/api/attendance/missed", headers=hod_headers).json()["count"] == 0

    clock.set(today_at(12, 0))
    body = client.get("/api/attendance/missed", headers=hod_headers).json()
    assert body["count"] == 1
    assert body["missedClasses"][0]["facultyId"] == faculty["id"]
    assert body["missedClasses"][0]["status"] == "missed"

    client.post(
        "/api/hod/class-attendance-tracking",
        json=mark_payload(ctx, status="taken"),
        headers=hod_headers,
    )
    assert client.get("/api/attendance/missed", headers=hod_headers).json()["count"] == 0
    assert client.get("/api/attendance/missed", headers=headers).status_code == 403


def test_faculty_statistics(client, clock):
    ctx = setup_class(client)
    faculty, headers = ctx["faculty"]
    _, hod_headers = ctx["hod"]
    today = ctx["today"].isoformat()

    clock.set(today_at(9, 10))
    client.post("/api/faculty/class-attendance-tracking", json=mark_payload(ctx), headers=headers)

    stats = client.get(
        "/api/hod/faculty-statistics",
        params={"facultyId": faculty["id"], "startDate": today, "endDate": today},
        headers=hod_headers,
    )
    assert stats.status_code == 200
    body = stats.json()
    assert body["totalClasses"] == 1
    assert body["takenClasses"] == 1
    assert body["attendancePercentage"] == 100.0

    own = client.get(
        "/api/hod/faculty-statistics",
        params={"facultyId": faculty["id"], "startDate": today, "endDate": today},
        headers=headers,
    )
    assert own.status_code == 200

    backwards = client.get(
        "/api/hod/faculty-statistics",
        params={
            "facultyId": faculty["id"],
            "startDate": today,
            "endDate": (ctx["today"] - timedelta(days=1)).isoformat(),
        },
        headers=hod_headers,
    )
    assert backwards.status_code == 400

    too_long = client.get(
        "/api/hod/faculty-statistics",
        params={
            "facultyId": faculty["id"],
            "startDate": (ctx["today"] - timedelta(days=400)).isoformat(),
            "endDate": today,
        },
        headers=hod_headers,
    )
    assert too_long.status_code == 400


def test_concurrent_mark_of_same_class_conflicts(session_factory):
    today = today_at(0).date()
    with session_factory() as db:
        db.add(User(id="fac-1", name="Asha", email="asha@example.com", hashed_password="x", role=UserRole.faculty))
        db.add(Faculty(id="fac-1", name="Asha", email="asha@example.com"))
        db.flush()
        entries = [{"day": day_name(today), "timeSlot": "09:00-09:50", "subject": "Anatomy", "course": "BSc"}]
        routine = publish_routine(db, faculty_id="fac-1", entries=entries)
        db.commit()
        entry_id = routine.entries[0]["id"]

    with session_factory() as db:
        actor = db.get(User, "fac-1")
        # Another request inserted the same record; this session has not seen it yet.
        db.add(AttendanceRecord(faculty_id="fac-1", class_date=today, entry_id=entry_id, status="taken"))
        try:
            mark_attendance(
                db,
                actor=actor,
                faculty_id="fac-1",
                entry_id=entry_id,
                class_date=today,
                status="taken",
                now=today_at(9, 10),
            )
        except ConflictError as exc:
            assert exc.status_code == 409
        else:
            raise AssertionError("duplicate attendance record should conflict")

    with session_factory() as db:
        assert db.execute(select(func.count(AttendanceRecord.id))).scalar_one() == 0
