# tests/test_routes.py

import logging

from extensions import db
from models.mark import Mark

PASSWORD = "Secret@123"


def _mark_count(app):
    with app.app_context():
        return db.session.query(Mark).count()


# === auth ===

def test_login_returns_token(client, users):
    response = client.post("/api/auth/login", json={"email": "STAFF@school.test", "password": PASSWORD})

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["data"]["user"]["role"] == "staff"
    assert body["data"]["token"]

    me = client.get("/api/auth/me")
    assert me.get_json()["data"]["email"] == "staff@school.test"


def test_login_rejects_bad_password(client, users):
    response = client.post("/api/auth/login", json={"email": "staff@school.test", "password": "nope"})
    assert response.status_code == 401


def test_login_rejects_inactive_user(client, users):
    response = client.post("/api/auth/login", json={"email": "old@school.test", "password": PASSWORD})
    assert response.status_code == 401


def test_login_requires_fields(client, users):
    assert client.post("/api/auth/login", json={}).status_code == 400


def test_bearer_token_authenticates(client, users, auth_headers):
    response = client.get("/api/auth/me", headers=auth_headers("s1"))
    assert response.get_json()["data"]["admission_number"] == "S001"


def test_garbage_token_is_unauthenticated(client, users):
    response = client.get("/api/marks", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.get_json()["error"] == "UNAUTHENTICATED"


# === marks ===

def test_single_submission_then_resubmission(app, client, users, auth_headers):
    headers = auth_headers("staff")
    payload = {"student": users["s1"], "subject": "MATH", "class": "Grade-10-A", "examPeriod": "Term 1", "score": 82}

    created = client.post("/api/marks", json=payload, headers=headers)
    assert created.status_code == 201
    assert created.get_json()["data"]["grade"] == "A"

    payload["score"] = 40
    updated = client.post("/api/marks", json=payload, headers=headers)
    data = updated.get_json()["data"]
    assert data["score"] == 40
    assert data["grade"] == "S"
    assert data["mark_id"] == created.get_json()["data"]["mark_id"]
    assert _mark_count(app) == 1


def test_single_submission_error_shape(client, users, auth_headers):
    response = client.post(
        "/api/marks",
        json={"student_id": users["s1"], "subject": "MATH", "examPeriod": "Term 1", "score": 101},
        headers=auth_headers("staff"),
    )

    assert response.status_code == 400
    body = response.get_json()
    assert body["success"] is False
    assert body["error"] == "INVALID_SCORE"


def test_student_cannot_post_marks(app, client, users, auth_headers, make_entry):
    headers = auth_headers("s1")

    single = client.post("/api/marks", json=make_entry("S001"), headers=headers)
    bulk = client.post("/api/marks/bulk", json={"entries": [make_entry("S001")]}, headers=headers)

    assert single.status_code == 403
    assert bulk.status_code == 403
    assert _mark_count(app) == 0


def test_bulk_partial_success_is_207(app, client, users, auth_headers, make_entry):
    entries = [make_entry("S001"), make_entry("S777"), make_entry("S003")]

    response = client.post("/api/marks/bulk", json={"entries": entries}, headers=auth_headers("staff"))

    assert response.status_code == 207
    body = response.get_json()
    assert body["success"] is False
    assert len(body["data"]) == 2
    assert body["errors"] == [
        {
            "index": 1,
            "subject": "MATHEMATICS",
            "admission_number": "S777",
            "error": "Student not found: S777",
            "code": "INVALID_STUDENT",
        }
    ]
    assert body["summary"] == {"total": 3, "succeeded": 2, "failed": 1}
    assert _mark_count(app) == 2


def test_bulk_accepts_bare_list(client, users, auth_headers, make_entry):
    response = client.post("/api/marks/bulk", json=[make_entry("S001"), make_entry("S002")], headers=auth_headers("admin"))

    assert response.status_code == 201
    body = response.get_json()
    assert body["success"] is True
    assert "errors" not in body


def test_bulk_all_failed_is_400(app, client, users, auth_headers, make_entry):
    response = client.post(
        "/api/marks/bulk",
        json={"entries": [make_entry("S001", score=150), make_entry("S404")]},
        headers=auth_headers("staff"),
    )

    assert response.status_code == 400
    body = response.get_json()
    assert body["data"] == []
    assert [e["index"] for e in body["errors"]] == [0, 1]
    assert _mark_count(app) == 0


def test_bulk_without_entries_is_400(client, users, auth_headers):
    response = client.post("/api/marks/bulk", json={"entries": []}, headers=auth_headers("staff"))
    assert response.status_code == 400
    assert response.get_json()["error"] == "INVALID_ENTRY"


def test_list_and_delete(app, client, users, auth_headers, make_entry):
    staff = auth_headers("staff")
    client.post("/api/marks/bulk", json=[make_entry("S001"), make_entry("S002")], headers=staff)

    listing = client.get("/api/marks", headers=staff).get_json()
    assert listing["count"] == 2

    own = client.get("/api/marks", headers=auth_headers("s2")).get_json()
    assert [m["admission_number"] for m in own["data"]] == ["S002"]

    mark_id = own["data"][0]["mark_id"]
    assert client.delete(f"/api/marks/{mark_id}", headers=auth_headers("other_staff")).status_code == 403
    assert client.delete(f"/api/marks/{mark_id}", headers=staff).status_code == 200
    assert client.delete(f"/api/marks/{mark_id}", headers=staff).status_code == 404
    assert _mark_count(app) == 1


def test_report_access(client, users, auth_headers, make_entry):
    client.post("/api/marks/bulk", json=[make_entry("S001", score=76)], headers=auth_headers("staff"))

    own = client.get(f"/api/marks/report/{users['s1']}", headers=auth_headers("s1"))
    assert own.status_code == 200
    assert own.get_json()["data"]["overall"]["grade"] == "A"

    other = client.get(f"/api/marks/report/{users['s1']}", headers=auth_headers("s2"))
    assert other.status_code == 403

    empty = client.get(f"/api/marks/report/{users['s3']}", headers=auth_headers("staff"))
    assert empty.get_json()["data"]["overall"]["average_score"] == 0.0


def test_report_pdf_download(client, users, auth_headers, make_entry):
    client.post("/api/marks/bulk", json=[make_entry("S001")], headers=auth_headers("staff"))

    response = client.get(f"/api/marks/report/{users['s1']}/pdf", headers=auth_headers("s1"))

    assert response.status_code == 200
    assert response.mimetype == "application/pdf"
    assert response.data.startswith(b"%PDF")


def test_export_download(client, users, auth_headers, make_entry):
    staff = auth_headers("staff")
    client.post("/api/marks/bulk", json=[make_entry("S001"), make_entry("S002")], headers=staff)

    response = client.get(
        "/api/marks/export",
        query_string={"class": "Grade-10-A", "exam_period": "Term 1"},
        headers=staff,
    )

    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    assert b"MATHEMATICS" in response.data


def test_grade_preview(client, users, auth_headers):
    response = client.get("/api/marks/grade?score=65", headers=auth_headers("s1"))
    body = response.get_json()["data"]
    assert body["grade"] == "B"
    assert [b["grade"] for b in body["bands"]] == ["A", "B", "C", "S", "F"]

    bad = client.get("/api/marks/grade?score=abc", headers=auth_headers("s1"))
    assert bad.status_code == 400


def test_roster_routes(client, users, auth_headers):
    staff = auth_headers("staff")

    assert client.get("/api/marks/classes", headers=staff).get_json()["data"] == ["Grade-10-A", "Grade-10-B"]
    roster = client.get("/api/marks/students/Grade-10-B", headers=staff).get_json()["data"]
    assert [s["admission_number"] for s in roster] == ["S004"]
    assert client.get("/api/marks/students/Grade-9-Z", headers=staff).status_code == 404
    assert client.get("/api/marks/classes", headers=auth_headers("s1")).status_code == 403


def test_unknown_api_route_is_json(client, users):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.get_json()["success"] is False


def test_get_and_patch_single_mark(client, users, auth_headers, make_entry):
    staff = auth_headers("staff")
    created = client.post("/api/marks", json=make_entry("S001", score=82), headers=staff).get_json()["data"]
    url = f"/api/marks/{created['mark_id']}"

    fetched = client.get(url, headers=auth_headers("s1"))
    assert fetched.status_code == 200
    assert fetched.get_json()["data"]["grade"] == "A"
    assert client.get(url, headers=auth_headers("s2")).status_code == 403

    patched = client.patch(url, json={"score": 60, "remarks": "Re-marked"}, headers=staff)
    assert patched.status_code == 200
    data = patched.get_json()["data"]
    assert (data["score"], data["grade"], data["remarks"]) == (60, "C", "Re-marked")

    assert client.patch(url, json={"score": 10}, headers=auth_headers("other_staff")).status_code == 403
    assert client.patch(url, json={"score": 101}, headers=staff).get_json()["error"] == "INVALID_SCORE"
    assert client.patch("/api/marks/9999", json={"score": 10}, headers=staff).status_code == 404
    assert client.patch(url, json={"score": 10}, headers=auth_headers("s1")).status_code == 403


def test_refusals_are_logged_as_warnings(client, users, auth_headers, make_entry, caplog):
    with caplog.at_level(logging.INFO):
        client.post("/api/marks", json=make_entry("S001"), headers=auth_headers("s1"))
        client.get(f"/api/marks/report/{users['s1']}", headers=auth_headers("s2"))

    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert any("refused on POST /api/marks" in message for message in warnings)
    assert any(message.startswith("UNAUTHORIZED on GET /api/marks/report") for message in warnings)
