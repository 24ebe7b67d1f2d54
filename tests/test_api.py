from datetime import timedelta

from tutordesk.core.security import create_access_token
from tutordesk.db.base import utcnow

from conftest import auth_headers


def test_ping(client):
    assert client.get("/ping").json()["status"] == "ok"


def test_requires_token(client):
    assert client.get("/folders").status_code in (401, 403)


def test_bad_token_is_unauthorized(client):
    response = client.get("/folders", headers={"Authorization": "Bearer nonsense"})
    assert response.status_code == 401


def test_inactive_user_is_unauthorized(client, make_user):
    ghost = make_user("teacher", is_active=False)
    response = client.get("/folders", headers=auth_headers(ghost))
    assert response.status_code == 401


def test_expired_token(client, teacher):
    token = create_access_token(teacher.email, expires_min=-1)
    assert client.get("/folders", headers={"Authorization": f"Bearer {token}"}).status_code == 401


def test_folder_lifecycle(client, teacher):
    headers = auth_headers(teacher)
    body = {"name": "Bio", "course": "Biochemistry", "grade": 12, "program": "EST"}
    root = client.post("/folders", json=body, headers=headers)
    assert root.status_code == 201
    root = root.json()
    assert root["path"] == "Bio"
    assert root["color"] == "#2c5aa0"

    child = client.post("/folders", json={**body, "name": "Labs", "parent_id": root["id"]}, headers=headers).json()
    assert child["path"] == "Bio/Labs"

    duplicate = client.post("/folders", json={**body, "name": "Labs", "parent_id": root["id"]}, headers=headers)
    assert duplicate.status_code == 400

    renamed = client.patch(f"/folders/{root['id']}", json={"name": "Biology"}, headers=headers)
    assert renamed.json()["path"] == "Biology"
    children = client.get(f"/folders/{root['id']}/children", headers=headers).json()
    assert [c["path"] for c in children] == ["Biology/Labs"]

    cyclic = client.post(f"/folders/{root['id']}/move", json={"parent_id": child["id"]}, headers=headers)
    assert cyclic.status_code == 400

    deleted = client.delete(f"/folders/{root['id']}", headers=headers).json()
    assert deleted["folders_deleted"] == 2
    assert client.get(f"/folders/{root['id']}", headers=headers).status_code == 404


def test_patch_with_unchanged_name_is_saved(client, teacher):
    headers = auth_headers(teacher)
    body = {"name": "Labs", "course": "Biochemistry", "grade": 12, "program": "EST"}
    folder = client.post("/folders", json=body, headers=headers).json()

    patched = client.patch(f"/folders/{folder['id']}", json={"name": "Labs", "description": "new desc"}, headers=headers)
    assert patched.json()["description"] == "new desc"
    assert client.get(f"/folders/{folder['id']}", headers=headers).json()["description"] == "new desc"


def test_folder_material_listing_respects_material_access(client, make_folder, make_material, make_user):
    outsider = make_user("student", grade=11, program="EST")
    shelf = make_folder("Shelf", grade=10, program="ACT", is_public=True)
    make_material("Secret link", folder=shelf, type="link", url="https://secret.example/answers")

    listed = client.get(f"/folders/{shelf.id}/materials", headers=auth_headers(outsider))
    assert listed.status_code == 200
    assert listed.json() == []


def test_invalid_folder_body_is_400(client, teacher):
    response = client.post("/folders", json={"name": "x", "course": "Astrology", "grade": 12, "program": "EST"},
                           headers=auth_headers(teacher))
    assert response.status_code == 400
    assert response.json()["errors"]


def test_students_cannot_create_folders(client, student):
    body = {"name": "Bio", "course": "Biochemistry", "grade": 12, "program": "EST"}
    assert client.post("/folders", json=body, headers=auth_headers(student)).status_code == 403


def test_material_upload_view_and_download(client, teacher, student):
    headers = auth_headers(teacher)
    created = client.post(
        "/materials",
        data={"title": "Enzymes", "type": "pdf", "course": "Biochemistry", "grade": "12", "program": "EST",
              "tags": "enzymes, kinetics"},
        files={"file": ("enzymes.pdf", b"%PDF enzyme data", "application/pdf")},
        headers=headers,
    )
    assert created.status_code == 201
    material = created.json()
    assert material["tags"] == ["enzymes", "kinetics"]
    assert material["file_size"] == len(b"%PDF enzyme data")

    student_headers = auth_headers(student)
    viewed = client.get(f"/materials/{material['id']}", headers=student_headers).json()
    assert viewed["view_count"] == 1

    download = client.get(f"/materials/{material['id']}/download", headers=student_headers)
    assert download.status_code == 200
    assert download.content == b"%PDF enzyme data"
    assert "enzymes.pdf" in download.headers["content-disposition"]

    listing = client.get("/materials", headers=headers).json()
    assert listing["total"] == 1
    assert listing["items"][0]["download_count"] == 1


def test_link_material_validation_over_http(client, teacher):
    headers = auth_headers(teacher)
    missing_url = client.post(
        "/materials",
        data={"title": "Reading", "type": "link", "course": "Evolution", "grade": "10", "program": "ACT"},
        headers=headers,
    )
    assert missing_url.status_code == 400
    assert missing_url.json()["errors"][0]["field"] == "url"

    ok = client.post(
        "/materials",
        data={"title": "Reading", "type": "link", "url": "https://x.test", "course": "Evolution",
              "grade": "10", "program": "ACT"},
        headers=headers,
    )
    assert ok.status_code == 201

    no_file = client.get(f"/materials/{ok.json()['id']}/download", headers=headers)
    assert no_file.status_code == 400


def test_upload_into_folder_inherits_audience(client, teacher):
    headers = auth_headers(teacher)
    folder = client.post("/folders", json={"name": "Evo", "course": "Evolution", "grade": 10, "program": "ACT"},
                         headers=headers).json()
    created = client.post(
        f"/folders/{folder['id']}/materials",
        data={"title": "Finches", "type": "image"},
        files={"file": ("finch.png", b"\x89PNG", "image/png")},
        headers=headers,
    ).json()
    assert (created["course"], created["grade"], created["program"]) == ("Evolution", 10, "ACT")
    listed = client.get(f"/folders/{folder['id']}/materials", headers=headers).json()
    assert [m["title"] for m in listed] == ["Finches"]


def test_share_and_access(client, teacher, make_user):
    outsider = make_user("student", grade=9, program="ACT")
    headers = auth_headers(teacher)
    material = client.post(
        "/materials",
        data={"title": "Private", "type": "link", "url": "https://x.test", "course": "Evolution",
              "grade": "12", "program": "EST"},
        headers=headers,
    ).json()
    assert client.get(f"/materials/{material['id']}", headers=auth_headers(outsider)).status_code == 403

    shared = client.post(f"/materials/{material['id']}/share", json={"user_ids": [outsider.id], "permission": "read"},
                         headers=headers)
    assert shared.status_code == 200
    assert client.get(f"/materials/{material['id']}", headers=auth_headers(outsider)).status_code == 200


def test_session_flow(client, teacher, student, provider):
    headers = auth_headers(teacher)
    body = {
        "title": "Photosynthesis live",
        "course": "Photosynthesis",
        "grade": 12,
        "program": "EST",
        "scheduled_time": (utcnow() + timedelta(days=1)).isoformat(),
        "duration": 45,
    }
    created = client.post("/sessions", json=body, headers=headers)
    assert created.status_code == 201
    session = created.json()
    assert session["start_url"].startswith("https://meet.test/s/")

    student_view = client.get(f"/sessions/{session['id']}", headers=auth_headers(student)).json()
    assert "start_url" not in student_view

    first = client.post(f"/sessions/{session['id']}/join", headers=auth_headers(student)).json()
    second = client.post(f"/sessions/{session['id']}/join", headers=auth_headers(student)).json()
    assert first["first_join"] is True
    assert second["first_join"] is False

    attendees = client.get(f"/sessions/{session['id']}/attendees", headers=headers).json()
    assert [a["student_id"] for a in attendees] == [student.id]

    back = client.patch(f"/sessions/{session['id']}", json={"status": "started"}, headers=headers)
    assert back.status_code == 200
    invalid = client.patch(f"/sessions/{session['id']}", json={"status": "scheduled"}, headers=headers)
    assert invalid.status_code == 400

    cancelled = client.post(f"/sessions/{session['id']}/cancel", headers=headers).json()
    assert cancelled["status"] == "cancelled"


def test_session_duration_bounds(client, teacher):
    body = {
        "title": "Too short",
        "course": "Evolution",
        "grade": 10,
        "program": "ACT",
        "scheduled_time": (utcnow() + timedelta(days=1)).isoformat(),
        "duration": 5,
    }
    assert client.post("/sessions", json=body, headers=auth_headers(teacher)).status_code == 400


def test_courses_and_analytics(client, teacher, student):
    courses = client.get("/courses", headers=auth_headers(student)).json()
    assert len(courses) == 8
    detail = client.get("/courses/Cell Biology", headers=auth_headers(student)).json()
    assert detail["code"] == "CELLBIO"
    assert client.get("/courses/Astrology", headers=auth_headers(student)).status_code == 404

    overview = client.get("/analytics/materials", headers=auth_headers(teacher))
    assert overview.status_code == 200
    assert overview.json()["total_materials"] == 0
    assert client.get("/analytics/students", headers=auth_headers(student)).status_code == 403


def test_students_endpoints(client, teacher, student):
    headers = auth_headers(teacher)
    listed = client.get("/students", params={"grade": 12}, headers=headers).json()
    assert [s["id"] for s in listed] == [student.id]

    updated = client.patch(f"/students/{student.id}", json={"grade": 11, "program": "ACT"}, headers=headers).json()
    assert (updated["grade"], updated["program"]) == (11, "ACT")

    progress = client.get(f"/students/{student.id}/progress", headers=headers).json()
    assert progress["attendance_rate"] == 0

    assert client.get("/students/me/progress", headers=auth_headers(student)).status_code == 200
    assert client.get("/students", headers=auth_headers(student)).status_code == 403
    assert client.get(f"/students/{teacher.id}", headers=headers).status_code == 404


def test_course_analytics_and_bulk_organize(client, make_material, teacher, student):
    headers = auth_headers(teacher)
    make_material("Notes", course="Evolution")
    make_material("Site", type="link", course="Evolution")

    stats = client.get("/courses/Evolution/analytics", headers=headers)
    assert stats.status_code == 200
    assert stats.json()["total_materials"] == 2
    assert client.get("/courses/Evolution/analytics", headers=auth_headers(student)).status_code == 403
    assert client.get("/courses/Astrology/analytics", headers=headers).status_code == 404

    organized = client.post("/courses/Evolution/bulk-organize", json={"program": "EST"}, headers=headers)
    assert organized.status_code == 200
    body = organized.json()
    assert (body["folders_created"], body["materials_organized"]) == (2, 2)
    assert {f["program"] for f in body["folders"]} == {"EST"}

    again = client.post("/courses/Evolution/bulk-organize", json={}, headers=headers)
    assert again.status_code == 400
