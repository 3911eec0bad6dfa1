from gradelab.models import db, Analysis
from gradelab.models.user import UserRole
from gradelab.pipeline.status import StageStatus, UploadStatus


def test_poll_pending_upload(client, teacher, make_upload, auth_header):
    upload = make_upload(UploadStatus.SCANNING)

    rv = client.get(f"/api/analysis?uploadId={upload.id}", headers=auth_header(teacher))

    assert rv.status_code == 200
    data = rv.get_json()["data"]
    assert data["status"] == "scanning"
    assert data["scannerOutput"]["status"] == "processing"
    assert data["analysis"] is None


def test_poll_completed_upload(client, teacher, make_upload, auth_header):
    upload = make_upload(UploadStatus.COMPLETED, scanner_status=StageStatus.COMPLETED)
    db.session.add(Analysis(upload_id=upload.id, user_id=teacher.id, status=StageStatus.COMPLETED,
                            score=72.5, result_data={"q": 1}))
    db.session.commit()

    rv = client.get(f"/api/analysis?uploadId={upload.id}", headers=auth_header(teacher))

    data = rv.get_json()["data"]
    assert data["analysis"]["score"] == 72.5
    assert data["analysis"]["status"] == "completed"


def test_poll_errors(client, teacher, make_user, make_upload, auth_header):
    upload = make_upload(UploadStatus.SCANNING)
    stranger = make_user(UserRole.TEACHER)

    assert client.get("/api/analysis?uploadId=abc", headers=auth_header(teacher)).status_code == 400
    assert client.get("/api/analysis?uploadId=9999", headers=auth_header(teacher)).status_code == 404
    assert client.get(f"/api/analysis?uploadId={upload.id}", headers=auth_header(stranger)).status_code == 403
    assert client.get(f"/api/analysis?uploadId={upload.id}").status_code == 401


def test_admin_can_poll_any_upload(client, admin, make_upload, auth_header):
    upload = make_upload(UploadStatus.ANALYZING)
    rv = client.get(f"/api/analysis?uploadId={upload.id}", headers=auth_header(admin))
    assert rv.status_code == 200


def test_list_analyses(client, teacher, admin, make_user, make_upload, auth_header):
    other = make_user(UserRole.TEACHER)
    for owner in (teacher, teacher, other):
        upload = make_upload(UploadStatus.COMPLETED, owner=owner)
        db.session.add(Analysis(upload_id=upload.id, user_id=owner.id, status=StageStatus.COMPLETED, score=50))
    db.session.commit()

    rv = client.get("/api/analysis?limit=1", headers=auth_header(teacher))
    data = rv.get_json()["data"]
    assert len(data["analyses"]) == 1
    assert data["analyses"][0]["original_name"] == "exam.png"
    assert data["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}

    rv = client.get("/api/analysis", headers=auth_header(admin))
    assert rv.get_json()["data"]["pagination"]["total"] == 3
