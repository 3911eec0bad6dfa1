import io

from gradelab.models import ScannerOutput, SystemLog, Upload
from gradelab.models.user import UserRole
from gradelab.pipeline.status import StageStatus, UploadStatus

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class DummyAsync:
    id = "fake-task-id"


def _post_file(client, headers, data=PNG, name="exam 1.png", content_type="image/png"):
    return client.post(
        "/api/uploads",
        data={"file": (io.BytesIO(data), name, content_type)},
        headers=headers,
        content_type="multipart/form-data",
    )


def test_upload_stores_file_and_queues_scan(client, teacher, auth_header, monkeypatch, services):
    queued = []

    def fake_delay(upload_id):
        queued.append(upload_id)
        return DummyAsync()

    monkeypatch.setattr("gradelab.tasks.pipeline_tasks.dispatch_scan.delay", fake_delay)

    rv = _post_file(client, auth_header(teacher))

    assert rv.status_code == 201
    upload = rv.get_json()["data"]["upload"]
    assert upload["status"] == "uploaded"
    assert upload["original_name"] == "exam 1.png"
    assert upload["file_size"] == len(PNG)
    assert upload["file_url"].startswith("http://testserver/files/user_%d/" % teacher.id)
    assert queued == [upload["id"]]

    assert ScannerOutput.query.filter_by(upload_id=upload["id"]).one().status == StageStatus.PENDING
    assert SystemLog.query.filter_by(action="file_upload").count() == 1

    # stored file is served back
    rv = client.get("/files/" + upload["upload_path"])
    assert rv.status_code == 200
    assert rv.data == PNG


def test_enqueue_failure_marks_upload_error(client, teacher, auth_header, monkeypatch, fresh):
    def broken_delay(upload_id):
        raise ConnectionError("broker down")

    monkeypatch.setattr("gradelab.tasks.pipeline_tasks.dispatch_scan.delay", broken_delay)

    rv = _post_file(client, auth_header(teacher))

    assert rv.status_code == 201
    upload_id = rv.get_json()["data"]["upload"]["id"]
    assert rv.get_json()["data"]["upload"]["status"] == "error"
    upload = fresh(Upload, upload_id)
    assert upload.status == UploadStatus.ERROR
    assert upload.status_reason == "Scanner dispatch could not be queued"
    assert ScannerOutput.query.filter_by(upload_id=upload_id).one().status == StageStatus.ERROR


def test_upload_requires_login(client):
    rv = _post_file(client, {})
    assert rv.status_code == 401
    assert Upload.query.count() == 0


def test_upload_rejects_bad_files(client, teacher, auth_header, monkeypatch):
    monkeypatch.setattr("gradelab.tasks.pipeline_tasks.dispatch_scan.delay", lambda upload_id: DummyAsync())
    headers = auth_header(teacher)

    assert _post_file(client, headers, name="notes.txt", content_type="text/plain").status_code == 400
    assert _post_file(client, headers, data=b"").status_code == 400
    rv = client.post("/api/uploads", data={}, headers=headers, content_type="multipart/form-data")
    assert rv.status_code == 400
    assert Upload.query.count() == 0


def test_upload_rejects_oversized_file(client, teacher, auth_header, services):
    services.storage.max_size = 10
    rv = _post_file(client, auth_header(teacher))
    assert rv.status_code == 400
    assert "too large" in rv.get_json()["message"]


def test_list_uploads_scoped_to_owner(client, make_user, make_upload, auth_header):
    other = make_user(UserRole.TEACHER)
    admin = make_user(UserRole.ADMIN)
    mine = make_upload(UploadStatus.COMPLETED)
    make_upload(UploadStatus.SCANNING, owner=other)

    rv = client.get("/api/uploads", headers=auth_header(other))
    js = rv.get_json()["data"]
    assert rv.status_code == 200
    assert [u["user_id"] for u in js["uploads"]] == [other.id]
    assert js["pagination"]["total"] == 1

    rv = client.get("/api/uploads?status=completed", headers=auth_header(admin))
    assert [u["id"] for u in rv.get_json()["data"]["uploads"]] == [mine.id]

    rv = client.get("/api/uploads", headers=auth_header(admin))
    assert rv.get_json()["data"]["pagination"]["total"] == 2


def test_list_uploads_unknown_status(client, teacher, auth_header):
    rv = client.get("/api/uploads?status=lost", headers=auth_header(teacher))
    assert rv.status_code == 400


def test_file_outside_storage_not_served(client):
    rv = client.get("/files/../../etc/passwd")
    assert rv.status_code == 404
