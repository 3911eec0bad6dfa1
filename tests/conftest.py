import os
import pytest

from gradelab import create_app
from gradelab.errors import DownstreamFailure
from gradelab.models import db as _db
from gradelab.models import ScannerOutput, Upload, User
from gradelab.models.user import UserRole
from gradelab.pipeline.status import StageStatus, UploadStatus
from gradelab.security.auth import create_token, hash_password
from gradelab.services.registry import build_services
from gradelab.services.storage import LocalFileStorage

PASSWORD = "Secret123"


class FakeForwarder:
    """Records hand-offs instead of calling the scanner / AI services."""

    def __init__(self):
        self.scanner_calls = []
        self.ai_calls = []
        self.fail_scanner = False
        self.fail_ai = False

    def send_to_scanner(self, upload):
        self.scanner_calls.append(upload.id)
        if self.fail_scanner:
            raise DownstreamFailure("scanner service unreachable")

    def send_to_ai(self, upload, payload):
        self.ai_calls.append(upload.id)
        if self.fail_ai:
            raise DownstreamFailure("ai-analysis service timed out")


@pytest.fixture(scope="session")
def app():
    os.environ["FLASK_ENV"] = "testing"
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.drop_all()


@pytest.fixture(autouse=True)
def services(app, tmp_path):
    """Empty tables and fresh collaborators (limiters, forwarder, storage) per test."""
    _db.session.rollback()
    _db.drop_all()
    _db.create_all()

    svc = build_services(app.config)
    svc.storage = LocalFileStorage(
        root=str(tmp_path),
        public_base_url=app.config["PUBLIC_BASE_URL"],
        max_size=app.config["MAX_FILE_SIZE"],
        allowed_types=app.config["ALLOWED_CONTENT_TYPES"],
    )
    svc.use_forwarder(FakeForwarder())
    app.extensions["gradelab"] = svc
    yield svc
    _db.session.rollback()


@pytest.fixture()
def forwarder(services):
    return services.forwarder


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def make_user():
    counter = {"n": 0}

    def _make(role=UserRole.TEACHER, email=None, password=PASSWORD, is_active=True):
        counter["n"] += 1
        user = User(
            username=f"user{counter['n']}",
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password),
            role=role,
            is_active=is_active,
        )
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def teacher(make_user):
    return make_user(UserRole.TEACHER)


@pytest.fixture()
def admin(make_user):
    return make_user(UserRole.ADMIN)


@pytest.fixture()
def auth_header(app):
    def _header(user):
        return {"Authorization": f"Bearer {create_token(user)}"}
    return _header


@pytest.fixture()
def make_upload(teacher):
    def _make(status=UploadStatus.SCANNING, owner=None, scanner_status=StageStatus.PROCESSING, upload_id=None):
        owner = owner or teacher
        upload = Upload(
            id=upload_id,
            user_id=owner.id,
            file_name="1700000000000_abc_exam.png",
            original_name="exam.png",
            file_size=1234,
            content_type="image/png",
            upload_path=f"user_{owner.id}/1700000000000_abc_exam.png",
            file_url=f"http://testserver/files/user_{owner.id}/1700000000000_abc_exam.png",
            status=status,
        )
        _db.session.add(upload)
        _db.session.flush()
        if scanner_status is not None:
            _db.session.add(ScannerOutput(upload_id=upload.id, user_id=owner.id, status=scanner_status))
        _db.session.commit()
        return upload

    return _make


@pytest.fixture()
def fresh():
    """Reload a row from the database, bypassing the session's identity map."""
    def _fresh(model, ident):
        return _db.session.get(model, ident, populate_existing=True)
    return _fresh
