# gradelab/routes/upload_routes.py
import logging

from flask import Blueprint, g, request, send_file

from gradelab.errors import ValidationError
from gradelab.models import db, ScannerOutput, Upload
from gradelab.models.user import UserRole
from gradelab.pipeline.audit import record_event
from gradelab.pipeline.reconciler import fail_upload
from gradelab.pipeline.status import StageStatus, UploadStatus
from gradelab.responses import paginate_args, pagination, success
from gradelab.security.auth import auth_required
from gradelab.services.registry import services

logger = logging.getLogger(__name__)

bp = Blueprint("uploads", __name__)
files_bp = Blueprint("files", __name__)

ENQUEUE_FAILED = "Scanner dispatch could not be queued"


@bp.post("")
@auth_required(UserRole.TEACHER, UserRole.ADMIN)
def create_upload():
    """
    Upload an exam paper
    ---
    tags:
      - Uploads
    consumes:
      - multipart/form-data
    parameters:
      - in: formData
        name: file
        type: file
        required: true
        description: JPG, PNG, WebP or PDF, at most 10MB
    responses:
      201:
        description: Stored and queued for scanning
      400:
        description: Missing, unsupported or oversized file
      401:
        description: Not logged in
      403:
        description: Role not allowed
    """
    user = g.current_user
    file = request.files.get("file")
    if file is None or not file.filename:
        raise ValidationError("No file provided")

    stored = services().storage.upload_file(file, user["userId"])

    upload = Upload(
        user_id=user["userId"],
        file_name=stored.name,
        original_name=file.filename,
        file_size=stored.size,
        content_type=stored.content_type,
        upload_path=stored.path,
        file_url=stored.url,
        status=UploadStatus.UPLOADED,
    )
    db.session.add(upload)
    db.session.flush()
    db.session.add(ScannerOutput(upload_id=upload.id, user_id=upload.user_id, status=StageStatus.PENDING))
    db.session.commit()
    upload_id = upload.id

    # deferred import, the task module needs the models registered first
    from gradelab.tasks.pipeline_tasks import dispatch_scan
    try:
        dispatch_scan.delay(upload_id)
    except Exception:
        logger.exception("Could not enqueue scanner dispatch", extra={"upload_id": upload_id})
        fail_upload(upload_id, ENQUEUE_FAILED)

    record_event("file_upload", {
        "uploadId": upload_id,
        "fileName": upload.original_name,
        "fileSize": upload.file_size,
        "mimeType": upload.content_type,
    }, user_id=user["userId"], request=request)

    upload = db.session.get(Upload, upload_id)
    return success({"upload": upload.to_dict()}, "File uploaded and queued for analysis", 201)


@bp.get("")
@auth_required()
def list_uploads():
    """
    List uploads (own uploads; admins see all)
    ---
    tags:
      - Uploads
    parameters:
      - in: query
        name: page
        type: integer
        example: 1
      - in: query
        name: limit
        type: integer
        example: 10
      - in: query
        name: status
        type: string
        enum: [uploaded, scanning, scanned, analyzing, completed, error]
    responses:
      200:
        description: OK
      400:
        description: Unknown status filter
    """
    user = g.current_user
    page, limit, offset = paginate_args(request.args)

    q = Upload.query
    if user["role"] != UserRole.ADMIN:
        q = q.filter(Upload.user_id == user["userId"])

    status = request.args.get("status")
    if status:
        try:
            q = q.filter(Upload.status == UploadStatus(status))
        except ValueError:
            raise ValidationError(f"Unknown status '{status}'")

    total = q.count()
    items = q.order_by(Upload.created_at.desc(), Upload.id.desc()).offset(offset).limit(limit).all()

    return success({
        "uploads": [u.to_dict() for u in items],
        "pagination": pagination(page, limit, total),
    })


@files_bp.get("/files/<path:rel_path>")
def serve_file(rel_path):
    """
    Download a stored file
    ---
    tags:
      - Uploads
    parameters:
      - in: path
        name: rel_path
        type: string
        required: true
    responses:
      200:
        description: File content
      404:
        description: No such file
    """
    return send_file(services().storage.resolve(rel_path))
