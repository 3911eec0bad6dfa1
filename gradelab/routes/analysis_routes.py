# gradelab/routes/analysis_routes.py
from flask import Blueprint, g, request

from gradelab.errors import NotFoundError, PermissionDenied, ValidationError
from gradelab.models import db, Analysis, ScannerOutput, Upload
from gradelab.models.user import UserRole
from gradelab.responses import paginate_args, pagination, success
from gradelab.security.auth import auth_required, is_owner_or_admin

bp = Blueprint("analysis", __name__)


@bp.get("")
@auth_required()
def get_analysis():
    """
    Poll analysis results
    ---
    tags:
      - Analysis
    parameters:
      - in: query
        name: uploadId
        type: integer
        required: false
        description: Return the pipeline state of one upload; omit to list analyses.
        example: 42
      - in: query
        name: page
        type: integer
      - in: query
        name: limit
        type: integer
    responses:
      200:
        description: OK
      400:
        description: Invalid upload id
      403:
        description: Not the owner
      404:
        description: Unknown upload
    """
    user = g.current_user
    raw_id = request.args.get("uploadId")
    if raw_id is not None:
        return _single(user, raw_id)

    page, limit, offset = paginate_args(request.args)
    q = db.session.query(Analysis, Upload).join(Upload, Analysis.upload_id == Upload.id)
    if user["role"] != UserRole.ADMIN:
        q = q.filter(Analysis.user_id == user["userId"])
    total = q.count()
    rows = q.order_by(Analysis.created_at.desc(), Analysis.id.desc()).offset(offset).limit(limit).all()

    items = []
    for analysis, upload in rows:
        item = analysis.to_dict()
        item.update({"original_name": upload.original_name, "file_url": upload.file_url})
        items.append(item)

    return success({"analyses": items, "pagination": pagination(page, limit, total)})


def _single(user, raw_id):
    try:
        upload_id = int(raw_id)
    except ValueError:
        raise ValidationError("Invalid upload id")

    upload = db.session.get(Upload, upload_id)
    if upload is None:
        raise NotFoundError("Upload not found")
    if not is_owner_or_admin(user["role"], user["userId"], upload.user_id):
        raise PermissionDenied("You cannot access this analysis")

    scanner = ScannerOutput.query.filter_by(upload_id=upload_id).first()
    analysis = Analysis.query.filter_by(upload_id=upload_id).first()

    return success({
        "upload": upload.to_dict(),
        "status": upload.status.value,
        "scannerOutput": scanner.to_dict() if scanner else None,
        "analysis": analysis.to_dict() if analysis else None,
    })
