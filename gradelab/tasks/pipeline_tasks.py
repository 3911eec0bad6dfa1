# gradelab/tasks/pipeline_tasks.py
import logging

from celery import shared_task
from flask import current_app

from gradelab.errors import DownstreamFailure
from gradelab.models import db, Upload
from gradelab.pipeline.audit import record_event
from gradelab.pipeline.reconciler import commit_or_fail, fail_upload, move_to, scanner_output_for
from gradelab.pipeline.status import StageStatus, UploadStatus

logger = logging.getLogger(__name__)


@shared_task(name="pipeline.dispatch_scan")
def dispatch_scan(upload_id: int):
    """
    UPLOADED -> SCANNING, then hand the file to the external scanner.

    The status is flipped before the outbound call so that a scanner answering
    faster than this task finds the upload in SCANNING. If the scanner cannot
    be reached the upload goes to ERROR; nothing is retried.
    """
    upload = db.session.get(Upload, upload_id, with_for_update=True, populate_existing=True)
    if not upload:
        db.session.rollback()
        return {"error": f"Upload id {upload_id} not found"}
    if upload.status != UploadStatus.UPLOADED:
        db.session.rollback()
        return {"error": f"Upload id {upload_id} is already {upload.status.value}"}

    move_to(upload, UploadStatus.SCANNING)
    output = scanner_output_for(upload)
    output.status = StageStatus.PROCESSING
    commit_or_fail()

    forwarder = current_app.extensions["gradelab"].forwarder
    try:
        forwarder.send_to_scanner(upload)
    except DownstreamFailure as e:
        logger.error("Scanner hand-off failed: %s", e.message, extra={"upload_id": upload_id})
        fail_upload(upload_id, e.message)
        record_event("scanner_dispatch_failed", {"uploadId": upload_id, "error": e.message},
                     user_id=upload.user_id)
        return {"upload_id": upload_id, "status": UploadStatus.ERROR.value, "error": e.message}

    return {"upload_id": upload_id, "status": UploadStatus.SCANNING.value}
