# gradelab/pipeline/reconciler.py
"""
Applies scanner / AI-analysis webhook outcomes to an upload.

Each handler:
  * loads the upload (FOR UPDATE where the dialect supports it),
  * checks the requested transition against the state machine,
  * writes the new status and the stage's result row in one commit,
    finding-or-creating the result row so redelivery never duplicates it,
  * appends a best-effort ``system_logs`` entry.

Only this module and the intake dispatch task write ``Upload.status``.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from gradelab.errors import DownstreamFailure, NotFoundError, PersistenceFailure, TransitionError
from gradelab.models import db, Analysis, ScannerOutput, Upload
from gradelab.pipeline.audit import record_event
from gradelab.pipeline.status import (
    ANALYSIS_STAGE,
    SCANNER_STAGE,
    StageStatus,
    UploadStatus,
    ensure_transition,
    is_terminal,
)

logger = logging.getLogger(__name__)

AI_START_FAILED = "AI analysis could not be started"
SCAN_FAILED = "Scanning failed"
ANALYSIS_FAILED = "AI analysis failed"

SCANNED_OR_LATER = frozenset({UploadStatus.SCANNED, UploadStatus.ANALYZING, UploadStatus.COMPLETED})


@dataclass(frozen=True)
class ReconcileResult:
    upload_id: int
    status: UploadStatus
    message: str
    duplicate: bool = False

    def to_dict(self):
        return {"uploadId": self.upload_id, "status": self.status.value, "duplicate": self.duplicate}


def commit_or_fail():
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception("Commit failed")
        raise PersistenceFailure() from e


def lock_upload(upload_id) -> Upload:
    upload = db.session.get(Upload, upload_id, with_for_update=True, populate_existing=True)
    if upload is None:
        db.session.rollback()
        raise NotFoundError(f"Upload {upload_id} not found")
    return upload


def scanner_output_for(upload) -> ScannerOutput:
    """Find-or-create the single ScannerOutput row of ``upload``."""
    output = ScannerOutput.query.filter_by(upload_id=upload.id).first()
    if output is None:
        output = ScannerOutput(upload_id=upload.id, user_id=upload.user_id, status=StageStatus.PENDING)
        db.session.add(output)
    return output


def analysis_for(upload) -> Analysis:
    """Find-or-create the single Analysis row of ``upload``."""
    analysis = Analysis.query.filter_by(upload_id=upload.id).first()
    if analysis is None:
        analysis = Analysis(upload_id=upload.id, user_id=upload.user_id, status=StageStatus.PENDING)
        db.session.add(analysis)
    return analysis


def _scan_completed(upload) -> bool:
    output = ScannerOutput.query.filter_by(upload_id=upload.id).first()
    return output is not None and output.status == StageStatus.COMPLETED


def _analysis_started(upload) -> bool:
    analysis = Analysis.query.filter_by(upload_id=upload.id).first()
    return analysis is not None and analysis.status in (StageStatus.PROCESSING, StageStatus.COMPLETED)


def move_to(upload, target, reason=None):
    upload.status = ensure_transition(upload.status, target)
    upload.status_reason = reason
    upload.updated_at = datetime.utcnow()


class WebhookReconciler:

    def __init__(self, forwarder):
        self.forwarder = forwarder

    def _reject(self, action, upload, payload, target, request):
        """Roll back, leave a trace of the refused delivery, then raise 409."""
        current, user_id = upload.status, upload.user_id
        db.session.rollback()
        details = dict(payload.log_details(), rejected=True, uploadStatus=current.value)
        record_event(action, details, user_id=user_id, request=request)
        raise TransitionError(current.value, target.value)

    # --- scanner ---

    def handle_scanner(self, payload, request=None) -> ReconcileResult:
        upload = lock_upload(payload.upload_id)
        current = upload.status
        duplicate = False

        if payload.succeeded:
            if current in SCANNER_STAGE:
                self._apply_scan_success(upload, payload)
                move_to(upload, UploadStatus.SCANNED)
                commit_or_fail()
                self._start_analysis(upload, payload)
            elif current == UploadStatus.SCANNED and not _analysis_started(upload):
                # the earlier hand-off never completed: neither ANALYZING nor ERROR was committed
                self._apply_scan_success(upload, payload)
                commit_or_fail()
                logger.warning("Retrying AI hand-off on scanner redelivery", extra={"upload_id": upload.id})
                self._start_analysis(upload, payload)
            elif current in SCANNED_OR_LATER:
                # redelivery: refresh the one row, no transition, no re-forward
                self._apply_scan_success(upload, payload)
                commit_or_fail()
                duplicate = True
            elif current == UploadStatus.ERROR and _scan_completed(upload):
                # scan was accepted earlier, a later stage failed
                db.session.rollback()
                duplicate = True
            else:
                self._reject("scanner_webhook", upload, payload, UploadStatus.SCANNED, request)
        else:
            if current in SCANNER_STAGE:
                reason = payload.error or SCAN_FAILED
                output = scanner_output_for(upload)
                output.status = StageStatus.ERROR
                output.error = reason
                move_to(upload, UploadStatus.ERROR, reason)
                commit_or_fail()
            elif current == UploadStatus.ERROR:
                db.session.rollback()
                duplicate = True
            else:
                self._reject("scanner_webhook", upload, payload, UploadStatus.ERROR, request)

        upload_id, user_id = upload.id, upload.user_id
        status = db.session.get(Upload, upload_id).status
        details = dict(payload.log_details(), duplicate=duplicate, uploadStatus=status.value)
        record_event("scanner_webhook", details, user_id=user_id, request=request)

        message = "Scanner webhook already processed" if duplicate else "Scanner webhook processed"
        return ReconcileResult(upload_id, status, message, duplicate)

    def _apply_scan_success(self, upload, payload):
        output = scanner_output_for(upload)
        output.status = StageStatus.COMPLETED
        output.error = None
        if payload.scanned_image_url is not None:
            output.processed_image_url = payload.scanned_image_url
        if payload.scanned_text is not None:
            output.scanned_text = payload.scanned_text
        if payload.questions_detected is not None:
            output.questions_detected = payload.questions_detected
        if payload.answers_detected is not None:
            output.answers_detected = payload.answers_detected
        meta = dict(payload.meta or {})
        if payload.confidence is not None:
            meta["confidence"] = payload.confidence
        if meta:
            output.meta = meta
        if output.scanned_at is None:
            output.scanned_at = datetime.utcnow()
        return output

    def _start_analysis(self, upload, payload):
        """SCANNED -> ANALYZING once the AI service has accepted the hand-off."""
        upload_id = upload.id
        try:
            self.forwarder.send_to_ai(upload, payload)
        except DownstreamFailure as e:
            logger.error("AI hand-off failed: %s", e.message, extra={"upload_id": upload_id})
            self._abandon_analysis(upload_id, e.message)
            return

        # conditional: a fast AI callback may already have completed the upload
        upload = lock_upload(upload_id)
        if upload.status == UploadStatus.SCANNED:
            move_to(upload, UploadStatus.ANALYZING)
            analysis = analysis_for(upload)
            if analysis.status == StageStatus.PENDING:
                analysis.status = StageStatus.PROCESSING
            commit_or_fail()
        else:
            db.session.rollback()

    def _abandon_analysis(self, upload_id, reason):
        upload = lock_upload(upload_id)
        if upload.status != UploadStatus.SCANNED:
            db.session.rollback()
            return
        move_to(upload, UploadStatus.ERROR, reason)
        analysis = analysis_for(upload)
        analysis.status = StageStatus.ERROR
        analysis.clear_results()
        analysis.feedback = AI_START_FAILED
        commit_or_fail()

    # --- AI analysis ---

    def handle_ai_analysis(self, payload, request=None) -> ReconcileResult:
        upload = lock_upload(payload.upload_id)
        current = upload.status
        duplicate = False

        if payload.succeeded:
            if current in ANALYSIS_STAGE or current == UploadStatus.COMPLETED:
                duplicate = current == UploadStatus.COMPLETED
                self._apply_analysis_success(upload, payload)
                if not duplicate:
                    move_to(upload, UploadStatus.COMPLETED)
                commit_or_fail()
            else:
                self._reject("ai_analysis_webhook", upload, payload, UploadStatus.COMPLETED, request)
        else:
            if current in ANALYSIS_STAGE:
                reason = payload.error or ANALYSIS_FAILED
                analysis = analysis_for(upload)
                analysis.status = StageStatus.ERROR
                analysis.clear_results()
                analysis.feedback = reason
                move_to(upload, UploadStatus.ERROR, reason)
                commit_or_fail()
            elif current == UploadStatus.ERROR:
                db.session.rollback()
                duplicate = True
            else:
                self._reject("ai_analysis_webhook", upload, payload, UploadStatus.ERROR, request)

        upload_id, user_id = upload.id, upload.user_id
        status = db.session.get(Upload, upload_id).status
        details = dict(payload.log_details(), duplicate=duplicate, uploadStatus=status.value)
        record_event("ai_analysis_webhook", details, user_id=user_id, request=request)

        if status == UploadStatus.COMPLETED and not duplicate:
            logger.info("Analysis completed", extra={"upload_id": upload_id})
        message = "AI analysis webhook already processed" if duplicate else "AI analysis webhook processed"
        return ReconcileResult(upload_id, status, message, duplicate)

    def _apply_analysis_success(self, upload, payload):
        data = payload.analysis_data
        analysis = analysis_for(upload)
        analysis.status = StageStatus.COMPLETED
        analysis.updated_at = datetime.utcnow()
        if data is None:
            return analysis
        analysis.score = data.score
        analysis.feedback = data.feedback
        analysis.total_questions = data.total_questions
        analysis.correct_answers = data.correct_answers
        analysis.wrong_answers = data.wrong_answers
        analysis.blank_answers = data.blank_answers
        analysis.result_data = data.result_data
        return analysis


def fail_upload(upload_id, reason) -> Optional[Upload]:
    """
    Force a non-terminal upload into ERROR (downstream unreachable, enqueue
    failure). Terminal uploads are left alone.
    """
    upload = lock_upload(upload_id)
    if is_terminal(upload.status):
        db.session.rollback()
        return None
    move_to(upload, UploadStatus.ERROR, reason)
    output = ScannerOutput.query.filter_by(upload_id=upload_id).first()
    if output is not None and output.status != StageStatus.COMPLETED:
        output.status = StageStatus.ERROR
        output.error = reason
    commit_or_fail()
    return upload
