from datetime import datetime

from gradelab.models import db
from gradelab.models.types import EnumValue, JSONDocument, iso_utc
from gradelab.pipeline.status import StageStatus


class ScannerOutput(db.Model):
    __tablename__ = "scanner_outputs"

    id = db.Column(db.Integer, primary_key=True)
    upload_id = db.Column(db.Integer, db.ForeignKey("uploads.id"), nullable=False, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(EnumValue(StageStatus), nullable=False, default=StageStatus.PENDING)
    scanned_text = db.Column(db.Text, nullable=True)
    questions_detected = db.Column(db.Integer, nullable=False, default=0)
    answers_detected = db.Column(db.Integer, nullable=False, default=0)
    processed_image_url = db.Column(db.String(1024), nullable=True)
    meta = db.Column(JSONDocument(), nullable=True)
    error = db.Column(db.Text, nullable=True)

    scanned_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    upload = db.relationship("Upload", back_populates="scanner_output")

    def to_dict(self):
        return {
            "id": self.id,
            "upload_id": self.upload_id,
            "status": self.status.value,
            "scanned_text": self.scanned_text,
            "questions_detected": self.questions_detected,
            "answers_detected": self.answers_detected,
            "processed_image_url": self.processed_image_url,
            "meta": self.meta,
            "error": self.error,
            "scanned_at": iso_utc(self.scanned_at),
        }
