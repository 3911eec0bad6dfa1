# gradelab/models/upload.py
from datetime import datetime

from gradelab.models import db
from gradelab.models.types import EnumValue, iso_utc
from gradelab.pipeline.status import UploadStatus


class Upload(db.Model):
    __tablename__ = "uploads"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    # stored file reference
    file_name = db.Column(db.String(255), nullable=False)      # name inside storage
    original_name = db.Column(db.String(255), nullable=False)
    file_size = db.Column(db.Integer, nullable=False)
    content_type = db.Column(db.String(100), nullable=False)
    upload_path = db.Column(db.String(512), nullable=False)
    file_url = db.Column(db.String(1024), nullable=False)

    # only the reconciler / dispatch task write these two
    status = db.Column(EnumValue(UploadStatus), nullable=False, default=UploadStatus.UPLOADED, index=True)
    status_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    scanner_output = db.relationship("ScannerOutput", uselist=False, back_populates="upload")
    analysis = db.relationship("Analysis", uselist=False, back_populates="upload")

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "file_name": self.file_name,
            "original_name": self.original_name,
            "file_size": self.file_size,
            "content_type": self.content_type,
            "upload_path": self.upload_path,
            "file_url": self.file_url,
            "status": self.status.value,
            "status_reason": self.status_reason,
            "uploaded_at": iso_utc(self.created_at),
            "updated_at": iso_utc(self.updated_at),
        }
