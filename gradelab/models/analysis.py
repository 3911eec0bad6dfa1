# gradelab/models/analysis.py
from datetime import datetime

from gradelab.models import db
from gradelab.models.types import EnumValue, JSONDocument, iso_utc
from gradelab.pipeline.status import StageStatus


class Analysis(db.Model):
    __tablename__ = "analysis"

    id = db.Column(db.Integer, primary_key=True)
    upload_id = db.Column(db.Integer, db.ForeignKey("uploads.id"), nullable=False, unique=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)  # denormalized

    status = db.Column(EnumValue(StageStatus), nullable=False, default=StageStatus.PENDING)

    # set only while status == completed
    total_questions = db.Column(db.Integer, nullable=True)
    correct_answers = db.Column(db.Integer, nullable=True)
    wrong_answers = db.Column(db.Integer, nullable=True)
    blank_answers = db.Column(db.Integer, nullable=True)
    score = db.Column(db.Float, nullable=True)
    result_data = db.Column(JSONDocument(), nullable=True)

    feedback = db.Column(db.Text, nullable=True)             # grader feedback or error reason

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    upload = db.relationship("Upload", back_populates="analysis")

    def clear_results(self):
        self.total_questions = None
        self.correct_answers = None
        self.wrong_answers = None
        self.blank_answers = None
        self.score = None
        self.result_data = None

    def to_dict(self):
        return {
            "id": self.id,
            "upload_id": self.upload_id,
            "user_id": self.user_id,
            "status": self.status.value,
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "wrong_answers": self.wrong_answers,
            "blank_answers": self.blank_answers,
            "score": self.score,
            "result_data": self.result_data,
            "feedback": self.feedback,
            "created_at": iso_utc(self.created_at),
            "updated_at": iso_utc(self.updated_at),
        }
