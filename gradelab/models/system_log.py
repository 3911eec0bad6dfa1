from datetime import datetime

from gradelab.models import db
from gradelab.models.types import JSONDocument


class SystemLog(db.Model):
    """Append-only audit trail. Rows are never updated or deleted."""

    __tablename__ = "system_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    details = db.Column(JSONDocument(), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, index=True)
