from datetime import datetime
from enum import Enum

from gradelab.models import db
from gradelab.models.types import EnumValue, iso_utc


class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"

    def __str__(self):
        return self.value


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(EnumValue(UserRole), nullable=False, default=UserRole.TEACHER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_public(self):
        # never includes password_hash
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "role": self.role.value,
            "is_active": self.is_active,
            "created_at": iso_utc(self.created_at),
        }
