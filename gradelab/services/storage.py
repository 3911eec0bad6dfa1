# gradelab/services/storage.py
import os
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from werkzeug.utils import secure_filename

from gradelab.errors import NotFoundError, ValidationError


@dataclass(frozen=True)
class StoredFile:
    url: str
    path: str          # relative to the storage root, e.g. user_3/1700000000_ab12_exam.png
    name: str
    size: int
    content_type: str
    uploaded_at: datetime


def safe_file_name(original_name: str, owner_id: int) -> str:
    """user_<id>/<ms timestamp>_<random>_<sanitized name>"""
    clean = secure_filename(original_name or "")[:50] or "upload"
    return f"user_{owner_id}/{int(time.time() * 1000)}_{secrets.token_hex(6)}_{clean}"


class LocalFileStorage:
    """
    Exam-paper files on the local filesystem, served back under ``/files/``.
    """

    def __init__(self, root: str, public_base_url: str, max_size: int,
                 allowed_types: Iterable[str]):
        self.root = os.path.abspath(root)
        self.public_base_url = public_base_url.rstrip("/")
        self.max_size = max_size
        self.allowed_types = frozenset(allowed_types)

    @classmethod
    def from_config(cls, config) -> "LocalFileStorage":
        return cls(
            root=config["UPLOAD_FOLDER"],
            public_base_url=config["PUBLIC_BASE_URL"],
            max_size=config["MAX_FILE_SIZE"],
            allowed_types=config["ALLOWED_CONTENT_TYPES"],
        )

    def validate(self, content_type: Optional[str], size: int) -> None:
        if content_type not in self.allowed_types:
            raise ValidationError("Unsupported file type. Only JPG, PNG, WebP and PDF files are accepted.")
        if size <= 0:
            raise ValidationError("File is empty")
        if size > self.max_size:
            raise ValidationError(f"File too large. Maximum size is {self.max_size // (1024 * 1024)}MB.")

    def upload_file(self, file, owner_id: int) -> StoredFile:
        """Store a werkzeug ``FileStorage`` for ``owner_id``."""
        data = file.read()
        content_type = (file.mimetype or "").lower()
        self.validate(content_type, len(data))

        rel_path = safe_file_name(file.filename, owner_id)
        abs_path = os.path.join(self.root, rel_path)
        os.makedirs(os.path.dirname(abs_path), exist_ok=True)
        with open(abs_path, "wb") as fh:
            fh.write(data)

        return StoredFile(
            url=f"{self.public_base_url}/files/{rel_path}",
            path=rel_path,
            name=os.path.basename(rel_path),
            size=len(data),
            content_type=content_type,
            uploaded_at=datetime.utcnow(),
        )

    def resolve(self, rel_path: str) -> str:
        """Absolute path of a stored file; refuses anything outside the root."""
        abs_path = os.path.abspath(os.path.join(self.root, rel_path))
        if not abs_path.startswith(self.root + os.sep) or not os.path.isfile(abs_path):
            raise NotFoundError("File not found")
        return abs_path
