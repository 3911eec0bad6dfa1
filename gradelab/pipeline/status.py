# gradelab/pipeline/status.py
"""
Upload status state machine.

    UPLOADED -> SCANNING -> SCANNED -> ANALYZING -> COMPLETED
         \\          \\          \\          \\
          +----------+----------+----------+--> ERROR

COMPLETED and ERROR are terminal. Status only moves forward; re-submission of
a failed upload is a new upload.
"""
from enum import Enum

from gradelab.errors import TransitionError


class UploadStatus(str, Enum):
    UPLOADED = "uploaded"
    SCANNING = "scanning"
    SCANNED = "scanned"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    ERROR = "error"

    def __str__(self):
        return self.value


class StageStatus(str, Enum):
    """Status of a single stage's result row (scanner output, analysis)."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"

    def __str__(self):
        return self.value


TERMINAL = frozenset({UploadStatus.COMPLETED, UploadStatus.ERROR})

TRANSITIONS = {
    UploadStatus.UPLOADED: {UploadStatus.SCANNING, UploadStatus.ERROR},
    UploadStatus.SCANNING: {UploadStatus.SCANNED, UploadStatus.ERROR},
    UploadStatus.SCANNED: {UploadStatus.ANALYZING, UploadStatus.COMPLETED, UploadStatus.ERROR},
    UploadStatus.ANALYZING: {UploadStatus.COMPLETED, UploadStatus.ERROR},
    UploadStatus.COMPLETED: frozenset(),
    UploadStatus.ERROR: frozenset(),
}

# States in which each webhook is the authoritative source.
SCANNER_STAGE = frozenset({UploadStatus.SCANNING})
ANALYSIS_STAGE = frozenset({UploadStatus.SCANNED, UploadStatus.ANALYZING})


def is_terminal(status) -> bool:
    return UploadStatus(status) in TERMINAL


def can_transition(current, target) -> bool:
    return UploadStatus(target) in TRANSITIONS[UploadStatus(current)]


def ensure_transition(current, target) -> UploadStatus:
    """Return ``target`` as an UploadStatus or raise TransitionError."""
    current, target = UploadStatus(current), UploadStatus(target)
    if target not in TRANSITIONS[current]:
        raise TransitionError(current.value, target.value)
    return target
