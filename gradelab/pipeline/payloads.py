# gradelab/pipeline/payloads.py
"""
Canonical webhook payloads.

Each webhook has exactly one accepted JSON shape. ``from_json`` validates the
raw body and raises ``ValidationError`` before anything touches the store.
"""
import json
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from gradelab.errors import ValidationError

SUCCESS = "success"
ERROR = "error"
OUTCOMES = (SUCCESS, ERROR)


def _require_object(body) -> Dict[str, Any]:
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _upload_id(body) -> int:
    value = body.get("uploadId")
    if value is None:
        raise ValidationError("uploadId and status are required")
    # bool is an int subclass; true/false is never an id
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError("uploadId must be a positive integer")
    return value


def _outcome(body) -> str:
    value = body.get("status")
    if value is None:
        raise ValidationError("uploadId and status are required")
    if value not in OUTCOMES:
        raise ValidationError("status must be 'success' or 'error'")
    return value


def _optional(body, key, types, label):
    value = body.get(key)
    if value is None:
        return None
    if isinstance(value, bool) and bool not in types:
        raise ValidationError(f"{key} must be {label}")
    if not isinstance(value, types):
        raise ValidationError(f"{key} must be {label}")
    return value


def _optional_number(body, key) -> Optional[float]:
    value = _optional(body, key, (int, float), "a number")
    if value is None:
        return None
    # the JSON parser lets NaN and Infinity through
    if not math.isfinite(value):
        raise ValidationError(f"{key} must be a finite number")
    return float(value)


def _optional_document(body, key) -> Optional[Dict[str, Any]]:
    value = _optional(body, key, (dict,), "an object")
    if value is None:
        return None
    try:
        json.dumps(value, allow_nan=False)
    except ValueError:
        raise ValidationError(f"{key} must not contain NaN or Infinity")
    return value


def _optional_count(body, key) -> Optional[int]:
    value = _optional(body, key, (int,), "a non-negative integer")
    if value is not None and value < 0:
        raise ValidationError(f"{key} must be a non-negative integer")
    return value


@dataclass(frozen=True)
class ScannerWebhookPayload:
    upload_id: int
    status: str
    scanned_image_url: Optional[str] = None
    scanned_text: Optional[str] = None
    questions_detected: Optional[int] = None
    answers_detected: Optional[int] = None
    confidence: Optional[float] = None
    meta: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS

    @classmethod
    def from_json(cls, body) -> "ScannerWebhookPayload":
        body = _require_object(body)
        upload_id = _upload_id(body)
        status = _outcome(body)
        return cls(
            upload_id=upload_id,
            status=status,
            scanned_image_url=_optional(body, "scannedImageUrl", (str,), "a string"),
            scanned_text=_optional(body, "scannedText", (str,), "a string"),
            questions_detected=_optional_count(body, "questionsDetected"),
            answers_detected=_optional_count(body, "answersDetected"),
            confidence=_optional_number(body, "confidence"),
            meta=_optional_document(body, "meta"),
            error=_optional(body, "error", (str,), "a string"),
        )

    def log_details(self) -> Dict[str, Any]:
        return {
            "uploadId": self.upload_id,
            "status": self.status,
            "scannedImageUrl": self.scanned_image_url,
            "scannedText": "received" if self.scanned_text else None,
            "confidence": self.confidence,
            "error": self.error,
        }


@dataclass(frozen=True)
class AnalysisData:
    score: Optional[float] = None
    feedback: Optional[str] = None
    total_questions: Optional[int] = None
    correct_answers: Optional[int] = None
    wrong_answers: Optional[int] = None
    blank_answers: Optional[int] = None
    result_data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, body) -> "AnalysisData":
        if not isinstance(body, dict):
            raise ValidationError("analysisData must be an object")
        return cls(
            score=_optional_number(body, "score"),
            feedback=_optional(body, "feedback", (str,), "a string"),
            total_questions=_optional_count(body, "totalQuestions"),
            correct_answers=_optional_count(body, "correctAnswers"),
            wrong_answers=_optional_count(body, "wrongAnswers"),
            blank_answers=_optional_count(body, "blankAnswers"),
            result_data=_optional_document(body, "resultData") or {},
        )


@dataclass(frozen=True)
class AIAnalysisWebhookPayload:
    upload_id: int
    status: str
    analysis_id: Optional[int] = None
    analysis_data: Optional[AnalysisData] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS

    @classmethod
    def from_json(cls, body) -> "AIAnalysisWebhookPayload":
        body = _require_object(body)
        upload_id = _upload_id(body)
        status = _outcome(body)
        raw = body.get("analysisData")
        return cls(
            upload_id=upload_id,
            status=status,
            analysis_id=_optional(body, "analysisId", (int,), "an integer"),
            analysis_data=AnalysisData.from_json(raw) if raw is not None else None,
            error=_optional(body, "error", (str,), "a string"),
        )

    def log_details(self) -> Dict[str, Any]:
        data = self.analysis_data
        return {
            "uploadId": self.upload_id,
            "analysisId": self.analysis_id,
            "status": self.status,
            "score": data.score if data else None,
            "hasFeedback": bool(data and data.feedback),
            "hasResultData": bool(data and data.result_data),
            "error": self.error,
        }
