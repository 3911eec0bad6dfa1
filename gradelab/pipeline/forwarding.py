# gradelab/pipeline/forwarding.py
import logging
from typing import Any, Dict, Optional

import requests

from gradelab.errors import DownstreamFailure

logger = logging.getLogger(__name__)


class StageForwarder:
    """
    Hands an upload over to the next external stage (scanner, AI grader).

    One POST per hand-off, bounded by ``timeout``. Anything short of a 2xx
    answer raises DownstreamFailure; the caller decides what that means for
    the upload. No retries here.
    """

    def __init__(self, scanner_url: Optional[str], ai_url: Optional[str],
                 timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.scanner_url = scanner_url
        self.ai_url = ai_url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "StageForwarder":
        return cls(
            scanner_url=config.get("SCANNER_WEBHOOK_URL"),
            ai_url=config.get("AI_ANALYSIS_WEBHOOK_URL"),
            timeout=config.get("DOWNSTREAM_TIMEOUT", 10.0),
        )

    def send_to_scanner(self, upload) -> None:
        self._post("scanner", self.scanner_url, {
            "uploadId": upload.id,
            "fileUrl": upload.file_url,
            "userId": upload.user_id,
            "contentType": upload.content_type,
        })

    def send_to_ai(self, upload, payload) -> None:
        self._post("ai-analysis", self.ai_url, {
            "uploadId": upload.id,
            "fileUrl": upload.file_url,
            "scannedText": payload.scanned_text,
            "scannedImageUrl": payload.scanned_image_url,
            "confidence": payload.confidence,
        })

    def _post(self, stage: str, url: Optional[str], body: Dict[str, Any]) -> None:
        if not url:
            raise DownstreamFailure(f"{stage} endpoint is not configured")
        log_extra = {"upload_id": body.get("uploadId"), "stage": stage}
        try:
            resp = self.session.post(url, json=body, timeout=self.timeout)
        except requests.Timeout as e:
            logger.warning("%s hand-off timed out after %ss", stage, self.timeout,
                           extra=log_extra)
            raise DownstreamFailure(f"{stage} service timed out") from e
        except requests.RequestException as e:
            logger.warning("%s hand-off failed: %s", stage, e,
                           extra=log_extra)
            raise DownstreamFailure(f"{stage} service unreachable") from e

        if not resp.ok:
            logger.warning("%s hand-off rejected with HTTP %s", stage, resp.status_code,
                           extra=log_extra)
            raise DownstreamFailure(f"{stage} service answered HTTP {resp.status_code}")
