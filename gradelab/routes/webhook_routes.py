# gradelab/routes/webhook_routes.py
from flask import Blueprint, request

from gradelab.pipeline.payloads import AIAnalysisWebhookPayload, ScannerWebhookPayload
from gradelab.responses import success
from gradelab.services.registry import services

# prefix applied in create_app
bp = Blueprint("webhooks", __name__)

# TODO: verify an HMAC signature header once the scanner and grader services send one;
# until then these endpoints trust any caller that knows an upload id.


@bp.post("/scanner")
def scanner_webhook():
    """
    Scanner result callback
    ---
    tags:
      - Webhooks
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - uploadId
            - status
          properties:
            uploadId:
              type: integer
              example: 42
            status:
              type: string
              enum: [success, error]
              example: success
            scannedImageUrl:
              type: string
              example: "https://cdn.example.com/scans/42.png"
            scannedText:
              type: string
            questionsDetected:
              type: integer
            answersDetected:
              type: integer
            confidence:
              type: number
              example: 0.93
            meta:
              type: object
            error:
              type: string
    responses:
      200:
        description: Processed (also for reported scan errors and redeliveries)
      400:
        description: Missing or malformed fields
      404:
        description: Unknown upload
      409:
        description: Upload is not waiting for a scan result
    """
    payload = ScannerWebhookPayload.from_json(request.get_json(silent=True))
    result = services().reconciler.handle_scanner(payload, request=request)
    return success(result.to_dict(), result.message)


@bp.post("/ai-analysis")
def ai_analysis_webhook():
    """
    AI grading result callback
    ---
    tags:
      - Webhooks
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - uploadId
            - status
          properties:
            uploadId:
              type: integer
              example: 42
            analysisId:
              type: integer
            status:
              type: string
              enum: [success, error]
              example: success
            analysisData:
              type: object
              properties:
                score:
                  type: number
                  example: 85
                feedback:
                  type: string
                totalQuestions:
                  type: integer
                correctAnswers:
                  type: integer
                wrongAnswers:
                  type: integer
                blankAnswers:
                  type: integer
                resultData:
                  type: object
            error:
              type: string
    responses:
      200:
        description: Processed (also for reported grading errors and redeliveries)
      400:
        description: Missing or malformed fields
      404:
        description: Unknown upload
      409:
        description: Upload has not been scanned yet, or already finished differently
    """
    payload = AIAnalysisWebhookPayload.from_json(request.get_json(silent=True))
    result = services().reconciler.handle_ai_analysis(payload, request=request)
    return success(result.to_dict(), result.message)
