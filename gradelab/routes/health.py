import os
from datetime import datetime

from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.get("/healthz")
def healthz():
    """
    Healthcheck
    ---
    tags:
      - Health
    responses:
      200:
        description: OK
    """
    return jsonify({"ok": True}), 200


@bp.get("/api/env-check")
def env_check():
    """
    Report which required environment variables are set
    ---
    tags:
      - Health
    responses:
      200:
        description: All required variables present
      500:
        description: Some are missing
    """
    variables = {name: bool(os.environ.get(name)) for name in current_app.config["REQUIRED_ENV_VARS"]}
    missing = [name for name, present in variables.items() if not present]
    return jsonify({
        "status": "error" if missing else "success",
        "environment": current_app.config.get("ENV"),
        "variables": variables,
        "missing": missing,
        "timestamp": datetime.utcnow().replace(microsecond=0).isoformat() + "Z",
    }), 500 if missing else 200
