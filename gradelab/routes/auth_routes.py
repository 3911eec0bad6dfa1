# gradelab/routes/auth_routes.py
import logging

from flask import Blueprint, request
from sqlalchemy.exc import IntegrityError

from gradelab.errors import AuthenticationError, ConflictError, RateLimitExceeded, ValidationError
from gradelab.models import db, User
from gradelab.models.user import UserRole
from gradelab.pipeline.audit import record_event
from gradelab.responses import success
from gradelab.security.auth import (
    client_identifier,
    create_token,
    hash_password,
    validate_email,
    validate_password,
    verify_password,
)
from gradelab.services.registry import services

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)


def _check_rate(limiter, client, message):
    if not limiter.is_allowed(client):
        raise RateLimitExceeded(message, retry_after=limiter.retry_after(client))


@bp.post("/register")
def register():
    """
    Register a teacher account
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [username, email, password, confirmPassword]
          properties:
            username:
              type: string
              example: "ayse"
            email:
              type: string
              example: "ayse@example.com"
            password:
              type: string
              example: "Secret123"
            confirmPassword:
              type: string
              example: "Secret123"
    responses:
      201:
        description: Created, returns user and token
      400:
        description: Invalid fields
      409:
        description: E-mail already registered
      429:
        description: Too many attempts
    """
    limiter = services().register_limiter
    client = client_identifier(request)
    _check_rate(limiter, client, "Too many registration attempts. Try again in an hour.")

    data = request.get_json(silent=True) or {}
    username = (data.get("username") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    confirm = data.get("confirmPassword") or ""

    if not username or not email or not password or not confirm:
        raise ValidationError("All fields are required")
    if not validate_email(email):
        raise ValidationError("Enter a valid e-mail address")
    if password != confirm:
        raise ValidationError("Passwords do not match")
    problems = validate_password(password)
    if problems:
        raise ValidationError(problems[0])

    if User.query.filter_by(email=email).first():
        raise ConflictError("This e-mail address is already in use")

    user = User(username=username, email=email, password_hash=hash_password(password),
                role=UserRole.TEACHER)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("This e-mail address is already in use")

    limiter.reset(client)
    token = create_token(user)
    record_event("register", {"email": user.email}, user_id=user.id, request=request)

    return success({"user": user.to_public(), "token": token}, "Registration successful", 201)


@bp.post("/login")
def login():
    """
    Log in with e-mail and password
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [email, password]
          properties:
            email:
              type: string
              example: "ayse@example.com"
            password:
              type: string
              example: "Secret123"
    responses:
      200:
        description: OK, returns user and token
      400:
        description: Missing fields
      401:
        description: Wrong credentials
      429:
        description: Too many attempts
    """
    limiter = services().login_limiter
    client = client_identifier(request)
    # before any credential work
    _check_rate(limiter, client, "Too many login attempts. Try again in 15 minutes.")

    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    if not email or not password:
        raise ValidationError("E-mail and password are required")
    if not validate_email(email):
        raise ValidationError("Enter a valid e-mail address")

    user = User.query.filter_by(email=email, is_active=True).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        raise AuthenticationError("Wrong e-mail or password")

    limiter.reset(client)
    token = create_token(user)
    record_event("login", {"method": "email"}, user_id=user.id, request=request)

    return success({"user": user.to_public(), "token": token}, "Login successful")
