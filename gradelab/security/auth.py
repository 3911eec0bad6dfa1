# gradelab/security/auth.py
"""
JWT + password helpers and the ``auth_required`` decorator.
"""
import re
import time
from functools import wraps

import jwt
from flask import current_app, g, request
from werkzeug.security import check_password_hash, generate_password_hash

from gradelab.errors import AuthenticationError, PermissionDenied
from gradelab.models.user import UserRole

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, password)


def _secret():
    secret = current_app.config.get("JWT_SECRET")
    if not secret:
        raise RuntimeError("JWT_SECRET not configured")
    return secret


def create_token(user) -> str:
    now = int(time.time())
    payload = {
        "userId": user.id,
        "email": user.email,
        "username": user.username,
        "role": str(user.role),
        "iat": now,
        "exp": now + int(current_app.config["JWT_EXPIRES_IN"]),
    }
    return jwt.encode(payload, _secret(), algorithm=current_app.config["JWT_ALGORITHM"])


def verify_token(token: str):
    """Decoded payload, or None when the token is invalid or expired."""
    try:
        return jwt.decode(token, _secret(), algorithms=[current_app.config["JWT_ALGORITHM"]])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def extract_bearer(header):
    if not header:
        return None
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        return None
    return parts[1]


def has_permission(role, required) -> bool:
    if isinstance(required, (str, UserRole)):
        required = [required]
    if role == UserRole.ADMIN:
        return True
    return role in {UserRole(r) for r in required}


def is_owner_or_admin(role, user_id, resource_user_id) -> bool:
    return role == UserRole.ADMIN or user_id == resource_user_id


def validate_email(email) -> bool:
    return bool(email) and bool(EMAIL_RE.match(email))


def validate_password(password: str):
    """List of problems with ``password``; empty when it is acceptable."""
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain an uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain a lowercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must contain a digit")
    return errors


def client_identifier(req=None) -> str:
    """
    Peer address of the request. Forwarding headers are only honoured through
    ProxyFix, and only for the number of proxies set in PROXY_FIX_X_FOR.
    """
    req = req or request
    return req.remote_addr or "unknown"


def auth_required(*roles):
    """
    Require a valid Bearer token; with ``roles`` also require one of them.

    The decoded payload is available as ``g.current_user``.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = extract_bearer(request.headers.get("Authorization"))
            if not token:
                raise AuthenticationError("Authentication required")
            payload = verify_token(token)
            if payload is None:
                raise AuthenticationError("Invalid or expired token")
            try:
                role = UserRole(payload.get("role"))
            except ValueError:
                raise AuthenticationError("Invalid or expired token")
            if roles and not has_permission(role, roles):
                raise PermissionDenied()
            payload["role"] = role
            g.current_user = payload
            return fn(*args, **kwargs)
        return wrapper
    return decorator
