# gradelab/routes/admin_routes.py
from flask import Blueprint, g, request

from gradelab.errors import NotFoundError, ValidationError
from gradelab.models import db, User
from gradelab.models.user import UserRole
from gradelab.pipeline.audit import record_event
from gradelab.responses import paginate_args, pagination, success
from gradelab.security.auth import auth_required

bp = Blueprint("admin", __name__)


@bp.get("/users")
@auth_required(UserRole.ADMIN)
def list_users():
    """
    Admin: list users
    ---
    tags:
      - Admin
    parameters:
      - in: query
        name: search
        type: string
        description: Substring of username or e-mail
      - in: query
        name: status
        type: string
        enum: [active, inactive]
      - in: query
        name: page
        type: integer
      - in: query
        name: limit
        type: integer
    responses:
      200:
        description: OK
      403:
        description: Admins only
    """
    page, limit, offset = paginate_args(request.args, default_limit=20)
    q = User.query

    search = (request.args.get("search") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(db.or_(User.username.ilike(like), User.email.ilike(like)))

    status = request.args.get("status")
    if status in ("active", "inactive"):
        q = q.filter(User.is_active == (status == "active"))

    total = q.count()
    users = q.order_by(User.created_at.desc(), User.id.desc()).offset(offset).limit(limit).all()

    return success({
        "users": [u.to_public() for u in users],
        "pagination": pagination(page, limit, total),
    }, "Users listed")


@bp.patch("/users/<int:user_id>")
@auth_required(UserRole.ADMIN)
def update_user_status(user_id: int):
    """
    Admin: activate / deactivate a user
    ---
    tags:
      - Admin
    parameters:
      - in: path
        name: user_id
        type: integer
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [is_active]
          properties:
            is_active:
              type: boolean
              example: false
    responses:
      200:
        description: Updated
      400:
        description: is_active missing or not a boolean
      404:
        description: No such user
    """
    data = request.get_json(silent=True) or {}
    is_active = data.get("is_active")
    if not isinstance(is_active, bool):
        raise ValidationError("is_active must be a boolean")

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    user.is_active = is_active
    db.session.commit()

    record_event("user_status_update", {
        "target_user_id": user_id,
        "new_status": "active" if is_active else "inactive",
    }, user_id=g.current_user["userId"], request=request)

    return success({"user_id": user_id, "username": user.username, "is_active": is_active},
                   f"User {'activated' if is_active else 'deactivated'}")
