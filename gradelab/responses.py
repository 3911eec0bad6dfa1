from flask import jsonify


def success(data=None, message="", status=200):
    body = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def paginate_args(args, default_limit=10, max_limit=100):
    """(page, limit, offset) from ?page=&limit=, clamped to sane bounds."""
    page = max(args.get("page", 1, type=int) or 1, 1)
    limit = args.get("limit", default_limit, type=int) or default_limit
    limit = min(max(limit, 1), max_limit)
    return page, limit, (page - 1) * limit


def pagination(page, limit, total):
    return {"page": page, "limit": limit, "total": total, "pages": -(-total // limit)}
