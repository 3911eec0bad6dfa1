# gradelab/pipeline/audit.py
import logging

from sqlalchemy.exc import SQLAlchemyError

from gradelab.models import db, SystemLog
from gradelab.security.auth import client_identifier

logger = logging.getLogger(__name__)


def record_event(action, details=None, user_id=None, request=None):
    """
    Append one SystemLog row in its own commit.

    Best effort: a failed write is rolled back and reported to the operator
    log only, never to the caller. Call it after the business transaction has
    been committed so a rollback here cannot undo it.
    """
    try:
        entry = SystemLog(action=action, details=details, user_id=user_id)
        if request is not None:
            entry.ip_address = client_identifier(request)
            entry.user_agent = (request.headers.get("User-Agent") or "")[:512] or None
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Could not write system log entry '%s'", action)
        return None
    return entry
