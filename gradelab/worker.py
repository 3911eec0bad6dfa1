# celery -A gradelab.worker:celery worker --loglevel=INFO
import os

from gradelab import create_app
from gradelab.tasks.celery_app import check_broker

flask_app = create_app(os.getenv("FLASK_ENV", "production"))
celery = flask_app.extensions["celery"]

with flask_app.app_context():
    from gradelab.tasks import pipeline_tasks  # noqa: F401  (registers tasks)

check_broker(celery)
