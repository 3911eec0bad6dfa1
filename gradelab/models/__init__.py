# gradelab/models/__init__.py
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()

def init_app(app):
    app.config.setdefault("SQLALCHEMY_TRACK_MODIFICATIONS", False)
    db.init_app(app)
    migrate.init_app(app, db)

# register models on the metadata
from .user import User  # noqa
from .upload import Upload  # noqa
from .scanner_output import ScannerOutput  # noqa
from .analysis import Analysis  # noqa
from .system_log import SystemLog  # noqa

__all__ = ["db", "migrate", "User", "Upload", "ScannerOutput", "Analysis", "SystemLog"]
