from flask import Flask
from flasgger import Swagger
from prometheus_flask_exporter import PrometheusMetrics
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from .logging_setup import setup_logging
from .config import DevelopmentConfig, ProductionConfig, TestingConfig

__version__ = "1.0.0"

CONFIGS = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}

API_DOCS = {
    "swagger": "2.0",
    "info": {
        "title": "GradeLab API",
        "description": "Exam-paper uploads, the scanning / AI-grading pipeline and its webhooks.",
        "version": __version__,
    },
    "basePath": "/",
    "schemes": ["https", "http"],
    "securityDefinitions": {
        "Bearer": {"type": "apiKey", "name": "Authorization", "in": "header"},
    },
}


def create_app(config_name: str = "development"):
    app = Flask(__name__)
    app.config.from_object(CONFIGS.get(config_name.lower(), DevelopmentConfig))

    setup_logging(app)
    init_proxy_fix(app)
    _init_cors(app)

    # models need the app to exist before they are imported
    from .models import init_app as init_models
    init_models(app)

    from .errors import register_error_handlers
    register_error_handlers(app)

    from .services.registry import build_services
    app.extensions["gradelab"] = build_services(app.config)

    from .tasks.celery_app import make_celery
    make_celery(app)

    Swagger(app, template=API_DOCS, config={
        "headers": [],
        "specs": [{
            "endpoint": "apispec_1",
            "route": "/apispec_1.json",
            "rule_filter": lambda rule: rule.rule.startswith(("/api", "/healthz")),
            "model_filter": lambda tag: True,
        }],
        "static_url_path": "/flasgger_static",
        "swagger_ui": True,
        "specs_route": "/apidocs/",
    })

    _register_blueprints(app)

    metrics = PrometheusMetrics(app, path="/metrics")
    metrics.info("app_info", "GradeLab upload pipeline service", version=__version__)

    return app


def init_proxy_fix(app):
    hops = int(app.config.get("PROXY_FIX_X_FOR") or 0)
    if hops > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops)
    return app


def _init_cors(app):
    raw = (app.config.get("CORS_ORIGINS") or "*").strip()
    origins = "*" if raw == "*" else [o.strip() for o in raw.split(",") if o.strip()]
    CORS(
        app,
        resources={r"/api/*": {"origins": origins}, r"/files/*": {"origins": origins}},
        supports_credentials=False,
        methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-ID"],
    )


def _register_blueprints(app):
    from .routes import admin_routes, analysis_routes, auth_routes, health, upload_routes, webhook_routes

    app.register_blueprint(health.bp)
    app.register_blueprint(auth_routes.bp, url_prefix="/api/auth")
    app.register_blueprint(upload_routes.bp, url_prefix="/api/uploads")
    app.register_blueprint(upload_routes.files_bp)
    app.register_blueprint(analysis_routes.bp, url_prefix="/api/analysis")
    app.register_blueprint(admin_routes.bp, url_prefix="/api/admin")
    app.register_blueprint(webhook_routes.bp, url_prefix="/api/webhook")
