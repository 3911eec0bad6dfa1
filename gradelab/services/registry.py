# gradelab/services/registry.py
"""
Per-app collaborators, built once in ``create_app`` and stored on
``app.extensions["gradelab"]``. Handlers reach them through ``services()``;
tests swap them by replacing the attributes.
"""
from dataclasses import dataclass

from flask import current_app

from gradelab.pipeline.forwarding import StageForwarder
from gradelab.pipeline.reconciler import WebhookReconciler
from gradelab.security.rate_limit import RateLimiter
from gradelab.services.storage import LocalFileStorage


@dataclass
class Services:
    forwarder: StageForwarder
    reconciler: WebhookReconciler
    storage: LocalFileStorage
    login_limiter: RateLimiter
    register_limiter: RateLimiter

    def use_forwarder(self, forwarder):
        self.forwarder = forwarder
        self.reconciler = WebhookReconciler(forwarder)


def build_services(config) -> Services:
    forwarder = StageForwarder.from_config(config)
    return Services(
        forwarder=forwarder,
        reconciler=WebhookReconciler(forwarder),
        storage=LocalFileStorage.from_config(config),
        login_limiter=RateLimiter.from_setting(config["LOGIN_RATE_LIMIT"]),
        register_limiter=RateLimiter.from_setting(config["REGISTER_RATE_LIMIT"]),
    )


def services() -> Services:
    return current_app.extensions["gradelab"]
