"""Routes module"""
from .health import router as health_router
from .validations import router as validations_router
from .webhooks import router as webhooks_router
from .validator_proxy import router as validator_proxy_router
from .admin_reports import router as admin_reports_router

__all__ = [
    "health_router",
    "validations_router",
    "webhooks_router",
    "validator_proxy_router",
    "admin_reports_router",
]
