# Overview: System health and version endpoints.

"""
System health and version endpoints.

Health covers the database (including session bookkeeping) and the
exchange-rate collaborator. Exchange rates are optional: a cold or failing
cache only degrades the service.
"""

import sys
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import RetailerPolicy, ReturnItem, SessionToken
from ..services.currency_service import EXTENSION_KEY
from retoro.time_utils import utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def check_database_health() -> dict:
    start_time = time.time()
    try:
        retailer_count = db.session.query(RetailerPolicy).count()
        item_count = db.session.query(ReturnItem).count()
        expired_sessions = db.session.query(SessionToken).filter(
            SessionToken.expires_at < utcnow()
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        result = {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "retailers": retailer_count,
                "return_items": item_count,
                "expired_sessions_pending_cleanup": expired_sessions,
            }
        }
        if retailer_count == 0:
            result["status"] = "degraded"
            result["warning"] = "No retailers configured (run: flask system init)"
        return result
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_exchange_rate_health() -> dict:
    """Reports cache state only; never calls the upstream API."""
    service = current_app.extensions.get(EXTENSION_KEY)
    if service is None or service.cache is None:
        return {"status": "degraded", "warning": "Exchange rates not loaded yet"}

    age_seconds = service.clock() - service.cache.fetched_at
    return {
        "status": "healthy" if age_seconds < service.ttl_seconds else "degraded",
        "details": {
            "base": service.cache.base,
            "currencies": len(service.cache.rates),
            "age_seconds": round(age_seconds, 1),
        }
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    exchange_health = check_exchange_rate_health()

    all_checks = [database_health, exchange_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "exchange_rates": exchange_health,
        }
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment info."""
    return {
        "api_version": API_VERSION,
        "environment": current_app.config.get("RETORO_ENV"),
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
