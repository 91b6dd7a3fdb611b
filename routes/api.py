"""
API routes (catalog and health).

Handles:
- /api/tiers - Retrieval tiers with descriptions and cost notes
- /health    - Health check endpoint
"""

from flask import (
    Blueprint,
    current_app,
    jsonify,
)

from core.tiers import Tier
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


@api_bp.route("/api/tiers", methods=["GET"])
def list_tiers():
    """Return the tier catalog."""
    return jsonify({"tiers": [tier.to_dict() for tier in Tier]})


@api_bp.route("/health", methods=["GET"])
def health():
    """
    Health check endpoint.

    Returns 200 when the Glacier client is built and the retrieval loop is
    running, 503 otherwise.
    """
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    client_manager = current_app.config.get("CLIENT_MANAGER")
    if client_manager and client_manager.is_initialized:
        health_status["checks"]["glacier_client"] = "initialized"
        health_status["region"] = client_manager.region
    else:
        health_status["checks"]["glacier_client"] = "not_initialized"
        health_status["status"] = "degraded"

    retrieval_service = current_app.config.get("RETRIEVAL_SERVICE")
    if retrieval_service and retrieval_service.is_running:
        health_status["checks"]["retrieval_service"] = "ok"
    else:
        health_status["checks"]["retrieval_service"] = "not_running"
        health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    if status_code != 200:
        logger.warning(f"Health check degraded: {health_status['checks']}")
    return health_status, status_code
