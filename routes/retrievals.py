"""
Retrieval routes.

Handles:
- POST   /api/retrievals                 - Start a retrieval in the background
- GET    /api/retrievals/<id>            - Poll retrieval status
- GET    /api/retrievals/<id>/content    - Download the archive (once)
- DELETE /api/retrievals/<id>            - Stop waiting for a retrieval

The tier is parsed before anything is scheduled, so an unknown tier never
costs a job submission.
"""

from flask import (
    Blueprint,
    Response,
    current_app,
    jsonify,
    request,
)

from core.exceptions import InvalidTierError
from models.retrieval_result import RetrievalStatus
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

retrievals_bp = Blueprint("retrievals", __name__)


def _service():
    return current_app.config.get("RETRIEVAL_SERVICE")


def _error(message: str, status_code: int, **extra):
    body = {"error": message}
    body.update(extra)
    return jsonify(body), status_code


@retrievals_bp.route("/api/retrievals", methods=["POST"])
def start_retrieval():
    """
    Start a retrieval.

    Expects JSON: {"archive_id": ..., "vault_id": ..., "tier": ...}
    Returns 202 with the retrieval id and a status URL.
    """
    service = _service()
    if not service:
        return _error("Retrieval service unavailable", 503)

    payload = request.get_json(silent=True)
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        return _error("Request body must be a JSON object", 400)

    archive_id = str(payload.get("archive_id", "")).strip()
    vault_id = str(payload.get("vault_id", "")).strip()
    tier = payload.get("tier", "")

    if not archive_id or not vault_id:
        return _error("archive_id and vault_id are required", 400)

    try:
        retrieval_id = service.submit(archive_id, vault_id, tier)
    except InvalidTierError as e:
        logger.warning(f"Rejected retrieval with invalid tier: {e.tier_text!r}")
        return _error(e.message, 400, error_kind=e.kind.value)

    result = service.get_result(retrieval_id)
    body = result.to_dict()
    body["status_url"] = f"/api/retrievals/{retrieval_id}"
    return jsonify(body), 202


@retrievals_bp.route("/api/retrievals/<retrieval_id>", methods=["GET"])
def retrieval_status(retrieval_id: str):
    """Return the current RetrievalResult as JSON."""
    service = _service()
    if not service:
        return _error("Retrieval service unavailable", 503)

    result = service.get_result(retrieval_id)
    if result is None:
        return _error(f"Unknown retrieval: {retrieval_id}", 404)

    return jsonify(result.to_dict())


@retrievals_bp.route("/api/retrievals/<retrieval_id>/content", methods=["GET"])
def retrieval_content(retrieval_id: str):
    """
    Stream the downloaded archive.

    Content is handed out once; later calls get 410.
    """
    service = _service()
    if not service:
        return _error("Retrieval service unavailable", 503)

    result = service.get_result(retrieval_id)
    if result is None:
        return _error(f"Unknown retrieval: {retrieval_id}", 404)
    if result.status != RetrievalStatus.COMPLETED:
        return _error(f"Retrieval is {result.status.value}", 409, status=result.status.value)

    content = service.take_content(retrieval_id)
    if content is None:
        return _error("Content already downloaded", 410)

    data, content_type = content
    headers = {}
    if result.checksum:
        headers["X-Amz-Sha256-Tree-Hash"] = result.checksum
    if result.content_range:
        headers["X-Archive-Content-Range"] = result.content_range

    logger.info(f"Sending {len(data)} bytes for retrieval {retrieval_id[:8]}")
    return Response(
        data,
        mimetype=content_type or "application/octet-stream",
        headers=headers,
    )


@retrievals_bp.route("/api/retrievals/<retrieval_id>", methods=["DELETE"])
def cancel_retrieval(retrieval_id: str):
    """Stop polling a retrieval. The remote job keeps running."""
    service = _service()
    if not service:
        return _error("Retrieval service unavailable", 503)

    if service.get_result(retrieval_id) is None:
        return _error(f"Unknown retrieval: {retrieval_id}", 404)

    cancelled = service.cancel(retrieval_id)
    return jsonify({"retrieval_id": retrieval_id, "cancelled": cancelled})
