"""
Vault routes.

Handles:
- GET  /api/vaults                       - List vaults in the configured region
- POST /api/vaults/<vault_id>/archives   - Single-request archive upload

Both are pass-through calls to the GlacierClient facade, run on the
retrieval service's event loop.
"""

import bleach
from flask import (
    Blueprint,
    current_app,
    jsonify,
    request,
)
from werkzeug.utils import secure_filename

from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

vaults_bp = Blueprint("vaults", __name__)

# Glacier limits archive descriptions to 1024 printable ASCII characters
MAX_DESCRIPTION_LENGTH = 1024
UPLOAD_TIMEOUT_SECONDS = 300.0


def _sanitize_description(text: str, max_length: int = MAX_DESCRIPTION_LENGTH) -> str:
    """
    Sanitize a user-supplied archive description.

    Strips markup, drops characters outside printable ASCII and truncates.

    Args:
        text: Raw input text
        max_length: Maximum length to enforce

    Returns:
        Sanitized text safe to send as an archive description
    """
    if not text:
        return ""

    text = bleach.clean(text.strip(), tags=[], strip=True)
    text = "".join(ch for ch in text if " " <= ch <= "~")

    if len(text) > max_length:
        text = text[:max_length]

    return text


@vaults_bp.route("/api/vaults", methods=["GET"])
def list_vaults():
    """List vault summaries."""
    service = current_app.config.get("RETRIEVAL_SERVICE")
    if not service:
        return jsonify({"error": "Retrieval service unavailable"}), 503

    vaults = service.call(service.client.list_vaults())

    if not vaults:
        logger.info("There are no vaults in this region")

    return jsonify({"vaults": [v.to_dict() for v in vaults]})


@vaults_bp.route("/api/vaults/<vault_id>/archives", methods=["POST"])
def upload_archive(vault_id: str):
    """
    Upload the `archive` form file as a new archive.

    The optional `description` form field becomes the archive description;
    it defaults to the uploaded file name.
    """
    service = current_app.config.get("RETRIEVAL_SERVICE")
    if not service:
        return jsonify({"error": "Retrieval service unavailable"}), 503

    upload = request.files.get("archive")
    if upload is None or not upload.filename:
        return jsonify({"error": "No archive file provided"}), 400

    filename = secure_filename(upload.filename)
    description = _sanitize_description(request.form.get("description", "")) or filename

    body = upload.read()
    if not body:
        return jsonify({"error": "Archive file is empty"}), 400

    logger.info(f"Uploading {filename} ({len(body)} bytes) to vault {vault_id}")

    receipt = service.call(
        service.client.upload_archive(vault_id, body, description),
        timeout=UPLOAD_TIMEOUT_SECONDS
    )

    result = receipt.to_dict()
    result["vault_id"] = vault_id
    result["description"] = description
    return jsonify(result), 201
