"""
Vault Retrieval - Flask Application Entry Point.

This is a slim app factory that:
1. Builds the Glacier client (fail-fast)
2. Starts the retrieval service (background event loop thread)
3. Registers route blueprints
4. Sets up JSON error handlers

ARCHITECTURE:
    Main Thread
    ├── Glacier client construction (ClientManager)
    ├── Flask request handling
    └── Cleanup on shutdown (service stop, client close)

    RetrievalLoop Thread (background)
    └── One asyncio task per retrieval, all sharing one GlacierClient
"""

from __future__ import annotations

import atexit
import concurrent.futures
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify
from werkzeug.exceptions import RequestEntityTooLarge

from logging_config import setup_logging, get_logger
from core.client_manager import ClientManager
from core.exceptions import (
    ClientUnavailableError,
    InvalidTierError,
    RemoteServiceError,
    VaultRetrievalError,
)
from services.retrieval_service import RetrievalService
from routes import register_blueprints


# Module logger (configured after setup_logging)
logger = get_logger(__name__)


def _get_base_path() -> Path:
    """
    Get the base path for the application.

    In PyInstaller bundle: Returns the directory containing the executable
    In development: Returns the directory containing app.py
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent


def create_app(
    config_object: str = "config.Config",
    client_manager: Optional[ClientManager] = None
) -> Flask:
    """
    Application factory - creates and configures Flask app.

    FAIL-FAST: If the Glacier client cannot be built, the app will not start.

    Args:
        config_object: Import path of the config class
        client_manager: Pre-built ClientManager (built from config if None)

    Returns:
        Configured Flask application

    Raises:
        ClientUnavailableError: If the Glacier client cannot be built
    """
    # .env next to the executable wins over the shell environment
    env_file = _get_base_path() / '.env'
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)

    app = Flask(__name__)
    app.config.from_object(config_object)

    # Configure logging
    log_level = logging.DEBUG if app.config.get("DEBUG") else logging.INFO
    enable_file_logging = app.config.get("ENVIRONMENT") == "production"

    root_logger = setup_logging(
        log_level=log_level,
        enable_file_logging=enable_file_logging
    )

    # Set Flask's logger to use our configured logger
    app.logger.handlers = root_logger.handlers
    app.logger.setLevel(log_level)

    logger.info(f"Starting vault retrieval service in {app.config.get('ENVIRONMENT')} mode")

    # =========================================================================
    # CORE INITIALIZATION (FAIL-FAST)
    # =========================================================================

    if client_manager is None:
        client_manager = ClientManager(
            region=app.config.get("AWS_REGION"),
            profile=app.config.get("AWS_PROFILE"),
            endpoint_url=app.config.get("GLACIER_ENDPOINT_URL"),
            account_id=app.config.get("GLACIER_ACCOUNT_ID", "-"),
        )

    if not client_manager.is_initialized:
        try:
            client_manager.initialize()
        except ClientUnavailableError as e:
            logger.error(f"FATAL: Cannot start application - {e}")
            raise

    app.config["CLIENT_MANAGER"] = client_manager

    # =========================================================================
    # SERVICES INITIALIZATION
    # =========================================================================

    retrieval_service = RetrievalService(
        client_manager,
        wait_scale=app.config.get("RETRIEVAL_WAIT_SCALE", 1.0),
        result_ttl=app.config.get("RETRIEVAL_RESULT_TTL", 3600.0)
    )
    retrieval_service.start()
    app.config["RETRIEVAL_SERVICE"] = retrieval_service
    logger.info("Retrieval service started")

    # =========================================================================
    # CLEANUP REGISTRATION
    # =========================================================================

    def cleanup():
        """Cleanup on application shutdown."""
        logger.info("Shutting down...")
        retrieval_service.shutdown()
        client_manager.cleanup()
        logger.info("Shutdown complete")

    atexit.register(cleanup)

    # =========================================================================
    # REGISTER BLUEPRINTS
    # =========================================================================

    register_blueprints(app)

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.errorhandler(InvalidTierError)
    def handle_invalid_tier(e):
        return jsonify({"error": e.message, "error_kind": e.kind.value}), 400

    @app.errorhandler(RemoteServiceError)
    def handle_remote_error(e):
        logger.error(f"Remote call failed: {e}")
        return jsonify({"error": e.message, "details": e.details}), 502

    @app.errorhandler(VaultRetrievalError)
    def handle_retrieval_error(e):
        logger.error(f"Request failed: {e}")
        return jsonify({"error": e.message}), 500

    @app.errorhandler(concurrent.futures.TimeoutError)
    def handle_call_timeout(e):
        logger.error("Remote call did not finish in time")
        return jsonify({"error": "Remote call timed out"}), 504

    @app.errorhandler(RequestEntityTooLarge)
    def handle_file_too_large(e):
        max_mb = app.config.get("MAX_CONTENT_LENGTH", 64 * 1024 * 1024) / (1024 * 1024)
        return jsonify({"error": f"Archive too large. Maximum upload size is {max_mb:.0f} MB."}), 413

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    def handle_server_error(e):
        logger.error(f"500 error: {e}", exc_info=True)
        return jsonify({"error": "An unexpected error occurred"}), 500

    logger.info("Application initialized successfully")
    return app


if __name__ == "__main__":
    app = create_app()
    debug_mode = os.environ.get("FLASK_DEBUG", "1") == "1"
    # The reloader would build a second client and event loop
    app.run(debug=debug_mode, use_reloader=False)
