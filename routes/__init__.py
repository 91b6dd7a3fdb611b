"""
Flask route blueprints for the vault retrieval service.

This module contains all route handlers organized by functionality:
- api: Tier catalog and health check
- vaults: Vault listing and archive upload (pass-through)
- retrievals: Start, poll, download and abandon retrievals

Each blueprint is registered with the Flask app in create_app().
"""

from .api import api_bp
from .vaults import vaults_bp
from .retrievals import retrievals_bp

__all__ = [
    "api_bp",
    "vaults_bp",
    "retrievals_bp",
]


def register_blueprints(app):
    """
    Register all blueprints with the Flask app.

    Args:
        app: Flask application instance
    """
    app.register_blueprint(api_bp)
    app.register_blueprint(vaults_bp)
    app.register_blueprint(retrievals_bp)
