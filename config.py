"""
Configuration for the vault retrieval service.

Region and credentials follow the standard boto3 chain; only the region
fallback and the few service-specific knobs live here.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file early so environment variables are available for Config class
# This must happen before the Config class is defined
load_dotenv(override=True)

# Base directory (where this file lives)
BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Default configuration for the Flask application."""

    # Flask settings
    SECRET_KEY = os.environ.get("FLASK_SECRET_KEY", "dev-secret-key")
    MAX_CONTENT_LENGTH = 64 * 1024 * 1024  # 64 MB single-request uploads
    ENVIRONMENT = os.environ.get("FLASK_ENV", "development")

    # Debug mode
    DEBUG = os.environ.get("FLASK_DEBUG", "1") == "1"

    # ==========================================================================
    # Glacier client
    # ==========================================================================
    # AWS_REGION: region for the Glacier client. When unset, the profile's
    #   region is used, then eu-west-2.
    # AWS_PROFILE: named profile from ~/.aws; default credential chain if unset
    # GLACIER_ACCOUNT_ID: "-" means the account owning the credentials
    # GLACIER_ENDPOINT_URL: endpoint override (local emulators)
    # ==========================================================================
    AWS_REGION = os.environ.get("AWS_REGION") or None
    AWS_PROFILE = os.environ.get("AWS_PROFILE") or None
    GLACIER_ACCOUNT_ID = os.environ.get("GLACIER_ACCOUNT_ID", "-")
    GLACIER_ENDPOINT_URL = os.environ.get("GLACIER_ENDPOINT_URL") or None

    # ==========================================================================
    # Retrieval wait policy
    # ==========================================================================
    # RETRIEVAL_WAIT_SCALE multiplies every tier's poll delays and maximum
    # wait. 1.0 keeps the defaults (Expedited 30 min, Standard 8 h,
    # Bulk 16 h); 0.01 is handy against an emulator that finishes jobs fast.
    # ==========================================================================
    RETRIEVAL_WAIT_SCALE = float(
        os.environ.get("RETRIEVAL_WAIT_SCALE", "1.0")
    )

    # Seconds a finished retrieval (and any content not yet downloaded) is
    # kept in memory before it is dropped
    RETRIEVAL_RESULT_TTL = float(
        os.environ.get("RETRIEVAL_RESULT_TTL", "3600")
    )


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration."""
    DEBUG = False
    TESTING = True
    AWS_REGION = "eu-west-2"
    RETRIEVAL_WAIT_SCALE = 1.0
