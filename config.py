"""
Application configuration.
This module defines the configuration settings for the Flask application, including database connection, secret key,
session lifetime and ledger presentation settings. It uses environment variables for sensitive information and
defaults for development. In production, make sure to set the appropriate environment variables and secure the
secret key.
"""

import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'ledger.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie: one day, then the user signs in again
    PERMANENT_SESSION_LIFETIME = timedelta(hours=24)
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = os.environ.get("SESSION_COOKIE_SECURE", "0") == "1"

    # CSRF protection for forms
    WTF_CSRF_ENABLED = True

    # Attachments are stored inline, keep uploads bounded
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024

    # App UI name (used in templates)
    APP_NAME = "Project Ledger Pro"

    # Ledger presentation
    LEDGER_ORG_NAME = os.environ.get("LEDGER_ORG_NAME", "Akij")
    LEDGER_CURRENCY = os.environ.get("LEDGER_CURRENCY", "BDT")
    LEDGER_MISSING_DATE = "N/A"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestingConfig(Config):
    """In-memory database, no CSRF tokens."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "WARNING"
