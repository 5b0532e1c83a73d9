# config.py

import os
from dotenv import load_dotenv

# Get the base directory of the application
basedir = os.path.abspath(os.path.dirname(__file__))

# This line finds the .env file in your root directory and loads it.
load_dotenv(os.path.join(basedir, '..', '.env'))
# --------------------------------------


def _split_origins(value):
    return [origin.strip() for origin in value.split(',') if origin.strip()]


class Config:
    """
    Contains all the configuration variables for the application,
    including database settings, token signing and marketplace rules.
    """
    # --- Database Settings ---
    # Reads the database URL from the .env file.
    # Provides a default (e.g., for SQLite) if the variable isn't set.
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'app.db')

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # --- Secret Keys ---
    SECRET_KEY = os.environ.get('SECRET_KEY')
    # Signs identity tokens (HS256). Falls back to SECRET_KEY.
    JWT_SECRET = os.environ.get('JWT_SECRET') or os.environ.get('SECRET_KEY')
    JWT_EXPIRATION_HOURS = int(os.environ.get('JWT_EXPIRATION_HOURS') or 24)

    # --- CORS ---
    CORS_ORIGINS = _split_origins(
        os.environ.get('CORS_ORIGINS') or 'http://localhost:3000,http://127.0.0.1:3000'
    )

    # --- Email Settings ---
    MAIL_SERVER = os.environ.get('MAIL_SERVER') or 'smtp.office365.com'
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS') is not None
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    # ---------------------------

    # --- Marketplace Rules ---
    PAYMENT_CALLBACK_MAX_AGE_SECONDS = int(os.environ.get('PAYMENT_CALLBACK_MAX_AGE_SECONDS') or 300)
    VOUCHER_DEFAULT_EXPIRATION_DAYS = int(os.environ.get('VOUCHER_DEFAULT_EXPIRATION_DAYS') or 30)
    VENDOR_SESSION_HOURS = int(os.environ.get('VENDOR_SESSION_HOURS') or 10)
    PLATFORM_FEE_RATE = float(os.environ.get('PLATFORM_FEE_RATE') or 0.10)

    # Monthly voucher allowance granted by each subscription plan
    SUBSCRIPTION_PLANS = {
        'founders-free': 10,
        'basic': 50,
        'pro': 200,
    }

    # --- Rate Limiting ---
    # bucket -> (max requests, window in seconds)
    RATE_LIMITS = {
        'default': (30, 60),
        'issue': (10, 60),
    }

    @staticmethod
    def validate_email_config(config):
        """Raises ValueError when SMTP credentials are missing from a config mapping."""
        missing = [name for name in ("MAIL_SERVER", "MAIL_USERNAME", "MAIL_PASSWORD")
                   if not config.get(name)]
        if missing:
            raise ValueError(f"Missing email settings: {', '.join(missing)}")


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SECRET_KEY = 'test-secret-key'
    JWT_SECRET = 'test-jwt-secret'
    MAIL_USERNAME = None
    MAIL_PASSWORD = None
