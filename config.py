"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _optional_int(name):
    value = os.getenv(name)
    if value in (None, ''):
        return None
    return int(value)


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Session Configuration (the POS cart lives in the session cookie)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # Remote Sales/Stock API
    SALES_API_BASE_URL = os.getenv('SALES_API_BASE_URL', 'http://localhost:8000/api')
    SALES_API_TOKEN = os.getenv('SALES_API_TOKEN')
    SALES_API_TIMEOUT = int(os.getenv('SALES_API_TIMEOUT', '10'))  # seconds

    # Point of Sale
    # Customer record used for guest sales; None sends customer_id=null with is_guest=true
    GUEST_CUSTOMER_ID = _optional_int('GUEST_CUSTOMER_ID')

    # Redis Cache Configuration
    # Shared cache for the stock listing consumed by the POS screen
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_STOCK_TTL = int(os.getenv('CACHE_STOCK_TTL', '60'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'pos')


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    WTF_CSRF_ENABLED = False
    CACHE_ENABLED = False
    SALES_API_BASE_URL = 'http://sales-api.test/api'
    GUEST_CUSTOMER_ID = None
