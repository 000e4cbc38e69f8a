"""
Configuration for the Hytale Server Polling API
"""

import os
import platform

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name: str, default: str) -> list:
    return [item.strip() for item in os.getenv(name, default).split(',') if item.strip()]


class Config:
    """Service configuration"""

    # API information
    API_NAME = os.getenv('API_NAME', 'Hytale Server Polling API')
    API_VERSION = os.getenv('API_VERSION', '1.0.0')
    LANGUAGE = f"Python {platform.python_version()}"

    # HTTP API
    API_HOST = os.getenv('API_HOST', '0.0.0.0')
    API_PORT = int(os.getenv('API_PORT', '8080'))

    # Query defaults
    DEFAULT_PORT = int(os.getenv('DEFAULT_PORT', '5523'))  # Nitrado Query
    HYQUERY_DEFAULT_PORT = int(os.getenv('HYQUERY_DEFAULT_PORT', '5520'))  # game port
    TIMEOUT_SECONDS = float(os.getenv('TIMEOUT_SECONDS', '5'))
    VERIFY_SSL = _env_bool('VERIFY_SSL', 'false')  # enable in production with valid certificates
    USER_AGENT = os.getenv('USER_AGENT', 'Hytale-Server-Polling-API/1.0')

    # IP access control (single IPs or CIDR ranges)
    ALLOWED_IPS = _env_list('ALLOWED_IPS', '127.0.0.1,::1')
    TRUST_PROXY_HEADERS = _env_bool('TRUST_PROXY_HEADERS', 'true')

    # Cache (0 disables caching)
    CACHE_DURATION = int(os.getenv('CACHE_DURATION', '30'))
    CACHE_MAX_ENTRIES = int(os.getenv('CACHE_MAX_ENTRIES', '1024'))

    # Batch requests
    MAX_BATCH_SERVERS = int(os.getenv('MAX_BATCH_SERVERS', '50'))

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    def __repr__(self):
        return (
            f"<Config API={self.API_HOST}:{self.API_PORT} "
            f"cache={self.CACHE_DURATION}s timeout={self.TIMEOUT_SECONDS}s>"
        )


# Singleton instance
config = Config()
