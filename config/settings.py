"""
Application Settings

Loads configuration from the environment (and a local .env file) into a
single Settings object that is passed explicitly to the services that need it.
"""

import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "data"
DEFAULT_DATABASE_URL = f"sqlite:///{DATA_DIR / 'pocketlegal.db'}"

REQUIRED_VARIABLES = [
    'OPENAI_API_KEY',
    'DATABASE_URL',
    'PAYMENTS_BASE_URL',
    'PINATA_API_KEY',
    'PINATA_SECRET_API_KEY',
]


def _env_int(name, default):
    value = os.getenv(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}: {value!r}")
        return default


def _env_float(name, default):
    value = os.getenv(name)
    if value is None or value == '':
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric value for {name}: {value!r}")
        return default


@dataclass
class Settings:
    """Runtime configuration for PocketLegal."""

    database_url: str = DEFAULT_DATABASE_URL

    # LLM script generation
    openai_api_key: str = None
    openai_base_url: str = 'https://api.openai.com/v1'
    openai_model: str = 'gpt-3.5-turbo'
    openai_max_tokens: int = 1000

    # Content-addressed recording storage
    pinata_api_key: str = None
    pinata_secret_api_key: str = None
    pinata_base_url: str = 'https://api.pinata.cloud'
    pinata_gateway: str = 'https://gateway.pinata.cloud/ipfs'

    # Payments backend (holds the Stripe secret key server-side)
    payments_base_url: str = None
    stripe_price_id: str = 'price_1234567890'
    stripe_success_url: str = 'http://localhost:5000/subscription/success'
    stripe_cancel_url: str = 'http://localhost:5000/subscription/cancel'

    # Timeouts (seconds unless noted)
    upload_timeout: float = 30.0
    location_timeout_ms: int = 10000
    remote_sync_timeout: float = 10.0
    http_timeout: float = 15.0

    # Legal content
    default_state: str = 'CA'
    supported_languages: tuple = ('en', 'es')

    # App
    secret_key: str = 'change-me-in-production'
    demo_user_id: str = 'demo-user'
    demo_email: str = 'demo@pocketlegal.com'
    app_name: str = 'PocketLegal'
    app_version: str = '1.0.0'
    app_env: str = 'development'
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_env(cls):
        """
        Build settings from environment variables.

        Returns:
            Settings: configuration with defaults for anything unset
        """
        languages = os.getenv('SUPPORTED_LANGUAGES', 'en,es')
        return cls(
            database_url=os.getenv('DATABASE_URL', DEFAULT_DATABASE_URL),
            openai_api_key=os.getenv('OPENAI_API_KEY'),
            openai_base_url=os.getenv('OPENAI_BASE_URL', 'https://api.openai.com/v1'),
            openai_model=os.getenv('OPENAI_MODEL', 'gpt-3.5-turbo'),
            openai_max_tokens=_env_int('OPENAI_MAX_TOKENS', 1000),
            pinata_api_key=os.getenv('PINATA_API_KEY'),
            pinata_secret_api_key=os.getenv('PINATA_SECRET_API_KEY'),
            pinata_base_url=os.getenv('PINATA_BASE_URL', 'https://api.pinata.cloud'),
            pinata_gateway=os.getenv('PINATA_GATEWAY', 'https://gateway.pinata.cloud/ipfs'),
            payments_base_url=os.getenv('PAYMENTS_BASE_URL'),
            stripe_price_id=os.getenv('STRIPE_PRICE_ID', 'price_1234567890'),
            stripe_success_url=os.getenv('STRIPE_SUCCESS_URL', 'http://localhost:5000/subscription/success'),
            stripe_cancel_url=os.getenv('STRIPE_CANCEL_URL', 'http://localhost:5000/subscription/cancel'),
            upload_timeout=_env_float('UPLOAD_TIMEOUT', 30.0),
            location_timeout_ms=_env_int('LOCATION_TIMEOUT_MS', 10000),
            remote_sync_timeout=_env_float('REMOTE_SYNC_TIMEOUT', 10.0),
            http_timeout=_env_float('HTTP_TIMEOUT', 15.0),
            default_state=os.getenv('DEFAULT_STATE', 'CA'),
            supported_languages=tuple(l.strip() for l in languages.split(',') if l.strip()),
            secret_key=os.getenv('SECRET_KEY', 'change-me-in-production'),
            demo_user_id=os.getenv('DEMO_USER_ID', 'demo-user'),
            demo_email=os.getenv('DEMO_EMAIL', 'demo@pocketlegal.com'),
            app_name=os.getenv('APP_NAME', 'PocketLegal'),
            app_version=os.getenv('APP_VERSION', '1.0.0'),
            app_env=os.getenv('APP_ENV', 'development'),
        )

    @property
    def remote_storage_available(self):
        return bool(self.pinata_api_key and self.pinata_secret_api_key)

    @property
    def llm_available(self):
        return bool(self.openai_api_key)

    @property
    def payments_available(self):
        return bool(self.payments_base_url)

    def missing_variables(self):
        """
        List required environment variables that are not set.

        Missing values are not fatal: the matching features degrade to
        local-only or mock behaviour.

        Returns:
            list: names of unset variables
        """
        missing = [name for name in REQUIRED_VARIABLES if not os.getenv(name)]
        if missing:
            logger.warning(f"Missing environment variables: {', '.join(missing)}")
        return missing
