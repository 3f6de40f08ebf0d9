import os
from typing import List, Optional

from dotenv import dotenv_values
from pydantic import PrivateAttr
from pydantic_settings import BaseSettings


def _parse_allowed_origins(v: str) -> List[str]:
    """Parse comma-separated origins string; strip whitespace; keep non-empty."""
    if not v or not v.strip():
        return []
    return [o.strip() for o in v.split(",") if o.strip()]


_DEFAULT_CORS_ORIGINS = [
    "http://localhost:4242",
    "http://127.0.0.1:4242",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

DEFAULT_STRIPE_API_VERSION = "2025-02-24.acacia;invoice_payment_plans_beta=v1"


class Settings(BaseSettings):
    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = None
    STRIPE_PUBLISHABLE_KEY: Optional[str] = None
    STRIPE_WEBHOOK_SECRET: Optional[str] = None  # Unset means webhook bodies are trusted as-is (local dev only)
    # Invoices keep payment_intent and subscription up to acacia; the beta enables amounts_due
    STRIPE_API_VERSION: Optional[str] = DEFAULT_STRIPE_API_VERSION
    STRIPE_MAX_NETWORK_RETRIES: int = 0

    # Checkout defaults used by /create-payment-intent when the query omits them
    DEFAULT_PAYMENT_AMOUNT: int = 1999  # minor units
    DEFAULT_PAYMENT_CURRENCY: str = "eur"

    # Static front end (index.html, return.html, css, js)
    STATIC_DIR: Optional[str] = None

    # CORS: comma-separated extra origins, added to the localhost defaults
    ALLOWED_ORIGINS_EXTRA: str = ""

    LOG_LEVEL: str = "INFO"
    PORT: int = 4242

    _lookup_env_files: List[str] = PrivateAttr(default_factory=list)

    def __init__(self, **values):
        env_file = values.get("_env_file", self.model_config.get("env_file"))
        super().__init__(**values)
        # Lookup keys honour the same .env the fields were read from
        if env_file is None:
            self._lookup_env_files = []
        elif isinstance(env_file, (list, tuple)):
            self._lookup_env_files = [str(f) for f in env_file]
        else:
            self._lookup_env_files = [str(env_file)]

    def get_allowed_origins(self) -> List[str]:
        """Return CORS allowed origins: default localhost + ALLOWED_ORIGINS_EXTRA."""
        return _DEFAULT_CORS_ORIGINS + _parse_allowed_origins(self.ALLOWED_ORIGINS_EXTRA)

    def get_price_for_lookup_key(self, lookup_key: str) -> Optional[str]:
        """
        Resolve a price lookup key to a Stripe price id.

        Each lookup key the front end may send is configured as its own
        environment variable named after the upper-cased key, e.g. the key
        ``premium`` reads ``PREMIUM=price_123``.
        """
        if not lookup_key:
            return None
        name = lookup_key.upper()
        if name in os.environ:
            return os.environ[name]
        # pydantic-settings reads .env for declared fields only; later files win
        value = None
        for env_file in self._lookup_env_files:
            if os.path.isfile(env_file):
                value = dotenv_values(env_file).get(name, value)
        return value

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
