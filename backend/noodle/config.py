"""Application settings.

Values are read once from the environment when the module is imported.
The JWT signing key is process state: a fixed constant in development and
a freshly generated random key everywhere else, so tokens issued before a
restart stop verifying afterwards.
"""

import os
import secrets
from pathlib import Path

DEV_SIGNING_KEY = "Development"
BASE = Path(__file__).resolve().parent.parent


class Settings:
    ENV: str
    JWT_SIGNING_KEY: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    DATABASE_URL: str
    LOGIN_RATE_LIMIT: int
    LOGIN_RATE_WINDOW_SECONDS: int
    SEED_ADMINISTRATOR: bool
    ADMIN_USERNAME: str
    ADMIN_PASSWORD: str
    LOG_LEVEL: str

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "12"))
        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE / 'noodle.db'}")
        self.LOGIN_RATE_LIMIT = int(os.getenv("LOGIN_RATE_LIMIT", "100"))
        self.LOGIN_RATE_WINDOW_SECONDS = int(os.getenv("LOGIN_RATE_WINDOW_SECONDS", str(15 * 60)))
        seed_default = "true" if self.is_dev else "false"
        self.SEED_ADMINISTRATOR = os.getenv("SEED_ADMINISTRATOR", seed_default).lower() == "true"
        self.ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "administrator")
        self.ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "administrator")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self.JWT_SIGNING_KEY = self._signing_key()
        self._validate()

    @property
    def is_dev(self) -> bool:
        return self.ENV in ("dev", "development")

    def _signing_key(self) -> str:
        if self.is_dev:
            return DEV_SIGNING_KEY
        return secrets.token_urlsafe(64)

    def _validate(self):
        if self.JWT_EXPIRE_HOURS <= 0:
            raise RuntimeError("JWT_EXPIRE_HOURS must be positive")
        if not self.is_dev and self.SEED_ADMINISTRATOR and self.ADMIN_PASSWORD == "administrator":
            raise RuntimeError("ADMIN_PASSWORD must be set to a non-default value in non-dev environments")


settings = Settings()
