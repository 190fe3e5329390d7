import logging
import os
from decimal import Decimal, InvalidOperation
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    DATABASE_URL: str | None = None
    DATABASE_MODE: str = 'auto'  # one of: auto, sqlite, postgresql
    DATABASE_ECHO: bool = False
    SQLITE_PATH: str = './data/meetcute.db'

    POSTGRES_HOST: str = 'postgres'
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = 'meetcute'
    POSTGRES_PASSWORD: str = 'meetcute'
    POSTGRES_DB: str = 'meetcute'

    LOG_LEVEL: str = 'INFO'
    LOG_FILE: str = 'logs/meetcute.log'

    CABINET_JWT_SECRET: str = 'change-me'
    CABINET_JWT_ALGORITHM: str = 'HS256'
    CABINET_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12
    CABINET_ALLOWED_ORIGINS: str = 'http://localhost:5173,http://127.0.0.1:5173'

    DEFAULT_CURRENCY: str = 'USD'
    GIFT_REDEMPTION_RATE: str = '0.73'
    MIN_WITHDRAWAL_AMOUNT_CENTS: int = 100
    MIN_TOPUP_AMOUNT_CENTS: int = 100

    PENDING_VERIFICATION_PAGE_SIZE: int = 20
    USER_TRANSACTIONS_PAGE_SIZE: int = 10

    PROFILE_BOOST_DURATION_MINUTES: int = 30

    model_config = {'env_file': '.env', 'env_file_encoding': 'utf-8', 'extra': 'ignore'}

    @field_validator('LOG_FILE', mode='before')
    @classmethod
    def ensure_log_dir(cls, v):
        log_path = Path(v)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return str(log_path)

    @field_validator('GIFT_REDEMPTION_RATE', mode='before')
    @classmethod
    def validate_redemption_rate(cls, value) -> str:
        try:
            rate = Decimal(str(value))
        except (InvalidOperation, ValueError) as error:
            raise ValueError('GIFT_REDEMPTION_RATE must be a decimal number') from error
        if rate <= 0 or rate > 1:
            raise ValueError('GIFT_REDEMPTION_RATE must be in (0, 1]')
        return str(rate)

    @field_validator('MIN_WITHDRAWAL_AMOUNT_CENTS', 'MIN_TOPUP_AMOUNT_CENTS', mode='before')
    @classmethod
    def ensure_positive_minimum(cls, value: int | None) -> int:
        try:
            if value is None:
                return 1
            return max(1, int(value))
        except (TypeError, ValueError):
            return 1

    def get_database_url(self) -> str:
        if self.DATABASE_URL and self.DATABASE_URL.strip():
            return self.DATABASE_URL

        mode = self.DATABASE_MODE.lower()

        if mode == 'sqlite':
            return self._get_sqlite_url()
        if mode == 'postgresql':
            return self._get_postgresql_url()
        if os.getenv('DOCKER_ENV') == 'true' or os.path.exists('/.dockerenv'):
            return self._get_postgresql_url()
        return self._get_sqlite_url()

    def _get_sqlite_url(self) -> str:
        sqlite_path = Path(self.SQLITE_PATH)
        sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        return f'sqlite+aiosqlite:///{sqlite_path.absolute()}'

    def _get_postgresql_url(self) -> str:
        return (
            f'postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}'
            f'@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}'
        )

    def is_postgresql(self) -> bool:
        return 'postgresql' in self.get_database_url()

    def get_cabinet_allowed_origins(self) -> list[str]:
        if not self.CABINET_ALLOWED_ORIGINS:
            return []
        return [o.strip() for o in self.CABINET_ALLOWED_ORIGINS.split(',') if o.strip()]

    def get_cabinet_access_token_expire_minutes(self) -> int:
        return max(1, self.CABINET_ACCESS_TOKEN_EXPIRE_MINUTES)

    def get_gift_redemption_rate(self) -> Decimal:
        return Decimal(self.GIFT_REDEMPTION_RATE)

    def get_default_currency(self) -> str:
        return (self.DEFAULT_CURRENCY or 'USD').strip().upper()


settings = Settings()
