import re
from datetime import timedelta

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

_DURATION_RE = re.compile(r"(\d+)(h|m|s)")
_UNITS = {"h": "hours", "m": "minutes", "s": "seconds"}

DEFAULT_JWT_SECRET = "default-secret-key-change-me"


def parse_duration(value: str) -> timedelta:
    """Parse durations written as ``15m``, ``168h`` or ``1h30m``."""
    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    parts = _DURATION_RE.findall(text)
    if not parts or "".join(n + u for n, u in parts) != text:
        raise ValueError(f"invalid duration: {value!r}")
    kwargs = {}
    for number, unit in parts:
        key = _UNITS[unit]
        kwargs[key] = kwargs.get(key, 0) + int(number)
    return timedelta(**kwargs)


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    port: int = Field(8080, alias="PORT")
    env: str = Field("development", alias="ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    demo_mode: bool = Field(False, alias="DEMO_MODE")

    db_type: str = Field("sqlite", alias="DB_TYPE")
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("classkeeper", alias="DB_USER")
    db_password: str = Field("", alias="DB_PASSWORD")
    db_name: str = Field("classkeeper_db", alias="DB_NAME")
    sqlite_path: str = Field("./classkeeper.db", alias="SQLITE_PATH")

    jwt_secret: str = Field(DEFAULT_JWT_SECRET, alias="JWT_SECRET")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    jwt_expiry: timedelta = Field(timedelta(minutes=15), alias="JWT_EXPIRY")
    refresh_token_expiry: timedelta = Field(timedelta(hours=168), alias="REFRESH_TOKEN_EXPIRY")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @field_validator("jwt_expiry", "refresh_token_expiry", mode="before")
    @classmethod
    def _parse_duration(cls, v):
        if isinstance(v, str):
            return parse_duration(v)
        return v

    @field_validator("db_type", mode="before")
    @classmethod
    def _normalize_db_type(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "postgresql":
                return "postgres"
        return v

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def database_url(self) -> str:
        if self.db_type == "postgres":
            return (
                f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
                f"@{self.db_host}:{self.db_port}/{self.db_name}"
            )
        return f"sqlite+aiosqlite:///{self.sqlite_path}"


settings = Settings()
