from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./courierhub.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    SECRET_KEY: str = "change-this-secret-before-deploying-it"
    JWT_ALGORITHM: str = "HS256"
    TOKEN_TTL_SECONDS: int = 60 * 60 * 24
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    LOG_LEVEL: str = "INFO"

    # delivery proofs are written here and served from PROOF_PUBLIC_BASE_URL
    PROOF_UPLOAD_DIR: str = "./uploads/delivery-proofs"
    PROOF_PUBLIC_BASE_URL: str = "/static/delivery-proofs"
    PROOF_MAX_BYTES: int = 5 * 1024 * 1024

    NOTIFICATION_RETENTION_DAYS: int = 30
    NOTIFICATION_PURGE_INTERVAL_SECONDS: int = 3600
    NOTIFICATION_LIST_LIMIT: int = 50

    MAX_PAGE_SIZE: int = 100
    BCRYPT_ROUNDS: int = 12

    # per client address
    LOGIN_RATE_LIMIT: int = 10
    LOGIN_RATE_WINDOW_SECONDS: int = 60

    # optional bootstrap account, created by init_db when both are set
    SUPERADMIN_EMAIL: Optional[str] = None
    SUPERADMIN_PASSWORD: Optional[str] = None

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
