"""Application settings and validation."""

import os


class Settings:
    ENV: str
    JWT_SECRET: str
    JWT_ALGORITHM: str
    JWT_EXPIRE_HOURS: int
    DB_URL: str
    LOG_LEVEL: str
    ALLOW_INSECURE_JWT: bool
    ALLOW_DEV_CORS: bool
    MIN_DAILY_STUDY_TIME: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.JWT_SECRET = os.getenv("JWT_SECRET", "change_me_for_prod")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
        self.JWT_EXPIRE_HOURS = int(os.getenv("JWT_EXPIRE_HOURS", "24"))
        self.DB_URL = os.getenv("DB_URL", "")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
        self.ALLOW_INSECURE_JWT = os.getenv("ALLOW_INSECURE_JWT", "false").lower() == "true"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", "true").lower() == "true"
        self.MIN_DAILY_STUDY_TIME = int(os.getenv("MIN_DAILY_STUDY_TIME", "60"))  # minutes
        self._validate()

    def _validate(self):
        if self.ENV != "dev" and not self.ALLOW_INSECURE_JWT and self.JWT_SECRET == "change_me_for_prod":
            raise RuntimeError("JWT_SECRET must be set to a non-default value in non-dev environments")
        if self.MIN_DAILY_STUDY_TIME < 0:
            raise RuntimeError("MIN_DAILY_STUDY_TIME must be >= 0")


settings = Settings()
