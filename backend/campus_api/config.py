"""Application settings and validation."""

import os

DEFAULT_MONGODB_URI = "mongodb://localhost:27017/students"


class Settings:
    ENV: str
    MONGODB_URI: str
    HOST: str
    PORT: int
    LOG_LEVEL: str
    ALLOW_DEV_CORS: bool

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.MONGODB_URI = os.getenv("MONGODB_URI") or DEFAULT_MONGODB_URI
        self.HOST = os.getenv("HOST", "0.0.0.0")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        cors_default = "true" if self.ENV == "dev" else "false"
        self.ALLOW_DEV_CORS = os.getenv("ALLOW_DEV_CORS", cors_default).lower() == "true"
        port = os.getenv("PORT", "3000")
        try:
            self.PORT = int(port)
        except ValueError:
            raise RuntimeError(f"PORT must be an integer, got {port!r}")
        self._validate()

    def _validate(self):
        if not self.MONGODB_URI.startswith(("mongodb://", "mongodb+srv://")):
            raise RuntimeError("MONGODB_URI must use the mongodb:// or mongodb+srv:// scheme")
        if not 0 < self.PORT < 65536:
            raise RuntimeError(f"PORT out of range: {self.PORT}")


settings = Settings()
