"""
Centralized runtime configuration.

``python-dotenv`` reads a local ``.env`` during development; values are
read from the environment when ``Settings.from_env()`` runs, so tests can
build their own ``Settings`` and hand it to ``create_app``.

Environment variables:
- ``STORE_BACKEND``: ``memory`` (default) or ``mongo``.
- ``MONGO_URI`` / ``DB_NAME``: MongoDB connection for the mongo backend.
- ``SEED_DEMO_DATA``: seed an empty store with demo records on startup.
- ``OPERATOR_USERNAME`` / ``OPERATOR_FULL_NAME`` / ``OPERATOR_ROLE`` /
  ``OPERATOR_DEPARTMENT``: the mocked operator identity.
- ``REPORT_TITLE``: first line of every text report.
- ``REPORT_OUTPUT_DIR``: where the CLI writes exported reports.
- ``LOG_LEVEL``, ``CORS_ORIGINS``, ``HOST``, ``PORT``.
"""

import os
from functools import lru_cache
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from waterops.schemas.api_models import Identity

# Load environment variables
load_dotenv()

STORE_BACKENDS = ("memory", "mongo")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    app_name: str = "Water Operations Service"
    app_version: str = "1.0.0"

    store_backend: str = "memory"
    mongo_uri: str = "mongodb://localhost:27017"
    db_name: str = "water_operations"
    seed_demo_data: bool = True

    operator_username: str = "john.analyst"
    operator_full_name: str = "John Analyst"
    operator_role: str = "analyst"
    operator_department: str = "MIS"

    report_title: str = "Water Utility Operations Report"
    report_output_dir: str = "."

    log_level: str = "INFO"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "Settings":
        backend = os.getenv("STORE_BACKEND", "memory").strip().lower()
        if backend not in STORE_BACKENDS:
            raise ValueError(f"STORE_BACKEND must be one of {STORE_BACKENDS}, got {backend!r}")

        origins = os.getenv("CORS_ORIGINS", "*")
        return cls(
            store_backend=backend,
            mongo_uri=os.getenv("MONGO_URI", "mongodb://localhost:27017"),
            db_name=os.getenv("DB_NAME", "water_operations"),
            seed_demo_data=_env_bool("SEED_DEMO_DATA", True),
            operator_username=os.getenv("OPERATOR_USERNAME", "john.analyst"),
            operator_full_name=os.getenv("OPERATOR_FULL_NAME", "John Analyst"),
            operator_role=os.getenv("OPERATOR_ROLE", "analyst"),
            operator_department=os.getenv("OPERATOR_DEPARTMENT", "MIS"),
            report_title=os.getenv("REPORT_TITLE", "Water Utility Operations Report"),
            report_output_dir=os.getenv("REPORT_OUTPUT_DIR", "."),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
        )

    def operator_identity(self) -> Identity:
        return Identity(
            username=self.operator_username,
            full_name=self.operator_full_name,
            role=self.operator_role,
            department=self.operator_department,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.from_env()
