"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK (Junior Developer Guide) ───────────────────────
#
# This class uses pydantic-settings to automatically read configuration
# from TWO sources (in priority order):
#
#   1. **Environment variables** — e.g., MONGODB_URI=mongodb://db:27017
#      (highest priority — always wins)
#   2. **.env file** — key=value lines in the project root .env file
#      (lower priority — used for local development)
#
# The mapping is automatic: field name `mongodb_uri` maps to env var
# `MONGODB_URI` (pydantic-settings uppercases and matches).
#
# Default values are used when neither an env var nor .env entry exists
# for that field.  Sizes are plain byte counts so they can be compared
# directly against ``len(data)``.
#
# SECURITY: The .env file is in .gitignore — never committed to the repo.
# Use .env.example as a template showing what variables are available.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic_settings import BaseSettings, SettingsConfigDict

_MIB = 1024 * 1024


class Settings(BaseSettings):
    """knowledgeVault application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === MongoDB / GridFS ===
    mongodb_uri: str = "mongodb://localhost:27017"
    mongodb_db: str = "knowledge_vault"
    gridfs_bucket: str = "uploads"

    # === Upload limits ===
    # Anything at or under the threshold is embedded in the file document;
    # larger payloads are streamed into the GridFS bucket.
    max_upload_size: int = 10 * _MIB
    direct_storage_threshold: int = 1 * _MIB

    # === OCR ===
    ocr_default_language: str = "chi_sim+eng"
    # Engine scale (0-100).  0 accepts the first provider that returns anything.
    ocr_min_confidence: float = 0.0
    tesseract_cmd: str = ""  # Empty = use the binary found on PATH

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = ""  # Comma-separated extra origins

    def get_cors_origins(self) -> list[str]:
        """Return the configured CORS origins as a trimmed list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
