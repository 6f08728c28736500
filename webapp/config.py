"""Configuration settings for the web application."""

import os
from dataclasses import dataclass
from typing import Optional

from common.constants import (
    DEFAULT_GRANT_TTL_SECONDS,
    DEFAULT_MAX_UPLOAD_BYTES,
    DEFAULT_PREVIEW_MAX_BYTES,
    DEFAULT_TOKEN_TTL_SECONDS,
)


HOST = os.environ.get("SKYBOX_HOST", "0.0.0.0")

PORT = int(os.environ.get("SKYBOX_PORT", "8000"))

DATABASE_PATH = os.environ.get("SKYBOX_DATABASE_PATH", "./data/metadata.db")

METADATA_BACKENDS = ("sqlite", "dynamodb")
FOLDER_DELETE_POLICIES = ("reject", "cascade")
UPLOAD_CONFIRMATION_MODES = ("verify", "trust")


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_choice(name: str, default: str, choices: tuple) -> str:
    value = os.environ.get(name, default).strip().lower()
    if value not in choices:
        raise ValueError(f"{name} must be one of {', '.join(choices)}, got '{value}'")
    return value


@dataclass(frozen=True)
class Settings:
    """
    Runtime settings, resolved once at startup and handed to the container.
    """
    host: str = HOST
    port: int = PORT
    database_path: str = DATABASE_PATH
    metadata_backend: str = "sqlite"
    aws_region: str = "us-east-1"
    aws_endpoint_url: Optional[str] = None
    s3_bucket_name: str = "skybox-files"
    dynamodb_files_table: str = "skybox-files"
    dynamodb_users_table: str = "skybox-users"
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS
    grant_ttl_seconds: int = DEFAULT_GRANT_TTL_SECONDS
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    preview_max_bytes: int = DEFAULT_PREVIEW_MAX_BYTES
    folder_delete_policy: str = "reject"
    upload_confirmation_mode: str = "verify"
    cookie_secure: bool = True
    debug: bool = False

    def __post_init__(self):
        if self.metadata_backend not in METADATA_BACKENDS:
            raise ValueError(f"Unknown metadata backend: {self.metadata_backend}")
        if self.folder_delete_policy not in FOLDER_DELETE_POLICIES:
            raise ValueError(f"Unknown folder delete policy: {self.folder_delete_policy}")
        if self.upload_confirmation_mode not in UPLOAD_CONFIRMATION_MODES:
            raise ValueError(f"Unknown upload confirmation mode: {self.upload_confirmation_mode}")


def load_settings() -> Settings:
    """
    Build Settings from environment variables.

    Returns:
        Settings instance

    Raises:
        ValueError: If an enumerated setting has an unknown value
    """
    return Settings(
        host=HOST,
        port=PORT,
        database_path=DATABASE_PATH,
        metadata_backend=_env_choice("SKYBOX_METADATA_BACKEND", "sqlite", METADATA_BACKENDS),
        aws_region=os.environ.get("AWS_REGION", "us-east-1"),
        aws_endpoint_url=os.environ.get("AWS_ENDPOINT_URL") or None,
        s3_bucket_name=os.environ.get("S3_BUCKET_NAME", "skybox-files"),
        dynamodb_files_table=os.environ.get("DYNAMODB_FILES_TABLE", "skybox-files"),
        dynamodb_users_table=os.environ.get("DYNAMODB_USERS_TABLE", "skybox-users"),
        jwt_secret=os.environ.get("JWT_SECRET", "change-me-in-production"),
        jwt_algorithm=os.environ.get("JWT_ALGORITHM", "HS256"),
        token_ttl_seconds=int(os.environ.get("TOKEN_TTL_SECONDS", str(DEFAULT_TOKEN_TTL_SECONDS))),
        grant_ttl_seconds=int(os.environ.get("GRANT_TTL_SECONDS", str(DEFAULT_GRANT_TTL_SECONDS))),
        max_upload_bytes=int(os.environ.get("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES))),
        preview_max_bytes=int(os.environ.get("PREVIEW_MAX_BYTES", str(DEFAULT_PREVIEW_MAX_BYTES))),
        folder_delete_policy=_env_choice("FOLDER_DELETE_POLICY", "reject", FOLDER_DELETE_POLICIES),
        upload_confirmation_mode=_env_choice("UPLOAD_CONFIRMATION_MODE", "verify", UPLOAD_CONFIRMATION_MODES),
        cookie_secure=_env_flag("COOKIE_SECURE", "true"),
        debug=_env_flag("SKYBOX_DEBUG"),
    )
