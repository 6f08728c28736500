"""Project-wide constants (sentinels, content types, default limits)."""

ROOT_FOLDER_SENTINEL: str = "root"

FOLDER_CONTENT_TYPE: str = "application/x-directory"
FOLDER_MARKER_NAME: str = ".folder"
DEFAULT_CONTENT_TYPE: str = "application/octet-stream"

MAX_NAME_LENGTH: int = 255

DEFAULT_GRANT_TTL_SECONDS: int = 3600
DEFAULT_TOKEN_TTL_SECONDS: int = 24 * 60 * 60
DEFAULT_MAX_UPLOAD_BYTES: int = 50 * 1024 * 1024  # 50 MiB, matches the web client limit
DEFAULT_PREVIEW_MAX_BYTES: int = 1024 * 1024

MIN_PASSWORD_LENGTH: int = 8
