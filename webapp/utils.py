"""Utility helper functions for the web application."""

import re
import secrets
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from common.constants import FOLDER_MARKER_NAME, MAX_NAME_LENGTH, ROOT_FOLDER_SENTINEL
from webapp.exceptions import ValidationError


_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_. ]")
_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9.\-]")
_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_FILE_KEY_SUFFIX = re.compile(r"\d+-[0-9a-f]{8}-[a-zA-Z0-9._\-]+")


def generate_uuid() -> str:
    """
    Generate a new UUID4 string.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def sanitize_name(name: Optional[str]) -> str:
    """
    Make a user-supplied file or folder name safe to show and store.

    Characters outside letters, digits, dash, underscore, dot and space are
    replaced by '_'.

    Args:
        name: Raw name from the client

    Returns:
        Sanitized name

    Raises:
        ValidationError: If the name is empty, '.', '..' or too long
    """
    if name is None:
        raise ValidationError("Name is required")

    cleaned = _UNSAFE_NAME_CHARS.sub("_", name.strip())
    if not cleaned or cleaned in (".", ".."):
        raise ValidationError("Name must not be empty")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"Name must be at most {MAX_NAME_LENGTH} characters")
    return cleaned


def sanitize_key_component(name: str) -> str:
    return _UNSAFE_KEY_CHARS.sub("_", name)


def normalize_parent_id(parent_id: Optional[str]) -> Optional[str]:
    """
    Map every spelling of "top level" a client may send to None.

    Args:
        parent_id: Raw parent id ('root', '', None or a real id)

    Returns:
        The id, or None for the top level
    """
    if parent_id is None:
        return None
    parent_id = parent_id.strip()
    if not parent_id or parent_id == ROOT_FOLDER_SENTINEL:
        return None
    return parent_id


def normalize_email(email: Optional[str]) -> str:
    if not email:
        raise ValidationError("Email is required")
    normalized = email.strip().lower()
    if not _EMAIL_PATTERN.match(normalized):
        raise ValidationError("Invalid email address")
    return normalized


def owner_prefix(owner_id: str) -> str:
    return f"{owner_id}/"


def build_file_key(owner_id: str, file_name: str) -> str:
    """
    Build a collision-resistant storage key for file bytes.

    Format: {owner_id}/{unix_ms}-{token}-{sanitized_name}
    """
    token = secrets.token_hex(4)
    timestamp_ms = int(time.time() * 1000)
    return f"{owner_prefix(owner_id)}{timestamp_ms}-{token}-{sanitize_key_component(file_name)}"


def build_folder_prefix(parent_prefix: str, folder_name: str) -> str:
    """
    Build the key prefix a folder occupies under its parent's prefix.

    Format: {parent_prefix}{sanitized_name}-{token}/
    """
    token = secrets.token_hex(4)
    return f"{parent_prefix}{sanitize_key_component(folder_name)}-{token}/"


def folder_marker_key(prefix: str) -> str:
    return f"{prefix}{FOLDER_MARKER_NAME}"


def is_file_key(owner_id: str, storage_key: str) -> bool:
    """
    Check that a storage key has the shape build_file_key gives an owner's files.

    Folder prefixes and folder markers never match.
    """
    prefix = owner_prefix(owner_id)
    if not storage_key.startswith(prefix):
        return False
    return _FILE_KEY_SUFFIX.fullmatch(storage_key[len(prefix):]) is not None
