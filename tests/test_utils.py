"""Tests for naming and key helpers."""

import re

import pytest

from webapp.exceptions import ValidationError
from webapp.utils import (
    build_file_key,
    build_folder_prefix,
    folder_marker_key,
    is_file_key,
    normalize_email,
    normalize_parent_id,
    sanitize_name,
)


class TestSanitizeName:
    def test_keeps_safe_characters(self):
        assert sanitize_name("Report 2024_v1.final-draft.pdf") == "Report 2024_v1.final-draft.pdf"

    def test_replaces_path_separators(self):
        assert sanitize_name("../etc/passwd") == ".._etc_passwd"
        assert sanitize_name("a\\b") == "a_b"

    def test_strips_surrounding_whitespace(self):
        assert sanitize_name("  notes.txt  ") == "notes.txt"

    @pytest.mark.parametrize("name", [None, "", "  ", ".", "..", "n" * 256])
    def test_rejects_unusable_names(self, name):
        with pytest.raises(ValidationError):
            sanitize_name(name)

    def test_accepts_max_length(self):
        assert sanitize_name("n" * 255) == "n" * 255


class TestNormalizeParentId:
    @pytest.mark.parametrize("value", [None, "", "  ", "root"])
    def test_top_level_spellings(self, value):
        assert normalize_parent_id(value) is None

    def test_real_id_kept(self):
        assert normalize_parent_id(" abc-123 ") == "abc-123"


class TestNormalizeEmail:
    def test_lowercases_and_strips(self):
        assert normalize_email("  Bob@Example.COM ") == "bob@example.com"

    @pytest.mark.parametrize("email", [None, "", "bob", "bob@", "@example.com", "bob@example"])
    def test_rejects_malformed(self, email):
        with pytest.raises(ValidationError):
            normalize_email(email)


class TestStorageKeys:
    def test_file_key_format(self):
        key = build_file_key("user-1", "my photo (1).jpg")
        assert re.fullmatch(r"user-1/\d{13}-[0-9a-f]{8}-my_photo__1_.jpg", key)

    def test_file_keys_are_unique(self):
        assert build_file_key("user-1", "a.txt") != build_file_key("user-1", "a.txt")

    def test_folder_prefix_nests_under_parent(self):
        prefix = build_folder_prefix("user-1/", "Photos")
        assert re.fullmatch(r"user-1/Photos-[0-9a-f]{8}/", prefix)

        child = build_folder_prefix(prefix, "2024")
        assert child.startswith(prefix)
        assert child.endswith("/")

    def test_folder_marker_key(self):
        assert folder_marker_key("user-1/Photos-0a1b2c3d/") == "user-1/Photos-0a1b2c3d/.folder"

    def test_is_file_key(self):
        assert is_file_key("user-1", build_file_key("user-1", "a.txt"))
        assert not is_file_key("user-2", build_file_key("user-1", "a.txt"))

    @pytest.mark.parametrize("key", [
        "user-1/Photos-0a1b2c3d/",
        "user-1/Photos-0a1b2c3d/.folder",
        "user-1/a.txt",
        "user-1/1700000000000-0a1b2c3d-a.txt/extra",
    ])
    def test_non_file_keys(self, key):
        assert not is_file_key("user-1", key)
