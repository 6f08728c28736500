"""Tests for sharing files between users, run against both metadata backends."""

from urllib.parse import unquote

import pytest

from webapp.domain import Node, NodeKind
from webapp.exceptions import (
    InvalidOperationError,
    NodeNotFoundError,
    PermissionDeniedError,
    UserNotFoundError,
)
from webapp.services.hierarchy_service import HierarchyService
from webapp.services.sharing_service import SharingService
from webapp.utils import generate_uuid, utc_now


@pytest.fixture
def sharing(node_repo, user_repo, blob_store, settings):
    return SharingService(node_repo, user_repo, blob_store, settings)


@pytest.fixture
def hierarchy(node_repo, blob_store):
    return HierarchyService(node_repo, blob_store)


@pytest.fixture
def alices_file(node_repo, alice):
    node = Node(
        id=generate_uuid(),
        name="notes.txt",
        owner_id=alice.user_id,
        parent_id=None,
        kind=NodeKind.FILE,
        size_bytes=11,
        content_type="text/plain",
        storage_key=f"{alice.user_id}/1700000000000-abcd1234-notes.txt",
        created_at=utc_now(),
    )
    return node_repo.create_node(node)


class TestShareFile:
    """Test granting access."""

    def test_share_with_registered_user(self, sharing, alices_file, alice, bob):
        shared_users = sharing.share_file(alices_file.id, alice.user_id, "bob@example.com")

        assert [(u.user_id, u.email) for u in shared_users] == [(bob.user_id, "bob@example.com")]

    def test_email_lookup_is_case_insensitive(self, sharing, alices_file, alice, bob):
        shared_users = sharing.share_file(alices_file.id, alice.user_id, "  Bob@Example.COM ")
        assert [u.user_id for u in shared_users] == [bob.user_id]

    def test_share_is_idempotent(self, sharing, node_repo, alices_file, alice, bob):
        first = sharing.share_file(alices_file.id, alice.user_id, bob.email)
        second = sharing.share_file(alices_file.id, alice.user_id, bob.email)

        assert first == second
        assert node_repo.get_node(alices_file.id).shared_with == frozenset({bob.user_id})

    def test_share_with_self_rejected(self, sharing, node_repo, alices_file, alice):
        with pytest.raises(InvalidOperationError):
            sharing.share_file(alices_file.id, alice.user_id, alice.email)
        assert node_repo.get_node(alices_file.id).shared_with == frozenset()

    def test_share_with_unknown_user(self, sharing, alices_file, alice):
        with pytest.raises(UserNotFoundError):
            sharing.share_file(alices_file.id, alice.user_id, "nobody@example.com")

    def test_share_missing_file(self, sharing, alice, bob):
        with pytest.raises(NodeNotFoundError):
            sharing.share_file("missing", alice.user_id, bob.email)

    def test_only_owner_can_share(self, sharing, node_repo, alices_file, bob, make_user):
        carol = make_user("carol@example.com")
        with pytest.raises(PermissionDeniedError):
            sharing.share_file(alices_file.id, bob.user_id, carol.email)
        assert node_repo.get_node(alices_file.id).shared_with == frozenset()

    def test_ownership_checked_before_target_lookup(self, sharing, alices_file, bob):
        with pytest.raises(PermissionDeniedError):
            sharing.share_file(alices_file.id, bob.user_id, "nobody@example.com")


class TestUnshareAndListing:
    """Test revoking access and shared views."""

    def test_unshare_is_idempotent(self, sharing, node_repo, alices_file, alice, bob):
        sharing.share_file(alices_file.id, alice.user_id, bob.email)

        assert sharing.unshare_file(alices_file.id, alice.user_id, bob.email) == []
        assert sharing.unshare_file(alices_file.id, alice.user_id, bob.email) == []
        assert node_repo.get_node(alices_file.id).shared_with == frozenset()

    def test_only_owner_can_unshare(self, sharing, alices_file, alice, bob):
        sharing.share_file(alices_file.id, alice.user_id, bob.email)
        with pytest.raises(PermissionDeniedError):
            sharing.unshare_file(alices_file.id, bob.user_id, bob.email)

    def test_list_shared_users_sorted_by_email(self, sharing, alices_file, alice, bob, make_user):
        carol = make_user("carol@example.com")
        sharing.share_file(alices_file.id, alice.user_id, carol.email)
        sharing.share_file(alices_file.id, alice.user_id, bob.email)

        emails = [u.email for u in sharing.list_shared_users(alices_file.id, alice.user_id)]
        assert emails == ["bob@example.com", "carol@example.com"]

    def test_list_shared_users_requires_owner(self, sharing, alices_file, bob):
        with pytest.raises(PermissionDeniedError):
            sharing.list_shared_users(alices_file.id, bob.user_id)

    def test_shared_with_me(self, sharing, alices_file, alice, bob):
        assert sharing.list_files_shared_with_me(bob.user_id) == []

        sharing.share_file(alices_file.id, alice.user_id, bob.email)

        shared = sharing.list_files_shared_with_me(bob.user_id)
        assert [node.id for node in shared] == [alices_file.id]
        assert sharing.list_files_shared_with_me(alice.user_id) == []


class TestPublicMetadata:
    def test_unshared_file_is_private(self, sharing, alices_file):
        with pytest.raises(PermissionDeniedError):
            sharing.get_public_metadata(alices_file.id)

    def test_shared_file_exposes_download_url(self, sharing, alices_file, alice, bob):
        sharing.share_file(alices_file.id, alice.user_id, bob.email)

        node, url = sharing.get_public_metadata(alices_file.id)

        assert node.id == alices_file.id
        assert alices_file.storage_key in unquote(url)
        assert "X-Amz-Signature" in url or "Signature" in url

    def test_missing_file(self, sharing):
        with pytest.raises(NodeNotFoundError):
            sharing.get_public_metadata("missing")


class TestScenarios:
    def test_share_then_owner_moves_file(self, sharing, hierarchy, alices_file, alice, bob):
        """Sharing follows the node, not its location."""
        folder = hierarchy.create_folder(alice.user_id, "Archive")
        sharing.share_file(alices_file.id, alice.user_id, bob.email)

        hierarchy.move_node(alices_file.id, alice.user_id, folder.id)

        shared = sharing.list_files_shared_with_me(bob.user_id)
        assert [node.id for node in shared] == [alices_file.id]
        assert shared[0].parent_id == folder.id
        assert hierarchy.get_node(alices_file.id, bob.user_id).id == alices_file.id
        with pytest.raises(PermissionDeniedError):
            hierarchy.rename_node(alices_file.id, bob.user_id, "mine.txt")
