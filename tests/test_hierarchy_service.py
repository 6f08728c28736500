"""Tests for folder/file hierarchy operations, run against both metadata backends."""

import pytest

from webapp.domain import Node, NodeKind
from webapp.exceptions import (
    ConflictError,
    FolderNotEmptyError,
    HierarchyCorruptionError,
    InvalidDestinationError,
    NodeNotFoundError,
    PermissionDeniedError,
    StoreUnavailableError,
    ValidationError,
)
from webapp.services.hierarchy_service import HierarchyService
from webapp.utils import folder_marker_key, generate_uuid, utc_now


@pytest.fixture
def hierarchy(node_repo, blob_store):
    return HierarchyService(node_repo, blob_store, "reject")


@pytest.fixture
def cascading_hierarchy(node_repo, blob_store):
    return HierarchyService(node_repo, blob_store, "cascade")


def add_file(node_repo, blob_store, owner_id, name, parent_id=None):
    node = Node(
        id=generate_uuid(),
        name=name,
        owner_id=owner_id,
        parent_id=parent_id,
        kind=NodeKind.FILE,
        size_bytes=5,
        content_type="text/plain",
        storage_key=f"{owner_id}/{generate_uuid()}-{name}",
        created_at=utc_now(),
    )
    blob_store.put_object(node.storage_key, b"hello", "text/plain")
    return node_repo.create_node(node)


def object_exists(s3_client, key):
    response = s3_client.list_objects_v2(Bucket="skybox-test-bucket", Prefix=key)
    return any(obj["Key"] == key for obj in response.get("Contents", []))


class TestCreateFolder:
    """Test folder creation and listing."""

    def test_create_top_level_folder(self, hierarchy, alice, s3_client):
        folder = hierarchy.create_folder(alice.user_id, "Photos")

        assert folder.is_folder
        assert folder.parent_id is None
        assert folder.size_bytes == 0
        assert folder.storage_key.startswith(f"{alice.user_id}/Photos-")
        assert folder.storage_key.endswith("/")
        assert object_exists(s3_client, folder_marker_key(folder.storage_key))

    def test_nested_folder_prefix_extends_parent(self, hierarchy, alice):
        parent = hierarchy.create_folder(alice.user_id, "Photos")
        child = hierarchy.create_folder(alice.user_id, "2024", parent.id)

        assert child.parent_id == parent.id
        assert child.storage_key.startswith(parent.storage_key)

    def test_created_folder_is_listed(self, hierarchy, alice):
        folder = hierarchy.create_folder(alice.user_id, "Docs")

        listing = hierarchy.list_children(alice.user_id)
        assert [f.name for f in listing.folders] == ["Docs"]
        assert listing.folders[0].id == folder.id
        assert listing.files == []

    def test_name_is_sanitized(self, hierarchy, alice):
        folder = hierarchy.create_folder(alice.user_id, "a/b:c")
        assert folder.name == "a_b_c"

    @pytest.mark.parametrize("name", ["", "   ", ".", "..", "x" * 256])
    def test_invalid_names_rejected(self, hierarchy, alice, name):
        with pytest.raises(ValidationError):
            hierarchy.create_folder(alice.user_id, name)

    def test_marker_removed_when_metadata_fails(self, hierarchy, node_repo, s3_client, alice, monkeypatch):
        created = []

        def failing_create(node):
            created.append(node)
            raise ConflictError("duplicate")

        monkeypatch.setattr(node_repo, "create_node", failing_create)

        with pytest.raises(ConflictError):
            hierarchy.create_folder(alice.user_id, "Photos")

        assert len(created) == 1
        assert not object_exists(s3_client, folder_marker_key(created[0].storage_key))

    def test_parent_must_be_own_folder(self, hierarchy, node_repo, blob_store, alice, bob):
        bobs_folder = hierarchy.create_folder(bob.user_id, "Bob")
        alices_file = add_file(node_repo, blob_store, alice.user_id, "a.txt")

        with pytest.raises(NodeNotFoundError):
            hierarchy.create_folder(alice.user_id, "x", bobs_folder.id)
        with pytest.raises(NodeNotFoundError):
            hierarchy.create_folder(alice.user_id, "x", alices_file.id)
        with pytest.raises(NodeNotFoundError):
            hierarchy.create_folder(alice.user_id, "x", "missing")


class TestListChildren:
    """Test one-level listings."""

    def test_partitions_by_kind_and_scopes_to_owner(self, hierarchy, node_repo, blob_store, alice, bob):
        docs = hierarchy.create_folder(alice.user_id, "Docs")
        add_file(node_repo, blob_store, alice.user_id, "b.txt", docs.id)
        add_file(node_repo, blob_store, alice.user_id, "a.txt", docs.id)
        hierarchy.create_folder(alice.user_id, "Nested", docs.id)
        add_file(node_repo, blob_store, bob.user_id, "bob.txt")

        listing = hierarchy.list_children(alice.user_id, docs.id)
        assert [f.name for f in listing.folders] == ["Nested"]
        assert [f.name for f in listing.files] == ["a.txt", "b.txt"]

        top = hierarchy.list_children(alice.user_id)
        assert [f.name for f in top.folders] == ["Docs"]
        assert top.files == []

    def test_shared_items_not_listed(self, hierarchy, node_repo, blob_store, alice, bob):
        bobs_file = add_file(node_repo, blob_store, bob.user_id, "bob.txt")
        node_repo.add_share(bobs_file.id, bob.user_id, alice.user_id)

        listing = hierarchy.list_children(alice.user_id)
        assert listing.files == []

    def test_foreign_parent_is_not_found(self, hierarchy, alice, bob):
        bobs_folder = hierarchy.create_folder(bob.user_id, "Bob")
        with pytest.raises(NodeNotFoundError):
            hierarchy.list_children(alice.user_id, bobs_folder.id)


class TestGetAndPath:
    """Test node lookup and breadcrumbs."""

    def test_owner_and_sharee_can_read(self, hierarchy, node_repo, blob_store, alice, bob, make_user):
        carol = make_user("carol@example.com")
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt")
        node_repo.add_share(node.id, alice.user_id, bob.user_id)

        assert hierarchy.get_node(node.id, alice.user_id).id == node.id
        assert hierarchy.get_node(node.id, bob.user_id).id == node.id
        with pytest.raises(PermissionDeniedError):
            hierarchy.get_node(node.id, carol.user_id)
        with pytest.raises(NodeNotFoundError):
            hierarchy.get_node("missing", alice.user_id)

    def test_get_folder_rejects_files(self, hierarchy, node_repo, blob_store, alice):
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt")
        with pytest.raises(NodeNotFoundError):
            hierarchy.get_folder(node.id, alice.user_id)

    def test_folder_path(self, hierarchy, alice):
        a = hierarchy.create_folder(alice.user_id, "A")
        b = hierarchy.create_folder(alice.user_id, "B", a.id)
        c = hierarchy.create_folder(alice.user_id, "C", b.id)

        assert [f.id for f in hierarchy.folder_path(c.id, alice.user_id)] == [a.id, b.id, c.id]
        assert [f.id for f in hierarchy.folder_path(a.id, alice.user_id)] == [a.id]


class TestRename:
    def test_rename_keeps_storage_key(self, hierarchy, node_repo, blob_store, alice):
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt")

        renamed = hierarchy.rename_node(node.id, alice.user_id, "b.txt")
        assert renamed.name == "b.txt"
        assert renamed.storage_key == node.storage_key

    def test_non_owner_cannot_rename(self, hierarchy, node_repo, blob_store, alice, bob):
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt")
        node_repo.add_share(node.id, alice.user_id, bob.user_id)

        with pytest.raises(PermissionDeniedError):
            hierarchy.rename_node(node.id, bob.user_id, "stolen.txt")
        assert node_repo.get_node(node.id).name == "a.txt"

    def test_rename_missing_node(self, hierarchy, alice):
        with pytest.raises(NodeNotFoundError):
            hierarchy.rename_node("missing", alice.user_id, "x")


class TestMove:
    """Test moves and cycle prevention."""

    def test_move_file_into_folder_and_back(self, hierarchy, node_repo, blob_store, alice):
        folder = hierarchy.create_folder(alice.user_id, "Docs")
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt")

        moved = hierarchy.move_node(node.id, alice.user_id, folder.id)
        assert moved.parent_id == folder.id
        assert [f.name for f in hierarchy.list_children(alice.user_id, folder.id).files] == ["a.txt"]

        back = hierarchy.move_node(node.id, alice.user_id, None)
        assert back.parent_id is None

    def test_move_to_current_parent_is_noop(self, hierarchy, alice):
        folder = hierarchy.create_folder(alice.user_id, "Docs")
        child = hierarchy.create_folder(alice.user_id, "Child", folder.id)

        assert hierarchy.move_node(child.id, alice.user_id, folder.id) == child

    def test_move_into_descendant_rejected(self, hierarchy, node_repo, alice):
        a = hierarchy.create_folder(alice.user_id, "A")
        b = hierarchy.create_folder(alice.user_id, "B", a.id)
        c = hierarchy.create_folder(alice.user_id, "C", b.id)

        with pytest.raises(InvalidDestinationError):
            hierarchy.move_node(a.id, alice.user_id, c.id)
        assert node_repo.get_node(a.id).parent_id is None

    def test_move_into_itself_rejected(self, hierarchy, alice):
        a = hierarchy.create_folder(alice.user_id, "A")
        with pytest.raises(InvalidDestinationError):
            hierarchy.move_node(a.id, alice.user_id, a.id)

    def test_invalid_destinations(self, hierarchy, node_repo, blob_store, alice, bob):
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt")
        other_file = add_file(node_repo, blob_store, alice.user_id, "b.txt")
        bobs_folder = hierarchy.create_folder(bob.user_id, "Bob")

        with pytest.raises(InvalidDestinationError):
            hierarchy.move_node(node.id, alice.user_id, "missing")
        with pytest.raises(InvalidDestinationError):
            hierarchy.move_node(node.id, alice.user_id, other_file.id)
        with pytest.raises(InvalidDestinationError):
            hierarchy.move_node(node.id, alice.user_id, bobs_folder.id)

    def test_non_owner_cannot_move(self, hierarchy, node_repo, blob_store, alice, bob):
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt")
        bobs_folder = hierarchy.create_folder(bob.user_id, "Bob")

        with pytest.raises(PermissionDeniedError):
            hierarchy.move_node(node.id, bob.user_id, bobs_folder.id)
        assert node_repo.get_node(node.id).parent_id is None

    def test_tree_stays_acyclic_after_many_moves(self, hierarchy, node_repo, alice):
        folders = [hierarchy.create_folder(alice.user_id, f"F{i}") for i in range(5)]
        attempts = [(0, 1), (1, 2), (2, 3), (3, 0), (4, 3), (0, 4), (2, None), (3, 2)]
        for source, destination in attempts:
            destination_id = folders[destination].id if destination is not None else None
            try:
                hierarchy.move_node(folders[source].id, alice.user_id, destination_id)
            except InvalidDestinationError:
                pass

        for folder in folders:
            seen = set()
            current = node_repo.get_node(folder.id)
            while current.parent_id is not None:
                assert current.id not in seen
                seen.add(current.id)
                current = node_repo.get_node(current.parent_id)

    def test_corrupted_parent_chain_detected(self, hierarchy, node_repo, alice):
        a = hierarchy.create_folder(alice.user_id, "A")
        b = hierarchy.create_folder(alice.user_id, "B", a.id)
        node = hierarchy.create_folder(alice.user_id, "X")
        # Force a loop behind the service's back.
        node_repo.set_parent(a.id, b.id)

        with pytest.raises(HierarchyCorruptionError):
            hierarchy.move_node(node.id, alice.user_id, b.id)


class TestDelete:
    """Test deletion under both folder policies."""

    def test_delete_file_removes_blob(self, hierarchy, node_repo, blob_store, s3_client, alice):
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt")

        assert hierarchy.delete_node(node.id, alice.user_id) == [node.id]
        assert node_repo.get_node(node.id) is None
        assert not object_exists(s3_client, node.storage_key)

    def test_delete_twice_is_not_found(self, hierarchy, node_repo, blob_store, alice):
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt")
        hierarchy.delete_node(node.id, alice.user_id)

        with pytest.raises(NodeNotFoundError):
            hierarchy.delete_node(node.id, alice.user_id)

    def test_non_owner_cannot_delete(self, hierarchy, node_repo, blob_store, alice, bob):
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt")
        node_repo.add_share(node.id, alice.user_id, bob.user_id)

        with pytest.raises(PermissionDeniedError):
            hierarchy.delete_node(node.id, bob.user_id)
        assert node_repo.get_node(node.id) is not None

    def test_empty_folder_deleted_with_marker(self, hierarchy, node_repo, s3_client, alice):
        folder = hierarchy.create_folder(alice.user_id, "Empty")

        assert hierarchy.delete_node(folder.id, alice.user_id) == [folder.id]
        assert node_repo.get_node(folder.id) is None
        assert not object_exists(s3_client, folder_marker_key(folder.storage_key))

    def test_reject_policy_keeps_non_empty_folder(self, hierarchy, node_repo, blob_store, alice):
        folder = hierarchy.create_folder(alice.user_id, "Docs")
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt", folder.id)

        with pytest.raises(FolderNotEmptyError):
            hierarchy.delete_node(folder.id, alice.user_id)
        assert node_repo.get_node(folder.id) is not None
        assert node_repo.get_node(node.id) is not None

    def test_cascade_policy_deletes_subtree(
        self, cascading_hierarchy, node_repo, blob_store, s3_client, alice
    ):
        top = cascading_hierarchy.create_folder(alice.user_id, "Top")
        inner = cascading_hierarchy.create_folder(alice.user_id, "Inner", top.id)
        deep_file = add_file(node_repo, blob_store, alice.user_id, "deep.txt", inner.id)
        top_file = add_file(node_repo, blob_store, alice.user_id, "top.txt", top.id)

        deleted = cascading_hierarchy.delete_node(top.id, alice.user_id)

        assert set(deleted) == {top.id, inner.id, deep_file.id, top_file.id}
        assert deleted[-1] == top.id
        assert deleted.index(deep_file.id) < deleted.index(inner.id)
        assert node_repo.count_nodes(alice.user_id) == 0
        assert not object_exists(s3_client, deep_file.storage_key)
        assert not object_exists(s3_client, folder_marker_key(inner.storage_key))

    def test_blob_failure_does_not_restore_record(self, hierarchy, node_repo, blob_store, alice, monkeypatch):
        node = add_file(node_repo, blob_store, alice.user_id, "a.txt")

        def broken_delete(key):
            raise StoreUnavailableError("down")

        monkeypatch.setattr(blob_store, "delete_object", broken_delete)

        assert hierarchy.delete_node(node.id, alice.user_id) == [node.id]
        assert node_repo.get_node(node.id) is None


class TestScenarios:
    """End-to-end hierarchy scenarios."""

    def test_nested_folder_cycle_rejected(self, hierarchy, node_repo, alice):
        """A -> B -> C; moving A under C fails and the tree is unchanged."""
        a = hierarchy.create_folder(alice.user_id, "A")
        b = hierarchy.create_folder(alice.user_id, "B", a.id)
        c = hierarchy.create_folder(alice.user_id, "C", b.id)

        with pytest.raises(InvalidDestinationError):
            hierarchy.move_node(a.id, alice.user_id, c.id)

        assert node_repo.get_node(a.id).parent_id is None
        assert node_repo.get_node(b.id).parent_id == a.id
        assert node_repo.get_node(c.id).parent_id == b.id

    def test_foreign_destination_rejected(self, hierarchy, node_repo, blob_store, alice, bob):
        """Bob cannot move his file into Alice's folder."""
        alices_folder = hierarchy.create_folder(alice.user_id, "Alice")
        bobs_file = add_file(node_repo, blob_store, bob.user_id, "bob.txt")

        with pytest.raises(InvalidDestinationError):
            hierarchy.move_node(bobs_file.id, bob.user_id, alices_folder.id)
        assert node_repo.get_node(bobs_file.id).parent_id is None

    def test_delete_then_list(self, hierarchy, node_repo, blob_store, alice):
        folder = hierarchy.create_folder(alice.user_id, "Docs")
        keep = add_file(node_repo, blob_store, alice.user_id, "keep.txt", folder.id)
        drop = add_file(node_repo, blob_store, alice.user_id, "drop.txt", folder.id)

        hierarchy.delete_node(drop.id, alice.user_id)

        listing = hierarchy.list_children(alice.user_id, folder.id)
        assert [f.id for f in listing.files] == [keep.id]
