"""Tests for storage/repository.py and storage/artifacts.py."""

import pytest
from sqlalchemy.exc import IntegrityError

from exceptions import ConflictError, FeatureUnavailableError, NotFoundError
from storage.artifacts import LocalArtifactStore
from storage.repository import DisabledStorage, NewCompression, SqlStorage, create_storage


@pytest.fixture
def storage():
    s = SqlStorage("sqlite://")
    s.init_schema()
    yield s
    s.close()


def _entry(user_id, filename, original=1000, compressed=400, fmt="webp"):
    return NewCompression(
        user_id=user_id,
        original_filename="in.png",
        compressed_filename=filename,
        original_size=original,
        compressed_size=compressed,
        compression_ratio=round((original - compressed) / original * 100, 2),
        format=fmt,
        quality=80,
        original_width=100,
        original_height=100,
        compressed_width=50,
        compressed_height=50,
        download_url=f"/uploads/{filename}",
    )


# --- Users ---


def test_create_and_fetch_user(storage):
    user = storage.create_user("dave", "dave@example.com", "hash")
    assert user.id is not None
    assert user.role == "user"
    assert storage.get_user(user.id).email == "dave@example.com"
    assert storage.get_user_by_email("dave@example.com").id == user.id
    assert storage.get_user(9999) is None


def test_duplicate_user_is_conflict(storage):
    storage.create_user("dave", "dave@example.com", "hash")
    with pytest.raises(ConflictError):
        storage.create_user("dave", "other@example.com", "hash")
    assert storage.find_conflicting_user("x", "dave@example.com") is not None
    assert storage.find_conflicting_user("x", "y@example.com") is None


def test_update_username(storage):
    a = storage.create_user("dave", "dave@example.com", "hash")
    storage.create_user("erin", "erin@example.com", "hash")
    assert storage.update_username(a.id, "david").username == "david"
    with pytest.raises(ConflictError):
        storage.update_username(a.id, "erin")
    with pytest.raises(NotFoundError):
        storage.update_username(9999, "ghost")


# --- Compression history ---


def test_add_compression_bumps_counters(storage):
    user = storage.create_user("dave", "dave@example.com", "hash")
    storage.add_compression(_entry(user.id, "a.webp", 1000, 400))
    storage.add_compression(_entry(user.id, "b.webp", 1000, 1100))

    refreshed = storage.get_user(user.id)
    assert refreshed.total_compressions == 2
    assert refreshed.total_size_saved == 600 - 100


def test_failed_insert_leaves_counters_untouched(storage):
    user = storage.create_user("dave", "dave@example.com", "hash")
    storage.add_compression(_entry(user.id, "same.webp"))
    with pytest.raises(IntegrityError):
        storage.add_compression(_entry(user.id, "same.webp"))
    assert storage.get_user(user.id).total_compressions == 1


def test_list_compressions_sort_and_page(storage):
    user = storage.create_user("dave", "dave@example.com", "hash")
    for i, size in enumerate([300, 100, 200]):
        storage.add_compression(_entry(user.id, f"{i}.webp", original=size, compressed=50))

    items, total = storage.list_compressions(user.id, "originalSize", False, 0, 2)
    assert total == 3
    assert [r.original_size for r in items] == [100, 200]
    items, _ = storage.list_compressions(user.id, "originalSize", True, 2, 2)
    assert [r.original_size for r in items] == [100]


def test_compression_totals(storage):
    user = storage.create_user("dave", "dave@example.com", "hash")
    storage.add_compression(_entry(user.id, "a.webp", 1000, 500, "webp"))
    storage.add_compression(_entry(user.id, "b.png", 1000, 900, "png"))

    totals = storage.compression_totals(user.id)
    assert totals["total_compressions"] == 2
    assert totals["total_original_size"] == 2000
    assert totals["total_compressed_size"] == 1400
    assert totals["avg_compression_ratio"] == pytest.approx(30.0)
    assert totals["formats"] == ["png", "webp"]


def test_delete_compression_scoped_to_owner(storage):
    owner = storage.create_user("dave", "dave@example.com", "hash")
    other = storage.create_user("erin", "erin@example.com", "hash")
    record = storage.add_compression(_entry(owner.id, "a.webp"))

    assert storage.delete_compression(other.id, record.id) is None
    deleted = storage.delete_compression(owner.id, record.id)
    assert deleted.compressed_filename == "a.webp"
    assert storage.find_by_filename("a.webp") is None
    assert storage.get_user(owner.id).total_compressions == 1


def test_admin_totals(storage):
    user = storage.create_user("dave", "dave@example.com", "hash")
    storage.create_user("erin", "erin@example.com", "hash")
    storage.add_compression(_entry(user.id, "a.webp", 1000, 300))

    assert storage.admin_totals() == {
        "total_users": 2,
        "total_compressions": 1,
        "total_storage_used": 300,
        "total_space_saved": 700,
    }


def test_ping(storage):
    assert storage.ping() is True


# --- Disabled storage ---


def test_create_storage_without_url_is_disabled():
    storage = create_storage("")
    assert isinstance(storage, DisabledStorage)
    assert storage.available is False
    assert storage.ping() is False
    with pytest.raises(FeatureUnavailableError):
        storage.get_user(1)


# --- LocalArtifactStore ---


@pytest.mark.asyncio
async def test_artifact_save_and_delete(tmp_path):
    store = LocalArtifactStore(str(tmp_path / "uploads"))
    filename = await store.save(b"bytes", "webp")

    assert filename.endswith(".webp")
    assert store.url_for(filename) == f"/uploads/{filename}"
    assert await store.exists(filename)
    assert await store.delete(filename) is True
    assert await store.delete(filename) is False
    assert not await store.exists(filename)


@pytest.mark.parametrize("name", ["", ".", "..", "../secret", "a/b.webp"])
def test_artifact_path_escape_rejected(tmp_path, name):
    store = LocalArtifactStore(str(tmp_path))
    assert store.path_for(name) is None


def test_artifact_filenames_unique():
    names = {LocalArtifactStore.new_filename("png") for _ in range(100)}
    assert len(names) == 100
