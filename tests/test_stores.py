"""Target store adapter tests."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from stashmigrate.config.models import BlobStoreSettings, LegacySettings, MetadataStoreSettings
from stashmigrate.errors import ConfigError
from stashmigrate.migration.models import FullFileRecord, JoinFileRecord, NewAccount, NewAlbum
from stashmigrate.stores import (
    BlobPayload,
    BlobStore,
    JsonMetadataStore,
    LocalBlobStore,
    MetadataStore,
    get_blob_store,
    get_metadata_store,
)


def _full(file_id: str) -> FullFileRecord:
    return FullFileRecord(
        id=file_id,
        name=f"{file_id}.png",
        storage_key=f"{file_id}.png",
        size_bytes=3,
        mime_type="image/png",
        uploaded_by="alice",
        uploaded_at=1000,
        expires_at="Infinity",
        is_private=False,
    )


def _join(file_id: str, album_id: int) -> JoinFileRecord:
    return JoinFileRecord(
        album_id=album_id,
        id=file_id,
        name=f"{file_id}.png",
        storage_key=f"{file_id}.png",
        size_bytes=3,
        mime_type="image/png",
        uploaded_by="alice",
    )


def _album(album_id: int, first: str) -> NewAlbum:
    return NewAlbum(
        id=album_id,
        file_ids=[first],
        uploaded_by="alice",
        uploaded_at=1000,
        expires_at="Infinity",
        is_private=False,
    )


def test_json_store_persists_every_write(tmp_path: Path) -> None:
    path = tmp_path / "meta" / "store.json"
    store = JsonMetadataStore(path)

    store.create_account(NewAccount(id="acc-1", username="alice", password_hash="h"))
    store.add_file(_full("f1"))

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["accounts"][0]["username"] == "alice"
    assert data["files"][0]["kind"] == "full"
    assert data["files"][0]["expires_at"] == "Infinity"


def test_json_store_join_appends_to_album(tmp_path: Path) -> None:
    store = JsonMetadataStore(tmp_path / "store.json")
    store.add_file(_full("f1"))
    store.create_album(_album(7, "f1"))

    store.add_file(_join("f2", 7))

    assert store.document.albums[0]["file_ids"] == ["f1", "f2"]
    joined = store.document.files[1]
    assert joined["kind"] == "join"
    assert "uploaded_at" not in joined


def test_json_store_join_to_unknown_album_raises(tmp_path: Path) -> None:
    store = JsonMetadataStore(tmp_path / "store.json")

    with pytest.raises(KeyError):
        store.add_file(_join("f2", 99))


def test_json_store_reloads_existing_document(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    JsonMetadataStore(path).create_account(
        NewAccount(id="acc-1", username="alice", password_hash="h")
    )

    reopened = JsonMetadataStore(path)
    reopened.create_account(NewAccount(id="acc-2", username="alice", password_hash="h"))

    assert [account["id"] for account in reopened.document.accounts] == ["acc-1", "acc-2"]


def test_json_store_rejects_corrupt_document(tmp_path: Path) -> None:
    path = tmp_path / "store.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ValueError):
        JsonMetadataStore(path)


def test_local_store_writes_content_and_thumbnail(tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path / "blobs")
    store.create_container("alice")
    names = store.allocate_names("alice", "Photo.JPG")

    result = store.write(
        "alice",
        BlobPayload(key=names.content_key, stream=io.BytesIO(b"jpeg-bytes")),
        BlobPayload(key=names.thumbnail_key, stream=io.BytesIO(b"thumb")),
    )

    container = tmp_path / "blobs" / "alice"
    assert names.content_key.endswith(".jpg")
    assert names.thumbnail_key.endswith(".thumb.webp")
    assert result.size_bytes == len(b"jpeg-bytes")
    assert (container / names.content_key).read_bytes() == b"jpeg-bytes"
    assert (container / names.thumbnail_key).read_bytes() == b"thumb"
    assert not list(container.glob("*.tmp"))


def test_local_store_allocates_unique_names(tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path)
    store.create_container("alice")

    first = store.allocate_names("alice", "same.png")
    second = store.allocate_names("alice", "same.png")

    assert first.content_key != second.content_key


def test_local_store_requires_container(tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path)

    with pytest.raises(FileNotFoundError):
        store.write(
            "nobody",
            BlobPayload(key="a.png", stream=io.BytesIO(b"a")),
            BlobPayload(key="a.thumb.webp", stream=io.BytesIO(b"t")),
        )


def test_local_store_cleans_up_after_failed_copy(tmp_path: Path) -> None:
    class _BrokenStream(io.BytesIO):
        def read(self, *args: object) -> bytes:
            raise OSError("disk went away")

    store = LocalBlobStore(tmp_path)
    store.create_container("alice")

    with pytest.raises(OSError):
        store.write(
            "alice",
            BlobPayload(key="a.png", stream=io.BytesIO(b"a")),
            BlobPayload(key="a.thumb.webp", stream=_BrokenStream()),
        )

    assert list((tmp_path / "alice").iterdir()) == []


@pytest.mark.parametrize("username", ["", "..", "a/b"])
def test_local_store_rejects_unsafe_usernames(tmp_path: Path, username: str) -> None:
    with pytest.raises(ValueError):
        LocalBlobStore(tmp_path).create_container(username)


def test_registry_builds_configured_stores(tmp_path: Path) -> None:
    metadata = get_metadata_store(MetadataStoreSettings(path=str(tmp_path / "m.json")))
    blobs = get_blob_store(
        BlobStoreSettings(root=str(tmp_path / "b")),
        LegacySettings(thumbnail_extension="jpg"),
    )

    assert isinstance(metadata, MetadataStore)
    assert isinstance(blobs, BlobStore)
    assert isinstance(blobs, LocalBlobStore)
    assert blobs.thumbnail_extension == "jpg"


def test_registry_rejects_unknown_backends() -> None:
    with pytest.raises(ConfigError):
        get_metadata_store(MetadataStoreSettings(backend="postgres"))
    with pytest.raises(ConfigError):
        get_blob_store(BlobStoreSettings(backend="s3"), LegacySettings())


def test_json_store_failed_save_keeps_previous_document(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "store.json"
    store = JsonMetadataStore(path)
    store.create_account(NewAccount(id="acc-1", username="alice", password_hash="h"))

    def _refuse(self: Path, target: Path) -> Path:
        raise OSError("no space left on device")

    monkeypatch.setattr(Path, "replace", _refuse)
    with pytest.raises(OSError):
        store.add_file(_full("f1"))
    monkeypatch.undo()

    data = json.loads(path.read_text(encoding="utf-8"))
    assert [account["id"] for account in data["accounts"]] == ["acc-1"]
    assert data["files"] == []
    assert store.document.files == []
    assert not list(tmp_path.glob("*.tmp"))
