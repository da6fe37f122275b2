"""Tests for the encrypted local blob store."""

import re
import uuid

import pytest

from psyrecord.errors import StorageError
from psyrecord.services.storage import build_document_path


def test_store_fetch_delete(blob_store):
    blob_store.store("u/s/1-0.pdf", b"%PDF-1.4 signed consent")

    on_disk = (blob_store.root / "u/s/1-0.pdf").read_bytes()
    assert b"signed consent" not in on_disk
    assert blob_store.fetch("u/s/1-0.pdf") == b"%PDF-1.4 signed consent"

    blob_store.delete("u/s/1-0.pdf")
    with pytest.raises(StorageError):
        blob_store.fetch("u/s/1-0.pdf")


def test_existing_object_not_overwritten(blob_store):
    blob_store.store("u/s/a.txt", b"first")
    with pytest.raises(StorageError):
        blob_store.store("u/s/a.txt", b"second")
    assert blob_store.fetch("u/s/a.txt") == b"first"


@pytest.mark.parametrize("path", ["../outside.txt", "u/../../outside.txt", ""])
def test_paths_outside_root_rejected(blob_store, path):
    with pytest.raises(StorageError):
        blob_store.store(path, b"x")


def test_delete_missing_object_is_quiet(blob_store):
    blob_store.delete("u/s/never-stored.pdf")


def test_document_path_is_namespaced():
    user_id, session_id = uuid.uuid4(), uuid.uuid4()
    path = build_document_path(user_id, session_id, "Consent Form.PDF", index=2)
    assert re.fullmatch(rf"{user_id}/{session_id}/\d+-2\.pdf", path)


def test_document_path_without_extension():
    path = build_document_path(uuid.uuid4(), uuid.uuid4(), "scan")
    assert path.endswith("-0.bin")


def test_document_path_extension_is_ascii():
    path = build_document_path(uuid.uuid4(), uuid.uuid4(), "laudo.pdfé")
    assert path.endswith("-0.pdf")
