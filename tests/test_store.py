"""Tests for the content store and image index."""

import pytest

from imagediff.digest import calculate_digest, validate_digest, verify_digest
from imagediff.exceptions import BlobNotFoundError, DigestMismatchError
from imagediff.models import MEDIA_TYPE_OCI_MANIFEST, Descriptor
from imagediff.store import ImageIndex


def test_digest_helpers():
    digest = calculate_digest(b"hello")
    assert digest.startswith("sha256:")
    assert validate_digest(digest)
    assert verify_digest(b"hello", digest)
    assert not validate_digest("md5:abc")
    with pytest.raises(ValueError):
        calculate_digest("text")


@pytest.mark.asyncio
async def test_write_and_read_blob(store):
    digest = await store.write_blob(b"content")
    assert digest == calculate_digest(b"content")
    assert await store.exists(digest)
    assert await store.read_blob(digest) == b"content"
    assert await store.size(digest) == len(b"content")
    assert store.blob_path(digest).parent.name == "sha256"


@pytest.mark.asyncio
async def test_write_blob_digest_mismatch(store):
    with pytest.raises(DigestMismatchError):
        await store.write_blob(b"content", calculate_digest(b"other"))
    assert not await store.exists(calculate_digest(b"other"))


@pytest.mark.asyncio
async def test_write_stream_verifies_and_cleans_up(store):
    async def chunks():
        yield b"par"
        yield b"tial"

    with pytest.raises(DigestMismatchError):
        await store.write_stream(calculate_digest(b"something else"), chunks())
    assert list(store.ingest_dir.iterdir()) == []

    written = await store.write_stream(calculate_digest(b"partial"), chunks())
    assert written == len(b"partial")


@pytest.mark.asyncio
async def test_ingest_stream_computes_digest(store):
    async def chunks():
        yield b"stream"
        yield b"ed"

    digest, written = await store.ingest_stream(chunks())

    assert digest == calculate_digest(b"streamed")
    assert written == len(b"streamed")
    assert await store.read_blob(digest) == b"streamed"
    assert list(store.ingest_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_missing_blob(store):
    digest = calculate_digest(b"absent")
    assert not await store.exists(digest)
    with pytest.raises(BlobNotFoundError):
        await store.read_blob(digest)
    with pytest.raises(BlobNotFoundError):
        await store.size(digest)


@pytest.mark.asyncio
async def test_image_index_roundtrip(tmp_path):
    index = ImageIndex(tmp_path / "images.json")
    assert await index.get("docker.io/library/alpine:latest") is None
    desc = Descriptor(
        media_type=MEDIA_TYPE_OCI_MANIFEST,
        digest=calculate_digest(b"m"),
        size=1,
        annotations={"io.containerd.image.name": "alpine"},
    )
    await index.put("docker.io/library/alpine:latest", desc)
    assert await ImageIndex(tmp_path / "images.json").get("docker.io/library/alpine:latest") == desc
