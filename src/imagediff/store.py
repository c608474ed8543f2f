"""Local content-addressable store and image name index."""

import json
import os
import uuid
from pathlib import Path
from typing import AsyncIterator, Optional

import aiofiles
import aiofiles.os

from .digest import calculate_digest, new_hasher, split_digest, verify_digest
from .exceptions import BlobNotFoundError, DigestMismatchError
from .models import Descriptor


class ContentStore:
    """Blobs stored by digest under ``<root>/blobs/<algorithm>/<hex>``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.blobs_dir = self.root / "blobs"
        self.ingest_dir = self.root / "ingest"

    def blob_path(self, digest: str) -> Path:
        algorithm, encoded = split_digest(digest)
        return self.blobs_dir / algorithm / encoded

    async def exists(self, digest: str) -> bool:
        return await aiofiles.os.path.isfile(self.blob_path(digest))

    async def size(self, digest: str) -> int:
        """Return the stored size of a blob.

        Raises:
            BlobNotFoundError: If the blob is not in the store
        """
        try:
            stat = await aiofiles.os.stat(self.blob_path(digest))
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"content {digest} not found") from e
        return stat.st_size

    async def read_blob(self, digest: str) -> bytes:
        """Read a whole blob into memory.

        Raises:
            BlobNotFoundError: If the blob is not in the store
        """
        try:
            async with aiofiles.open(self.blob_path(digest), "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise BlobNotFoundError(f"content {digest} not found") from e

    async def read_json(self, digest: str) -> dict:
        return json.loads(await self.read_blob(digest))

    async def write_blob(self, data: bytes, expected_digest: Optional[str] = None) -> str:
        """Write a blob and return its digest.

        Raises:
            DigestMismatchError: If data does not match ``expected_digest``
        """
        if expected_digest and not verify_digest(data, expected_digest):
            raise DigestMismatchError(
                f"expected {expected_digest}, got "
                f"{calculate_digest(data, split_digest(expected_digest)[0])}"
            )
        digest = expected_digest or calculate_digest(data)

        async def chunks() -> AsyncIterator[bytes]:
            yield data

        await self.write_stream(digest, chunks())
        return digest

    async def write_stream(self, digest: str, chunks: AsyncIterator[bytes]) -> int:
        """Stream a blob into the store, verifying it against ``digest``.

        Returns:
            Number of bytes written

        Raises:
            DigestMismatchError: If the streamed content does not match
        """
        _, written = await self._ingest(chunks, split_digest(digest)[0], digest)
        return written

    async def ingest_stream(
        self, chunks: AsyncIterator[bytes], algorithm: str = "sha256"
    ) -> tuple[str, int]:
        """Stream a blob of unknown digest into the store.

        Returns:
            The computed digest and the number of bytes written
        """
        return await self._ingest(chunks, algorithm, None)

    async def _ingest(
        self, chunks: AsyncIterator[bytes], algorithm: str, expected: Optional[str]
    ) -> tuple[str, int]:
        hasher = new_hasher(algorithm)
        await aiofiles.os.makedirs(self.ingest_dir, exist_ok=True)
        tmp_path = self.ingest_dir / uuid.uuid4().hex
        written = 0
        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                async for chunk in chunks:
                    hasher.update(chunk)
                    written += len(chunk)
                    await f.write(chunk)
            actual = f"{algorithm}:{hasher.hexdigest()}"
            if expected is not None and actual != expected:
                raise DigestMismatchError(f"expected {expected}, got {actual}")
            target = self.blob_path(actual)
            await aiofiles.os.makedirs(target.parent, exist_ok=True)
            await aiofiles.os.replace(tmp_path, target)
        finally:
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
        return actual, written


class ImageIndex:
    """Maps image names to root descriptors, persisted as JSON."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    async def _load(self) -> dict:
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                return json.loads(await f.read())
        except FileNotFoundError:
            return {}

    async def get(self, name: str) -> Optional[Descriptor]:
        entry = (await self._load()).get(name)
        return Descriptor.from_dict(entry) if entry else None

    async def put(self, name: str, descriptor: Descriptor) -> None:
        images = await self._load()
        images[name] = descriptor.to_dict()
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        tmp_path = f"{self.path}.{os.getpid()}.tmp"
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(images, indent=2, sort_keys=True))
        await aiofiles.os.replace(tmp_path, self.path)
