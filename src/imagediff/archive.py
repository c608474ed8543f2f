"""Import of ``docker save`` tar archives into the content store."""

import asyncio
import json
import logging
import tarfile
from pathlib import Path
from typing import IO, Any, AsyncIterator, Dict, List, Optional

from .exceptions import TarReadError
from .models import (
    MEDIA_TYPE_DOCKER_CONFIG,
    MEDIA_TYPE_DOCKER_LAYER,
    MEDIA_TYPE_DOCKER_LAYER_GZIP,
    MEDIA_TYPE_DOCKER_MANIFEST,
    Descriptor,
)
from .store import ContentStore

logger = logging.getLogger(__name__)

IMAGE_NAME_ANNOTATION = "io.containerd.image.name"

_GZIP_MAGIC = b"\x1f\x8b"


class DockerArchiveReader:
    """Async reader for Docker save tar files."""

    def __init__(self, tar_path: str) -> None:
        """Initialize tar reader.

        Args:
            tar_path: Path to the tar file
        """
        self.tar_path = Path(tar_path)
        if not self.tar_path.exists():
            raise TarReadError(f"Tar file not found: {tar_path}")
        self._tar_file: Optional[tarfile.TarFile] = None

    async def __aenter__(self) -> "DockerArchiveReader":
        """Enter async context manager."""
        loop = asyncio.get_running_loop()
        try:
            self._tar_file = await loop.run_in_executor(
                None, tarfile.open, str(self.tar_path), "r"
            )
        except (tarfile.TarError, OSError) as e:
            raise TarReadError(f"Failed to open {self.tar_path}: {e}") from e
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the tar file."""
        if self._tar_file:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._tar_file.close)
            self._tar_file = None

    async def read_file(self, filename: str) -> bytes:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._extract_file_content, filename)

    async def get_layer_stream(
        self, layer_path: str, chunk_size: int = 1024 * 1024
    ) -> AsyncIterator[bytes]:
        """Get layer data as an async stream.

        Yields:
            Chunks of layer data

        Raises:
            TarReadError: If layer cannot be read
        """
        loop = asyncio.get_running_loop()
        layer_file = await loop.run_in_executor(None, self._open_member, layer_path)
        try:
            while True:
                try:
                    chunk = await loop.run_in_executor(None, layer_file.read, chunk_size)
                except (tarfile.TarError, OSError) as e:
                    raise TarReadError(f"Failed to read layer {layer_path}: {e}") from e
                if not chunk:
                    break
                yield chunk
        finally:
            await loop.run_in_executor(None, layer_file.close)

    async def get_manifest(self) -> List[Dict[str, Any]]:
        """Get the manifest.json from the tar file.

        Raises:
            TarReadError: If manifest cannot be read
        """
        try:
            manifest = json.loads(await self.read_file("manifest.json"))
        except ValueError as e:
            raise TarReadError(f"Failed to parse manifest.json: {e}") from e
        if not isinstance(manifest, list) or not manifest:
            raise TarReadError("Empty manifest")
        return manifest

    async def import_into(self, store: ContentStore) -> Descriptor:
        """Copy the first image of the archive into the store.

        The config and layers are stored as-is and an image manifest is
        synthesized for them.

        Returns:
            Descriptor of the synthesized manifest

        Raises:
            TarReadError: If the archive is incomplete
        """
        entry = (await self.get_manifest())[0]
        try:
            config_path = entry["Config"]
            layer_paths = entry["Layers"]
        except KeyError as e:
            raise TarReadError(f"manifest.json entry lacks {e}") from e

        config_data = await self.read_file(config_path)
        config_digest = await store.write_blob(config_data)
        try:
            config = json.loads(config_data)
        except ValueError as e:
            raise TarReadError(f"Failed to parse {config_path}: {e}") from e

        layers = []
        for layer_path in layer_paths:
            head = bytearray()
            layer_digest, layer_size = await store.ingest_stream(
                _record_head(self.get_layer_stream(layer_path), head)
            )
            media_type = (
                MEDIA_TYPE_DOCKER_LAYER_GZIP
                if bytes(head) == _GZIP_MAGIC
                else MEDIA_TYPE_DOCKER_LAYER
            )
            layers.append(
                {"mediaType": media_type, "size": layer_size, "digest": layer_digest}
            )

        manifest = {
            "schemaVersion": 2,
            "mediaType": MEDIA_TYPE_DOCKER_MANIFEST,
            "config": {
                "mediaType": MEDIA_TYPE_DOCKER_CONFIG,
                "size": len(config_data),
                "digest": config_digest,
            },
            "layers": layers,
        }
        manifest_data = json.dumps(manifest, indent=3).encode("utf-8")
        manifest_digest = await store.write_blob(manifest_data)
        logger.debug(f"Imported {self.tar_path} as {manifest_digest}")

        annotations = {}
        if entry.get("RepoTags"):
            annotations[IMAGE_NAME_ANNOTATION] = entry["RepoTags"][0]
        return Descriptor(
            media_type=MEDIA_TYPE_DOCKER_MANIFEST,
            digest=manifest_digest,
            size=len(manifest_data),
            platform={
                "os": config.get("os", ""),
                "architecture": config.get("architecture", ""),
                **({"variant": config["variant"]} if config.get("variant") else {}),
            },
            annotations=annotations,
        )

    def _extract_file_content(self, filename: str) -> bytes:
        """Extract file content from tar (sync helper).

        Raises:
            TarReadError: If file cannot be extracted
        """
        file_obj = self._open_member(filename)
        try:
            with file_obj:
                return file_obj.read()
        except (tarfile.TarError, OSError) as e:
            raise TarReadError(f"Failed to extract {filename}: {e}") from e

    def _open_member(self, filename: str) -> IO[bytes]:
        if not self._tar_file:
            raise TarReadError("Tar file not opened")

        try:
            member = self._tar_file.getmember(filename)
            file_obj = self._tar_file.extractfile(member)
        except KeyError:
            raise TarReadError(f"File {filename} not found in tar") from None
        except (tarfile.TarError, OSError) as e:
            raise TarReadError(f"Failed to extract {filename}: {e}") from e
        if file_obj is None:
            raise TarReadError(f"Could not extract {filename}")
        return file_obj


async def _record_head(
    chunks: AsyncIterator[bytes], head: bytearray, size: int = len(_GZIP_MAGIC)
) -> AsyncIterator[bytes]:
    """Pass ``chunks`` through, keeping their first ``size`` bytes in ``head``."""
    async for chunk in chunks:
        if len(head) < size:
            head.extend(chunk[: size - len(head)])
        yield chunk


async def import_archive(path: str, store: ContentStore) -> Descriptor:
    """Import a ``docker save`` archive and return its manifest descriptor."""
    async with DockerArchiveReader(path) as reader:
        return await reader.import_into(store)
