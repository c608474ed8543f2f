"""Resolution of image references to descriptors in the local store."""

import json
import logging
from enum import Enum
from typing import Sequence, Union

from .archive import import_archive
from .backend import Backend
from .digest import split_digest
from .exceptions import AcquisitionError, ImageNotFoundError
from .models import Descriptor, ResolvedImage
from .platforms import Platform, PlatformMatcher, format_platforms
from .reference import ImageReference, parse_reference

logger = logging.getLogger(__name__)


class PullMode(str, Enum):
    """Whether acquisition may fetch remote content."""

    ALWAYS = "always"
    MISSING = "missing"
    NEVER = "never"

    @classmethod
    def parse(cls, value: Union["PullMode", str]) -> "PullMode":
        """Raises AcquisitionError for an unknown mode."""
        try:
            return cls(value)
        except ValueError:
            choices = "|".join(m.value for m in cls)
            raise AcquisitionError(f"invalid pull mode {value!r} (expected {choices})") from None


class ImageGetter:
    """Resolves references against the backend, pulling when allowed."""

    def __init__(self, backend: Backend) -> None:
        self.backend = backend

    async def get(
        self,
        ref: str,
        platforms: Sequence[Platform],
        mode: Union[PullMode, str] = PullMode.MISSING,
    ) -> ResolvedImage:
        """Resolve one image reference.

        Args:
            ref: Registry reference or ``docker-archive:PATH``
            platforms: Platforms whose content must be available
            mode: Pull mode

        Returns:
            The resolved image

        Raises:
            AcquisitionError: If the reference cannot be resolved or pulled
        """
        mode = PullMode.parse(mode)
        image = parse_reference(ref)
        if image.is_archive:
            target = await import_archive(image.path, self.backend.content_store)
            return ResolvedImage(name=image.name, target=target)

        target = await self.backend.images.get(image.name)
        if mode is PullMode.ALWAYS or (target is None and mode is PullMode.MISSING):
            target = await self.pull(image, platforms)
            await self.backend.images.put(image.name, target)
        elif target is None:
            raise ImageNotFoundError(
                f"image {image.name!r} not found locally (pull mode {mode.value!r})"
            )
        return ResolvedImage(name=image.name, target=target)

    async def pull(self, image: ImageReference, platforms: Sequence[Platform]) -> Descriptor:
        """Fetch an image for the given platforms into the content store."""
        logger.info(f"Pulling {image.name} for {format_platforms(platforms)}")
        matcher = PlatformMatcher(platforms)
        root, body = await self.backend.registry.get_manifest(image)
        await self.backend.content_store.write_blob(body, root.digest)

        if root.is_index:
            index = _parse_json(body, image)
            for entry in index.get("manifests", []):
                child = _descriptor(entry, image)
                if not matcher.match(child.platform):
                    continue
                _, child_body = await self.backend.registry.get_manifest(image, child.digest)
                await self.backend.content_store.write_blob(child_body, child.digest)
                await self._pull_manifest_content(image, _parse_json(child_body, image))
        else:
            await self._pull_manifest_content(image, _parse_json(body, image))
        return root

    async def _pull_manifest_content(self, image: ImageReference, manifest: dict) -> None:
        if "config" not in manifest:
            raise AcquisitionError(f"manifest of {image.name} has no config")
        blobs = [manifest["config"], *manifest.get("layers", [])]
        store = self.backend.content_store
        for blob in blobs:
            desc = _descriptor(blob, image)
            if await store.exists(desc.digest):
                continue
            logger.debug(f"Fetching {desc.digest} ({desc.size} bytes)")
            await store.write_stream(
                desc.digest, self.backend.registry.fetch_blob(image, desc.digest)
            )


def _descriptor(data: dict, image: ImageReference) -> Descriptor:
    try:
        desc = Descriptor.from_dict(data)
        split_digest(desc.digest)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise AcquisitionError(f"malformed descriptor in {image.name}: {e!r}") from e
    return desc


def _parse_json(body: bytes, image: ImageReference) -> dict:
    try:
        data = json.loads(body)
    except ValueError as e:
        raise AcquisitionError(f"malformed manifest for {image.name}: {e}") from e
    if not isinstance(data, dict):
        raise AcquisitionError(f"malformed manifest for {image.name}")
    return data
