"""Data models for image content."""

from dataclasses import dataclass, field
from typing import Any, Optional

MEDIA_TYPE_OCI_INDEX = "application/vnd.oci.image.index.v1+json"
MEDIA_TYPE_OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_OCI_CONFIG = "application/vnd.oci.image.config.v1+json"
MEDIA_TYPE_DOCKER_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
MEDIA_TYPE_DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
MEDIA_TYPE_DOCKER_CONFIG = "application/vnd.docker.container.image.v1+json"
MEDIA_TYPE_DOCKER_LAYER = "application/vnd.docker.image.rootfs.diff.tar"
MEDIA_TYPE_DOCKER_LAYER_GZIP = "application/vnd.docker.image.rootfs.diff.tar.gzip"

INDEX_MEDIA_TYPES = (MEDIA_TYPE_OCI_INDEX, MEDIA_TYPE_DOCKER_LIST)
MANIFEST_MEDIA_TYPES = (MEDIA_TYPE_OCI_MANIFEST, MEDIA_TYPE_DOCKER_MANIFEST)


@dataclass(frozen=True)
class Descriptor:
    """Content descriptor: digest, size and media type of a blob."""

    media_type: str
    digest: str
    size: int
    platform: Optional[dict[str, str]] = None
    annotations: dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def is_index(self) -> bool:
        return self.media_type in INDEX_MEDIA_TYPES

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Descriptor":
        """Build a descriptor from its OCI JSON form."""
        return cls(
            media_type=data.get("mediaType", ""),
            digest=data["digest"],
            size=int(data.get("size", 0)),
            platform=data.get("platform"),
            annotations=dict(data.get("annotations") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "mediaType": self.media_type,
            "digest": self.digest,
            "size": self.size,
        }
        if self.platform:
            data["platform"] = self.platform
        if self.annotations:
            data["annotations"] = self.annotations
        return data


@dataclass(frozen=True)
class ResolvedImage:
    """An image reference resolved to its root descriptor."""

    name: str
    target: Descriptor
