"""Image reference parsing."""

import os
import re
from dataclasses import dataclass
from typing import Optional

from .digest import validate_digest
from .exceptions import AcquisitionError

DEFAULT_DOMAIN = "docker.io"
DOCKER_HUB_API_HOST = "registry-1.docker.io"
DEFAULT_TAG = "latest"
ARCHIVE_PREFIX = "docker-archive:"

_TAG_PATTERN = re.compile(r"^[\w][\w.-]{0,127}$")


@dataclass(frozen=True)
class ImageReference:
    """A parsed image reference.

    ``path`` is set for ``docker-archive:`` references, the registry fields
    otherwise.
    """

    domain: str = ""
    repository: str = ""
    tag: Optional[str] = None
    digest: Optional[str] = None
    path: Optional[str] = None

    @property
    def is_archive(self) -> bool:
        return self.path is not None

    @property
    def reference(self) -> str:
        """Tag or digest to request from the registry."""
        return self.digest or self.tag or DEFAULT_TAG

    @property
    def api_host(self) -> str:
        return DOCKER_HUB_API_HOST if self.domain == DEFAULT_DOMAIN else self.domain

    @property
    def name(self) -> str:
        if self.is_archive:
            return f"{ARCHIVE_PREFIX}{self.path}"
        name = f"{self.domain}/{self.repository}"
        if self.tag:
            name += f":{self.tag}"
        if self.digest:
            name += f"@{self.digest}"
        return name


def parse_reference(ref: str) -> ImageReference:
    """Parse a Docker-style reference or a ``docker-archive:`` path.

    Examples:
        alpine:3.18 -> docker.io/library/alpine:3.18
        localhost:5000/app@sha256:... -> localhost:5000/app@sha256:...

    Raises:
        AcquisitionError: If the reference is malformed
    """
    if ref.startswith(ARCHIVE_PREFIX):
        path = ref[len(ARCHIVE_PREFIX) :]
        if not path:
            raise AcquisitionError(f"invalid reference {ref!r}: missing archive path")
        return ImageReference(path=os.path.abspath(os.path.expanduser(path)))

    remainder = ref
    digest = None
    if "@" in remainder:
        remainder, digest = remainder.split("@", 1)
        if not validate_digest(digest):
            raise AcquisitionError(f"invalid reference {ref!r}: bad digest {digest!r}")

    tag = None
    last_slash = remainder.rfind("/")
    colon = remainder.rfind(":")
    if colon > last_slash:
        remainder, tag = remainder[:colon], remainder[colon + 1 :]
        if not _TAG_PATTERN.match(tag):
            raise AcquisitionError(f"invalid reference {ref!r}: bad tag {tag!r}")

    if not remainder:
        raise AcquisitionError(f"invalid reference {ref!r}")

    first, _, rest = remainder.partition("/")
    if rest and ("." in first or ":" in first or first == "localhost"):
        domain, repository = first, rest
    else:
        domain, repository = DEFAULT_DOMAIN, remainder
    if domain == DEFAULT_DOMAIN and "/" not in repository:
        repository = f"library/{repository}"
    if repository != repository.lower():
        raise AcquisitionError(f"invalid reference {ref!r}: repository must be lowercase")

    if tag is None and digest is None:
        tag = DEFAULT_TAG
    return ImageReference(domain=domain, repository=repository, tag=tag, digest=digest)
