"""Platform specifiers and matching."""

import platform as _host
import sys
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from .exceptions import InvalidPlatformError

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "x86-64": "amd64",
    "aarch64": "arm64",
    "armhf": "arm",
    "armel": "arm",
    "i386": "386",
    "i686": "386",
}


def normalize_architecture(arch: str) -> str:
    arch = arch.lower()
    return _ARCH_ALIASES.get(arch, arch)


@dataclass(frozen=True)
class Platform:
    """A target platform such as ``linux/arm64/v8``."""

    os: str
    architecture: str
    variant: str = ""

    @classmethod
    def parse(cls, spec: str) -> "Platform":
        """Parse ``os/arch[/variant]``.

        Raises:
            InvalidPlatformError: If the specifier is malformed
        """
        parts = spec.strip().split("/")
        if len(parts) not in (2, 3) or not all(parts):
            raise InvalidPlatformError(
                f"invalid platform {spec!r}: expected os/arch[/variant]"
            )
        variant = parts[2] if len(parts) == 3 else ""
        return cls(parts[0].lower(), normalize_architecture(parts[1]), variant.lower())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Platform":
        """Build from an OCI ``platform`` object or image config."""
        return cls(
            str(data.get("os", "")).lower(),
            normalize_architecture(str(data.get("architecture", ""))),
            str(data.get("variant", "")).lower(),
        )

    def __str__(self) -> str:
        if self.variant:
            return f"{self.os}/{self.architecture}/{self.variant}"
        return f"{self.os}/{self.architecture}"


def default_platform() -> Platform:
    """Return the platform of the running host."""
    os_name = "windows" if sys.platform.startswith("win") else "linux"
    return Platform(os_name, normalize_architecture(_host.machine() or "amd64"))


def parse_platforms(values: Iterable[str]) -> list[Platform]:
    """Parse platform flag values, keeping order and dropping duplicates.

    Falls back to the host platform when no value is given.
    """
    platforms: list[Platform] = []
    for value in values:
        parsed = Platform.parse(value)
        if parsed not in platforms:
            platforms.append(parsed)
    return platforms or [default_platform()]


def format_platforms(platforms: Iterable[Platform]) -> str:
    return "[" + ", ".join(str(p) for p in platforms) + "]"


class PlatformMatcher:
    """Accepts a platform if it matches any configured platform."""

    def __init__(self, platforms: Iterable[Platform]) -> None:
        self.platforms = tuple(platforms)
        if not self.platforms:
            raise InvalidPlatformError("at least one platform is required")

    def match(self, candidate: Optional[Union[Platform, Mapping[str, Any]]]) -> bool:
        if candidate is None:
            return False
        if not isinstance(candidate, Platform):
            candidate = Platform.from_dict(candidate)
        return any(_matches(p, candidate) for p in self.platforms)


def _matches(wanted: Platform, candidate: Platform) -> bool:
    if wanted.os != candidate.os or wanted.architecture != candidate.architecture:
        return False
    # An unspecified variant accepts every variant.
    return not wanted.variant or wanted.variant == candidate.variant
