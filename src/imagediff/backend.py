"""Backend holding the content store and registry session for one command."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .exceptions import ConfigurationError
from .registry import RegistryClient
from .store import ContentStore, ImageIndex

logger = logging.getLogger(__name__)

DEFAULT_ROOT = "~/.local/share/imagediff"


@dataclass(frozen=True)
class BackendConfig:
    """Backend configuration, read from the environment by default."""

    root: Path = field(default_factory=lambda: Path(DEFAULT_ROOT).expanduser())
    timeout: int = 30
    insecure_registries: tuple[str, ...] = ()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BackendConfig":
        """Build from ``IMAGEDIFF_ROOT``, ``IMAGEDIFF_TIMEOUT`` and
        ``IMAGEDIFF_INSECURE_REGISTRIES``."""
        env = os.environ if environ is None else environ
        insecure = env.get("IMAGEDIFF_INSECURE_REGISTRIES", "")
        timeout = env.get("IMAGEDIFF_TIMEOUT", "30")
        if not timeout.isdigit():
            raise ConfigurationError(f"IMAGEDIFF_TIMEOUT must be a number of seconds, got {timeout!r}")
        return cls(
            root=Path(env.get("IMAGEDIFF_ROOT", DEFAULT_ROOT)).expanduser(),
            timeout=int(timeout),
            insecure_registries=tuple(h.strip() for h in insecure.split(",") if h.strip()),
        )


class Backend:
    """Async context manager scoping the store and the registry session."""

    def __init__(self, config: BackendConfig) -> None:
        self.config = config
        self.content_store = ContentStore(config.root / "content")
        self.images = ImageIndex(config.root / "images.json")
        self.registry = RegistryClient(
            timeout=config.timeout,
            insecure_registries=config.insecure_registries,
        )

    async def __aenter__(self) -> "Backend":
        logger.debug(f"Using backend root {self.config.root}")
        await self.registry.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.registry.close()
