"""Registry API v2 async client used for pulling images."""

import asyncio
import json
import logging
import re
from typing import AsyncIterator, Dict, Optional

import aiohttp

from .digest import calculate_digest
from .exceptions import RegistryError
from .models import (
    INDEX_MEDIA_TYPES,
    MANIFEST_MEDIA_TYPES,
    Descriptor,
)
from .reference import ImageReference

logger = logging.getLogger(__name__)

MANIFEST_ACCEPT = ", ".join(MANIFEST_MEDIA_TYPES + INDEX_MEDIA_TYPES)

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')

# aiohttp raises asyncio.TimeoutError, not a ClientError, when ClientTimeout expires.
_TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


class RegistryClient:
    """Async client for the Registry HTTP API v2 (read-only, anonymous)."""

    def __init__(
        self,
        timeout: int = 30,
        insecure_registries: tuple[str, ...] = (),
        connector: Optional[aiohttp.TCPConnector] = None,
    ) -> None:
        """Initialize the registry client.

        Args:
            timeout: Request timeout in seconds
            insecure_registries: Hosts reached over plain HTTP
            connector: aiohttp connector for connection pooling
        """
        self.timeout = timeout
        self.insecure_registries = insecure_registries
        self.connector = connector
        self.session: Optional[aiohttp.ClientSession] = None
        self._tokens: Dict[str, str] = {}

    async def __aenter__(self) -> "RegistryClient":
        """Enter async context manager."""
        if not self.session:
            self.session = aiohttp.ClientSession(
                connector=self.connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self.session and not self.session.closed:
            await self.session.close()

    def base_url(self, host: str) -> str:
        plain_http = (
            host.startswith(("localhost", "127.0.0.1"))
            or host in self.insecure_registries
        )
        return f"{'http' if plain_http else 'https'}://{host}"

    async def _fetch_token(self, challenge: str) -> str:
        params = dict(_CHALLENGE_PARAM.findall(challenge))
        realm = params.pop("realm", None)
        if not realm:
            raise RegistryError(f"Unsupported auth challenge: {challenge}")
        async with self.session.get(realm, params=params) as resp:
            resp.raise_for_status()
            data = await resp.json(content_type=None)
        token = data.get("token") or data.get("access_token")
        if not token:
            raise RegistryError(f"No token returned by {realm}")
        return token

    async def _get(self, image: ImageReference, path: str, headers: Dict[str, str]):
        """GET a registry path, answering one bearer challenge if needed."""
        url = f"{self.base_url(image.api_host)}/v2/{image.repository}/{path}"
        for attempt in range(2):
            request_headers = dict(headers)
            token = self._tokens.get(image.api_host)
            if token:
                request_headers["Authorization"] = f"Bearer {token}"
            logger.debug(f"GET {url}")
            resp = await self.session.get(url, headers=request_headers)
            challenge = resp.headers.get("WWW-Authenticate", "")
            if resp.status == 401 and attempt == 0 and challenge.lower().startswith("bearer"):
                resp.release()
                self._tokens[image.api_host] = await self._fetch_token(challenge)
                continue
            return resp
        raise RegistryError(f"Authentication failed for {url}")

    async def get_manifest(self, image: ImageReference, reference: Optional[str] = None) -> tuple[Descriptor, bytes]:
        """Retrieve a manifest or index.

        Args:
            image: Image reference (repository and registry)
            reference: Tag or digest; defaults to the image's own reference

        Returns:
            Descriptor of the manifest and its raw bytes

        Raises:
            RegistryError: If retrieval fails
        """
        reference = reference or image.reference
        try:
            resp = await self._get(image, f"manifests/{reference}", {"Accept": MANIFEST_ACCEPT})
            async with resp:
                resp.raise_for_status()
                body = await resp.read()
                media_type = resp.headers.get("Content-Type", "").split(";")[0].strip()
        except _TRANSPORT_ERRORS as e:
            raise RegistryError(f"Failed to get manifest {image.name}: {_reason(e)}") from e

        digest = calculate_digest(body)
        if reference.startswith("sha256:") and digest != reference:
            raise RegistryError(f"Manifest digest mismatch: expected {reference}, got {digest}")
        if not media_type or media_type not in MANIFEST_MEDIA_TYPES + INDEX_MEDIA_TYPES:
            media_type = _sniff_media_type(body) or media_type
        return Descriptor(media_type=media_type, digest=digest, size=len(body)), body

    async def fetch_blob(
        self, image: ImageReference, digest: str, chunk_size: int = 1024 * 1024
    ) -> AsyncIterator[bytes]:
        """Stream a blob from the registry.

        Yields:
            Chunks of blob data

        Raises:
            RegistryError: If the download fails
        """
        try:
            resp = await self._get(image, f"blobs/{digest}", {})
            async with resp:
                resp.raise_for_status()
                async for chunk in resp.content.iter_chunked(chunk_size):
                    yield chunk
        except _TRANSPORT_ERRORS as e:
            raise RegistryError(f"Failed to fetch blob {digest}: {_reason(e)}") from e


def _reason(error: BaseException) -> str:
    if isinstance(error, asyncio.TimeoutError):
        return "request timed out"
    return str(error)


def _sniff_media_type(body: bytes) -> Optional[str]:
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if data.get("mediaType"):
        return data["mediaType"]
    if "manifests" in data:
        return INDEX_MEDIA_TYPES[0]
    if "config" in data:
        return MANIFEST_MEDIA_TYPES[0]
    return None
