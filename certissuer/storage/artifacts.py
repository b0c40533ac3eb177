"""Artifact stores.

Uploaded files (KYC certificates, documents to be verified) are handed to an
ArtifactStore, which returns an identifier and a URL. Two backends exist:

- LocalArtifactStore: files on disk under UPLOAD_DIR, served by the
  application at ``/uploads/<name>``
- PinataArtifactStore: private IPFS uploads via the Pinata API, viewed
  through short-lived signed gateway links
"""

import logging
import re
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import httpx

from certissuer.core.exceptions import NotFoundError, StorageError, ValidationError

log = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_WHITESPACE = re.compile(r"\s+")


def safe_filename(filename: str | None) -> str:
    """Reduce a client-supplied filename to a safe basename."""
    name = Path(filename or "").name
    name = _UNSAFE_CHARS.sub("", _WHITESPACE.sub("_", name))
    return name or "file"


@dataclass(frozen=True)
class StoredArtifact:
    """Result of storing a file."""

    cid: str
    url: str
    name: str
    size: int
    content_type: str | None
    details: dict[str, Any] | None = None


class ArtifactStore(ABC):
    """Abstract store for uploaded files."""

    @abstractmethod
    async def save(self, filename: str, content_type: str | None, data: bytes) -> StoredArtifact:
        """Store file contents and return where to find them."""
        ...

    @abstractmethod
    async def access_link(self, cid: str) -> str:
        """Return a URL from which the artifact can be fetched."""
        ...

    async def close(self) -> None:
        """Release held resources."""
        return None


class LocalArtifactStore(ArtifactStore):
    """Stores artifacts as files under a directory."""

    def __init__(self, root: Path, url_prefix: str = "/uploads"):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def _unique_name(self, filename: str | None) -> str:
        return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}-{safe_filename(filename)}"

    async def save(self, filename: str, content_type: str | None, data: bytes) -> StoredArtifact:
        name = self._unique_name(filename)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            (self.root / name).write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to write artifact {name}: {e}") from e

        log.info(f"Stored artifact {name} ({len(data)} bytes)")
        return StoredArtifact(
            cid=name,
            url=f"{self.url_prefix}/{name}",
            name=safe_filename(filename),
            size=len(data),
            content_type=content_type,
        )

    async def access_link(self, cid: str) -> str:
        if not cid or safe_filename(cid) != cid:
            raise ValidationError.single("cid", "Invalid content identifier")
        if not (self.root / cid).is_file():
            raise NotFoundError("Artifact not found")
        return f"{self.url_prefix}/{cid}"

    async def delete(self, cid: str) -> None:
        """Remove a stored file. Missing files are ignored."""
        if not cid or safe_filename(cid) != cid:
            raise ValidationError.single("cid", "Invalid content identifier")
        try:
            (self.root / cid).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete artifact {cid}: {e}") from e
        log.info(f"Deleted artifact {cid}")


class PinataArtifactStore(ArtifactStore):
    """Stores artifacts as private files on Pinata."""

    def __init__(
        self,
        jwt: str,
        gateway: str,
        api_url: str = "https://api.pinata.cloud",
        upload_url: str = "https://uploads.pinata.cloud",
        link_ttl: int = 30,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.gateway = gateway.removeprefix("https://").rstrip("/")
        self.api_url = api_url.rstrip("/")
        self.upload_url = upload_url.rstrip("/")
        self.link_ttl = link_ttl
        self._timeout = timeout
        self._headers = {"Authorization": f"Bearer {jwt}"}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout, headers=self._headers, transport=self._transport
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def save(self, filename: str, content_type: str | None, data: bytes) -> StoredArtifact:
        name = safe_filename(filename)
        try:
            client = await self._get_client()
            response = await client.post(
                f"{self.upload_url}/v3/files",
                files={"file": (name, data, content_type or "application/octet-stream")},
                data={"network": "private", "name": name},
            )
            response.raise_for_status()
            body = response.json().get("data", {})
        except httpx.HTTPStatusError as e:
            raise StorageError(f"Pinata upload failed: HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise StorageError(f"Network error uploading to Pinata: {e}") from e
        except ValueError as e:
            raise StorageError(f"Invalid JSON from Pinata upload: {e}") from e

        cid = body.get("cid")
        if not cid:
            raise StorageError("Pinata upload response missing cid")

        log.info(f"Uploaded artifact {name} to Pinata as {cid}")
        return StoredArtifact(
            cid=cid,
            url=f"https://{self.gateway}/files/{cid}",
            name=name,
            size=body.get("size", len(data)),
            content_type=content_type,
            details=body,
        )

    async def access_link(self, cid: str) -> str:
        if not cid:
            raise ValidationError.single("cid", "CID is required")

        payload = {
            "url": f"https://{self.gateway}/files/{cid}",
            "expires": self.link_ttl,
            "date": int(time.time()),
            "method": "GET",
        }
        try:
            client = await self._get_client()
            response = await client.post(f"{self.api_url}/v3/files/private/download_link", json=payload)
            response.raise_for_status()
            link = response.json().get("data")
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                raise NotFoundError("Artifact not found") from e
            raise StorageError(f"Pinata access link failed: HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            raise StorageError(f"Network error contacting Pinata: {e}") from e
        except ValueError as e:
            raise StorageError(f"Invalid JSON from Pinata: {e}") from e

        if not link:
            raise StorageError("Pinata access link response missing data")
        return link


_artifact_store: ArtifactStore | None = None


def get_artifact_store() -> ArtifactStore:
    """Get the configured artifact store instance."""
    global _artifact_store

    if _artifact_store is None:
        from certissuer.config import (
            ARTIFACT_BACKEND,
            ARTIFACT_LINK_TTL_SECONDS,
            ARTIFACT_TIMEOUT_SECONDS,
            PINATA_API_URL,
            PINATA_GATEWAY,
            PINATA_JWT,
            PINATA_UPLOAD_URL,
            UPLOAD_DIR,
        )

        if ARTIFACT_BACKEND == "pinata":
            if not PINATA_JWT or not PINATA_GATEWAY:
                raise StorageError("Pinata backend selected but CERTISSUER_PINATA_JWT/GATEWAY not set")
            _artifact_store = PinataArtifactStore(
                jwt=PINATA_JWT,
                gateway=PINATA_GATEWAY,
                api_url=PINATA_API_URL,
                upload_url=PINATA_UPLOAD_URL,
                link_ttl=ARTIFACT_LINK_TTL_SECONDS,
                timeout=ARTIFACT_TIMEOUT_SECONDS,
            )
        else:
            _artifact_store = LocalArtifactStore(UPLOAD_DIR)
        log.info(f"Initialized {ARTIFACT_BACKEND} artifact store")

    return _artifact_store


def get_certificate_store() -> LocalArtifactStore:
    """KYC certificates always live on local disk."""
    from certissuer.config import UPLOAD_DIR

    return LocalArtifactStore(UPLOAD_DIR)


async def close_artifact_store() -> None:
    """Close the global store, if one was created."""
    global _artifact_store

    if _artifact_store is not None:
        await _artifact_store.close()
        _artifact_store = None


def reset_artifact_store() -> None:
    """Reset the global store (for testing)."""
    global _artifact_store
    _artifact_store = None
