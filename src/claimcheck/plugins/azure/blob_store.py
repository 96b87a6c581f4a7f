# src/claimcheck/plugins/azure/blob_store.py
"""PayloadStore over Azure Blob Storage.

Payloads are stored as UTF-8 block blobs in one container. When a TTL is
configured each blob carries an "expiresAt" ISO-8601 metadata entry, which
cleanup_expired() uses to reap orphans left behind by failed rollbacks or
skipped cleanup.

Azure SDK exceptions do not leave this module: absence becomes None /
NotFoundError / False, and every other AzureError becomes StoreError with the
SDK exception chained.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import structlog

from claimcheck.contracts.errors import NotFoundError, StoreError
from claimcheck.contracts.models import Pointer

if TYPE_CHECKING:
    from azure.storage.blob import BlobServiceClient, ContainerClient

logger = structlog.get_logger(__name__)

EXPIRES_AT_METADATA_KEY = "expiresAt"


def _parse_expiry(value: str) -> datetime:
    """Parse expiresAt metadata; naive timestamps are taken as UTC."""
    expires_at = datetime.fromisoformat(value)
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    return expires_at


def fetch_via_capability_uri(uri: str) -> str | None:
    """Download a payload using only a capability (SAS) URI.

    Needs no account credentials, which makes it the resolver for
    receive-only consumers.

    Returns:
        The payload, or None if the blob does not exist

    Raises:
        StoreError: On any other failure
    """
    from azure.core.exceptions import AzureError, ResourceNotFoundError
    from azure.storage.blob import BlobClient

    try:
        blob_client = BlobClient.from_blob_url(uri)
        payload: str = blob_client.download_blob(encoding="utf-8").readall()
    except ResourceNotFoundError:
        return None
    except (AzureError, ValueError) as e:
        raise StoreError(f"Failed to download payload via capability URI: {e}") from e
    return payload


class BlobPayloadStore:
    """Blob-backed PayloadStore.

    The container is created at construction if it does not exist. The
    existence check is not repeated per call.

    Args:
        service_client: Authenticated BlobServiceClient
        container_name: Container for all payloads written by this store
        ttl_days: Days until a payload counts as expired; 0 writes no expiry
        access_tier: Standard blob tier applied on upload (Hot/Cool/Cold/Archive)
        ignore_not_found: retrieve() returns None instead of raising
            NotFoundError for a missing blob

    Raises:
        StoreError: If the container cannot be checked or created
    """

    def __init__(
        self,
        service_client: BlobServiceClient,
        container_name: str,
        *,
        ttl_days: int = 0,
        access_tier: str | None = None,
        ignore_not_found: bool = False,
    ) -> None:
        if ttl_days < 0:
            raise ValueError("ttl_days must be >= 0")
        self._service_client = service_client
        self._container_name = container_name
        self._ttl_days = ttl_days
        self._access_tier = access_tier
        self._ignore_not_found = ignore_not_found
        self._container: ContainerClient = service_client.get_container_client(container_name)
        self._ensure_container()

    @property
    def container_name(self) -> str:
        return self._container_name

    def _ensure_container(self) -> None:
        from azure.core.exceptions import AzureError, ResourceExistsError

        try:
            if self._container.exists():
                logger.debug("Container exists", container=self._container_name)
                return
            self._container.create_container()
            logger.info("Created container", container=self._container_name)
        except ResourceExistsError:
            # Created concurrently by another client
            pass
        except AzureError as e:
            raise StoreError(f"Failed to ensure container {self._container_name!r} exists: {e}") from e

    def store(self, name: str, payload: str) -> Pointer:
        from azure.core.exceptions import AzureError

        upload_kwargs: dict[str, Any] = {"overwrite": True}
        if self._ttl_days > 0:
            expires_at = datetime.now(UTC) + timedelta(days=self._ttl_days)
            upload_kwargs["metadata"] = {EXPIRES_AT_METADATA_KEY: expires_at.isoformat()}
        if self._access_tier:
            upload_kwargs["standard_blob_tier"] = self._access_tier

        data = payload.encode("utf-8")
        try:
            self._container.upload_blob(name=name, data=data, **upload_kwargs)
        except AzureError as e:
            raise StoreError(f"Failed to upload payload {self._container_name}/{name}: {e}") from e

        logger.debug("Stored payload", container=self._container_name, blob_name=name, size_bytes=len(data))
        return Pointer(container_name=self._container_name, blob_name=name)

    def retrieve(self, pointer: Pointer) -> str | None:
        from azure.core.exceptions import AzureError, ResourceNotFoundError

        try:
            payload: str = self._container.download_blob(pointer.blob_name, encoding="utf-8").readall()
        except ResourceNotFoundError as e:
            if self._ignore_not_found:
                logger.warning("Payload not found, ignoring", blob=str(pointer))
                return None
            raise NotFoundError(pointer.container_name, pointer.blob_name) from e
        except AzureError as e:
            raise StoreError(f"Failed to download payload {pointer}: {e}") from e
        return payload

    def delete(self, pointer: Pointer) -> bool:
        from azure.core.exceptions import AzureError, ResourceNotFoundError

        try:
            self._container.delete_blob(pointer.blob_name)
        except ResourceNotFoundError:
            logger.debug("Payload already absent", blob=str(pointer))
            return False
        except AzureError as e:
            raise StoreError(f"Failed to delete payload {pointer}: {e}") from e
        logger.debug("Deleted payload", blob=str(pointer))
        return True

    def cleanup_expired(self) -> int:
        """Delete blobs whose expiresAt metadata is in the past.

        Scans the whole container regardless of this store's ttl_days, so
        a reaper process can run with TTL writing disabled. Per-blob
        failures are logged and skipped.

        Raises:
            StoreError: If the container cannot be listed
        """
        from azure.core.exceptions import AzureError, ResourceNotFoundError

        now = datetime.now(UTC)
        deleted = 0
        logger.info("Starting expired payload cleanup", container=self._container_name)
        try:
            for blob in self._container.list_blobs(include=["metadata"]):
                expires_raw = (blob.metadata or {}).get(EXPIRES_AT_METADATA_KEY)
                if expires_raw is None:
                    continue
                try:
                    if _parse_expiry(expires_raw) >= now:
                        continue
                    self._container.delete_blob(blob.name)
                    deleted += 1
                    logger.debug("Deleted expired payload", blob_name=blob.name, expires_at=expires_raw)
                except ResourceNotFoundError:
                    continue
                except (AzureError, ValueError) as e:
                    logger.warning("Failed to process blob during cleanup", blob_name=blob.name, error=str(e))
        except AzureError as e:
            raise StoreError(f"Failed to list container {self._container_name!r}: {e}") from e

        logger.info("Expired payload cleanup completed", container=self._container_name, deleted=deleted)
        return deleted

    def generate_capability_uri(self, pointer: Pointer, valid_for: timedelta) -> str:
        """Read-only SAS URI for one blob.

        Signed with the account key when the client has one (connection
        string auth), otherwise with a user delegation key (Entra ID auth).

        Raises:
            StoreError: If no signing key is available or issuance fails
        """
        from azure.core.exceptions import AzureError
        from azure.storage.blob import BlobSasPermissions, generate_blob_sas

        now = datetime.now(UTC)
        expiry = now + valid_for
        account_key = getattr(self._service_client.credential, "account_key", None)

        try:
            if account_key:
                signing: dict[str, Any] = {"account_key": account_key}
            else:
                signing = {"user_delegation_key": self._service_client.get_user_delegation_key(now, expiry)}
            token = generate_blob_sas(
                account_name=self._service_client.account_name,
                container_name=pointer.container_name,
                blob_name=pointer.blob_name,
                permission=BlobSasPermissions(read=True),
                expiry=expiry,
                **signing,
            )
        except AzureError as e:
            raise StoreError(f"Failed to issue capability URI for {pointer}: {e}") from e

        blob_url = self._service_client.get_blob_client(pointer.container_name, pointer.blob_name).url
        # Drop any credential query string the client itself was built with
        return f"{blob_url.split('?', 1)[0]}?{token}"

    def retrieve_via_capability_uri(self, uri: str) -> str | None:
        return fetch_via_capability_uri(uri)
