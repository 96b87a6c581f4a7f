# src/claimcheck/plugins/azure/auth.py
"""Azure Storage authentication for the blob store and queue transport.

Supports four authentication methods (mutually exclusive):
1. Connection string - account key or SAS embedded in the string
2. SAS token - Shared Access Signature token with account_url
3. Managed Identity - For Azure-hosted workloads
4. Service Principal - For automated/CI scenarios

The same credentials open both services. account_url names the blob
endpoint; the queue endpoint is derived from it (".blob." -> ".queue.")
unless queue_account_url is given. Connection strings carry both endpoints.

Connection strings, SAS tokens and client secrets belong in environment
variables referenced as ${VAR}, not in configuration files.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from pydantic import BaseModel, model_validator

if TYPE_CHECKING:
    from azure.storage.blob import BlobServiceClient
    from azure.storage.queue import QueueClient

_METHODS_HELP = (
    "connection_string, "
    "sas_token + account_url, "
    "managed identity (use_managed_identity + account_url), or "
    "service principal (tenant_id + client_id + client_secret + account_url)"
)


def _is_set(value: str | None) -> bool:
    """Whitespace-only strings count as unset, at validation and at runtime."""
    return value is not None and bool(value.strip())


class AzureAuthConfig(BaseModel):
    """Azure Storage authentication configuration.

    Example configurations:

        # Connection string (simplest; also what Azurite uses)
        connection_string: "${AZURE_STORAGE_CONNECTION_STRING}"

        # SAS token
        sas_token: "${AZURE_STORAGE_SAS_TOKEN}"
        account_url: "https://myaccount.blob.core.windows.net"

        # Managed Identity
        use_managed_identity: true
        account_url: "https://myaccount.blob.core.windows.net"

        # Service Principal
        tenant_id: "${AZURE_TENANT_ID}"
        client_id: "${AZURE_CLIENT_ID}"
        client_secret: "${AZURE_CLIENT_SECRET}"
        account_url: "https://myaccount.blob.core.windows.net"
    """

    model_config = {"extra": "forbid", "frozen": True}

    connection_string: str | None = None
    sas_token: str | None = None
    use_managed_identity: bool = False
    tenant_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None

    account_url: str | None = None
    queue_account_url: str | None = None

    @model_validator(mode="after")
    def validate_auth_method(self) -> Self:
        """Ensure exactly one auth method is fully configured.

        Raises:
            ValueError: If zero or multiple methods are configured, or a
                service principal is only partially configured.
        """
        has_url = _is_set(self.account_url)
        sp_fields = {"tenant_id": self.tenant_id, "client_id": self.client_id, "client_secret": self.client_secret}

        active = [
            _is_set(self.connection_string),
            _is_set(self.sas_token) and has_url,
            self.use_managed_identity and has_url,
            all(_is_set(v) for v in sp_fields.values()) and has_url,
        ]

        if _is_set(self.sas_token) and not has_url:
            raise ValueError("SAS token auth requires account_url. Example: https://myaccount.blob.core.windows.net")
        if self.use_managed_identity and not has_url:
            raise ValueError("Managed Identity auth requires account_url. Example: https://myaccount.blob.core.windows.net")

        present = [name for name, v in sp_fields.items() if v is not None]
        if 0 < len(present) < len(sp_fields) or (present and not has_url):
            missing = [name for name, v in sp_fields.items() if v is None]
            if not has_url:
                missing.append("account_url")
            raise ValueError(f"Service Principal auth requires all fields. Missing: {', '.join(missing)}")

        if sum(active) == 0:
            raise ValueError(f"No authentication method configured. Provide one of: {_METHODS_HELP}")
        if sum(active) > 1:
            raise ValueError(f"Multiple authentication methods configured. Provide exactly one of: {_METHODS_HELP}")
        return self

    @property
    def auth_method(self) -> str:
        """One of: connection_string, sas_token, managed_identity, service_principal."""
        if _is_set(self.connection_string):
            return "connection_string"
        elif _is_set(self.sas_token):
            return "sas_token"
        elif self.use_managed_identity:
            return "managed_identity"
        else:
            return "service_principal"

    @property
    def resolved_queue_account_url(self) -> str | None:
        """Queue endpoint, or None when a connection string supplies it."""
        if _is_set(self.queue_account_url):
            return self.queue_account_url
        if self.account_url is None or self.auth_method == "connection_string":
            return None
        return self.account_url.replace(".blob.", ".queue.", 1)

    def _credential(self) -> Any:
        """Credential object for token-based methods (None for connection strings)."""
        method = self.auth_method
        if method == "sas_token":
            assert self.sas_token is not None
            return self.sas_token.lstrip("?")
        if method == "connection_string":
            return None

        try:
            from azure.identity import ClientSecretCredential, DefaultAzureCredential
        except ImportError as e:
            raise ImportError(
                "azure-identity is required for Managed Identity and Service Principal auth. "
                "Install with: pip install azure-identity"
            ) from e

        if method == "managed_identity":
            return DefaultAzureCredential()
        return ClientSecretCredential(
            tenant_id=str(self.tenant_id),
            client_id=str(self.client_id),
            client_secret=str(self.client_secret),
        )

    def create_blob_service_client(self) -> BlobServiceClient:
        """Create BlobServiceClient using the configured auth method.

        Raises:
            ImportError: If azure-storage-blob (or azure-identity) is not installed.
        """
        try:
            from azure.storage.blob import BlobServiceClient
        except ImportError as e:
            raise ImportError("azure-storage-blob is required. Install with: pip install azure-storage-blob") from e

        if self.auth_method == "connection_string":
            return BlobServiceClient.from_connection_string(str(self.connection_string))
        return BlobServiceClient(str(self.account_url), credential=self._credential())

    def create_queue_client(self, queue_name: str) -> QueueClient:
        """Create a QueueClient for queue_name using the configured auth method.

        Raises:
            ImportError: If azure-storage-queue (or azure-identity) is not installed.
        """
        try:
            from azure.storage.queue import QueueClient
        except ImportError as e:
            raise ImportError("azure-storage-queue is required. Install with: pip install azure-storage-queue") from e

        if self.auth_method == "connection_string":
            return QueueClient.from_connection_string(str(self.connection_string), queue_name)
        return QueueClient(str(self.resolved_queue_account_url), queue_name, credential=self._credential())
