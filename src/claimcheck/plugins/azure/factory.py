# src/claimcheck/plugins/azure/factory.py
"""Wire a ClaimCheckClient to Azure Storage from settings.

    settings = load_settings(Path("claimcheck.yaml"))
    client = build_client(settings)

Receive-only clients get no BlobPayloadStore and resolve offloaded payloads
through fetch_via_capability_uri, so their credentials only need queue access.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from claimcheck.core.config import ClaimCheckSettings
from claimcheck.engine.client import ClaimCheckClient
from claimcheck.engine.dead_letter import DeadLetterSink
from claimcheck.plugins.azure.auth import AzureAuthConfig
from claimcheck.plugins.azure.blob_store import BlobPayloadStore, fetch_via_capability_uri
from claimcheck.plugins.azure.queue_transport import AzureQueueTransport

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

logger = structlog.get_logger(__name__)


def build_payload_store(settings: ClaimCheckSettings, auth: AzureAuthConfig) -> BlobPayloadStore:
    client_settings = settings.client
    return BlobPayloadStore(
        auth.create_blob_service_client(),
        settings.container_name,
        ttl_days=client_settings.blob_ttl_days,
        access_tier=client_settings.blob_access_tier,
        ignore_not_found=client_settings.ignore_payload_not_found,
    )


def build_dead_letter_sink(settings: ClaimCheckSettings, auth: AzureAuthConfig) -> DeadLetterSink | None:
    if not settings.client.dead_letter_enabled:
        return None
    transport = AzureQueueTransport(auth.create_queue_client(settings.dead_letter_queue_name))
    return DeadLetterSink(transport, max_dequeue_count=settings.client.dead_letter_max_dequeue_count)


def build_client(settings: ClaimCheckSettings, *, tracer: Tracer | None = None) -> ClaimCheckClient:
    """Build a fully wired client.

    Raises:
        pydantic.ValidationError: If settings.azure is not a valid AzureAuthConfig
        ImportError: If the Azure SDK packages are not installed
        StoreError: If the payload container cannot be created
    """
    auth = AzureAuthConfig.model_validate(settings.azure)
    client_settings = settings.client

    queue = AzureQueueTransport(auth.create_queue_client(settings.queue_name))
    store = None if client_settings.receive_only_mode else build_payload_store(settings, auth)

    logger.debug(
        "Building claim-check client",
        auth_method=auth.auth_method,
        queue=settings.queue_name,
        container=settings.container_name,
        receive_only=client_settings.receive_only_mode,
    )
    return ClaimCheckClient(
        queue,
        store,
        client_settings,
        dead_letter_sink=build_dead_letter_sink(settings, auth),
        capability_reader=fetch_via_capability_uri,
        tracer=tracer,
    )
