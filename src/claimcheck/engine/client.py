# src/claimcheck/engine/client.py
"""ClaimCheckClient: transparent payload offload for a size-limited queue.

Send:
    [reject reserved metadata] -> [dedup check] -> size criteria
    -> (offload) resolve name -> [compress] -> store blob (retried)
       -> [issue capability URI] -> replace body -> set markers
    -> serialize envelope -> enqueue (retried)
    On any failure after the blob was stored, the blob is deleted
    (best-effort) and the original error is re-raised.

Receive:
    dequeue -> [dead-letter by dequeue count] -> parse envelope
    -> (marker present) resolve blob via capability URI or store (retried)
       -> [decompress] -> strip markers
    A message that fails resolution is logged and omitted; the rest of the
    batch is still returned.

Delete:
    delete from queue (errors propagate) -> [delete blob, best-effort]

The client owns its RetryPolicy and DeduplicationFilter. The queue
transport, payload store and dead-letter sink are shared collaborators whose
lifetime is managed by the caller (see plugins/azure/factory.py).
"""

from __future__ import annotations

import functools
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import timedelta
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from claimcheck.contracts.errors import (
    ConfigurationError,
    MaxRetriesExceeded,
    NotFoundError,
    ValidationError,
)
from claimcheck.contracts.models import CleanupOutcome, Envelope, Pointer, RawQueueMessage, ReceivedMessage
from claimcheck.contracts.payload_store import PayloadStore
from claimcheck.contracts.strategies import BlobNameResolver, MessageBodyReplacer, MessageSizeCriteria
from claimcheck.contracts.transport import QueueTransport
from claimcheck.core.compression import CompressionCodec
from claimcheck.core.config import ClientSettings
from claimcheck.core.dedup import DeduplicationFilter
from claimcheck.core.envelope import (
    BLOB_POINTER_MARKER,
    CAPABILITY_URI_KEY,
    COMPRESSED_MARKER,
    MARKER_TRUE,
    ORIGINAL_SIZE_KEY,
    RESERVED_METADATA_KEYS,
    deserialize_envelope,
    is_compressed,
    is_offloaded,
    serialize_envelope,
    strip_internal_markers,
)
from claimcheck.core.logging import client_log_context
from claimcheck.core.strategies import (
    DefaultBlobNameResolver,
    DefaultMessageBodyReplacer,
    DefaultMessageSizeCriteria,
    utf8_length,
)
from claimcheck.engine.dead_letter import DeadLetterSink
from claimcheck.engine.retry import RetryConfig, RetryPolicy
from claimcheck.engine.spans import SpanFactory, default_tracer

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

logger = structlog.get_logger(__name__)

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 32

CapabilityReader = Callable[[str], str | None]
T = TypeVar("T")


def _validate_batch_size(max_messages: int) -> None:
    if not MIN_BATCH_SIZE <= max_messages <= MAX_BATCH_SIZE:
        raise ValidationError(f"max_messages must be between {MIN_BATCH_SIZE} and {MAX_BATCH_SIZE}, got {max_messages}")


def _is_not_found(error: BaseException) -> bool:
    if isinstance(error, NotFoundError):
        return True
    return isinstance(error, MaxRetriesExceeded) and isinstance(error.last_error, NotFoundError)


def _in_log_context(method: Callable[..., T]) -> Callable[..., T]:
    """Run a client operation with its queue and container bound for logging."""

    @functools.wraps(method)
    def wrapper(self: ClaimCheckClient, *args: Any, **kwargs: Any) -> T:
        container = self._store.container_name if self._store is not None else None
        with client_log_context(self.queue_name, container):
            return method(self, *args, **kwargs)

    return wrapper


class ClaimCheckClient:
    """Queue client that offloads oversized bodies to a PayloadStore.

    Example:
        client = ClaimCheckClient(queue, store, ClientSettings(compression_enabled=True))
        message_id = client.send_message(big_json)
        for msg in client.receive_messages(max_messages=10):
            handle(msg.body)
            client.delete_message(msg)

    Args:
        queue: Transport for the primary queue
        payload_store: Blob store for offloaded payloads. Must be None in
            receive-only mode and present otherwise.
        settings: Client behavior
        dead_letter_sink: Destination for poison messages. Required when
            settings.dead_letter_enabled, with the same max dequeue count;
            must be None otherwise
        name_resolver: Blob naming strategy (default: prefix + UUID)
        body_replacer: Pointer body strategy (default: pointer JSON)
        size_criteria: Offload decision (default: strict byte threshold)
        capability_reader: Downloads a payload from a capability URI;
            required to resolve offloaded messages in receive-only mode
        retry_policy: Retry for blob and enqueue calls (default: from
            settings.retry)
        tracer: OpenTelemetry tracer; defaults to the global tracer when
            settings.tracing_enabled

    Raises:
        ConfigurationError: If the store wiring contradicts receive-only mode,
            or the dead-letter sink does not match the dead-letter settings
    """

    def __init__(
        self,
        queue: QueueTransport,
        payload_store: PayloadStore | None,
        settings: ClientSettings | None = None,
        *,
        dead_letter_sink: DeadLetterSink | None = None,
        name_resolver: BlobNameResolver | None = None,
        body_replacer: MessageBodyReplacer | None = None,
        size_criteria: MessageSizeCriteria | None = None,
        capability_reader: CapabilityReader | None = None,
        retry_policy: RetryPolicy | None = None,
        tracer: Tracer | None = None,
    ) -> None:
        self._settings = settings or ClientSettings()

        if self._settings.receive_only_mode and payload_store is not None:
            raise ConfigurationError("receive_only_mode clients must not be given a payload store")
        if not self._settings.receive_only_mode and payload_store is None:
            raise ConfigurationError("A payload store is required unless receive_only_mode is enabled")
        if self._settings.dead_letter_enabled and dead_letter_sink is None:
            raise ConfigurationError("dead_letter_enabled requires a dead-letter sink")
        if not self._settings.dead_letter_enabled and dead_letter_sink is not None:
            raise ConfigurationError("A dead-letter sink was given but dead_letter_enabled is off")
        if dead_letter_sink is not None and dead_letter_sink.max_dequeue_count != self._settings.dead_letter_max_dequeue_count:
            raise ConfigurationError(
                f"Dead-letter sink max_dequeue_count ({dead_letter_sink.max_dequeue_count}) does not match "
                f"dead_letter_max_dequeue_count ({self._settings.dead_letter_max_dequeue_count})"
            )

        self._queue = queue
        self._store = payload_store
        self._dead_letter_sink = dead_letter_sink
        self._capability_reader = capability_reader
        self._codec = CompressionCodec()
        self._retry = retry_policy or RetryPolicy(RetryConfig.from_settings(self._settings.retry))
        self._dedup = (
            DeduplicationFilter(self._settings.deduplication_cache_size) if self._settings.deduplication_enabled else None
        )

        self._name_resolver: BlobNameResolver = name_resolver or DefaultBlobNameResolver(self._settings.blob_key_prefix)
        self._body_replacer: MessageBodyReplacer = body_replacer or DefaultMessageBodyReplacer()
        self._size_criteria: MessageSizeCriteria = size_criteria or DefaultMessageSizeCriteria(
            self._settings.message_size_threshold,
            always_through_blob=self._settings.always_through_blob,
        )

        if self._settings.tracing_enabled:
            self._spans = SpanFactory(tracer or default_tracer())
        else:
            self._spans = SpanFactory(None)

        self._ensure_queue()
        logger.info(
            "Claim-check client ready",
            queue=queue.queue_name,
            container=payload_store.container_name if payload_store is not None else None,
            receive_only=self._settings.receive_only_mode,
            message_size_threshold=self._settings.message_size_threshold,
            compression=self._settings.compression_enabled,
            deduplication=self._dedup is not None,
            dead_letter_queue=dead_letter_sink.queue_name if dead_letter_sink is not None else None,
        )

    # === Accessors ===

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    @property
    def queue_name(self) -> str:
        return self._queue.queue_name

    @property
    def dead_letter_sink(self) -> DeadLetterSink | None:
        return self._dead_letter_sink

    @property
    def deduplication_filter(self) -> DeduplicationFilter | None:
        return self._dedup

    @property
    def name_resolver(self) -> BlobNameResolver:
        return self._name_resolver

    @name_resolver.setter
    def name_resolver(self, resolver: BlobNameResolver) -> None:
        self._name_resolver = resolver

    @property
    def body_replacer(self) -> MessageBodyReplacer:
        return self._body_replacer

    @body_replacer.setter
    def body_replacer(self, replacer: MessageBodyReplacer) -> None:
        self._body_replacer = replacer

    @property
    def size_criteria(self) -> MessageSizeCriteria:
        return self._size_criteria

    @size_criteria.setter
    def size_criteria(self, criteria: MessageSizeCriteria) -> None:
        self._size_criteria = criteria

    # === Send ===

    @_in_log_context
    def send_message(
        self,
        body: str,
        metadata: Mapping[str, str] | None = None,
        visibility_delay: timedelta | None = None,
    ) -> str | None:
        """Send one message, offloading the body if the size criteria say so.

        With deduplication enabled, a send that fails after the duplicate
        check releases the body's hash so the caller can retry it. A
        concurrent send of the same body that was skipped while the first
        was in flight is not retried; only the failing caller sees the error.

        Returns:
            Queue message id, or None if the body was a duplicate

        Raises:
            ValidationError: If metadata uses a reserved key
            ConfigurationError: If offload is required but no store is wired
            MaxRetriesExceeded: If the blob upload or enqueue kept failing
        """
        user_metadata = dict(metadata or {})
        reserved = RESERVED_METADATA_KEYS.intersection(user_metadata)
        if reserved:
            raise ValidationError(f"Metadata keys are reserved for internal use: {sorted(reserved)}")

        if self._dedup is not None and self._dedup.is_duplicate(body):
            logger.info("Skipping duplicate message")
            return None

        pointer: Pointer | None = None
        with self._spans.send_span(self.queue_name, body_size=utf8_length(body)) as span:
            try:
                queue_body = body
                if self._size_criteria.should_offload(body, user_metadata):
                    pointer = self._store_payload(body, user_metadata)
                    queue_body = self._point_to(pointer, body, user_metadata)
                    span.set_attribute("claimcheck.offloaded", True)

                envelope = Envelope(body=queue_body, metadata=user_metadata)
                message_id = self._retry.execute(
                    lambda: self._queue.send(serialize_envelope(envelope), visibility_delay=visibility_delay)
                )
            except BaseException as e:
                span.record_exception(e)
                if pointer is not None:
                    outcome = self._delete_blob_best_effort(pointer)
                    logger.warning(
                        "Send failed, rolled back offloaded payload",
                        blob_name=pointer.blob_name,
                        rollback=outcome.value,
                        error=str(e),
                    )
                if self._dedup is not None:
                    self._dedup.discard(body)
                raise

            span.set_attribute("messaging.message.id", message_id)

        logger.debug(
            "Message sent",
            message_id=message_id,
            offloaded=pointer is not None,
        )
        return message_id

    @_in_log_context
    def send_messages(self, bodies: Iterable[str]) -> list[str | None]:
        """Send bodies one at a time, in order.

        Not atomic: a failure part-way raises after earlier messages were
        already enqueued.
        """
        return [self.send_message(body) for body in bodies]

    def _store_payload(self, body: str, metadata: dict[str, str]) -> Pointer:
        """Upload body (compressed if enabled) as a new blob. Mutates metadata."""
        store = self._store
        if store is None:
            raise ConfigurationError("Message requires offload but no payload store is configured (receive-only mode?)")

        blob_name = self._name_resolver.resolve(str(uuid.uuid4()))
        payload = body
        if self._settings.compression_enabled:
            payload = self._codec.compress_to_text(body)
            metadata[COMPRESSED_MARKER] = MARKER_TRUE

        with self._spans.offload_span(store.container_name, blob_name):
            return self._retry.execute(lambda: store.store(blob_name, payload))

    def _point_to(self, pointer: Pointer, body: str, metadata: dict[str, str]) -> str:
        """Mark metadata for a stored blob and build the queue body. Mutates metadata."""
        store = self._store
        if self._settings.sas_enabled and store is not None:
            metadata[CAPABILITY_URI_KEY] = store.generate_capability_uri(pointer, self._settings.sas_token_validation_time)

        metadata[BLOB_POINTER_MARKER] = MARKER_TRUE
        metadata[ORIGINAL_SIZE_KEY] = str(utf8_length(body))
        logger.debug(
            "Payload offloaded",
            container=pointer.container_name,
            blob_name=pointer.blob_name,
            original_bytes=utf8_length(body),
            compressed=self._settings.compression_enabled,
        )
        return self._body_replacer.replace(body, pointer)

    # === Receive ===

    @_in_log_context
    def receive_messages(self, max_messages: int = 1, visibility_timeout: timedelta | None = None) -> list[ReceivedMessage]:
        """Dequeue up to max_messages and resolve offloaded payloads.

        Raises:
            ValidationError: If max_messages is outside 1..32
            QueueError: If the dequeue call itself fails
        """
        _validate_batch_size(max_messages)

        with self._spans.receive_span(self.queue_name, max_messages=max_messages) as span:
            raw_messages = self._queue.receive(max_messages, visibility_timeout=visibility_timeout)
            received: list[ReceivedMessage] = []
            for raw in raw_messages:
                try:
                    if self._dead_letter_if_poison(raw):
                        continue
                    received.append(self._resolve(raw))
                except Exception as e:
                    logger.error(
                        "Failed to process received message",
                        message_id=raw.message_id,
                        dequeue_count=raw.dequeue_count,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
            span.set_attribute("claimcheck.received", len(received))

        return received

    def _dead_letter_if_poison(self, raw: RawQueueMessage) -> bool:
        sink = self._dead_letter_sink
        if sink is None or not sink.should_dead_letter(raw.dequeue_count):
            return False

        logger.warning(
            "Message exceeded max dequeue count",
            message_id=raw.message_id,
            dequeue_count=raw.dequeue_count,
            max_dequeue_count=sink.max_dequeue_count,
        )
        sink.send_to_dead_letter(raw.body, f"Max dequeue count exceeded ({raw.dequeue_count})")
        self._queue.delete(raw.message_id, raw.receipt)
        return True

    def _resolve(self, raw: RawQueueMessage) -> ReceivedMessage:
        envelope = deserialize_envelope(raw.body)

        if not is_offloaded(envelope.metadata):
            return ReceivedMessage(
                message_id=raw.message_id,
                body=envelope.body,
                metadata=dict(envelope.metadata),
                is_from_blob=False,
                pointer=None,
                dequeue_count=raw.dequeue_count,
                receipt=raw.receipt,
            )

        pointer = Pointer.from_json(envelope.body)
        payload = self._download(pointer, envelope.metadata.get(CAPABILITY_URI_KEY))
        if payload is not None and is_compressed(envelope.metadata):
            payload = self._codec.decompress_from_text(payload)

        return ReceivedMessage(
            message_id=raw.message_id,
            body=payload,
            metadata=strip_internal_markers(envelope.metadata),
            is_from_blob=True,
            pointer=pointer,
            dequeue_count=raw.dequeue_count,
            receipt=raw.receipt,
        )

    def _download(self, pointer: Pointer, capability_uri: str | None) -> str | None:
        """Fetch an offloaded payload.

        The capability URI is used when this client has no store (normally
        receive-only mode); otherwise the store's credentials are used.
        """
        store = self._store
        uri = capability_uri if self._settings.receive_only_mode or store is None else None

        with self._spans.resolve_span(pointer.container_name, pointer.blob_name, via_capability_uri=uri is not None) as span:
            try:
                if uri is not None:
                    reader = self._capability_reader
                    if reader is None:
                        raise ConfigurationError("Message carries a capability URI but no capability reader is configured")
                    payload = self._retry.execute(lambda: reader(uri))
                elif store is not None:
                    payload = self._retry.execute(lambda: store.retrieve(pointer))
                else:
                    raise ConfigurationError(
                        f"Cannot resolve {pointer}: no payload store and the message carries no capability URI"
                    )
            except Exception as e:
                if _is_not_found(e) and self._settings.ignore_payload_not_found:
                    payload = None
                else:
                    span.record_exception(e)
                    raise

            if payload is None:
                if not self._settings.ignore_payload_not_found:
                    raise NotFoundError(pointer.container_name, pointer.blob_name)
                logger.warning("Offloaded payload not found, returning empty body", blob=str(pointer))
        return payload

    # === Delete ===

    @_in_log_context
    def delete_message(self, message: ReceivedMessage) -> None:
        """Delete a received message and, if configured, its payload blob.

        Blob cleanup never raises; an undeleted blob is left for TTL reaping.

        Raises:
            QueueError: If the queue delete fails
        """
        with self._spans.delete_span(self.queue_name, message.message_id):
            self._queue.delete(message.message_id, message.receipt)
            logger.debug("Message deleted", message_id=message.message_id)

            if self._settings.cleanup_blob_on_delete and message.is_from_blob:
                self.delete_payload(message)

    @_in_log_context
    def delete_payload(self, message: ReceivedMessage) -> CleanupOutcome:
        """Delete the blob behind a received message. Never raises."""
        if not message.is_from_blob or message.pointer is None or self._store is None:
            return CleanupOutcome.SKIPPED
        return self._delete_blob_best_effort(message.pointer)

    @_in_log_context
    def delete_payload_batch(self, messages: Sequence[ReceivedMessage]) -> int:
        """Delete the blobs behind several messages.

        Returns:
            Number of messages whose blob is gone afterwards
        """
        outcomes = [self.delete_payload(message) for message in messages]
        return sum(1 for outcome in outcomes if outcome.succeeded)

    def _delete_blob_best_effort(self, pointer: Pointer) -> CleanupOutcome:
        store = self._store
        if store is None:
            return CleanupOutcome.SKIPPED
        try:
            deleted = store.delete(pointer)
        except Exception as e:
            logger.warning("Failed to delete payload blob", blob=str(pointer), error=str(e))
            return CleanupOutcome.FAILED
        return CleanupOutcome.DELETED if deleted else CleanupOutcome.ALREADY_ABSENT

    # === Inspection ===

    def peek_messages(self, max_messages: int = 1) -> list[str]:
        """Raw queue bodies, without dequeuing or resolving them."""
        _validate_batch_size(max_messages)
        return self._queue.peek(max_messages)

    def approximate_message_count(self) -> int:
        return self._queue.approximate_count()

    @_in_log_context
    def cleanup_expired_payloads(self) -> int:
        """Delete blobs whose expiry metadata is in the past.

        Raises:
            ConfigurationError: In receive-only mode (no store)
            StoreError: If the container cannot be listed
        """
        if self._store is None:
            raise ConfigurationError("Expired payload cleanup requires a payload store")
        deleted = self._store.cleanup_expired()
        logger.info("Expired payload cleanup finished", container=self._store.container_name, deleted=deleted)
        return deleted

    def dead_letter_depth(self) -> int:
        """Approximate dead-letter backlog, or -1 if it cannot be read.

        Raises:
            ConfigurationError: If dead-lettering is not configured
        """
        if self._dead_letter_sink is None:
            raise ConfigurationError("Dead-lettering is not enabled for this client")
        return self._dead_letter_sink.approximate_depth()

    def _ensure_queue(self) -> None:
        try:
            created = self._queue.create_if_not_exists()
        except Exception as e:
            logger.warning("Failed to ensure queue exists", queue=self.queue_name, error=str(e))
            return
        if created:
            logger.info("Created queue", queue=self.queue_name)
