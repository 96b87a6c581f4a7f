# src/claimcheck/engine/spans.py
"""OpenTelemetry span factory for ClaimCheckClient.

Falls back to no-op mode when no tracer is configured (tracing_enabled=False
or OpenTelemetry has no SDK installed, in which case the API's own tracer is
already a no-op).

Span Hierarchy:
    claimcheck.send
    ├── claimcheck.offload
    claimcheck.receive
    ├── claimcheck.resolve  (one per blob-backed message)
    claimcheck.delete
"""

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer

TRACER_NAME = "claimcheck"


class NoOpSpan:
    """No-op span for when tracing is disabled."""

    def set_attribute(self, key: str, value: Any) -> None:
        pass

    def set_status(self, status: Any) -> None:
        pass

    def record_exception(self, exception: BaseException) -> None:
        pass

    def is_recording(self) -> bool:
        return False


def default_tracer() -> "Tracer":
    """Tracer from the globally configured OpenTelemetry provider."""
    from opentelemetry import trace

    return trace.get_tracer(TRACER_NAME)


class SpanFactory:
    """Factory for claim-check spans.

    When no tracer is provided, all span methods yield the shared NoOpSpan.

    Example:
        factory = SpanFactory(tracer=default_tracer())

        with factory.send_span("orders") as span:
            with factory.offload_span("large-messages", blob_name) as offload:
                ...
    """

    _NOOP_SPAN = NoOpSpan()

    def __init__(self, tracer: "Tracer | None" = None) -> None:
        self._tracer = tracer

    @property
    def enabled(self) -> bool:
        return self._tracer is not None

    @contextmanager
    def _span(self, name: str, attributes: dict[str, Any]) -> Iterator["Span | NoOpSpan"]:
        if self._tracer is None:
            yield self._NOOP_SPAN
            return

        with self._tracer.start_as_current_span(name) as span:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
            yield span

    def send_span(self, queue_name: str, *, body_size: int | None = None) -> AbstractContextManager["Span | NoOpSpan"]:
        """Span around one send_message call.

        Yields:
            Span or NoOpSpan (never None - uniform interface)
        """
        return self._span(
            "claimcheck.send",
            {"messaging.destination.name": queue_name, "messaging.message.body.size": body_size},
        )

    def offload_span(self, container_name: str, blob_name: str) -> AbstractContextManager["Span | NoOpSpan"]:
        return self._span(
            "claimcheck.offload",
            {"claimcheck.container": container_name, "claimcheck.blob": blob_name},
        )

    def receive_span(self, queue_name: str, *, max_messages: int) -> AbstractContextManager["Span | NoOpSpan"]:
        return self._span(
            "claimcheck.receive",
            {"messaging.destination.name": queue_name, "messaging.batch.message_count": max_messages},
        )

    def resolve_span(self, container_name: str, blob_name: str, *, via_capability_uri: bool = False) -> AbstractContextManager["Span | NoOpSpan"]:
        return self._span(
            "claimcheck.resolve",
            {
                "claimcheck.container": container_name,
                "claimcheck.blob": blob_name,
                "claimcheck.via_capability_uri": via_capability_uri,
            },
        )

    def delete_span(self, queue_name: str, message_id: str) -> AbstractContextManager["Span | NoOpSpan"]:
        return self._span(
            "claimcheck.delete",
            {"messaging.destination.name": queue_name, "messaging.message.id": message_id},
        )
