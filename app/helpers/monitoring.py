from enum import Enum
from functools import wraps
from inspect import iscoroutinefunction
from os import environ

from opentelemetry import metrics, trace
from opentelemetry.metrics import Counter
from opentelemetry.semconv.attributes import service_attributes
from opentelemetry.trace.span import INVALID_SPAN
from opentelemetry.util.types import Attributes, AttributeValue
from structlog.contextvars import bind_contextvars, get_contextvars

MODULE_NAME = "com.github.briplanner"
VERSION = environ.get("VERSION", "0.0.0-unknown")


class SpanAttributeEnum(str, Enum):
    """
    OpenTelemetry attributes.

    These attributes are used to track a task in the logs and traces.
    """

    CHECKLIST_ITEM_ID = "checklist.item.id"
    """Checklist item identifier."""
    TASK_ID = "task.id"
    """Task identifier."""

    def attribute(
        self,
        value: AttributeValue,
    ) -> None:
        """
        Set an attribute on the current span.
        """
        # Enrich logging
        bind_contextvars(**{self.value: value})

        # Enrich span
        span = trace.get_current_span()
        if span == INVALID_SPAN:
            return
        span.set_attribute(self.value, value)


class SpanMeterEnum(str, Enum):
    REMINDER_FAILED = "reminder.failed"
    """Email reminders the relay refused."""
    REMINDER_SENT = "reminder.sent"
    """Email reminders accepted by the relay."""

    def counter(
        self,
        unit: str,
    ) -> Counter:
        """
        Create a counter metric to track a span counter.
        """
        return meter.create_counter(
            description=self.__doc__ or "",
            name=self.value,
            unit=unit,
        )


# Export to Azure Application Insights only when it is configured
if environ.get("APPLICATIONINSIGHTS_CONNECTION_STRING"):
    from azure.monitor.opentelemetry import configure_azure_monitor
    from opentelemetry.instrumentation.aiohttp_client import (
        AioHttpClientInstrumentor,
    )

    configure_azure_monitor()
    AioHttpClientInstrumentor().instrument()
else:
    print(  # noqa: T201
        "Azure Application Insights instrumentation disabled, APPLICATIONINSIGHTS_CONNECTION_STRING is not set."
    )

# Attributes
_default_attributes = {
    service_attributes.SERVICE_NAME: MODULE_NAME,
    service_attributes.SERVICE_VERSION: VERSION,
}

# Create a tracer and meter that will be used across the application
tracer = trace.get_tracer(
    attributes=_default_attributes,
    instrumenting_module_name=MODULE_NAME,
)
meter = metrics.get_meter(
    name=MODULE_NAME,
)

# Init metrics
reminder_failed = SpanMeterEnum.REMINDER_FAILED.counter("emails")
reminder_sent = SpanMeterEnum.REMINDER_SENT.counter("emails")


def counter_add(
    metric: Counter,
    value: float | int,
):
    """
    Add a counter metric value with context attributes.
    """
    metric.add(
        amount=value,
        attributes={
            # First, set default attributes
            **_default_attributes,
            # Then, set context attributes, they can override default attributes
            **get_contextvars(),
        },
    )


def start_as_current_span(
    name: str,
    attributes: Attributes = None,
):
    """
    Decorator to start an OTEL span for the function and set it as the current.

    Works on both sync and async functions.
    """

    def _wrapper(func):
        @wraps(func)
        def _inner(*args, **kwargs):
            with tracer.start_as_current_span(
                attributes=attributes,
                name=name,
            ):
                return func(*args, **kwargs)

        @wraps(func)
        async def _async_inner(*args, **kwargs):
            with tracer.start_as_current_span(
                attributes=attributes,
                name=name,
            ):
                return await func(*args, **kwargs)

        return _async_inner if iscoroutinefunction(func) else _inner

    return _wrapper
