"""Instrumentation for public service API methods.

Service implementations put ``public_api_instrumented`` on every public method.
The decorator builds one ``InvocationContext`` per call and hands it to a chain
of concerns (structured logs, OTel spans, OTel metrics). A concern that fails
is reported and skipped; it never changes the method's result.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
from dataclasses import dataclass, field
from functools import lru_cache, wraps
from time import perf_counter
from typing import Any, Callable, Mapping, Protocol, Sequence

from opentelemetry import context as otel_context
from opentelemetry import metrics as otel_metrics
from opentelemetry import trace as otel_trace
from opentelemetry.trace.status import Status, StatusCode

from packages.tenancy_shared.config import load_settings
from packages.tenancy_shared.envelope import Envelope

from . import fields
from .context import log_context


@dataclass(frozen=True)
class InvocationContext:
    """What was called, by whom, and on which identifiers."""

    component_id: str
    api_name: str
    trace_id: str | None = None
    envelope_id: str | None = None
    principal: str | None = None
    caller: Mapping[str, str] = field(default_factory=dict)
    references: Mapping[str, str] = field(default_factory=dict)

    def log_fields(self) -> dict[str, object]:
        return {
            fields.COMPONENT_ID: self.component_id,
            fields.API_NAME: self.api_name,
            fields.TRACE_ID: self.trace_id,
            fields.ENVELOPE_ID: self.envelope_id,
            fields.PRINCIPAL: self.principal,
            **self.caller,
            **self.references,
        }


@dataclass(frozen=True)
class CompletionContext:
    """Outcome of one invocation."""

    invocation: InvocationContext
    success: bool
    duration_ms: float
    errors: list[str] = field(default_factory=list)
    error_categories: list[str] = field(default_factory=list)

    @property
    def outcome(self) -> str:
        return "success" if self.success else "failure"


class PublicApiInstrumentationConcern(Protocol):
    """Hooks called around every decorated method."""

    def on_invocation(self, context: InvocationContext) -> None: ...

    def on_completion(self, context: CompletionContext) -> None: ...


class PublicApiLoggingConcern:
    """Emit one structured line at invocation and one at completion."""

    def __init__(self, *, logger: Any) -> None:
        self._logger = logger

    def on_invocation(self, context: InvocationContext) -> None:
        with log_context(
            {fields.EVENT: fields.PUBLIC_API_INVOCATION_EVENT, **context.log_fields()}
        ):
            self._logger.info("Public API invocation")

    def on_completion(self, context: CompletionContext) -> None:
        payload = {
            **context.invocation.log_fields(),
            fields.EVENT: fields.PUBLIC_API_COMPLETION_EVENT,
            fields.SUCCESS: context.success,
            fields.DURATION_MS: context.duration_ms,
            fields.ERRORS: context.errors,
        }
        level = "info" if context.success else "warning"
        with log_context(payload):
            getattr(self._logger, level)("Public API completion")


class PublicApiTracingConcern:
    """Open a span per invocation and make it current until completion."""

    def __init__(self, *, tracer: Any) -> None:
        self._tracer = tracer
        self._open: ContextVar[tuple[tuple[Any, Token[Any]], ...]] = ContextVar(
            "tenancy_public_api_spans", default=()
        )

    def on_invocation(self, context: InvocationContext) -> None:
        attributes: dict[str, str] = {
            fields.COMPONENT_ID: context.component_id,
            fields.API_NAME: context.api_name,
        }
        if context.trace_id:
            attributes[fields.TRACE_ID] = context.trace_id
        if context.envelope_id:
            attributes[fields.ENVELOPE_ID] = context.envelope_id
        attributes.update({f"caller.{k}": v for k, v in context.caller.items()})
        attributes.update({f"reference.{k}": v for k, v in context.references.items()})

        span = self._tracer.start_span(
            f"public_api.{context.component_id}.{context.api_name}",
            attributes=attributes,
        )
        token = otel_context.attach(otel_trace.set_span_in_context(span))
        self._open.set((*self._open.get(), (span, token)))

    def on_completion(self, context: CompletionContext) -> None:
        stack = self._open.get()
        if not stack:
            return
        span, token = stack[-1]
        self._open.set(stack[:-1])
        try:
            span.set_attribute(fields.SUCCESS, context.success)
            span.set_attribute(fields.DURATION_MS, context.duration_ms)
            span.set_attribute(fields.OUTCOME, context.outcome)
            span.set_attribute("errors.count", len(context.errors))
            if not context.success:
                span.set_status(Status(StatusCode.ERROR))
        finally:
            otel_context.detach(token)
            span.end()


class PublicApiMetricsConcern:
    """Count calls and failures and record latency on one OTel meter."""

    def __init__(self, *, meter: Any, names: Any) -> None:
        self._calls = meter.create_counter(
            name=names.metric_public_api_calls_total,
            description="Public API invocations by component, method and outcome.",
            unit="1",
        )
        self._duration = meter.create_histogram(
            name=names.metric_public_api_duration_ms,
            description="Public API latency in milliseconds.",
            unit="ms",
        )
        self._errors = meter.create_counter(
            name=names.metric_public_api_errors_total,
            description="Public API failures by error category.",
            unit="1",
        )

    def on_invocation(self, context: InvocationContext) -> None:
        return None

    def on_completion(self, context: CompletionContext) -> None:
        base = {
            fields.COMPONENT_ID: context.invocation.component_id,
            fields.API_NAME: context.invocation.api_name,
        }
        self._calls.add(1, attributes={**base, fields.OUTCOME: context.outcome})
        self._duration.record(
            context.duration_ms, attributes={**base, fields.OUTCOME: context.outcome}
        )
        if context.success:
            return
        for category in context.error_categories or ["unknown"]:
            self._errors.add(1, attributes={**base, fields.ERROR_CATEGORY: category})


def public_api_instrumented(
    *,
    component_id: str,
    api_name: str | None = None,
    id_fields: tuple[str, ...] = (),
    concerns: Sequence[PublicApiInstrumentationConcern] | None = None,
    logger: Any | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Wrap one public method with logging, tracing and metrics.

    The method is called with keyword arguments. ``meta`` supplies trace and
    envelope ids; ``context`` (when present) supplies actor, scope and tenant.
    Keyword arguments named in ``id_fields`` are recorded as references.
    Envelope results are inspected for success and error categories.
    """
    extra = tuple(concerns or ())

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        name = api_name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            chain: tuple[PublicApiInstrumentationConcern, ...] = (
                *((PublicApiLoggingConcern(logger=logger),) if logger else ()),
                *extra,
                *_default_concerns(),
            )
            invocation = _invocation(component_id, name, id_fields, kwargs)
            _dispatch(chain, invocation, invocation, logger)

            started = perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as exc:
                _dispatch(
                    chain,
                    CompletionContext(
                        invocation=invocation,
                        success=False,
                        duration_ms=_elapsed_ms(started),
                        errors=[f"{type(exc).__name__}: {exc}"],
                        error_categories=["internal"],
                    ),
                    invocation,
                    logger,
                )
                raise

            _dispatch(
                chain,
                _completion(invocation, result, _elapsed_ms(started)),
                invocation,
                logger,
            )
            return result

        return wrapper

    return decorator


def _invocation(
    component_id: str,
    api_name: str,
    id_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> InvocationContext:
    meta = kwargs.get("meta")
    caller = kwargs.get("context")
    return InvocationContext(
        component_id=component_id,
        api_name=api_name,
        trace_id=_text(getattr(meta, "trace_id", None)),
        envelope_id=_text(getattr(meta, "envelope_id", None)),
        principal=_text(getattr(meta, "principal", None)),
        caller={
            name: value
            for name in (fields.ACTOR, fields.SCOPE, fields.TENANT_ID)
            if (value := _text(getattr(caller, name, None))) is not None
        },
        references={
            name: value
            for name in id_fields
            if (value := _text(kwargs.get(name))) is not None
        },
    )


def _completion(
    invocation: InvocationContext, result: object, duration_ms: float
) -> CompletionContext:
    if not isinstance(result, Envelope):
        return CompletionContext(
            invocation=invocation, success=True, duration_ms=duration_ms
        )
    return CompletionContext(
        invocation=invocation,
        success=result.ok,
        duration_ms=duration_ms,
        errors=[f"{error.code}: {error.message}" for error in result.errors],
        error_categories=[error.category.value for error in result.errors],
    )


def _dispatch(
    chain: Sequence[PublicApiInstrumentationConcern],
    event: InvocationContext | CompletionContext,
    invocation: InvocationContext,
    logger: Any | None,
) -> None:
    stage = "invocation" if isinstance(event, InvocationContext) else "completion"
    for concern in chain:
        try:
            if isinstance(event, InvocationContext):
                concern.on_invocation(event)
            else:
                concern.on_completion(event)
        except Exception as exc:  # noqa: BLE001
            _report_concern_failure(
                concern=type(concern).__name__,
                stage=stage,
                exc=exc,
                invocation=invocation,
                logger=logger,
            )


def _report_concern_failure(
    *,
    concern: str,
    stage: str,
    exc: Exception,
    invocation: InvocationContext,
    logger: Any | None,
) -> None:
    attrs = {
        fields.COMPONENT_ID: invocation.component_id,
        fields.API_NAME: invocation.api_name,
        fields.STAGE: stage,
        fields.CONCERN: concern,
    }
    _instrumentation_failures().add(1, attributes=attrs)
    if logger is None:
        return
    with log_context(
        {
            **attrs,
            fields.EVENT: fields.PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT,
            fields.ERRORS: [f"{type(exc).__name__}: {exc}"],
        }
    ):
        logger.warning("Public API instrumentation concern failed")


def _text(value: object) -> str | None:
    if value is None:
        return None
    text = str(getattr(value, "value", value))
    return text or None


def _elapsed_ms(started: float) -> float:
    return round((perf_counter() - started) * 1000.0, 3)


@lru_cache(maxsize=1)
def _otel_names() -> Any:
    return load_settings().observability.public_api.otel


@lru_cache(maxsize=1)
def _default_concerns() -> tuple[PublicApiInstrumentationConcern, ...]:
    """Tracing and metrics concerns on the configured OTel tracer and meter."""
    names = _otel_names()
    return (
        PublicApiTracingConcern(tracer=otel_trace.get_tracer(names.tracer_name)),
        PublicApiMetricsConcern(
            meter=otel_metrics.get_meter(names.meter_name), names=names
        ),
    )


@lru_cache(maxsize=1)
def _instrumentation_failures() -> Any:
    return otel_metrics.get_meter(_otel_names().meter_name).create_counter(
        name=_otel_names().metric_instrumentation_failures_total,
        description="Instrumentation concern failures.",
        unit="1",
    )
