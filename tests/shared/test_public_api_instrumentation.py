"""Unit tests for public API instrumentation concerns and decorator."""

from __future__ import annotations

import logging

import pytest

from packages.tenancy_shared.config.models import PublicApiOtelSettings
from packages.tenancy_shared.envelope import EnvelopeKind, failure, new_meta, success
from packages.tenancy_shared.errors import dependency_error
from packages.tenancy_shared.logging import (
    CompletionContext,
    InvocationContext,
    PublicApiMetricsConcern,
    PublicApiTracingConcern,
    public_api_instrumented,
)


class _FakeCounter:
    def __init__(self) -> None:
        self.calls: list[tuple[int | float, dict[str, str]]] = []

    def add(self, amount: int | float, attributes: dict[str, str]) -> None:
        self.calls.append((amount, dict(attributes)))


class _FakeHistogram:
    def __init__(self) -> None:
        self.samples: list[tuple[float, dict[str, str]]] = []

    def record(self, amount: float, attributes: dict[str, str]) -> None:
        self.samples.append((amount, dict(attributes)))


class _FakeSpan:
    def __init__(self, name: str, attributes: dict[str, str]) -> None:
        self.name = name
        self.attributes: dict[str, object] = dict(attributes)
        self.statuses: list[object] = []
        self.ended = False

    def set_attribute(self, key: str, value: object) -> None:
        self.attributes[key] = value

    def set_status(self, status: object) -> None:
        self.statuses.append(status)

    def end(self) -> None:
        self.ended = True


class _FakeTracer:
    def __init__(self) -> None:
        self.spans: list[_FakeSpan] = []

    def start_span(self, name: str, attributes: dict[str, str]) -> _FakeSpan:
        span = _FakeSpan(name, attributes)
        self.spans.append(span)
        return span


class _FakeMeter:
    def __init__(self) -> None:
        self.counters: dict[str, _FakeCounter] = {}
        self.histograms: dict[str, _FakeHistogram] = {}

    def create_counter(self, *, name: str, description: str, unit: str) -> _FakeCounter:
        return self.counters.setdefault(name, _FakeCounter())

    def create_histogram(
        self, *, name: str, description: str, unit: str
    ) -> _FakeHistogram:
        return self.histograms.setdefault(name, _FakeHistogram())


class _RecordingConcern:
    def __init__(self) -> None:
        self.invocations: list[InvocationContext] = []
        self.completions: list[CompletionContext] = []

    def on_invocation(self, context: InvocationContext) -> None:
        self.invocations.append(context)

    def on_completion(self, context: CompletionContext) -> None:
        self.completions.append(context)


class _ExplodingConcern:
    def on_invocation(self, context: InvocationContext) -> None:
        raise RuntimeError("exporter down")

    def on_completion(self, context: CompletionContext) -> None:
        raise RuntimeError("exporter down")


class _Caller:
    actor = "user-1"
    scope = "tenant"
    tenant_id = "tenant-a"


def _invocation() -> InvocationContext:
    return InvocationContext(
        component_id="service_settings_authority",
        api_name="get_setting",
        trace_id="trace-1",
        envelope_id="env-1",
        principal="operator",
        caller={"actor": "user-1", "scope": "tenant", "tenant_id": "tenant-a"},
        references={"key": "auto-assignment"},
    )


def _meta():
    return new_meta(kind=EnvelopeKind.QUERY, source="test", principal="operator")


def test_tracing_concern_opens_and_closes_span_with_caller_fields() -> None:
    """Spans carry component, caller, and reference attributes."""
    tracer = _FakeTracer()
    concern = PublicApiTracingConcern(tracer=tracer)
    invocation = _invocation()

    concern.on_invocation(invocation)
    concern.on_completion(
        CompletionContext(
            invocation=invocation,
            success=False,
            duration_ms=3.0,
            errors=["DEPENDENCY_UNAVAILABLE: postgres unavailable"],
            error_categories=["dependency"],
        )
    )

    (span,) = tracer.spans
    assert span.name == "public_api.service_settings_authority.get_setting"
    assert span.ended is True
    assert span.attributes["caller.tenant_id"] == "tenant-a"
    assert span.attributes["reference.key"] == "auto-assignment"
    assert span.attributes["outcome"] == "failure"
    assert span.attributes["errors.count"] == 1
    assert len(span.statuses) == 1


def test_tracing_concern_ignores_unmatched_completion() -> None:
    """A completion without an open span is a no-op."""
    tracer = _FakeTracer()

    PublicApiTracingConcern(tracer=tracer).on_completion(
        CompletionContext(invocation=_invocation(), success=True, duration_ms=1.0)
    )

    assert tracer.spans == []


def test_metrics_concern_counts_calls_and_error_categories() -> None:
    """Failures emit one error increment per category."""
    names = PublicApiOtelSettings()
    meter = _FakeMeter()
    concern = PublicApiMetricsConcern(meter=meter, names=names)

    concern.on_completion(
        CompletionContext(
            invocation=_invocation(),
            success=False,
            duration_ms=7.5,
            errors=["a", "b"],
            error_categories=["validation", "conflict"],
        )
    )

    calls = meter.counters[names.metric_public_api_calls_total]
    durations = meter.histograms[names.metric_public_api_duration_ms]
    errors = meter.counters[names.metric_public_api_errors_total]
    assert calls.calls[0][1]["outcome"] == "failure"
    assert durations.samples[0][0] == 7.5
    assert [attrs["error_category"] for _, attrs in errors.calls] == [
        "validation",
        "conflict",
    ]


def test_decorator_reports_envelope_outcome_to_concerns() -> None:
    """Envelope ok/errors drive completion success and categories."""
    recorder = _RecordingConcern()

    class _Service:
        @public_api_instrumented(
            component_id="service_settings_authority",
            id_fields=("key",),
            concerns=(recorder,),
        )
        def get_setting(self, *, meta, context, key):
            return failure(
                meta=meta,
                errors=[dependency_error("postgres unavailable", code="DOWN")],
            )

    _Service().get_setting(meta=_meta(), context=_Caller(), key="sla")

    invocation = recorder.invocations[0]
    assert invocation.api_name == "get_setting"
    assert invocation.principal == "operator"
    assert invocation.caller == {
        "actor": "user-1",
        "scope": "tenant",
        "tenant_id": "tenant-a",
    }
    assert invocation.references == {"key": "sla"}
    completion = recorder.completions[0]
    assert completion.success is False
    assert completion.errors == ["DOWN: postgres unavailable"]
    assert completion.error_categories == ["dependency"]


def test_decorator_reports_and_reraises_exceptions() -> None:
    """Escaping exceptions are recorded as internal failures."""
    recorder = _RecordingConcern()

    @public_api_instrumented(component_id="service_example", concerns=(recorder,))
    def explode(*, meta):
        raise KeyError("missing")

    with pytest.raises(KeyError):
        explode(meta=_meta())

    assert recorder.completions[0].success is False
    assert recorder.completions[0].error_categories == ["internal"]


def test_failing_concern_never_breaks_the_call(caplog) -> None:
    """Concern failures are logged and the result is still returned."""
    logger = logging.getLogger("tests.public_api")

    @public_api_instrumented(
        component_id="service_example",
        concerns=(_ExplodingConcern(),),
        logger=logger,
    )
    def answer(*, meta):
        return success(meta=meta, payload=42)

    with caplog.at_level(logging.INFO, logger="tests.public_api"):
        result = answer(meta=_meta())

    assert result.payload.value == 42
    messages = [record.getMessage() for record in caplog.records]
    assert "Public API invocation" in messages
    assert "Public API completion" in messages
    assert messages.count("Public API instrumentation concern failed") == 2
