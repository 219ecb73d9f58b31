"""Structured log field names shared by every component."""

# Record envelope.
TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"
SERVICE = "service"
ENVIRONMENT = "environment"

# Correlation and caller.
TRACE_ID = "trace_id"
ENVELOPE_ID = "envelope_id"
PRINCIPAL = "principal"
ACTOR = "actor"
SCOPE = "scope"
TENANT_ID = "tenant_id"

# Public API instrumentation.
COMPONENT_ID = "component_id"
API_NAME = "api_name"
SUCCESS = "success"
DURATION_MS = "duration_ms"
ERRORS = "errors"
OUTCOME = "outcome"
ERROR_CATEGORY = "error_category"
STAGE = "stage"
CONCERN = "concern"
PUBLIC_API_INVOCATION_EVENT = "public_api_invocation"
PUBLIC_API_COMPLETION_EVENT = "public_api_completion"
PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT = "public_api_instrumentation_failure"

# Settings audit trail.
ENTRY_ID = "entry_id"
AUDIT_ACTION = "audit_action"
AUDIT_WRITE_FAILURE_EVENT = "audit_write_failure"
