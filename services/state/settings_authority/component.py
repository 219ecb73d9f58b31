"""Component identity for the Settings Authority Service."""

from __future__ import annotations

SERVICE_COMPONENT_ID = "service_settings_authority"
SERVICE_SCHEMA_NAME = SERVICE_COMPONENT_ID
