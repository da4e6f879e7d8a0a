"""
Central contract constants for TelemetrIQ reports.

Schema version + schema filename are derived from a single source of truth.
"""

SCHEMA_VERSION = "v1"

SCHEMA_RESOURCE_PACKAGE = "telemetriq.schemas"
SCHEMA_RESOURCE_NAME = f"telemetriq_snapshot.schema.{SCHEMA_VERSION}.json"
