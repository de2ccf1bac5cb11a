"""Structured logging utilities."""

from .audit import (
    AuditEvent,
    JsonlAuditLogger,
    new_invocation_id,
    sanitize_arguments,
    utc_timestamp,
)

__all__ = [
    "AuditEvent",
    "JsonlAuditLogger",
    "new_invocation_id",
    "sanitize_arguments",
    "utc_timestamp",
]
