"""Audit logging package."""

from agency_desk.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
