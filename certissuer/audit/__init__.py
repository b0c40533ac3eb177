"""Audit logging for security-relevant operations."""

from certissuer.audit.logger import AuditEvent, AuditLogger, get_audit_logger, reset_audit_logger

__all__ = ["AuditEvent", "AuditLogger", "get_audit_logger", "reset_audit_logger"]
