"""Audit logging package."""

from submanager.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
