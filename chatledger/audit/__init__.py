"""Audit logging package."""

from chatledger.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
