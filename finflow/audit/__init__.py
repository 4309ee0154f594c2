"""Audit logging package."""

from finflow.audit.logger import (
    AuditLogger,
    configure_logging,
    create_correlation_id,
    get_logger,
    mask_headers,
    truncate_body,
)
from finflow.audit.storage import AuditStorageInterface, InMemoryAuditStorage

__all__ = [
    "AuditLogger",
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "configure_logging",
    "create_correlation_id",
    "get_logger",
    "mask_headers",
    "truncate_body",
]
