"""Utility modules."""

from .audit_logger import AuditLogger
from .text import normalize_code, normalize_text

__all__ = ["AuditLogger", "normalize_code", "normalize_text"]
