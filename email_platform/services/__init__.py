from .audit import record_audit

__all__ = ["record_audit"]
