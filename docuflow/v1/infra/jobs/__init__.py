"""
Pipeline job system.

This package provides:
- Postgres-backed queue claimed with SELECT ... FOR UPDATE SKIP LOCKED
- Heartbeats and visibility timeout for stuck job recovery
- Registry-based stage handlers (OCR, PARSING, VALIDATION, EXPORT)
- Retry with exponential backoff and jitter, dedupe keys on enqueue
"""
